"""Source stages: layers that bake git repository commits into the image.

A source stage's signature is the checksum of its upstream stage plus the
commit it incorporates for each repository. The commit is taken from the
commit ledger when a layer was already built for the same upstream checksum,
otherwise from the repository's latest commit; after the layer is accepted into
the cache the commit is recorded so later builds diff from it.
"""

from __future__ import annotations

import glob
import os

from stagekit import hashsum

from layer_builder.foundation.errors import SignatureError
from layer_builder.framework.image import StageImage
from layer_builder.framework.ledger import LedgerKey
from layer_builder.framework.runtime import BuildContext
from layer_builder.framework.sources import ApplyMethod, SourceRepository
from layer_builder.stages.base import Stage


class SourceStage(Stage):
    apply_command_method: ApplyMethod = "patch"

    def __init__(self, name: str, ctx: BuildContext) -> None:
        super().__init__(name, ctx)
        self._commits: dict[str, str] = {}

    @property
    def repositories(self) -> list[SourceRepository]:
        return list(self.ctx.repositories)

    @property
    def prev_source_stage(self) -> "SourceStage | None":
        return self.prev_stage_of(SourceStage)

    @property
    def next_source_stage(self) -> "SourceStage | None":
        return self.next_stage_of(SourceStage)

    def dependencies_checksum(self) -> str:
        prev = self.prev_stage
        if prev is None:
            raise SignatureError(f"Source stage {self.name} has no previous stage")
        return hashsum([prev.signature()])

    def signature(self) -> str:
        return hashsum([self.dependencies_checksum(), *self._commit_list()])

    def resolve_layer_commit(self, repo: SourceRepository) -> str:
        """Populate the commit for `repo` if absent; the first resolved value wins."""
        if repo.identity not in self._commits:
            self._commits[repo.identity] = self._resolve_commit(repo)
        return self._commits[repo.identity]

    def layer_commit(self, repo: SourceRepository) -> str:
        return self.resolve_layer_commit(repo)

    def image(self) -> StageImage:
        image = super().image()
        for repo in self.repositories:
            image.add_volume(f"{repo.host_working_directory}:{repo.container_path}")
            image.add_commands(repo.apply_commands(self, self.apply_command_method))

        if self._should_be_with_git(image):
            sidecar = self.ctx.sidecar.ensure()
            image.add_volumes_from(sidecar.name)
            image.unshift_commands(sidecar.path_export_command())
        return image

    def save_in_cache(self) -> None:
        super().save_in_cache()
        self._write_layer_commits()

    def _should_be_with_git(self, image: StageImage) -> bool:
        return bool(self.repositories) and image.has_commands()

    def _commit_list(self) -> list[str]:
        return [self.layer_commit(repo) for repo in self.repositories]

    def _ledger_key(self, repo: SourceRepository, dependencies_checksum: str) -> LedgerKey:
        return LedgerKey(
            stage_name=self.name,
            repo_identity=repo.identity,
            params_hash=_params_hash(repo),
            dependencies_checksum=dependencies_checksum,
        )

    def _resolve_commit(self, repo: SourceRepository) -> str:
        recorded = self.ctx.ledger.read(self._ledger_key(repo, self.dependencies_checksum()))
        if recorded is not None:
            self.ctx.logger.debug(
                "%s: %s uses recorded layer commit %s", self.name, repo.identity, recorded
            )
            return recorded
        return _latest_commit(repo)

    def _write_layer_commits(self) -> None:
        checksum = self.dependencies_checksum()
        for repo in self.repositories:
            key = self._ledger_key(repo, checksum)
            try:
                self.ctx.ledger.write(key, self.layer_commit(repo))
            except OSError as exc:
                self.ctx.logger.warning(
                    "%s: could not record layer commit for %s (%s); "
                    "the next build falls back to the latest commit",
                    self.name,
                    repo.identity,
                    exc,
                )


class ArchiveSourceStage(SourceStage):
    """First source stage: extracts a full archive of each repository."""

    apply_command_method: ApplyMethod = "archive"


class PatchSourceStage(SourceStage):
    """Applies the diff since the previous source stage.

    `dependencies` are glob patterns relative to the project directory; their
    content is folded into the checksum so that editing e.g. a lockfile
    invalidates this stage and everything after it.
    """

    def __init__(
        self,
        name: str,
        ctx: BuildContext,
        *,
        dependencies: tuple[str, ...] = (),
    ) -> None:
        super().__init__(name, ctx)
        self.dependencies = tuple(dependencies)

    def dependencies_checksum(self) -> str:
        checksum = super().dependencies_checksum()
        if not self.dependencies:
            return checksum
        return hashsum([checksum, self.dependency_files_checksum(self.dependencies)])

    def dependency_files_checksum(self, patterns: tuple[str, ...]) -> str:
        root = self.ctx.cfg.project_dir
        files: set[str] = set()
        for pattern in patterns:
            for match in glob.glob(os.path.join(root, pattern), recursive=True):
                if os.path.isfile(match):
                    files.add(match)

        parts: list[str | bytes] = []
        for path in sorted(files):
            parts.append(os.path.relpath(path, root).replace(os.sep, "/"))
            with open(path, "rb") as handle:
                parts.append(handle.read())
        return hashsum(parts)


class PatchSizeSourceStage(PatchSourceStage):
    """Rebuilds from the latest commit once the pending patch grows too large.

    The checksum includes `patch_size // max_patch_size` for the diff between
    the previous source stage's commit and the latest commit, so crossing a
    size threshold moves the ledger key and the layer is rebuilt.
    """

    def dependencies_checksum(self) -> str:
        checksum = super().dependencies_checksum()
        prev_source = self.prev_source_stage
        if prev_source is None or not self.repositories:
            return checksum

        buckets: list[str] = []
        for repo in self.repositories:
            from_commit = prev_source.layer_commit(repo)
            to_commit = _latest_commit(repo)
            try:
                size = repo.patch_size(from_commit, to_commit)
            except Exception as exc:
                raise SignatureError(
                    f"{self.name}: cannot measure patch for {repo.identity}: {exc}"
                ) from exc
            buckets.append(str(size // self.ctx.cfg.max_patch_size))
        return hashsum([checksum, *buckets])


class LatestSourceStage(PatchSourceStage):
    """Last source stage: always tracks each repository's latest commit."""

    def _resolve_commit(self, repo: SourceRepository) -> str:
        return _latest_commit(repo)


def _latest_commit(repo: SourceRepository) -> str:
    try:
        commit = repo.latest_commit()
    except SignatureError:
        raise
    except Exception as exc:
        raise SignatureError(f"Cannot resolve latest commit of {repo.identity}: {exc}") from exc
    if not isinstance(commit, str) or not commit.strip():
        raise SignatureError(f"Repository {repo.identity} reported no commit")
    return commit.strip()


def _params_hash(repo: SourceRepository) -> str:
    try:
        params = repo.params_hash()
    except Exception as exc:
        raise SignatureError(f"Cannot compute parameters hash of {repo.identity}: {exc}") from exc
    if not isinstance(params, str) or not params.strip():
        raise SignatureError(f"Repository {repo.identity} reported no parameters hash")
    return params.strip()
