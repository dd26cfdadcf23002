from __future__ import annotations

import logging
import os
import posixpath
import shlex
from pathlib import Path
from typing import TYPE_CHECKING

from stagekit import hashsum

from layer_builder.foundation.errors import ShellCommandError, SignatureError
from layer_builder.foundation.fs import atomic_write_bytes, file_safe
from layer_builder.foundation.shell import run_command
from layer_builder.framework.config import RepositoryConfig
from layer_builder.framework.sources import ApplyMethod

if TYPE_CHECKING:
    from layer_builder.stages.source import SourceStage

logger = logging.getLogger(__name__)

CONTAINER_REPOS_DIR = "/.layer_builder/git_repos"

_DIFF_GIT_OPTS = ("-c", "diff.renames=false", "-c", "core.quotePath=false")


class GitRepository:
    """A local git working tree bound to a target directory in the image."""

    def __init__(self, config: RepositoryConfig, *, build_dir: str, git_binary: str = "git") -> None:
        self.config = config
        self.git_binary = git_binary
        self._identity = file_safe(config.name)
        self._host_working_directory = os.path.join(build_dir, "git_repos", self._identity)
        self._latest_commit: str | None = None
        self._diffs: dict[tuple[str, str], bytes] = {}

    def __repr__(self) -> str:
        return f"GitRepository(name={self.config.name!r}, path={self.config.path!r})"

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def host_working_directory(self) -> str:
        return self._host_working_directory

    @property
    def container_path(self) -> str:
        return posixpath.join(CONTAINER_REPOS_DIR, self._identity)

    @property
    def target_path(self) -> str:
        return self.config.to

    @property
    def git_dir(self) -> str:
        if not self.config.path:
            raise ValueError(f"Repository {self.config.name} has no local path")
        return self.config.path

    def _git(self, *args: str, text: bool = True):
        return run_command([self.git_binary, "-C", self.git_dir, *args], text=text)

    def _revision(self) -> str:
        if self.config.tag:
            return f"refs/tags/{self.config.tag}"
        return self.config.branch

    def latest_commit(self) -> str:
        if self._latest_commit is None:
            revision = self._revision()
            try:
                proc = self._git("rev-parse", "--verify", f"{revision}^{{commit}}")
            except ShellCommandError as exc:
                raise SignatureError(f"Cannot resolve {revision} in {self}: {exc}") from exc
            commit = (proc.stdout or "").strip()
            if not commit:
                raise SignatureError(f"git rev-parse returned no commit for {self}")
            self._latest_commit = commit
        return self._latest_commit

    def params_hash(self) -> str:
        cfg = self.config
        return hashsum(
            [
                cfg.to,
                cfg.branch,
                *([f"tag={cfg.tag}"] if cfg.tag else []),
                *([f"url={cfg.url}"] if cfg.url else []),
                *[f"include={path}" for path in cfg.include_paths],
                *[f"exclude={path}" for path in cfg.exclude_paths],
                f"owner={cfg.owner or ''}",
                f"group={cfg.group or ''}",
            ]
        )

    def _pathspecs(self) -> list[str]:
        specs = list(self.config.include_paths) or ["."]
        specs.extend(f":(exclude){path}" for path in self.config.exclude_paths)
        return specs

    def diff(self, from_commit: str, to_commit: str) -> bytes:
        key = (from_commit, to_commit)
        if key not in self._diffs:
            if from_commit == to_commit:
                self._diffs[key] = b""
            else:
                proc = self._git(
                    *_DIFF_GIT_OPTS,
                    "diff",
                    "--binary",
                    "--full-index",
                    from_commit,
                    to_commit,
                    "--",
                    *self._pathspecs(),
                    text=False,
                )
                self._diffs[key] = proc.stdout or b""
        return self._diffs[key]

    def patch_size(self, from_commit: str, to_commit: str) -> int:
        return len(self.diff(from_commit, to_commit))

    def apply_commands(self, stage: "SourceStage", method: ApplyMethod) -> list[str]:
        if method == "archive":
            return self.apply_archive_commands(stage)
        if method == "patch":
            return self.apply_patch_commands(stage)
        raise ValueError(f"Unknown apply method: {method!r}")

    def apply_archive_commands(self, stage: "SourceStage") -> list[str]:
        commit = stage.layer_commit(self)
        filename = f"{file_safe(stage.name)}.{commit}.tar"
        host_file = os.path.join(self.host_working_directory, filename)
        if not os.path.exists(host_file):
            os.makedirs(self.host_working_directory, exist_ok=True)
            proc = self._git("archive", "--format=tar", commit, "--", *self._pathspecs(), text=False)
            atomic_write_bytes(Path(host_file), proc.stdout or b"")
            logger.debug("Archive for %s@%s written to %s", self.identity, commit, host_file)

        to = shlex.quote(self.config.to)
        commands = [
            f"install -d {to}",
            f"tar -xf {shlex.quote(posixpath.join(self.container_path, filename))} -C {to}",
        ]
        commands.extend(self._chown_commands())
        return commands

    def apply_patch_commands(self, stage: "SourceStage") -> list[str]:
        prev_source = stage.prev_source_stage
        if prev_source is None:
            return self.apply_archive_commands(stage)

        from_commit = prev_source.layer_commit(self)
        to_commit = stage.layer_commit(self)
        patch = self.diff(from_commit, to_commit)
        if not patch:
            return []

        filename = f"{file_safe(stage.name)}.{from_commit}.{to_commit}.patch"
        host_file = os.path.join(self.host_working_directory, filename)
        atomic_write_bytes(Path(host_file), patch)
        logger.debug(
            "Patch for %s %s..%s (%d bytes) written to %s",
            self.identity,
            from_commit,
            to_commit,
            len(patch),
            host_file,
        )

        directory = self.config.to.strip("/")
        apply = [
            "git apply --whitespace=nowarn",
            f"--directory={shlex.quote(directory)}" if directory else "",
            "--unsafe-paths",
            shlex.quote(posixpath.join(self.container_path, filename)),
        ]
        commands = ["cd / && " + " ".join(part for part in apply if part)]
        commands.extend(self._chown_commands())
        return commands

    def _chown_commands(self) -> list[str]:
        owner, group = self.config.owner, self.config.group
        if not owner and not group:
            return []
        spec = f"{owner or ''}:{group}" if group else str(owner)
        return [f"chown -R {shlex.quote(spec)} {shlex.quote(self.config.to)}"]
