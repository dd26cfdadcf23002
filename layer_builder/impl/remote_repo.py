"""Repositories bound by URL instead of a local working tree.

The remote is mirrored into a bare clone under the build directory and every
git operation of `GitRepository` runs against that clone. Cloning and fetching
hold a lock file next to the clone, so concurrent builds on one host share it.
"""

from __future__ import annotations

import logging
import os
import shutil

from layer_builder.foundation.errors import ShellCommandError, SignatureError
from layer_builder.foundation.fs import lock_file
from layer_builder.foundation.logging_utils import timed_step
from layer_builder.foundation.shell import run_command
from layer_builder.framework.config import RepositoryConfig
from layer_builder.impl.git_repo import GitRepository

logger = logging.getLogger(__name__)

REMOTE_NAME = "origin"
LOCK_TIMEOUT_SECONDS = 600.0


class RemoteGitRepository(GitRepository):
    def __init__(self, config: RepositoryConfig, *, build_dir: str, git_binary: str = "git") -> None:
        if not config.url:
            raise ValueError(f"Repository {config.name} has no url")
        super().__init__(config, build_dir=build_dir, git_binary=git_binary)
        self.clone_path = os.path.join(build_dir, "remote_git_repos", self.identity)
        self._synced = False

    def __repr__(self) -> str:
        return f"RemoteGitRepository(name={self.config.name!r}, url={self.config.url!r})"

    @property
    def url(self) -> str:
        return self.config.url or ""

    @property
    def git_dir(self) -> str:
        return self.clone_path

    def _git(self, *args: str, text: bool = True):
        self.sync()
        return super()._git(*args, text=text)

    def _run_git(self, *args: str, check: bool = True):
        return run_command([self.git_binary, *args], check=check)

    def _revision(self) -> str:
        if self.config.tag:
            return f"refs/tags/{self.config.tag}"
        return f"refs/remotes/{REMOTE_NAME}/{self.config.branch}"

    def _lock(self):
        return lock_file(
            f"{self.clone_path}.lock",
            label=f"remote repository lock ({self.config.name})",
            timeout_seconds=LOCK_TIMEOUT_SECONDS,
        )

    def latest_commit(self) -> str:
        try:
            self.sync()
        except (ShellCommandError, OSError) as exc:
            raise SignatureError(f"Cannot fetch {self.url} for {self.config.name}: {exc}") from exc
        return super().latest_commit()

    def sync(self) -> None:
        """Clone the remote on first use, otherwise fetch it; done once per instance."""
        if self._synced:
            return
        if not self.clone():
            self.fetch()
        self._synced = True

    def clone(self) -> bool:
        """Create the bare clone; False when it already exists."""
        if os.path.exists(self.clone_path):
            return False

        with self._lock():
            if os.path.exists(self.clone_path):
                return False

            os.makedirs(os.path.dirname(self.clone_path), exist_ok=True)
            tmp_path = f"{self.clone_path}.tmp"
            shutil.rmtree(tmp_path, ignore_errors=True)
            try:
                with timed_step(logger, f"Cloning {self.url}"):
                    self._run_git("init", "--bare", "--quiet", tmp_path)
                    self._run_git("-C", tmp_path, "remote", "add", REMOTE_NAME, self.url)
                    self._fetch_into(tmp_path)
                os.rename(tmp_path, self.clone_path)
            finally:
                shutil.rmtree(tmp_path, ignore_errors=True)
        return True

    def fetch(self) -> None:
        with self._lock():
            proc = self._run_git(
                "-C", self.clone_path, "config", "--get", f"remote.{REMOTE_NAME}.url", check=False
            )
            if (proc.stdout or "").strip() != self.url:
                logger.info("Updating %s url of %s to %s", REMOTE_NAME, self.config.name, self.url)
                self._run_git("-C", self.clone_path, "remote", "set-url", REMOTE_NAME, self.url)

            with timed_step(logger, f"Fetching {REMOTE_NAME} of {self.url}"):
                self._fetch_into(self.clone_path)

    def _fetch_into(self, path: str) -> None:
        self._run_git("-C", path, "fetch", "--quiet", "--force", "--prune", "--tags", REMOTE_NAME)
        if not self.config.tag and self.config.branch == "HEAD":
            self._run_git("-C", path, "remote", "set-head", REMOTE_NAME, "--auto")
