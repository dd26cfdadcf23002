"""Per-stage record of the commit baked into each cached layer.

One file per (stage, repository, repository params, dependencies checksum)
under the build directory; the file holds the bare commit id. Because the
dependencies checksum is part of the file name, a changed upstream stage makes
the lookup miss instead of returning a stale commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from layer_builder.foundation.fs import atomic_write_text, file_safe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerKey:
    stage_name: str
    repo_identity: str
    params_hash: str
    dependencies_checksum: str

    def filename(self) -> str:
        return (
            f"{file_safe(self.repo_identity)}.{file_safe(self.stage_name)}."
            f"{self.params_hash}.{self.dependencies_checksum}.commit"
        )


class CommitLedger:
    def __init__(self, build_dir: str | Path) -> None:
        self.build_dir = Path(build_dir)

    def path_for(self, key: LedgerKey) -> Path:
        return self.build_dir / key.filename()

    def read(self, key: LedgerKey) -> str | None:
        """Return the recorded commit, or None when nothing usable is recorded."""
        path = self.path_for(key)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Ledger entry unreadable, ignoring: %s (%s)", path, exc)
            return None
        commit = content.strip()
        return commit or None

    def write(self, key: LedgerKey, commit: str) -> Path:
        if not isinstance(commit, str) or not commit.strip():
            raise ValueError(f"Ledger commit must be a non-empty string (key={key})")
        path = self.path_for(key)
        atomic_write_text(path, commit.strip())
        logger.debug("Ledger entry written: %s -> %s", path.name, commit.strip())
        return path
