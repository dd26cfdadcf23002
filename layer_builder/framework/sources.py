from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from layer_builder.stages.source import SourceStage

ApplyMethod = Literal["archive", "patch"]


class SourceRepository(Protocol):
    """A versioned source tree a source stage bakes into its layer."""

    @property
    def identity(self) -> str:
        """Stable, file-path-safe name."""
        ...

    @property
    def host_working_directory(self) -> str:
        ...

    @property
    def container_path(self) -> str:
        """Where `host_working_directory` is mounted inside the build container."""
        ...

    @property
    def target_path(self) -> str:
        ...

    def latest_commit(self) -> str:
        ...

    def params_hash(self) -> str:
        ...

    def apply_commands(self, stage: "SourceStage", method: ApplyMethod) -> list[str]:
        ...

    def patch_size(self, from_commit: str, to_commit: str) -> int:
        ...
