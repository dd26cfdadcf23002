from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from layer_builder.framework.config import BuildConfig
from layer_builder.framework.image import StageImage
from layer_builder.framework.ledger import CommitLedger
from layer_builder.framework.sidecar import SidecarTooling
from layer_builder.framework.sources import SourceRepository


class ContainerRuntime(Protocol):
    def inspect(self, name: str) -> bool:
        ...

    def run_detached_sidecar(self, name: str, volume: str, image: str) -> bool:
        ...

    def image_exists(self, tag: str) -> bool:
        ...

    def pull(self, image: str) -> None:
        ...

    def build(self, image: StageImage) -> str:
        """Run the image's commands on its base and return the resulting image id."""
        ...

    def tag(self, image_id: str, tag: str) -> None:
        ...


@dataclass
class BuildContext:
    build_id: str
    cfg: BuildConfig
    logger: logging.Logger
    runtime: ContainerRuntime
    ledger: CommitLedger
    sidecar: SidecarTooling
    created_at: str

    repositories: list[SourceRepository] = field(default_factory=list)
