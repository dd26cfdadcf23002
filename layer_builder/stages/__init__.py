from layer_builder.stages.base import Stage
from layer_builder.stages.from_image import FromStage
from layer_builder.stages.shell import ShellStage
from layer_builder.stages.source import (
    ArchiveSourceStage,
    LatestSourceStage,
    PatchSizeSourceStage,
    PatchSourceStage,
    SourceStage,
)

__all__ = [
    "ArchiveSourceStage",
    "FromStage",
    "LatestSourceStage",
    "PatchSizeSourceStage",
    "PatchSourceStage",
    "ShellStage",
    "SourceStage",
    "Stage",
]
