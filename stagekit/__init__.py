"""Reusable stage-chain kernel (signatures + stage linkage).

This package is intentionally independent of `layer_builder.*`. Anything that
knows about images, repositories or the container runtime must live in the
consuming application.
"""

from stagekit.chain import StageChain
from stagekit.signature import hashsum
from stagekit.stage_types import Stage

__all__ = [
    "Stage",
    "StageChain",
    "hashsum",
]
