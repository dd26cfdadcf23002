from __future__ import annotations

from stagekit import hashsum

from layer_builder.foundation.errors import SignatureError
from layer_builder.framework.image import StageImage
from layer_builder.stages.base import Stage


class ShellStage(Stage):
    """Runs the user commands configured for this stage name."""

    @property
    def commands(self) -> tuple[str, ...]:
        return self.ctx.cfg.shell_stage(self.name).commands

    def signature(self) -> str:
        prev = self.prev_stage
        if prev is None:
            raise SignatureError(f"Stage {self.name} has no previous stage")
        return hashsum([prev.signature(), *self.commands])

    def image(self) -> StageImage:
        image = super().image()
        image.add_commands(self.commands)
        return image
