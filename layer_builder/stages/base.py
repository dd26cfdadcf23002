from __future__ import annotations

import stagekit

from layer_builder.framework.image import StageImage
from layer_builder.framework.runtime import BuildContext


class Stage(stagekit.Stage):
    """A build stage whose layer is cached under `<project>:<signature>`."""

    def __init__(self, name: str, ctx: BuildContext) -> None:
        super().__init__(name)
        self.ctx = ctx
        self.built_image_id: str | None = None

    @property
    def image_tag(self) -> str:
        return f"{self.ctx.cfg.project_name}:{self.signature()}"

    def is_cached(self) -> bool:
        return self.ctx.runtime.image_exists(self.image_tag)

    def base_image(self) -> str:
        prev = self.prev_stage
        if not isinstance(prev, Stage):
            raise LookupError(f"Stage {self.name} has no previous image stage")
        return prev.image_tag

    def image(self) -> StageImage:
        return StageImage(base=self.base_image())

    def build(self) -> str:
        self.built_image_id = self.ctx.runtime.build(self.image())
        return self.built_image_id

    def save_in_cache(self) -> None:
        """Accept the built image into the cache by tagging it with the signature."""
        if self.built_image_id is None:
            raise RuntimeError(f"Stage {self.name} has no built image to cache")
        self.ctx.runtime.tag(self.built_image_id, self.image_tag)
