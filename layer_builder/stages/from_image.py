from __future__ import annotations

from stagekit import hashsum

from layer_builder.framework.image import StageImage
from layer_builder.stages.base import Stage


class FromStage(Stage):
    def signature(self) -> str:
        return hashsum([self.ctx.cfg.from_image, self.ctx.cfg.from_cache_version])

    def base_image(self) -> str:
        return self.ctx.cfg.from_image

    def build(self) -> str:
        runtime = self.ctx.runtime
        if not runtime.image_exists(self.ctx.cfg.from_image):
            self.ctx.logger.info("Pulling base image %s", self.ctx.cfg.from_image)
            runtime.pull(self.ctx.cfg.from_image)
        self.built_image_id = runtime.build(StageImage(base=self.base_image()))
        return self.built_image_id
