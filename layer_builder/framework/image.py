from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass
class StageImage:
    """Everything the runtime needs to produce one stage layer.

    `base` is the image the stage starts from (the previous stage's tag, or
    the configured base image for the first stage).
    """

    base: str
    volumes: list[str] = field(default_factory=list)
    volumes_from: list[str] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)

    def add_volume(self, spec: str) -> None:
        if spec not in self.volumes:
            self.volumes.append(spec)

    def add_volumes_from(self, container: str) -> None:
        if container not in self.volumes_from:
            self.volumes_from.append(container)

    def add_commands(self, commands: Iterable[str]) -> None:
        self.commands.extend(str(cmd) for cmd in commands if str(cmd).strip())

    def unshift_commands(self, *commands: str) -> None:
        self.commands[0:0] = [str(cmd) for cmd in commands if str(cmd).strip()]

    def has_commands(self) -> bool:
        return bool(self.commands)

    def script(self) -> str:
        return " && ".join(self.commands)
