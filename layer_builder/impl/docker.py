from __future__ import annotations

import logging
import uuid

from layer_builder.foundation.errors import ShellCommandError
from layer_builder.foundation.shell import run_command
from layer_builder.framework.image import StageImage


class DockerRuntime:
    """Container runtime backed by the docker CLI.

    `inspect` and `run_detached_sidecar` report success by exit code only; their output
    is never parsed. Build and tag failures raise `ShellCommandError`.
    """

    def __init__(self, docker_bin: str = "docker", *, logger: logging.Logger | None = None) -> None:
        self.docker_bin = docker_bin
        self.logger = logger or logging.getLogger(__name__)

    def _docker(self, *args: str, check: bool = True):
        return run_command([self.docker_bin, *args], check=check)

    def inspect(self, name: str) -> bool:
        return self._docker("inspect", name, check=False).returncode == 0

    def run_detached_sidecar(self, name: str, volume: str, image: str) -> bool:
        proc = self._docker(
            "run",
            "--restart=no",
            "--name",
            name,
            "--volume",
            volume,
            image,
            check=False,
        )
        if proc.returncode != 0:
            self.logger.debug("docker run for %s exited with %s", name, proc.returncode)
        return proc.returncode == 0

    def image_exists(self, tag: str) -> bool:
        return self._docker("image", "inspect", tag, check=False).returncode == 0

    def pull(self, image: str) -> None:
        self._docker("pull", image)

    def build(self, image: StageImage) -> str:
        if not image.has_commands():
            return image.base

        container = f"layer_builder_{uuid.uuid4().hex[:12]}"
        argv = ["run", "--name", container]
        for volume in image.volumes:
            argv.extend(["--volume", volume])
        for source in image.volumes_from:
            argv.extend(["--volumes-from", source])
        argv.extend(["--entrypoint", "/bin/sh", image.base, "-ec", image.script()])

        self.logger.debug("Running %d command(s) on %s", len(image.commands), image.base)
        try:
            self._docker(*argv)
            proc = self._docker("commit", container)
            image_id = (proc.stdout or "").strip()
            if not image_id:
                raise ShellCommandError([self.docker_bin, "commit", container], 0, "no image id")
            return image_id
        finally:
            self._docker("rm", "-f", container, check=False)

    def tag(self, image_id: str, tag: str) -> None:
        self._docker("tag", image_id, tag)
