"""Long-lived helper container supplying git tooling to build containers.

The container is named after its image reference so every build on a host
finds and reuses the same one. Nothing guards the probe-then-create sequence
across processes; a create that loses the race to another build is detected by
probing again and is reported as ``already_exists``.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Literal, Protocol

from layer_builder.foundation.errors import SidecarProvisioningError
from layer_builder.foundation.logging_utils import timed_step

AcquireOutcome = Literal["reused", "created", "already_exists"]

_NAME_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_.-]")


class SidecarRuntime(Protocol):
    def inspect(self, name: str) -> bool:
        ...

    def run_detached_sidecar(self, name: str, volume: str, image: str) -> bool:
        ...


def sidecar_container_name(image_ref: str) -> str:
    if not isinstance(image_ref, str) or not image_ref.strip():
        raise ValueError("image_ref must be a non-empty string")
    return _NAME_UNSAFE_RE.sub("_", image_ref.strip())


@dataclass(frozen=True)
class SidecarHandle:
    name: str
    volume: str
    outcome: AcquireOutcome

    @property
    def bin_path(self) -> str:
        return posixpath.join(self.volume, "bin")

    def path_export_command(self) -> str:
        return f"export PATH={self.bin_path}:$PATH"


class SidecarTooling:
    def __init__(
        self,
        runtime: SidecarRuntime,
        *,
        image: str,
        volume: str,
        logger: logging.Logger | None = None,
    ) -> None:
        self.runtime = runtime
        self.image = image
        self.volume = volume
        self.name = sidecar_container_name(image)
        self.logger = logger or logging.getLogger(__name__)
        self.handle: SidecarHandle | None = None

    def acquire(self) -> SidecarHandle:
        """Probe for the container and create it when absent."""

        try:
            if self.runtime.inspect(self.name):
                self.logger.debug("Git tooling container %s already running", self.name)
                return SidecarHandle(self.name, self.volume, "reused")

            with timed_step(self.logger, f"Loading git tooling ({self.image})"):
                if self.runtime.run_detached_sidecar(self.name, self.volume, self.image):
                    return SidecarHandle(self.name, self.volume, "created")
                if self.runtime.inspect(self.name):
                    self.logger.info(
                        "Git tooling container %s was created concurrently; reusing it", self.name
                    )
                    return SidecarHandle(self.name, self.volume, "already_exists")
                raise SidecarProvisioningError(
                    f"Failed to create git tooling container {self.name} from {self.image}"
                )
        except SidecarProvisioningError:
            raise
        except Exception as exc:
            raise SidecarProvisioningError(
                f"Failed to provision git tooling container {self.name}: {exc}"
            ) from exc

    def ensure(self) -> SidecarHandle:
        """Return the memoized handle, acquiring it on first use."""
        if self.handle is None:
            self.handle = self.acquire()
        return self.handle
