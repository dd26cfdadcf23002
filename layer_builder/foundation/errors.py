from __future__ import annotations

from collections.abc import Sequence


class LayerBuilderError(RuntimeError):
    """Base class for build failures surfaced to the CLI."""


class SignatureError(LayerBuilderError):
    """A stage signature could not be computed (no partial signature is produced)."""


class SidecarProvisioningError(LayerBuilderError):
    """The git tooling container could not be probed or created."""


class ShellCommandError(LayerBuilderError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed (exit={returncode}): {' '.join(self.argv)}"
        if stderr:
            message += f" stderr={stderr[-2000:]!r}"
        super().__init__(message)
