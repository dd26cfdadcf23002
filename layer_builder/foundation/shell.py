from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence

from layer_builder.foundation.errors import ShellCommandError

logger = logging.getLogger(__name__)


def run_command(
    argv: Sequence[str],
    *,
    check: bool = True,
    cwd: str | None = None,
    timeout_s: float | None = None,
    text: bool = True,
) -> subprocess.CompletedProcess:
    """Run an external command with captured output.

    With `check=True` a non-zero exit raises `ShellCommandError`; otherwise the
    caller inspects `returncode` itself.
    """

    cmd = [str(part) for part in argv]
    logger.debug("exec: %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=text,
            cwd=cwd,
            timeout=timeout_s,
        )
    except FileNotFoundError as exc:
        raise ShellCommandError(cmd, 127, str(exc)) from exc

    if check and proc.returncode != 0:
        stderr = proc.stderr if isinstance(proc.stderr, str) else (proc.stderr or b"").decode(
            "utf-8", errors="replace"
        )
        raise ShellCommandError(cmd, proc.returncode, stderr.strip())
    return proc
