from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Sequence, Tuple

LOGGER = logging.getLogger(__name__)

BUILD_DESCRIPTOR = "Makefile"
DEFAULT_BUILD_COMMAND: Tuple[str, ...] = ("/usr/bin/make", "deploy")


class ProjectFolderError(RuntimeError):
    pass


def check_project_folder(folder: Path) -> Path:
    makefile = Path(folder) / BUILD_DESCRIPTOR
    if not makefile.is_file():
        raise ProjectFolderError(f"{makefile} not found")
    return makefile


def run_build(cwd: Path, command: Sequence[str]) -> Tuple[int, str]:
    """
    Run the build command to completion and return (exit_code, output).

    stdout and stderr are captured together. The child gets its own session
    so a terminal interrupt aimed at the daemon does not kill a running
    build. A command that cannot be started is reported as exit code 127
    with the launch error as output.
    """
    try:
        proc = subprocess.Popen(
            list(command),
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )
    except OSError as exc:
        LOGGER.error("Failed to start %s: %s", command[0], exc)
        return 127, str(exc)

    raw, _ = proc.communicate()
    return proc.returncode, raw.decode("utf-8", errors="replace")
