from __future__ import annotations

from pathlib import Path
from typing import Optional

from .types import STATES, DeploymentStatus
from .util import atomic_write_text

SEPARATOR = "\n"


class StatusFileError(RuntimeError):
    pass


def encode_status(status: DeploymentStatus) -> str:
    return f"{status.state}{SEPARATOR}{status.output}"


def decode_status(raw: str) -> DeploymentStatus:
    """
    Parse a persisted status record.

    Format:
      line 1: state label
      rest:   captured output, verbatim (may contain newlines)
    """
    state, sep, output = raw.partition(SEPARATOR)
    if not sep:
        raise StatusFileError("status record has no separator")
    if state not in STATES:
        raise StatusFileError(f"unknown deployment state: {state!r}")
    return DeploymentStatus(state=state, output=output)  # type: ignore[arg-type]


def load_status(path: Path) -> Optional[DeploymentStatus]:
    """
    Absent file -> None. Anything else that prevents decoding is an error.
    """
    try:
        raw = path.read_bytes().decode("utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        raise StatusFileError(f"failed to read status file {path}: {exc}") from exc

    try:
        return decode_status(raw)
    except StatusFileError as exc:
        raise StatusFileError(f"invalid status file {path}: {exc}") from None


def save_status(path: Path, status: DeploymentStatus) -> None:
    atomic_write_text(path, encode_status(status))
