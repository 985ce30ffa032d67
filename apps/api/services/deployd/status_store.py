from __future__ import annotations

import logging
import queue
import threading
from pathlib import Path
from typing import Optional, Union

from .persistence import load_status, save_status
from .types import DeploymentState, DeploymentStatus, GetStatus, SaveStatus

LOGGER = logging.getLogger(__name__)

StatusCommand = Union[SaveStatus, GetStatus]


class StatusStoreUnavailable(RuntimeError):
    pass


class StatusStore:
    """
    Single owner of the last deployment outcome.

    Every read and write goes through the command queue and is handled by
    the store thread, so a get issued after a save always observes it.
    Each save is persisted before the next command is handled.
    """

    def __init__(
        self,
        status_file: Path,
        initial: Optional[DeploymentStatus] = None,
        *,
        idle_tick: float = 1.0,
        reply_timeout: float = 5.0,
    ) -> None:
        self._status_file = Path(status_file)
        self._last = initial or DeploymentStatus.initial()
        self._commands: "queue.Queue[StatusCommand]" = queue.Queue()
        self._idle_tick = idle_tick
        self._reply_timeout = reply_timeout

    @classmethod
    def from_file(cls, status_file: Path, **kwargs) -> "StatusStore":
        """
        Raises StatusFileError when an existing file cannot be decoded.
        """
        previous = load_status(Path(status_file))
        if previous is not None:
            LOGGER.info(
                "Loaded previous deployment status %r from %s",
                previous.state,
                status_file,
            )
        return cls(status_file, previous, **kwargs)

    def save(self, state: DeploymentState, output: str) -> None:
        self._commands.put(SaveStatus(DeploymentStatus(state=state, output=output)))

    def get(self, timeout: Optional[float] = None) -> DeploymentStatus:
        reply: "queue.Queue[DeploymentStatus]" = queue.Queue(maxsize=1)
        self._commands.put(GetStatus(reply=reply))
        try:
            return reply.get(
                timeout=self._reply_timeout if timeout is None else timeout
            )
        except queue.Empty:
            raise StatusStoreUnavailable("status store did not answer") from None

    def start(self, stop: threading.Event) -> threading.Thread:
        t = threading.Thread(
            target=self.run, args=(stop,), name="status-store", daemon=True
        )
        t.start()
        return t

    def run(self, stop: threading.Event) -> None:
        LOGGER.debug("Starting status store (%s)", self._status_file)
        try:
            while not stop.is_set():
                try:
                    cmd = self._commands.get(timeout=self._idle_tick)
                except queue.Empty:
                    continue
                self._handle(cmd)
            self._drain()
        finally:
            LOGGER.info("Stopping status store")

    def _drain(self) -> None:
        while True:
            try:
                cmd = self._commands.get_nowait()
            except queue.Empty:
                return
            self._handle(cmd)

    def _handle(self, cmd: StatusCommand) -> None:
        if isinstance(cmd, SaveStatus):
            self._last = cmd.status
            try:
                save_status(self._status_file, cmd.status)
            except OSError as exc:
                # Memory stays authoritative until the next restart.
                LOGGER.error("Failed to write to status file: %s", exc)
        elif isinstance(cmd, GetStatus):
            cmd.reply.put(self._last)
        else:
            LOGGER.warning("Ignoring unknown status command: %r", cmd)
