from __future__ import annotations

import logging
import queue
import threading
from pathlib import Path
from typing import Sequence

from .runner import DEFAULT_BUILD_COMMAND, run_build
from .status_store import StatusStore
from .types import FAILED, STARTED, SUCCEEDED, DeploymentStatus

LOGGER = logging.getLogger(__name__)

TRIGGER = object()


class TriggerSlot:
    """
    Single unit of deployment capacity.

    offer() never blocks: it either places the trigger token into the
    one-element queue or reports that the slot is taken. The slot stays
    taken until the executor releases it after the build has finished, so
    a second trigger is refused for as long as a deployment is pending or
    running.
    """

    def __init__(self) -> None:
        self._admission = threading.BoundedSemaphore(1)
        self._triggers: "queue.Queue[object]" = queue.Queue(maxsize=1)

    def offer(self) -> bool:
        if not self._admission.acquire(blocking=False):
            return False
        self._triggers.put_nowait(TRIGGER)
        return True

    def take(self, timeout: float) -> bool:
        try:
            self._triggers.get(timeout=timeout)
        except queue.Empty:
            return False
        return True

    def release(self) -> None:
        self._admission.release()

    @property
    def busy(self) -> bool:
        if self._admission.acquire(blocking=False):
            self._admission.release()
            return False
        return True


class JobExecutor:
    def __init__(
        self,
        project_dir: Path,
        store: StatusStore,
        slot: TriggerSlot,
        *,
        command: Sequence[str] = DEFAULT_BUILD_COMMAND,
        idle_tick: float = 1.0,
    ) -> None:
        self._project_dir = Path(project_dir)
        self._store = store
        self._slot = slot
        self._command = tuple(command)
        self._idle_tick = idle_tick

    def start(self, stop: threading.Event) -> threading.Thread:
        t = threading.Thread(
            target=self.run, args=(stop,), name="job-executor", daemon=True
        )
        t.start()
        return t

    def run(self, stop: threading.Event) -> None:
        LOGGER.info("Starting worker for %s", self._project_dir)
        try:
            while not stop.is_set():
                if not self._slot.take(timeout=self._idle_tick):
                    continue
                try:
                    self.run_once()
                finally:
                    self._slot.release()
        finally:
            LOGGER.info("Stopping worker")

    def run_once(self) -> DeploymentStatus:
        LOGGER.info("Got a job to do")
        # Readers must see "started" before the build begins.
        self._store.save(STARTED, "")

        rc, output = run_build(self._project_dir, self._command)
        if rc == 0:
            LOGGER.info("Job completed")
            status = DeploymentStatus(state=SUCCEEDED, output=output)
        else:
            LOGGER.warning("Job failed (exit code %s)", rc)
            status = DeploymentStatus(state=FAILED, output=output)

        self._store.save(status.state, status.output)
        return status
