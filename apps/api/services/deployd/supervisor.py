from __future__ import annotations

import logging
import signal
import threading
from typing import Optional

import uvicorn
from fastapi import FastAPI

from api.runtime import DeploydRuntime

from .config import DeploydConfig, parse_listen_address
from .executor import JobExecutor, TriggerSlot
from .runner import check_project_folder
from .status_store import StatusStore

LOGGER = logging.getLogger(__name__)


class TransportError(RuntimeError):
    pass


class Supervisor:
    """
    Owns the actors and their shutdown.

    Lifecycle:
      prepare()  -> startup checks, load previous status (may raise)
      start()    -> status store + job executor threads
      serve()    -> HTTP server until a signal or a transport failure
      shutdown() -> stop the executor (a running build is waited for,
                    a second signal aborts), then the status store

    The store is stopped last so the executor's final status is persisted.
    """

    def __init__(
        self,
        config: DeploydConfig,
        *,
        grace_period: float = 5.0,
        idle_tick: float = 1.0,
    ) -> None:
        self.config = config
        self.stop = threading.Event()
        self.slot = TriggerSlot()
        self.store: Optional[StatusStore] = None
        self.executor: Optional[JobExecutor] = None
        self._store_stop = threading.Event()
        self._grace_period = grace_period
        self._idle_tick = idle_tick
        self._store_thread: Optional[threading.Thread] = None
        self._executor_thread: Optional[threading.Thread] = None
        self._server: Optional[uvicorn.Server] = None

    def prepare(self) -> DeploydRuntime:
        """
        Raises ProjectFolderError or StatusFileError; both are fatal.
        """
        check_project_folder(self.config.project_dir)
        self.store = StatusStore.from_file(
            self.config.status_file, idle_tick=self._idle_tick
        )
        self.executor = JobExecutor(
            self.config.project_dir,
            self.store,
            self.slot,
            command=self.config.build_command,
            idle_tick=self._idle_tick,
        )
        return DeploydRuntime(config=self.config, store=self.store, slot=self.slot)

    def start(self) -> None:
        if self.store is None or self.executor is None:
            raise RuntimeError("prepare() must be called before start()")
        self._store_thread = self.store.start(self._store_stop)
        self._executor_thread = self.executor.start(self.stop)

    def serve(self, app: FastAPI) -> None:
        host, port = parse_listen_address(self.config.listen)
        LOGGER.info("Starting HTTPD on %s", self.config.listen)
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=host,
                port=port,
                log_level="debug" if self.config.verbose else "warning",
                access_log=self.config.verbose,
                timeout_graceful_shutdown=int(self._grace_period),
            )
        )
        self._server = server

        watcher = threading.Thread(
            target=self._stop_server_on_cancel, name="httpd-watcher", daemon=True
        )
        watcher.start()

        try:
            server.run()
        except SystemExit as exc:
            # uvicorn exits the interpreter when it cannot bind.
            raise TransportError(f"failed to listen on {self.config.listen}") from exc
        except OSError as exc:
            raise TransportError(f"HTTP server failed: {exc}") from exc
        finally:
            LOGGER.info("Stopping HTTPD")

        if not server.started:
            raise TransportError(f"HTTP server did not start on {self.config.listen}")

    def shutdown(self) -> None:
        self.stop.set()
        # A second signal while waiting on the build must end the process.
        self._restore_signal_handlers()
        if self._executor_thread is not None:
            if self.slot.busy:
                LOGGER.warning(
                    "Waiting for the running deployment to finish "
                    "(interrupt again to abort)"
                )
            self._executor_thread.join()
        self._store_stop.set()
        if self._store_thread is not None:
            self._store_thread.join()

    def run(self, app: FastAPI) -> int:
        self._install_signal_handlers()
        self.start()
        try:
            self.serve(app)
        except TransportError as exc:
            LOGGER.error("An error occurred: %s", exc)
            return 1
        finally:
            self.shutdown()
        return 0

    def _stop_server_on_cancel(self) -> None:
        self.stop.wait()
        if self._server is not None:
            self._server.should_exit = True

    def _on_signal(self, signum, _frame) -> None:
        LOGGER.warning("Signal received: %s", signal.Signals(signum).name)
        self.stop.set()

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._on_signal)

    def _restore_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        signal.signal(signal.SIGINT, signal.default_int_handler)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)
