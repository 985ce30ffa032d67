from __future__ import annotations

import logging
from typing import Optional, Sequence

from fastapi import FastAPI

from api.routes import router as api_router
from api.runtime import DeploydRuntime
from services.deployd import Supervisor
from services.deployd.config import ConfigError, load_config
from services.deployd.persistence import StatusFileError
from services.deployd.runner import ProjectFolderError

LOGGER = logging.getLogger("deployd")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


def create_app(runtime: DeploydRuntime) -> FastAPI:
    app = FastAPI(title="deployd", version="0.1.0")
    app.state.deployd = runtime

    app.include_router(api_router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        config = load_config(argv)
    except ConfigError as exc:
        configure_logging(False)
        LOGGER.critical("%s", exc)
        return 1

    configure_logging(config.verbose)

    supervisor = Supervisor(config)
    try:
        runtime = supervisor.prepare()
    except ProjectFolderError as exc:
        LOGGER.critical("The project folder appears to be invalid: %s", exc)
        return 1
    except StatusFileError as exc:
        LOGGER.critical("Failed to load status file: %s", exc)
        return 1

    return supervisor.run(create_app(runtime))


if __name__ == "__main__":
    raise SystemExit(main())
