from __future__ import annotations

import queue
from dataclasses import dataclass
from typing import Literal

DeploymentState = Literal[
    "not started",
    "started",
    "ok",
    "failed",
]

NOT_STARTED: DeploymentState = "not started"
STARTED: DeploymentState = "started"
SUCCEEDED: DeploymentState = "ok"
FAILED: DeploymentState = "failed"

STATES = (NOT_STARTED, STARTED, SUCCEEDED, FAILED)


@dataclass(frozen=True)
class DeploymentStatus:
    state: DeploymentState
    output: str = ""

    @classmethod
    def initial(cls) -> "DeploymentStatus":
        return cls(state=NOT_STARTED, output="not started")


@dataclass(frozen=True)
class SaveStatus:
    status: DeploymentStatus


@dataclass(frozen=True)
class GetStatus:
    reply: "queue.Queue[DeploymentStatus]"
