from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from services.deployd.config import DeploydConfig
from services.deployd.executor import TriggerSlot
from services.deployd.status_store import StatusStore


@dataclass(frozen=True)
class DeploydRuntime:
    config: DeploydConfig
    store: StatusStore
    slot: TriggerSlot


def get_runtime(request: Request) -> DeploydRuntime:
    return request.app.state.deployd
