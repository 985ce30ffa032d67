from __future__ import annotations

from pydantic import BaseModel

from services.deployd.types import DeploymentState


class DeploymentStatusOut(BaseModel):
    state: DeploymentState
    output: str
