from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from api.runtime import DeploydRuntime, get_runtime
from api.schemas.deployment_status import DeploymentStatusOut
from services.deployd.status_store import StatusStoreUnavailable

router = APIRouter(prefix="/status", tags=["status"])


@router.get("", response_model=DeploymentStatusOut)
def get_status(
    runtime: DeploydRuntime = Depends(get_runtime),
) -> DeploymentStatusOut:
    try:
        status = runtime.store.get()
    except StatusStoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return DeploymentStatusOut(state=status.state, output=status.output)
