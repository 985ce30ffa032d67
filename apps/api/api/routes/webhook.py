from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from starlette.requests import ClientDisconnect

from api.auth import SIGNATURE_HEADER, SignatureMismatch, verify_signature
from api.runtime import DeploydRuntime, get_runtime
from api.schemas.push_event import decode_push_event
from services.deployd.status_store import StatusStoreUnavailable
from services.deployd.types import FAILED

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])


@router.get("/", response_class=PlainTextResponse)
def last_deployment(
    runtime: DeploydRuntime = Depends(get_runtime),
) -> PlainTextResponse:
    """
    Summary of the last deployment.

    Only a failed deployment is reported as an error; "not started" and
    "started" both answer with the success text.
    """
    try:
        status = runtime.store.get()
    except StatusStoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    if status.state == FAILED:
        return PlainTextResponse("Last deployment failed", status_code=500)
    return PlainTextResponse("Last deployment succeeded")


@router.post("/", response_class=PlainTextResponse)
async def trigger_deployment(
    request: Request,
    runtime: DeploydRuntime = Depends(get_runtime),
) -> PlainTextResponse:
    """
    GitHub webhook delivery.

    Flow:
      - verify X-Hub-Signature against the raw body
      - if a branch is configured, ignore pushes to other refs
      - claim the deployment slot without waiting; 409 when it is taken
    """
    try:
        payload = await request.body()
    except ClientDisconnect:
        LOGGER.warning("Client disconnected before the body was read")
        return PlainTextResponse(
            "Failed to read the request body", status_code=500
        )

    signature = request.headers.get(SIGNATURE_HEADER, "")
    try:
        verify_signature(payload, signature, runtime.config.secret)
    except SignatureMismatch as exc:
        LOGGER.warning(
            "Invalid signature (expected %s, got %s)", exc.expected, exc.actual
        )
        return PlainTextResponse(f"Invalid signature: {exc}", status_code=400)

    if runtime.config.branch:
        try:
            event = decode_push_event(payload)
        except ValidationError as exc:
            LOGGER.info("Failed to decode body: %s", exc)
            return PlainTextResponse("Failed to decode body", status_code=400)
        if event.branch_ref != runtime.config.branch_ref:
            LOGGER.debug("Ignoring push to %r", event.branch_ref)
            return PlainTextResponse(
                "Not-configured branch detected. No operation required."
            )

    if not runtime.slot.offer():
        return PlainTextResponse("Deployment already in progress", status_code=409)

    LOGGER.info("Deployment scheduled")
    return PlainTextResponse("Deployment started")
