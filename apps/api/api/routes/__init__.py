from fastapi import APIRouter

from .status import router as status_router
from .webhook import router as webhook_router

router = APIRouter()
router.include_router(webhook_router)
router.include_router(status_router)
