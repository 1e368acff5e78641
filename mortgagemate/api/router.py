"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter

router = APIRouter()


# ── Health (no auth) ─────────────────────────────────────────────────

@router.get("/health")
async def health():
    return {"status": "ok", "service": "mortgagemate"}


# ── V1 routes (X-User-Id required per route) ────────────────────────

from .chat import chat_router
from .chats import chats_router
from .documents import documents_router

router.include_router(chat_router, prefix="/v1")
router.include_router(chats_router, prefix="/v1")
router.include_router(documents_router, prefix="/v1")
