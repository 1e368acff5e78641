"""
Chats API.

POST   /v1/chats                        — Create an empty chat
GET    /v1/chats                        — List active chats, most recently viewed first
GET    /v1/chats/latest                 — The chat to resume, if any
GET    /v1/chats/{numerical_id}         — Restore a chat with its history
PUT    /v1/chats/{numerical_id}/title   — Rename a chat
DELETE /v1/chats/{chat_id}              — Soft-delete a chat
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..advisor.fields import to_aliases
from ..advisor.narration import missing_required_fields
from ..core.dependencies import get_db, get_user_id
from ..models.chat import Chat
from ..orchestrator.orchestrator import delete_chat, open_session
from ..services.chat_persistence import (
    create_chat_with_scenario,
    get_latest_chat,
    list_user_chats,
    rename_chat,
)

logger = logging.getLogger(__name__)

chats_router = APIRouter(prefix="/chats", tags=["chats"])


class CreateChatRequest(BaseModel):
    title: Optional[str] = None


class CreateChatResponse(BaseModel):
    chat_id: str
    numerical_id: int


class ChatSummary(BaseModel):
    chat_id: str
    numerical_id: int
    title: str
    latest_view_time: Optional[str] = None
    created_at: str
    updated_at: str


class ChatDetail(BaseModel):
    chat_id: str
    numerical_id: int
    mode: str
    completeness_score: int
    missing_fields: list[str] = []
    fields: dict = {}
    history: list[str] = []
    last_analysis: Optional[str] = None


class RenameRequest(BaseModel):
    title: str


def _summary(c: Chat) -> ChatSummary:
    return ChatSummary(
        chat_id=c.chat_id,
        numerical_id=c.numerical_id,
        title=c.title,
        latest_view_time=c.latest_view_time.isoformat() if c.latest_view_time else None,
        created_at=c.created_at.isoformat() if c.created_at else "",
        updated_at=c.updated_at.isoformat() if c.updated_at else "",
    )


@chats_router.post("", response_model=CreateChatResponse, status_code=201)
async def create_chat(
    request: CreateChatRequest,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    chat_id, numerical_id = await create_chat_with_scenario(db, user_id, request.title)
    return CreateChatResponse(chat_id=chat_id, numerical_id=numerical_id)


@chats_router.get("", response_model=list[ChatSummary])
async def list_chats(
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    return [_summary(c) for c in await list_user_chats(db, user_id)]


@chats_router.get("/latest", response_model=Optional[ChatSummary])
async def latest_chat(
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    chat = await get_latest_chat(db, user_id)
    return _summary(chat) if chat else None


@chats_router.get("/{numerical_id}", response_model=ChatDetail)
async def get_chat(
    numerical_id: int,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Restore a chat from the database and return its session."""
    session = await open_session(db, user_id, numerical_id)
    return ChatDetail(
        chat_id=session.chat_id,
        numerical_id=session.numerical_id,
        mode=session.mode.value,
        completeness_score=session.completeness_score,
        missing_fields=missing_required_fields(session.fields),
        fields=to_aliases(session.fields),
        history=list(session.history),
        last_analysis=session.last_analysis,
    )


@chats_router.put("/{numerical_id}/title", response_model=ChatSummary)
async def update_title(
    numerical_id: int,
    request: RenameRequest,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    chat = await rename_chat(db, numerical_id, user_id, request.title)
    return _summary(chat)


@chats_router.delete("/{chat_id}")
async def remove_chat(
    chat_id: str,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    await delete_chat(db, chat_id, user_id)
    logger.info("Deleted chat %s for user %s", chat_id, user_id)
    return {"deleted": True}
