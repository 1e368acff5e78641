"""
Chat API.

POST /v1/chat — one advisor turn. Omit chat_id to start a new chat.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db, get_user_id
from ..orchestrator.orchestrator import handle_turn
from ..services.document_parser import ParsedDocument

logger = logging.getLogger(__name__)

chat_router = APIRouter(tags=["chat"])


class DocumentAttachment(BaseModel):
    """Output of /v1/documents/parse, sent back with the turn it belongs to."""
    summary: str = ""
    fields: dict = {}


class ChatRequest(BaseModel):
    message: str
    chat_id: Optional[str] = None
    documents: Optional[list[DocumentAttachment]] = None


class ChatResponse(BaseModel):
    content: str
    mode: str
    completeness_score: int
    missing_fields: list[str] = []
    chat_id: str
    numerical_id: int
    is_analysis: bool = False
    fields: dict = {}


@chat_router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Send a message to the advisor."""
    documents = [
        ParsedDocument(summary=d.summary, fields=d.fields)
        for d in request.documents or []
    ]
    result = await handle_turn(
        db,
        user_id=user_id,
        text=request.message,
        chat_id=request.chat_id,
        documents=documents,
    )

    return ChatResponse(
        content=result.assistant_text,
        mode=result.mode.value,
        completeness_score=result.completeness_score,
        missing_fields=result.missing_fields,
        chat_id=result.chat_id,
        numerical_id=result.numerical_id,
        is_analysis=result.is_analysis,
        fields=result.fields,
    )
