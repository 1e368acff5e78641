"""
Main orchestration loop.

Validate → resolve session → merge documents → pick template → call LLM
→ apply reply → evict → save transactionally → cache.

A turn that fails before the save (LLM error, cancellation) leaves no trace.
From the save on, the cache holds the committed session or nothing, and a
miss is rebuilt from the database.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..advisor.dispatcher import TemplateKind, build_context, render_prompt
from ..advisor.fields import to_aliases
from ..advisor.modes import Mode, is_requesting_analysis
from ..advisor.narration import missing_required_fields
from ..advisor.scoring import ScoringStrategy, get_strategy, is_ready
from ..advisor.session import (
    AdvisorSession,
    apply_advisor_turn,
    apply_user_turn,
    merge_session_fields,
    new_session,
)
from ..core.config import get_settings
from ..core.errors import AdvisorError, NotFoundError, ValidationError
from ..core.guardrails import check_input, check_output
from ..services import llm
from ..services.chat_persistence import (
    create_chat_with_scenario,
    discard_chat,
    save_turn,
    soft_delete_chat,
)
from ..services.document_parser import ParsedDocument
from ..services.session_restore import restore_by_chat_id, restore_session
from ..services.session_store import get_session_store

logger = logging.getLogger(__name__)

TITLE_LENGTH = 80


@dataclass
class TurnResult:
    assistant_text: str
    mode: Mode
    completeness_score: int
    missing_fields: list[str]
    chat_id: str
    numerical_id: int
    is_analysis: bool = False
    fields: dict = field(default_factory=dict)


def _title_from(text: str) -> str:
    title = text.strip()[:TITLE_LENGTH].strip()
    if len(text.strip()) > TITLE_LENGTH:
        title += "..."
    return title


def _merge_documents(
    session: AdvisorSession,
    documents: list[ParsedDocument],
    strategy: ScoringStrategy,
) -> AdvisorSession:
    """Overlay each document's fields and append its summary to documents_summary."""
    summaries = []
    for doc in documents:
        session = merge_session_fields(session, doc.fields, strategy)
        if doc.summary:
            summaries.append(doc.summary.strip())
    if summaries:
        existing = session.fields.get("documents_summary")
        combined = "\n".join(s for s in [existing, *summaries] if s)
        session = merge_session_fields(session, {"documents_summary": combined}, strategy)
    return session


async def _load_session(
    db: AsyncSession,
    chat_id: str,
    user_id: int,
    strategy: ScoringStrategy,
) -> AdvisorSession:
    """Cache first, then the database."""
    session = await get_session_store().get(chat_id)
    if session is not None and session.user_id == user_id:
        return session

    session = await restore_by_chat_id(db, chat_id, user_id, strategy)
    if session is None:
        raise NotFoundError(f"Chat {chat_id} not found")
    return session


async def handle_turn(
    db: AsyncSession,
    user_id: int,
    text: str,
    chat_id: Optional[str] = None,
    documents: Optional[list[ParsedDocument]] = None,
) -> TurnResult:
    """
    Main entry point for one user turn.
    """
    settings = get_settings()
    strategy = get_strategy()

    # 1. Validate before touching anything
    guard = check_input(text or "", str(user_id))
    if not guard.allowed:
        raise ValidationError(guard.reason)
    text = text.strip()

    # 2. Resolve session. A new chat is only created once the LLM has answered.
    if chat_id:
        session = await _load_session(db, chat_id, user_id, strategy)
    else:
        session = new_session(chat_id="", numerical_id=0, user_id=user_id)

    # 3. Merge attached documents
    working = _merge_documents(session, documents or [], strategy)

    # 4. Classify, pick the template, build the prompt
    requested = is_requesting_analysis(text)
    kind, context = build_context(working, text, requested, strategy)
    prompt = render_prompt(kind, context)

    # 5. Call the LLM
    is_analysis = kind is TemplateKind.MORTGAGE_ANALYSIS
    if kind is TemplateKind.DATA_GATHERING:
        completion = await llm.complete(
            prompt,
            max_tokens=settings.advisor_max_tokens,
            temperature=settings.advisor_temperature,
            structured=True,
            purpose=kind.value,
            user_id=user_id,
        )
        working = merge_session_fields(working, completion.fields, strategy)

        # Escalate when the reply filled the last gaps or the user consented
        wants_analysis = requested or completion.proceed_with_analysis
        if wants_analysis and not working.has_prior_analysis and is_ready(working.fields, strategy):
            kind, context = build_context(working, text, True, strategy)
            prompt = render_prompt(kind, context)
            logger.info("Escalating to analysis for user=%s", user_id)
            completion = await llm.complete(
                prompt,
                max_tokens=settings.analysis_max_tokens,
                temperature=settings.analysis_temperature,
                purpose=kind.value,
                user_id=user_id,
            )
            is_analysis = True
    elif is_analysis:
        completion = await llm.complete(
            prompt,
            max_tokens=settings.analysis_max_tokens,
            temperature=settings.analysis_temperature,
            purpose=kind.value,
            user_id=user_id,
        )
    else:
        completion = await llm.complete(
            prompt,
            max_tokens=settings.advisor_max_tokens,
            temperature=settings.advisor_temperature,
            purpose=kind.value,
            user_id=user_id,
        )

    checked = check_output(completion.text)
    reply = checked.modified_input or completion.text

    # 6. Apply the turn to a new session value
    working = replace(working, mode=context.mode)
    working = apply_user_turn(working, text, strategy=strategy)
    working = apply_advisor_turn(working, reply, is_analysis=is_analysis)

    created = not working.chat_id
    if created:
        new_chat_id, numerical_id = await create_chat_with_scenario(db, user_id, _title_from(text))
        working = replace(working, chat_id=new_chat_id, numerical_id=numerical_id)

    # 7. Evict, save, then cache. A failed put leaves a miss, never a stale hit.
    store = get_session_store()
    await store.delete(working.chat_id)
    try:
        await save_turn(
            db,
            working.chat_id,
            working,
            user_text=text,
            assistant_text=reply,
            llm_request_id=completion.request_id,
            llm_response_id=completion.response_id,
            is_analysis=is_analysis,
            prompt_text=prompt if is_analysis else None,
        )
    except AdvisorError:
        if created:
            await discard_chat(db, working.chat_id, user_id)
        raise
    await store.put(working)

    logger.info(
        "Turn done: chat=%s mode=%s score=%d analysis=%s",
        working.chat_id, working.mode.value, working.completeness_score, is_analysis,
    )

    # 8. Respond
    return TurnResult(
        assistant_text=reply,
        mode=working.mode,
        completeness_score=working.completeness_score,
        missing_fields=missing_required_fields(working.fields),
        chat_id=working.chat_id,
        numerical_id=working.numerical_id,
        is_analysis=is_analysis,
        fields=to_aliases(working.fields),
    )


async def open_session(db: AsyncSession, user_id: int, numerical_id: int) -> AdvisorSession:
    """Restore a chat for viewing and warm the cache with it."""
    session = await restore_session(db, user_id, numerical_id, get_strategy())
    if session is None:
        raise NotFoundError(f"Chat #{numerical_id} not found")
    await get_session_store().put(session)
    return session


async def delete_chat(db: AsyncSession, chat_id: str, user_id: int) -> None:
    if not await soft_delete_chat(db, chat_id, user_id):
        raise NotFoundError(f"Chat {chat_id} not found")
    await get_session_store().delete(chat_id)
