"""
Chat persistence.

The only writer of a session's durable projection. Creating a chat and
saving a turn are each one transaction: either every row lands or none do.
"""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..advisor.fields import FIELDS
from ..advisor.modes import Mode
from ..advisor.narration import conversation_stage, current_priority
from ..advisor.session import AdvisorSession, Sender
from ..core.errors import AdvisorError, NotFoundError, TransactionError, ValidationError
from ..models.analysis import Analysis
from ..models.base import utcnow
from ..models.chat import DEFAULT_CHAT_TITLE, STATUS_ACTIVE, STATUS_INACTIVE, Chat
from ..models.message import Message
from ..models.scenario import DEFAULT_SCENARIO_NAME, MortgageScenario
from ..models.user import User

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255


# ── Lookups ──────────────────────────────────────────────────────────

async def get_chat(db: AsyncSession, chat_id: str, user_id: int) -> Optional[Chat]:
    """Active chat by external id, scoped to its owner."""
    result = await db.execute(
        select(Chat).where(
            Chat.chat_id == chat_id,
            Chat.user_id == user_id,
            Chat.overall_status == STATUS_ACTIVE,
        )
    )
    return result.scalar_one_or_none()


async def get_chat_by_numerical_id(
    db: AsyncSession, numerical_id: int, user_id: int
) -> Optional[Chat]:
    result = await db.execute(
        select(Chat).where(
            Chat.numerical_id == numerical_id,
            Chat.user_id == user_id,
            Chat.overall_status == STATUS_ACTIVE,
        )
    )
    return result.scalar_one_or_none()


async def list_user_chats(db: AsyncSession, user_id: int) -> list[Chat]:
    """Active chats, most recently viewed first."""
    result = await db.execute(
        select(Chat)
        .where(Chat.user_id == user_id, Chat.overall_status == STATUS_ACTIVE)
        .order_by(Chat.latest_view_time.desc(), Chat.updated_at.desc(), Chat.id.desc())
    )
    return list(result.scalars().all())


async def get_latest_chat(db: AsyncSession, user_id: int) -> Optional[Chat]:
    chats = await list_user_chats(db, user_id)
    return chats[0] if chats else None


# ── Create ───────────────────────────────────────────────────────────

async def _ensure_user(db: AsyncSession, user_id: int) -> None:
    if await db.get(User, user_id) is None:
        db.add(User(id=user_id))
        await db.flush()


async def create_chat_with_scenario(
    db: AsyncSession,
    user_id: int,
    title: Optional[str] = None,
) -> tuple[str, int]:
    """
    Allocate the user's next chat number and insert a scenario plus the chat that owns it.
    Returns (chat_id, numerical_id). Any failure rolls back and raises TransactionError.
    """
    title = (title or "").strip()[:MAX_TITLE_LENGTH] or None

    try:
        await _ensure_user(db, user_id)

        result = await db.execute(
            select(func.coalesce(func.max(Chat.numerical_id), 0)).where(Chat.user_id == user_id)
        )
        numerical_id = result.scalar_one() + 1

        scenario = MortgageScenario(
            user_id=user_id,
            name=title or DEFAULT_SCENARIO_NAME,
            advisor_mode=Mode.DATA_GATHERING.value,
            conversation_stage=conversation_stage({}),
            current_priority=current_priority({}),
        )
        db.add(scenario)
        await db.flush()

        chat = Chat(
            user_id=user_id,
            numerical_id=numerical_id,
            title=title or DEFAULT_CHAT_TITLE,
            scenario_id=scenario.id,
            latest_view_time=utcnow(),
        )
        db.add(chat)
        await db.flush()

        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("Create chat failed for user=%s, rolled back: %s", user_id, e)
        raise TransactionError("Could not create chat") from e

    logger.info("Created chat %s (user=%s, #%d)", chat.chat_id, user_id, numerical_id)
    return chat.chat_id, numerical_id


# ── Save turn ────────────────────────────────────────────────────────

def _write_snapshot(scenario: MortgageScenario, session: AdvisorSession) -> None:
    """Overwrite every field column. Absent fields become NULL."""
    for name in FIELDS:
        setattr(scenario, name, session.fields.get(name))
    scenario.advisor_mode = session.mode.value
    scenario.conversation_stage = conversation_stage(session.fields, session.last_analysis)
    scenario.current_priority = current_priority(session.fields, session.last_analysis)


async def _add_message(
    db: AsyncSession,
    chat: Chat,
    sender: Sender,
    body: str,
    llm_request_id: Optional[int] = None,
    llm_response_id: Optional[int] = None,
) -> Message:
    msg = Message(
        chat_id=chat.id,
        user_id=chat.user_id,
        sender=sender,
        body=body,
        llm_request_id=llm_request_id,
        llm_response_id=llm_response_id,
    )
    db.add(msg)
    await db.flush()
    return msg


async def save_turn(
    db: AsyncSession,
    chat_id: str,
    session: AdvisorSession,
    user_text: Optional[str] = None,
    assistant_text: Optional[str] = None,
    llm_request_id: Optional[int] = None,
    llm_response_id: Optional[int] = None,
    is_analysis: bool = False,
    prompt_text: Optional[str] = None,
) -> None:
    """
    Persist one turn atomically:
      1. bump the chat's last-viewed time
      2. overwrite the scenario snapshot (fields, mode, stage, priority)
      3. append the user and/or advisor messages
      4. record an analyses row when the advisor turn was an analysis

    Messages are appended on every call; the snapshot overwrite is idempotent.
    """
    try:
        chat = await get_chat(db, chat_id, session.user_id)
        if chat is None:
            raise NotFoundError(f"Chat {chat_id} not found")

        chat.latest_view_time = utcnow()

        scenario = None
        if chat.scenario_id is not None:
            scenario = await db.get(MortgageScenario, chat.scenario_id)
        if scenario is None:
            scenario = MortgageScenario(user_id=chat.user_id, name=chat.title or DEFAULT_SCENARIO_NAME)
            db.add(scenario)
            await db.flush()
            chat.scenario_id = scenario.id
        _write_snapshot(scenario, session)

        if user_text:
            await _add_message(db, chat, Sender.USER, user_text)
        if assistant_text:
            await _add_message(
                db, chat, Sender.ADVISOR, assistant_text,
                llm_request_id=llm_request_id,
                llm_response_id=llm_response_id,
            )
            if is_analysis:
                db.add(Analysis(
                    chat_id=chat.id,
                    scenario_id=scenario.id,
                    prompt_sent=prompt_text,
                    llm_response=assistant_text,
                ))
                await db.flush()

        await db.commit()
    except AdvisorError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error("Save turn failed for chat=%s, rolled back: %s", chat_id, e)
        raise TransactionError("Could not save turn") from e

    logger.info(
        "Saved turn for chat %s (mode=%s, score=%d)",
        chat_id, session.mode.value, session.completeness_score,
    )


# ── Manage ───────────────────────────────────────────────────────────

async def soft_delete_chat(db: AsyncSession, chat_id: str, user_id: int) -> bool:
    """Mark an owned active chat inactive. Returns whether a row changed."""
    try:
        result = await db.execute(
            update(Chat)
            .where(
                Chat.chat_id == chat_id,
                Chat.user_id == user_id,
                Chat.overall_status == STATUS_ACTIVE,
            )
            .values(overall_status=STATUS_INACTIVE)
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("Soft delete failed for chat=%s: %s", chat_id, e)
        raise TransactionError("Could not delete chat") from e

    deleted = result.rowcount > 0
    if deleted:
        logger.info("Soft-deleted chat %s (user=%s)", chat_id, user_id)
    return deleted


async def rename_chat(db: AsyncSession, numerical_id: int, user_id: int, title: str) -> Chat:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title must not be empty")

    chat = await get_chat_by_numerical_id(db, numerical_id, user_id)
    if chat is None:
        raise NotFoundError(f"Chat #{numerical_id} not found")

    chat.title = title[:MAX_TITLE_LENGTH]
    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("Rename failed for chat #%s: %s", numerical_id, e)
        raise TransactionError("Could not rename chat") from e
    return chat


async def discard_chat(db: AsyncSession, chat_id: str, user_id: int) -> None:
    """
    Remove a chat that never got its first turn saved, with its scenario,
    so a retried first message reuses the same numerical id.
    """
    try:
        chat = await get_chat(db, chat_id, user_id)
        if chat is None:
            return
        scenario_id = chat.scenario_id
        await db.delete(chat)
        await db.flush()
        if scenario_id is not None:
            scenario = await db.get(MortgageScenario, scenario_id)
            if scenario is not None:
                await db.delete(scenario)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("Discard of unsaved chat %s failed: %s", chat_id, e)
        raise TransactionError("Could not discard chat") from e
    logger.info("Discarded unsaved chat %s (user=%s)", chat_id, user_id)
