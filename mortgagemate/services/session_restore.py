"""
Session reconstruction.

Rebuilds an AdvisorSession from rows alone:
  - fields and mode from the scenario snapshot (mode read back verbatim)
  - history from the chat's messages, oldest first, tagged by sender
  - last analysis from the newest analyses row, never guessed from message text
  - completeness score recomputed, so formula changes apply to old chats

Reads only, apart from a best-effort last-viewed bump.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..advisor.fields import FIELDS, normalize_number, present_fields
from ..advisor.modes import Mode
from ..advisor.scoring import ScoringStrategy, completeness_score
from ..advisor.session import AdvisorSession, history_line
from ..models.analysis import Analysis
from ..models.base import utcnow
from ..models.chat import Chat
from ..models.message import Message
from ..models.scenario import MortgageScenario
from .chat_persistence import get_chat, get_chat_by_numerical_id

logger = logging.getLogger(__name__)


def scenario_fields(scenario: Optional[MortgageScenario]) -> dict:
    """FieldSet held by a scenario row. Empty when there is no row."""
    if scenario is None:
        return {}
    fields = {}
    for name, spec in FIELDS.items():
        value = getattr(scenario, name)
        if value is None:
            continue
        fields[name] = normalize_number(float(value)) if spec.is_numeric else value
    return present_fields(fields)


def scenario_mode(scenario: Optional[MortgageScenario]) -> Mode:
    if scenario is None or not scenario.advisor_mode:
        return Mode.DATA_GATHERING
    try:
        return Mode(scenario.advisor_mode)
    except ValueError:
        logger.warning(
            "Scenario %s has unknown mode %r; using data_gathering",
            scenario.id, scenario.advisor_mode,
        )
        return Mode.DATA_GATHERING


async def _touch(db: AsyncSession, chat: Chat) -> None:
    """Bump last-viewed. Failure is logged, never raised."""
    try:
        await db.execute(
            update(Chat).where(Chat.id == chat.id).values(latest_view_time=utcnow())
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.warning("Failed to update last-viewed for chat %s: %s", chat.chat_id, e)


async def restore_session(
    db: AsyncSession,
    user_id: int,
    numerical_id: int,
    strategy: Optional[ScoringStrategy] = None,
) -> Optional[AdvisorSession]:
    """Rebuild the session for a user's chat number. None if the chat is unknown or inactive."""
    chat = await get_chat_by_numerical_id(db, numerical_id, user_id)
    if chat is None:
        return None

    chat_pk, chat_id, scenario_id = chat.id, chat.chat_id, chat.scenario_id
    await _touch(db, chat)

    scenario = None
    if scenario_id is not None:
        scenario = await db.get(MortgageScenario, scenario_id)
        if scenario is None:
            logger.warning("Chat %s points at missing scenario %s", chat_id, scenario_id)

    result = await db.execute(
        select(Message)
        .where(Message.chat_id == chat_pk)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    history = tuple(history_line(m.sender, m.body) for m in result.scalars().all())

    result = await db.execute(
        select(Analysis.llm_response)
        .where(Analysis.chat_id == chat_pk)
        .order_by(Analysis.created_at.desc(), Analysis.id.desc())
        .limit(1)
    )
    last_analysis = result.scalar_one_or_none()

    fields = scenario_fields(scenario)
    session = AdvisorSession(
        chat_id=chat_id,
        numerical_id=numerical_id,
        user_id=user_id,
        mode=scenario_mode(scenario),
        fields=fields,
        history=history,
        last_analysis=last_analysis,
        completeness_score=completeness_score(fields, strategy),
    )
    logger.info(
        "Restored chat %s (#%d): %d messages, mode=%s",
        chat_id, numerical_id, len(history), session.mode.value,
    )
    return session


async def restore_by_chat_id(
    db: AsyncSession,
    chat_id: str,
    user_id: int,
    strategy: Optional[ScoringStrategy] = None,
) -> Optional[AdvisorSession]:
    chat = await get_chat(db, chat_id, user_id)
    if chat is None:
        return None
    return await restore_session(db, user_id, chat.numerical_id, strategy)
