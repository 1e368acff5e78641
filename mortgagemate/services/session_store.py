"""
Session store. Per-process map OR Redis. Controlled by FF_USE_REDIS flag.

Keyed by the external chat id. Concurrent writes to the same chat are
last-writer-wins; the database, not this cache, is the source of truth.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from ..advisor.session import AdvisorSession
from ..core.config import get_settings
from ..core.flags import get_flags
from ..core.redis import get_redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "advisor:session:"


class SessionStore(ABC):
    @abstractmethod
    async def get(self, chat_id: str) -> Optional[AdvisorSession]:
        """Cached session, or None on a miss."""
        ...

    @abstractmethod
    async def put(self, session: AdvisorSession) -> None:
        ...

    @abstractmethod
    async def delete(self, chat_id: str) -> None:
        ...


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions: dict[str, AdvisorSession] = {}
        self._lock = threading.Lock()

    async def get(self, chat_id: str) -> Optional[AdvisorSession]:
        with self._lock:
            return self._sessions.get(chat_id)

    async def put(self, session: AdvisorSession) -> None:
        with self._lock:
            self._sessions[session.chat_id] = session

    async def delete(self, chat_id: str) -> None:
        with self._lock:
            self._sessions.pop(chat_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class RedisSessionStore(SessionStore):
    """JSON snapshots with a TTL. Redis errors degrade to cache misses."""

    def __init__(self, ttl_seconds: Optional[int] = None):
        self._ttl = ttl_seconds or get_settings().session_ttl_seconds

    async def get(self, chat_id: str) -> Optional[AdvisorSession]:
        try:
            client = await get_redis()
            raw = await client.get(KEY_PREFIX + chat_id)
        except Exception as e:
            logger.warning("Redis get failed (chat=%s): %s", chat_id, e)
            return None
        if raw is None:
            return None
        try:
            return AdvisorSession.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cached session %s: %s", chat_id, e)
            return None

    async def put(self, session: AdvisorSession) -> None:
        key = KEY_PREFIX + session.chat_id
        try:
            client = await get_redis()
            await client.set(key, json.dumps(session.to_dict()), ex=self._ttl)
        except Exception as e:
            logger.warning("Redis put failed (chat=%s): %s", session.chat_id, e)
            # An older snapshot must not outlive a committed turn
            await self.delete(session.chat_id)

    async def delete(self, chat_id: str) -> None:
        try:
            client = await get_redis()
            await client.delete(KEY_PREFIX + chat_id)
        except Exception as e:
            logger.warning("Redis delete failed (chat=%s): %s", chat_id, e)


_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Return the process-wide session store based on feature flags."""
    global _store
    if _store is None:
        if get_flags().use_redis:
            _store = RedisSessionStore()
        else:
            _store = InMemorySessionStore()
        logger.info("Session store: %s", type(_store).__name__)
    return _store


def reset_session_store() -> None:
    global _store
    _store = None
