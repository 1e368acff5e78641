"""
FastAPI dependencies. Injected into route handlers.
"""

from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db as _get_db


async def get_db() -> AsyncSession:
    """Yields an async DB session per request."""
    async for session in _get_db():
        yield session


async def get_user_id(
    x_user_id: str = Header(default=""),
) -> int:
    """
    Resolve the caller from the X-User-Id header.
    Authentication happens upstream; this only checks the id is well formed.
    """
    try:
        user_id = int(x_user_id)
    except ValueError:
        user_id = 0
    if user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid X-User-Id header",
        )
    return user_id
