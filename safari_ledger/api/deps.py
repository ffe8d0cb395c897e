"""API dependencies for authentication and common operations."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.core.exceptions import AuthenticationError, AuthorizationError
from safari_ledger.core.security import verify_token
from safari_ledger.database import get_db
from safari_ledger.models.agent import Agent
from safari_ledger.models.user import User, UserRole

# Security scheme
security = HTTPBearer(auto_error=False)

__all__ = ["get_current_admin", "get_current_agent", "get_current_user", "get_db", "get_optional_user"]


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = verify_token(credentials.credentials, token_type="access")
    user_id = payload.get("sub")
    try:
        user_uuid = UUID(str(user_id))
    except ValueError:
        raise AuthenticationError("Invalid token payload")

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user


async def get_current_agent(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Agent:
    """Get the agent profile of the current user."""
    if current_user.role not in (UserRole.AGENT, UserRole.ADMIN):
        raise AuthorizationError("Agent access required")

    result = await db.execute(select(Agent).where(Agent.user_id == current_user.id))
    agent = result.scalar_one_or_none()
    if not agent:
        raise AuthorizationError("Agent profile required")
    return agent


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user and verify they are an admin."""
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationError("Admin access required")
    return current_user


async def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User | None:
    """Current user when a token is sent; anonymous otherwise."""
    if credentials is None:
        return None
    return await get_current_user(credentials, db)
