"""
Caller identity dependencies for FastAPI.

Authentication happens at the gateway, which forwards the authenticated
caller as X-Actor-Id / X-Actor-Role headers. This module resolves that
caller against the agent directory.
"""

from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from freight_backend.app.db.session import get_db
from freight_backend.app.services.agent_directory import Actor, AgentDirectory


async def get_actor(
    x_actor_id: Optional[int] = Header(None),
    x_actor_role: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> Actor:
    """
    FastAPI dependency returning the calling agent.

    Checks:
    1. The actor id header is present
    2. The actor exists in the agent directory and is active
    3. A forwarded role, when present, matches the directory's role

    Raises:
        HTTPException: 401 if the caller is unknown, 403 if inactive or the
        forwarded role disagrees with the directory
    """
    if x_actor_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Actor-Id header",
        )

    agent = await AgentDirectory(db).find_agent(x_actor_id)
    if not agent:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown actor",
        )

    if not agent.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Actor account is inactive",
        )

    if x_actor_role and x_actor_role != agent.role.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forwarded role does not match the agent directory",
        )

    return Actor.from_agent(agent)
