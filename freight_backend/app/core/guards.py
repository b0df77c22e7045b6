"""
Role guards for endpoints reserved to the back office.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from freight_backend.app.models.enums import AgentRole
from freight_backend.app.core.dependencies import get_actor
from freight_backend.app.services.agent_directory import Actor


def require_role(allowed_roles: List[AgentRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/reconciliation")
        async def report(actor: Actor = Depends(require_role([AgentRole.FINANCE, AgentRole.ADMIN]))):
            ...

    Raises:
        HTTPException 403 if the actor's role is not in allowed_roles
    """
    async def role_checker(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        return actor

    return role_checker


require_back_office = require_role([AgentRole.FINANCE, AgentRole.ADMIN])
