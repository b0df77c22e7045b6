"""
Agent directory lookups.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.core.exceptions import NotFoundError
from freight_backend.app.models.agent import Agent
from freight_backend.app.models.enums import AgentRole


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an engine operation."""
    id: int
    role: AgentRole
    name: str = ""
    branch: Optional[str] = None

    @property
    def is_back_office(self) -> bool:
        return self.role.is_back_office

    @classmethod
    def from_agent(cls, agent: Agent) -> "Actor":
        return cls(id=agent.id, role=agent.role, name=agent.name, branch=agent.branch)


class AgentDirectory:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_agent(self, agent_id: int) -> Optional[Agent]:
        if agent_id is None:
            return None
        result = await self.db.execute(select(Agent).where(Agent.id == agent_id))
        return result.scalar_one_or_none()

    async def require(self, agent_id: int) -> Agent:
        agent = await self.find_agent(agent_id)
        if agent is None or not agent.is_active:
            raise NotFoundError("Agent", agent_id)
        return agent
