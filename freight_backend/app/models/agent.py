"""
Agent database model.

The agent directory: field agents, Finance and Admin users. Every ledger
entry belongs to exactly one agent.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func
from freight_backend.app.db.session import Base
from freight_backend.app.models.enums import AgentRole


class Agent(Base):
    """
    Agent model.

    Authentication lives upstream; this table only answers "who is this
    id, what role do they hold, which branch are they in".
    """
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    phone = Column(String(20), nullable=True)
    role = Column(Enum(AgentRole), default=AgentRole.AGENT, nullable=False)
    branch = Column(String(100), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<Agent(id={self.id}, name='{self.name}', role='{self.role.value}')>"
