"""
Agent roles enumeration.

Defines the role types of the people who move money in the system.
"""

import enum


class AgentRole(str, enum.Enum):
    """
    Agent role enumeration.

    Roles:
        AGENT: Field agent who executes trips and holds a cash wallet
        FINANCE: Back office; funds agents and pays on their behalf
        ADMIN: Supreme user; resolves disputes and may force-close trips
    """
    AGENT = "Agent"
    FINANCE = "Finance"
    ADMIN = "Admin"

    @property
    def is_back_office(self) -> bool:
        return self in (AgentRole.FINANCE, AgentRole.ADMIN)
