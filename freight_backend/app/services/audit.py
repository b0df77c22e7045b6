"""
Audit logging service.

Records who changed trips, wallets and disputes. Audit is a secondary
write: it rides in a SAVEPOINT of the business transaction and never fails
the caller.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from sqlalchemy.exc import SQLAlchemyError
from freight_backend.app.core.reliability import audit_circuit_breaker, CircuitOpenError
from freight_backend.app.models.audit_log import AuditLog

logger = logging.getLogger("freight.audit")


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_UPDATED = "TRIP_UPDATED"
    TRIP_CLOSED = "TRIP_CLOSED"
    TRIP_DELETED = "TRIP_DELETED"
    PAYMENT_ADDED = "PAYMENT_ADDED"
    DEDUCTIONS_UPDATED = "DEDUCTIONS_UPDATED"
    ATTACHMENT_ADDED = "ATTACHMENT_ADDED"
    ATTACHMENT_REMOVED = "ATTACHMENT_REMOVED"

    TOP_UP = "TOP_UP"
    AGENT_TRANSFER = "AGENT_TRANSFER"
    LEDGER_ENTRY_AMENDED = "LEDGER_ENTRY_AMENDED"
    LEDGER_ENTRY_DELETED = "LEDGER_ENTRY_DELETED"

    DISPUTE_OPENED = "DISPUTE_OPENED"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_role: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Write an audit record inside a SAVEPOINT of the caller's transaction.

    The caller commits.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of the agent performing the action
        actor_role: Role of the actor at the time
        entity_type: "trip", "ledger_entry", "dispute", ...
        entity_id: ID of the entity acted upon
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata,
        ip_address=ip_address
    )

    async with db.begin_nested():
        db.add(audit_log)

    return audit_log


async def record(db: AsyncSession, action: str, actor=None, entity_type: str = None,
                 entity_id: int = None, metadata: Optional[Dict[str, Any]] = None) -> Optional[AuditLog]:
    """Best-effort audit write; failures are logged and swallowed."""
    try:
        return await audit_circuit_breaker.call(
            log_event,
            db,
            action,
            actor_id=getattr(actor, "id", None),
            actor_role=getattr(getattr(actor, "role", None), "value", None),
            entity_type=entity_type,
            entity_id=entity_id,
            metadata=metadata,
        )
    except CircuitOpenError:
        logger.warning("Audit sink circuit open, dropped %s %s:%s", action, entity_type, entity_id)
    except SQLAlchemyError as e:
        logger.error("Audit write failed for %s %s:%s: %s", action, entity_type, entity_id, e)
    return None


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)

    if entity_id:
        query = query.where(AuditLog.entity_id == entity_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
