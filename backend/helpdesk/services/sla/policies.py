"""Read access to SLA policies plus the delete guard."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from helpdesk.core.exceptions import NotFoundError, PolicyInUseError
from helpdesk.models.enums import PRIORITY_RANK, TicketPriority
from helpdesk.models.sla import SLAPolicy, TicketSLATracking

logger = logging.getLogger(__name__)


def list_active_policies(db: Session) -> list[SLAPolicy]:
    policies = db.execute(select(SLAPolicy).where(SLAPolicy.is_active.is_(True))).scalars().all()
    return sorted(policies, key=lambda p: PRIORITY_RANK.get(p.priority, 99))


def get_active_policy(db: Session, priority: TicketPriority) -> SLAPolicy | None:
    """Active policy for ``priority``; None means the ticket goes untracked."""
    policy = (
        db.execute(
            select(SLAPolicy)
            .where(SLAPolicy.priority == priority, SLAPolicy.is_active.is_(True))
            .order_by(SLAPolicy.updated_at.desc())
        )
        .scalars()
        .first()
    )
    if policy is None:
        logger.debug("No active SLA policy for priority %s", priority.value)
    return policy


def count_policy_references(db: Session, policy_id: UUID) -> int:
    return int(
        db.execute(
            select(func.count(TicketSLATracking.id)).where(TicketSLATracking.sla_policy_id == policy_id)
        ).scalar()
        or 0
    )


def delete_policy(db: Session, policy_id: UUID) -> None:
    """Hard delete, allowed only while no tracking row references the policy."""
    policy = db.get(SLAPolicy, policy_id)
    if policy is None:
        raise NotFoundError("sla_policy_not_found", details={"policy_id": str(policy_id)})
    references = count_policy_references(db, policy_id)
    if references:
        raise PolicyInUseError(str(policy_id), references)
    name = policy.name
    db.delete(policy)
    db.commit()
    logger.info("SLA policy deleted: %s (%s)", name, policy_id)


def deactivate_policy(db: Session, policy_id: UUID) -> SLAPolicy:
    policy = db.get(SLAPolicy, policy_id)
    if policy is None:
        raise NotFoundError("sla_policy_not_found", details={"policy_id": str(policy_id)})
    if policy.is_active:
        policy.is_active = False
        db.add(policy)
        db.commit()
        db.refresh(policy)
        logger.info("SLA policy deactivated: %s (%s)", policy.name, policy_id)
    return policy
