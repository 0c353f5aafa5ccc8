from __future__ import annotations

import uuid

import pytest

from helpdesk.core.exceptions import NotFoundError, PolicyInUseError
from helpdesk.models.enums import TicketPriority, UserRole
from helpdesk.models.sla import SLAPolicy
from helpdesk.services.sla.policies import (
    count_policy_references,
    deactivate_policy,
    delete_policy,
    get_active_policy,
    list_active_policies,
)


def test_active_policies_sorted_by_priority_rank(db_session, make_policy) -> None:
    make_policy(TicketPriority.low)
    make_policy(TicketPriority.critical)
    make_policy(TicketPriority.medium)
    make_policy(TicketPriority.high, is_active=False)

    priorities = [policy.priority for policy in list_active_policies(db_session)]

    assert priorities == [TicketPriority.critical, TicketPriority.medium, TicketPriority.low]


def test_missing_policy_is_silent(db_session, make_policy) -> None:
    make_policy(TicketPriority.high, is_active=False)

    assert get_active_policy(db_session, TicketPriority.high) is None


def test_policy_in_use_cannot_be_deleted(db_session, make_user, make_policy, make_ticket) -> None:
    policy = make_policy()
    make_ticket(make_user(UserRole.customer))

    with pytest.raises(PolicyInUseError) as excinfo:
        delete_policy(db_session, policy.id)

    assert excinfo.value.status_code == 409
    assert excinfo.value.details["references"] == 1
    assert db_session.get(SLAPolicy, policy.id) is not None


def test_unused_policy_is_deleted(db_session, make_policy) -> None:
    policy = make_policy()
    policy_id = policy.id

    delete_policy(db_session, policy_id)

    assert db_session.get(SLAPolicy, policy_id) is None
    assert count_policy_references(db_session, policy_id) == 0


def test_deactivated_policy_stops_applying_but_keeps_history(db_session, make_user, make_policy, make_ticket) -> None:
    policy = make_policy()
    make_ticket(make_user(UserRole.customer))

    deactivate_policy(db_session, policy.id)

    assert get_active_policy(db_session, TicketPriority.medium) is None
    assert count_policy_references(db_session, policy.id) == 1


def test_unknown_policy_raises_not_found(db_session) -> None:
    with pytest.raises(NotFoundError):
        delete_policy(db_session, uuid.uuid4())
    with pytest.raises(NotFoundError):
        deactivate_policy(db_session, uuid.uuid4())
