"""Centralized RBAC policy for ticket lifecycle mutations."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from typing import Any

from helpdesk.models.enums import UserRole


class PermissionVerdict(str, enum.Enum):
    allow = "allow"
    require_note = "require_note"
    deny = "deny"


# (role, is_owner_assignee, is_reassign_attempt) -> verdict
_DECISIONS: dict[tuple[UserRole, bool, bool], PermissionVerdict] = {
    (UserRole.customer, False, False): PermissionVerdict.deny,
    (UserRole.customer, False, True): PermissionVerdict.deny,
    (UserRole.customer, True, False): PermissionVerdict.deny,
    (UserRole.customer, True, True): PermissionVerdict.deny,
    (UserRole.agent, False, False): PermissionVerdict.deny,
    (UserRole.agent, False, True): PermissionVerdict.deny,
    (UserRole.agent, True, False): PermissionVerdict.allow,
    (UserRole.agent, True, True): PermissionVerdict.require_note,
    (UserRole.admin, False, False): PermissionVerdict.allow,
    (UserRole.admin, False, True): PermissionVerdict.allow,
    (UserRole.admin, True, False): PermissionVerdict.allow,
    (UserRole.admin, True, True): PermissionVerdict.allow,
}

STAFF_ROLES = {UserRole.admin, UserRole.agent}


def decide(role: UserRole, is_owner_assignee: bool, is_reassign_attempt: bool) -> PermissionVerdict:
    return _DECISIONS.get((role, bool(is_owner_assignee), bool(is_reassign_attempt)), PermissionVerdict.deny)


def is_admin(user: Any) -> bool:
    return user.role == UserRole.admin


def is_staff(user: Any) -> bool:
    return user.role in STAFF_ROLES


def is_assignee(user: Any, ticket: Any) -> bool:
    return ticket.assigned_to is not None and str(ticket.assigned_to) == str(user.id)


def is_creator(user: Any, ticket: Any) -> bool:
    return str(ticket.created_by) == str(user.id)


def can_change_status(user: Any, ticket: Any) -> PermissionVerdict:
    return decide(user.role, is_assignee(user, ticket), False)


def can_assign(user: Any, ticket: Any) -> PermissionVerdict:
    return decide(user.role, is_assignee(user, ticket), True)


def can_view_ticket(user: Any, ticket: Any) -> bool:
    if is_staff(user):
        return True
    return is_creator(user, ticket)


def can_comment_ticket(user: Any, ticket: Any) -> bool:
    return can_view_ticket(user, ticket)


def filter_tickets_for_user(user: Any, tickets: Iterable[Any]) -> list[Any]:
    if is_staff(user):
        return list(tickets)
    return [ticket for ticket in tickets if can_view_ticket(user, ticket)]
