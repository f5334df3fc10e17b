"""Membership-based authorization for records, groups and users."""

from __future__ import annotations

import logging
from typing import Any

_logger = logging.getLogger("hatch.auth")

CAPABILITIES_BY_ROLE = {
    "owner": {"view", "act", "edit", "delete"},
    "editor": {"view", "act", "edit", "delete"},
    "member": {"view", "act"},
}
KNOWN_CAPABILITIES = {"view", "act", "edit", "delete"}


def membership_role(actor: dict | None, group_id: Any) -> str | None:
    if not isinstance(actor, dict) or group_id is None:
        return None
    for membership in actor.get("memberships") or []:
        if not isinstance(membership, dict):
            continue
        if str(membership.get("groupId")) != str(group_id):
            continue
        if membership.get("state", "approved") != "approved":
            return None
        return membership.get("role") or "member"
    return None


def is_superadmin(actor: dict | None) -> bool:
    return isinstance(actor, dict) and actor.get("platform_role") == "superadmin"


class Permissions:
    """Answers whether an actor may perform an action on a record.

    Records scoped to a group carry ``groupId``; user records carry
    ``membership``; anything else is treated as a group record.
    """

    def check(self, record: dict, action: str, actor: dict | None) -> bool:
        allowed = self._check(record, action, actor)
        if not allowed:
            _logger.info(
                "permission_denied user=%s record=%s action=%s",
                (actor or {}).get("user_id"),
                record.get("id") if isinstance(record, dict) else None,
                action,
            )
        return allowed

    def _check(self, record: dict, action: str, actor: dict | None) -> bool:
        if not isinstance(record, dict) or not isinstance(actor, dict):
            return False
        if is_superadmin(actor):
            return True
        capability = action if action in KNOWN_CAPABILITIES else "edit"
        if "groupId" in record:
            group_id = record.get("groupId")
        elif "membership" in record:
            return str(record.get("id")) == str(actor.get("user_id")) and capability != "delete"
        else:
            group_id = record.get("id")
        role = membership_role(actor, group_id)
        return capability in CAPABILITIES_BY_ROLE.get(role or "", set())
