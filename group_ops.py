"""Group cloning for the new-group widget."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any

from hatch.errors import ValidationError


logger = logging.getLogger("hatch.groups")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _rebase_url(url: Any, old_base: str, new_base: str) -> Any:
    if isinstance(url, str) and old_base and url.startswith(old_base):
        return new_base + url[len(old_base):]
    return url


def clone_group(groups, users, group: dict, user: dict, body: dict | None) -> dict:
    """Copy ``group`` under a new url and make ``user`` its owner."""
    body = body or {}
    url = body.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("Please enter a URL for the new group", "url")
    url = url.strip().strip("/")
    if groups.count({"url": url}):
        raise ValidationError(f'The URL "{url}" is already in use', "url")

    clone = copy.deepcopy(group)
    clone.pop("id", None)
    old_base = group.get("url") or ""
    clone["name"] = body.get("name") or group.get("name")
    clone["url"] = url
    clone["homepage"] = {"url": url}
    clone["pages"] = [
        {**page, "url": _rebase_url(page.get("url"), old_base, url)}
        for page in group.get("pages") or []
        if isinstance(page, dict)
    ]
    for tag in clone.get("tags") or []:
        tag["contentCount"] = 0
    clone["createdAt"] = _now()
    created = groups.create(clone)

    user.setdefault("membership", []).append(
        {
            "groupId": created["id"],
            "role": "owner",
            "joinedAt": _now(),
            "state": "approved",
        }
    )
    users.save(user)
    logger.info("group_cloned source=%s clone=%s url=%s owner=%s", group.get("id"), created["id"], url, user.get("id"))
    return created
