"""Content admin operations: create, edit, update, delete and bulk delete."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from hatch.errors import RecordNotFound, ValidationError
from hatch.timefmt import format_publish_date, parse_publish_date
from list_query import ListQuerySpec, load_content


logger = logging.getLogger("hatch.content")

ALL_SENTINEL = "all"
# fields a request body may never overwrite on a stored post
_PROTECTED_FIELDS = {"id", "groupId", "authorId"}


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _same_id(left: Any, right: Any) -> bool:
    return left is not None and right is not None and str(left) == str(right)


def _as_list(value: Any) -> List[Any]:
    # a single id or "all" may arrive without the list wrapper
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _tag_names(raw: Any) -> List[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, list):
        return []
    names: List[str] = []
    for item in raw:
        name = item.get("name") if isinstance(item, dict) else item
        if isinstance(name, str) and name.strip() and name.strip() not in names:
            names.append(name.strip())
    return names


def get_tag(group: dict, name: str) -> dict:
    """Find a group tag by name, creating it on the group when missing."""
    tags = group.setdefault("tags", [])
    for tag in tags:
        if isinstance(tag, dict) and tag.get("name") == name:
            return tag
    next_id = max([t.get("id") or 0 for t in tags if isinstance(t, dict)] + [0]) + 1
    tag = {"id": next_id, "name": name, "contentCount": 0}
    tags.append(tag)
    return tag


def recalculate_tag_content_counts(groups, contents, group: dict) -> dict:
    group = groups.find(group["id"]) or group
    for tag in group.get("tags") or []:
        tag["contentCount"] = contents.count({"groupId": group["id"], "tags:tagId": tag["id"]})
    return groups.save(group)


def _load_post(contents, group: dict, record_id: Any) -> dict:
    post = contents.find(record_id)
    if not post or not _same_id(post.get("groupId"), group.get("id")):
        raise RecordNotFound("Content", record_id)
    return post


def create_content(contents, groups, group: dict, author_id: Any, data: dict | None) -> dict:
    data = dict(data or {})
    errors = []
    if not isinstance(data.get("title"), str) or not data["title"].strip():
        errors.append({"field": "title", "message": "title can't be blank"})
    if errors:
        raise ValidationError("Content is invalid", "title", errors=errors)

    names = _tag_names(data.get("tags"))
    now = _now()
    data["tags"] = [{"tagId": get_tag(group, n)["id"], "name": n, "createdAt": now, "score": 0} for n in names]
    data["tagString"] = ", ".join(names)
    data["updatedAt"] = now
    data.setdefault("createdAt", now)
    data["groupId"] = group["id"]
    data["authorId"] = author_id
    data["score"] = 0
    if names:
        groups.save(group)
    post = contents.create(data)
    recalculate_tag_content_counts(groups, contents, group)
    logger.info("content_created group=%s id=%s author=%s", group["id"], post.get("id"), author_id)
    return post


def load_for_edit(contents, group: dict, record_id: Any = None) -> dict:
    if record_id is None:
        return {}
    post = _load_post(contents, group, record_id)
    post["createdAt"] = format_publish_date(post.get("createdAt"))
    return post


def update_content(contents, groups, group: dict, data: dict | None) -> dict:
    data = dict(data or {})
    published = parse_publish_date(data.get("createdAt"))
    if published is None:
        raise ValidationError("Please enter a valid publish date", "createdAt")
    if not data.get("title") or not data.get("text"):
        raise ValidationError("Please enter a title and some text", "title")

    post = _load_post(contents, group, data.get("id"))
    existing = {t.get("name"): t for t in post.get("tags") or [] if isinstance(t, dict)}
    now = _now()
    tags: List[Dict[str, Any]] = []
    for name in _tag_names(data.get("tags")):
        tag = {"tagId": get_tag(group, name)["id"], "name": name, "createdAt": now, "score": 0}
        previous = existing.get(name)
        if previous:
            tag["createdAt"] = previous.get("createdAt", now)
            tag["score"] = previous.get("score", 0)
        tags.append(tag)
    groups.save(group)

    data["tags"] = tags
    data["tagString"] = ", ".join(t["name"] for t in tags)
    data["createdAt"] = published.strftime("%Y-%m-%dT%H:%M:%SZ")
    data["updatedAt"] = now
    for key, value in data.items():
        if key not in _PROTECTED_FIELDS:
            post[key] = value
    post = contents.save(post)
    recalculate_tag_content_counts(groups, contents, group)
    logger.info("content_updated group=%s id=%s tags=%s", group["id"], post.get("id"), len(tags))
    return post


def destroy_content(contents, groups, group: dict, record_id: Any) -> None:
    post = _load_post(contents, group, record_id)
    contents.destroy(post["id"])
    recalculate_tag_content_counts(groups, contents, group)
    logger.info("content_destroyed group=%s id=%s", group["id"], post["id"])


def destroy_all(contents, groups, group: dict, body: dict | None, listing: ListQuerySpec) -> int:
    """Delete the selected posts and return how many were actually deleted.

    ``selectedContent`` containing ``'all'`` selects every post matching the
    current filter and search, minus ``unselectedContent``. Ids that no
    longer exist are skipped.
    """
    body = body or {}
    selected = _as_list(body.get("selectedContent"))
    unselected = {str(i) for i in _as_list(body.get("unselectedContent"))}
    if ALL_SENTINEL in selected:
        page = load_content(contents, group["id"], listing, paged=False)
        selected = [row.get("id") for row in page.rows if str(row.get("id")) not in unselected]

    count = 0
    for record_id in selected:
        post = contents.find(record_id)
        if not post or not _same_id(post.get("groupId"), group.get("id")):
            continue
        if contents.destroy(post["id"]):
            count += 1
    recalculate_tag_content_counts(groups, contents, group)
    logger.info("content_bulk_destroyed group=%s requested=%s deleted=%s", group["id"], len(selected), count)
    return count
