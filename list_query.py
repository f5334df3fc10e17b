"""Grid list queries: tenant-scoped filter, sort and paging over a record store."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping


_logger = logging.getLogger("hatch.content")

IMPORTED_SENTINEL = "imported"
DEFAULT_ORDER = "createdAt DESC"
# Positional mapping of grid columns. Sorting breaks silently if the admin
# grid adds or removes a column without updating this list.
SORT_COLUMNS = ("", "title", "tagString", "createdAt", "score", "")

_PLACEHOLDER_VALUES = {"undefined", "null"}
_TAG_ID_RE = re.compile(r"^[+-]?[0-9]+$")


@dataclass(frozen=True)
class NoFilter:
    pass


@dataclass(frozen=True)
class ImportedFilter:
    pass


@dataclass(frozen=True)
class TagFilter:
    id: int


@dataclass(frozen=True)
class TypeFilter:
    name: str


ContentFilter = NoFilter | ImportedFilter | TagFilter | TypeFilter


@dataclass(frozen=True)
class ListQuerySpec:
    filter: ContentFilter = NoFilter()
    search_text: str | None = None
    sort_column: str | None = None
    sort_direction: str = "DESC"
    offset: int = 0
    limit: int = 0

    @property
    def order(self) -> str:
        if not self.sort_column:
            return DEFAULT_ORDER
        return f"{self.sort_column} {self.sort_direction}"


@dataclass
class ListPage:
    rows: List[dict] = field(default_factory=list)
    total: int = 0
    count_before_limit: int | None = None


def _is_placeholder(value: str) -> bool:
    # stringified JS values that leak in when the grid sends a missing filter
    if "[native code]" in value:
        return True
    if value.startswith("function") and "{" in value:
        return True
    return value in _PLACEHOLDER_VALUES


def parse_filter(raw: Any) -> ContentFilter:
    if not isinstance(raw, str):
        return NoFilter()
    value = raw.strip()
    if not value or _is_placeholder(value):
        return NoFilter()
    if value == IMPORTED_SENTINEL:
        return ImportedFilter()
    if _TAG_ID_RE.match(value):
        return TagFilter(int(value))
    return TypeFilter(value)


def make_cond(group_id: Any, content_filter: ContentFilter) -> Dict[str, Any]:
    cond: Dict[str, Any] = {"groupId": group_id}
    if isinstance(content_filter, ImportedFilter):
        cond["imported"] = True
    elif isinstance(content_filter, TagFilter):
        cond["tags:tagId"] = content_filter.id
    elif isinstance(content_filter, TypeFilter):
        cond["type"] = content_filter.name
    return cond


def _parse_int(value: Any) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return parsed if parsed > 0 else 0


def _sort_column(index: Any) -> str | None:
    position = _parse_int(index)
    if position <= 0 or position >= len(SORT_COLUMNS):
        return None
    return SORT_COLUMNS[position] or None


def make_query(params: Mapping[str, Any], body: Mapping[str, Any] | None = None) -> ListQuerySpec:
    body = body or {}
    raw_filter = params.get("filter")
    if raw_filter is None:
        raw_filter = body.get("filter")
    search = params.get("sSearch") or body.get("search")
    direction = str(params.get("sSortDir_0") or "").strip().upper()
    return ListQuerySpec(
        filter=parse_filter(raw_filter),
        search_text=search if isinstance(search, str) and search else None,
        sort_column=_sort_column(params.get("iSortCol_0")),
        sort_direction="DESC" if direction == "DESC" else "ASC",
        offset=_parse_int(params.get("iDisplayStart")),
        limit=_parse_int(params.get("iDisplayLength")),
    )


def load_content(store, group_id: Any, listing: ListQuerySpec, paged: bool = True) -> ListPage:
    """Count matching records, then fetch one page of them.

    The count ignores paging and full-text search. ``paged=False`` fetches
    every match (bulk operations over the current filter).
    """
    where = make_cond(group_id, listing.filter)
    total = store.count(where)
    query: Dict[str, Any] = {
        "where": where,
        "order": listing.order,
        "offset": listing.offset if paged else 0,
        "limit": listing.limit if paged else 0,
    }
    if listing.search_text:
        query["fulltext"] = listing.search_text
    rows, count_before_limit = store.all(**query)
    _logger.info(
        "content_list group=%s where=%s order=%s offset=%s limit=%s total=%s rows=%s",
        group_id,
        where,
        query["order"],
        query["offset"],
        query["limit"],
        total,
        len(rows),
    )
    return ListPage(rows=list(rows), total=total, count_before_limit=count_before_limit)


def paging_envelope(page: ListPage, echo: Any = None) -> dict:
    return {
        "sEcho": echo or 1,
        "iTotalRecords": page.total,
        "iTotalDisplayRecords": page.count_before_limit or 0,
        "aaData": page.rows,
    }
