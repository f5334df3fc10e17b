"""In-memory record stores for dev and tests."""

from __future__ import annotations

import copy
import itertools
import threading
from typing import Any, Dict, List

from hatch.errors import RecordNotFound, StoreError


def _key(record_id: Any) -> str:
    return str(record_id)


def _matches(record: dict, where: dict | None) -> bool:
    for field, expected in (where or {}).items():
        if ":" in field:
            # relation match: any element of a list field has sub == expected
            list_field, sub = field.split(":", 1)
            items = record.get(list_field) or []
            if not any(isinstance(item, dict) and _key(item.get(sub)) == _key(expected) for item in items):
                return False
        elif record.get(field) != expected:
            return False
    return True


def _matches_fulltext(record: dict, text: str) -> bool:
    needle = text.strip().lower()
    if not needle:
        return True
    for value in record.values():
        if isinstance(value, str) and needle in value.lower():
            return True
    return False


def _parse_order(order: str | None) -> tuple[str | None, bool]:
    if not isinstance(order, str) or not order.strip():
        return None, False
    parts = order.split()
    field = parts[0]
    descending = len(parts) > 1 and parts[1].upper() == "DESC"
    return field, descending


def _sort_key(field: str):
    def key(record: dict):
        value = record.get(field)
        if value is None:
            return (0, "")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (1, value)
        return (2, str(value).lower())

    return key


class MemoryRecordStore:
    def __init__(self, model_name: str) -> None:
        self.model_name = model_name
        self._records: Dict[str, dict] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def count(self, where: dict | None = None) -> int:
        return sum(1 for record in self._records.values() if _matches(record, where))

    def all(
        self,
        where: dict | None = None,
        order: str | None = None,
        offset: int = 0,
        limit: int = 0,
        fulltext: str | None = None,
    ) -> tuple[list[dict], int | None]:
        items: List[dict] = [r for r in self._records.values() if _matches(r, where)]
        if fulltext:
            items = [r for r in items if _matches_fulltext(r, fulltext)]
        field, descending = _parse_order(order)
        if field:
            items.sort(key=_sort_key(field), reverse=descending)
        count_before_limit = len(items)
        if offset and offset > 0:
            items = items[offset:]
        if limit and limit > 0:
            items = items[:limit]
        return [copy.deepcopy(r) for r in items], count_before_limit

    def find(self, record_id: Any) -> dict | None:
        record = self._records.get(_key(record_id))
        return copy.deepcopy(record) if record else None

    def create(self, data: dict) -> dict:
        if not isinstance(data, dict):
            raise StoreError(f"{self.model_name} data must be an object")
        record = copy.deepcopy(data)
        with self._lock:
            if record.get("id") is None:
                record["id"] = next(self._ids)
            elif _key(record["id"]) in self._records:
                raise StoreError(f"{self.model_name} {record['id']} already exists")
            self._records[_key(record["id"])] = record
        return copy.deepcopy(record)

    def save(self, record: dict) -> dict:
        key = _key(record.get("id"))
        if key not in self._records:
            raise RecordNotFound(self.model_name, record.get("id"))
        self._records[key] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def destroy(self, record_id: Any) -> bool:
        return self._records.pop(_key(record_id), None) is not None
