"""Postgres-backed record stores (one jsonb document per record)."""

from __future__ import annotations

import copy
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

import psycopg2

from app.db import execute, fetch_all, fetch_one, get_conn
from hatch.errors import RecordNotFound, StoreError

logger = logging.getLogger("hatch.db")

SCHEMA_SQL = """
create sequence if not exists records_id_seq;
create table if not exists records (
  model text not null,
  id text not null,
  data jsonb not null,
  created_at timestamptz not null default now(),
  updated_at timestamptz not null default now(),
  primary key (model, id)
);
create index if not exists records_group_idx on records (model, (data ->> 'groupId'));
"""

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _safe_field(field: str) -> str:
    if not isinstance(field, str) or not _FIELD_RE.match(field):
        raise StoreError(f"invalid field name: {field!r}")
    return field


def _to_id(record_id: Any) -> str | None:
    if record_id is None or isinstance(record_id, (dict, list)):
        return None
    return str(record_id).strip() or None


def _where_sql(model: str, where: dict | None, fulltext: str | None) -> tuple[str, list]:
    clauses = ["model=%s"]
    params: list = [model]
    for field, expected in (where or {}).items():
        if ":" in field:
            list_field, sub = field.split(":", 1)
            clauses.append(
                "exists (select 1 from jsonb_array_elements(coalesce(data -> %s, '[]'::jsonb)) rel where rel -> %s = %s::jsonb)"
            )
            params.extend([_safe_field(list_field), _safe_field(sub), json.dumps(expected)])
        else:
            clauses.append("data -> %s = %s::jsonb")
            params.extend([_safe_field(field), json.dumps(expected)])
    if fulltext and fulltext.strip():
        clauses.append("data::text ilike %s")
        params.append(f"%{fulltext.strip()}%")
    return "where " + " and ".join(clauses), params


def _order_sql(order: str | None) -> tuple[str, list]:
    if not isinstance(order, str) or not order.strip():
        return "order by id desc", []
    parts = order.split()
    direction = "desc" if len(parts) > 1 and parts[1].upper() == "DESC" else "asc"
    return f"order by data -> %s {direction} nulls last, id {direction}", [_safe_field(parts[0])]


def ensure_schema() -> None:
    with get_conn() as conn:
        execute(conn, SCHEMA_SQL, query_name="records.ensure_schema")
    logger.info("db_schema_ready table=records")


class DbRecordStore:
    def __init__(self, model_name: str) -> None:
        self.model_name = model_name

    def _run(self, fn):
        try:
            return fn()
        except psycopg2.Error as exc:
            logger.warning("store_error model=%s error=%s", self.model_name, exc)
            raise StoreError(str(exc).strip() or exc.__class__.__name__) from exc

    def _count(self, where: dict | None, fulltext: str | None = None) -> int:
        where_sql, params = _where_sql(self.model_name, where, fulltext)

        def run() -> int:
            with get_conn() as conn:
                row = fetch_one(conn, f"select count(*)::int as n from records {where_sql}", params, query_name="records.count")
            return int((row or {}).get("n") or 0)

        return self._run(run)

    def count(self, where: dict | None = None) -> int:
        return self._count(where)

    def all(
        self,
        where: dict | None = None,
        order: str | None = None,
        offset: int = 0,
        limit: int = 0,
        fulltext: str | None = None,
    ) -> tuple[list[dict], int | None]:
        where_sql, params = _where_sql(self.model_name, where, fulltext)
        order_sql, order_params = _order_sql(order)
        sql = f"select data, (count(*) over ())::int as total_before_limit from records {where_sql} {order_sql}"
        params = params + order_params
        if limit and limit > 0:
            sql += " limit %s"
            params.append(limit)
        if offset and offset > 0:
            sql += " offset %s"
            params.append(offset)

        def run() -> list[dict]:
            with get_conn() as conn:
                return fetch_all(conn, sql, params, query_name="records.all")

        rows = self._run(run)
        if rows:
            count_before_limit = rows[0].get("total_before_limit")
        elif offset:
            count_before_limit = self._count(where, fulltext)
        else:
            count_before_limit = 0
        return [copy.deepcopy(row.get("data") or {}) for row in rows], count_before_limit

    def find(self, record_id: Any) -> dict | None:
        rid = _to_id(record_id)
        if rid is None:
            return None

        def run():
            with get_conn() as conn:
                return fetch_one(
                    conn,
                    "select data from records where model=%s and id=%s",
                    [self.model_name, rid],
                    query_name="records.find",
                )

        row = self._run(run)
        return copy.deepcopy(row.get("data")) if row else None

    def create(self, data: dict) -> dict:
        if not isinstance(data, dict):
            raise StoreError(f"{self.model_name} data must be an object")
        record = copy.deepcopy(data)

        def run() -> dict:
            with get_conn() as conn:
                if record.get("id") is None:
                    row = fetch_one(conn, "select nextval('records_id_seq') as id", query_name="records.next_id")
                    record["id"] = int(row["id"])
                execute(
                    conn,
                    """
                    insert into records (model, id, data, created_at, updated_at)
                    values (%s, %s, %s::jsonb, %s, %s)
                    """,
                    [self.model_name, str(record["id"]), json.dumps(record, default=str), _now(), _now()],
                    query_name="records.create",
                )
            return record

        return self._run(run)

    def save(self, record: dict) -> dict:
        rid = _to_id(record.get("id"))
        payload = json.dumps(record, default=str)

        def run() -> int:
            with get_conn() as conn:
                return execute(
                    conn,
                    "update records set data=%s::jsonb, updated_at=%s where model=%s and id=%s",
                    [payload, _now(), self.model_name, rid],
                    query_name="records.save",
                )

        if rid is None or not self._run(run):
            raise RecordNotFound(self.model_name, record.get("id"))
        return copy.deepcopy(record)

    def destroy(self, record_id: Any) -> bool:
        rid = _to_id(record_id)
        if rid is None:
            return False

        def run() -> int:
            with get_conn() as conn:
                return execute(
                    conn,
                    "delete from records where model=%s and id=%s",
                    [self.model_name, rid],
                    query_name="records.destroy",
                )

        return bool(self._run(run))
