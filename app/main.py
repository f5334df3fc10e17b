"""FastAPI app for the Hatch admin panel and generic object API."""

from __future__ import annotations

import os
import re
import sys
import time
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")

from app.auth import JwtAuthMiddleware, auth_disabled
from app.db import get_db_stats, reset_db_stats
from app.permissions import Permissions
from app.stores import MemoryRecordStore
from app.stores_db import DbRecordStore, ensure_schema
from app.template_render import render_content
from action_dispatch import ActionDispatcher
from content_ops import create_content, destroy_all, destroy_content, load_for_edit, update_content
from group_ops import clone_group
from hatch.errors import (
    ActionFailed,
    ActionNotFound,
    HatchError,
    ModelNotFound,
    PermissionDenied,
    RecordNotFound,
    StoreError,
    ValidationError,
)
from hatch.helpers import ModuleNotLoaded, module_configured, module_enabled
from hatch.timefmt import from_now
from list_query import load_content, make_query, paging_envelope
from model_registry import ModelRegistry, ModelType
from object_resolver import ObjectResolver


logger = logging.getLogger("hatch")
logging.basicConfig(level=logging.INFO)

USE_DB = os.getenv("USE_DB", "").strip() == "1"
DISABLE_AUTH = auth_disabled()
AUTH_JWKS_URL = os.getenv("AUTH_JWKS_URL", "").strip()
AUTH_ISSUER = os.getenv("AUTH_ISSUER", "").strip() or None
AUTH_AUDIENCE = os.getenv("AUTH_AUDIENCE", "").strip() or None
APP_ENV = os.getenv("APP_ENV", os.getenv("ENV", "dev")).strip().lower() or "dev"
IS_DEV = APP_ENV == "dev"
REQ_SLOW_MS = float(os.getenv("HATCH_REQ_SLOW_MS", "250"))

_LOCAL_CORS_REGEX = re.compile(r"^http://(localhost|127\.0\.0\.1):\d+$")
_CORS_ORIGINS = {
    origin.strip().rstrip("/")
    for origin in os.getenv("HATCH_CORS_ORIGINS", "").split(",")
    if origin.strip()
}

# Module info for the modules loaded in this process, keyed by module name.
MODULES_INFO: dict[str, dict] = {
    "blog": {"title": "Blog", "settings": None},
    "stream": {
        "title": "Import streams",
        "settings": {"fields": {"apiKey": {"required": True}, "interval": {"required": False}}},
    },
    "analytics": {"title": "Analytics", "settings": {"fields": {"trackingId": {"required": True}}}},
}

CONTENT_TEMPLATES: dict[str, str] = {
    "default": "<article><h2>{{ post.title }}</h2><p>{{ post.text | strip_html(280) }}</p></article>",
    "text": "<article class=\"text\"><h2>{{ post.title }}</h2><p>{{ post.text | strip_html(280) }}</p></article>",
    "photo": "<figure><img src=\"{{ post.imageUrl }}\" alt=\"{{ post.title }}\"><figcaption>{{ post.title }}</figcaption></figure>",
    "summary/default": "<li>{{ post.title }} <small>{{ post.createdAt | from_now }}</small></li>",
    "summary/text": "<li>{{ post.title }} <small>{{ post.createdAt | from_now }}</small></li>",
}


if USE_DB:
    contents = DbRecordStore("Content")
    groups = DbRecordStore("Group")
    users = DbRecordStore("User")
else:
    contents = MemoryRecordStore("Content")
    groups = MemoryRecordStore("Group")
    users = MemoryRecordStore("User")


def _group_public(record: dict) -> dict:
    return {key: record.get(key) for key in ("id", "name", "url", "homepage", "tags") if key in record}


def _user_public(record: dict) -> dict:
    return {key: record.get(key) for key in ("id", "username", "avatar") if key in record}


registry = ModelRegistry(
    [
        ModelType("Content", contents),
        ModelType("Group", groups, public_view=_group_public),
        ModelType("User", users, public_view=_user_public),
    ]
)
permissions = Permissions()
dispatcher = ActionDispatcher()
resolver = ObjectResolver(registry, permissions, dispatcher)


@dispatcher.action("Content", "like")
def _content_like(record: dict, payload: dict, context: dict) -> dict:
    user_id = (context.get("actor") or {}).get("user_id")
    likes = record.setdefault("likes", [])
    if user_id not in likes:
        likes.append(user_id)
        record["score"] = (record.get("score") or 0) + 1
        contents.save(record)
    return {"score": record["score"], "likes": len(likes)}


@dispatcher.action("Content", "unlike")
def _content_unlike(record: dict, payload: dict, context: dict) -> dict:
    user_id = (context.get("actor") or {}).get("user_id")
    likes = record.setdefault("likes", [])
    if user_id not in likes:
        raise ValueError("Content is not liked")
    likes.remove(user_id)
    record["score"] = max((record.get("score") or 0) - 1, 0)
    contents.save(record)
    return {"score": record["score"], "likes": len(likes)}


@asynccontextmanager
async def lifespan(app: FastAPI):
    if USE_DB:
        ensure_schema()
    logger.info("startup use_db=%s auth=%s env=%s models=%s", USE_DB, not DISABLE_AUTH, APP_ENV, registry.names())
    yield


app = FastAPI(title="Hatch Admin", lifespan=lifespan)


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    reset_db_stats()
    start = time.perf_counter()
    response = await call_next(request)
    total_ms = (time.perf_counter() - start) * 1000
    auth_ms = getattr(request.state, "auth_ms", 0.0)
    db_stats = get_db_stats()
    route = request.scope.get("route")
    route_name = getattr(route, "name", None) or "unknown"
    logger.info(
        "%s %s %s route=%s total_ms=%.1f auth_ms=%.1f db_ms=%.1f db_q=%s",
        request.method,
        request.url.path,
        response.status_code,
        route_name,
        total_ms,
        auth_ms,
        db_stats.get("total_ms", 0.0),
        db_stats.get("queries", 0),
    )
    if total_ms >= REQ_SLOW_MS:
        logger.warning(
            "slow_request method=%s path=%s route=%s total_ms=%.1f status=%s",
            request.method,
            request.url.path,
            route_name,
            total_ms,
            response.status_code,
        )
    if IS_DEV:
        response.headers["X-Req-MS"] = f"{total_ms:.1f}"
        response.headers["X-Route"] = route_name
    return response


_ERROR_STATUS = {
    ModelNotFound: 404,
    RecordNotFound: 404,
    ActionNotFound: 404,
    PermissionDenied: 403,
    ValidationError: 400,
    ActionFailed: 400,
    StoreError: 500,
}


def _error_response(message: str, status: int = 400, **extra: Any) -> JSONResponse:
    body = {"status": "error", "message": message, **extra}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _status_for(exc: HatchError) -> int:
    for cls in type(exc).__mro__:
        if cls in _ERROR_STATUS:
            return _ERROR_STATUS[cls]
    return 400


@app.exception_handler(HatchError)
async def hatch_error_handler(request: Request, exc: HatchError):
    status = _status_for(exc)
    if status >= 500:
        logger.error("request_failed path=%s code=%s error=%s", request.url.path, exc.code, exc.message)
    else:
        logger.info("request_rejected path=%s code=%s error=%s", request.url.path, exc.code, exc.message)
    return _error_response(exc.message, status=status)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return _error_response("Unexpected server error", status=500)


def _resolve_actor(request: Request) -> dict | JSONResponse:
    user = getattr(request.state, "user", None)
    if auth_disabled() and (not user or not user.get("id")):
        return {
            "user_id": "test-user",
            "email": "test@example.com",
            "platform_role": "superadmin",
            "memberships": [],
        }
    if not user or not user.get("id"):
        return _error_response("Authenticated user required", status=401)
    record = users.find(user.get("id")) or {}
    return {
        "user_id": user.get("id"),
        "email": user.get("email") or record.get("email"),
        "platform_role": record.get("platformRole") or "standard",
        "memberships": list(record.get("membership") or []),
    }


class ActorContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in {"/health"}:
            return await call_next(request)
        actor = _resolve_actor(request)
        if isinstance(actor, JSONResponse):
            return actor
        request.state.actor = actor
        return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(_CORS_ORIGINS),
    allow_origin_regex=_LOCAL_CORS_REGEX.pattern,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ActorContextMiddleware)
if not DISABLE_AUTH:
    if not AUTH_JWKS_URL:
        raise RuntimeError("AUTH_JWKS_URL is required for auth")
    app.add_middleware(JwtAuthMiddleware, jwks_url=AUTH_JWKS_URL, issuer=AUTH_ISSUER, audience=AUTH_AUDIENCE)


async def _safe_json(request: Request) -> dict:
    try:
        body = await request.json()
    except Exception:
        return {}
    return body if isinstance(body, dict) else {}


def _actor(request: Request) -> dict | None:
    return getattr(request.state, "actor", None)


def _load_group(request: Request, group_id: str, capability: str = "edit") -> dict:
    group = groups.find(group_id)
    if not group:
        raise RecordNotFound("Group", group_id)
    if not permissions.check(group, capability, _actor(request)):
        raise PermissionDenied()
    return group


def _actor_user(actor: dict) -> dict:
    user = users.find(actor.get("user_id"))
    if user:
        return user
    return users.create({"id": actor.get("user_id"), "email": actor.get("email"), "membership": []})


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


# Generic object API


@app.get("/api/{model_name}/{record_id}")
async def api_get_object(request: Request, model_name: str, record_id: str):
    obj = resolver.resolve(model_name, record_id, _actor(request))
    return JSONResponse(jsonable_encoder(obj.get()))


@app.post("/api/{model_name}/{record_id}/{action}")
async def api_perform(request: Request, model_name: str, record_id: str, action: str):
    obj = resolver.resolve(model_name, record_id, _actor(request))
    body = await _safe_json(request)
    result = obj.perform(action, body)
    return JSONResponse(
        jsonable_encoder(
            {
                "status": "success",
                "message": f"{action} executed",
                "result": result,
                "object": obj.get(),
            }
        )
    )


# Content admin


@app.get("/groups/{group_id}/content")
async def content_index(request: Request, group_id: str):
    group = _load_group(request, group_id)
    params = dict(request.query_params)
    page = load_content(contents, group["id"], make_query(params))
    for post in page.rows:
        post["createdAt"] = from_now(post.get("createdAt"))
    return JSONResponse(jsonable_encoder(paging_envelope(page, params.get("sEcho"))))


@app.get("/groups/{group_id}/content/new")
async def content_new(request: Request, group_id: str):
    group = _load_group(request, group_id)
    return {"post": load_for_edit(contents, group)}


@app.get("/groups/{group_id}/content/{record_id}")
async def content_edit(request: Request, group_id: str, record_id: str):
    group = _load_group(request, group_id)
    return {"post": load_for_edit(contents, group, record_id)}


@app.get("/groups/{group_id}/content/{record_id}/render")
async def content_render(request: Request, group_id: str, record_id: str, view: str = ""):
    group = _load_group(request, group_id, "view")
    post = contents.find(record_id)
    if not post or str(post.get("groupId")) != str(group["id"]):
        raise RecordNotFound("Content", record_id)
    return {"html": render_content(post, CONTENT_TEMPLATES, view)}


@app.post("/groups/{group_id}/content")
async def content_create(request: Request, group_id: str):
    group = _load_group(request, group_id)
    body = await _safe_json(request)
    data = body.get("Content") if isinstance(body.get("Content"), dict) else body
    try:
        create_content(contents, groups, group, _actor(request).get("user_id"), data)
    except ValidationError as exc:
        return JSONResponse(jsonable_encoder({"code": 500, "errors": exc.errors}), status_code=400)
    return {"code": 200, "message": "Content saved"}


@app.put("/groups/{group_id}/content/{record_id}")
@app.post("/groups/{group_id}/content/update")
async def content_update(request: Request, group_id: str, record_id: str | None = None):
    group = _load_group(request, group_id)
    body = await _safe_json(request)
    if record_id is not None:
        body["id"] = record_id
    try:
        post = update_content(contents, groups, group, body)
    except ValidationError as exc:
        return _error_response(exc.message, status=400, icon="warning-sign")
    return JSONResponse(
        jsonable_encoder({"post": post, "message": "Post saved successfully", "status": "success", "icon": "ok"})
    )


@app.delete("/groups/{group_id}/content/{record_id}")
async def content_destroy(request: Request, group_id: str, record_id: str):
    group = _load_group(request, group_id, "delete")
    destroy_content(contents, groups, group, record_id)
    return "ok"


@app.post("/groups/{group_id}/content/destroy_all")
async def content_destroy_all(request: Request, group_id: str):
    group = _load_group(request, group_id, "delete")
    body = await _safe_json(request)
    count = destroy_all(contents, groups, group, body, make_query(dict(request.query_params), body))
    return {"message": f"{count} posts deleted", "status": "success", "icon": "ok"}


# Groups


@app.post("/groups/{group_id}/clone")
async def group_clone(request: Request, group_id: str):
    group = _load_group(request, group_id, "view")
    body = await _safe_json(request)
    try:
        created = clone_group(groups, users, group, _actor_user(_actor(request)), body)
    except (ValidationError, StoreError) as exc:
        return JSONResponse(
            {"code": 500, "status": "error", "icon": "warning-sign", "error": exc.message},
            status_code=400,
        )
    return {"code": 200, "redirect": "//" + created["homepage"]["url"]}


@app.get("/groups/{group_id}/modules/{module_name}")
async def group_module_status(request: Request, group_id: str, module_name: str):
    group = _load_group(request, group_id)
    enabled = bool(module_enabled(group, module_name))
    try:
        configured = module_configured(group, module_name, MODULES_INFO)
    except ModuleNotLoaded as exc:
        return _error_response(str(exc), status=404)
    return {"module": module_name, "enabled": enabled, "configured": configured}
