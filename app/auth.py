"""Bearer JWT auth middleware (JWKS-verified)."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

import httpx
from jose import jwt
from jose.exceptions import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse


_JWKS_CACHE: Dict[str, Any] = {"keys": None, "fetched_at": 0.0, "ttl": 600.0}
_PUBLIC_PATHS = {"/health"}
logger = logging.getLogger("hatch.auth")


def auth_disabled() -> bool:
    return os.getenv("HATCH_DISABLE_AUTH", "").strip().lower() in ("1", "true", "yes")


def _fetch_jwks(jwks_url: str, force: bool = False) -> dict:
    now = time.time()
    if not force and _JWKS_CACHE["keys"] and now - _JWKS_CACHE["fetched_at"] < _JWKS_CACHE["ttl"]:
        return _JWKS_CACHE["keys"]
    resp = httpx.get(jwks_url, timeout=10.0)
    resp.raise_for_status()
    data = resp.json()
    _JWKS_CACHE["keys"] = data
    _JWKS_CACHE["fetched_at"] = now
    return data


def _get_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def _find_key(jwks: dict, kid: str | None) -> dict | None:
    for jwk in jwks.get("keys", []):
        if jwk.get("kid") == kid:
            return jwk
    return None


def _verify_jwt(token: str, jwks_url: str, issuer: str | None, audience: Optional[str]) -> dict:
    headers = jwt.get_unverified_header(token)
    kid = headers.get("kid")
    key = _find_key(_fetch_jwks(jwks_url), kid)
    if key is None:
        # keys may have rotated since the last fetch
        key = _find_key(_fetch_jwks(jwks_url, force=True), kid)
    if key is None:
        raise JWTError("Unknown kid")
    options = {"verify_aud": audience is not None, "verify_iss": issuer is not None}
    return jwt.decode(token, key, algorithms=[headers.get("alg", "RS256")], issuer=issuer, audience=audience, options=options)


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse({"status": "error", "message": message}, status_code=401)


class JwtAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, jwks_url: str, issuer: Optional[str] = None, audience: Optional[str] = None) -> None:
        super().__init__(app)
        self._jwks_url = jwks_url
        self._issuer = issuer
        self._audience = audience

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        if auth_disabled() or request.method == "OPTIONS" or request.url.path in _PUBLIC_PATHS:
            return await call_next(request)

        token = _get_bearer_token(request)
        if not token:
            logger.warning("auth_missing_token path=%s", request.url.path)
            return _unauthorized("Missing bearer token")

        try:
            claims = _verify_jwt(token, self._jwks_url, self._issuer, self._audience)
        except (JWTError, httpx.HTTPError) as exc:
            logger.warning("auth_invalid_token path=%s issuer=%s error=%s", request.url.path, self._issuer, exc)
            return _unauthorized("Invalid bearer token")

        request.state.user = {
            "id": claims.get("sub"),
            "email": claims.get("email"),
            "claims": claims,
        }
        request.state.auth_ms = (time.perf_counter() - start) * 1000
        return await call_next(request)
