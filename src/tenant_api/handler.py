"""
tenant_api.handler — Storefront tenant endpoint Lambda.

Route: /v1/tenants/{slug}
    GET    fetch a storefront (shared-secret gated)
    POST   create a storefront and its owner account (shared-secret gated)
    PATCH  update a storefront (owner session required)

Uses the storefront library exclusively for records and sessions.

Rejected input, a wrong secret and unsupported methods are all answered with
304 and an empty body. Existing storefront clients depend on that status.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from aws_lambda_powertools import Logger
from storefront import InvalidSessionError, SessionVerifier, TenantStore, TenantStoreError
from storefront import dates, schemas
from storefront.models import TenantTier

logger = Logger(service="tenant-api")

_SECRET_ENV = "SECRET"  # pragma: allowlist secret
_TENANTS_TABLE_ENV = "TENANTS_TABLE_NAME"
_USER_POOL_ENV = "USER_POOL_ID"
_USER_POOL_CLIENT_ENV = "USER_POOL_CLIENT_ID"
_SESSION_JWKS_URL_ENV = "SESSION_JWKS_URL"
_SESSION_ISSUER_ENV = "SESSION_ISSUER"

SESSION_EXPIRED_MESSAGE = "La sesión expiró, volvé a iniciar sesión para continuar"
UPDATE_FAILED_MESSAGE = "Hubo un error actualizando la tienda"

# Drafts have no id until the store assigns one.
_PLACEHOLDER_ID = "fake-id"


class _RejectedRequest(Exception):
    """Input failed validation; answered with 304 and no body."""


@dataclass(frozen=True)
class TenantApiDependencies:
    secret: str | None
    store: Any
    sessions: Any


# Reused across warm starts (boto3 clients, cached JWKS).
_deps: TenantApiDependencies | None = None


def _tenants_table_name() -> str:
    return os.environ.get(_TENANTS_TABLE_ENV, "storefront-tenants")


def _session_verifier(region: str, user_pool_id: str) -> SessionVerifier:
    jwks_url = os.environ.get(_SESSION_JWKS_URL_ENV)
    if jwks_url:
        return SessionVerifier(
            jwks_url,
            audience=os.environ.get(_USER_POOL_CLIENT_ENV),
            issuer=os.environ.get(_SESSION_ISSUER_ENV),
        )
    return SessionVerifier.from_user_pool(
        region, user_pool_id, os.environ[_USER_POOL_CLIENT_ENV]
    )


def _dependencies() -> TenantApiDependencies:
    global _deps
    if _deps is None:
        region = os.environ["AWS_REGION"]
        user_pool_id = os.environ[_USER_POOL_ENV]
        _deps = TenantApiDependencies(
            secret=os.environ.get(_SECRET_ENV),
            store=TenantStore(_tenants_table_name(), user_pool_id),
            sessions=_session_verifier(region, user_pool_id),
        )
    return _deps


def _now_utc() -> datetime:
    return dates.now_utc()


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


def _response(status_code: int, body: Any) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _text(status_code: int, text: str) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "text/plain; charset=utf-8"},
        "body": text,
    }


def _empty(status_code: int) -> dict[str, Any]:
    return {"statusCode": status_code, "headers": {}, "body": ""}


# ---------------------------------------------------------------------------
# Request parsing
# ---------------------------------------------------------------------------


def _str_or_none(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def _http_method(event: dict[str, Any]) -> str:
    method = event.get("httpMethod")
    if not method:
        method = event.get("requestContext", {}).get("http", {}).get("method")
    return str(method or "").upper()


def _query_params(event: dict[str, Any]) -> dict[str, Any]:
    params = event.get("queryStringParameters") or {}
    return params if isinstance(params, dict) else {}


def _slug(event: dict[str, Any]) -> str | None:
    # Slugs are stored lower-cased.
    path_params = event.get("pathParameters") or {}
    if isinstance(path_params, dict) and path_params.get("slug"):
        slug = _str_or_none(path_params["slug"])
    else:
        slug = _str_or_none(_query_params(event).get("slug"))
    return slug.lower() if slug else None


def _header(event: dict[str, Any], name: str) -> str | None:
    headers = event.get("headers") or {}
    if not isinstance(headers, dict):
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if str(key).lower() == wanted:
            return value if isinstance(value, str) else None
    return None


def _json_body(event: dict[str, Any]) -> dict[str, Any]:
    raw_body = event.get("body")
    if raw_body is None or raw_body == "":
        return {}
    if not isinstance(raw_body, str):
        raise _RejectedRequest("Request body must be a JSON string")
    try:
        if event.get("isBase64Encoded"):
            raw_body = base64.b64decode(raw_body).decode("utf-8")
        body = json.loads(raw_body)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise _RejectedRequest("Malformed JSON body") from exc
    if not isinstance(body, dict):
        raise _RejectedRequest("JSON body must be an object")
    return body


def _secret_matches(provided: Any, deps: TenantApiDependencies) -> bool:
    # An unconfigured secret rejects everything.
    if not deps.secret or not isinstance(provided, str) or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), deps.secret.encode("utf-8"))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def _handle_fetch(event: dict[str, Any], deps: TenantApiDependencies) -> dict[str, Any]:
    if not _secret_matches(_query_params(event).get("secret"), deps):
        raise _RejectedRequest("secret mismatch")
    slug = _slug(event)
    if slug is None:
        raise _RejectedRequest("slug is required")

    try:
        tenant = deps.store.fetch(slug)
    except TenantStoreError as exc:
        logger.warning("Tenant fetch failed", status=exc.status, reason=exc.status_text)
        return _text(exc.status, exc.status_text)
    return _response(200, schemas.client_fetch.cast(tenant))


def _handle_create(event: dict[str, Any], deps: TenantApiDependencies) -> dict[str, Any]:
    body = _json_body(event)
    email = _str_or_none(body.get("email"))
    password = body.get("password")
    slug = _slug(event)
    if not email or not isinstance(password, str) or not password or not slug:
        raise _RejectedRequest("email, password, slug and secret are required")
    if not _secret_matches(body.get("secret"), deps):
        raise _RejectedRequest("secret mismatch")

    now = _now_utc()
    tenant = schemas.server_create.cast(
        {
            "slug": slug,
            "createdAt": now,
            "tier": TenantTier.COMMERCIAL.value,
            "tierUntil": dates.one_week_from(now),
        }
    )
    violations = schemas.server_fetch.validate({"id": _PLACEHOLDER_ID, **tenant})
    if violations:
        raise _RejectedRequest("; ".join(violations))

    try:
        deps.store.create(email, password, tenant)
    except TenantStoreError as exc:
        logger.warning("Tenant create failed", status=exc.status, reason=exc.status_text)
        return _text(exc.status, exc.status_text)
    return _response(200, {"success": True})


def _handle_update(event: dict[str, Any], deps: TenantApiDependencies) -> dict[str, Any]:
    body = _json_body(event)
    tenant = body.get("tenant")
    if not isinstance(tenant, dict) or not tenant.get("id") or not tenant.get("slug"):
        raise _RejectedRequest("tenant, tenant.id and tenant.slug are required")

    tenant_id = tenant["id"]
    rest = {key: value for key, value in tenant.items() if key != "id"}

    try:
        identity = deps.sessions.verify(_header(event, "authorization"))
    except InvalidSessionError as exc:
        logger.info("Session rejected", reason=str(exc))
        return _text(401, SESSION_EXPIRED_MESSAGE)

    if identity.uid != tenant_id:
        logger.warning("Caller does not own tenant", uid=identity.uid)
        return _empty(403)

    try:
        deps.store.update(tenant_id, schemas.server_update.cast(rest))
    except TenantStoreError as exc:
        logger.warning("Tenant update failed", status=exc.status, reason=exc.status_text)
        return _text(400, UPDATE_FAILED_MESSAGE)
    return _response(200, tenant)


@logger.inject_lambda_context(clear_state=True, log_event=False)
def lambda_handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    deps = _dependencies()
    method = _http_method(event)
    logger.append_keys(method=method, slug=_slug(event) or "unknown")

    try:
        if method == "GET":
            return _handle_fetch(event, deps)
        if method == "POST":
            return _handle_create(event, deps)
        if method == "PATCH":
            return _handle_update(event, deps)

        logger.info("Unsupported method")
        return _empty(304)
    except _RejectedRequest as exc:
        logger.info("Request rejected", reason=str(exc))
        return _empty(304)
    except Exception:
        logger.exception("Unhandled tenant API handler error")
        return _text(500, "Internal server error")
