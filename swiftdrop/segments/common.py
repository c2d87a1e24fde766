from __future__ import annotations

from datetime import datetime

from flask import current_app, g, request

from swiftdrop.errors import UnauthorizedError, ValidationFailureError
from swiftdrop.extensions import db
from swiftdrop.models import User
from swiftdrop.services.actors import Actor
from swiftdrop.utils.jwt_utils import decode_token

COORDINATOR_KEY = "swiftdrop.orders"


def get_coordinator():
    return current_app.extensions[COORDINATOR_KEY]


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header.replace("Bearer ", "", 1).strip() or None


def _current_user() -> User | None:
    token = _bearer_token()
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    sub = str(payload.get("sub") or "")
    if not sub.isdigit():
        return None
    user = db.session.get(User, int(sub))
    if user is None or not user.is_active:
        return None
    return user


def current_actor() -> Actor:
    user = _current_user()
    if user is None:
        raise UnauthorizedError("UNAUTHORIZED", "A valid bearer token is required")
    actor = Actor.from_user(user)
    g.auth_user_id = actor.id
    g.auth_role = actor.role
    return actor


def json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def parse_datetime(raw, field: str) -> datetime | None:
    if raw in (None, ""):
        return None
    try:
        return datetime.fromisoformat(str(raw).strip())
    except ValueError:
        raise ValidationFailureError("INVALID_DATE", f"{field} must be an ISO-8601 date", details={"field": field})
