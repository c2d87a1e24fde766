from __future__ import annotations

from flask import Blueprint, jsonify

from swiftdrop.errors import ForbiddenError, ValidationFailureError
from swiftdrop.segments.common import current_actor, json_body
from swiftdrop.services.actors import Role
from swiftdrop.utils.platform_settings import DEFAULTS, get_platform_settings, set_setting

settings_bp = Blueprint("settings_bp", __name__, url_prefix="/api/admin/settings")


def _require_admin():
    actor = current_actor()
    if actor.role != Role.ADMIN:
        raise ForbiddenError("ROLE_NOT_ALLOWED", "Admin role required")
    return actor


@settings_bp.get("")
def read_settings():
    _require_admin()
    return jsonify({"ok": True, "settings": get_platform_settings().to_dict()}), 200


@settings_bp.put("")
def update_settings():
    _require_admin()
    payload = json_body()
    unknown = sorted(k for k in payload if k not in DEFAULTS)
    if unknown:
        raise ValidationFailureError("UNKNOWN_SETTING", f"Unknown setting {unknown[0]}", details={"unknown": unknown})
    for key, value in payload.items():
        set_setting(key, value)
    return jsonify({"ok": True, "settings": get_platform_settings().to_dict()}), 200
