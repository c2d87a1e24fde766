from __future__ import annotations

from flask import Blueprint, jsonify, request

from swiftdrop.errors import ForbiddenError, ValidationFailureError
from swiftdrop.extensions import db
from swiftdrop.models import Vendor
from swiftdrop.segments.common import current_actor, get_coordinator, parse_datetime
from swiftdrop.services import commission_service
from swiftdrop.services.actors import Role

reports_bp = Blueprint("reports_bp", __name__, url_prefix="/api/reports/commissions")


def _range():
    return parse_datetime(request.args.get("start"), "start"), parse_datetime(request.args.get("end"), "end")


def _int_arg(name: str) -> int | None:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    if not raw.isdigit():
        raise ValidationFailureError("INVALID_QUERY", f"{name} must be an integer")
    return int(raw)


def _require_admin():
    actor = current_actor()
    if actor.role != Role.ADMIN:
        raise ForbiddenError("ROLE_NOT_ALLOWED", "Admin role required")
    return actor


@reports_bp.get("/orders/<int:order_id>")
def order_snapshots(order_id: int):
    actor = current_actor()
    if actor.role != Role.ADMIN:
        # Non-admins only see snapshots for orders they can see.
        get_coordinator().find_one(actor, order_id)
    return jsonify({"ok": True, "items": commission_service.snapshots_for_order(order_id)}), 200


@reports_bp.get("/by-source")
def by_source():
    _require_admin()
    start, end = _range()
    totals = commission_service.totals_by_source(
        start=start,
        end=end,
        vendor_id=_int_arg("vendor_id"),
        party_user_id=_int_arg("party_user_id"),
    )
    return jsonify({"ok": True, "totals": totals}), 200


@reports_bp.get("/platform")
def platform_total():
    _require_admin()
    start, end = _range()
    return jsonify({"ok": True, "totals": commission_service.platform_commission_total(start=start, end=end)}), 200


@reports_bp.get("/vendors")
def vendor_receivables():
    actor = current_actor()
    start, end = _range()
    vendor_id = _int_arg("vendor_id")
    if actor.role == Role.VENDOR:
        vendor = db.session.get(Vendor, vendor_id) if vendor_id else None
        if vendor is None or int(vendor.author_id) != int(actor.id):
            raise ForbiddenError("NOT_VENDOR_OWNER", "Vendors can only read their own receivables")
    elif actor.role != Role.ADMIN:
        raise ForbiddenError("ROLE_NOT_ALLOWED", "Admin or vendor role required")
    items = commission_service.vendor_net_receivables(vendor_id=vendor_id, start=start, end=end)
    return jsonify({"ok": True, "items": items}), 200


@reports_bp.get("/drivers")
def driver_earnings():
    actor = current_actor()
    start, end = _range()
    driver_id = _int_arg("driver_id")
    if actor.role == Role.DRIVER:
        driver_id = int(actor.id)
    elif actor.role != Role.ADMIN:
        raise ForbiddenError("ROLE_NOT_ALLOWED", "Admin or driver role required")
    items = commission_service.driver_earnings(driver_id=driver_id, start=start, end=end)
    return jsonify({"ok": True, "items": items}), 200


@reports_bp.get("/monthly")
def monthly():
    _require_admin()
    year = _int_arg("year")
    if year is None:
        raise ValidationFailureError("YEAR_REQUIRED", "year is required")
    return jsonify({"ok": True, "year": year, "months": commission_service.monthly_report(year=year)}), 200
