from __future__ import annotations

from flask import Blueprint, jsonify, request

from swiftdrop.errors import ValidationFailureError
from swiftdrop.segments.common import current_actor, get_coordinator, json_body, parse_datetime

cash_bp = Blueprint("cash_bp", __name__, url_prefix="/api/cash")


@cash_bp.post("/orders/<int:order_id>/report")
def report_cash_collection(order_id: int):
    actor = current_actor()
    order = get_coordinator().report_cash_collection(actor, order_id)
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@cash_bp.post("/orders/<int:order_id>/confirm")
def confirm_cash_receipt(order_id: int):
    actor = current_actor()
    confirmation = get_coordinator().confirm_cash_receipt(actor, order_id, note=json_body().get("note") or "")
    return jsonify({"ok": True, "confirmation": confirmation.to_dict()}), 200


@cash_bp.post("/payouts")
def confirm_manager_payout():
    actor = current_actor()
    payload = json_body()
    try:
        manager_id = int(payload.get("manager_id"))
    except (TypeError, ValueError):
        raise ValidationFailureError("MANAGER_ID_REQUIRED", "manager_id is required")
    payout = get_coordinator().confirm_manager_payout(
        actor,
        manager_id,
        parse_datetime(payload.get("start"), "start"),
        parse_datetime(payload.get("end"), "end"),
        note=payload.get("note") or "",
    )
    return jsonify({"ok": True, "payout": payout.to_dict()}), 201


@cash_bp.get("/manager/pending")
def manager_pending():
    actor = current_actor()
    return jsonify({"ok": True, "items": get_coordinator().manager_pending_cash_orders(actor)}), 200


@cash_bp.get("/manager/summary")
def manager_summary():
    actor = current_actor()
    raw_manager = request.args.get("manager_id")
    summary = get_coordinator().manager_cash_summary(
        actor,
        manager_id=int(raw_manager) if (raw_manager or "").isdigit() else None,
        start=parse_datetime(request.args.get("start"), "start"),
        end=parse_datetime(request.args.get("end"), "end"),
    )
    return jsonify({"ok": True, "summary": summary}), 200


@cash_bp.get("/driver/pending")
def driver_pending():
    actor = current_actor()
    return jsonify({"ok": True, "items": get_coordinator().driver_pending_cash_orders(actor)}), 200
