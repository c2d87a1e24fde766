from __future__ import annotations

from flask import Blueprint, jsonify

from swiftdrop.segments.common import current_actor, get_coordinator, json_body

protection_bp = Blueprint("protection_bp", __name__, url_prefix="/api/protection")


@protection_bp.post("/orders/<int:order_id>/confirm")
def confirm_delivery_receipt(order_id: int):
    actor = current_actor()
    hold = get_coordinator().confirm_delivery_receipt(actor, order_id)
    return jsonify({"ok": True, "held_balance": hold.to_dict()}), 200


@protection_bp.post("/orders/<int:order_id>/dispute")
def create_dispute(order_id: int):
    actor = current_actor()
    payload = json_body()
    dispute = get_coordinator().create_dispute(
        actor,
        order_id,
        reason=payload.get("reason") or "",
        description=payload.get("description") or "",
    )
    return jsonify({"ok": True, "dispute": dispute.to_dict()}), 201


@protection_bp.post("/orders/<int:order_id>/dispute/response")
def add_driver_response(order_id: int):
    actor = current_actor()
    dispute = get_coordinator().add_driver_response(actor, order_id, response=json_body().get("response") or "")
    return jsonify({"ok": True, "dispute": dispute.to_dict()}), 200


@protection_bp.post("/orders/<int:order_id>/dispute/resolve")
def resolve_dispute(order_id: int):
    actor = current_actor()
    payload = json_body()
    dispute = get_coordinator().resolve_dispute(
        actor,
        order_id,
        decision=payload.get("decision") or "",
        notes=payload.get("notes") or "",
    )
    return jsonify({"ok": True, "dispute": dispute.to_dict()}), 200


@protection_bp.get("/orders/<int:order_id>")
def protection_status(order_id: int):
    actor = current_actor()
    return jsonify({"ok": True, "protection": get_coordinator().get_protection_status(actor, order_id)}), 200


@protection_bp.get("/orders/<int:order_id>/otp")
def delivery_otp(order_id: int):
    actor = current_actor()
    return jsonify({"ok": True, **get_coordinator().get_delivery_otp(actor, order_id)}), 200
