from __future__ import annotations

from flask import Blueprint, jsonify, request

from swiftdrop.segments.common import current_actor, get_coordinator, json_body

orders_bp = Blueprint("orders_bp", __name__, url_prefix="/api")


@orders_bp.post("/orders")
def create_order():
    actor = current_actor()
    payload = json_body()
    order = get_coordinator().create_order(
        actor,
        vendor_id=payload.get("vendor_id"),
        address_id=payload.get("address_id"),
        items=payload.get("items") or [],
        payment_method=payload.get("payment_method") or "",
        tip_amount=payload.get("tip_amount") or 0.0,
        coupon_code=payload.get("coupon_code"),
        notes=payload.get("notes"),
    )
    return jsonify({"ok": True, "order": order.to_dict()}), 201


@orders_bp.get("/orders")
def list_orders():
    actor = current_actor()
    result = get_coordinator().find_all(
        actor,
        status=request.args.get("status"),
        page=request.args.get("page", 1),
        limit=request.args.get("limit", 20),
    )
    return jsonify({"ok": True, **result}), 200


@orders_bp.get("/orders/<int:order_id>")
def get_order(order_id: int):
    actor = current_actor()
    order = get_coordinator().find_one(actor, order_id)
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/vendor/accept")
def vendor_accept(order_id: int):
    actor = current_actor()
    payload = json_body()
    order = get_coordinator().vendor_accept(actor, order_id, preparation_time=payload.get("preparation_time"))
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/vendor/reject")
def vendor_reject(order_id: int):
    actor = current_actor()
    order = get_coordinator().vendor_reject(actor, order_id, reason=json_body().get("reason") or "")
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/assign-driver")
def assign_driver(order_id: int):
    actor = current_actor()
    order = get_coordinator().assign_driver(actor, order_id, json_body().get("driver_id"))
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/driver/accept")
def driver_accept(order_id: int):
    actor = current_actor()
    order = get_coordinator().driver_accept(actor, order_id)
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/driver/reject")
def driver_reject(order_id: int):
    actor = current_actor()
    order = get_coordinator().driver_reject(actor, order_id, reason=json_body().get("reason") or "")
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/driver/pickup")
def confirm_pickup(order_id: int):
    actor = current_actor()
    order = get_coordinator().confirm_pickup(actor, order_id)
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/driver/transit")
def start_transit(order_id: int):
    actor = current_actor()
    order = get_coordinator().start_transit(actor, order_id)
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/driver/problem")
def report_problem(order_id: int):
    actor = current_actor()
    order = get_coordinator().report_problem(actor, order_id, reason=json_body().get("reason") or "")
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/deliver")
def mark_delivered(order_id: int):
    actor = current_actor()
    order = get_coordinator().mark_delivered(actor, order_id, otp=json_body().get("otp"))
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.post("/orders/<int:order_id>/cancel")
def cancel_order(order_id: int):
    actor = current_actor()
    order = get_coordinator().cancel_order(actor, order_id, reason=json_body().get("reason") or "")
    return jsonify({"ok": True, "order": order.to_dict()}), 200
