from __future__ import annotations

ORDER_PLACED = "ORDER_PLACED"
ORDER_ACCEPTED = "ORDER_ACCEPTED"
ORDER_REJECTED = "ORDER_REJECTED"
DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
DRIVER_ACCEPTED = "DRIVER_ACCEPTED"
DRIVER_REJECTED = "DRIVER_REJECTED"
ORDER_SHIPPED = "ORDER_SHIPPED"
ORDER_IN_TRANSIT = "ORDER_IN_TRANSIT"
ORDER_READY = "ORDER_READY"
CONFIRM_DELIVERY = "CONFIRM_DELIVERY"
ORDER_COMPLETED = "ORDER_COMPLETED"
ORDER_CANCELLED = "ORDER_CANCELLED"
DELIVERY_FAILED = "DELIVERY_FAILED"
CASH_REPORTED = "CASH_REPORTED"
CASH_CONFIRMED = "CASH_CONFIRMED"
PAYOUT_CONFIRMED = "PAYOUT_CONFIRMED"
FUNDS_RELEASED = "FUNDS_RELEASED"
DISPUTE_OPENED = "DISPUTE_OPENED"
DISPUTE_RESOLVED = "DISPUTE_RESOLVED"
DISPUTE_RESPONSE = "DISPUTE_RESPONSE"

TEMPLATES: dict[str, tuple[str, str]] = {
    ORDER_PLACED: ("New order", "Order #{order_id} was placed and is waiting for you."),
    ORDER_ACCEPTED: ("Order accepted", "Order #{order_id} is being prepared."),
    ORDER_REJECTED: ("Order rejected", "The vendor could not accept order #{order_id}."),
    DRIVER_ASSIGNED: ("New delivery", "You were assigned order #{order_id}."),
    DRIVER_ACCEPTED: ("Driver on the way", "A driver accepted order #{order_id}."),
    DRIVER_REJECTED: ("Driver declined", "Order #{order_id} needs a new driver."),
    ORDER_SHIPPED: ("Order picked up", "Order #{order_id} has been picked up."),
    ORDER_IN_TRANSIT: ("Order in transit", "Order #{order_id} is on its way."),
    ORDER_READY: ("Order ready", "Order #{order_id} is ready for pickup."),
    CONFIRM_DELIVERY: ("Confirm delivery", "Order #{order_id} was delivered. Confirm receipt to release payment."),
    ORDER_COMPLETED: ("Order delivered", "Order #{order_id} was delivered."),
    ORDER_CANCELLED: ("Order cancelled", "Order #{order_id} was cancelled."),
    DELIVERY_FAILED: ("Delivery failed", "Delivery of order #{order_id} failed: {reason}"),
    CASH_REPORTED: ("Cash reported", "Driver reported {amount} collected for order #{order_id}."),
    CASH_CONFIRMED: ("Cash received", "Cash for order #{order_id} was confirmed."),
    PAYOUT_CONFIRMED: ("Payout confirmed", "A payout of {amount} was confirmed."),
    FUNDS_RELEASED: ("Payment released", "Payment for order #{order_id} was released."),
    DISPUTE_OPENED: ("Dispute opened", "A dispute was opened on order #{order_id}."),
    DISPUTE_RESOLVED: ("Dispute resolved", "The dispute on order #{order_id} was resolved."),
    DISPUTE_RESPONSE: ("Driver responded", "The driver responded to the dispute on order #{order_id}."),
}


class _Defaults(dict):
    def __missing__(self, key):
        return ""


def render(template_key: str, payload: dict | None) -> tuple[str, str]:
    title, body = TEMPLATES.get(template_key, (template_key.replace("_", " ").title(), "{message}"))
    return title, body.format_map(_Defaults(payload or {}))
