from __future__ import annotations


class OrderError(Exception):
    """Domain failure carrying a stable machine-readable code."""

    kind = "error"
    http_status = 400

    def __init__(self, code: str, message: str = "", *, details: dict | None = None):
        self.code = (code or "UNKNOWN").strip().upper()
        self.message = message or self.code.replace("_", " ").capitalize()
        self.details = dict(details or {})
        super().__init__(f"{self.code}: {self.message}")

    def to_dict(self) -> dict:
        payload = {
            "ok": False,
            "error": {"code": self.code, "kind": self.kind},
            "message": self.message,
            "status": int(self.http_status),
        }
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(OrderError):
    kind = "not_found"
    http_status = 404


class ForbiddenError(OrderError):
    kind = "forbidden"
    http_status = 403


class InvalidTransitionError(OrderError):
    kind = "invalid_transition"
    http_status = 409


class ResourceConflictError(OrderError):
    kind = "conflict"
    http_status = 409


class ValidationFailureError(OrderError):
    kind = "validation"
    http_status = 422


class UnauthorizedError(OrderError):
    kind = "unauthorized"
    http_status = 401
