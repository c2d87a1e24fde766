from __future__ import annotations

from dataclasses import dataclass


class Role:
    CUSTOMER = "customer"
    VENDOR = "vendor"
    DRIVER = "driver"
    MANAGER = "manager"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    id: int | None
    role: str
    zone_id: int | None = None

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(
            id=int(user.id),
            role=(getattr(user, "role", None) or Role.CUSTOMER).strip().lower(),
            zone_id=int(user.zone_id) if getattr(user, "zone_id", None) else None,
        )

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=None, role=Role.SYSTEM)

    def is_(self, *roles: str) -> bool:
        return self.role in roles
