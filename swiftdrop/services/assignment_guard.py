from __future__ import annotations

import logging
from datetime import datetime

from swiftdrop.errors import ResourceConflictError
from swiftdrop.models import DriverProfile, DriverStatus

logger = logging.getLogger(__name__)


def claim_driver(session, driver_id: int) -> None:
    """Capture a driver for one order with a single conditional update.

    Whatever the caller read earlier, only one concurrent claim can flip the
    row to BUSY; the loser sees zero affected rows.
    """
    affected = (
        session.query(DriverProfile)
        .filter(DriverProfile.user_id == int(driver_id), DriverProfile.status != DriverStatus.BUSY)
        .update(
            {DriverProfile.status: DriverStatus.BUSY, DriverProfile.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
    )
    if not affected:
        logger.info("driver_claim_conflict driver_id=%s", driver_id)
        raise ResourceConflictError("DRIVER_BUSY", "Driver is already handling another order")
    _expire_profile(session, driver_id)


def release_driver(session, driver_id: int | None) -> None:
    if not driver_id:
        return
    (
        session.query(DriverProfile)
        .filter(DriverProfile.user_id == int(driver_id))
        .update(
            {DriverProfile.status: DriverStatus.AVAILABLE, DriverProfile.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
    )
    _expire_profile(session, driver_id)


def _expire_profile(session, driver_id: int) -> None:
    for obj in list(session.identity_map.values()):
        if isinstance(obj, DriverProfile) and int(obj.user_id) == int(driver_id):
            session.expire(obj, ["status", "updated_at"])
