import os
import time
import logging
from typing import Optional, Dict, Any

import jwt

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def _secret() -> str:
    return os.getenv("SECRET_KEY") or "dev-secret-change-me"


def create_access_token(user_id: int, role: str = "", ttl_seconds: int = 60 * 60 * 24) -> str:
    """Mint a token for tests and local tooling; login flows live outside this service."""
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "role": role or "",
        "iat": now,
        "exp": now + ttl_seconds,
        "type": "access",
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("jwt_expired")
        return None
    except jwt.InvalidTokenError as exc:
        logger.info("jwt_invalid err=%s", exc)
        return None
    if payload.get("type") not in (None, "access"):
        return None
    return payload
