from __future__ import annotations

import os

from swiftdrop.integrations.broadcast.base import BroadcastSink, DisabledBroadcastSink
from swiftdrop.integrations.broadcast.mock_provider import MockBroadcastSink
from swiftdrop.integrations.common import IntegrationMisconfiguredError


def build_broadcast_sink(mode: str | None = None) -> BroadcastSink:
    resolved = (mode or os.getenv("BROADCAST_MODE") or "disabled").strip().lower()
    if resolved == "disabled":
        return DisabledBroadcastSink()
    if resolved == "mock":
        return MockBroadcastSink()
    if resolved == "redis":
        url = (os.getenv("BROADCAST_REDIS_URL") or os.getenv("REDIS_URL") or "").strip()
        if not url:
            raise IntegrationMisconfiguredError("INTEGRATION_MISCONFIGURED:missing REDIS_URL")
        from swiftdrop.integrations.broadcast.redis_provider import RedisBroadcastSink

        prefix = (os.getenv("BROADCAST_CHANNEL_PREFIX") or "swiftdrop:rooms").strip()
        return RedisBroadcastSink(url=url, channel_prefix=prefix)
    raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:unknown broadcast mode {resolved}")
