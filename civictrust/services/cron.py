"""Background jobs for queue replay and coupon expiry."""
from __future__ import annotations

import logging

from civictrust.services.dispatcher import get_dispatcher

logger = logging.getLogger(__name__)


async def replay_pending_once() -> int:
    """Replay queued offline actions when the service is back online."""

    dispatcher = get_dispatcher()
    if not dispatcher.state.is_online or not dispatcher.state.pending_actions:
        return 0
    return await dispatcher.replay_and_sync()


def expire_redemptions_once() -> int:
    """Expire coupons whose 14-day validity has elapsed."""

    return len(get_dispatcher().expire_redemptions())


__all__ = ["replay_pending_once", "expire_redemptions_once"]
