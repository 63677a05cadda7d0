"""Server-sent event stream for connected pages."""

import time
from typing import Callable, Optional

from websii.reload.broadcast import ChannelClosed, ReloadChannel, Subscription
from websii.utils.logging_config import get_logger

logger = get_logger("reload.stream")

RELOAD_EVENT = "data: reload\n\n"
KEEPALIVE_COMMENT = ":keep-alive\n\n"
CONNECTED_COMMENT = ":connected\n\n"


def event_stream(channel: ReloadChannel, keepalive_interval: float = 15.0,
                 subscription: Optional[Subscription] = None,
                 is_disconnected: Optional[Callable[[], bool]] = None,
                 poll_interval: float = 1.0):
    """
    Yield SSE frames for one connection until the client goes away.

    A keep-alive comment is written whenever no signal arrived within
    ``keepalive_interval`` seconds. The generator wakes every
    ``poll_interval`` seconds to ask ``is_disconnected`` whether the client
    is still there, so a dropped connection frees its worker without
    waiting for the next write to fail.

    Args:
        channel: Channel to subscribe to when no ``subscription`` is given
        keepalive_interval: Seconds of silence before a keep-alive comment
        subscription: An already attached subscription to read from
        is_disconnected: Callable reporting that the client has gone away
        poll_interval: Upper bound on one wait for a signal
    """
    if subscription is None:
        subscription = channel.subscribe()
    with subscription:
        logger.info("Live reload client connected")
        try:
            yield CONNECTED_COMMENT
            last_write = time.monotonic()
            while True:
                if is_disconnected is not None and is_disconnected():
                    return
                remaining = keepalive_interval - (time.monotonic() - last_write)
                if remaining <= 0:
                    yield KEEPALIVE_COMMENT
                    last_write = time.monotonic()
                    continue
                try:
                    signal = subscription.get(timeout=min(poll_interval, remaining))
                except ChannelClosed:
                    return
                if signal is not None:
                    yield RELOAD_EVENT
                    last_write = time.monotonic()
        finally:
            logger.info("Live reload client disconnected")
