"""Reload broadcast channel, event stream and root watcher."""

from .broadcast import ChannelClosed, ReloadChannel, Subscription
from .stream import event_stream
from .watcher import RootWatcher

__all__ = [
    'ChannelClosed',
    'ReloadChannel',
    'Subscription',
    'event_stream',
    'RootWatcher',
]
