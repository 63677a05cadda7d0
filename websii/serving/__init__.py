"""Serving state, path resolution and content responses."""

from .state import ReadWriteLock, ServingState, Snapshot, canonicalize
from .resolver import resolve_request_path
from .responder import Content, ContentResponder, inject_reload_script, reload_script

__all__ = [
    'ReadWriteLock',
    'ServingState',
    'Snapshot',
    'canonicalize',
    'resolve_request_path',
    'Content',
    'ContentResponder',
    'inject_reload_script',
    'reload_script',
]
