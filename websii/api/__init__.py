"""HTTP surface of the Websii server."""

from .app import create_app

__all__ = ['create_app']
