"""
Websii - serve a local directory over HTTP with live reload.

Packages:
- serving: shared serving state, path resolution and content responses
- reload: reload broadcast channel, event stream and filesystem watcher
- control: remote control protocol, handler and client
- api: Flask application and server entry point
- utils: configuration and logging
"""

__version__ = "0.2.1"
