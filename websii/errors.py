"""
Error types raised by the serving engine.

Each error carries the HTTP status code it maps to when it reaches a
serving route. Control commands never let these escape; they are turned
into ``success=false`` responses instead.
"""


class WebsiiError(Exception):
    """Base class for serving engine errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class PathNotFound(WebsiiError):
    """The requested path does not exist or cannot be canonicalized."""

    status_code = 404


class NotADirectory(WebsiiError):
    status_code = 400


class NotAFile(WebsiiError):
    status_code = 400


class Forbidden(WebsiiError):
    """A resolved path escapes the serving root."""

    status_code = 403


class NoParentDirectory(WebsiiError):
    status_code = 400


class WatchBindFailure(WebsiiError):
    """Binding the filesystem watch failed. Retried by the watcher."""

    status_code = 503


class InternalIO(WebsiiError):
    """Unexpected read or canonicalization failure while serving."""

    status_code = 500


class StreamLimitReached(WebsiiError):
    """Every worker that may carry an event stream is busy."""

    status_code = 503
