"""Map request paths onto the serving root without ever leaving it."""

from pathlib import Path

from websii.errors import Forbidden, InternalIO, PathNotFound


def canonical_root(root: Path) -> Path:
    try:
        return root.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise InternalIO(f"Serving root is unavailable: {root}: {e}") from e


def ensure_contained(path: Path, root: Path) -> Path:
    """Return ``path`` if it is ``root`` or lies below it, else raise Forbidden.

    Both arguments must already be canonical.
    """
    try:
        path.relative_to(root)
    except ValueError:
        raise Forbidden(f"Path escapes the serving root: {path}") from None
    return path


def resolve_request_path(request_path: str, root: Path) -> Path:
    """
    Resolve a URL path against the serving root.

    Leading slashes are stripped, the remainder joined onto the
    root and canonicalized. Containment is checked on the canonical result,
    which covers ``..`` segments and symlinks pointing outside the root.

    Args:
        request_path: Decoded URL path, e.g. ``/docs/index.html``
        root: The current serving root

    Returns:
        The canonical filesystem path

    Raises:
        PathNotFound: the joined path cannot be canonicalized
        Forbidden: the canonical path lies outside the root
        InternalIO: the root itself cannot be canonicalized
    """
    base = canonical_root(root)
    relative = request_path.lstrip("/")
    try:
        target = (base / relative).resolve(strict=True)
    except (OSError, ValueError, RuntimeError) as e:
        raise PathNotFound(f"Not found: {request_path}") from e
    return ensure_contained(target, base)
