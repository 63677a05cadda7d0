"""
Shared serving state.

Holds the active serving root and the optional direct-file target. Both are
read by every content request and written only through the control handler,
so they sit behind a writer-preferring read/write lock and are always
replaced together.
"""

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Union

from websii.errors import NoParentDirectory, NotADirectory, NotAFile, PathNotFound
from websii.utils.logging_config import get_logger

logger = get_logger("serving.state")

PathLike = Union[str, os.PathLike]


class ReadWriteLock:
    """Many concurrent readers or one writer.

    A waiting writer blocks new readers from entering, so sustained read
    load cannot starve it.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Snapshot(NamedTuple):
    """A consistent view of (root, direct_file)."""

    root: Path
    direct_file: Optional[Path]


def canonicalize(path: PathLike) -> Path:
    """Resolve symlinks and relative segments of an existing path."""
    try:
        return Path(path).resolve(strict=True)
    except (OSError, ValueError, RuntimeError) as e:
        raise PathNotFound(f"Cannot canonicalize path {path}: {e}") from e


class ServingState:
    """Current serving root and direct-file target.

    Listeners registered with ``add_listener`` are called with the new
    snapshot after every committed mutation, outside the lock. The reload
    signal is published after the listeners ran, so subscribers only ever
    see it once the new root is visible to readers.
    """

    def __init__(self, root: PathLike, reload_channel=None):
        canonical = canonicalize(root)
        if not canonical.is_dir():
            raise NotADirectory(f"Path is not a directory: {canonical}")
        self._lock = ReadWriteLock()
        self._root = canonical
        self._direct_file: Optional[Path] = None
        self.reload_channel = reload_channel
        self._listeners: List[Callable[[Snapshot], None]] = []

    def add_listener(self, listener: Callable[[Snapshot], None]) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> Snapshot:
        with self._lock.read_locked():
            return Snapshot(self._root, self._direct_file)

    def get_root(self) -> Path:
        return self.snapshot().root

    def get_direct_file(self) -> Optional[Path]:
        return self.snapshot().direct_file

    def set_directory(self, path: PathLike) -> Path:
        """Serve ``path`` as the new root and leave direct-file mode.

        Raises:
            PathNotFound: the path does not exist
            NotADirectory: the path exists but is not a directory
        """
        if not os.path.exists(path):
            raise PathNotFound(f"Path does not exist: {path}")
        if not os.path.isdir(path):
            raise NotADirectory(f"Path is not a directory: {path}")

        canonical = canonicalize(path)
        if not canonical.is_dir():
            raise NotADirectory(f"Path is not a directory: {canonical}")

        self._commit(canonical, None)
        logger.info(f"Directory changed to: {canonical}")
        return canonical

    def set_file(self, path: PathLike) -> Path:
        """Serve ``path`` at the root URL, with its parent as the new root.

        Raises:
            PathNotFound: the path does not exist
            NotAFile: the path exists but is not a regular file
            NoParentDirectory: the canonical path has no parent
        """
        if not os.path.exists(path):
            raise PathNotFound(f"File does not exist: {path}")
        if not os.path.isfile(path):
            raise NotAFile(f"Path is not a file: {path}")

        canonical = canonicalize(path)
        if not canonical.is_file():
            raise NotAFile(f"Path is not a file: {canonical}")
        parent = canonical.parent
        if parent == canonical:
            raise NoParentDirectory(f"Cannot determine parent directory of {canonical}")

        self._commit(parent, canonical)
        logger.info(f"Direct file mode: {canonical}")
        logger.info(f"Base directory: {parent}")
        return canonical

    def _commit(self, root: Path, direct_file: Optional[Path]) -> None:
        with self._lock.write_locked():
            self._root = root
            self._direct_file = direct_file
        snapshot = Snapshot(root, direct_file)
        for listener in list(self._listeners):
            listener(snapshot)
        if self.reload_channel is not None:
            self.reload_channel.publish()
