"""
Filesystem watch that follows the serving root.

A background thread owns exactly one watchdog observer bound to the
current root. Root changes set a rebind flag; the thread tears the old
observer down before binding a new one. When binding fails the thread
waits ``retry_interval`` seconds (or until the root changes again) and
retries against whatever the root is by then.
"""

import threading
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from websii.errors import WatchBindFailure
from websii.reload.broadcast import ReloadChannel
from websii.utils.logging_config import get_logger

logger = get_logger("reload.watcher")

UNARMED = "unarmed"
WATCHING = "watching"
RETRYING = "retrying"

CHANGE_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


class ReloadCoalescer:
    """Collapse bursts of change events into one reload signal.

    The first event opens a window of ``window`` seconds; the signal is
    published when it closes and later events inside it are absorbed.
    """

    def __init__(self, channel: ReloadChannel, window: float = 0.1):
        self.channel = channel
        self.window = window
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def notify(self) -> None:
        if self.window <= 0:
            self.channel.publish()
            return
        with self._lock:
            if self._timer is not None:
                return
            self._timer = threading.Timer(self.window, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self.channel.publish()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


class ChangeHandler(FileSystemEventHandler):
    """Forwards create/modify/remove/move events of one watch generation."""

    def __init__(self, watcher: "RootWatcher", generation: int):
        super().__init__()
        self.watcher = watcher
        self.generation = generation

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in CHANGE_EVENTS:
            return
        self.watcher.handle_change(self.generation, event)


class RootWatcher:
    """Keeps one recursive watch on the serving root.

    States: ``unarmed`` before the first bind, ``watching`` while a watch
    is active, ``retrying`` after a bind failure.
    """

    def __init__(self, state, channel: ReloadChannel, retry_interval: float = 5.0,
                 debounce: float = 0.1, observer_factory=Observer):
        self.state = state
        self.channel = channel
        self.retry_interval = retry_interval
        self.coalescer = ReloadCoalescer(channel, debounce)
        self.observer_factory = observer_factory

        self.status = UNARMED
        self.watched_root: Optional[Path] = None
        self._observer = None
        self._generation = 0
        self._generation_lock = threading.Lock()
        self._rebind = threading.Event()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

        state.add_listener(lambda snapshot: self.request_rebind())

    def start(self) -> None:
        self._stopping.clear()
        self._thread = threading.Thread(target=self._run, name="websii-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stopping.set()
        self._rebind.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.coalescer.cancel()

    def request_rebind(self) -> None:
        """Ask the watcher thread to rebuild its watch on the current root."""
        self._rebind.set()

    def handle_change(self, generation: int, event: FileSystemEvent) -> None:
        with self._generation_lock:
            if generation != self._generation:
                return
        logger.info(f"File changed: {event.src_path}")
        self.coalescer.notify()

    def _run(self) -> None:
        while not self._stopping.is_set():
            self._rebind.clear()
            root = self.state.get_root()
            try:
                self._bind(root)
            except WatchBindFailure as e:
                self.status = RETRYING
                logger.warning(f"{e.message}; retrying in {self.retry_interval}s")
                self._rebind.wait(self.retry_interval)
                continue

            self.status = WATCHING
            logger.info(f"Watching: {root}")
            self._rebind.wait()
            self._release()

        self._release()
        self.status = UNARMED

    def _bind(self, root: Path) -> None:
        self._release()
        with self._generation_lock:
            self._generation += 1
            generation = self._generation

        observer = self.observer_factory()
        try:
            observer.schedule(ChangeHandler(self, generation), str(root), recursive=True)
            observer.start()
        except Exception as e:
            _shutdown_observer(observer)
            raise WatchBindFailure(f"Failed to watch directory {root}: {e}") from e

        self._observer = observer
        self.watched_root = root

    def _release(self) -> None:
        with self._generation_lock:
            self._generation += 1
        self.coalescer.cancel()
        if self._observer is not None:
            _shutdown_observer(self._observer)
            logger.debug(f"Released watch on {self.watched_root}")
            self._observer = None
            self.watched_root = None


def _shutdown_observer(observer) -> None:
    try:
        observer.stop()
        if observer.is_alive():
            observer.join(timeout=5)
    except RuntimeError as e:
        logger.debug(f"Observer shutdown: {e}")
