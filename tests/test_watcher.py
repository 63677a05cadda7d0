"""Tests for the root watcher and reload coalescing."""

import time
from types import SimpleNamespace

import pytest

from websii.reload.broadcast import RELOAD, ReloadChannel
from websii.reload.watcher import (
    RETRYING,
    UNARMED,
    WATCHING,
    ChangeHandler,
    ReloadCoalescer,
    RootWatcher,
)
from websii.serving.state import ServingState


def wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FlakyObserver:
    """Observer stand-in whose first ``failures`` starts raise."""

    def __init__(self, failures):
        self.failures = failures
        self.attempts = 0
        self.scheduled = []

    def __call__(self):
        return self

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append(path)

    def start(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise OSError("inotify watch limit reached")

    def stop(self):
        pass

    def is_alive(self):
        return False


@pytest.fixture
def other_dir(tmp_path):
    other = tmp_path / "other"
    other.mkdir()
    (other / "page.html").write_text("<body>other</body>")
    return other


@pytest.fixture
def watcher_factory(state, channel):
    created = []

    def factory(**kwargs):
        kwargs.setdefault("retry_interval", 0.05)
        kwargs.setdefault("debounce", 0.05)
        watcher = RootWatcher(state, channel, **kwargs)
        created.append(watcher)
        return watcher

    yield factory
    for watcher in created:
        watcher.stop()


class TestReloadCoalescer:

    def test_burst_produces_one_signal(self):
        channel = ReloadChannel()
        coalescer = ReloadCoalescer(channel, window=0.1)

        for _ in range(10):
            coalescer.notify()

        assert wait_for(lambda: channel.published == 1)
        time.sleep(0.2)
        assert channel.published == 1

    def test_separate_bursts_produce_separate_signals(self):
        channel = ReloadChannel()
        coalescer = ReloadCoalescer(channel, window=0.05)

        coalescer.notify()
        assert wait_for(lambda: channel.published == 1)
        coalescer.notify()
        assert wait_for(lambda: channel.published == 2)

    def test_zero_window_publishes_per_event(self):
        channel = ReloadChannel()
        coalescer = ReloadCoalescer(channel, window=0)
        coalescer.notify()
        coalescer.notify()
        assert channel.published == 2

    def test_cancel_drops_pending_signal(self):
        channel = ReloadChannel()
        coalescer = ReloadCoalescer(channel, window=0.1)
        coalescer.notify()
        coalescer.cancel()
        time.sleep(0.2)
        assert channel.published == 0


class TestChangeHandler:

    @pytest.mark.parametrize("event_type", ["created", "modified", "deleted", "moved"])
    def test_change_events_are_forwarded(self, event_type):
        calls = []
        watcher = SimpleNamespace(handle_change=lambda generation, event: calls.append(generation))
        ChangeHandler(watcher, 7).on_any_event(SimpleNamespace(event_type=event_type, src_path="/x"))
        assert calls == [7]

    @pytest.mark.parametrize("event_type", ["opened", "closed", "closed_no_write"])
    def test_access_events_are_ignored(self, event_type):
        calls = []
        watcher = SimpleNamespace(handle_change=lambda generation, event: calls.append(generation))
        ChangeHandler(watcher, 1).on_any_event(SimpleNamespace(event_type=event_type, src_path="/x"))
        assert calls == []


class TestRootWatcher:

    def test_starts_unarmed(self, watcher_factory):
        watcher = watcher_factory()
        assert watcher.status == UNARMED
        assert watcher.watched_root is None

    def test_watches_initial_root(self, watcher_factory, state):
        watcher = watcher_factory()
        watcher.start()
        assert wait_for(lambda: watcher.status == WATCHING)
        assert watcher.watched_root == state.get_root()

    def test_file_change_reaches_subscriber_once(self, watcher_factory, channel, site):
        watcher = watcher_factory(debounce=0.2)
        watcher.start()
        assert wait_for(lambda: watcher.status == WATCHING)

        with channel.subscribe() as sub:
            (site / "style.css").write_text("body { color: blue; }")
            assert sub.get(timeout=5) == RELOAD
            assert sub.get(timeout=1) is None

    def test_new_file_triggers_reload(self, watcher_factory, channel, site):
        watcher = watcher_factory()
        watcher.start()
        assert wait_for(lambda: watcher.status == WATCHING)

        with channel.subscribe() as sub:
            (site / "docs" / "new.md").write_text("new")
            assert sub.get(timeout=5) == RELOAD

    def test_root_change_rebinds_watch(self, watcher_factory, state, channel, site, other_dir):
        watcher = watcher_factory()
        watcher.start()
        assert wait_for(lambda: watcher.watched_root == site.resolve())

        state.set_directory(other_dir)
        assert wait_for(lambda: watcher.watched_root == other_dir.resolve())
        assert watcher.status == WATCHING

        with channel.subscribe() as sub:
            (site / "style.css").write_text("old root edit")
            assert sub.get(timeout=0.5) is None
            (other_dir / "page.html").write_text("<body>edited</body>")
            assert sub.get(timeout=5) == RELOAD

    def test_set_file_rebinds_to_parent(self, watcher_factory, state, other_dir):
        watcher = watcher_factory()
        watcher.start()
        assert wait_for(lambda: watcher.status == WATCHING)

        state.set_file(other_dir / "page.html")
        assert wait_for(lambda: watcher.watched_root == other_dir.resolve())

    def test_bind_failure_is_retried(self, watcher_factory):
        observer = FlakyObserver(failures=2)
        watcher = watcher_factory(observer_factory=observer)
        watcher.start()

        assert wait_for(lambda: watcher.status == WATCHING)
        assert observer.attempts == 3

    def test_root_change_cuts_retry_wait_short(self, watcher_factory, state, other_dir):
        observer = FlakyObserver(failures=1)
        watcher = watcher_factory(observer_factory=observer, retry_interval=30)
        watcher.start()
        assert wait_for(lambda: watcher.status == RETRYING)

        state.set_directory(other_dir)

        assert wait_for(lambda: watcher.status == WATCHING, timeout=3)
        assert observer.scheduled[-1] == str(other_dir.resolve())

    def test_stale_generation_events_are_dropped(self, watcher_factory, channel):
        watcher = watcher_factory(debounce=0)
        watcher.handle_change(watcher._generation - 1, SimpleNamespace(src_path="/x"))
        assert channel.published == 0
        watcher.handle_change(watcher._generation, SimpleNamespace(src_path="/x"))
        assert channel.published == 1

    def test_release_drops_pending_reload(self, watcher_factory, channel):
        watcher = watcher_factory(debounce=0.2)
        watcher.handle_change(watcher._generation, SimpleNamespace(src_path="/x"))

        watcher._release()

        time.sleep(0.4)
        assert channel.published == 0

    def test_stop_releases_watch(self, watcher_factory):
        watcher = watcher_factory()
        watcher.start()
        assert wait_for(lambda: watcher.status == WATCHING)

        watcher.stop()

        assert watcher.status == UNARMED
        assert watcher.watched_root is None


def test_serving_state_without_watcher_still_publishes(site):
    channel = ReloadChannel()
    state = ServingState(site, channel)
    with channel.subscribe() as sub:
        state.set_directory(site / "docs")
        assert sub.get(timeout=0) == RELOAD
