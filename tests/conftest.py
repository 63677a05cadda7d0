import copy
import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from websii.api.app import create_app
from websii.control.handler import ControlHandler
from websii.reload.broadcast import ReloadChannel
from websii.serving.state import ServingState
from websii.utils.config import DEFAULT_CONFIG

INDEX_HTML = "<html><head><title>Site</title></head><body><h1>Hello</h1></body></html>"


@pytest.fixture
def site(tmp_path):
    """A served directory with an index page, assets and a subdirectory."""
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_text(INDEX_HTML)
    (root / "other.html").write_text("<p>no body tag</p>")
    (root / "style.css").write_text("body { color: red; }")
    (root / "readme.txt").write_text("plain text readme")
    docs = root / "docs"
    docs.mkdir()
    (docs / "guide.md").write_text("# Guide")
    return root


@pytest.fixture
def listing_dir(tmp_path):
    """A served directory without index.html."""
    root = tmp_path / "listing"
    root.mkdir()
    for name in ("zeta", "alpha", "Mid"):
        (root / name).mkdir()
    for name in ("b.txt", "a.js", "c.png"):
        (root / name).write_bytes(b"x")
    return root


@pytest.fixture
def config():
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["server"]["port"] = 3000
    cfg["reload"]["keepalive_interval"] = 0.05
    cfg["control"]["stop_grace_seconds"] = 0.05
    return cfg


@pytest.fixture
def channel():
    channel = ReloadChannel()
    yield channel
    channel.close()


@pytest.fixture
def state(site, channel):
    return ServingState(site, channel)


@pytest.fixture
def stop_calls():
    return []


@pytest.fixture
def control(state, stop_calls):
    return ControlHandler(state, port=3000, stop_callback=lambda: stop_calls.append(True),
                          stop_grace_seconds=0.05)


@pytest.fixture
def app(config, control, channel):
    app = create_app(config, control=control, channel=channel)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
