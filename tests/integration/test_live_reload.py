"""
Integration tests for the live reload server.

These tests serve a temporary directory over a real socket and drive it with
an HTTP client: a browser-like SSE reader and the control client.
"""

import threading
import time

import pytest
import requests
from werkzeug.serving import make_server

from websii.api.run_api import WebsiiServer
from websii.control.client import ControlClient
from websii.reload.watcher import WATCHING


@pytest.fixture
def live_server(config, site):
    """Run the full server stack on an ephemeral port."""
    config["reload"]["keepalive_interval"] = 0.2
    config["reload"]["debounce_ms"] = 50
    config["control"]["stop_grace_seconds"] = 0.5
    stopped = threading.Event()

    server = WebsiiServer(config, site, stop_callback=stopped.set)
    http = make_server("127.0.0.1", 0, server.app, threaded=True)
    server.control.port = http.server_port
    server.watcher.start()
    thread = threading.Thread(target=http.serve_forever, daemon=True)
    thread.start()

    server.base_url = f"http://127.0.0.1:{http.server_port}"
    server.stopped = stopped
    yield server

    server.shutdown()
    http.shutdown()
    http.server_close()
    thread.join(timeout=5)


def read_until_reload(lines, timeout=10.0):
    """Collect SSE lines until a reload event arrives or the deadline passes."""
    received = []
    deadline = time.time() + timeout
    for line in lines:
        received.append(line)
        if line == b"data: reload" or time.time() > deadline:
            break
    return received


def wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class TestLiveReload:

    def test_index_page_carries_reload_script(self, live_server):
        response = requests.get(f"{live_server.base_url}/", timeout=5)

        assert response.status_code == 200
        assert "<h1>Hello</h1>" in response.text
        assert "new EventSource('/__reload__')" in response.text

    def test_file_change_pushes_reload(self, live_server, site):
        assert wait_for(lambda: live_server.watcher.status == WATCHING)

        with requests.get(f"{live_server.base_url}/__reload__", stream=True, timeout=5) as response:
            assert response.headers["Content-Type"].startswith("text/event-stream")
            lines = response.iter_lines()
            assert next(lines) == b":connected"
            assert wait_for(lambda: live_server.channel.subscriber_count == 1)

            (site / "style.css").write_text("body { color: green; }")

            received = read_until_reload(lines)

        assert received[-1] == b"data: reload"

    def test_set_directory_switches_content_and_reloads(self, live_server, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        (other / "index.html").write_text("<body><h2>Other</h2></body>")
        client = ControlClient(live_server.base_url)

        with requests.get(f"{live_server.base_url}/__reload__", stream=True, timeout=5) as response:
            lines = response.iter_lines()
            assert next(lines) == b":connected"
            assert wait_for(lambda: live_server.channel.subscriber_count == 1)

            result = client.set_directory(other)

            assert result.success
            assert read_until_reload(lines)[-1] == b"data: reload"

        assert "<h2>Other</h2>" in requests.get(f"{live_server.base_url}/", timeout=5).text

    def test_status_reports_actual_port(self, live_server, site):
        result = ControlClient(live_server.base_url).get_status()

        assert result.success
        assert result.current_path == str(site.resolve())
        assert result.port == live_server.control.port

    def test_stop_replies_before_shutdown(self, live_server):
        result = ControlClient(live_server.base_url, control_path="/__control__").stop()

        assert result.success
        assert not live_server.stopped.is_set()
        assert live_server.stopped.wait(timeout=5)
