"""Tests for the web remote routes, served on an ephemeral local port."""

import json
import threading
import urllib.error
import urllib.request
from types import SimpleNamespace

import pytest

import config
import web_remote
from conftest import image
from events import EventManager


@pytest.fixture
def server(make_engine):
    engine, store, _ = make_engine([image("/m/a.jpg")])
    engine.start()
    app = SimpleNamespace(engine=engine, store=store)
    httpd = web_remote.RemoteServer(("127.0.0.1", 0), app)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}"
    httpd.shutdown()
    httpd.server_close()


def get(url):
    with urllib.request.urlopen(url, timeout=5) as resp:
        return resp.status, resp.read()


@pytest.mark.parametrize("cmd, action", [
    ("next", "next"),
    ("prev", "prev"),
    ("pause", "pause"),
    ("resume", "resume"),
    ("play", "toggle_play"),
    ("toggle", "toggle_overlay"),
    ("mode", "toggle_display_mode"),
    ("quit", "quit"),
])
def test_action_posts_to_queue(server, cmd, action):
    status, _ = get(f"{server}/action?cmd={cmd}")
    assert status == 204
    assert EventManager.poll() == {"type": action}
    assert EventManager.poll() is None


def test_unknown_action(server):
    with pytest.raises(urllib.error.HTTPError) as err:
        get(f"{server}/action?cmd=explode")
    assert err.value.code == 400
    assert EventManager.poll() is None


def test_overlay_json(server):
    status, body = get(f"{server}/overlay")
    assert status == 200
    lines = json.loads(body)
    assert lines[0] == "01/01"


def test_diag_json(server):
    _, body = get(f"{server}/diag")
    data = json.loads(body)
    assert "cpu_percent" in data
    assert data["run_state"] == "running"
    assert data["items"] == 1
    assert data["current"] == "/m/a.jpg"


def test_log_file(server, tmp_path, monkeypatch):
    log_file = tmp_path / "runtime.log"
    log_file.write_text("[engine] started\n")
    monkeypatch.setattr(config, "LOG_FILE", str(log_file))
    _, body = get(f"{server}/log")
    assert b"[engine] started" in body


def test_index_page(server):
    status, body = get(f"{server}/")
    assert status == 200
    assert b"send('next')" in body


def test_not_found(server):
    with pytest.raises(urllib.error.HTTPError) as err:
        get(f"{server}/nope")
    assert err.value.code == 404
