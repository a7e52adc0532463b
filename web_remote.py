#!/usr/bin/env python3
"""
web_remote.py – remote control and diagnostics over HTTP

GET routes
----------
/                 control page (buttons, live overlay text, diagnostics)
/overlay          JSON list, the same lines the window overlay shows
/diag             JSON object, host metrics plus slideshow state
/log              the rotating log file as plain text
/action?cmd=NAME  queue a control action; NAME is one of COMMANDS

Actions go through the EventManager FIFO and are applied by the main loop,
so the HTTP threads never touch the engine directly.
"""

from __future__ import annotations

import html
import http.server
import json
import logging
import os
import platform
import threading
import time
import urllib.parse
from typing import TYPE_CHECKING, Any, Callable

import psutil

import config
from events import EventManager
from overlays import overlay_lines

if TYPE_CHECKING:                       # avoid circular import at runtime
    from app import SlideshowApp

log = logging.getLogger(__name__)

# cmd → (button label, action for the EventManager)
COMMANDS: dict[str, tuple[str, dict]] = {
    "prev":   ("◀ Previous",        {"type": "prev"}),
    "next":   ("Next ▶",            {"type": "next"}),
    "pause":  ("Pause slideshow",   {"type": "pause"}),
    "resume": ("Resume slideshow",  {"type": "resume"}),
    "play":   ("Play / pause video", {"type": "toggle_play"}),
    "toggle": ("Overlay on / off",  {"type": "toggle_overlay"}),
    "mode":   ("Fit / fill",        {"type": "toggle_display_mode"}),
    "quit":   ("Quit",              {"type": "quit"}),
}

_started = time.monotonic()


# ── diagnostics ────────────────────────────────────────────────────────────
def _fmt_duration(secs: float) -> str:
    d, rem = divmod(int(secs), 86400)
    h, rem = divmod(rem, 3600)
    m, s = divmod(rem, 60)
    return f"{d}d {h:02}:{m:02}:{s:02}"


class Diagnostics:
    """Host metrics, sampled at most once per ``DIAG_REFRESH_INTERVAL``."""

    def __init__(self, refresh: float | None = None):
        self.refresh = refresh if refresh is not None else getattr(config, "DIAG_REFRESH_INTERVAL", 1.0)
        self._lock = threading.Lock()
        self._sampled_at = float("-inf")
        self._host: dict[str, Any] = {}
        self.last_crash = ""

    def host(self) -> dict[str, Any]:
        with self._lock:
            now = time.monotonic()
            if now - self._sampled_at >= self.refresh:
                self._sampled_at = now
                self._host = self._sample()
            return dict(self._host)

    @staticmethod
    def _sample() -> dict[str, Any]:
        per_core = psutil.cpu_percent(percpu=True)
        vm = psutil.virtual_memory()
        try:
            load = ", ".join(f"{x:.2f}" for x in os.getloadavg())
        except (AttributeError, OSError):
            load = "N/A"
        return {
            "cpu_percent":    round(sum(per_core) / len(per_core), 1) if per_core else 0.0,
            "cpu_per_core":   [round(p, 1) for p in per_core],
            "mem_used":       f"{vm.used // 1024**2} MB",
            "mem_total":      f"{vm.total // 1024**2} MB",
            "disk_root":      f"{psutil.disk_usage('/').percent}%",
            "machine_uptime": _fmt_duration(time.time() - psutil.boot_time()),
            "load_avg":       load,
        }

    def report(self, app: "SlideshowApp") -> dict[str, Any]:
        engine, store = app.engine, app.store
        cur = engine.current
        data = self.host()
        data.update({
            "run_state":      engine.run_state.value,
            "items":          store.count(),
            "current":        cur.reference.uri if cur else None,
            "playback":       cur.playback.value if cur and cur.playback else None,
            "interval":       store.interval_seconds(),
            "ordering":       store.ordering().value,
            "script_uptime":  _fmt_duration(time.monotonic() - _started),
            "python_version": platform.python_version(),
            "last_http_crash": self.last_crash,
        })
        return data


# ── server ─────────────────────────────────────────────────────────────────
class RemoteServer(http.server.ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address, app: "SlideshowApp", diagnostics: Diagnostics | None = None):
        super().__init__(address, RemoteHandler)
        self.app = app
        self.diagnostics = diagnostics or Diagnostics()


class RemoteHandler(http.server.BaseHTTPRequestHandler):
    server: RemoteServer

    def log_message(self, format, *args):
        log.debug("[web] " + format, *args)

    def do_GET(self):
        parsed = urllib.parse.urlparse(self.path)
        route: Callable[[str], None] | None = {
            "/":        self._page,
            "/overlay": self._overlay,
            "/diag":    self._diag,
            "/log":     self._log_file,
            "/action":  self._action,
        }.get(parsed.path)
        if route is None:
            self.send_error(404, "Not found")
            return
        route(parsed.query)

    # ── routes ─────────────────────────────────────────────────────────────
    def _page(self, _query: str) -> None:
        self._send(200, "text/html; charset=utf-8", render_page().encode("utf-8"))

    def _overlay(self, _query: str) -> None:
        app = self.server.app
        self._json(overlay_lines(app.engine, app.store))

    def _diag(self, _query: str) -> None:
        self._json(self.server.diagnostics.report(self.server.app))

    def _log_file(self, _query: str) -> None:
        try:
            with open(getattr(config, "LOG_FILE", "runtime.log"), "rb") as f:
                data = f.read()
        except OSError:
            self.send_error(404, "Log file not found")
            return
        self._send(200, "text/plain; charset=utf-8", data)

    def _action(self, query: str) -> None:
        cmd = urllib.parse.parse_qs(query).get("cmd", [""])[0]
        if cmd not in COMMANDS:
            self.send_error(400, f"Unknown cmd {cmd!r}")
            return
        EventManager.post(dict(COMMANDS[cmd][1]))
        log.info("[web] action %s", cmd)
        self.send_response(204)
        self.end_headers()

    # ── helpers ────────────────────────────────────────────────────────────
    def _json(self, obj: Any) -> None:
        self._send(200, "application/json", json.dumps(obj).encode("utf-8"))

    def _send(self, status: int, ctype: str, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", ctype)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


# ── control page ───────────────────────────────────────────────────────────
_PAGE = """<!doctype html><html><head><meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Slideshow remote</title>
<style>
 body{{background:#111;color:#ddd;font-family:monospace;margin:1em;}}
 button{{margin:4px;padding:10px 14px;background:#222;color:#8f8;border:1px solid #8f8;}}
 pre{{background:#000;padding:.5em;}}
 a{{color:#8f8;}}
</style></head><body>
<h2>Slideshow</h2>
<div>{buttons}</div>
<pre id="overlay"></pre>
<h3>Diagnostics</h3>
<pre id="diag"></pre>
<a href="/log">log file</a>
<script>
 function send(cmd){{ fetch('/action?cmd=' + cmd).then(refresh); }}
 async function refresh(){{
   try {{
     const ov = await (await fetch('/overlay')).json();
     document.getElementById('overlay').textContent = ov.join('\\n');
     const dg = await (await fetch('/diag')).json();
     document.getElementById('diag').textContent =
       Object.entries(dg).map(([k, v]) => k.padEnd(18) + v).join('\\n');
   }} catch (e) {{ console.error(e); }}
 }}
 setInterval(refresh, 1000);
 refresh();
</script>
</body></html>
"""


def render_page() -> str:
    buttons = "\n".join(
        f'<button onclick="send(\'{cmd}\')">{html.escape(label)}</button>'
        for cmd, (label, _action) in COMMANDS.items()
    )
    return _PAGE.format(buttons=buttons)


# ── bootstrap ──────────────────────────────────────────────────────────────
def start(app: "SlideshowApp", port: int | None = None) -> threading.Thread:
    """Serve in a daemon thread; the listener is re-created if it dies."""
    port = port if port is not None else getattr(config, "WEB_PORT", 8080)
    diagnostics = Diagnostics()

    def _serve_forever():
        while True:
            try:
                with RemoteServer(("", port), app, diagnostics) as httpd:
                    log.info("[web] remote listening on port %d", port)
                    httpd.serve_forever()
            except OSError as exc:
                diagnostics.last_crash = f"{time.strftime('%H:%M:%S')} {exc}"
                log.exception("[web] server failed, restarting in 1s")
                time.sleep(1)

    thread = threading.Thread(target=_serve_forever, daemon=True, name="web-remote")
    thread.start()
    return thread
