#!/usr/bin/env python3
"""
events.py  – central hub

• Translates raw Pygame events (keys, mouse swipes, double clicks, window
  visibility) to high-level action dicts.
• Exposes a thread-safe queue so *any* external source can inject
  the same actions (web API, GPIO, HID, etc.).

Actions
-------
{"type": "next"} / {"type": "prev"}     forced navigation
{"type": "toggle_play"}                 double tap: play/pause current video
{"type": "pause"} / {"type": "resume"} / {"type": "toggle_pause"}
{"type": "toggle_overlay"} / {"type": "toggle_fullscreen"} / {"type": "quit"}
{"type": "toggle_display_mode"}         fit / fill
"""

from __future__ import annotations

import queue
import time
from typing import Optional

import pygame
from pygame.locals import (K_ESCAPE, K_LEFT, K_RETURN, K_RIGHT, K_SPACE, K_f,
                           K_i, K_m, K_p, K_q, KEYDOWN, MOUSEBUTTONDOWN,
                           MOUSEBUTTONUP, QUIT)

import config

Action = dict      # alias for readability


class GestureTracker:
    """Turns press/release pairs into swipes and double taps."""

    def __init__(self) -> None:
        self._down: Optional[tuple[float, float, float]] = None   # x, y, t
        self._last_tap: Optional[tuple[float, float, float]] = None

    def press(self, pos, now: float) -> None:
        self._down = (float(pos[0]), float(pos[1]), now)

    def release(self, pos, now: float) -> Action | None:
        if self._down is None:
            return None
        x0, y0, t0 = self._down
        self._down = None
        dx = float(pos[0]) - x0
        dy = float(pos[1]) - y0
        dt = max(now - t0, 1e-3)

        min_dist = getattr(config, "SWIPE_MIN_DISTANCE", 50)
        if abs(dx) > min_dist and abs(dx) > abs(dy):
            self._last_tap = None
            if not getattr(config, "SWIPE_TO_CHANGE", True):
                return None
            if abs(dx) / dt <= getattr(config, "SWIPE_MIN_VELOCITY", 200):
                return None
            # finger moving right-to-left brings in the next item
            return {"type": "next"} if dx < 0 else {"type": "prev"}

        if abs(dx) > min_dist or abs(dy) > min_dist:
            self._last_tap = None
            return None

        last, self._last_tap = self._last_tap, (float(pos[0]), float(pos[1]), now)
        if last is not None and now - last[2] <= getattr(config, "DOUBLE_TAP_SEC", 0.35):
            self._last_tap = None
            return {"type": "toggle_play"}
        return None


class EventManager:
    _fifo: "queue.Queue[Action]" = queue.Queue()      # global, thread-safe
    _gestures = GestureTracker()

    # ── SDL / keyboard path ────────────────────────────────────────────
    @classmethod
    def handle(cls, event, now: float | None = None) -> None:
        """Translate one Pygame event → action and enqueue it."""
        act = cls._translate_pygame(event, time.monotonic() if now is None else now)
        if act:
            cls._fifo.put(act)

    # ── external / programmatic path ───────────────────────────────────
    @classmethod
    def post(cls, action: Action) -> None:
        """
        Any thread may call this to inject an already-formed action dict, e.g.:
            EventManager.post({"type": "next"})
        """
        cls._fifo.put(action)

    # ── main-loop consumer ─────────────────────────────────────────────
    @classmethod
    def poll(cls) -> Action | None:
        """Return next queued action or None (non-blocking)."""
        try:
            return cls._fifo.get_nowait()
        except queue.Empty:
            return None

    @classmethod
    def reset(cls) -> None:
        while cls.poll() is not None:
            pass
        cls._gestures = GestureTracker()

    # ── internal translator ───────────────────────────────────────────
    @classmethod
    def _translate_pygame(cls, event, now: float) -> Action | None:
        if event.type == QUIT:
            return {"type": "quit"}

        if event.type == KEYDOWN:
            if event.key in (K_ESCAPE, K_q):
                return {"type": "quit"}
            if event.key in (K_RIGHT, K_SPACE):
                return {"type": "next"}
            if event.key == K_LEFT:
                return {"type": "prev"}
            if event.key == K_RETURN:
                return {"type": "toggle_play"}
            if event.key == K_p:
                return {"type": "toggle_pause"}
            if event.key == K_i:
                return {"type": "toggle_overlay"}
            if event.key == K_f:
                return {"type": "toggle_fullscreen"}
            if event.key == K_m:
                return {"type": "toggle_display_mode"}
            return None

        if event.type == MOUSEBUTTONDOWN and event.button == 1:
            cls._gestures.press(event.pos, now)
            return None
        if event.type == MOUSEBUTTONUP and event.button == 1:
            return cls._gestures.release(event.pos, now)

        # visibility hooks
        if event.type == pygame.WINDOWMINIMIZED:
            return {"type": "pause"}
        if event.type == pygame.WINDOWRESTORED:
            return {"type": "resume"}

        return None
