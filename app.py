#!/usr/bin/env python3
"""
app.py – pygame host for the slideshow engine

One window, one VideoPlayer.  The engine decides what is shown; this module
renders it, feeds input actions from events.py into the engine and maps
window visibility to pause/resume.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

import pygame

import config
from engine import MediaCycleEngine
from events import EventManager
from media import (CurrentMedia, DisplayMode, LoadError, MediaReference, PlaybackError,
                   RunState, uri_to_path)
from media_loader import MediaLoader
from overlays import draw_overlay
from playlist_store import JsonPlaylistStore
from renderer import render_frame
from sink import PlaybackSink
from video_player import VideoPlayer

log = logging.getLogger(__name__)


# ── sink ───────────────────────────────────────────────────────────────────
class ScreenSink(PlaybackSink):
    """Keeps the last committed media for the render loop; videos via GStreamer."""

    def __init__(self, player: VideoPlayer):
        super().__init__()
        self.player = player
        self.player.on_prepared = self._gst_prepared
        self.player.on_eos = self._gst_eos
        self.player.on_error = self._gst_error
        self.media: Optional[CurrentMedia] = None

    def display(self, media: Optional[CurrentMedia]) -> None:
        self.media = media

    def prepare_video(self, ref: MediaReference, muted: bool = False) -> None:
        self.video = ref
        try:
            path = uri_to_path(ref.uri)
        except LoadError as exc:
            self._report_error(ref, PlaybackError(f"cannot play {ref.uri}: {exc}"))
            return
        self.player.prepare(path, muted)

    def start_video(self) -> None:
        self.player.play()

    def pause_video(self) -> None:
        self.player.pause()

    def stop_video(self) -> None:
        self.player.close()
        self.video = None

    def frame(self):
        """Latest video frame, else the item's still (image or thumbnail)."""
        media = self.media
        if media is None:
            return None, 1.0
        if media.is_video and self.video == media.reference:
            frame = self.player.decode_frame()
            if frame is not None:
                return frame, self.player.sar
        content = media.content
        return (content.frame if content is not None else None), 1.0

    # ── player callbacks (GStreamer bus thread) ─────────────────────────────
    def _matching(self, path: str) -> Optional[MediaReference]:
        ref = self.video
        if ref is None:
            return None
        try:
            return ref if uri_to_path(ref.uri) == path else None
        except LoadError:
            return None

    def _gst_prepared(self, path: str) -> None:
        ref = self._matching(path)
        if ref is not None:
            self._report_prepared(ref)

    def _gst_eos(self, path: str) -> None:
        ref = self._matching(path)
        if ref is not None:
            self._report_completed(ref)

    def _gst_error(self, path: str, message: str) -> None:
        ref = self._matching(path)
        if ref is not None:
            self._report_error(ref, PlaybackError(f"{path}: {message}"))


# ── main application ───────────────────────────────────────────────────────
class SlideshowApp:
    def __init__(self, store_path: str | None = None):
        # window ----------------------------------------------------------
        pygame.init()
        pygame.mouse.set_visible(False)
        self.screen = self._set_mode()
        self.clock = pygame.time.Clock()

        # core state ------------------------------------------------------
        self.store = JsonPlaylistStore(store_path or config.STORE_PATH)
        self.player = VideoPlayer()
        self.sink = ScreenSink(self.player)
        w, h = self.screen.get_size()
        self.loader = MediaLoader()
        self.engine = MediaCycleEngine(self.store, self.loader, self.sink,
                                       width=w, height=h)
        self.engine.add_listener(self.sink.display)
        self.engine.add_listener(self._on_media)

        # overlay ---------------------------------------------------------
        self.overlay_expire = time.time() + config.OVERLAY_DURATION
        self.force_overlay = False

    def _set_mode(self) -> pygame.Surface:
        return pygame.display.set_mode(
            (0, 0) if config.FULLSCREEN else config.WINDOWED_SIZE,
            pygame.FULLSCREEN if config.FULLSCREEN else 0,
        )

    def _on_media(self, media: Optional[CurrentMedia]) -> None:
        self.overlay_expire = time.time() + config.OVERLAY_DURATION

    # ── actions ───────────────────────────────────────────────────────────
    def dispatch(self, act: dict) -> bool:
        """Apply one action; returns False when the app should quit."""
        t = act.get("type")
        if t == "quit":
            return False
        if t == "next":
            self.engine.on_user_swipe_forward()
        elif t == "prev":
            self.engine.on_user_swipe_backward()
        elif t == "toggle_play":
            self.engine.on_user_double_tap()
        elif t == "pause":
            self.engine.pause()
        elif t == "resume":
            self.engine.resume()
        elif t == "toggle_pause":
            if self.engine.run_state is RunState.RUNNING:
                self.engine.pause()
            else:
                self.engine.resume()
        elif t == "toggle_overlay":
            self.force_overlay ^= True
        elif t == "toggle_display_mode":
            mode = self.loader.display_mode
            # applies from the next loaded item on
            self.loader.display_mode = (DisplayMode.FILL if mode is DisplayMode.FIT
                                        else DisplayMode.FIT)
            log.info("[app] display mode %s", self.loader.display_mode.value)
        elif t == "toggle_fullscreen":
            config.FULLSCREEN ^= True
            self.screen = self._set_mode()
            pygame.mouse.set_visible(False)
            self.engine.set_target_size(*self.screen.get_size())
        else:
            log.warning("[app] unknown action %r", act)
        return True

    # ── main loop ─────────────────────────────────────────────────────────
    def run(self):
        self.engine.start()
        running = True
        while running:
            for e in pygame.event.get():
                EventManager.handle(e)

            # drain external queue (non-blocking)
            while (act := EventManager.poll()):
                if not self.dispatch(act):
                    running = False

            frame, sar = self.sink.frame()
            render_frame(self.screen, frame, sar, self.loader.display_mode)

            if self.force_overlay or time.time() < self.overlay_expire:
                draw_overlay(self.screen, self.engine, self.store)

            pygame.display.flip()
            self.clock.tick(config.FPS)

        self.engine.stop()
        self.player.shutdown()
        pygame.quit()


if __name__ == "__main__":
    SlideshowApp().run()
