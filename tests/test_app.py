"""Tests for ScreenSink, the pygame/GStreamer sink, driven by a fake player."""

import numpy as np
import pytest

pytest.importorskip("gi")

from app import ScreenSink, SlideshowApp
from conftest import ScriptedLoader, image, video
from engine import MediaCycleEngine
from media import DisplayMode, PlaybackError, PlaybackState, RunState
from media_loader import MediaLoader
from playlist_store import PlaylistStore


class FakePlayer:
    def __init__(self):
        self.on_prepared = self.on_eos = self.on_error = None
        self.calls = []
        self.sar = 1.0
        self.frame = None

    def prepare(self, path, muted=False):
        self.calls.append(("prepare", path, muted))

    def play(self):
        self.calls.append(("play",))

    def pause(self):
        self.calls.append(("pause",))

    def close(self):
        self.calls.append(("close",))

    def decode_frame(self):
        return self.frame


@pytest.fixture
def rig(scheduler):
    player = FakePlayer()
    sink = ScreenSink(player)
    store = PlaylistStore([video("/m/v1.mp4"), video("/m/v2.mp4"), image("/m/c.jpg")],
                          interval_seconds=5)
    engine = MediaCycleEngine(store, ScriptedLoader(), sink, scheduler)
    engine.add_listener(sink.display)
    return player, sink, engine


def test_player_events_reach_engine(rig):
    player, sink, engine = rig
    engine.start()
    assert player.calls[0] == ("prepare", "/m/v1.mp4", False)

    player.on_prepared("/m/v1.mp4")
    assert engine.current.playback is PlaybackState.PLAYING
    assert ("play",) in player.calls

    player.on_eos("/m/v1.mp4")
    assert engine.current.reference.uri == "/m/v2.mp4"
    assert ("close",) in player.calls


def test_events_for_other_paths_ignored(rig):
    player, sink, engine = rig
    engine.start()
    player.on_prepared("/m/v1.mp4")
    engine.on_user_swipe_forward()

    player.on_eos("/m/v1.mp4")
    player.on_error("/m/v1.mp4", "late error")
    assert engine.current.reference.uri == "/m/v2.mp4"


def test_player_error_skips_video(rig):
    player, sink, engine = rig
    engine.start()
    player.on_error("/m/v1.mp4", "no decoder")
    assert engine.current.reference.uri == "/m/v2.mp4"


def test_frame_prefers_live_video(rig):
    player, sink, engine = rig
    engine.start()
    thumb, _ = sink.frame()
    assert thumb is engine.current.content.frame

    player.frame = np.zeros((2, 2, 3), np.uint8)
    frame, sar = sink.frame()
    assert frame is player.frame
    assert sar == 1.0


def test_frame_for_nothing(rig):
    _, sink, _ = rig
    assert sink.frame() == (None, 1.0)


def test_dispatch_maps_actions(rig):
    _, _, engine = rig
    app = SlideshowApp.__new__(SlideshowApp)
    app.engine = engine
    app.force_overlay = False
    engine.start()

    assert app.dispatch({"type": "next"})
    assert engine.current_index == 1
    assert app.dispatch({"type": "prev"})
    assert engine.current_index == 0
    app.dispatch({"type": "toggle_pause"})
    assert engine.run_state is RunState.PAUSED
    app.dispatch({"type": "toggle_pause"})
    assert engine.run_state is RunState.RUNNING
    app.dispatch({"type": "toggle_overlay"})
    assert app.force_overlay
    assert app.dispatch({"type": "quit"}) is False


def test_dispatch_toggles_display_mode(rig):
    _, _, engine = rig
    app = SlideshowApp.__new__(SlideshowApp)
    app.engine = engine
    app.loader = MediaLoader(DisplayMode.FIT)

    app.dispatch({"type": "toggle_display_mode"})
    assert app.loader.display_mode is DisplayMode.FILL
    app.dispatch({"type": "toggle_display_mode"})
    assert app.loader.display_mode is DisplayMode.FIT


def test_player_error_reported_as_playback_error(rig):
    player, sink, _ = rig
    causes = []
    sink.bind(lambda ref: None, lambda ref: None, lambda ref, cause: causes.append(cause))
    sink.prepare_video(video("/m/v1.mp4"))

    player.on_error("/m/v1.mp4", "no decoder")
    assert isinstance(causes[0], PlaybackError)
    assert "no decoder" in str(causes[0])

    sink.prepare_video(video("https://host/v.mp4"))
    assert isinstance(causes[1], PlaybackError)
