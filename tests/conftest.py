"""pytest configuration and shared fakes for the slideshow tests."""

import logging
import os

import pytest

# pygame must not open a real window or audio device under test
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

from engine import MediaCycleEngine
from events import EventManager
from media import LoadedContent, LoadError, MediaReference, MediaType
from playlist_store import PlaylistStore
from scheduler import Scheduler
from sink import PlaybackSink


# ── time ───────────────────────────────────────────────────────────────────
class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


class FakeTimer:
    """Stands in for threading.Timer; fires only when the test says so."""

    def __init__(self, registry, delay, fn, args=(), kwargs=None):
        self.registry = registry
        self.delay = delay
        self.fn = fn
        self.args = args
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.finished = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    @property
    def live(self) -> bool:
        return self.started and not (self.cancelled or self.finished)

    def fire(self):
        self.finished = True
        self.fn(*self.args, **self.kwargs)


class TimerRegistry:
    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, delay, fn, args=(), kwargs=None) -> FakeTimer:
        timer = FakeTimer(self, delay, fn, args, kwargs)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.live]

    def fire_pending(self) -> None:
        live = self.live
        assert len(live) == 1, f"expected one pending timer, got {live}"
        live[0].fire()


# ── collaborators ──────────────────────────────────────────────────────────
class RecordingSink(PlaybackSink):
    """Records sink calls; video events are reported by the test."""

    def __init__(self):
        super().__init__()
        self.calls: list[tuple] = []
        self.displayed: list = []

    def display(self, media):
        self.displayed.append(media)

    def prepare_video(self, ref, muted=False):
        self.video = ref
        self.calls.append(("prepare", ref.uri, muted))

    def start_video(self):
        self.calls.append(("start",))

    def pause_video(self):
        self.calls.append(("pause",))

    def stop_video(self):
        self.calls.append(("stop",))
        self.video = None

    # test helpers
    def prepared(self, ref=None):
        self._report_prepared(ref or self.video)

    def completed(self, ref=None):
        self._report_completed(ref or self.video)

    def failed(self, ref=None, cause="decoder error"):
        self._report_error(ref or self.video, cause)

    def names(self) -> list:
        return [c[0] for c in self.calls]


class ScriptedLoader:
    """Returns tiny content for every uri except those listed in *failing*."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.loads: list[str] = []
        self.produced: list[LoadedContent] = []
        self.before_return = None       # hook run after "decoding", before returning

    def load(self, ref, width, height):
        self.loads.append(ref.uri)
        if ref.uri in self.failing:
            raise LoadError(f"cannot decode {ref.uri}")
        content = LoadedContent(frame=object(), width=4, height=3)
        self.produced.append(content)
        if self.before_return is not None:
            hook, self.before_return = self.before_return, None
            hook(ref)
        return content


def image(uri: str) -> MediaReference:
    return MediaReference(uri, MediaType.IMAGE)


def video(uri: str) -> MediaReference:
    return MediaReference(uri, MediaType.VIDEO)


# ── fixtures ───────────────────────────────────────────────────────────────
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return TimerRegistry()


@pytest.fixture
def scheduler(timers, clock):
    return Scheduler(timer_factory=timers, clock=clock)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def loader():
    return ScriptedLoader()


@pytest.fixture
def make_engine(scheduler, sink, loader):
    """Build an engine over an in-memory store; returns (engine, store, seen)."""

    def _make(items, **store_kw):
        store_kw.setdefault("interval_seconds", 5)
        store = PlaylistStore(items, **store_kw)
        engine = MediaCycleEngine(store, loader, sink, scheduler, width=640, height=480)
        seen: list = []
        engine.add_listener(seen.append)
        return engine, store, seen

    return _make


@pytest.fixture(autouse=True)
def _reset_event_queue():
    EventManager.reset()
    yield
    EventManager.reset()


@pytest.fixture(autouse=True, scope="session")
def _quiet_logs():
    logging.getLogger("scheduler").setLevel(logging.INFO)
    yield
