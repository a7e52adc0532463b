"""
engine.py – MediaCycleEngine, the slideshow state machine

State is ``RunState × PlaybackState`` plus the current item.  Every event
source (timer thread, input dispatcher, sink callbacks) calls into the same
methods; they all serialise on one re-entrant lock.

A transition runs in three steps:

1. under the lock: pick the next index, persist index + timestamp, remember
   the reference as "most recently requested";
2. without the lock: ask the loader for content (may block on disk I/O);
3. under the lock: commit the result, or throw it away when a newer request
   targeted a different reference in the meantime.

Anything with side effects outside the engine (releasing the previous item,
notifying listeners, driving the sink) is queued during the commit and run
after the lock is released, in commit order, by whichever thread happens to
drain the queue.  Listeners may call back into the engine.

Load failures skip ahead one item at a time, at most ``count`` attempts per
request; after that the engine reports "no playable media" (``None``) to
its listeners and stays navigable.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import queue
import threading
from typing import Callable, List, Optional

import config
from media import (CurrentMedia, Direction, EmptyCollection, InvalidIndex, LoadError,
                   MediaReference, PlaybackState, RunState)
from scheduler import Scheduler, compute_catch_up_delay
from sink import PlaybackSink

log = logging.getLogger(__name__)

Listener = Callable[[Optional[CurrentMedia]], None]


class MediaCycleEngine:
    def __init__(self,
                 store,
                 loader,
                 sink: Optional[PlaybackSink] = None,
                 scheduler: Optional[Scheduler] = None,
                 *,
                 width: int = 0,
                 height: int = 0,
                 mute_videos: Optional[bool] = None) -> None:
        self._store = store
        self._loader = loader
        self._sink = sink or PlaybackSink()
        self._scheduler = scheduler or Scheduler()
        self._size = (width, height)
        self._mute = getattr(config, "MUTE_VIDEOS", False) if mute_videos is None else mute_videos

        self._lock = threading.RLock()
        self._run_state = RunState.STOPPED
        self._current: Optional[CurrentMedia] = None
        self._requested: Optional[MediaReference] = None
        self._generation = 0          # bumped per transition request and by stop()
        self._tick_id = 0             # bumped whenever the timer is armed or cancelled
        self._armed_at: Optional[float] = None
        self._armed_delay = 0.0
        self._playback_failures = 0

        self._listeners: List[Listener] = []
        self._effects: "queue.Queue[tuple]" = queue.Queue()
        self._drain_lock = threading.Lock()

        self._sink.bind(self.on_video_prepared, self.on_video_completed, self.on_video_error)

    # ── read-only views ────────────────────────────────────────────────────
    @property
    def run_state(self) -> RunState:
        with self._lock:
            return self._run_state

    @property
    def current(self) -> Optional[CurrentMedia]:
        with self._lock:
            return self._current

    @property
    def current_index(self) -> Optional[int]:
        with self._lock:
            return self._current.index if self._current else None

    def seconds_until_next(self) -> Optional[float]:
        """Time left on the natural-advance timer, None when none is armed."""
        with self._lock:
            if self._armed_at is None or self._scheduler.pending is None:
                return None
            return max(0.0, self._armed_delay - (self._scheduler.now() - self._armed_at))

    def set_target_size(self, width: int, height: int) -> None:
        with self._lock:
            self._size = (width, height)

    # ── listeners ──────────────────────────────────────────────────────────
    def add_listener(self, callback: Listener) -> None:
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    # ── lifecycle ──────────────────────────────────────────────────────────
    def start(self) -> None:
        """Run (or resume) the slideshow; a no-op while already running."""
        plan = None
        with self._lock:
            if self._run_state is RunState.RUNNING:
                return
            resumed = self._run_state is RunState.PAUSED
            self._run_state = RunState.RUNNING
            log.info("[engine] %s", "resumed" if resumed else "started")

            cur = self._current
            if cur is None:
                plan = "show"
            elif cur.is_video:
                if cur.playback is PlaybackState.PAUSED:
                    self._set_playback(PlaybackState.PLAYING)
                    self._post(self._sink.start_video)
            else:
                interval = self._interval()
                last = self._store.last_advance_timestamp()
                delay, steps = (compute_catch_up_delay(last, interval, self._scheduler.now())
                                if last > 0 else (interval, 0))
                if steps >= 1:
                    plan = "catch_up"
                else:
                    # an image's remaining time is not kept across a pause
                    self._arm(interval if resumed else delay)

        if plan == "show":
            self._show_initial()
        elif plan == "catch_up":
            self._request(Direction.NEXT, forced=False)
        self._flush()

    def pause(self) -> None:
        with self._lock:
            if self._run_state is not RunState.RUNNING:
                return
            self._run_state = RunState.PAUSED
            self._cancel_tick()
            cur = self._current
            if cur is not None and cur.is_video and cur.playback is PlaybackState.PLAYING:
                self._set_playback(PlaybackState.PAUSED)
                self._post(self._sink.pause_video)
            log.info("[engine] paused")
        self._flush()

    def resume(self) -> None:
        with self._lock:
            paused = self._run_state is RunState.PAUSED
        if paused:
            self.start()

    def stop(self) -> None:
        with self._lock:
            if self._run_state is RunState.STOPPED and self._current is None:
                return
            self._run_state = RunState.STOPPED
            self._generation += 1
            self._cancel_tick()
            old, self._current = self._current, None
            self._requested = None
            self._playback_failures = 0
            self._post(self._release, old)
            log.info("[engine] stopped")
        self._flush()

    # ── navigation ─────────────────────────────────────────────────────────
    def advance(self, direction: Direction | str = Direction.NEXT,
                forced: bool = False) -> Optional[CurrentMedia]:
        """Move to the next/previous item; returns what is shown afterwards."""
        return self._request(Direction(direction), forced)

    def on_user_swipe_forward(self) -> Optional[CurrentMedia]:
        return self._request(Direction.NEXT, forced=True)

    def on_user_swipe_backward(self) -> Optional[CurrentMedia]:
        return self._request(Direction.PREVIOUS, forced=True)

    def on_user_double_tap(self) -> None:
        """Toggle play/pause of the current video; ignored for images."""
        with self._lock:
            cur = self._current
            if cur is None or not cur.is_video:
                return
            if cur.playback is PlaybackState.PLAYING:
                self._set_playback(PlaybackState.PAUSED)
                self._post(self._sink.pause_video)
            elif cur.playback is PlaybackState.PAUSED:
                self._set_playback(PlaybackState.PLAYING)
                self._post(self._sink.start_video)
        self._flush()

    # ── sink callbacks ─────────────────────────────────────────────────────
    def on_video_prepared(self, ref: Optional[MediaReference] = None) -> None:
        with self._lock:
            cur = self._current
            if not self._is_current_video(cur, ref) or cur.playback is not PlaybackState.PREPARING:
                return
            self._playback_failures = 0
            if self._run_state is RunState.RUNNING:
                self._set_playback(PlaybackState.PLAYING)
                self._post(self._sink.start_video)
            else:
                self._set_playback(PlaybackState.PAUSED)
        self._flush()

    def on_video_completed(self, ref: Optional[MediaReference] = None) -> None:
        with self._lock:
            cur = self._current
            if not self._is_current_video(cur, ref):
                log.debug("[engine] completion for stale video ignored")
                return
            self._set_playback(PlaybackState.COMPLETED)
            log.debug("[engine] video completed: %s", cur.reference.name)
        self._request(Direction.NEXT, forced=True)

    def on_video_error(self, ref: Optional[MediaReference] = None, cause: object = None) -> None:
        with self._lock:
            cur = self._current
            if not self._is_current_video(cur, ref):
                log.debug("[engine] error for stale video ignored")
                return
            self._set_playback(PlaybackState.ERROR)
            self._playback_failures += 1
            give_up = self._playback_failures >= max(1, self._store.count())
            if give_up:
                log.error("[engine] %d videos failed in a row, no playable media",
                          self._playback_failures)
                self._clear()
            else:
                log.warning("[engine] playback failed for %s: %s", cur.reference.name, cause)
        if give_up:
            self._flush()
            return
        self._request(Direction.NEXT, forced=True)

    # ── transitions ────────────────────────────────────────────────────────
    def _request(self, direction: Direction, forced: bool,
                 tick_id: Optional[int] = None) -> Optional[CurrentMedia]:
        with self._lock:
            if self._run_state is RunState.STOPPED:
                log.debug("[engine] %s ignored while stopped", direction.value)
                return None
            if tick_id is not None and tick_id != self._tick_id:
                log.debug("[engine] stale tick ignored")
                return self._current
            if self._run_state is RunState.PAUSED and not forced:
                return self._current
            if forced:
                self._cancel_tick()

            gen = self._begin()
            if forced or direction is Direction.PREVIOUS:
                steps, delay = 1, self._interval()
            else:
                steps, delay = self._natural_steps()
        return self._transition(gen, direction, steps, delay)

    def _show_initial(self) -> Optional[CurrentMedia]:
        """Load the item due now: the stored one, or later ones after idling."""
        with self._lock:
            if self._run_state is not RunState.RUNNING:
                return self._current
            gen = self._begin()
            interval = self._interval()
            last = self._store.last_advance_timestamp()
            if last <= 0:
                steps, delay, stamp = 0, interval, True
            else:
                delay, steps = compute_catch_up_delay(last, interval, self._scheduler.now())
                stamp = steps > 0
        return self._transition(gen, Direction.NEXT, steps, delay, stamp)

    def _transition(self, gen: int, direction: Direction, steps: int,
                    delay: float, stamp: bool = True) -> Optional[CurrentMedia]:
        with self._lock:
            if gen != self._generation:
                return self._current
            count = self._store.count()
            if count == 0:
                log.info("[engine] collection is empty")
                self._clear()
            else:
                try:
                    index = self._store.checked_index()
                except InvalidIndex as exc:
                    log.debug("[engine] %s, using 0", exc)
                    index = 0
                ordering = self._store.ordering()
        if count == 0:
            self._flush()
            return None

        sign = 1 if direction is Direction.NEXT else -1
        for attempt in range(count):
            with self._lock:
                if gen != self._generation:
                    log.debug("[engine] transition superseded")
                    return self._current
                index = (index + sign * (steps if attempt == 0 else 1)) % count
                try:
                    ref = self._store.reference_at(index, ordering)
                except EmptyCollection:
                    # emptied by an external edit since count() was read
                    log.info("[engine] collection is empty")
                    self._clear()
                    ref = None
                else:
                    self._store.commit(index, self._scheduler.now() if stamp else None)
                    self._requested = ref
                    size = self._size
            if ref is None:
                self._flush()
                return None

            try:
                content = self._loader.load(ref, *size)
            except LoadError as exc:
                log.warning("[engine] skipping %s: %s", ref.name, exc)
                continue
            except Exception:
                log.exception("[engine] loader crashed on %s, skipping", ref.name)
                continue

            with self._lock:
                if self._requested != ref:
                    stale = True
                else:
                    stale = False
                    self._commit(ref, content, index, delay)
            if stale:
                log.debug("[engine] discarding stale load of %s", ref.name)
                content.release()
                return self.current
            self._flush()
            return self.current

        with self._lock:
            if gen != self._generation:
                return self._current
            log.error("[engine] no playable media among %d items", count)
            self._clear()
        self._flush()
        return None

    def _commit(self, ref: MediaReference, content, index: int, delay: float) -> None:
        """Replace the current item; called with the lock held."""
        old = self._current
        media = CurrentMedia(ref, content,
                             PlaybackState.NOT_STARTED if ref.is_video else None,
                             index)
        self._current = media
        self._post(self._release, old)
        self._post(self._notify, media)
        log.info("[engine] showing #%d %s", index, ref.name)

        if ref.is_video:
            # videos advance on completion
            self._cancel_tick()
            self._set_playback(PlaybackState.PREPARING)
            self._post(self._sink.prepare_video, ref, self._mute)
        else:
            self._playback_failures = 0
            if self._run_state is RunState.RUNNING:
                self._arm(delay)
            else:
                self._cancel_tick()

    def _clear(self) -> None:
        """Show nothing; called with the lock held."""
        old, self._current = self._current, None
        self._requested = None
        self._playback_failures = 0
        self._post(self._release, old)
        self._post(self._notify, None)
        # keep polling so media added later gets picked up
        if self._run_state is RunState.RUNNING:
            self._arm(self._interval())
        else:
            self._cancel_tick()

    # ── timer ──────────────────────────────────────────────────────────────
    def _arm(self, delay: float) -> None:
        self._tick_id += 1
        self._armed_at = self._scheduler.now()
        self._armed_delay = delay
        self._scheduler.schedule_after(delay, functools.partial(self._on_tick, self._tick_id))

    def _cancel_tick(self) -> None:
        self._tick_id += 1
        self._armed_at = None
        self._scheduler.cancel()

    def _on_tick(self, tick_id: int) -> None:
        self._request(Direction.NEXT, forced=False, tick_id=tick_id)

    # ── helpers ────────────────────────────────────────────────────────────
    def _begin(self) -> int:
        self._generation += 1
        return self._generation

    def _interval(self) -> int:
        interval = self._store.interval_seconds()
        return interval if interval > 0 else 1

    def _natural_steps(self) -> tuple[int, float]:
        interval = self._interval()
        last = self._store.last_advance_timestamp()
        if last <= 0:
            return 1, interval
        delay, steps = compute_catch_up_delay(last, interval, self._scheduler.now())
        if steps == 0:
            # timer ran a little early
            return 1, interval
        return steps, delay

    def _set_playback(self, state: PlaybackState) -> None:
        self._current = dataclasses.replace(self._current, playback=state)

    @staticmethod
    def _is_current_video(cur: Optional[CurrentMedia], ref: Optional[MediaReference]) -> bool:
        return cur is not None and cur.is_video and (ref is None or ref == cur.reference)

    # ── post-commit effects ────────────────────────────────────────────────
    def _post(self, fn: Callable, *args) -> None:
        self._effects.put((fn, args))

    def _flush(self) -> None:
        while True:
            if not self._drain_lock.acquire(blocking=False):
                return          # another thread (or an outer frame) is draining
            try:
                while True:
                    try:
                        fn, args = self._effects.get_nowait()
                    except queue.Empty:
                        break
                    try:
                        fn(*args)
                    except Exception:
                        log.exception("[engine] %s failed", getattr(fn, "__name__", fn))
            finally:
                self._drain_lock.release()
            if self._effects.empty():
                return

    def _release(self, media: Optional[CurrentMedia]) -> None:
        if media is None:
            return
        if media.is_video:
            self._sink.stop_video()
        if media.content is not None:
            media.content.release()

    def _notify(self, media: Optional[CurrentMedia]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for cb in listeners:
            try:
                cb(media)
            except Exception:
                log.exception("[engine] listener %r failed", cb)
