"""
playlist_store.py

Ordered media collection plus the persisted slideshow position.

``PlaylistStore`` keeps everything in memory behind one lock.
``JsonPlaylistStore`` persists the same state to a JSON document::

    {
      "items":            [{"uri": "...", "type": "image"}, ...],
      "ordering":         "selection",
      "current_index":    0,
      "last_advance":     0.0,
      "interval_seconds": 5,
      "shuffle_seed":     1234
    }

The index and the last-advance timestamp are written together by
``commit()``, so a reader never sees one without the other.
"""

from __future__ import annotations

import json
import logging
import os
import random
import tempfile
import threading
from typing import Iterable, List, Optional

import config
from media import (EmptyCollection, InvalidIndex, MediaReference, MediaType, Ordering,
                   determine_type)

log = logging.getLogger(__name__)


class PlaylistStore:
    """In-memory store; the engine only ever talks to this interface."""

    def __init__(self,
                 items: Iterable[MediaReference] = (),
                 *,
                 ordering: Ordering | str | None = None,
                 current_index: int = 0,
                 last_advance: float = 0.0,
                 interval_seconds: int | None = None,
                 shuffle_seed: int | None = None) -> None:
        self._lock = threading.RLock()
        self._items: List[MediaReference] = list(items)
        self._ordering = Ordering.parse(ordering if ordering is not None
                                        else getattr(config, "ORDERING", "selection"))
        self._current_index = int(current_index)
        self._last_advance = float(last_advance)
        self._interval = int(interval_seconds if interval_seconds is not None
                             else getattr(config, "INTERVAL_SECONDS", 5))
        self._seed = shuffle_seed if shuffle_seed is not None else random.randrange(1 << 30)
        self._permutation: Optional[List[int]] = None

    # ── reads ──────────────────────────────────────────────────────────────
    def count(self) -> int:
        with self._lock:
            return len(self._items)

    def ordering(self) -> Ordering:
        with self._lock:
            return self._ordering

    def current_index(self) -> int:
        with self._lock:
            return self._current_index

    def checked_index(self) -> int:
        """The stored index; InvalidIndex when it lies outside the items."""
        with self._lock:
            n = len(self._items)
            if not 0 <= self._current_index < n:
                raise InvalidIndex(f"stored index {self._current_index} outside 0..{n - 1}")
            return self._current_index

    def last_advance_timestamp(self) -> float:
        with self._lock:
            return self._last_advance

    def interval_seconds(self) -> int:
        with self._lock:
            return self._interval

    def items(self) -> List[MediaReference]:
        with self._lock:
            return list(self._items)

    def reference_at(self, logical_index: int, ordering: Ordering | None = None) -> MediaReference:
        """Map a logical index to an item according to *ordering*."""
        with self._lock:
            n = len(self._items)
            if not n:
                raise EmptyCollection("no media references")
            logical_index %= n
            if Ordering.parse(ordering or self._ordering) is Ordering.RANDOM:
                return self._items[self._shuffled()[logical_index]]
            return self._items[logical_index]

    # ── writes ─────────────────────────────────────────────────────────────
    def set_current_index(self, index: int) -> None:
        with self._lock:
            self._current_index = int(index)
            self._save()

    def set_last_advance_timestamp(self, ts: float) -> None:
        with self._lock:
            self._last_advance = float(ts)
            self._save()

    def commit(self, index: int, timestamp: float | None) -> None:
        """Write the index and (unless None) the timestamp in one step."""
        with self._lock:
            self._current_index = int(index)
            if timestamp is not None:
                self._last_advance = float(timestamp)
            self._save()

    def set_items(self, items: Iterable[MediaReference]) -> None:
        with self._lock:
            self._items = list(items)
            self._permutation = None
            self._save()

    def set_interval_seconds(self, seconds: int) -> None:
        with self._lock:
            self._interval = int(seconds)
            self._save()

    def set_ordering(self, ordering: Ordering | str) -> None:
        with self._lock:
            self._ordering = Ordering.parse(ordering)
            self._save()

    # ── internals ──────────────────────────────────────────────────────────
    def _shuffled(self) -> List[int]:
        if self._permutation is None or len(self._permutation) != len(self._items):
            perm = list(range(len(self._items)))
            random.Random(self._seed).shuffle(perm)
            self._permutation = perm
        return self._permutation

    def _save(self) -> None:
        """Hook for persistent subclasses; called with the lock held."""


# ── JSON-backed store ──────────────────────────────────────────────────────
def _item_to_json(ref: MediaReference) -> dict:
    return {"uri": ref.uri, "type": ref.media_type.value}


def _item_from_json(rec: dict) -> MediaReference:
    uri = rec["uri"]
    try:
        kind = MediaType(rec.get("type"))
    except ValueError:
        kind = determine_type(uri)
    return MediaReference(uri, kind)


class JsonPlaylistStore(PlaylistStore):
    def __init__(self, path: str | None = None) -> None:
        super().__init__()
        self.path = os.path.abspath(path or config.STORE_PATH)
        self._mtime: Optional[float] = None
        self._load()

    def count(self) -> int:
        # external edits (playlist_builder, hand edits) surface here,
        # i.e. on the next advance
        self._maybe_reload()
        return super().count()

    # ---------------------------------------------------------------- io
    def _maybe_reload(self) -> None:
        try:
            mtime = os.path.getmtime(self.path)
        except OSError:
            return
        if mtime != self._mtime:
            log.info("[store] %s changed on disk, reloading", self.path)
            self._load()

    def _load(self) -> None:
        with self._lock:
            if not os.path.isfile(self.path):
                log.info("[store] %s not found, starting empty", self.path)
                return
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                items = [_item_from_json(rec) for rec in data.get("items", [])]
                index = int(data.get("current_index", 0))
                last = float(data.get("last_advance", 0.0))
                interval = int(data.get("interval_seconds", self._interval))
                seed = int(data.get("shuffle_seed", self._seed))
            except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
                log.error("[store] cannot read %s: %s", self.path, exc)
                self._mtime = os.path.getmtime(self.path)
                return

            self._items = items
            self._permutation = None
            self._ordering = Ordering.parse(data.get("ordering", self._ordering))
            self._current_index = index
            self._last_advance = last
            self._interval = interval
            self._seed = seed
            self._mtime = os.path.getmtime(self.path)
            log.debug("[store] loaded %d items from %s", len(items), self.path)

    def _save(self) -> None:
        data = {
            "items":            [_item_to_json(r) for r in self._items],
            "ordering":         self._ordering.value,
            "current_index":    self._current_index,
            "last_advance":     self._last_advance,
            "interval_seconds": self._interval,
            "shuffle_seed":     self._seed,
        }
        folder = os.path.dirname(self.path)
        os.makedirs(folder, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".slideshow-", suffix=".json", dir=folder)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except OSError:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise
        self._mtime = os.path.getmtime(self.path)
