"""
sink.py – the output side of the engine

A sink renders whatever the engine hands to ``display()`` and owns at most
one video decoder at a time.  It reports video lifecycle events back through
the callbacks installed by ``bind()``; each callback takes the reference the
event concerns so the engine can drop events for media that is gone.

The base class doubles as a headless sink: every video is reported prepared
straight away and never completes on its own.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from media import CurrentMedia, MediaReference

log = logging.getLogger(__name__)

_Callback = Callable[..., None]


def _noop(*_args, **_kw) -> None:
    return None


class PlaybackSink:
    def __init__(self) -> None:
        self._on_prepared: _Callback = _noop
        self._on_completed: _Callback = _noop
        self._on_error: _Callback = _noop
        self.video: Optional[MediaReference] = None

    def bind(self,
             on_prepared: _Callback,
             on_completed: _Callback,
             on_error: _Callback) -> None:
        self._on_prepared = on_prepared
        self._on_completed = on_completed
        self._on_error = on_error

    # ── rendering ──────────────────────────────────────────────────────────
    def display(self, media: Optional[CurrentMedia]) -> None:
        if media is None:
            log.info("[sink] nothing to display")
        else:
            log.info("[sink] display %s", media.reference.name)

    # ── video control ──────────────────────────────────────────────────────
    def prepare_video(self, ref: MediaReference, muted: bool = False) -> None:
        self.video = ref
        self._on_prepared(ref)

    def start_video(self) -> None:
        pass

    def pause_video(self) -> None:
        pass

    def stop_video(self) -> None:
        """Release the decoder; safe to call when nothing is loaded."""
        self.video = None

    # ── helpers for subclasses ─────────────────────────────────────────────
    def _report_prepared(self, ref: MediaReference) -> None:
        self._on_prepared(ref)

    def _report_completed(self, ref: MediaReference) -> None:
        self._on_completed(ref)

    def _report_error(self, ref: MediaReference, cause: object = None) -> None:
        self._on_error(ref, cause)
