"""
media.py

Value types shared by the store, the loader, the engine and the sinks,
plus the slideshow error taxonomy.
"""

from __future__ import annotations

import mimetypes
import os
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


# ── enums ──────────────────────────────────────────────────────────────────
class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class Ordering(str, Enum):
    SELECTION = "selection"
    RANDOM = "random"

    @classmethod
    def parse(cls, value: "Ordering | str | None") -> "Ordering":
        if isinstance(value, Ordering):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.SELECTION


class DisplayMode(str, Enum):
    """FIT letter-boxes the whole item; FILL covers the screen and crops."""

    FIT = "fit"
    FILL = "fill"

    @classmethod
    def parse(cls, value: "DisplayMode | str | None") -> "DisplayMode":
        if isinstance(value, DisplayMode):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.FIT


class PlaybackState(str, Enum):
    """Substate of a video item; images carry ``None`` instead."""

    NOT_STARTED = "not_started"
    PREPARING = "preparing"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class RunState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class Direction(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"


# ── errors ─────────────────────────────────────────────────────────────────
class SlideshowError(Exception):
    """Base class for everything the slideshow raises on purpose."""


class LoadError(SlideshowError):
    """Content could not be read, decoded or is of an unsupported format."""


class PlaybackError(SlideshowError):
    """Video preparation or playback failed inside a sink."""


class EmptyCollection(SlideshowError):
    """No media references are available (or none of them is playable)."""


class InvalidIndex(SlideshowError):
    """A stored index lies outside the collection."""


# ── references ─────────────────────────────────────────────────────────────
def uri_to_path(uri: str) -> str:
    """Map a plain path or ``file://`` URI to a local path.

    Raises LoadError for any other scheme.
    """
    parsed = urllib.parse.urlparse(uri)
    if parsed.scheme == "file":
        return urllib.request.url2pathname(parsed.path)
    # one-letter "schemes" are Windows drive letters
    if parsed.scheme and len(parsed.scheme) > 1:
        raise LoadError(f"unsupported URI scheme: {parsed.scheme}")
    return uri


def determine_type(uri: str) -> MediaType:
    mime, _ = mimetypes.guess_type(uri)
    if mime and mime.startswith("video/"):
        return MediaType.VIDEO
    return MediaType.IMAGE


@dataclass(frozen=True, eq=False)
class MediaReference:
    uri: str
    media_type: MediaType = MediaType.IMAGE

    @classmethod
    def from_uri(cls, uri: str) -> "MediaReference":
        return cls(uri, determine_type(uri))

    @property
    def name(self) -> str:
        path = urllib.parse.unquote(urllib.parse.urlparse(self.uri).path)
        return os.path.basename(path) or self.uri

    @property
    def is_video(self) -> bool:
        return self.media_type is MediaType.VIDEO

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MediaReference):
            return NotImplemented
        return self.uri == other.uri

    def __hash__(self) -> int:
        return hash(self.uri)


# ── loaded payloads ────────────────────────────────────────────────────────
@dataclass
class LoadedContent:
    """Decoded display content: an RGB frame (HxWx3 uint8) and its size.

    For videos the frame is a thumbnail and ``duration`` the clip length.
    """

    frame: Any
    width: int
    height: int
    duration: float = 0.0
    released: bool = field(default=False, compare=False)

    def release(self) -> None:
        self.frame = None
        self.released = True


@dataclass(frozen=True)
class CurrentMedia:
    reference: MediaReference
    content: Optional[LoadedContent]
    playback: Optional[PlaybackState]
    index: int

    @property
    def is_video(self) -> bool:
        return self.reference.is_video
