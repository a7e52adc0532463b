"""
playlist_builder.py  – fills the slideshow store from a media folder
Keeps ordering, interval and position already in the store; only the item
list is replaced.  Unreadable videos are skipped.
"""
from __future__ import annotations

import logging
import os
import re
import typing as _t

import av  # PyAV – thin FFmpeg bindings
from av.error import FFmpegError

import config
from media import MediaReference, MediaType, Ordering
from playlist_store import JsonPlaylistStore

log = logging.getLogger(__name__)

IMAGE_EXT = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tif", ".tiff")
VIDEO_EXT = (".mp4", ".mkv", ".avi", ".mov", ".webm", ".m4v")


# ---------- natural sort --------------------------------------------------
def _nat_key(s: str) -> list[_t.Union[int, str]]:
    return [int(t) if t.isdigit() else t.lower()
            for t in re.split(r"(\d+)", s)]


# ---------- probe ---------------------------------------------------------
def _probe_seconds(fp: str) -> float:
    """Clip length in seconds; 0.0 when the file has no readable video."""
    try:
        with av.open(fp) as c:
            vs = next((s for s in c.streams if s.type == "video"), None)
            if not vs:
                return 0.0
            if vs.duration and vs.time_base:
                return float(vs.duration * vs.time_base)
            if c.duration:
                return c.duration / av.time_base
            # no metadata: decode to the last frame
            last_pts = None
            for f in c.decode(vs):
                last_pts = f.pts
            if last_pts is not None and vs.time_base:
                return float(last_pts * vs.time_base)
    except (FFmpegError, OSError) as exc:
        log.debug("[playlist_builder] probe failed for %s: %s", fp, exc)
    return 0.0


# ---------- scan ----------------------------------------------------------
def scan(media_path: str, probe: bool = True) -> list[MediaReference]:
    refs: list[MediaReference] = []
    for root, dirs, files in os.walk(media_path):
        dirs.sort(key=_nat_key)
        for name in sorted(files, key=_nat_key):
            low = name.lower()
            fp = os.path.abspath(os.path.join(root, name))
            if low.endswith(IMAGE_EXT):
                refs.append(MediaReference(fp, MediaType.IMAGE))
            elif low.endswith(VIDEO_EXT):
                if probe and _probe_seconds(fp) <= 0:
                    log.warning("[playlist_builder] skipping unreadable file: %s", fp)
                    continue
                refs.append(MediaReference(fp, MediaType.VIDEO))
    return refs


# ---------- builder -------------------------------------------------------
def build_store(media_path: str,
                store_path: str | None = None,
                *,
                probe: bool = True,
                interval: int | None = None,
                ordering: str | None = None) -> JsonPlaylistStore:
    store = JsonPlaylistStore(store_path or os.path.join(media_path, "slideshow.json"))
    if not os.path.isdir(media_path):
        log.warning("[playlist_builder] %s is not a folder, store left as is", media_path)
        return store

    log.info("[playlist_builder] scanning %s …", media_path)
    refs = scan(media_path, probe=probe)

    if refs != store.items():
        store.set_items(refs)
    if interval is not None:
        store.set_interval_seconds(interval)
    if ordering is not None:
        store.set_ordering(Ordering.parse(ordering))

    videos = sum(1 for r in refs if r.is_video)
    log.info("[playlist_builder] %d images, %d videos → %s",
             len(refs) - videos, videos, store.path)
    return store


# -------------------------------------------------------------------------
if __name__ == "__main__":
    import argparse

    from logging_utils import setup_logging

    ap = argparse.ArgumentParser(description="Rebuild the slideshow item list")
    ap.add_argument("root", nargs="?", default=config.MEDIA_PATH,
                    help=f"media folder (default: ./{config.MEDIA_PATH})")
    ap.add_argument("--store", default=None,
                    help="store file (default: <root>/slideshow.json)")
    ap.add_argument("--interval", type=int, default=None,
                    help="seconds per image")
    ap.add_argument("--ordering", choices=[o.value for o in Ordering], default=None)
    ap.add_argument("--no-probe", action="store_true",
                    help="do not open videos to check they are readable")
    args = ap.parse_args()

    setup_logging()
    build_store(args.root, args.store, probe=not args.no_probe,
                interval=args.interval, ordering=args.ordering)
