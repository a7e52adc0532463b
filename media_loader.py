"""
media_loader.py – turns a MediaReference into display-ready pixels

Images are decoded with Pillow at a reduced sample size and fitted into the
target box (or scaled to cover it in ``fill`` display mode); videos are probed with PyAV and represented by a thumbnail taken
one second in.  Every failure surfaces as ``LoadError``.
"""
from __future__ import annotations

import logging
import os

import av  # PyAV – thin FFmpeg bindings
import numpy as np
from av.error import FFmpegError
from PIL import Image, ImageOps, UnidentifiedImageError

import config
from media import DisplayMode, LoadedContent, LoadError, MediaReference, uri_to_path

log = logging.getLogger(__name__)

THUMBNAIL_AT_SEC = 1.0


# ── geometry helpers ───────────────────────────────────────────────────────
def sample_size(width: int, height: int, target_w: int, target_h: int) -> int:
    """Largest power of two that keeps both halves at or above the target."""
    factor = 1
    if target_w <= 0 or target_h <= 0:
        return factor
    if height > target_h or width > target_w:
        half_h, half_w = height // 2, width // 2
        while half_h // factor >= target_h and half_w // factor >= target_w:
            factor *= 2
    return factor


def _fit(img: Image.Image, target_w: int, target_h: int,
         mode: DisplayMode = DisplayMode.FIT) -> Image.Image:
    if target_w <= 0 or target_h <= 0:
        return img
    if mode is DisplayMode.FILL:
        # cover the box; the renderer crops what overflows
        scale = max(target_w / img.width, target_h / img.height)
        size = (max(1, round(img.width * scale)), max(1, round(img.height * scale)))
        return img.resize(size, Image.Resampling.LANCZOS)
    return ImageOps.contain(img, (target_w, target_h), Image.Resampling.LANCZOS)


def _to_content(img: Image.Image, duration: float = 0.0) -> LoadedContent:
    frame = np.ascontiguousarray(np.asarray(img.convert("RGB"), dtype=np.uint8))
    return LoadedContent(frame=frame, width=frame.shape[1], height=frame.shape[0],
                         duration=duration)


# ── loader ─────────────────────────────────────────────────────────────────
class MediaLoader:
    def __init__(self, display_mode: DisplayMode | str | None = None):
        if display_mode is None:
            display_mode = getattr(config, "DISPLAY_MODE", "fit")
        self.display_mode = DisplayMode.parse(display_mode)

    def load(self, ref: MediaReference, target_width: int, target_height: int) -> LoadedContent:
        path = uri_to_path(ref.uri)
        if not os.path.isfile(path):
            raise LoadError(f"no such file: {path}")
        if ref.is_video:
            return self._load_video(path, target_width, target_height)
        return self._load_image(path, target_width, target_height)

    # ------------------------------------------------------------- images
    def _load_image(self, path: str, tw: int, th: int) -> LoadedContent:
        try:
            with Image.open(path) as img:
                orig_w = img.width
                factor = sample_size(img.width, img.height, tw, th)
                if factor > 1:
                    # JPEG decodes straight to a reduced scale; reduce the rest
                    img.draft("RGB", (img.width // factor, img.height // factor))
                    rest = factor // max(1, orig_w // img.width)
                    if rest > 1:
                        img = img.reduce(rest)
                img = ImageOps.exif_transpose(img)
                img = _fit(img, tw, th, self.display_mode)
                content = _to_content(img)
        except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as exc:
            raise LoadError(f"cannot decode image {path}: {exc}") from exc
        log.debug("[loader] image %s → %dx%d", os.path.basename(path),
                  content.width, content.height)
        return content

    # ------------------------------------------------------------- videos
    def _load_video(self, path: str, tw: int, th: int) -> LoadedContent:
        try:
            with av.open(path) as c:
                vs = next((s for s in c.streams if s.type == "video"), None)
                if vs is None:
                    raise LoadError(f"no video stream in {path}")

                if vs.duration and vs.time_base:
                    dur = float(vs.duration * vs.time_base)
                elif c.duration:
                    dur = c.duration / av.time_base
                else:
                    dur = 0.0

                if dur > THUMBNAIL_AT_SEC:
                    c.seek(int(THUMBNAIL_AT_SEC * av.time_base))
                frame = next(c.decode(vs), None)
                if frame is None:
                    raise LoadError(f"no decodable frame in {path}")
                img = frame.to_image()
        except LoadError:
            raise
        except (FFmpegError, OSError, ValueError) as exc:
            raise LoadError(f"cannot open video {path}: {exc}") from exc
        except Exception as exc:
            # PyAV reports some container quirks as plain IndexError/RuntimeError
            raise LoadError(f"cannot decode video {path}: {exc!r}") from exc

        content = _to_content(_fit(img, tw, th, self.display_mode), duration=dur)
        log.debug("[loader] video %s %.1fs → thumb %dx%d", os.path.basename(path),
                  dur, content.width, content.height)
        return content
