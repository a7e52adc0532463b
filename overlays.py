"""
overlays.py

Pygame overlay renderer for the slideshow, plus the plain-text lines it
shows (also served by the web remote).
"""

from __future__ import annotations

import time

import pygame

import config
from media import PlaybackState

# ── colours ────────────────────────────────────────────────────────────────
WHITE = (255, 255, 255)
GREEN = (0, 255, 0)
YEL = (200, 200, 50)
BG = (0, 0, 0, 180)

pygame.font.init()


# ── helpers ────────────────────────────────────────────────────────────────
def _compute_font_sizes(h: int) -> tuple[int, int]:
    return max(12, h // 60), max(24, h // 15)


def _fmt_hms(sec: float) -> str:
    sec = int(max(0, sec))
    m, s = divmod(sec, 60)
    h, m = divmod(m, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def _badge(font: pygame.font.Font, text: str, colour, pad: int) -> pygame.Surface:
    txt = font.render(text, True, colour)
    bg = pygame.Surface((txt.get_width() + pad * 2, txt.get_height() + pad),
                        pygame.SRCALPHA)
    bg.fill(BG)
    bg.blit(txt, (pad, pad // 2))
    return bg


def overlay_lines(engine, store) -> list[str]:
    """Human-readable status of *engine*; first line is the position badge."""
    count = store.count()
    cur = engine.current
    state = engine.run_state.value

    if cur is None:
        return [f"--/{count:02d}", "Nothing to display", f"State    {state}"]

    lines = [
        f"{cur.index + 1:02d}/{count:02d}",
        f"Current  {cur.reference.name}",
        f"Type     {cur.reference.media_type.value}",
        f"State    {state}",
    ]
    if cur.playback is not None:
        lines.append(f"Video    {cur.playback.value}")
        if cur.content is not None and cur.content.duration:
            lines.append(f"Length   {_fmt_hms(cur.content.duration)}")
    remain = engine.seconds_until_next()
    if remain is not None:
        lines.append(f"Next in  {_fmt_hms(remain + 0.999)}")
    elif cur.playback is PlaybackState.PLAYING:
        lines.append("Next     after video")
    lines.append(f"Interval {store.interval_seconds()}s  {store.ordering().value}")
    return lines


# ── main entry point ───────────────────────────────────────────────────────
def draw_overlay(surface: pygame.Surface, engine, store) -> None:
    sw, sh = surface.get_width(), surface.get_height()
    small_pt, large_pt = _compute_font_sizes(sh)
    FS = pygame.font.SysFont("monospace", small_pt)
    FL = pygame.font.SysFont("monospace", large_pt)

    lines = overlay_lines(engine, store)

    # ── position badge (always) ─────────────────────────────────────────
    badge = _badge(FL, lines[0], GREEN, large_pt // 6)
    surface.blit(badge, (sw - badge.get_width() - 10, 10))

    if not config.SHOW_OVERLAYS:
        return

    # ── wall clock ───────────────────────────────────────────────────────
    clock = _badge(FS, time.strftime("%H:%M:%S"), YEL, small_pt // 3)
    surface.blit(clock, (10, 10))

    # ── status panel ─────────────────────────────────────────────────────
    body = lines[1:]
    widest = max(FS.size(t)[0] for t in body)
    pbg = pygame.Surface(
        (widest + 20, len(body) * (FS.get_linesize() + 2) + 10),
        pygame.SRCALPHA,
    )
    pbg.fill(BG)
    y = 5
    for t in body:
        pbg.blit(FS.render(t, True, WHITE), (10, y))
        y += FS.get_linesize() + 2
    surface.blit(pbg, (sw - pbg.get_width() - 10, 10 + badge.get_height() + 10))
