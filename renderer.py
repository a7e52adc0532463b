from __future__ import annotations

import pygame

import config
from media import DisplayMode

BLACK = (0, 0, 0)


def render_frame(screen: pygame.Surface, frame, sar: float = 1.0,
                 mode: DisplayMode | str | None = None) -> None:
    """
    Scale a raw RGB frame onto `screen`.
    FIT letter-/pillar-boxes it; FILL covers the screen, cropping the overflow.
    A missing frame (nothing to display, released content) clears to black.
    """
    screen.fill(BLACK)
    if frame is None:
        return
    if mode is None:
        mode = getattr(config, "DISPLAY_MODE", "fit")
    surf = pygame.image.frombuffer(frame.tobytes(), frame.shape[1::-1], "RGB")
    sw, sh = screen.get_size()
    vw, vh = surf.get_size()
    if not vw or not vh:
        return
    pick = max if DisplayMode.parse(mode) is DisplayMode.FILL else min
    scale = pick(sw / (vw * sar), sh / vh)
    surf = pygame.transform.smoothscale(
        surf,
        (max(1, int(vw * scale * sar)), max(1, int(vh * scale)))
    )
    # negative offsets crop evenly on both sides
    x = (sw - surf.get_width()) // 2
    y = (sh - surf.get_height()) // 2
    screen.blit(surf, (x, y))
