"""Tests for render_frame in fit and fill display modes."""

import numpy as np
import pygame
import pytest

import config
from media import DisplayMode
from renderer import render_frame

RED, GREEN, BLACK = (220, 20, 20), (20, 220, 20), (0, 0, 0)


@pytest.fixture
def wide_frame():
    """200x100: a red centre square between green side bands."""
    frame = np.empty((100, 200, 3), np.uint8)
    frame[:] = GREEN
    frame[:, 50:150] = RED
    return frame


def close(px, rgb, tol=12):
    return all(abs(a - b) <= tol for a, b in zip(px[:3], rgb))


def test_fit_letterboxes(wide_frame):
    screen = pygame.Surface((100, 100))
    render_frame(screen, wide_frame, mode=DisplayMode.FIT)
    assert close(screen.get_at((50, 5)), BLACK)
    assert close(screen.get_at((50, 94)), BLACK)
    assert close(screen.get_at((50, 50)), RED)
    assert close(screen.get_at((5, 50)), GREEN)


def test_fill_covers_and_crops(wide_frame):
    screen = pygame.Surface((100, 100))
    render_frame(screen, wide_frame, mode="fill")
    for xy in [(2, 2), (50, 50), (97, 97), (2, 97)]:
        assert close(screen.get_at(xy), RED)


def test_mode_defaults_to_config(wide_frame, monkeypatch):
    monkeypatch.setattr(config, "DISPLAY_MODE", "fill", raising=False)
    screen = pygame.Surface((100, 100))
    render_frame(screen, wide_frame)
    assert close(screen.get_at((50, 5)), RED)


def test_nothing_clears_to_black():
    screen = pygame.Surface((10, 10))
    screen.fill((255, 255, 255))
    render_frame(screen, None)
    assert close(screen.get_at((5, 5)), BLACK)
