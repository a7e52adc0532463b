# config.py
"""
Configuration settings for the slideshow player.
"""
import os

FPS = 30

RUN_PLAYLIST_BUILDER = True

# ── Collection ─────────────────────────────────────────────────────────────

# Folder scanned by playlist_builder.py for images and videos
MEDIA_PATH = "media"

# JSON document holding the item list, ordering, index and timing
STORE_PATH = os.path.join(MEDIA_PATH, "slideshow.json")

# Seconds an image stays on screen before the next item is shown
INTERVAL_SECONDS = 5

# "selection" keeps the stored order, "random" shuffles once and repeats
ORDERING = "selection"

# ── Playback ───────────────────────────────────────────────────────────────

MUTE_VIDEOS = False

# Raspberry Pi V4L2 decode path for the video sink; software RGB otherwise
VIDEO_HW_DECODE = False

# ── Gestures ───────────────────────────────────────────────────────────────

SWIPE_TO_CHANGE = True
SWIPE_MIN_DISTANCE = 50       # px travelled between press and release
SWIPE_MIN_VELOCITY = 200      # px/s
DOUBLE_TAP_SEC = 0.35         # max gap between the two clicks of a double tap

# ── Display settings ───────────────────────────────────────────────────────

FULLSCREEN = True
WINDOWED_SIZE = (800, 600)

# "fit" letter-boxes each item, "fill" covers the screen and crops
DISPLAY_MODE = "fit"

SHOW_OVERLAYS = True
OVERLAY_DURATION = 4.0        # seconds to show overlay after each change

# ── Web remote ─────────────────────────────────────────────────────────────

WEB_REMOTE = True
WEB_PORT = 8080
DIAG_REFRESH_INTERVAL = 1.0

# ── Logging ────────────────────────────────────────────────────────────────

LOG_LEVEL = "INFO"
LOG_FILE = "runtime.log"
