# =========  video_player.py  =========
"""
GStreamer playback for slideshow videos

One ``playbin`` is reused for every clip.  Decoded frames land in an
``appsink`` and are handed to the render loop through a one-slot queue, so
the window always draws the newest frame and never blocks on the decoder.

Lifecycle per clip::

    prepare(path, muted)  → PAUSED, pre-rolling           (non-blocking)
    ASYNC_DONE on the bus → on_prepared(path)
    play() / pause()
    EOS                   → on_eos(path)
    ERROR                 → on_error(path, message)
    close()               → NULL, frame cache dropped

Bus messages are dispatched on a private GLib main loop thread; callbacks
run there and must not block.
"""
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional

import gi
import numpy as np

import config

gi.require_version("Gst", "1.0")
from gi.repository import GLib, Gst  # noqa: E402

log = logging.getLogger(__name__)

# Raspberry Pi: V4L2 H.264 decode into DMA buffers, 16-bit RGB out
_HW_SINK = (
    "v4l2convert ! video/x-raw,format=RGB16_LE ! "
    "queue max-size-buffers=1 leaky=downstream ! "
    "appsink name=frames emit-signals=true max-buffers=2 drop=true sync=true"
)


def _noop(*_args) -> None:
    return None


def _rgb565_to_rgb(data: bytes, w: int, h: int) -> np.ndarray:
    px = np.frombuffer(data, np.uint16).reshape((h, w))
    rgb = np.empty((h, w, 3), np.uint8)
    rgb[..., 0] = ((px >> 11) & 0x1F) << 3
    rgb[..., 1] = ((px >> 5) & 0x3F) << 2
    rgb[..., 2] = (px & 0x1F) << 3
    return rgb


def _rgb_rows(data: bytes, w: int, h: int) -> np.ndarray:
    # rows may be padded to a 4-byte stride
    stride = len(data) // h
    rows = np.frombuffer(data, np.uint8).reshape((h, stride))
    return np.ascontiguousarray(rows[:, : w * 3].reshape((h, w, 3)))


# ────────────────────────────────────────────────────────────────────────────
class VideoPlayer:
    def __init__(self,
                 on_prepared: Callable[[str], None] = _noop,
                 on_eos: Callable[[str], None] = _noop,
                 on_error: Callable[[str, str], None] = _noop,
                 hw_decode: Optional[bool] = None):
        Gst.init(None)
        self.on_prepared = on_prepared
        self.on_eos = on_eos
        self.on_error = on_error

        self.path = ""
        self.sar = 1.0
        self._size = (0, 0)
        self._preparing = False
        self._pending: "queue.Queue[bytes]" = queue.Queue(maxsize=1)
        self._frame: Optional[np.ndarray] = None

        if hw_decode is None:
            hw_decode = getattr(config, "VIDEO_HW_DECODE", False)
        self.playbin = Gst.ElementFactory.make("playbin", "slideshow-video")
        self._appsink, video_sink = self._video_sink(hw_decode)
        self.playbin.set_property("video-sink", video_sink)
        self.playbin.set_property("audio-sink", Gst.ElementFactory.make("autoaudiosink", None))

        bus = self.playbin.get_bus()
        bus.add_signal_watch()
        bus.connect("message", self._on_message)
        self._loop = GLib.MainLoop()
        self._loop_thread = threading.Thread(target=self._loop.run, daemon=True,
                                             name="gst-bus")
        self._loop_thread.start()

    # ── video sink ──────────────────────────────────────────────────────────
    def _video_sink(self, hw_decode: bool):
        """Return ``(appsink, element for playbin)``; software RGB unless asked."""
        if hw_decode:
            try:
                bin_ = Gst.parse_bin_from_description(_HW_SINK, True)
            except GLib.Error as exc:
                log.warning("[video] hardware sink unavailable (%s), using software", exc)
            else:
                sink = bin_.get_by_name("frames")
                sink.connect("new-sample", self._on_sample)
                return sink, bin_

        sink = Gst.ElementFactory.make("appsink", "frames")
        for prop, value in (("emit-signals", True), ("max-buffers", 2),
                            ("drop", True), ("sync", True)):
            sink.set_property(prop, value)
        sink.set_property("caps", Gst.Caps.from_string("video/x-raw,format=RGB"))
        sink.connect("new-sample", self._on_sample)
        return sink, sink

    # ── control ─────────────────────────────────────────────────────────────
    def prepare(self, fp: str, muted: bool = False) -> None:
        """Start pre-rolling *fp*; readiness arrives via ``on_prepared``."""
        self.close()
        self.path = fp
        self._preparing = True
        self.playbin.set_property("uri", Gst.filename_to_uri(fp))
        self.set_volume(0.0 if muted else 1.0)
        if self.playbin.set_state(Gst.State.PAUSED) == Gst.StateChangeReturn.FAILURE:
            self._preparing = False
            self.on_error(fp, "could not pre-roll")

    def play(self) -> None:
        if self.path:
            self.playbin.set_state(Gst.State.PLAYING)

    def pause(self) -> None:
        if self.path:
            self.playbin.set_state(Gst.State.PAUSED)

    def close(self) -> None:
        self._preparing = False
        self.playbin.set_state(Gst.State.NULL)
        self.path = ""
        self._size = (0, 0)
        self._frame = None
        while True:
            try:
                self._pending.get_nowait()
            except queue.Empty:
                break

    stop = close  # alias

    def shutdown(self) -> None:
        self.close()
        self._loop.quit()
        if threading.current_thread() is not self._loop_thread:
            self._loop_thread.join(timeout=0.5)

    def set_volume(self, vol: float) -> None:
        self.playbin.set_property("volume", min(1.0, max(0.0, vol)))

    def get_position_sec(self) -> float:
        ok, pos = self.playbin.query_position(Gst.Format.TIME)
        return pos / Gst.SECOND if ok else 0.0

    def seek_to(self, sec: float) -> None:
        self.playbin.seek_simple(Gst.Format.TIME,
                                 Gst.SeekFlags.FLUSH | Gst.SeekFlags.ACCURATE,
                                 int(max(0.0, sec) * Gst.SECOND))

    # ── frames ──────────────────────────────────────────────────────────────
    def decode_frame(self) -> Optional[np.ndarray]:
        """Newest decoded frame as HxWx3 uint8, or the previous one."""
        try:
            data = self._pending.get_nowait()
        except queue.Empty:
            return self._frame
        w, h = self._size
        if w and h:
            if len(data) == w * h * 2:
                self._frame = _rgb565_to_rgb(data, w, h)
            else:
                self._frame = _rgb_rows(data, w, h)
        return self._frame

    def _on_sample(self, sink):
        sample = sink.emit("pull-sample")
        if sample is None:
            return Gst.FlowReturn.OK
        buf = sample.get_buffer()
        ok, info = buf.map(Gst.MapFlags.READ)
        if ok:
            data = bytes(info.data)
            buf.unmap(info)
            # keep only the newest frame
            try:
                self._pending.get_nowait()
            except queue.Empty:
                pass
            try:
                self._pending.put_nowait(data)
            except queue.Full:
                pass
        return Gst.FlowReturn.OK

    def _read_caps(self) -> None:
        pad = self._appsink.get_static_pad("sink")
        caps = pad.get_current_caps() if pad else None
        if caps is None:
            return
        st = caps.get_structure(0)
        self._size = (st.get_int("width")[1], st.get_int("height")[1])
        self.sar = 1.0
        if st.has_field("pixel-aspect-ratio"):
            num, den = st.get_fraction("pixel-aspect-ratio")[-2:]
            if den:
                self.sar = num / den

    # ── bus ─────────────────────────────────────────────────────────────────
    def _on_message(self, _bus, msg) -> bool:
        path = self.path
        kind = msg.type
        if kind == Gst.MessageType.ASYNC_DONE and self._preparing:
            self._preparing = False
            self._read_caps()
            log.debug("[video] prepared %s %dx%d", path, *self._size)
            self.on_prepared(path)
        elif kind == Gst.MessageType.EOS:
            log.debug("[video] finished %s", path)
            self.on_eos(path)
        elif kind == Gst.MessageType.ERROR:
            err, detail = msg.parse_error()
            log.error("[video] %s: %s (%s)", path, err.message, detail)
            self._preparing = False
            self.on_error(path, err.message)
        return True
