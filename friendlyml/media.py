# friendlyml/media.py
"""
Media handles: still images, raw pixel buffers and live video sources.

Every handle hands models the same thing: an RGB ``uint8`` array (HxWx3) via
``pixels()``. Video sources additionally carry a one-shot readiness state that
flips once the first frame has arrived.

Contract
────────
is_media(obj)   -> bool          structural probe used by argument separation
as_media(obj)   -> MediaHandle   wrap raw PIL images, arrays, paths, captures
VideoSource.wait_ready()         suspends until the first frame is available
"""

from __future__ import annotations

import asyncio
import enum
import io
import logging
import math
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Tuple, Union

import numpy as np
from PIL import Image

from .errors import InvalidMedia
from .results import to_pixels

if TYPE_CHECKING:
    import numpy.typing as npt

    NDArrayU8 = npt.NDArray[np.uint8]
else:
    NDArrayU8 = Any

__all__ = [
    "MediaHandle",
    "MediaKind",
    "PixelBuffer",
    "StillImage",
    "SyntheticCapture",
    "VideoSource",
    "as_media",
    "is_media",
    "is_video",
]

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())


class MediaKind(enum.Enum):
    VIDEO = "video"
    IMAGE = "image"
    PIXELS = "pixels"


def _as_rgb(arr: Any, *, bgr: bool = False) -> NDArrayU8:
    """
    Return a read-only HxWx3 RGB uint8 array.
    Accepts HxW (grayscale) or HxWxC with C >= 3; alpha is dropped.
    """
    a = to_pixels(arr)
    if a.ndim == 2:
        a = np.stack([a, a, a], axis=2)
    elif a.ndim != 3 or a.shape[2] < 3:
        raise InvalidMedia(f"Unsupported array shape for an image: {a.shape!r}", arr)
    else:
        a = a[:, :, :3]
        if bgr:
            a = a[:, :, ::-1]
    out = np.ascontiguousarray(a)
    out.setflags(write=False)
    return out


class MediaHandle:
    """Base handle; subclasses decide where the pixels come from."""

    kind: MediaKind = MediaKind.PIXELS

    @property
    def is_ready(self) -> bool:
        return True

    async def wait_ready(self) -> "MediaHandle":
        return self

    def pixels(self) -> NDArrayU8:  # pragma: no cover - abstract
        raise NotImplementedError

    def snapshot(self) -> "MediaHandle":
        """The pixels one predict call works on, from inference to overlay."""
        return self

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) of the current pixels."""
        px = self.pixels()
        return int(px.shape[1]), int(px.shape[0])


class StillImage(MediaHandle):
    """A PIL image or an image file path, opened lazily."""

    kind = MediaKind.IMAGE

    def __init__(self, source: Union[Image.Image, str, "os.PathLike[str]"]) -> None:
        self.source = source
        self.stem = "image"
        self.suffix = ".jpg"
        if not isinstance(source, Image.Image):
            p = Path(source)
            self.stem = p.stem or self.stem
            self.suffix = p.suffix.lower() or self.suffix
        self._pixels: Optional[NDArrayU8] = None

    @property
    def is_ready(self) -> bool:
        if isinstance(self.source, Image.Image):
            return True
        return Path(self.source).is_file()

    def pixels(self) -> NDArrayU8:
        if self._pixels is None:
            if isinstance(self.source, Image.Image):
                rgb = np.array(self.source.convert("RGB"), dtype=np.uint8)
            else:
                p = Path(self.source)
                try:
                    with Image.open(p) as im:
                        rgb = np.array(im.convert("RGB"), dtype=np.uint8)
                except (OSError, ValueError) as exc:
                    raise InvalidMedia(f"Could not read image file {p}: {exc}", self.source) from exc
            self._pixels = _as_rgb(rgb)
        return self._pixels

    def __repr__(self) -> str:
        return f"StillImage({self.stem}{self.suffix})"


class PixelBuffer(MediaHandle):
    """An in-memory RGB (or grayscale / RGBA) array."""

    kind = MediaKind.PIXELS

    def __init__(self, array: Any) -> None:
        self.array = array
        self._pixels = _as_rgb(np.asarray(array))

    def pixels(self) -> NDArrayU8:
        return self._pixels

    def __repr__(self) -> str:
        h, w = self._pixels.shape[:2]
        return f"PixelBuffer({w}x{h})"


class VideoSource(MediaHandle):
    """
    Live frames from an OpenCV-style capture (``read() -> (ok, frame)``) or
    pushed in by the caller via ``push_frame``.

    Frames from OpenCV are BGR; pass ``bgr=False`` for captures that already
    yield RGB.
    """

    kind = MediaKind.VIDEO

    def __init__(self, capture: Any = None, *, bgr: bool = True) -> None:
        self.capture = capture
        self._bgr = bgr
        self._frame: Optional[NDArrayU8] = None
        self._error: Optional[BaseException] = None
        self._first_frame: Optional["asyncio.Future[None]"] = None

    @property
    def is_ready(self) -> bool:
        return self._frame is not None

    @property
    def is_open(self) -> bool:
        if self._error is not None:
            return False
        is_opened = getattr(self.capture, "isOpened", None)
        if callable(is_opened):
            return bool(is_opened())
        return True

    def push_frame(self, frame: Any) -> None:
        self._frame = _as_rgb(frame, bgr=self._bgr)
        fut = self._first_frame
        if fut is not None and not fut.done():
            fut.set_result(None)

    def fail(self, exc: BaseException) -> None:
        """Reject readiness, e.g. when the stream could not be opened."""
        self._error = exc
        fut = self._first_frame
        if fut is not None and not fut.done():
            fut.set_exception(exc)

    def grab(self) -> bool:
        """Read one frame from the capture; False when nothing was available."""
        if self.capture is None:
            return False
        ok, frame = self.capture.read()
        if not ok or frame is None:
            return False
        self.push_frame(frame)
        return True

    async def wait_ready(self, poll_interval: float = 0.01) -> "VideoSource":
        if self._error is not None:
            raise InvalidMedia(f"Video source failed: {self._error}", self) from self._error
        if self.is_ready:
            return self
        if self.capture is None:
            if self._first_frame is None:
                self._first_frame = asyncio.get_running_loop().create_future()
            try:
                await self._first_frame
            except InvalidMedia:
                raise
            except Exception as exc:
                raise InvalidMedia(f"Video source failed: {exc}", self) from exc
            return self
        while True:
            if not self.is_open:
                raise InvalidMedia("Video source is closed before its first frame arrived.", self)
            if self.grab():
                LOGGER.debug("first video frame ready shape=%s", getattr(self._frame, "shape", None))
                return self
            await asyncio.sleep(poll_interval)

    def pixels(self) -> NDArrayU8:
        """The most recent frame; reading a new one is up to ``grab``."""
        if self._frame is None:
            raise InvalidMedia("Video is not ready: no frame has arrived yet.", self)
        return self._frame

    def snapshot(self) -> PixelBuffer:
        """Advance to the newest frame and freeze it for one predict call."""
        self.grab()
        return PixelBuffer(self.pixels())

    def release(self) -> None:
        release = getattr(self.capture, "release", None)
        if callable(release):
            release()

    def __repr__(self) -> str:
        state = "ready" if self.is_ready else "waiting"
        return f"VideoSource({type(self.capture).__name__}, {state})"


class SyntheticCapture:
    """Deterministic gradient + moving bands; great for CI/headless.

    ``warmup_reads`` failed reads are returned before the first frame, which
    mimics a webcam that is still starting up.
    """

    def __init__(self, size: Tuple[int, int] = (64, 48), warmup_reads: int = 0) -> None:
        self.w, self.h = int(size[0]), int(size[1])
        self.warmup_reads = max(0, int(warmup_reads))
        self.reads = 0
        self._open = True

    def isOpened(self) -> bool:  # noqa: N802 - OpenCV naming
        return self._open

    def read(self) -> Tuple[bool, Optional[NDArrayU8]]:
        if not self._open:
            return False, None
        self.reads += 1
        if self.reads <= self.warmup_reads:
            return False, None
        phase = self.reads * 0.1
        y = np.linspace(0, 255, self.h, dtype=np.uint8)[:, None]
        x = np.linspace(0, 255, self.w, dtype=np.uint8)[None, :]
        base = ((y.astype(np.uint16) + x) // 2).astype(np.uint8)
        g = ((base.astype(np.int16) + int((math.sin(phase) + 1) * 64)) % 256).astype(np.uint8)
        r = ((base.astype(np.int16) + int((math.cos(phase * 0.7) + 1) * 64)) % 256).astype(np.uint8)
        return True, np.dstack([base, g, r])

    def release(self) -> None:
        self._open = False


def is_video(obj: Any) -> bool:
    if isinstance(obj, VideoSource):
        return True
    if isinstance(obj, (MediaHandle, io.IOBase)):
        return False
    return callable(getattr(obj, "read", None))


def is_media(obj: Any) -> bool:
    """Structural probe: does *obj* provide pixel frames?"""
    if isinstance(obj, (MediaHandle, Image.Image, os.PathLike)):
        return True
    if isinstance(obj, np.ndarray):
        return obj.ndim in (2, 3)
    return is_video(obj)


def as_media(obj: Any) -> MediaHandle:
    """Wrap a raw media argument in the matching handle."""
    if isinstance(obj, MediaHandle):
        return obj
    if isinstance(obj, (Image.Image, os.PathLike)):
        return StillImage(obj)
    if isinstance(obj, np.ndarray):
        return PixelBuffer(obj)
    if is_video(obj):
        return VideoSource(obj)
    raise InvalidMedia(
        f"Unsupported media of type {type(obj).__name__}. Expected a PIL image, an image path, "
        "a numpy array or a video capture.",
        obj,
    )
