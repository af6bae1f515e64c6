"""
Frame sources.

A frame source hands out the latest available frame without blocking.
Before the first frame arrives it reports zero dimensions.
"""

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Tuple, Union

import cv2
import numpy as np
from loguru import logger
from PIL import Image

from palettecam.errors import FrameSourceError


@dataclass(frozen=True)
class Frame:
    """One RGBA frame, rows top-down."""
    pixels: np.ndarray
    width: int
    height: int

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def to_upload_buffer(self) -> np.ndarray:
        """Contiguous flat uint8 copy suitable for a texture upload."""
        return np.ascontiguousarray(self.pixels, dtype=np.uint8).reshape(-1).copy()


EMPTY_FRAME = Frame(pixels=np.zeros((0, 0, 4), dtype=np.uint8), width=0, height=0)


def to_rgba(pixels: np.ndarray) -> np.ndarray:
    """Promote an (H, W, 3) RGB or (H, W, 4) RGBA uint8 array to RGBA."""
    pixels = np.asarray(pixels, dtype=np.uint8)
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValueError(f"Expected an (H, W, 3|4) array, got shape {pixels.shape}")
    if pixels.shape[2] == 4:
        return pixels
    alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([pixels, alpha], axis=2)


class FrameSource(Protocol):
    def current_frame(self) -> Frame: ...

    def current_dimensions(self) -> Tuple[int, int]: ...

    def close(self) -> None: ...


class ArrayFrameSource:
    """In-memory frame source; the frame is replaced with set_frame()."""

    def __init__(self, pixels: Optional[np.ndarray] = None):
        self._frame = EMPTY_FRAME
        if pixels is not None:
            self.set_frame(pixels)

    def set_frame(self, pixels: np.ndarray) -> None:
        rgba = to_rgba(pixels)
        height, width = rgba.shape[:2]
        self._frame = Frame(pixels=rgba, width=width, height=height)

    def clear(self) -> None:
        self._frame = EMPTY_FRAME

    def current_frame(self) -> Frame:
        return self._frame

    def current_dimensions(self) -> Tuple[int, int]:
        return self._frame.size

    def close(self) -> None:
        pass


class ImageFrameSource(ArrayFrameSource):
    """Serves a single still image as every frame."""

    def __init__(self, path: Union[str, Path]):
        path = Path(path)
        try:
            with Image.open(path) as image:
                pixels = np.asarray(image.convert("RGBA"), dtype=np.uint8)
        except (OSError, ValueError) as e:
            raise FrameSourceError(f"Cannot open image {path}: {e}") from e
        super().__init__(pixels)
        logger.info(f"Serving still image {path.name} ({self._frame.width}x{self._frame.height})")


class CameraFrameSource:
    """
    Webcam frame source.

    A background thread keeps reading from the capture device and stores the
    most recent frame; readers only ever take the stored reference.
    """

    def __init__(self, index: int = 0, requested_size: Optional[Tuple[int, int]] = None):
        self.index = index
        self.requested_size = requested_size
        self._capture: Optional[cv2.VideoCapture] = None
        self._latest = EMPTY_FRAME
        self._lock = threading.Lock()
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def open(self) -> "CameraFrameSource":
        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            raise FrameSourceError(f"Cannot open camera {self.index}")

        if self.requested_size:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.requested_size[0])
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.requested_size[1])

        self._capture = capture
        self._running.set()
        self._thread = threading.Thread(target=self._grab_loop, name="camera-grabber", daemon=True)
        self._thread.start()

        logger.info(f"Camera {self.index} opened "
                    f"({int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
                    f"{int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))} @ "
                    f"{capture.get(cv2.CAP_PROP_FPS):.0f}fps)")
        return self

    def _grab_loop(self) -> None:
        while self._running.is_set():
            ok, frame_bgr = self._capture.read()
            if not ok or frame_bgr is None:
                time.sleep(0.01)
                continue

            rgba = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGBA)
            height, width = rgba.shape[:2]
            with self._lock:
                self._latest = Frame(pixels=rgba, width=width, height=height)

    def current_frame(self) -> Frame:
        with self._lock:
            return self._latest

    def current_dimensions(self) -> Tuple[int, int]:
        with self._lock:
            return self._latest.size

    def close(self) -> None:
        self._running.clear()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._capture is not None:
            self._capture.release()
            self._capture = None
