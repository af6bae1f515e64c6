"""
Observed color collection.

Every pixel of a frame is reduced to a quantized color key (each channel
divided by a fixed divisor, truncated, and packed as ``r << 16 | g << 8 | b``)
and added to the session's ObservedColorSet. The set only grows.
"""

from typing import Iterable, Optional, Union

import numpy as np
from loguru import logger

from palettecam.config import config
from palettecam.utils.metrics import MetricsCollector, get_metrics

PixelBuffer = Union[bytes, bytearray, memoryview, np.ndarray]


def as_pixel_array(pixels: PixelBuffer) -> np.ndarray:
    """Flat uint8 view over an interleaved RGBA buffer."""
    if isinstance(pixels, np.ndarray):
        arr = np.ascontiguousarray(pixels, dtype=np.uint8)
    else:
        arr = np.frombuffer(pixels, dtype=np.uint8)
    arr = arr.reshape(-1)
    if arr.size % 4 != 0:
        raise ValueError(f"RGBA buffer length must be a multiple of 4, got {arr.size}")
    return arr


def quantize_key(r: int, g: int, b: int, divisor: int = 3) -> int:
    """Quantized color key for one RGB sample."""
    return ((r // divisor) << 16) | ((g // divisor) << 8) | (b // divisor)


def quantize_pixels(pixels: PixelBuffer, divisor: int = 3) -> np.ndarray:
    """Unique quantized keys of an RGBA buffer, sorted ascending (uint32)."""
    flat = as_pixel_array(pixels)
    if flat.size == 0:
        return np.empty(0, dtype=np.uint32)

    rgb = flat.reshape(-1, 4)[:, :3].astype(np.uint32) // divisor
    keys = (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2]
    return np.unique(keys)


def decode_keys(keys: Iterable[int], divisor: int = 3) -> np.ndarray:
    """Decode quantized keys back to (N, 3) RGB samples in 0-255."""
    if isinstance(keys, np.ndarray):
        keys_arr = keys.astype(np.uint32)
    else:
        keys_arr = np.fromiter(keys, dtype=np.uint32)
    rgb = np.stack(
        [(keys_arr >> 16) & 0xFF, (keys_arr >> 8) & 0xFF, keys_arr & 0xFF],
        axis=-1,
    )
    return (rgb * divisor).astype(np.int64).reshape(-1, 3)


class ObservedColorSet:
    """
    Unique quantized keys seen during the session.

    Written only by ColorSetCollector; readers take a snapshot, which is an
    independent copy.
    """

    def __init__(self, keys: Optional[Iterable[int]] = None):
        self._keys = set()
        if keys is not None:
            self.add(keys)

    def add(self, keys: Iterable[int]) -> int:
        """Insert keys and return the set size afterwards."""
        if isinstance(keys, np.ndarray):
            keys = keys.tolist()
        self._keys.update(int(k) for k in keys)
        return len(self._keys)

    def snapshot(self) -> np.ndarray:
        """Sorted copy of every key currently in the set."""
        return np.array(sorted(self._keys), dtype=np.uint32)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: int) -> bool:
        return key in self._keys


class ColorSetCollector:
    """Scans RGBA frames into an ObservedColorSet."""

    def __init__(self, color_set: ObservedColorSet, divisor: Optional[int] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.color_set = color_set
        self.divisor = divisor or config.QUANT_DIVISOR
        if not config.validate_divisor(self.divisor):
            raise ValueError(f"Quantization divisor out of range: {self.divisor}")
        self.metrics = metrics or get_metrics()

    def collect(self, pixels: PixelBuffer) -> int:
        """
        Add every pixel of a frame to the observed set.

        Args:
            pixels: interleaved RGBA, 8 bits per channel, row-major

        Returns:
            Size of the observed set after this frame
        """
        keys = quantize_pixels(pixels, self.divisor)
        if keys.size == 0:
            return len(self.color_set)

        before = len(self.color_set)
        size = self.color_set.add(keys)

        self.metrics.set_gauge("unique_colors", size)
        if size != before:
            logger.debug(f"Unique Colors: {size}")
        return size
