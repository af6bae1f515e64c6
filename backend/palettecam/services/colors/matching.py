"""
NumPy rendition of the recolor shader's per-pixel rule.

For each pixel, the palette entries are scanned in order and the first one
closer than the threshold (Euclidean, normalized RGB) is the match; a
matched pixel takes the marker color and keeps its alpha.
"""

from typing import Sequence, Tuple

import numpy as np

from palettecam.services.colors.palette import Palette

DEFAULT_THRESHOLD = 0.1
DEFAULT_MARKER: Tuple[float, float, float] = (0.5, 0.0, 0.5)


def match_indices(rgb: np.ndarray, palette: Palette, threshold: float = DEFAULT_THRESHOLD) -> np.ndarray:
    """
    Index of the first palette entry within threshold of each color, or -1.

    Args:
        rgb: (..., 3) normalized colors
        palette: Palette to match against
        threshold: Strict upper bound on the distance

    Returns:
        Integer array with the leading shape of ``rgb``
    """
    rgb = np.asarray(rgb, dtype=np.float32)
    distances = np.linalg.norm(rgb[..., None, :] - palette.rgb, axis=-1)
    hits = distances < np.float32(threshold)
    # argmax returns the first True, i.e. the lowest matching index
    first = np.argmax(hits, axis=-1)
    return np.where(hits.any(axis=-1), first, -1)


def match_color(rgb: Sequence[float], palette: Palette, threshold: float = DEFAULT_THRESHOLD) -> int:
    """Match a single normalized color; -1 when nothing is within threshold."""
    return int(match_indices(np.asarray(rgb, dtype=np.float32).reshape(1, 3), palette, threshold)[0])


def recolor(pixels: np.ndarray, palette: Palette, threshold: float = DEFAULT_THRESHOLD,
            marker: Sequence[float] = DEFAULT_MARKER) -> np.ndarray:
    """Apply the match-and-recolor rule to an (H, W, 4) uint8 RGBA frame."""
    pixels = np.asarray(pixels, dtype=np.uint8)
    normalized = pixels[..., :3].astype(np.float32) / 255.0
    matched = match_indices(normalized, palette, threshold) >= 0

    out = pixels.copy()
    marker_u8 = np.round(np.asarray(marker, dtype=np.float32) * 255.0).astype(np.uint8)
    out[..., :3][matched] = marker_u8
    return out


def match_ratio(pixels: np.ndarray, palette: Palette, threshold: float = DEFAULT_THRESHOLD) -> float:
    """Fraction of pixels of an RGBA frame that the palette would recolor."""
    pixels = np.asarray(pixels, dtype=np.uint8)
    if pixels.size == 0:
        return 0.0
    normalized = pixels[..., :3].reshape(-1, 3).astype(np.float32) / 255.0
    return float(np.mean(match_indices(normalized, palette, threshold) >= 0))
