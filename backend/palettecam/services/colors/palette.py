"""
Palette value type and the holder of the palette currently in effect.

A palette always carries exactly PALETTE_SIZE entries laid out as
``vec3 + padding`` floats, which is the std140 layout of the shader's
uniform block. Missing clusters are zero entries; note that a zero entry
matches near-black pixels.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

PALETTE_SIZE = 16
ENTRY_WIDTH = 4  # rgb + std140 padding

# Shown until the first extraction run publishes a palette
DEFAULT_COLORS: Tuple[Tuple[float, float, float], ...] = (
    (1.0, 0.0, 0.0),  # Red
    (0.0, 1.0, 0.0),  # Green
    (0.0, 0.0, 1.0),  # Blue
    (1.0, 1.0, 0.0),  # Yellow
    (0.0, 1.0, 1.0),  # Cyan
    (1.0, 0.0, 1.0),  # Magenta
)


def rgb_to_hex(rgb: Sequence[float]) -> str:
    """Convert a normalized RGB triple to a hex color string."""
    r, g, b = [int(round(float(np.clip(c, 0.0, 1.0)) * 255)) for c in rgb]
    return f"#{r:02X}{g:02X}{b:02X}"


@dataclass(frozen=True, eq=False)
class Palette:
    """Immutable, fixed-size palette tagged with its publication generation."""
    colors: np.ndarray
    generation: int = 0

    def __post_init__(self):
        colors = np.array(self.colors, dtype=np.float32)
        if colors.shape != (PALETTE_SIZE, ENTRY_WIDTH):
            raise ValueError(
                f"Palette must have shape ({PALETTE_SIZE}, {ENTRY_WIDTH}), got {colors.shape}"
            )
        if np.any(colors < 0.0) or np.any(colors > 1.0):
            raise ValueError("Palette entries must be normalized to 0-1")
        colors.flags.writeable = False
        object.__setattr__(self, "colors", colors)

    @classmethod
    def from_rgb(cls, rgb: Sequence[Sequence[float]], generation: int = 0) -> "Palette":
        """Build a palette from up to PALETTE_SIZE normalized RGB triples, zero-padding the rest."""
        rgb_arr = np.asarray(rgb, dtype=np.float32).reshape(-1, 3)
        if len(rgb_arr) > PALETTE_SIZE:
            raise ValueError(f"At most {PALETTE_SIZE} colors fit in a palette, got {len(rgb_arr)}")

        colors = np.zeros((PALETTE_SIZE, ENTRY_WIDTH), dtype=np.float32)
        colors[:len(rgb_arr), :3] = np.clip(rgb_arr, 0.0, 1.0)
        return cls(colors=colors, generation=generation)

    @property
    def rgb(self) -> np.ndarray:
        """(PALETTE_SIZE, 3) view without the padding channel."""
        return self.colors[:, :3]

    @property
    def active_mask(self) -> np.ndarray:
        """Entries that are not zero padding."""
        return np.any(self.rgb > 0.0, axis=1)

    @property
    def active_count(self) -> int:
        return int(np.count_nonzero(self.active_mask))

    def hex_colors(self) -> List[str]:
        return [rgb_to_hex(c) for c in self.rgb]

    def to_bytes(self) -> bytes:
        """Serialize in the uniform block's std140 layout (16 bytes per entry)."""
        return self.colors.tobytes()

    @property
    def nbytes(self) -> int:
        return self.colors.nbytes


def default_palette() -> Palette:
    return Palette.from_rgb(DEFAULT_COLORS, generation=0)


@dataclass
class PaletteState:
    """
    Holds the palette in effect.

    Publication is a single reference assignment, so a reader sees either the
    previous palette or the new one and never a mix of the two.
    """
    _current: Palette = field(default_factory=default_palette)

    @property
    def current(self) -> Palette:
        return self._current

    def next_generation(self) -> int:
        return self._current.generation + 1

    def publish(self, palette: Palette) -> Palette:
        """Replace the palette in effect; returns the previous one."""
        if palette.generation <= self._current.generation:
            raise ValueError(
                f"Stale palette generation {palette.generation} "
                f"(current is {self._current.generation})"
            )
        previous, self._current = self._current, palette
        return previous


def palette_entries(palette: Optional[Palette]) -> List[dict]:
    """Plain-data view of a palette for API responses and logs."""
    if palette is None:
        return []
    active = palette.active_mask
    return [
        {
            "index": i,
            "rgb": [round(float(c), 6) for c in palette.rgb[i]],
            "hex": rgb_to_hex(palette.rgb[i]),
            "active": bool(active[i]),
        }
        for i in range(PALETTE_SIZE)
    ]
