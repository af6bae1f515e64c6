"""
PaletteCam Configuration
Manages environment variables and defaults for the capture, clustering and render pipeline.
"""
import os
from typing import Tuple


def _parse_color(value: str) -> Tuple[float, float, float]:
    """Parse a comma-separated normalized RGB triple."""
    parts = [float(p) for p in value.split(",")]
    if len(parts) != 3:
        raise ValueError(f"Expected three comma-separated channels, got {value!r}")
    return parts[0], parts[1], parts[2]


class Config:
    """Configuration class for PaletteCam services."""

    # Frame geometry (the resolution the shader normalizes against)
    FRAME_WIDTH: int = int(os.environ.get("PALETTECAM_FRAME_WIDTH", "640"))
    FRAME_HEIGHT: int = int(os.environ.get("PALETTECAM_FRAME_HEIGHT", "480"))

    # Color collection
    QUANT_DIVISOR: int = int(os.environ.get("PALETTECAM_QUANT_DIVISOR", "3"))

    # Matching
    MATCH_THRESHOLD: float = float(os.environ.get("PALETTECAM_MATCH_THRESHOLD", "0.1"))
    MARKER_COLOR: Tuple[float, float, float] = _parse_color(
        os.environ.get("PALETTECAM_MARKER_COLOR", "0.5,0.0,0.5")
    )

    # Clustering
    KMEANS_MAX_ITER: int = int(os.environ.get("PALETTECAM_KMEANS_MAX_ITER", "300"))
    KMEANS_TOL: float = float(os.environ.get("PALETTECAM_KMEANS_TOL", "1e-4"))
    KMEANS_N_INIT: int = int(os.environ.get("PALETTECAM_KMEANS_N_INIT", "4"))
    RNG_SEED: int = int(os.environ.get("PALETTECAM_RNG_SEED", "42"))

    # Capture and pacing
    CAMERA_INDEX: int = int(os.environ.get("PALETTECAM_CAMERA_INDEX", "0"))
    REFRESH_HZ: float = float(os.environ.get("PALETTECAM_REFRESH_HZ", "60"))
    EXTRACT_ON_START: bool = bool(int(os.environ.get("PALETTECAM_EXTRACT_ON_START", "1")))

    # Logging
    LOG_LEVEL: str = os.environ.get("PALETTECAM_LOG_LEVEL", "INFO")

    # Control API
    API_ENABLED: bool = bool(int(os.environ.get("PALETTECAM_API_ENABLED", "1")))
    API_HOST: str = os.environ.get("PALETTECAM_API_HOST", "127.0.0.1")
    API_PORT: int = int(os.environ.get("PALETTECAM_API_PORT", "8765"))

    @property
    def resolution(self) -> Tuple[int, int]:
        return self.FRAME_WIDTH, self.FRAME_HEIGHT

    @classmethod
    def validate_divisor(cls, divisor: int) -> bool:
        """Validate quantization divisor (each quantized channel must fit 8 bits)."""
        return 1 <= divisor <= 255

    @classmethod
    def validate_threshold(cls, threshold: float) -> bool:
        """Validate match threshold in normalized RGB space."""
        return 0.0 < threshold <= 3 ** 0.5

    @classmethod
    def validate_resolution(cls, width: int, height: int) -> bool:
        """Validate configured frame resolution."""
        return 0 < width <= 8192 and 0 < height <= 8192


# Global config instance
config = Config()
