"""
PaletteCam API Schemas
Pydantic models for the control and observability API.
"""
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator


class HealthResponse(BaseModel):
    """Health check response."""
    ok: bool = Field(True, description="Service health status")
    version: str = Field(..., description="Service version")
    service: str = Field("palettecam", description="Service name")


class PaletteEntry(BaseModel):
    """Single palette slot."""
    index: int = Field(..., ge=0, le=15, description="Slot index; lower index wins ties")
    rgb: List[float] = Field(
        ...,
        min_length=3,
        max_length=3,
        description="Normalized RGB (0.0-1.0)"
    )
    hex: str = Field(
        ...,
        pattern=r"^#[0-9A-Fa-f]{6}$",
        description="Hex color code in format #RRGGBB"
    )
    active: bool = Field(..., description="False for zero-padding slots")


class PaletteResponse(BaseModel):
    """Palette currently in effect."""
    generation: int = Field(..., ge=0, description="Publication generation (0 = default palette)")
    active_count: int = Field(..., ge=0, le=16, description="Number of non-zero entries")
    entries: List[PaletteEntry] = Field(..., min_length=16, max_length=16)


class StatusResponse(BaseModel):
    """Pipeline status."""
    state: str = Field(..., description="Scheduler state ('waiting_for_frame' or 'active')")
    extraction_enabled: bool
    render_enabled: bool
    unique_colors: int = Field(..., ge=0, description="Size of the observed color set")
    palette_generation: int = Field(..., ge=0)
    extraction_in_flight: bool
    ticks: int = Field(..., ge=0)


class ToggleResponse(BaseModel):
    """Extraction switch after a toggle."""
    extraction_enabled: bool


class MatchRequest(BaseModel):
    """Color to test against the current palette."""
    rgb: List[int] = Field(
        ...,
        min_length=3,
        max_length=3,
        description="RGB channels (0-255)"
    )

    @field_validator("rgb")
    @classmethod
    def validate_channels(cls, v):
        if any(c < 0 or c > 255 for c in v):
            raise ValueError("rgb channels must be within 0-255")
        return v


class MatchResponse(BaseModel):
    """Result of matching one color."""
    matched: bool
    index: int = Field(..., ge=-1, le=15, description="Matched slot, -1 when none")
    palette_generation: int


class MetricsSummaryResponse(BaseModel):
    """Counters, gauges and timing statistics."""
    uptime_seconds: float
    counters: Dict[str, int]
    gauges: Dict[str, float]
    timing_stats: Dict[str, Dict[str, Any]]


class SystemHealthResponse(BaseModel):
    """Process resource usage."""
    timestamp: float
    memory_usage_mb: float
    memory_percent: float
    cpu_percent: float
    uptime_seconds: float
    status: str
