"""
Observability endpoints for the PaletteCam pipeline.
"""

from fastapi import APIRouter, HTTPException

from palettecam.schemas import MetricsSummaryResponse, SystemHealthResponse
from palettecam.services.observability import system_health
from palettecam.utils.metrics import get_metrics

router = APIRouter(prefix="/metrics", tags=["observability"])


@router.get("/health", response_model=SystemHealthResponse)
async def get_system_health():
    """Get current process resource usage."""
    try:
        return SystemHealthResponse(**system_health())
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to get system health: {e}")


@router.get("/summary", response_model=MetricsSummaryResponse)
async def get_metrics_summary():
    """Frame loop and extraction counters and timings."""
    return MetricsSummaryResponse(**get_metrics().get_summary())
