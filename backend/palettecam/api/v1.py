"""
PaletteCam Control API Routes
Palette extraction trigger, extraction toggle, status and palette inspection.
"""
from fastapi import APIRouter, Depends, HTTPException, Request

from palettecam.errors import EmptyColorSetError, ExtractionInFlightError
from palettecam.schemas import (
    MatchRequest,
    MatchResponse,
    PaletteResponse,
    StatusResponse,
    ToggleResponse,
)
from palettecam.services.colors.matching import match_color
from palettecam.services.colors.palette import Palette, palette_entries
from palettecam.services.orchestrator import Pipeline

router = APIRouter(prefix="/v1", tags=["control"])


def get_pipeline(request: Request) -> Pipeline:
    """Pipeline attached to the application at start-up."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not running")
    return pipeline


def _palette_response(palette: Palette) -> PaletteResponse:
    return PaletteResponse(
        generation=palette.generation,
        active_count=palette.active_count,
        entries=palette_entries(palette),
    )


@router.get("/status", response_model=StatusResponse)
async def get_status(pipeline: Pipeline = Depends(get_pipeline)):
    """Scheduler state, switches and color counts."""
    return StatusResponse(**pipeline.status())


@router.get("/palette", response_model=PaletteResponse)
async def get_palette(pipeline: Pipeline = Depends(get_pipeline)):
    """Palette currently used by the renderer."""
    return _palette_response(pipeline.palette)


@router.post("/palette/extract", response_model=PaletteResponse,
             summary="Extract palette",
             description="Cluster the observed colors into a new palette and publish it")
async def extract_palette(pipeline: Pipeline = Depends(get_pipeline)):
    try:
        palette = await pipeline.extract_palette()
    except ExtractionInFlightError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except EmptyColorSetError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _palette_response(palette)


@router.post("/extraction/toggle", response_model=ToggleResponse)
async def toggle_extraction(pipeline: Pipeline = Depends(get_pipeline)):
    """Flip whether incoming frames feed the observed color set."""
    return ToggleResponse(extraction_enabled=pipeline.toggle_extraction())


@router.post("/palette/match", response_model=MatchResponse)
async def match(body: MatchRequest, pipeline: Pipeline = Depends(get_pipeline)):
    """Would this color be recolored by the current palette?"""
    palette = pipeline.palette
    rgb = [c / 255.0 for c in body.rgb]
    index = match_color(rgb, palette, pipeline.config.MATCH_THRESHOLD)
    return MatchResponse(matched=index >= 0, index=index, palette_generation=palette.generation)
