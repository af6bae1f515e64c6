"""
PaletteCam Pipeline Orchestrator
Wires the collector, extractor, GPU resources, renderer and scheduler together
and runs the start-up sequence: acquire device, compile pipeline, enter loop.
"""
import asyncio
from typing import Any, Dict, Optional

from loguru import logger

from palettecam.config import Config, config as default_config
from palettecam.errors import EmptyColorSetError, ExtractionInFlightError
from palettecam.services.colors.collector import ColorSetCollector, ObservedColorSet
from palettecam.services.colors.extraction import PaletteExtractor
from palettecam.services.colors.palette import Palette, PaletteState
from palettecam.services.frames import FrameSource
from palettecam.services.gpu.renderer import MatchRecolorRenderer
from palettecam.services.gpu.resources import GpuResourceManager
from palettecam.services.observability import performance_monitor
from palettecam.services.scheduler import FrameScheduler


class Pipeline:
    """One capture → collect → extract → recolor session."""

    def __init__(self, source: FrameSource, display, cfg: Optional[Config] = None,
                 color_set: Optional[ObservedColorSet] = None):
        self.config = cfg or default_config
        self.source = source
        self.display = display

        self.color_set = color_set if color_set is not None else ObservedColorSet()
        self.palette_state = PaletteState()

        self.collector = ColorSetCollector(self.color_set, divisor=self.config.QUANT_DIVISOR)
        self.resources = GpuResourceManager(
            display.create_context,
            resolution=self.config.resolution,
            threshold=self.config.MATCH_THRESHOLD,
            marker_color=self.config.MARKER_COLOR,
        )
        self.renderer = MatchRecolorRenderer(self.resources, display)
        self.scheduler = FrameScheduler(
            source,
            self.collector,
            self.resources,
            self.renderer,
            expected_size=self.config.resolution,
            extraction_enabled=self.config.EXTRACT_ON_START,
        )
        self.extractor = PaletteExtractor(
            self.color_set,
            self.palette_state,
            self.publish_palette,
            divisor=self.config.QUANT_DIVISOR,
        )
        self._extraction_task: Optional[asyncio.Task] = None

    @property
    def palette(self) -> Palette:
        return self.palette_state.current

    def publish_palette(self, palette: Palette) -> None:
        """Make a palette current: GPU buffer first, then the shared state."""
        if self.resources.initialized:
            self.resources.upload_palette(palette)
        self.palette_state.publish(palette)

    async def start(self) -> None:
        """
        Acquire the device and compile the pipeline.

        Raises:
            GpuUnavailableError: Fatal; surfaced once, never retried
        """
        with performance_monitor("gpu_startup"):
            self.resources.initialize(self.palette_state.current)
        # Palette published while the device was coming up
        self.resources.upload_palette(self.palette_state.current)

    async def run(self) -> None:
        try:
            await self.start()
            await self.scheduler.run(self.display)
        finally:
            self.shutdown()

    async def extract_palette(self) -> Palette:
        """Run one extraction; see PaletteExtractor.trigger for errors."""
        return await self.extractor.trigger()

    def request_extraction(self) -> Optional[asyncio.Task]:
        """
        Fire-and-forget extraction for key bindings.

        Returns None when a run is already active.
        """
        if self.extractor.in_flight:
            logger.warning("Palette extraction already running; trigger ignored")
            return None
        self._extraction_task = asyncio.get_running_loop().create_task(self._extract_logged())
        return self._extraction_task

    async def _extract_logged(self) -> None:
        try:
            await self.extractor.trigger()
        except (ExtractionInFlightError, EmptyColorSetError) as e:
            logger.warning(f"Palette extraction not run: {e}")

    def toggle_extraction(self) -> bool:
        return self.scheduler.toggle_extraction()

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.scheduler.state.value,
            "extraction_enabled": self.scheduler.extraction_enabled,
            "render_enabled": self.scheduler.render_enabled,
            "unique_colors": len(self.color_set),
            "palette_generation": self.palette_state.current.generation,
            "extraction_in_flight": self.extractor.in_flight,
            "ticks": self.scheduler.ticks,
        }

    def shutdown(self) -> None:
        self.scheduler.stop()
        self.resources.release()
        self.source.close()
        self.display.close()
        logger.info("Pipeline shut down")
