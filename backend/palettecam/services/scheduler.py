"""
Frame scheduler.

Drives one iteration per display refresh: poll the frame source, feed the
color collector when extraction is enabled, then upload and render the
frame. Runs on the event loop thread and never blocks it.
"""

import asyncio
import time
from enum import Enum
from typing import Optional, Set, Tuple

from loguru import logger

from palettecam.config import config
from palettecam.errors import RecoverableFrameError
from palettecam.services.colors.collector import ColorSetCollector
from palettecam.services.frames import FrameSource
from palettecam.services.gpu.renderer import MatchRecolorRenderer
from palettecam.services.gpu.resources import GpuResourceManager
from palettecam.utils.metrics import get_metrics


class SchedulerState(str, Enum):
    WAITING_FOR_FRAME = "waiting_for_frame"
    ACTIVE = "active"


class FrameScheduler:
    """Per-frame loop over collector, upload and render."""

    def __init__(self, source: FrameSource, collector: ColorSetCollector,
                 resources: GpuResourceManager, renderer: MatchRecolorRenderer,
                 expected_size: Optional[Tuple[int, int]] = None,
                 extraction_enabled: bool = True, render_enabled: bool = True):
        self.source = source
        self.collector = collector
        self.resources = resources
        self.renderer = renderer
        self.expected_size = expected_size or config.resolution
        self.extraction_enabled = extraction_enabled
        self.render_enabled = render_enabled

        self.state = SchedulerState.WAITING_FOR_FRAME
        self.ticks = 0
        self._mismatches_reported: Set[Tuple[int, int]] = set()
        self._stop_requested = False

    def toggle_extraction(self) -> bool:
        """Flip the extraction switch; effective from the next tick."""
        self.extraction_enabled = not self.extraction_enabled
        logger.info(f"Color extraction {'enabled' if self.extraction_enabled else 'disabled'}")
        return self.extraction_enabled

    def stop(self) -> None:
        self._stop_requested = True

    async def tick(self) -> None:
        """Run one iteration of the loop."""
        metrics = get_metrics()
        self.ticks += 1

        width, height = self.source.current_dimensions()
        if width == 0 or height == 0:
            metrics.increment("ticks_waiting_total")
            return

        if self.state is SchedulerState.WAITING_FOR_FRAME:
            self.state = SchedulerState.ACTIVE
            logger.info(f"Frame source ready ({width}x{height}); scheduler active")

        start = time.perf_counter()
        frame = self.source.current_frame()
        self._check_dimensions(frame.size)

        if self.extraction_enabled:
            self.collector.collect(frame.pixels)

        if self.render_enabled:
            pixels = await asyncio.to_thread(frame.to_upload_buffer)
            try:
                with self.resources.upload_frame(pixels, frame.width, frame.height) as texture:
                    self.renderer.render(texture)
            except RecoverableFrameError as e:
                metrics.increment("frames_skipped_total")
                logger.warning(f"Skipping render cycle: {e}")
                return
            metrics.increment("frames_rendered_total")

        metrics.record_timing("frame_tick", (time.perf_counter() - start) * 1000)

    def _check_dimensions(self, size: Tuple[int, int]) -> None:
        if tuple(size) == tuple(self.expected_size):
            return
        get_metrics().increment("frame_size_mismatch_total")
        if size not in self._mismatches_reported:
            self._mismatches_reported.add(size)
            logger.warning(f"Frame size {size[0]}x{size[1]} differs from configured "
                           f"{self.expected_size[0]}x{self.expected_size[1]}")

    async def run(self, display) -> None:
        """Tick once per display refresh until the display closes or stop() is called."""
        self._stop_requested = False
        while not self._stop_requested and not display.should_close():
            await self.tick()
            await display.next_refresh()
        logger.info(f"Frame loop stopped after {self.ticks} ticks")
