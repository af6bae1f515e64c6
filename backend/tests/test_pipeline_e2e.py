"""
End-to-end tests: frames in, palette extracted, recolored frames out.

The fake-context tests check the GPU traffic and use the NumPy matcher for
expected pixels; the offscreen tests render through a real headless GL
context and are skipped where none can be created.
"""
import asyncio

import numpy as np
import pytest

from fakes import solid_frame, split_frame
from palettecam.errors import GpuUnavailableError
from palettecam.services.colors.matching import recolor
from palettecam.services.display import OffscreenSurface
from palettecam.services.frames import ArrayFrameSource
from palettecam.services.gpu.resources import standalone_context
from palettecam.services.orchestrator import Pipeline

MARKER_RGBA = np.array([128, 0, 128, 255])


class TestPipelineWithFakeContext:

    @pytest.mark.asyncio
    async def test_solid_red_session(self, pipeline, frame_source, fake_ctx):
        """One observed color, one active slot, every pixel recolored"""
        await pipeline.start()
        frame = solid_frame((255, 0, 0))
        frame_source.set_frame(frame)

        for _ in range(3):
            await pipeline.scheduler.tick()
        palette = await pipeline.extract_palette()

        assert len(pipeline.color_set) == 1
        assert palette.active_count == 1
        assert pipeline.resources.palette_generation == 1
        assert pipeline.resources.palette_buffer.data == palette.to_bytes()
        assert len(fake_ctx.live_buffers) == 1

        expected = recolor(frame, pipeline.palette)
        assert np.all(expected[..., :3] == MARKER_RGBA[:3])

    @pytest.mark.asyncio
    async def test_two_color_session(self, pipeline, frame_source):
        """Red and blue halves give exactly two active slots"""
        await pipeline.start()
        frame_source.set_frame(split_frame((255, 0, 0), (0, 0, 255)))
        await pipeline.scheduler.tick()

        palette = await pipeline.extract_palette()

        hexes = sorted(palette.hex_colors()[:2])
        assert hexes == ["#0000FF", "#FF0000"]
        assert palette.hex_colors()[2:] == ["#000000"] * 14

    @pytest.mark.asyncio
    async def test_key_trigger_is_single_flight(self, pipeline, frame_source):
        await pipeline.start()
        frame_source.set_frame(split_frame((255, 0, 0), (0, 0, 255)))
        await pipeline.scheduler.tick()

        task = pipeline.request_extraction()
        await asyncio.sleep(0)
        assert pipeline.request_extraction() is None

        await task
        assert pipeline.palette.generation == 1
        assert pipeline.status()["extraction_in_flight"] is False

    @pytest.mark.asyncio
    async def test_key_trigger_on_empty_set_is_logged(self, pipeline):
        await pipeline.start()

        await pipeline.request_extraction()

        assert pipeline.palette.generation == 0

    @pytest.mark.asyncio
    async def test_gpu_failure_is_fatal_and_cleans_up(self, small_config, frame_source):
        class NoGpuDisplay:
            closed = False

            def create_context(self):
                raise RuntimeError("no driver")

            def close(self):
                self.closed = True

        display = NoGpuDisplay()
        pipeline = Pipeline(frame_source, display, cfg=small_config)

        with pytest.raises(GpuUnavailableError):
            await pipeline.run()
        assert display.closed


@pytest.fixture
def gl_context():
    try:
        ctx = standalone_context()
    except Exception as e:
        pytest.skip(f"No headless GL 3.3 context (default or EGL backend): {e}")
    yield ctx
    ctx.release()


@pytest.fixture
def offscreen(gl_context):
    return OffscreenSurface(refresh_hz=1000, context_factory=lambda: gl_context)


class TestOffscreenRender:

    async def _render_once(self, pipeline):
        await pipeline.scheduler.tick()
        return pipeline.display.read_rgba()

    @pytest.mark.asyncio
    async def test_solid_red_recolored(self, small_config, offscreen):
        """Every output pixel becomes the marker"""
        source = ArrayFrameSource(solid_frame((255, 0, 0)))
        pipeline = Pipeline(source, offscreen, cfg=small_config)
        await pipeline.start()
        try:
            await pipeline.scheduler.tick()
            await pipeline.extract_palette()
            out = await self._render_once(pipeline)
        finally:
            pipeline.shutdown()

        assert out.shape == (6, 8, 4)
        assert np.all(np.abs(out.astype(int) - MARKER_RGBA) <= 1)

    @pytest.mark.asyncio
    async def test_matches_reference_and_keeps_orientation(self, small_config, offscreen):
        """Top rows match the red palette, bottom rows pass through"""
        frame = solid_frame((255, 0, 0))
        frame[3:, :, :3] = (0, 200, 0)
        source = ArrayFrameSource(solid_frame((255, 0, 0)))
        pipeline = Pipeline(source, offscreen, cfg=small_config)
        await pipeline.start()
        try:
            await pipeline.scheduler.tick()
            await pipeline.extract_palette()
            source.set_frame(frame)
            out = await self._render_once(pipeline)
        finally:
            pipeline.shutdown()

        expected = recolor(frame, pipeline.palette)
        assert np.all(np.abs(out.astype(int) - expected.astype(int)) <= 1)
        assert np.all(np.abs(out[:3].astype(int) - MARKER_RGBA) <= 1)
        assert np.all(out[3:, :, :3] == [0, 200, 0])

    @pytest.mark.asyncio
    async def test_default_palette_before_extraction(self, small_config, offscreen):
        """Pure blue matches the start-up palette without any extraction"""
        source = ArrayFrameSource(solid_frame((0, 0, 255)))
        pipeline = Pipeline(source, offscreen, cfg=small_config)
        await pipeline.start()
        try:
            out = await self._render_once(pipeline)
        finally:
            pipeline.shutdown()

        assert np.all(np.abs(out.astype(int) - MARKER_RGBA) <= 1)

    @pytest.mark.asyncio
    async def test_two_color_frame_fully_recolored(self, small_config, offscreen):
        """Red and blue halves both land in the palette and both render as the marker"""
        frame = split_frame((255, 0, 0), (0, 0, 255))
        source = ArrayFrameSource(frame)
        pipeline = Pipeline(source, offscreen, cfg=small_config)
        await pipeline.start()
        try:
            await pipeline.scheduler.tick()
            palette = await pipeline.extract_palette()
            out = await self._render_once(pipeline)
        finally:
            pipeline.shutdown()

        assert palette.active_count == 2
        expected = recolor(frame, palette)
        assert np.all(np.abs(out.astype(int) - expected.astype(int)) <= 1)
        assert np.all(np.abs(out.astype(int) - MARKER_RGBA) <= 1)

    @pytest.mark.asyncio
    async def test_unseen_color_passes_through(self, small_config, offscreen):
        """A palette learned from red and blue still leaves green untouched"""
        source = ArrayFrameSource(split_frame((255, 0, 0), (0, 0, 255)))
        pipeline = Pipeline(source, offscreen, cfg=small_config)
        await pipeline.start()
        try:
            await pipeline.scheduler.tick()
            await pipeline.extract_palette()
            frame = split_frame((0, 0, 255), (0, 200, 0))
            source.set_frame(frame)
            out = await self._render_once(pipeline)
        finally:
            pipeline.shutdown()

        assert np.all(np.abs(out[:, :4].astype(int) - MARKER_RGBA) <= 1)
        assert np.all(out[:, 4:, :3] == [0, 200, 0])
