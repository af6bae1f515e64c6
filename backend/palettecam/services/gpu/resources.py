"""
GPU resource management for the recolor pass.

Owns the moderngl context and everything created from it: the compiled
program, the attribute-less vertex array, the sampler, the palette uniform
buffer (rebuilt on every palette publication) and the per-cycle frame
texture (created and released inside one render cycle).
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Tuple

import moderngl
from loguru import logger

from palettecam.config import config
from palettecam.errors import EmptyFrameError, FrameSizeError, GpuUnavailableError
from palettecam.services.colors.collector import PixelBuffer, as_pixel_array
from palettecam.services.colors.palette import Palette
from palettecam.services.gpu import shaders
from palettecam.utils.metrics import get_metrics

ContextFactory = Callable[[], moderngl.Context]


def standalone_context() -> moderngl.Context:
    """
    Headless GL 3.3 context.

    The default backend needs an X display; machines without one fall back to EGL.
    """
    try:
        return moderngl.create_standalone_context(require=330)
    except Exception as e:
        logger.debug(f"Default standalone GL backend unavailable ({e}); trying EGL")
        return moderngl.create_standalone_context(require=330, backend="egl")


@dataclass
class FrameTexture:
    """A frame resident on the device for the duration of one render cycle."""
    texture: Any
    width: int
    height: int

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height


class GpuResourceManager:
    """Device, pipeline state and per-cycle GPU resources."""

    def __init__(self, context_factory: ContextFactory,
                 resolution: Optional[Tuple[int, int]] = None,
                 threshold: Optional[float] = None,
                 marker_color: Optional[Tuple[float, float, float]] = None):
        self._context_factory = context_factory
        self.resolution = resolution or config.resolution
        self.threshold = config.MATCH_THRESHOLD if threshold is None else threshold
        self.marker_color = marker_color or config.MARKER_COLOR

        # Both feed shader uniforms; a zero resolution divides by zero in the fragment stage
        if not config.validate_resolution(*self.resolution):
            raise ValueError(f"Invalid frame resolution: {self.resolution[0]}x{self.resolution[1]}")
        if not config.validate_threshold(self.threshold):
            raise ValueError(f"Match threshold out of range: {self.threshold}")

        self.ctx: Optional[moderngl.Context] = None
        self.program = None
        self.vao = None
        self.sampler = None
        self._palette_buffer = None
        self._palette_generation: Optional[int] = None

    @property
    def initialized(self) -> bool:
        return self.ctx is not None

    @property
    def palette_generation(self) -> Optional[int]:
        """Generation of the palette currently resident in the uniform buffer."""
        return self._palette_generation

    @property
    def palette_buffer(self):
        return self._palette_buffer

    def initialize(self, palette: Palette) -> None:
        """
        Acquire the device, compile the pipeline and upload the initial palette.

        Raises:
            GpuUnavailableError: If no compatible GL context can be created
        """
        if self.initialized:
            return

        try:
            ctx = self._context_factory()
        except Exception as e:
            raise GpuUnavailableError(f"Failed to acquire a GL 3.3 context: {e}") from e
        if ctx is None:
            raise GpuUnavailableError("No GL context available")

        logger.info(f"GL device acquired: {ctx.info.get('GL_RENDERER', 'unknown')} "
                    f"({ctx.info.get('GL_VERSION', 'unknown')})")

        program = ctx.program(
            vertex_shader=shaders.VERTEX_SHADER,
            fragment_shader=shaders.FRAGMENT_SHADER,
        )
        program["input_texture"].value = shaders.TEXTURE_UNIT
        program["resolution"].value = tuple(float(v) for v in self.resolution)
        program["threshold"].value = float(self.threshold)
        program["marker_color"].value = tuple(float(c) for c in self.marker_color)
        program[shaders.PALETTE_BLOCK].binding = shaders.PALETTE_BINDING

        self.ctx = ctx
        self.program = program
        self.vao = ctx.vertex_array(program, [])
        self.sampler = ctx.sampler(
            filter=(moderngl.LINEAR, moderngl.LINEAR),
            repeat_x=False,
            repeat_y=False,
        )

        self.upload_palette(palette)
        logger.bind(resolution=self.resolution).info("Render pipeline compiled")

    def upload_palette(self, palette: Palette) -> None:
        """
        Replace the palette uniform buffer.

        The new buffer is fully written at creation and swapped in before the
        previous one is released, so a valid buffer always exists.
        """
        self._require_initialized()
        if self._palette_generation == palette.generation and self._palette_buffer is not None:
            return

        new_buffer = self.ctx.buffer(palette.to_bytes())
        old_buffer, self._palette_buffer = self._palette_buffer, new_buffer
        self._palette_generation = palette.generation
        if old_buffer is not None:
            old_buffer.release()

        get_metrics().increment("palette_uploads_total")
        logger.debug(f"Palette generation {palette.generation} uploaded ({palette.nbytes} bytes)")

    @contextmanager
    def upload_frame(self, pixels: PixelBuffer, width: int, height: int) -> Iterator[FrameTexture]:
        """
        Copy one RGBA frame to a texture that lives for the enclosed block.

        Raises:
            EmptyFrameError: If width or height is zero
            FrameSizeError: If the buffer does not hold width*height RGBA pixels
        """
        self._require_initialized()
        if width <= 0 or height <= 0:
            raise EmptyFrameError(f"Frame has no pixels ({width}x{height})")

        data = as_pixel_array(pixels)
        expected = width * height * 4
        if data.size != expected:
            raise FrameSizeError(
                f"Frame buffer holds {data.size} bytes, expected {expected} for {width}x{height}"
            )

        texture = self.ctx.texture((width, height), 4, data=data)
        try:
            yield FrameTexture(texture=texture, width=width, height=height)
        finally:
            texture.release()

    def bind(self, frame: FrameTexture) -> None:
        """Bind the frame, sampler and palette to the fixed bind points."""
        self._require_initialized()
        frame.texture.use(location=shaders.TEXTURE_UNIT)
        self.sampler.use(location=shaders.SAMPLER_UNIT)
        self._palette_buffer.bind_to_uniform_block(shaders.PALETTE_BINDING)

    def release(self) -> None:
        """Release every GL object owned by the manager."""
        for resource in (self._palette_buffer, self.sampler, self.vao, self.program):
            if resource is not None:
                resource.release()
        self._palette_buffer = None
        self._palette_generation = None
        self.sampler = None
        self.vao = None
        self.program = None
        self.ctx = None

    def _require_initialized(self) -> None:
        if not self.initialized:
            raise RuntimeError("GpuResourceManager.initialize() has not been called")
