"""
Display surfaces.

A display surface owns the GL context the pipeline renders with, hands out
a render target sized to the current frame, presents it, and paces the
frame loop to its refresh rate.
"""

import asyncio
from typing import Callable, Dict, Optional, Protocol, Tuple

import glfw
import moderngl
import numpy as np
from loguru import logger

from palettecam.errors import GpuUnavailableError
from palettecam.services.gpu.resources import standalone_context


class DisplaySurface(Protocol):
    def create_context(self) -> moderngl.Context: ...

    def acquire_current_target(self, size: Tuple[int, int]): ...

    def present(self) -> None: ...

    async def next_refresh(self) -> None: ...

    def should_close(self) -> bool: ...

    def close(self) -> None: ...


class GlfwWindowSurface:
    """On-screen window with a GL 3.3 core context."""

    def __init__(self, size: Tuple[int, int], title: str = "PaletteCam", refresh_hz: float = 60.0):
        self.size = size
        self.title = title
        self.refresh_hz = refresh_hz
        self.window = None
        self.ctx: Optional[moderngl.Context] = None
        self._key_bindings: Dict[int, Callable[[], None]] = {}

    def create_context(self) -> moderngl.Context:
        if not glfw.init():
            raise GpuUnavailableError("GLFW init failed")

        glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 3)
        glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
        glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)
        glfw.window_hint(glfw.OPENGL_FORWARD_COMPAT, True)

        window = glfw.create_window(self.size[0], self.size[1], self.title, None, None)
        if not window:
            glfw.terminate()
            raise GpuUnavailableError("Could not create a GL 3.3 core window")

        glfw.make_context_current(window)
        # Pacing is done by next_refresh(); a blocking vsync swap would stall the loop
        glfw.swap_interval(0)
        glfw.set_key_callback(window, self._on_key)

        self.window = window
        self.ctx = moderngl.create_context()
        return self.ctx

    def bind_key(self, key: int, callback: Callable[[], None]) -> None:
        """Run callback when key is pressed (glfw.KEY_* constant)."""
        self._key_bindings[key] = callback

    def _on_key(self, window, key, scancode, action, mods) -> None:
        if action != glfw.PRESS:
            return
        if key == glfw.KEY_ESCAPE:
            glfw.set_window_should_close(window, True)
            return
        callback = self._key_bindings.get(key)
        if callback is not None:
            callback()

    def acquire_current_target(self, size: Tuple[int, int]):
        if tuple(size) != tuple(self.size):
            glfw.set_window_size(self.window, size[0], size[1])
            self.size = tuple(size)
        return self.ctx.screen

    def present(self) -> None:
        glfw.swap_buffers(self.window)

    async def next_refresh(self) -> None:
        glfw.poll_events()
        await asyncio.sleep(1.0 / self.refresh_hz)

    def should_close(self) -> bool:
        return self.window is not None and glfw.window_should_close(self.window)

    def close(self) -> None:
        if self.window is not None:
            glfw.destroy_window(self.window)
            self.window = None
            glfw.terminate()


class OffscreenSurface:
    """Headless surface rendering into a framebuffer that can be read back."""

    def __init__(self, refresh_hz: float = 60.0, max_frames: Optional[int] = None,
                 context_factory: Optional[Callable[[], moderngl.Context]] = None):
        self.refresh_hz = refresh_hz
        self.max_frames = max_frames
        self.frames_presented = 0
        self.ctx: Optional[moderngl.Context] = None
        self.framebuffer = None
        self._context_factory = context_factory or standalone_context

    def create_context(self) -> moderngl.Context:
        self.ctx = self._context_factory()
        return self.ctx

    def acquire_current_target(self, size: Tuple[int, int]):
        if self.framebuffer is None or tuple(self.framebuffer.size) != tuple(size):
            if self.framebuffer is not None:
                self.framebuffer.release()
            self.framebuffer = self.ctx.simple_framebuffer(tuple(size), components=4)
            logger.debug(f"Offscreen target resized to {size[0]}x{size[1]}")
        return self.framebuffer

    def present(self) -> None:
        self.frames_presented += 1

    def read_rgba(self) -> np.ndarray:
        """Last presented frame as (H, W, 4) uint8, rows top-down."""
        width, height = self.framebuffer.size
        data = self.framebuffer.read(components=4, alignment=1)
        pixels = np.frombuffer(data, dtype=np.uint8).reshape(height, width, 4)
        # GL rows are bottom-up
        return np.flipud(pixels).copy()

    async def next_refresh(self) -> None:
        await asyncio.sleep(1.0 / self.refresh_hz)

    def should_close(self) -> bool:
        return self.max_frames is not None and self.frames_presented >= self.max_frames

    def close(self) -> None:
        if self.framebuffer is not None:
            self.framebuffer.release()
            self.framebuffer = None
