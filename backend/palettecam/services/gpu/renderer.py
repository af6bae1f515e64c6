"""
Full-screen match-and-recolor pass.
"""

import moderngl

from palettecam.services.gpu import shaders
from palettecam.services.gpu.resources import FrameTexture, GpuResourceManager


class MatchRecolorRenderer:
    """Draws one frame through the recolor program onto the display surface."""

    def __init__(self, resources: GpuResourceManager, display):
        self.resources = resources
        self.display = display

    def render(self, frame: FrameTexture) -> None:
        """
        Execute one pass and present it.

        The target is sized to the frame, so output dimensions always match
        the input. Submission does not wait for the GPU to finish.
        """
        target = self.display.acquire_current_target(frame.size)
        target.use()
        target.viewport = (0, 0, frame.width, frame.height)
        target.clear(0.0, 0.0, 0.0, 1.0)

        self.resources.bind(frame)
        self.resources.vao.render(mode=moderngl.TRIANGLES, vertices=shaders.FULLSCREEN_VERTICES)

        self.display.present()
