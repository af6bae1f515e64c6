"""
PaletteCam entry point.

Runs the capture → collect → recolor loop in a window (or offscreen) and,
alongside it on the same event loop, the control API.
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from dotenv import load_dotenv

# Environment must be loaded before the config class reads it
load_dotenv()

import glfw
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from palettecam import __version__
from palettecam.api.observability import router as observability_router
from palettecam.api.v1 import router as v1_router
from palettecam.config import config
from palettecam.errors import FrameSourceError, GpuUnavailableError
from palettecam.schemas import HealthResponse
from palettecam.services.display import GlfwWindowSurface, OffscreenSurface
from palettecam.services.frames import CameraFrameSource, FrameSource, ImageFrameSource
from palettecam.services.orchestrator import Pipeline
from palettecam.utils.logging import configure_logging


def create_app(pipeline: Optional[Pipeline] = None) -> FastAPI:
    """Build the control API around a pipeline (which may be attached later)."""
    app = FastAPI(
        title="PaletteCam",
        description="Control API for live palette extraction and recoloring",
        version=__version__
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.state.pipeline = pipeline
    app.include_router(v1_router)
    app.include_router(observability_router)

    @app.get("/healthz", response_model=HealthResponse)
    async def healthz():
        return HealthResponse(ok=True, version=__version__)

    return app


def build_source(args: argparse.Namespace) -> FrameSource:
    if args.image:
        return ImageFrameSource(args.image)
    return CameraFrameSource(args.camera, requested_size=config.resolution).open()


def build_display(args: argparse.Namespace):
    if args.headless:
        return OffscreenSurface(refresh_hz=config.REFRESH_HZ, max_frames=args.max_frames)
    return GlfwWindowSurface(config.resolution, refresh_hz=config.REFRESH_HZ)


async def run(args: argparse.Namespace) -> int:
    try:
        source = build_source(args)
    except FrameSourceError as e:
        logger.error(f"Frame source unavailable: {e}")
        return 1

    display = build_display(args)
    try:
        pipeline = Pipeline(source, display)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        source.close()
        return 1

    if isinstance(display, GlfwWindowSurface):
        display.bind_key(glfw.KEY_E, pipeline.request_extraction)
        display.bind_key(glfw.KEY_C, pipeline.toggle_extraction)

    server = None
    server_task = None
    if args.api:
        app = create_app(pipeline)
        server = uvicorn.Server(uvicorn.Config(
            app, host=config.API_HOST, port=config.API_PORT, log_level="warning"
        ))
        server_task = asyncio.create_task(server.serve())
        logger.info(f"Control API listening on http://{config.API_HOST}:{config.API_PORT}")

    try:
        await pipeline.run()
    except GpuUnavailableError as e:
        logger.error(f"No usable graphics backend: {e}")
        return 1
    finally:
        if server is not None:
            server.should_exit = True
            await server_task

    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Highlight live camera pixels that match a palette learned from the scene"
    )
    parser.add_argument("--camera", type=int, default=config.CAMERA_INDEX,
                        help="Capture device index")
    parser.add_argument("--image", default=None,
                        help="Use a still image instead of the camera")
    parser.add_argument("--headless", action="store_true",
                        help="Render offscreen instead of opening a window")
    parser.add_argument("--max-frames", type=int, default=None,
                        help="Stop after presenting this many frames (headless only)")
    parser.add_argument("--no-api", dest="api", action="store_false", default=config.API_ENABLED,
                        help="Do not start the control API")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    return parser.parse_args(argv)


def cli(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    logger.info("Keys: E extract palette  C toggle color collection  ESC quit")
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(cli())
