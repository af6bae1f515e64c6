"""
Test configuration and fixtures for PaletteCam tests.
"""
import pytest
from fastapi.testclient import TestClient

from fakes import FakeContext, FakeDisplay
from main import create_app
from palettecam.config import Config
from palettecam.services.frames import ArrayFrameSource
from palettecam.services.orchestrator import Pipeline


@pytest.fixture
def small_config():
    """Config sized to the small synthetic frames used in tests."""
    cfg = Config()
    cfg.FRAME_WIDTH = 8
    cfg.FRAME_HEIGHT = 6
    cfg.EXTRACT_ON_START = True
    return cfg


@pytest.fixture
def fake_ctx():
    return FakeContext()


@pytest.fixture
def fake_display(fake_ctx):
    return FakeDisplay(fake_ctx)


@pytest.fixture
def frame_source():
    return ArrayFrameSource()


@pytest.fixture
def pipeline(frame_source, fake_display, small_config):
    """Pipeline wired to a fake GL context (not started)."""
    return Pipeline(frame_source, fake_display, cfg=small_config)


@pytest.fixture
def test_client(pipeline):
    """Create test client for the FastAPI app."""
    return TestClient(create_app(pipeline))


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset metrics before each test."""
    from palettecam.utils.metrics import reset_metrics
    reset_metrics()
