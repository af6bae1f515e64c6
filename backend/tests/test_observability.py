"""
Tests for metrics collection, performance monitoring, logging and config.
"""
import pytest
from loguru import logger

from palettecam.config import Config, _parse_color
from palettecam.services.observability import performance_monitor, system_health
from palettecam.utils.logging import configure_logging
from palettecam.utils.metrics import MetricsCollector, get_metrics


class TestMetricsCollector:

    def test_counters_and_gauges(self):
        metrics = MetricsCollector()
        metrics.increment("frames_rendered_total")
        metrics.increment("frames_rendered_total", 2)
        metrics.set_gauge("unique_colors", 12)

        assert metrics.get_counters() == {"frames_rendered_total": 3}
        assert metrics.get_gauges() == {"unique_colors": 12}

    def test_timing_stats(self):
        metrics = MetricsCollector()
        for value in (1.0, 2.0, 3.0, 4.0):
            metrics.record_timing("frame_tick", value)

        stats = metrics.get_timing_stats()["frame_tick_duration_ms"]
        assert stats["count"] == 4
        assert stats["mean"] == pytest.approx(2.5)
        assert stats["min"] == 1.0 and stats["max"] == 4.0
        assert stats["p50"] == pytest.approx(2.5)

    def test_timing_window_is_bounded(self):
        metrics = MetricsCollector()
        for i in range(1500):
            metrics.record_timing("frame_tick", float(i))

        stats = metrics.get_timing_stats()["frame_tick_duration_ms"]
        assert stats["count"] == 1000
        assert stats["min"] == 500.0

    def test_reset(self):
        metrics = MetricsCollector()
        metrics.increment("x")
        metrics.reset()
        assert metrics.get_summary()["counters"] == {}


class TestPerformanceMonitor:

    def test_successful_operation_recorded(self):
        with performance_monitor("palette_extraction", sample_count=10):
            pass

        metrics = get_metrics()
        assert metrics.get_counters()["palette_extraction_total"] == 1
        assert "palette_extraction_failed_total" not in metrics.get_counters()
        assert metrics.get_timing_stats()["palette_extraction_duration_ms"]["count"] == 1

    def test_failure_is_counted_and_reraised(self):
        with pytest.raises(RuntimeError):
            with performance_monitor("gpu_startup"):
                raise RuntimeError("boom")

        counters = get_metrics().get_counters()
        assert counters["gpu_startup_total"] == 1
        assert counters["gpu_startup_failed_total"] == 1

    def test_system_health_fields(self):
        health = system_health()
        for key in ("timestamp", "memory_usage_mb", "memory_percent", "cpu_percent",
                    "uptime_seconds", "status"):
            assert key in health


class TestLogging:

    def test_replaces_existing_sinks(self):
        records = []
        logger.add(lambda message: records.append(message.record))

        handler_id = configure_logging("DEBUG")
        try:
            logger.info("Frame source ready")
        finally:
            logger.remove(handler_id)

        assert records == []

    def test_level_and_bound_extras(self, capsys):
        """Bound fields land in the extra column; lower levels are filtered"""
        handler_id = configure_logging("warning")
        try:
            logger.bind(generation=3).info("Palette published")
            logger.bind(size=(16, 12)).warning("Frame size differs")
        finally:
            logger.remove(handler_id)

        out = capsys.readouterr().out
        assert "Palette published" not in out
        assert "| WARNING | Frame size differs |" in out
        assert "'size': (16, 12)" in out


class TestConfig:

    def test_defaults(self):
        cfg = Config()
        assert cfg.QUANT_DIVISOR == 3
        assert cfg.MATCH_THRESHOLD == pytest.approx(0.1)
        assert cfg.MARKER_COLOR == (0.5, 0.0, 0.5)

    def test_validators(self):
        assert Config.validate_divisor(3)
        assert not Config.validate_divisor(0)
        assert not Config.validate_divisor(256)
        assert Config.validate_threshold(0.1)
        assert not Config.validate_threshold(0.0)
        assert Config.validate_resolution(640, 480)
        assert not Config.validate_resolution(0, 480)
        assert not Config.validate_resolution(640, 0)

    def test_parse_color(self):
        assert _parse_color("1,0,0.25") == (1.0, 0.0, 0.25)
        with pytest.raises(ValueError):
            _parse_color("1,0")
