"""
Performance monitoring for the PaletteCam pipeline.

Wraps long-running operations (palette extraction, device start-up) and
records duration, resident memory and CPU usage into the global metrics
collector, logging a one-line summary per operation.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

import psutil
from loguru import logger

from palettecam.utils.metrics import get_metrics


@dataclass
class PerformanceMetrics:
    """Performance metrics for a single monitored operation."""
    operation_name: str
    duration_ms: float
    memory_usage_mb: float
    cpu_percent: float
    sample_count: int
    timestamp: float
    error: Optional[str] = None


@contextmanager
def performance_monitor(operation_name: str, sample_count: int = 0):
    """Context manager for monitoring performance of operations."""
    process = psutil.Process()
    start_time = time.time()
    start_memory = process.memory_info().rss / 1024 / 1024  # MB
    start_cpu = psutil.cpu_percent()

    error_msg = None

    try:
        yield
    except Exception as e:
        error_msg = str(e)
        raise
    finally:
        end_time = time.time()
        end_memory = process.memory_info().rss / 1024 / 1024  # MB
        end_cpu = psutil.cpu_percent()

        metrics = PerformanceMetrics(
            operation_name=operation_name,
            duration_ms=(end_time - start_time) * 1000,
            memory_usage_mb=max(end_memory, start_memory),
            cpu_percent=max(end_cpu, start_cpu),
            sample_count=sample_count,
            timestamp=end_time,
            error=error_msg
        )

        collector = get_metrics()
        collector.record_timing(operation_name, metrics.duration_ms)
        collector.increment(f"{operation_name}_total")
        if error_msg:
            collector.increment(f"{operation_name}_failed_total")
            logger.error(f"Operation {operation_name} failed after {metrics.duration_ms:.1f}ms: {error_msg}")
        else:
            logger.info(f"Operation {operation_name} completed in {metrics.duration_ms:.1f}ms "
                        f"(memory: {metrics.memory_usage_mb:.1f}MB, CPU: {metrics.cpu_percent:.1f}%)")


def system_health() -> Dict[str, Any]:
    """Snapshot of process resource usage."""
    process = psutil.Process()
    memory_percent = process.memory_percent()
    cpu_percent = process.cpu_percent()

    status = "healthy"
    if memory_percent > 80 or cpu_percent > 80:
        status = "warning"
    if memory_percent > 95 or cpu_percent > 95:
        status = "critical"

    return {
        "timestamp": time.time(),
        "memory_usage_mb": process.memory_info().rss / 1024 / 1024,
        "memory_percent": memory_percent,
        "cpu_percent": cpu_percent,
        "uptime_seconds": get_metrics().get_uptime_seconds(),
        "status": status,
    }
