"""Performance logging utilities for repository operations."""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional, Any, Generator


@dataclass
class PerformanceMetrics:
    """Performance metrics for a single operation."""
    operation: str
    duration: float
    start_time: float
    end_time: float
    context: Optional[Dict[str, Any]] = None
    success: bool = True


class PerformanceLogger:
    """
    Timing utilities for probes, change-set builds and other multi-command
    operations.
    """

    # Operations slower than this are logged as warnings
    SLOW_OPERATION_SECONDS = 10.0

    def __init__(self, logger_name: str = 'vcsync.git_sync.performance'):
        self.logger = logging.getLogger(logger_name)
        self._metrics: Dict[str, PerformanceMetrics] = {}
        self._lock = threading.Lock()

    @contextmanager
    def time_operation(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        log_level: int = logging.DEBUG
    ) -> Generator[None, None, None]:
        """
        Context manager for timing operations.

        Args:
            operation: Name of the operation being timed
            context: Additional context information
            log_level: Logging level for completion messages
        """
        start_time = time.monotonic()
        success = True
        try:
            yield
        except Exception as e:
            success = False
            self.logger.error(f"{operation} failed after {time.monotonic() - start_time:.3f}s: {e}")
            raise
        finally:
            end_time = time.monotonic()
            duration = end_time - start_time

            with self._lock:
                self._metrics[operation] = PerformanceMetrics(
                    operation=operation,
                    duration=duration,
                    start_time=start_time,
                    end_time=end_time,
                    context=context,
                    success=success
                )

            if success:
                self.logger.log(log_level, f"{operation} completed in {duration:.3f}s")
                if context:
                    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
                    self.logger.debug(f"{operation} context: {context_str}")

            if duration > self.SLOW_OPERATION_SECONDS:
                self.logger.warning(f"Slow operation detected: '{operation}' took {duration:.3f}s")

    def get_performance_summary(self) -> Dict[str, Any]:
        """
        Get a summary of performance metrics.

        Returns:
            Dictionary containing performance summary
        """
        with self._lock:
            metrics = list(self._metrics.values())

        if not metrics:
            return {"total_operations": 0, "average_duration": 0.0}

        total_duration = sum(m.duration for m in metrics)
        slowest = max(metrics, key=lambda m: m.duration)

        return {
            "total_operations": len(metrics),
            "total_duration": total_duration,
            "average_duration": total_duration / len(metrics),
            "success_rate": sum(1 for m in metrics if m.success) / len(metrics),
            "slowest_operation": {
                "name": slowest.operation,
                "duration": slowest.duration
            }
        }


_performance_logger: Optional[PerformanceLogger] = None


def get_performance_logger() -> PerformanceLogger:
    """Get or create the shared performance logger instance."""
    global _performance_logger
    if _performance_logger is None:
        _performance_logger = PerformanceLogger()
    return _performance_logger
