"""
Logging Configuration

Structured logging for the pill identification pipeline.
"""

import logging
import sys
from typing import Dict, Optional, Union, TextIO
from datetime import datetime


ROOT_LOGGER_NAME = "pill_pipeline"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Logging level or level name (default: INFO)
        log_file: Optional file path for log output
        format_string: Custom format string
        stream: Console stream (default: stdout)

    Returns:
        The package root logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if format_string is None:
        format_string = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    formatter = logging.Formatter(format_string)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the package namespace.

    Args:
        name: Module name (usually __name__)
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class PipelineLogger:
    """
    Run-scoped logger.

    Tags every line with the run's short request id and tracks stage timings.
    """

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.run.{request_id[:8]}")
        self._stage_start_times: Dict[str, datetime] = {}

    def stage_start(self, stage_name: str) -> None:
        self._stage_start_times[stage_name] = datetime.now()
        self.logger.info(f"Stage '{stage_name}' started")

    def stage_end(self, stage_name: str, success: bool = True) -> float:
        """Log stage completion and return its duration in milliseconds."""
        duration = 0.0
        if stage_name in self._stage_start_times:
            delta = datetime.now() - self._stage_start_times.pop(stage_name)
            duration = delta.total_seconds() * 1000

        status = "completed" if success else "failed"
        self.logger.info(f"Stage '{stage_name}' {status} in {duration:.2f}ms")
        return duration

    def stage_error(self, stage_name: str, error: Exception) -> None:
        self.logger.error(f"Stage '{stage_name}' error: {error}")

    def unit_outcome(self, region_id: str, status: str, detail: str = "") -> None:
        suffix = f": {detail}" if detail else ""
        if status == "failed":
            self.logger.warning(f"Region {region_id} {status}{suffix}")
        else:
            self.logger.info(f"Region {region_id} {status}{suffix}")

    def metric(self, name: str, value: float, unit: str = "") -> None:
        self.logger.info(f"Metric [{name}]: {value}{unit}")
