"""
Logging setup for the CLI and the per-stage pipeline trace.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union
from datetime import datetime

TRACE_LOGGER_NAME = "pipeline_trace"

DEFAULT_FORMAT = '[%(asctime)s - %(levelname)s - %(name)s] %(message)s'
TRACE_FORMAT = '[%(asctime)s - TRACE] [%(run_id)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


class LoggingService:
    """Configures the root logger and the trace logger."""

    @staticmethod
    def setup_logging(
        log_level: Union[int, str] = logging.INFO,
        log_file: Optional[Path] = None,
        format_string: Optional[str] = None
    ) -> None:
        """
        Route the root logger to stdout and, optionally, a file.

        Args:
            log_level: Level or level name; unknown names fall back to INFO
            log_file: Optional file receiving the same records
            format_string: Overrides DEFAULT_FORMAT
        """
        level = _resolve_level(log_level)
        formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT)

        handlers = [logging.StreamHandler(sys.stdout)]
        if log_file:
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        for handler in handlers:
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)

        logging.info(f"Logging configured (level: {logging.getLevelName(level)})")

    @staticmethod
    def setup_trace_logging(
        log_dir: Path = Path("outputs/logs"),
        log_level: int = logging.DEBUG
    ) -> logging.Logger:
        """
        Send pipeline_trace records to a timestamped file in log_dir.

        Each record carries the run id of the process() call that emitted it.
        The logger does not propagate, so trace lines stay out of the console.
        """
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        trace_logger = logging.getLogger(TRACE_LOGGER_NAME)
        trace_logger.setLevel(log_level)
        trace_logger.propagate = False
        for handler in trace_logger.handlers[:]:
            trace_logger.removeHandler(handler)
            handler.close()

        trace_file = log_dir / f"pipeline_trace_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        file_handler = logging.FileHandler(trace_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(TRACE_FORMAT, datefmt=DATE_FORMAT))
        trace_logger.addHandler(file_handler)

        logging.info(f"Pipeline trace logging configured: {trace_file}")
        return trace_logger
