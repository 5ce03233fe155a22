"""
Centralised Loguru configuration.

Sets up two logging sinks with different verbosity levels:
  - **stderr** (terminal): INFO and above by default, compact, coloured.
  - **File**: DEBUG and above, full timestamps with source location, size
    rotation with automatic compression and 30-day retention.

Call ``setup_logger()`` once at application startup.  Library modules only
ever ``from loguru import logger`` and never add sinks themselves.
"""
import sys
from pathlib import Path

from loguru import logger

LOG_FILE_PREFIX = "riskengine"


def log_file_name(day: str) -> str:
    """Name of the daily log file for an ISO date string."""
    return f"{LOG_FILE_PREFIX}_{day}.log"


def setup_logger(log_dir: str = "logs", level: str = "INFO") -> logger:
    """Configure and return the global Loguru logger.

    Args:
        log_dir: Directory for rotated log files.  Created automatically
                 if it does not exist.
        level: Minimum level for the terminal sink.

    Returns:
        The configured ``logger`` instance (same singleton used everywhere
        via ``from loguru import logger``).
    """
    logger.remove()

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # Daily log file: e.g. logs/riskengine_2026-10-19.log
    log_file = log_path / f"{LOG_FILE_PREFIX}_{{time:YYYY-MM-DD}}.log"

    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    logger.add(
        log_file,
        level="DEBUG",
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
            "{name}:{function}:{line} - {message}"
        ),
        enqueue=True,
        encoding="utf-8",
    )

    return logger
