"""
Loguru setup for the fairstart CLI and web server.

Library modules only call `logger`; the entry points decide where records go.
The console shows progress at the chosen level. A log file, when given, also
keeps the raw engine traffic that fairstart.engine logs at TRACE.
"""

import sys
from pathlib import Path

from loguru import logger

ENGINE_MODULE = "fairstart.engine"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def _file_filter(level_no: int):
    """Records at the file level, plus TRACE records from the engine session."""
    def accept(record) -> bool:
        if record["level"].no >= level_no:
            return True
        return record["name"] == ENGINE_MODULE
    return accept


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
    rotation: str = "10 MB",
    retention: str = "1 week",
) -> list[int]:
    """Replace loguru's default sink with fairstart's console and file sinks.

    Args:
        level: Console level name (TRACE shows UCI traffic on the console too).
        log_file: Optional log file; it also records engine traffic.
        rotation: When to rotate the log file.
        retention: How long to keep old log files.

    Returns:
        The loguru handler ids, for callers that need to remove them again.

    Raises:
        ValueError: unknown level name.
    """
    level = level.upper()
    level_no = logger.level(level).no

    logger.remove()
    handler_ids = [logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(logger.add(
            log_path,
            level="TRACE",
            filter=_file_filter(level_no),
            format=FILE_FORMAT,
            rotation=rotation,
            retention=retention,
        ))

    logger.debug(f"Logging configured at level {level}" + (f", file {log_file}" if log_file else ""))
    return handler_ids
