"""
Console and file logging for restore runs.

Logging tiers:
- ERROR: fatal run failures
- SUCCESS/INFO: run milestones, one line per replayed backup
- DEBUG: per-block progress lines
- TRACE: payload paths and decompressed sizes
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_file: Path | None = None,
) -> Logger:
    """
    Configure loguru sinks for a CLI run.

    Parameters
    ----------
    debug : bool
        Show per-block DEBUG progress on the console.
    trace : bool
        Show TRACE records on the console. Takes precedence over ``debug``.
    log_file : Path | None
        File that additionally receives DEBUG records (TRACE when ``trace``).

    Returns
    -------
    Logger
        The configured loguru logger.
    """
    logger.remove()
    logger.configure(extra={"source": "restore", "volume": "-"})

    if trace:
        console_level = "TRACE"
    elif debug:
        console_level = "DEBUG"
    else:
        console_level = "INFO"

    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[volume]: <20}</cyan> | "
            "{message}"
        ),
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="TRACE" if trace else "DEBUG",
            backtrace=True,
            diagnose=False,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[source]: <10} | "
                "{extra[volume]: <20} | "
                "{message}"
            ),
        )

    return logger


def get_logger(*, source: str | None = None, volume: str | None = None) -> Logger:
    """
    Return the shared logger with ``source`` and ``volume`` bound as extras.

    Parameters
    ----------
    source : str | None
        Component name, e.g. ``"catalog"``.
    volume : str | None
        Volume being restored.
    """
    extras: dict[str, object] = {}
    if source is not None:
        extras["source"] = source
    if volume is not None:
        extras["volume"] = volume
    return logger.bind(**extras)
