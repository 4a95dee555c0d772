"""Logging setup for the codescribe logger hierarchy."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from codescribe.core.config import Config

LOGGER_NAME = "codescribe"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _resolve_level(config: Config, verbose: bool) -> int:
    if verbose:
        return logging.DEBUG
    name = str(config.get("logging.level", "info")).upper()
    return getattr(logging, name, logging.INFO)


def _log_file_path(config: Config) -> Optional[Path]:
    setting = config.get("logging.file", False)
    if not setting:
        return None
    if isinstance(setting, str):
        return Path(setting).expanduser()
    return Config.state_dir() / "codescribe.log"


def configure_logging(
    config: Config, verbose: bool = False, console: Optional[Console] = None
) -> logging.Logger:
    """Install handlers on the codescribe logger according to configuration.

    Calling it again replaces previously installed handlers.

    Args:
        config: Resolved configuration (reads the logging table)
        verbose: Force DEBUG level
        console: Console the Rich handler writes to (stderr by default)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = _resolve_level(config, verbose)
    logger.setLevel(level)
    logger.propagate = False

    if config.get("logging.console", True):
        rich_handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=verbose,
        )
        rich_handler.setLevel(level)
        logger.addHandler(rich_handler)

    log_file = _log_file_path(config)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger
