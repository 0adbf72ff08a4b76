"""Logging for jjdeck.

The Textual UI owns the terminal, so all output goes to rotating files:

- the diagnostic log (``~/.jjdeck/jjdeck.log``), fed by every module's
  ``get_logger("<module>")`` at the configured level;
- the command history (``commands.log`` next to it), one line per finished
  jj invocation, written through :func:`get_command_logger` whatever the
  diagnostic level is.  History lines do not reach the diagnostic log.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

_DEFAULT_LOG_FILE = "~/.jjdeck/jjdeck.log"
_HISTORY_FILE_NAME = "commands.log"
_HISTORY_LOGGER = "jjdeck.commands"
_MAX_LOG_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _reset(logger: logging.Logger) -> None:
    for h in logger.handlers[:]:
        h.close()
    logger.handlers.clear()


def _file_handler(path: Path, fmt: str) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(str(path), maxBytes=_MAX_LOG_BYTES, backupCount=_BACKUP_COUNT)
    handler.setFormatter(logging.Formatter(fmt, datefmt=_DATEFMT))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    history_file: str | None = None,
) -> logging.Logger:
    """Configure the diagnostic log and the command history.

    Called once at startup by the CLI.  Calling it again replaces the
    handlers of both loggers.

    Parameters
    ----------
    level:
        Diagnostic verbosity (DEBUG, INFO, WARNING, ERROR).
    log_file:
        Diagnostic log path, ``~/.jjdeck/jjdeck.log`` when *None*.
    history_file:
        Command history path, ``commands.log`` beside the diagnostic log
        when *None*.
    """
    logger = logging.getLogger("jjdeck")
    _reset(logger)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    log_path = Path(log_file or _DEFAULT_LOG_FILE).expanduser()
    logger.addHandler(_file_handler(log_path, "%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    history = logging.getLogger(_HISTORY_LOGGER)
    _reset(history)
    history.setLevel(logging.INFO)
    history.propagate = False
    history_path = (
        Path(history_file).expanduser() if history_file else log_path.with_name(_HISTORY_FILE_NAME)
    )
    history.addHandler(_file_handler(history_path, "%(asctime)s %(message)s"))

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``jjdeck`` namespace."""
    return logging.getLogger(f"jjdeck.{name}")


def get_command_logger() -> logging.Logger:
    """Return the command history logger."""
    return logging.getLogger(_HISTORY_LOGGER)
