"""Console entry point: logging bootstrap, then the Typer app."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .cli import app
from .config import Settings, get_settings

LOG_FILE_MAX_BYTES = 2 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(levelname)-8s | %(message)s"

# Marks handlers installed by setup_logging().
_HANDLER_MARK = "_taskflow_handler"


def _file_handler(log_file: Path) -> Optional[logging.Handler]:
    """Rotating handler for ``log_file``, or None if the directory is unusable."""
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as e:
        print(f"Warning: file logging disabled ({log_file}): {e}", file=sys.stderr)
        return None
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.setLevel(logging.DEBUG)
    return handler


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Route taskflow logs to ``settings.log_file`` and warnings to stderr.

    The level comes from TASKFLOW_LOG_LEVEL. Sync failures are reported to
    the user as command output, so stderr only carries WARNING and above.
    Calling this twice does not add duplicate handlers.
    """
    if settings is None:
        try:
            settings = get_settings()
        except Exception as e:
            print(f"Warning: Failed to load settings for logging: {e}", file=sys.stderr)
            settings = Settings.model_construct(
                log_level="INFO", log_file=Path("data/taskflow.log")
            )

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root_logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = []
    file_handler = _file_handler(settings.log_file)
    if file_handler is not None:
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console_handler.setLevel(logging.WARNING)
    handlers.append(console_handler)

    root_logger.setLevel(getattr(logging, settings.log_level))
    for handler in handlers:
        setattr(handler, _HANDLER_MARK, True)
        root_logger.addHandler(handler)

    # WebDAV requests are logged by taskflow.sync.webdav at DEBUG
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main() -> None:
    """Entry point for the ``taskflow`` console script."""
    setup_logging()
    app()


if __name__ == "__main__":
    main()
