import logging
import logging.handlers
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(
    log_level: str = "INFO",
    log_file: str | Path | None = None,
    max_file_size: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """Configure the ``incognito_monitor`` logger tree.

    The terminal is owned by the TUI, so records go to a rotating file. Without
    a file, a ``NullHandler`` keeps library use silent.
    """
    root = logging.getLogger("incognito_monitor")
    root.handlers.clear()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.propagate = False

    if not log_file:
        root.addHandler(logging.NullHandler())
        return

    log_path = Path(log_file)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except OSError:
        # Unwritable log location: keep running without file logs.
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
