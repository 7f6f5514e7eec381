"""
Logging setup for the InfraCity API.

Every module logs through ``logging.getLogger(__name__)``; this module
only decides where those records go.  Records are written to stderr
and, when ``LOG_FILE`` is set, appended to that file as well.
"""

import logging
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _handlers(logfile: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if logfile:
        path = Path(logfile).resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    return handlers


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Attach the application handlers to the root logger.

    Parameters
    ----------
    level : str
        Level name such as ``"DEBUG"`` or ``"warning"``; unknown names
        mean ``INFO``.
    logfile : Optional[str]
        Extra file destination, resolved against the working directory.

    Calling it again is a no-op once the root logger has handlers, so
    ``create_app`` can run more than once in a process.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    numeric_level = logging.getLevelName(level.upper())
    root.setLevel(numeric_level if isinstance(numeric_level, int) else logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _handlers(logfile):
        handler.setFormatter(formatter)
        root.addHandler(handler)
