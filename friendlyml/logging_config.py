"""Minimal logging helpers for friendlyml.

* ``setup_logging`` initialises a single file handler (ERROR by default).
* ``get_log_path`` exposes the resolved log file for the CLI.

Library modules only attach ``NullHandler`` to their own loggers; nothing is
written anywhere until an application (or the CLI) calls ``setup_logging``.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Optional

from .config import load_settings

__all__ = ["get_log_path", "setup_logging"]

_configured = False
_log_path: Optional[Path] = None

_NOISY_LOGGERS = (
    "ultralytics",
    "ultralytics.engine.model",
    "ultralytics.nn.autobackend",
    "absl",
    "mediapipe",
)


def _resolve_log_path() -> Path:
    settings = load_settings()
    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        return settings.log_file
    logs_dir = settings.logs_dir
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir / "friendlyml.log"


def setup_logging() -> Path:
    """
    Configure the root logger with a single file handler.

    The level comes from ``FRIENDLYML_LOG_LEVEL`` (default ERROR) and the file
    from ``FRIENDLYML_LOG_FILE``. Idempotent: repeated calls return the path
    configured the first time.
    """
    global _configured, _log_path

    if _configured and _log_path is not None:
        return _log_path

    settings = load_settings()
    level = getattr(logging, settings.log_level, logging.ERROR)
    if not isinstance(level, int):
        level = logging.ERROR

    handler: logging.Handler
    try:
        log_path = _resolve_log_path()
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        log_path = Path(tempfile.gettempdir()) / "friendlyml.log"
        handler = logging.FileHandler(log_path, encoding="utf-8")
    _log_path = log_path

    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    # Ultralytics prints INFO banners on every load.
    for name in _NOISY_LOGGERS:
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.setLevel(logging.ERROR)
        lg.propagate = False

    _configured = True
    return log_path


def get_log_path() -> Optional[Path]:
    """Expose the resolved log file path for modules that need it."""
    return _log_path
