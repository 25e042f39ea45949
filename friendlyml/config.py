"""
Option merging and environment settings.

Model options are layered: library defaults ← constructor options ← per-call
options. Every layer is a flat mapping; unknown keys pass straight through so
runtimes can receive backend-specific knobs without friendlyml knowing them.

Environment knobs:
  FRIENDLYML_MODEL_DIR     directory searched for local weights
  FRIENDLYML_LOG_LEVEL     logging level for the file handler (default ERROR)
  FRIENDLYML_LOG_FILE      explicit log file path
  FRIENDLYML_RESULTS_DIR   where the CLI writes overlays
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

__all__ = ["Settings", "load_settings", "merge_options", "results_dir"]


def merge_options(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Return a new dict with later layers overriding earlier ones; inputs are untouched."""
    merged: Dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


def _platform_data_dir() -> Path:
    """Return a per-user writable application data directory."""
    app = "friendlyml"
    if os.name == "nt":
        base = Path(os.getenv("LOCALAPPDATA") or os.getenv("APPDATA") or (Path.home() / "AppData" / "Local"))
        return base / app
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / app
    xdg_home = os.getenv("XDG_DATA_HOME")
    if xdg_home:
        return Path(xdg_home) / app
    return Path.home() / ".local" / "share" / app


@dataclass(frozen=True)
class Settings:
    model_dir: Path
    results_dir: Path
    log_level: str = "ERROR"
    log_file: Optional[Path] = None

    @property
    def logs_dir(self) -> Path:
        return self.log_file.parent if self.log_file is not None else _platform_data_dir() / "logs"


def load_settings() -> Settings:
    """Read the FRIENDLYML_* environment; cheap enough to call per use."""
    model_override = os.getenv("FRIENDLYML_MODEL_DIR")
    results_override = os.getenv("FRIENDLYML_RESULTS_DIR")
    log_file = os.getenv("FRIENDLYML_LOG_FILE")
    return Settings(
        model_dir=Path(model_override).expanduser() if model_override else _platform_data_dir() / "models",
        results_dir=Path(results_override).expanduser() if results_override else Path.cwd() / "results",
        log_level=os.getenv("FRIENDLYML_LOG_LEVEL", "ERROR").upper().strip() or "ERROR",
        log_file=Path(log_file).expanduser() if log_file else None,
    )


def results_dir() -> Path:
    """
    Return the preferred results directory, honouring FRIENDLYML_RESULTS_DIR.
    Always attempts to create the directory.
    """
    base = load_settings().results_dir
    try:
        base.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass
    try:
        return base.resolve()
    except OSError:
        return base
