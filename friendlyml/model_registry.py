"""
Weight resolution for the Ultralytics-backed wrappers.

``candidate_weights(task, model_ref)`` lists the weights to try, in order;
``load_model(task, model_ref)`` walks that list and returns the first model
that loads. When every candidate fails, the last loader error is re-raised
exactly as the runtime raised it.

Edit WEIGHT_PRIORITY to add or reorder checkpoints. Entries are file names
looked up under the model directory (``FRIENDLYML_MODEL_DIR``) or absolute
paths. The first entry doubles as the hub name Ultralytics downloads when no
local file exists.
"""

from __future__ import annotations

import importlib
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .config import load_settings
from .errors import RuntimeUnavailable

# ────────────────────────────────────────────────────────────────
#  Logging (explicit, human-friendly, no stack noise)
# ────────────────────────────────────────────────────────────────
LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())

_ERROR_TOKENS = ("error", "fail", "failed", "exception")


def _format_detail(info: Mapping[str, object]) -> str:
    return " ".join(f"{key}={info[key]}" for key in sorted(info) if info[key] is not None)


def _log(event: str, **info: object) -> None:
    level = logging.ERROR if any(tok in event.lower() for tok in _ERROR_TOKENS) else logging.INFO
    detail = _format_detail(info)
    if detail:
        LOGGER.log(level, "%s %s", event, detail)
    else:
        LOGGER.log(level, "%s", event)


# ────────────────────────────────────────────────────────────────
#  *** WEIGHT SELECTION TABLE ***
# ────────────────────────────────────────────────────────────────
WEIGHT_PRIORITY: Dict[str, List[Union[str, Path]]] = {
    "pose": ["yolo11n-pose.pt", "yolov8n-pose.pt", "yolo11s-pose.pt", "yolov8s-pose.pt"],
    "segment": ["yolo11n-seg.pt", "yolov8n-seg.pt", "yolo11n-seg.onnx", "yolo11s-seg.pt"],
    "classify": ["yolo11n-cls.pt", "yolov8n-cls.pt", "yolo11s-cls.pt", "yolov8s-cls.pt"],
}

_SUFFIXES = (".pt", ".onnx")


def model_dir() -> Path:
    return load_settings().model_dir


def _resolve_entry(entry: Union[str, Path]) -> Path:
    p = Path(entry).expanduser()
    return p if p.is_absolute() else model_dir() / p


def _dedupe(paths: Iterable[Path]) -> List[Path]:
    seen: set[str] = set()
    out: List[Path] = []
    for p in paths:
        key = str(p)
        if key not in seen:
            seen.add(key)
            out.append(p)
    return out


def candidate_weights(task: str, model_ref: Optional[Union[str, Path]] = None) -> List[Path]:
    """
    Ordered weights to try for *task*.

    An explicit *model_ref* (path, local file stem or hub name) pins the
    choice: only its spellings are tried, never a different model.
    """
    if model_ref is not None:
        ref = Path(model_ref).expanduser()
        found: List[Path] = []
        if ref.is_file():
            found.append(ref)
        local = model_dir() / ref.name
        if local.is_file():
            found.append(local)
        if not ref.suffix:
            found.extend(model_dir() / f"{ref.name}{s}" for s in _SUFFIXES if (model_dir() / f"{ref.name}{s}").is_file())
        # Bare name: Ultralytics resolves and downloads hub weights itself.
        found.append(Path(ref.name if ref.suffix else f"{ref.name}.pt"))
        return _dedupe(found)

    entries = WEIGHT_PRIORITY.get(task)
    if not entries:
        raise KeyError(f"No weights registered for task '{task}'")
    local_hits = [p for p in (_resolve_entry(e) for e in entries) if p.is_file()]
    return _dedupe([*local_hits, Path(Path(entries[0]).name)])


def _resolve_yolo_class() -> Optional[type]:
    """
    Import and return ultralytics.YOLO lazily.

    Honours monkeypatched ``sys.modules['ultralytics']`` in tests and avoids
    binding to the real library at module import time.
    """
    try:
        mod = importlib.import_module("ultralytics")
    except ImportError:
        return None
    return getattr(mod, "YOLO", None)


def _load(weight: Path, *, task: str) -> Any:
    """``YOLO(path, task=...)`` with timing logged."""
    yolo_cls = _resolve_yolo_class()
    if yolo_cls is None:
        raise RuntimeUnavailable("ultralytics is not installed; pip install ultralytics")
    start = time.perf_counter()
    try:
        model = yolo_cls(str(weight), task=task)
    except TypeError:
        model = yolo_cls(str(weight))
    _log(
        "weights.load.success",
        task=task,
        weight=str(weight),
        model=type(model).__name__,
        ms=f"{(time.perf_counter() - start) * 1000.0:.1f}",
    )
    return model


def load_model(
    task: str,
    model_ref: Optional[Union[str, Path]] = None,
    *,
    loader: Optional[Callable[..., Any]] = None,
) -> Any:
    """Load the first candidate weight that works; re-raise the last failure otherwise."""
    load = loader or _load
    candidates = candidate_weights(task, model_ref)
    source = "override" if model_ref is not None else "auto"

    last_exc: Optional[Exception] = None
    for idx, weight in enumerate(candidates):
        _log("weights.select.try", task=task, source=source if idx == 0 else "fallback", weight=str(weight))
        try:
            return load(weight, task=task)
        except RuntimeUnavailable:
            raise
        except Exception as exc:
            last_exc = exc
            _log("weights.select.fail", task=task, weight=str(weight), reason=f"{type(exc).__name__}: {exc}")

    _log("weights.select.fail_all", task=task, tried=len(candidates))
    if last_exc is None:
        raise RuntimeUnavailable(f"No weights to try for task '{task}'.")
    raise last_exc


__all__ = ["WEIGHT_PRIORITY", "candidate_weights", "load_model", "model_dir"]
