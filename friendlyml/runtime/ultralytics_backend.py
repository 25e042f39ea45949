"""
Ultralytics YOLO runtime (pose / segment / classify).

Weights come from ``friendlyml.model_registry``. Inference receives the
handle's RGB pixels flipped to BGR, which is what Ultralytics assumes for
numpy input.

Loading and inference are blocking; both run in a worker thread so the event
loop keeps serving other calls. One YOLO handle is not thread-safe, so calls
on it take turns.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, Mapping, Optional

import numpy as np

from .. import model_registry
from ..media import MediaHandle

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())

_PREDICT_KEYS = ("conf", "iou", "imgsz", "max_det", "classes", "device", "half")


class UltralyticsRuntime:
    def __init__(self, task: str) -> None:
        if task not in model_registry.WEIGHT_PRIORITY:
            raise ValueError(f"Unsupported Ultralytics task '{task}'")
        self.task = task
        self._handle_lock = threading.Lock()

    async def load(self, model_ref: Optional[str], params: Mapping[str, Any]) -> Any:
        return await asyncio.to_thread(model_registry.load_model, self.task, model_ref)

    async def predict(self, handle: Any, media: MediaHandle, params: Mapping[str, Any]) -> Any:
        bgr = np.ascontiguousarray(media.pixels()[:, :, ::-1])
        kwargs = {k: params[k] for k in _PREDICT_KEYS if params.get(k) is not None}
        return await asyncio.to_thread(self._predict_blocking, handle, bgr, kwargs)

    def _predict_blocking(self, handle: Any, bgr: np.ndarray, kwargs: Dict[str, Any]) -> Any:
        with self._handle_lock:
            results = handle.predict(bgr, verbose=False, **kwargs)
            results = list(results) if results is not None else []
        return results[0] if results else None

    def __repr__(self) -> str:
        return f"UltralyticsRuntime(task={self.task!r})"
