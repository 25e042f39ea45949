"""
MediaPipe Face Landmarker runtime (Tasks API, IMAGE running mode).

The ``.task`` asset is downloaded once into the model directory. Download,
landmarker creation and detection block, so they run in a worker thread; one
landmarker handles one image at a time.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import urllib.request
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

import numpy as np

from .. import model_registry
from ..errors import RuntimeUnavailable
from ..media import MediaHandle

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())

MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/latest/face_landmarker.task"
)
MODEL_NAME = "face_landmarker.task"


def _require_mediapipe() -> Tuple[Any, Any, Any]:
    try:
        import mediapipe as mp
        from mediapipe.tasks import python as mp_python
        from mediapipe.tasks.python import vision
    except ImportError as exc:
        raise RuntimeUnavailable("mediapipe is not installed; pip install mediapipe") from exc
    return mp, mp_python, vision


def ensure_asset(model_ref: Optional[str] = None) -> Path:
    """Return a local face landmarker asset, downloading the default one if missing."""
    if model_ref:
        p = Path(model_ref).expanduser()
        if p.is_file():
            return p
        raise FileNotFoundError(f"Face landmarker asset not found: {p}")
    path = model_registry.model_dir() / MODEL_NAME
    if path.is_file():
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    LOGGER.info("downloading face landmarker asset url=%s", MODEL_URL)
    tmp = path.with_suffix(".part")
    with urllib.request.urlopen(MODEL_URL) as response, open(tmp, "wb") as fh:
        fh.write(response.read())
    tmp.replace(path)
    return path


class MediaPipeFaceRuntime:
    def __init__(self) -> None:
        self._handle_lock = threading.Lock()

    async def load(self, model_ref: Optional[str], params: Mapping[str, Any]) -> Any:
        return await asyncio.to_thread(self._load_blocking, model_ref, params)

    def _load_blocking(self, model_ref: Optional[str], params: Mapping[str, Any]) -> Any:
        _, mp_python, vision = _require_mediapipe()
        asset = ensure_asset(model_ref)
        options = vision.FaceLandmarkerOptions(
            base_options=mp_python.BaseOptions(model_asset_path=str(asset)),
            running_mode=vision.RunningMode.IMAGE,
            num_faces=int(params.get("max_faces", 1)),
            min_face_detection_confidence=float(params.get("min_detection_confidence", 0.5)),
            min_face_presence_confidence=float(params.get("min_presence_confidence", 0.5)),
            output_face_blendshapes=False,
            output_facial_transformation_matrixes=False,
        )
        return vision.FaceLandmarker.create_from_options(options)

    async def predict(self, handle: Any, media: MediaHandle, params: Mapping[str, Any]) -> Any:
        mp, _, _ = _require_mediapipe()
        rgb = np.ascontiguousarray(media.pixels())
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        return await asyncio.to_thread(self._detect_blocking, handle, image)

    def _detect_blocking(self, handle: Any, image: Any) -> Any:
        with self._handle_lock:
            return handle.detect(image)
