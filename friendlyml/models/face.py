# friendlyml/models/face.py
"""
Face landmarks on the MediaPipe Face Landmarker (478 points per face).

Landmarks come back normalised from MediaPipe; the raw result holds them in
pixel coordinates of the input, with ``z`` left on MediaPipe's scale.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Mapping, Tuple

import numpy as np

from ..media import MediaHandle
from ..resources import ResourceScope, tensor
from ..results import ResultEnvelope
from ..runtime.mediapipe_backend import MediaPipeFaceRuntime
from .base import MediaModel, create_factory
from .drawing import draw_points

__all__ = ["Face", "FaceLandmarks", "face_landmarks"]


@dataclass(frozen=True)
class Face:
    landmarks: Tuple[Tuple[float, float, float], ...]

    @property
    def box(self) -> Tuple[float, float, float, float]:
        """(x1, y1, x2, y2) around all landmarks."""
        xs = [p[0] for p in self.landmarks]
        ys = [p[1] for p in self.landmarks]
        return min(xs), min(ys), max(xs), max(ys)


def _landmark_array(raw: Any, width: int, height: int) -> np.ndarray:
    faces = getattr(raw, "face_landmarks", None) or []
    if not faces:
        return np.zeros((0, 0, 3), dtype=np.float32)
    arr = np.array([[(lm.x, lm.y, lm.z) for lm in face] for face in faces], dtype=np.float32)
    arr[:, :, 0] *= width
    arr[:, :, 1] *= height
    return arr


class FaceLandmarks(MediaModel):
    name = "face"
    event = "face"
    DEFAULTS: ClassVar[Dict[str, Any]] = {
        "model": None,
        "max_faces": 1,
        "min_detection_confidence": 0.5,
        "min_presence_confidence": 0.5,
        "flip_horizontal": False,
        "return_tensors": False,
    }

    def default_runtime(self) -> MediaPipeFaceRuntime:
        return MediaPipeFaceRuntime()

    def shape(
        self, raw: Any, inputs: MediaHandle, options: Mapping[str, Any], scope: ResourceScope
    ) -> ResultEnvelope:
        pixels = inputs.pixels()
        height, width = pixels.shape[:2]
        pts = _landmark_array(raw, width, height)
        if options.get("flip_horizontal") and pts.size:
            pixels = pixels[:, ::-1]
            pts[:, :, 0] = (width - 1) - pts[:, :, 0]

        faces: List[Face] = [
            Face(landmarks=tuple((float(x), float(y), float(z)) for x, y, z in face)) for face in pts
        ]
        t = tensor(pts, name="landmarks")
        overlay_px = draw_points(pixels, pts) if self.adapter.can_draw else None
        return self.adapter.build(faces, options=options, pixels=overlay_px, tensor=t, scope=scope)


face_landmarks = create_factory(FaceLandmarks)
