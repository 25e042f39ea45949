# friendlyml/models/pose.py
"""
Pose estimation on Ultralytics YOLO pose weights.

    model = await pose_estimator(video)
    envelope = await model.predict()
    envelope.raw[0]["left_wrist"].x

raw     list[Pose], COCO keypoint names, pixel coordinates of the input
overlay skeleton drawn over the input (only with a drawing sink)
tensor  (N, 17, 3) keypoints x/y/confidence (only with ``return_tensors``)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from ..media import MediaHandle
from ..resources import ResourceScope, tensor
from ..results import ResultEnvelope, as_numpy
from ..runtime.ultralytics_backend import UltralyticsRuntime
from .base import MediaModel, create_factory
from .drawing import draw_skeletons

__all__ = ["COCO_KEYPOINTS", "Keypoint", "Pose", "PoseEstimator", "pose_estimator"]

COCO_KEYPOINTS: Tuple[str, ...] = (
    "nose", "left_eye", "right_eye", "left_ear", "right_ear",
    "left_shoulder", "right_shoulder", "left_elbow", "right_elbow",
    "left_wrist", "right_wrist", "left_hip", "right_hip",
    "left_knee", "right_knee", "left_ankle", "right_ankle",
)


@dataclass(frozen=True)
class Keypoint:
    name: str
    x: float
    y: float
    confidence: float


@dataclass(frozen=True)
class Pose:
    keypoints: Tuple[Keypoint, ...]
    score: float
    box: Optional[Tuple[float, float, float, float]] = None

    def __getitem__(self, name: str) -> Keypoint:
        for kp in self.keypoints:
            if kp.name == name:
                return kp
        raise KeyError(name)

    def __iter__(self) -> Iterator[Keypoint]:
        return iter(self.keypoints)


def _keypoint_array(raw: Any) -> np.ndarray:
    """Result.keypoints → float32 (N, K, 3); missing confidences become 1.0."""
    kp_obj = getattr(raw, "keypoints", None) if raw is not None else None
    if kp_obj is None:
        return np.zeros((0, len(COCO_KEYPOINTS), 3), dtype=np.float32)
    pts = as_numpy(kp_obj)
    if pts.ndim != 3 or pts.shape[0] == 0:
        return np.zeros((0, len(COCO_KEYPOINTS), 3), dtype=np.float32)
    if pts.shape[2] == 2:
        pts = np.concatenate([pts, np.ones(pts.shape[:2] + (1,), dtype=np.float32)], axis=2)
    return np.array(pts[:, :, :3], dtype=np.float32, copy=True)


def _boxes(raw: Any, n: int) -> Tuple[np.ndarray, np.ndarray]:
    boxes = getattr(raw, "boxes", None) if raw is not None else None
    xyxy = as_numpy(getattr(boxes, "xyxy", None)).reshape(-1, 4) if boxes is not None else np.zeros((0, 4))
    conf = as_numpy(getattr(boxes, "conf", None)).reshape(-1) if boxes is not None else np.zeros((0,))
    if len(xyxy) != n:
        xyxy = np.full((n, 4), np.nan, dtype=np.float32)
    if len(conf) != n:
        conf = np.full((n,), np.nan, dtype=np.float32)
    return np.array(xyxy, dtype=np.float32), np.array(conf, dtype=np.float32)


class PoseEstimator(MediaModel):
    name = "pose"
    event = "pose"
    DEFAULTS: ClassVar[Dict[str, Any]] = {
        "model": None,
        "conf": 0.25,
        "iou": 0.45,
        "imgsz": 640,
        "max_poses": None,
        "min_keypoint_conf": 0.3,
        "flip_horizontal": False,
        "return_tensors": False,
    }

    def default_runtime(self) -> UltralyticsRuntime:
        return UltralyticsRuntime("pose")

    def shape(
        self, raw: Any, inputs: MediaHandle, options: Mapping[str, Any], scope: ResourceScope
    ) -> ResultEnvelope:
        pixels = inputs.pixels()
        width = pixels.shape[1]
        kp = _keypoint_array(raw)
        xyxy, conf = _boxes(raw, kp.shape[0])

        if options.get("flip_horizontal"):
            pixels = pixels[:, ::-1]
            kp[:, :, 0] = (width - 1) - kp[:, :, 0]
            xyxy[:, [0, 2]] = (width - 1) - xyxy[:, [2, 0]]

        limit = options.get("max_poses")
        if limit is not None:
            kp, xyxy, conf = kp[: int(limit)], xyxy[: int(limit)], conf[: int(limit)]

        names = COCO_KEYPOINTS if kp.shape[1] == len(COCO_KEYPOINTS) else tuple(str(j) for j in range(kp.shape[1]))
        poses: List[Pose] = []
        for i in range(kp.shape[0]):
            score = float(conf[i]) if not np.isnan(conf[i]) else float(kp[i, :, 2].mean())
            box = None if np.isnan(xyxy[i]).any() else tuple(float(v) for v in xyxy[i])
            poses.append(
                Pose(
                    keypoints=tuple(
                        Keypoint(names[j], float(kp[i, j, 0]), float(kp[i, j, 1]), float(kp[i, j, 2]))
                        for j in range(kp.shape[1])
                    ),
                    score=score,
                    box=box,  # type: ignore[arg-type]
                )
            )

        t = tensor(kp, name="keypoints")
        overlay_px = None
        if self.adapter.can_draw:
            overlay_px = draw_skeletons(pixels, kp, float(options.get("min_keypoint_conf") or 0.0))
        return self.adapter.build(poses, options=options, pixels=overlay_px, tensor=t, scope=scope)


pose_estimator = create_factory(PoseEstimator)
