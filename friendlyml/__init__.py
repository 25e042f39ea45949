# friendlyml/__init__.py
"""
Lightweight package init.

Avoid importing heavy optional deps (Ultralytics, MediaPipe, OpenCV) at import
time. Model wrappers import their runtimes lazily on first load.

Exports:
    __version__      : best-effort package version (falls back to "0+unknown")
    resolve_call     : argument separation for loosely ordered calls
    call_callback    : callback / awaitable bridge
    resource_scope   : scoped release of transient tensors
    ResultEnvelope   : common result shape
    model factories  : pose_estimator, body_segmenter, image_classifier,
                       face_landmarks, kmeans, text_toxicity
"""

from __future__ import annotations

try:
    from importlib.metadata import version as _pkg_version
except Exception:  # pragma: no cover
    _pkg_version = None  # type: ignore[assignment]

from .args import ArgumentKind, ResolvedCall, classify_argument, resolve_call
from .callbacks import Outcome, call_callback
from .errors import FriendlyMLError, InvalidMedia, MissingArgument
from .media import PixelBuffer, StillImage, VideoSource, as_media
from .models import (
    BodySegmenter,
    FaceLandmarks,
    ImageClassifier,
    KMeansClusterer,
    ModelState,
    PoseEstimator,
    TextToxicity,
    body_segmenter,
    face_landmarks,
    image_classifier,
    kmeans,
    pose_estimator,
    text_toxicity,
)
from .resources import Tensor, live_tensors, resource_scope
from .results import PillowSink, ResultEnvelope

__all__ = [
    "__version__",
    "ArgumentKind",
    "BodySegmenter",
    "FaceLandmarks",
    "FriendlyMLError",
    "ImageClassifier",
    "InvalidMedia",
    "KMeansClusterer",
    "MissingArgument",
    "ModelState",
    "Outcome",
    "PillowSink",
    "PixelBuffer",
    "PoseEstimator",
    "ResolvedCall",
    "ResultEnvelope",
    "StillImage",
    "Tensor",
    "TextToxicity",
    "VideoSource",
    "as_media",
    "body_segmenter",
    "call_callback",
    "classify_argument",
    "face_landmarks",
    "image_classifier",
    "kmeans",
    "live_tensors",
    "pose_estimator",
    "resolve_call",
    "resource_scope",
    "text_toxicity",
]


def _detect_version() -> str:
    if _pkg_version is None:
        return "0+unknown"
    try:
        return _pkg_version("friendlyml")
    except Exception:
        return "0+unknown"


__version__ = _detect_version()
