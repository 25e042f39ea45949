# friendlyml/models/classifier.py
"""Image classification on Ultralytics YOLO-cls weights (top-K labels)."""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Mapping

from ..media import MediaHandle
from ..resources import ResourceScope, tensor
from ..results import ResultEnvelope, as_numpy, top_k_classes
from ..runtime.ultralytics_backend import UltralyticsRuntime
from .base import MediaModel, create_factory
from .drawing import draw_label_card

__all__ = ["ImageClassifier", "image_classifier"]


def _names(raw: Any, model: Any) -> Any:
    names = getattr(raw, "names", None)
    if names:
        return names
    return getattr(model, "names", None)


class ImageClassifier(MediaModel):
    name = "classify"
    event = "classify"
    DEFAULTS: ClassVar[Dict[str, Any]] = {
        "model": None,
        "topk": 3,
        "imgsz": 224,
        "return_tensors": False,
    }

    def default_runtime(self) -> UltralyticsRuntime:
        return UltralyticsRuntime("classify")

    def shape(
        self, raw: Any, inputs: MediaHandle, options: Mapping[str, Any], scope: ResourceScope
    ) -> ResultEnvelope:
        probs = getattr(raw, "probs", None) if raw is not None else None
        vec = as_numpy(probs).reshape(-1)
        labels = top_k_classes(vec, int(options.get("topk") or 3), _names(raw, self.model))
        t = tensor(vec, name="probabilities")
        overlay_px = None
        if self.adapter.can_draw:
            overlay_px = draw_label_card(inputs.pixels(), [(c.label, c.confidence) for c in labels])
        return self.adapter.build(labels, options=options, pixels=overlay_px, tensor=t, scope=scope)


image_classifier = create_factory(ImageClassifier)
