# friendlyml/models/segmentation.py
"""
Person / background segmentation on Ultralytics YOLO-seg weights.

Instance masks of the selected classes (default: COCO ``person``) are resized
to the input size and merged into one binary mask. The raw result carries both
masks and the two RGBA cut-outs; the overlay is the person cut-out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Mapping, Optional, Sequence

import numpy as np

from ..media import MediaHandle
from ..resources import ResourceScope, tensor
from ..results import ResultEnvelope, as_numpy
from ..runtime.ultralytics_backend import UltralyticsRuntime
from .base import MediaModel, create_factory
from .drawing import resize_mask

if TYPE_CHECKING:
    import numpy.typing as npt

    NDArrayU8 = npt.NDArray[np.uint8]
else:
    NDArrayU8 = Any

__all__ = ["BodySegmenter", "Segmentation", "body_segmenter"]

PERSON_CLASS = 0


@dataclass(frozen=True)
class Segmentation:
    mask: NDArrayU8             # HxW, 255 = person
    background_mask: NDArrayU8  # HxW, 255 = background
    person: NDArrayU8           # HxWx4 RGBA, alpha = mask
    background: NDArrayU8       # HxWx4 RGBA, alpha = background_mask
    instances: int

    @property
    def width(self) -> int:
        return int(self.mask.shape[1])

    @property
    def height(self) -> int:
        return int(self.mask.shape[0])


def _selected_masks(raw: Any, classes: Optional[Sequence[int]]) -> np.ndarray:
    """Result.masks.data filtered by ``boxes.cls`` → float32 (N, h, w)."""
    masks = getattr(raw, "masks", None) if raw is not None else None
    if masks is None:
        return np.zeros((0, 1, 1), dtype=np.float32)
    data = as_numpy(masks)
    if data.ndim == 2:
        data = data[None]
    if classes is None:
        return data
    boxes = getattr(raw, "boxes", None)
    cls = as_numpy(getattr(boxes, "cls", None)).reshape(-1).astype(int) if boxes is not None else None
    if cls is None or len(cls) != data.shape[0]:
        return data
    return data[np.isin(cls, list(classes))]


def _rgba(pixels: NDArrayU8, alpha: NDArrayU8) -> NDArrayU8:
    return np.dstack([pixels, alpha]).astype(np.uint8)


class BodySegmenter(MediaModel):
    name = "segment"
    event = "segment"
    DEFAULTS: ClassVar[Dict[str, Any]] = {
        "model": None,
        "conf": 0.25,
        "iou": 0.45,
        "classes": [PERSON_CLASS],
        "mask_threshold": 0.5,
        "return_tensors": False,
    }

    def default_runtime(self) -> UltralyticsRuntime:
        return UltralyticsRuntime("segment")

    def shape(
        self, raw: Any, inputs: MediaHandle, options: Mapping[str, Any], scope: ResourceScope
    ) -> ResultEnvelope:
        pixels = inputs.pixels()
        height, width = pixels.shape[:2]
        selected = _selected_masks(raw, options.get("classes"))

        if selected.shape[0]:
            stack = tensor(np.stack([resize_mask(m, width, height) for m in selected]), name="instance_masks")
            person = stack.data.max(axis=0) >= float(options.get("mask_threshold", 0.5))
        else:
            person = np.zeros((height, width), dtype=bool)

        mask = person.astype(np.uint8) * np.uint8(255)
        background_mask = np.uint8(255) - mask
        person_rgba = tensor(_rgba(pixels, mask), name="person")
        result = Segmentation(
            mask=mask,
            background_mask=background_mask,
            person=person_rgba.numpy(),
            background=_rgba(pixels, background_mask),
            instances=int(selected.shape[0]),
        )
        return self.adapter.build(
            result, options=options, pixels=result.person, tensor=person_rgba, scope=scope
        )


body_segmenter = create_factory(BodySegmenter)
