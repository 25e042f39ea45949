# friendlyml/results.py
"""
Result shaping shared by every model wrapper.

ResultEnvelope(raw, overlay=None, tensor=None)
  raw      model-specific data (keypoints, masks, classifications, ...)
  overlay  drawable built by the injected DrawingSink, when one is present
  tensor   transient Tensor, only when the call opted into ``return_tensors``

Pixel conversion clamps to 0..255 instead of wrapping, keeps channel order as
given and never rescales or colour-corrects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union, cast

import numpy as np
from PIL import Image

from .resources import ResourceScope, Tensor, active_scope

if TYPE_CHECKING:
    import numpy.typing as npt

    NDArrayU8 = npt.NDArray[np.uint8]
else:
    NDArrayU8 = Any

__all__ = [
    "Classification",
    "DrawingSink",
    "PillowSink",
    "ResultAdapter",
    "ResultEnvelope",
    "as_numpy",
    "has_drawing_capability",
    "to_pixels",
    "top_k_classes",
]

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class ResultEnvelope:
    raw: Any
    overlay: Any = None
    tensor: Optional[Tensor] = None


@dataclass(frozen=True)
class Classification:
    label: str
    confidence: float


class DrawingSink(Protocol):
    def from_pixels(self, pixels: NDArrayU8) -> Any: ...


class PillowSink:
    """Turns pixel buffers into ``PIL.Image`` objects (L, RGB or RGBA)."""

    def from_pixels(self, pixels: NDArrayU8) -> Image.Image:
        px = np.asarray(pixels)
        if px.ndim == 3 and px.shape[2] == 1:
            px = px[:, :, 0]
        return Image.fromarray(np.ascontiguousarray(px))


def has_drawing_capability(sink: Any) -> bool:
    """Duck-typed probe; never raises."""
    if sink is None:
        return False
    try:
        return callable(getattr(sink, "from_pixels", None))
    except Exception:
        return False


def to_pixels(values: Any) -> NDArrayU8:
    """
    Convert numeric values to uint8 pixels.

    Floats are rounded, NaN becomes 0, everything is clamped to 0..255.
    Booleans map to 0/255 so masks are directly displayable.
    """
    a = np.asarray(values)
    if a.dtype == np.uint8:
        return a
    if a.dtype == np.bool_:
        return a.astype(np.uint8) * np.uint8(255)
    if np.issubdtype(a.dtype, np.floating):
        a = np.rint(np.nan_to_num(a, nan=0.0, posinf=255.0, neginf=0.0))
    elif not np.issubdtype(a.dtype, np.integer):
        raise TypeError(f"Cannot convert dtype {a.dtype} to pixels")
    return np.clip(a, 0, 255).astype(np.uint8)


def as_numpy(values: Any, dtype: Any = np.float32) -> Any:
    """
    Runtime output → numpy. Handles torch tensors (``.cpu().numpy()``),
    Ultralytics wrappers exposing ``.data`` and plain sequences.
    """
    if values is None:
        return np.zeros((0,), dtype=dtype)
    v = values if isinstance(values, np.ndarray) else getattr(values, "data", values)
    if hasattr(v, "cpu"):
        v = v.cpu()
    if hasattr(v, "numpy") and not isinstance(v, np.ndarray):
        v = v.numpy()
    return np.asarray(v, dtype=dtype)


def top_k_classes(
    values: Any,
    k: int,
    labels: Union[Mapping[int, str], Sequence[str], None],
) -> List[Classification]:
    """
    Extract top-K (label, confidence) pairs from a probability vector.

    Accepts torch tensors (anything with ``.cpu()``), plain sequences and numpy
    arrays; labels as dict[int, str] or list[str].
    """
    def _name_for(i: int) -> str:
        if isinstance(labels, Mapping):
            return str(cast(Dict[int, str], labels).get(i, i))
        if isinstance(labels, (list, tuple)):
            return str(labels[i]) if 0 <= i < len(labels) else str(i)
        return str(i)

    vec = as_numpy(values).reshape(-1)
    if vec.size == 0:
        return []

    idx = np.argsort(-vec, kind="stable")[: max(1, int(k))]
    return [Classification(_name_for(int(i)), float(vec[int(i)])) for i in idx]


class ResultAdapter:
    """Builds envelopes; renders overlays only when a capable sink was injected."""

    def __init__(self, drawing: Optional[DrawingSink] = None) -> None:
        self.drawing = drawing

    @property
    def can_draw(self) -> bool:
        return has_drawing_capability(self.drawing)

    def render(self, pixels: Any) -> Any:
        if pixels is None or not self.can_draw:
            return None
        return cast(DrawingSink, self.drawing).from_pixels(to_pixels(pixels))

    def build(
        self,
        raw: Any,
        *,
        options: Mapping[str, Any],
        pixels: Any = None,
        tensor: Optional[Tensor] = None,
        scope: Optional[ResourceScope] = None,
    ) -> ResultEnvelope:
        overlay = self.render(pixels)
        kept: Optional[Tensor] = None
        if tensor is not None:
            owner = scope if scope is not None else active_scope()
            if options.get("return_tensors"):
                kept = owner.keep(tensor) if owner is not None else tensor
            elif owner is None:
                tensor.dispose()
        return ResultEnvelope(raw=raw, overlay=overlay, tensor=kept)
