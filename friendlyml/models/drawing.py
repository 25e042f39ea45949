# friendlyml/models/drawing.py
"""
Overlay helpers used by the model wrappers.

Everything here works on RGB uint8 arrays and returns a new array; the
injected DrawingSink turns the result into whatever drawable the caller wants.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

if TYPE_CHECKING:
    import numpy.typing as npt

    NDArrayU8 = npt.NDArray[np.uint8]
    NDArrayF32 = npt.NDArray[np.float32]
else:
    NDArrayU8 = Any
    NDArrayF32 = Any

# OpenCV optional at import; required at call sites
try:
    import cv2 as _cv2_mod  # type: ignore
except Exception:  # pragma: no cover
    _cv2_mod = None  # type: ignore


def _require_cv2() -> Any:
    if _cv2_mod is None:
        raise RuntimeError("OpenCV is required for overlay drawing.")
    return _cv2_mod


# COCO-like skeleton (17 keypoints). If different K, we only draw points.
COCO_EDGES: List[Tuple[int, int]] = [
    (0, 1), (1, 3), (0, 2), (2, 4),     # head/ears/eyes
    (5, 7), (7, 9), (6, 8), (8, 10),    # arms
    (5, 6), (5, 11), (6, 12),           # shoulders→hips
    (11, 12), (11, 13), (13, 15), (12, 14), (14, 16),  # legs
]

_POINT_RGB = (255, 255, 0)
_LINE_RGB = (255, 210, 0)


def _writable(rgb: Any) -> NDArrayU8:
    return np.ascontiguousarray(np.array(rgb, dtype=np.uint8, copy=True))


def draw_skeletons(rgb: Any, keypoints: NDArrayF32, min_conf: float = 0.0) -> NDArrayU8:
    """
    Draw (N, K, 2|3) keypoints; edges only for COCO topology.
    Points with a confidence below *min_conf* are skipped.
    """
    cv = _require_cv2()
    canvas = _writable(rgb)
    pts = np.asarray(keypoints, dtype=np.float32)
    if pts.ndim != 3 or pts.shape[2] < 2 or pts.size == 0:
        return canvas
    n, k, c = pts.shape
    for i in range(n):
        p = pts[i]
        visible = p[:, 2] >= min_conf if c >= 3 else np.ones(k, dtype=bool)
        if k == 17:
            for a, b in COCO_EDGES:
                if visible[a] and visible[b]:
                    cv.line(canvas, (int(p[a, 0]), int(p[a, 1])), (int(p[b, 0]), int(p[b, 1])), _LINE_RGB, 2)
        for j in range(k):
            if visible[j]:
                cv.circle(canvas, (int(p[j, 0]), int(p[j, 1])), 3, _POINT_RGB, -1)
    return canvas


def draw_points(rgb: Any, points: NDArrayF32, radius: int = 1) -> NDArrayU8:
    """Draw (N, K, 2+) point clouds as filled dots."""
    cv = _require_cv2()
    canvas = _writable(rgb)
    pts = np.asarray(points, dtype=np.float32)
    if pts.size == 0:
        return canvas
    for x, y in pts.reshape(-1, pts.shape[-1])[:, :2]:
        cv.circle(canvas, (int(x), int(y)), radius, _POINT_RGB, -1)
    return canvas


def draw_label_card(rgb: Any, items: Sequence[Tuple[str, float]]) -> NDArrayU8:
    """
    Top-K card in the top-left corner: one row per class, with a bar whose
    length is the class confidence drawn behind the label.
    """
    base = Image.fromarray(_writable(rgb)).convert("RGBA")
    if not items:
        return np.asarray(base.convert("RGB"), dtype=np.uint8)
    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    font = ImageFont.load_default()

    margin, inset = 6, 4
    rows = [(f"{name} {conf:.0%}", min(max(float(conf), 0.0), 1.0)) for name, conf in items]
    sizes = [draw.textbbox((0, 0), text, font=font) for text, _ in rows]
    row_h = max(b[3] - b[1] for b in sizes) + 2 * inset
    card_w = max(b[2] - b[0] for b in sizes) + 2 * inset

    draw.rectangle((margin, margin, margin + card_w, margin + row_h * len(rows)), fill=(0, 0, 0, 160))
    for r, (text, conf) in enumerate(rows):
        top = margin + r * row_h
        if conf > 0:
            draw.rectangle((margin, top + 1, margin + int(round(card_w * conf)), top + row_h - 1), fill=(0, 160, 255, 120))
        draw.text((margin + inset, top + inset), text, fill=(255, 255, 255, 255), font=font)
    return np.asarray(Image.alpha_composite(base, layer).convert("RGB"), dtype=np.uint8)


def resize_mask(mask: NDArrayF32, width: int, height: int) -> NDArrayF32:
    """Nearest-neighbour resize of a float mask to (width, height)."""
    m = np.asarray(mask, dtype=np.float32)
    if m.shape[:2] == (height, width):
        return m
    if _cv2_mod is not None:
        return np.asarray(_cv2_mod.resize(m, (width, height), interpolation=_cv2_mod.INTER_NEAREST), dtype=np.float32)
    # Pillow fallback: 8-bit for resize, then back to [0, 1]
    scaled = np.clip(m, 0.0, 1.0)
    pil_mask = Image.fromarray((scaled * 255.0).astype(np.uint8), mode="L")
    resized = pil_mask.resize((width, height), Image.Resampling.NEAREST)
    return np.asarray(resized, dtype=np.float32) / 255.0
