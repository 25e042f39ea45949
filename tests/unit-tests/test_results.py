from __future__ import annotations

import types

import numpy as np
import pytest
from PIL import Image

from friendlyml.resources import live_tensors, resource_scope, tensor
from friendlyml.results import (
    Classification,
    PillowSink,
    ResultAdapter,
    as_numpy,
    has_drawing_capability,
    to_pixels,
    top_k_classes,
)


def test_to_pixels_clamps_instead_of_wrapping() -> None:
    out = to_pixels(np.array([-5, 0, 128, 255, 300, 1000]))
    assert out.dtype == np.uint8
    assert out.tolist() == [0, 0, 128, 255, 255, 255]


def test_to_pixels_rounds_floats_without_rescaling() -> None:
    out = to_pixels(np.array([0.4, 0.6, 1.0, 254.5, np.nan]))
    assert out.tolist() == [0, 1, 1, 254, 0]


def test_to_pixels_bool_masks() -> None:
    assert to_pixels(np.array([True, False])).tolist() == [255, 0]


def test_to_pixels_rejects_non_numeric() -> None:
    with pytest.raises(TypeError):
        to_pixels(np.array(["a"]))


def test_drawing_capability_check_never_raises() -> None:
    class Exploding:
        def __getattr__(self, name: str) -> object:
            raise RuntimeError("no attributes here")

    assert has_drawing_capability(PillowSink())
    assert not has_drawing_capability(None)
    assert not has_drawing_capability(object())
    assert not has_drawing_capability(Exploding())


def test_pillow_sink_modes() -> None:
    sink = PillowSink()
    assert sink.from_pixels(np.zeros((2, 3), dtype=np.uint8)).mode == "L"
    assert sink.from_pixels(np.zeros((2, 3, 1), dtype=np.uint8)).mode == "L"
    assert sink.from_pixels(np.zeros((2, 3, 3), dtype=np.uint8)).mode == "RGB"
    img = sink.from_pixels(np.zeros((2, 3, 4), dtype=np.uint8))
    assert isinstance(img, Image.Image) and img.mode == "RGBA" and img.size == (3, 2)


def test_envelope_without_sink_has_no_overlay() -> None:
    env = ResultAdapter().build({"a": 1}, options={}, pixels=np.zeros((2, 2, 3), dtype=np.uint8))
    assert env.raw == {"a": 1}
    assert env.overlay is None
    assert env.tensor is None


def test_envelope_with_sink_renders_overlay() -> None:
    env = ResultAdapter(PillowSink()).build([], options={}, pixels=np.full((2, 2, 3), 300.0))
    assert isinstance(env.overlay, Image.Image)
    assert np.asarray(env.overlay).max() == 255


def test_tensor_only_when_requested() -> None:
    before = live_tensors()
    adapter = ResultAdapter()
    with resource_scope() as scope:
        dropped = adapter.build(1, options={}, tensor=tensor(np.ones(2)), scope=scope)
        kept = adapter.build(2, options={"return_tensors": True}, tensor=tensor(np.ones(2)), scope=scope)
    assert dropped.tensor is None
    assert kept.tensor is not None and not kept.tensor.disposed
    kept.tensor.dispose()
    assert live_tensors() == before


def test_tensor_outside_scope_is_disposed_when_not_returned() -> None:
    before = live_tensors()
    t = tensor(np.ones(2))
    env = ResultAdapter().build(0, options={}, tensor=t)
    assert env.tensor is None and t.disposed
    assert live_tensors() == before


def test_top_k_classes_with_dict_labels() -> None:
    got = top_k_classes([0.1, 0.7, 0.2], 2, {0: "cat", 1: "dog", 2: "bird"})
    assert got == [Classification("dog", pytest.approx(0.7)), Classification("bird", pytest.approx(0.2))]


def test_top_k_classes_handles_wrappers_and_missing_labels() -> None:
    probs = types.SimpleNamespace(data=np.array([0.5, 0.5, 0.0], dtype=np.float32))
    got = top_k_classes(probs, 5, ["a"])
    assert [c.label for c in got] == ["a", "1", "2"]
    assert top_k_classes([], 3, None) == []


def test_as_numpy_uses_cpu_numpy() -> None:
    class FakeTorch:
        def __init__(self, arr: np.ndarray) -> None:
            self.arr = arr

        def cpu(self) -> "FakeTorch":
            return self

        def numpy(self) -> np.ndarray:
            return self.arr

    out = as_numpy(FakeTorch(np.array([[1, 2]])))
    assert out.dtype == np.float32 and out.shape == (1, 2)
    assert as_numpy(None).shape == (0,)
