from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from friendlyml.args import ArgSeparator, ArgumentKind, classify_argument, resolve_call
from friendlyml.errors import MissingArgument
from friendlyml.media import SyntheticCapture, VideoSource


def _cb(err, res):  # noqa: ANN001
    return None


@pytest.mark.parametrize(
    "arg, kind",
    [
        (_cb, ArgumentKind.CALLBACK),
        (Image.new("RGB", (4, 4)), ArgumentKind.MEDIA),
        (np.zeros((4, 4, 3), dtype=np.uint8), ArgumentKind.MEDIA),
        (Path("photo.jpg"), ArgumentKind.MEDIA),
        (SyntheticCapture(), ArgumentKind.MEDIA),
        ({"k": 1}, ArgumentKind.OPTIONS),
        ([1, 2], ArgumentKind.ARRAY),
        ((1, 2), ArgumentKind.ARRAY),
        (np.array([1.0, 2.0]), ArgumentKind.ARRAY),
        ("yolo11n-pose", ArgumentKind.STRING),
        (3, ArgumentKind.NUMBER),
        (0.5, ArgumentKind.NUMBER),
        (True, ArgumentKind.OTHER),
        (object(), ArgumentKind.OTHER),
        (np.zeros((2, 2, 2, 2)), ArgumentKind.OTHER),
    ],
)
def test_classify_argument(arg: object, kind: ArgumentKind) -> None:
    assert classify_argument(arg) is kind


def test_none_is_omitted() -> None:
    assert classify_argument(None) is None
    call = resolve_call(None, None)
    assert call.media is None and call.options is None and call.others == ()


def test_callable_media_is_a_callback() -> None:
    class ReadableCallable:
        def read(self):  # noqa: ANN201
            return False, None

        def __call__(self, err, res):  # noqa: ANN001, ANN204
            return None

    assert classify_argument(ReadableCallable()) is ArgumentKind.CALLBACK


def test_resolve_any_order() -> None:
    video = VideoSource(SyntheticCapture())
    opts = {"conf": 0.3}
    a = resolve_call(video, opts, _cb)
    b = resolve_call(_cb, opts, video)
    assert a == b
    assert a.media is video and a.options is opts and a.callback is _cb
    assert a.video is video


def test_later_argument_of_same_kind_wins() -> None:
    call = resolve_call({"a": 1}, "first", {"b": 2}, "second", 1, 2.5)
    assert call.options == {"b": 2}
    assert call.extra_string == "second"
    assert call.extra_number == 2.5


def test_other_values_are_collected_not_rejected() -> None:
    marker = object()
    call = resolve_call(True, marker, "name")
    assert call.others == (True, marker)
    assert call.extra_string == "name"
    assert call.has("others")


def test_default_media_only_fills_empty_slot() -> None:
    default = np.zeros((2, 2, 3), dtype=np.uint8)
    explicit = Image.new("RGB", (2, 2))
    assert resolve_call({"x": 1}, default_media=default).media is default
    assert resolve_call(explicit, default_media=default).media is explicit


def test_still_image_is_not_video() -> None:
    call = resolve_call(Image.new("RGB", (2, 2)))
    assert call.video is None


def test_require_returns_same_call() -> None:
    call = resolve_call("text")
    assert call.require("extra_string") is call


def test_require_raises_with_message() -> None:
    call = resolve_call({"a": 1})
    with pytest.raises(MissingArgument) as info:
        call.require("media", "No image or video found.")
    assert str(info.value) == "No image or video found."
    assert info.value.field == "media"


def test_require_default_message() -> None:
    with pytest.raises(MissingArgument, match="An argument for callback must be provided."):
        resolve_call().require("callback")


def test_has_rejects_unknown_fields() -> None:
    with pytest.raises(AttributeError):
        resolve_call().has("nope")


def test_incremental_separator() -> None:
    sep = ArgSeparator({"a": 1})
    sep.add(None).add("ref").add([1, 2, 3])
    call = sep.resolve()
    assert call.options == {"a": 1}
    assert call.extra_string == "ref"
    assert call.array == [1, 2, 3]
