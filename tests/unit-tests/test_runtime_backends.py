from __future__ import annotations

import asyncio
import threading
import time
import types
from typing import Any, Awaitable, List, Tuple

import numpy as np
import pytest

from conftest import pose_result
from friendlyml import model_registry
from friendlyml.media import PixelBuffer
from friendlyml.models import pose_estimator
from friendlyml.runtime import mediapipe_backend
from friendlyml.runtime.mediapipe_backend import MediaPipeFaceRuntime
from friendlyml.runtime.ultralytics_backend import UltralyticsRuntime


class SleepyHandle:
    """Blocks the calling thread like a real model would; records overlap."""

    def __init__(self, delay: float, output: Any = None) -> None:
        self.delay = delay
        self.output = output
        self.calls: List[Tuple[Any, dict]] = []
        self._active = 0
        self.peak = 0
        self._guard = threading.Lock()

    def _run(self, data: Any, kwargs: dict) -> Any:
        with self._guard:
            self._active += 1
            self.peak = max(self.peak, self._active)
        time.sleep(self.delay)
        with self._guard:
            self._active -= 1
            self.calls.append((data, kwargs))
        return self.output

    def predict(self, bgr: np.ndarray, **kwargs: Any) -> Any:
        return self._run(bgr, kwargs)

    def detect(self, image: Any) -> Any:
        return self._run(image, {})


async def _with_heartbeat(work: Awaitable[Any]) -> Tuple[Any, int]:
    ticks = 0
    stop = asyncio.Event()

    async def beat() -> None:
        nonlocal ticks
        while not stop.is_set():
            ticks += 1
            await asyncio.sleep(0.005)

    beater = asyncio.ensure_future(beat())
    try:
        result = await work
    finally:
        stop.set()
        await beater
    return result, ticks


def test_ultralytics_predict_keeps_event_loop_free() -> None:
    handle = SleepyHandle(0.1, output=["first", "second"])
    runtime = UltralyticsRuntime("pose")
    frame = np.zeros((4, 6, 3), dtype=np.uint8)
    frame[:, :, 0] = 200

    async def main() -> Tuple[Any, int]:
        media = PixelBuffer(frame)
        return await _with_heartbeat(
            asyncio.gather(
                runtime.predict(handle, media, {"conf": 0.4, "iou": None}),
                runtime.predict(handle, media, {}),
            )
        )

    results, ticks = asyncio.run(main())
    assert list(results) == ["first", "first"]
    assert ticks >= 10
    assert handle.peak == 1
    assert handle.calls[0][0][0, 0].tolist() == [0, 0, 200]
    sent = sorted((kwargs for _, kwargs in handle.calls), key=len)
    assert sent == [{"verbose": False}, {"conf": 0.4, "verbose": False}]


def test_pose_model_on_ultralytics_runtime_does_not_block(monkeypatch: pytest.MonkeyPatch) -> None:
    handle = SleepyHandle(0.05, output=[pose_result(1)])
    loads: List[Tuple[str, Any]] = []

    def fake_load_model(task: str, model_ref: Any = None) -> SleepyHandle:
        loads.append((task, model_ref))
        time.sleep(0.05)
        return handle

    monkeypatch.setattr(model_registry, "load_model", fake_load_model)

    async def main() -> Tuple[Any, int]:
        async def work() -> Any:
            model = await pose_estimator({"conf": 0.3})
            frame = np.zeros((24, 40, 3), dtype=np.uint8)
            return await asyncio.gather(model.predict(frame), model.predict(frame))

        return await _with_heartbeat(work())

    envelopes, ticks = asyncio.run(main())
    assert loads == [("pose", None)]
    assert [len(env.raw) for env in envelopes] == [1, 1]
    assert ticks >= 10


def test_mediapipe_detect_keeps_event_loop_free(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_mp = types.SimpleNamespace(
        Image=lambda image_format, data: ("image", image_format, data.shape),
        ImageFormat=types.SimpleNamespace(SRGB="srgb"),
    )
    monkeypatch.setattr(mediapipe_backend, "_require_mediapipe", lambda: (fake_mp, None, None))
    handle = SleepyHandle(0.1, output="landmarks")
    runtime = MediaPipeFaceRuntime()

    async def main() -> Tuple[Any, int]:
        media = PixelBuffer(np.zeros((4, 6, 3), dtype=np.uint8))
        return await _with_heartbeat(
            asyncio.gather(runtime.predict(handle, media, {}), runtime.predict(handle, media, {}))
        )

    results, ticks = asyncio.run(main())
    assert list(results) == ["landmarks", "landmarks"]
    assert ticks >= 10
    assert handle.peak == 1
    assert handle.calls[0][0] == ("image", "srgb", (4, 6, 3))
