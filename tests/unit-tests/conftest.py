# tests/unit-tests/conftest.py
from __future__ import annotations

import asyncio
import types
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

import numpy as np
import pytest
from PIL import Image

import friendlyml.logging_config as logging_config


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep weights, results and logs inside the test's tmp dir."""
    monkeypatch.setenv("FRIENDLYML_MODEL_DIR", str(tmp_path / "models"))
    monkeypatch.setenv("FRIENDLYML_RESULTS_DIR", str(tmp_path / "results"))
    monkeypatch.setenv("FRIENDLYML_LOG_FILE", str(tmp_path / "logs" / "friendlyml.log"))
    monkeypatch.setattr(logging_config, "_configured", False)
    monkeypatch.setattr(logging_config, "_log_path", None)


class FakeRuntime:
    """
    In-memory ModelRuntime.

    ``outputs`` is either a fixed raw result or a callable ``(media, params)``;
    ``load_error`` / ``predict_error`` make the matching call raise.
    """

    def __init__(
        self,
        outputs: Any = None,
        *,
        handle: Any = "handle",
        load_error: Optional[BaseException] = None,
        predict_error: Optional[BaseException] = None,
        load_delay: float = 0.0,
        predict_delay: float = 0.0,
    ) -> None:
        self.outputs = outputs
        self.handle = handle
        self.load_error = load_error
        self.predict_error = predict_error
        self.load_delay = load_delay
        self.predict_delay = predict_delay
        self.load_calls: List[tuple[Optional[str], dict[str, Any]]] = []
        self.predict_calls: List[tuple[Any, dict[str, Any]]] = []

    async def load(self, model_ref: Optional[str], params: Mapping[str, Any]) -> Any:
        self.load_calls.append((model_ref, dict(params)))
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        if self.load_error is not None:
            raise self.load_error
        return self.handle

    async def predict(self, handle: Any, media: Any, params: Mapping[str, Any]) -> Any:
        self.predict_calls.append((media, dict(params)))
        if self.predict_delay:
            await asyncio.sleep(self.predict_delay)
        if self.predict_error is not None:
            raise self.predict_error
        if callable(self.outputs):
            return self.outputs(media, params)
        return self.outputs


def pose_result(n: int = 1, k: int = 17) -> types.SimpleNamespace:
    """Ultralytics-shaped pose result with keypoints on a diagonal."""
    data = np.zeros((n, k, 3), dtype=np.float32)
    for i in range(n):
        for j in range(k):
            data[i, j] = (2.0 * j + i, 1.0 * j + i, 0.9)
    boxes = types.SimpleNamespace(
        xyxy=np.array([[0.0, 0.0, 40.0, 20.0]] * n, dtype=np.float32),
        conf=np.linspace(0.9, 0.5, n, dtype=np.float32) if n else np.zeros((0,), dtype=np.float32),
    )
    return types.SimpleNamespace(keypoints=types.SimpleNamespace(data=data), boxes=boxes)


@pytest.fixture
def fake_runtime() -> Callable[..., FakeRuntime]:
    return FakeRuntime


@pytest.fixture
def rgb_image() -> np.ndarray:
    img = np.zeros((24, 40, 3), dtype=np.uint8)
    img[:, :, 0] = 200
    img[:, 20:, 1] = 100
    return img


@pytest.fixture
def image_file(tmp_path: Path, rgb_image: np.ndarray) -> Path:
    path = tmp_path / "person.jpg"
    Image.fromarray(rgb_image).save(path)
    return path
