from __future__ import annotations

import types
from pathlib import Path

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from conftest import FakeRuntime, pose_result
from friendlyml.cli import app
from friendlyml.models import BodySegmenter, ImageClassifier, PoseEstimator

runner = CliRunner()


def test_pose_writes_overlay(monkeypatch: pytest.MonkeyPatch, image_file: Path, tmp_path: Path) -> None:
    runtime = FakeRuntime(pose_result(1))
    monkeypatch.setattr(PoseEstimator, "default_runtime", lambda self: runtime)

    result = runner.invoke(app, ["pose", str(image_file), "--conf", "0.4"])

    assert result.exit_code == 0, result.output
    out = tmp_path / "results" / "person_pose.jpg"
    assert out.is_file()
    assert "1 pose(s)" in result.output
    assert runtime.predict_calls[0][1]["conf"] == 0.4


def test_segment_writes_png(monkeypatch: pytest.MonkeyPatch, image_file: Path, tmp_path: Path) -> None:
    masks = np.ones((1, 24, 40), dtype=np.float32)
    raw = types.SimpleNamespace(
        masks=types.SimpleNamespace(data=masks),
        boxes=types.SimpleNamespace(cls=np.array([0.0], dtype=np.float32)),
    )
    monkeypatch.setattr(BodySegmenter, "default_runtime", lambda self: FakeRuntime(raw))
    out_dir = tmp_path / "custom"

    result = runner.invoke(app, ["segment", str(image_file), "-o", str(out_dir)])

    assert result.exit_code == 0, result.output
    out = out_dir / "person_segment.png"
    with Image.open(out) as im:
        assert im.mode == "RGBA"


def test_classify_passes_model_ref(monkeypatch: pytest.MonkeyPatch, image_file: Path) -> None:
    raw = types.SimpleNamespace(probs=np.array([0.2, 0.8], dtype=np.float32), names={0: "a", 1: "b"})
    runtime = FakeRuntime(raw)
    monkeypatch.setattr(ImageClassifier, "default_runtime", lambda self: runtime)

    result = runner.invoke(app, ["classify", str(image_file), "--topk", "1", "-m", "my-cls.pt"])

    assert result.exit_code == 0, result.output
    assert "b 0.80" in result.output
    assert runtime.load_calls[0][0] == "my-cls.pt"


def test_load_failure_exits_non_zero(monkeypatch: pytest.MonkeyPatch, image_file: Path) -> None:
    monkeypatch.setattr(
        PoseEstimator, "default_runtime", lambda self: FakeRuntime(load_error=FileNotFoundError("no weights"))
    )

    result = runner.invoke(app, ["pose", str(image_file)])

    assert result.exit_code == 1
    assert "no weights" in result.output


def test_missing_input_file_is_rejected(tmp_path: Path) -> None:
    result = runner.invoke(app, ["pose", str(tmp_path / "missing.jpg")])
    assert result.exit_code != 0
