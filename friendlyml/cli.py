# friendlyml/cli.py
"""
Command line entry point: run one model over still images and write overlays.

    friendlyml pose  photo.jpg other.png --conf 0.4
    friendlyml segment photo.jpg -o out/
    friendlyml classify photo.jpg --topk 5 -m yolov8s-cls
    friendlyml face portrait.jpg

Each input ``<stem><ext>`` produces ``<stem>_<task><ext>`` in the results dir
(``FRIENDLYML_RESULTS_DIR``, default ``./results``).
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import typer

from .config import results_dir
from .errors import FriendlyMLError
from .logging_config import get_log_path, setup_logging
from .media import StillImage
from .models import body_segmenter, face_landmarks, image_classifier, pose_estimator
from .results import PillowSink, ResultEnvelope

LOGGER = logging.getLogger(__name__)


def _log_event(event: str, **info: object) -> None:
    if info:
        detail = " ".join(f"{k}={info[k]}" for k in sorted(info) if info[k] is not None)
        LOGGER.info("%s %s", event, detail)
    else:
        LOGGER.info("%s", event)


_IS_WINDOWS = sys.platform.startswith("win")
_HELP_NAMES = ["-h", "--help"] + (["/?"] if _IS_WINDOWS else [])

app = typer.Typer(
    add_completion=False,
    help="Run friendly pre-trained models over images.",
    context_settings={"help_option_names": _HELP_NAMES},
)

_FACTORIES: Dict[str, Callable[..., Any]] = {
    "pose": pose_estimator,
    "segment": body_segmenter,
    "classify": image_classifier,
    "face": face_landmarks,
}

_KEEP_EXTS = {".jpg", ".jpeg", ".png"}


@app.callback()
def _main() -> None:
    setup_logging()


def _out_path(out_dir: Path, image: StillImage, task: str, overlay: Any) -> Path:
    ext = image.suffix if image.suffix in _KEEP_EXTS else ".jpg"
    # JPEG has no alpha channel
    if getattr(overlay, "mode", "RGB") in ("RGBA", "LA"):
        ext = ".png"
    return out_dir / f"{image.stem}_{task}{ext}"


def _summary(task: str, envelope: ResultEnvelope) -> str:
    raw = envelope.raw
    if task == "classify":
        return ", ".join(f"{c.label} {c.confidence:.2f}" for c in raw) or "no classes"
    if task == "segment":
        return f"{raw.instances} person instance(s)"
    noun = "pose" if task == "pose" else "face"
    return f"{len(raw)} {noun}(s)"


def run_task(
    task: str,
    images: List[Path],
    options: Dict[str, Any],
    *,
    model: Optional[str] = None,
    out_dir: Optional[Path] = None,
) -> List[Path]:
    """Load the *task* model once and write one overlay per image."""
    factory = _FACTORIES[task]
    target = Path(out_dir).expanduser() if out_dir is not None else results_dir()
    target.mkdir(parents=True, exist_ok=True)

    async def _go() -> List[Path]:
        net = await factory(model, options, drawing=PillowSink())
        written: List[Path] = []
        for path in images:
            image = StillImage(path)
            envelope = await net.predict(image)
            out = _out_path(target, image, task, envelope.overlay)
            envelope.overlay.save(out)
            _log_event("cli.write", task=task, src=path.name, out=str(out))
            typer.echo(f"{path.name}: {_summary(task, envelope)} -> {out}")
            written.append(out)
        return written

    return asyncio.run(_go())


def _run_or_exit(task: str, images: List[Path], options: Dict[str, Any], model: Optional[str], out_dir: Optional[Path]) -> None:
    try:
        run_task(task, images, options, model=model, out_dir=out_dir)
    except (FriendlyMLError, OSError, RuntimeError) as exc:
        _log_event("cli.fail", task=task, reason=f"{type(exc).__name__}: {exc}")
        typer.echo(f"{task} failed: {exc}", err=True)
        log_path = get_log_path()
        if log_path is not None:
            typer.echo(f"log: {log_path}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def pose(
    images: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Image files to process."),
    conf: float = typer.Option(0.25, "--conf", help="Detection confidence threshold."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Weights path or hub name."),
    out_dir: Optional[Path] = typer.Option(None, "--out-dir", "-o", help="Directory for overlays."),
) -> None:
    """Draw COCO skeletons."""
    _run_or_exit("pose", images, {"conf": conf}, model, out_dir)


@app.command()
def segment(
    images: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Image files to process."),
    conf: float = typer.Option(0.25, "--conf", help="Detection confidence threshold."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Weights path or hub name."),
    out_dir: Optional[Path] = typer.Option(None, "--out-dir", "-o", help="Directory for overlays."),
) -> None:
    """Cut people out of the background (RGBA PNG)."""
    _run_or_exit("segment", images, {"conf": conf}, model, out_dir)


@app.command()
def classify(
    images: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Image files to process."),
    topk: int = typer.Option(3, "--topk", "-k", min=1, help="Number of labels to show."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Weights path or hub name."),
    out_dir: Optional[Path] = typer.Option(None, "--out-dir", "-o", help="Directory for overlays."),
) -> None:
    """Top-K labels drawn as a card."""
    _run_or_exit("classify", images, {"topk": topk}, model, out_dir)


@app.command()
def face(
    images: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Image files to process."),
    conf: float = typer.Option(0.5, "--conf", help="Minimum face detection confidence."),
    max_faces: int = typer.Option(1, "--max-faces", min=1),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Weights path or hub name."),
    out_dir: Optional[Path] = typer.Option(None, "--out-dir", "-o", help="Directory for overlays."),
) -> None:
    """Draw face landmarks."""
    _run_or_exit("face", images, {"min_detection_confidence": conf, "max_faces": max_faces}, model, out_dir)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
