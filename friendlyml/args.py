# friendlyml/args.py
"""
Argument separation for loosely ordered calls.

Model factories and methods accept their arguments in any order, with any of
them omitted:

    pose_estimator(video, {"conf": 0.3}, on_loaded)
    pose_estimator(on_loaded)
    model.predict(image, on_result)
    model.predict({"max_poses": 1})

Each argument is tagged with exactly one ``ArgumentKind`` by structural
inspection, using a fixed priority when several would match:

    CALLBACK > MEDIA > OPTIONS > ARRAY > STRING > NUMBER > OTHER

``None`` means "omitted" and is skipped. Several arguments of the same kind:
the later one wins. Classification has no side effects; ``require`` is the
only validation performed here.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from numbers import Real
from typing import Any, Callable, Dict, Mapping as MappingT, Optional, Sequence, Tuple

import numpy as np

from .errors import MissingArgument
from .media import is_media, is_video

__all__ = ["ArgSeparator", "ArgumentKind", "ResolvedCall", "classify_argument", "resolve_call"]


class ArgumentKind(enum.Enum):
    CALLBACK = "callback"
    MEDIA = "media"
    OPTIONS = "options"
    ARRAY = "array"
    STRING = "string"
    NUMBER = "number"
    OTHER = "other"


# Fixed priority: the first probe that matches decides the kind.
_PROBES: Tuple[Tuple[ArgumentKind, Callable[[Any], bool]], ...] = (
    (ArgumentKind.CALLBACK, callable),
    (ArgumentKind.MEDIA, is_media),
    (ArgumentKind.OPTIONS, lambda a: isinstance(a, Mapping)),
    (ArgumentKind.ARRAY, lambda a: isinstance(a, (list, tuple)) or (isinstance(a, np.ndarray) and a.ndim == 1)),
    (ArgumentKind.STRING, lambda a: isinstance(a, str)),
    (ArgumentKind.NUMBER, lambda a: isinstance(a, Real) and not isinstance(a, bool)),
)


def classify_argument(arg: Any) -> Optional[ArgumentKind]:
    """Return the kind of *arg*, or None when the argument is omitted."""
    if arg is None:
        return None
    for kind, probe in _PROBES:
        if probe(arg):
            return kind
    return ArgumentKind.OTHER


@dataclass(frozen=True)
class ResolvedCall:
    media: Any = None
    options: Optional[MappingT[str, Any]] = None
    callback: Optional[Callable[..., Any]] = None
    extra_string: Optional[str] = None
    extra_number: Optional[float] = None
    array: Optional[Sequence[Any]] = None
    others: Tuple[Any, ...] = ()

    @property
    def video(self) -> Any:
        """The media slot when it holds a live video source."""
        return self.media if self.media is not None and is_video(self.media) else None

    def has(self, field: str) -> bool:
        if field not in _FIELD_NAMES and field != "video":
            raise AttributeError(f"ResolvedCall has no field {field!r}")
        value = getattr(self, field)
        if field == "others":
            return bool(value)
        return value is not None

    def require(self, field: str, message: Optional[str] = None) -> "ResolvedCall":
        """Return self when *field* is bound, else raise MissingArgument."""
        if self.has(field):
            return self
        raise MissingArgument(field, message)


_FIELD_NAMES = frozenset(f.name for f in fields(ResolvedCall))

_SLOT_FOR_KIND: Dict[ArgumentKind, str] = {
    ArgumentKind.CALLBACK: "callback",
    ArgumentKind.MEDIA: "media",
    ArgumentKind.OPTIONS: "options",
    ArgumentKind.ARRAY: "array",
    ArgumentKind.STRING: "extra_string",
    ArgumentKind.NUMBER: "extra_number",
}


class ArgSeparator:
    """
    Incremental form of ``resolve_call``: arguments can be added one at a
    time, e.g. an instance-level default first and call arguments after it.
    """

    def __init__(self, *args: Any) -> None:
        self._slots: Dict[str, Any] = {}
        self._others: list[Any] = []
        for arg in args:
            self.add(arg)

    def add(self, arg: Any) -> "ArgSeparator":
        kind = classify_argument(arg)
        if kind is None:
            return self
        if kind is ArgumentKind.OTHER:
            self._others.append(arg)
        else:
            self._slots[_SLOT_FOR_KIND[kind]] = arg
        return self

    def resolve(self) -> ResolvedCall:
        return ResolvedCall(others=tuple(self._others), **self._slots)


def resolve_call(*args: Any, default_media: Any = None) -> ResolvedCall:
    """
    Classify *args* into a ResolvedCall.

    *default_media* (typically the video bound at construction time) is used
    only when no call-time argument lands in the media slot.
    """
    resolved = ArgSeparator(*args).resolve()
    if resolved.media is None and default_media is not None:
        return replace(resolved, media=default_media)
    return resolved
