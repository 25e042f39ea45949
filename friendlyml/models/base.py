# friendlyml/models/base.py
"""
Shared machinery for every model wrapper.

Lifecycle
─────────
    UNINITIALIZED → LOADING → READY ⇄ PREDICTING
                       ↘ ERROR   (load failed; sticky, never retried)

* The model is loaded exactly once per instance, starting in the constructor.
  ``instance.ready`` is that one load; every caller awaits the same task.
* Predict calls merge their options into a request-local copy of ``config``.
* Each inference runs inside its own ``resource_scope``.
* Overlapping predict calls are NOT serialized unless ``serialize=True``;
  reentrancy is up to the runtime.

Wrappers subclass ``MediaModel`` (image/video input) or ``BaseModel``
directly (data/text input) and implement ``shape``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections import defaultdict
from typing import Any, Callable, ClassVar, DefaultDict, Dict, List, Mapping, Optional, Type, TypeVar

from ..args import ResolvedCall, resolve_call
from ..callbacks import Callback, call_callback
from ..config import merge_options
from ..errors import InvalidMedia, RuntimeUnavailable
from ..media import MediaHandle, MediaKind, as_media
from ..resources import ResourceScope, resource_scope
from ..results import DrawingSink, ResultAdapter, ResultEnvelope
from ..runtime import ModelRuntime

__all__ = ["BaseModel", "MediaModel", "ModelState", "create_factory"]

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())

M = TypeVar("M", bound="BaseModel")

_NO_MEDIA = "No image or video found. An image must be provided if no video was set in the constructor."


class ModelState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    PREDICTING = "predicting"
    ERROR = "error"


class BaseModel:
    name: ClassVar[str] = "model"
    event: ClassVar[str] = "result"
    DEFAULTS: ClassVar[Dict[str, Any]] = {}

    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        callback: Optional[Callback[Any]] = None,
        *,
        runtime: Optional[ModelRuntime] = None,
        model_ref: Optional[str] = None,
        serialize: bool = False,
    ) -> None:
        self.config: Dict[str, Any] = merge_options(self.DEFAULTS, options)
        self.runtime = runtime if runtime is not None else self.default_runtime()
        self.model_ref: Optional[str] = model_ref or self.config.get("model")
        self.model: Any = None
        self.last_error: Optional[BaseException] = None
        self._load_error: Optional[BaseException] = None
        self._in_flight = 0
        self._listeners: DefaultDict[str, List[Callable[[Any], Any]]] = defaultdict(list)
        self._lock: Optional[asyncio.Lock] = asyncio.Lock() if serialize else None
        self._state = ModelState.LOADING
        self.ready: "asyncio.Task[Any]" = call_callback(self._load, callback)

    # -------------------------------
    #  Hooks for subclasses
    # -------------------------------
    def default_runtime(self) -> Optional[ModelRuntime]:
        return None

    def load_params(self) -> Dict[str, Any]:
        return dict(self.config)

    def shape(self, raw: Any, inputs: Any, options: Mapping[str, Any], scope: ResourceScope) -> ResultEnvelope:
        raise NotImplementedError

    @classmethod
    def from_call(cls: Type[M], call: ResolvedCall, **kwargs: Any) -> M:
        return cls(call.options, call.callback, model_ref=call.extra_string, **kwargs)

    # -------------------------------
    #  Properties / inspection hooks
    # -------------------------------
    @property
    def state(self) -> ModelState:
        if self._load_error is not None:
            return ModelState.ERROR
        if self._state is ModelState.READY and self._in_flight:
            return ModelState.PREDICTING
        return self._state

    @property
    def model_ready(self) -> bool:
        return self._state is ModelState.READY

    def on(self, event: str, handler: Callable[[Any], Any]) -> Callable[[Any], Any]:
        """Register *handler* for *event*; usable as a decorator."""
        self._listeners[event].append(handler)
        return handler

    def off(self, event: str, handler: Callable[[Any], Any]) -> None:
        handlers = self._listeners.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def _emit(self, event: str, payload: Any) -> None:
        for handler in list(self._listeners.get(event, ())):
            handler(payload)

    # -------------------------------
    #  Lifecycle management
    # -------------------------------
    async def _load(self) -> "BaseModel":
        try:
            if self.runtime is None:
                raise RuntimeUnavailable(f"{self.name} has no runtime; pass runtime=... when creating it.")
            self.model = await self.runtime.load(self.model_ref, self.load_params())
            self.after_load()
        except Exception as exc:
            self._load_error = exc
            self._state = ModelState.ERROR
            LOGGER.error("model.load.fail model=%s ref=%s reason=%s: %s", self.name, self.model_ref, type(exc).__name__, exc)
            raise
        self._state = ModelState.READY
        self._emit("ready", self)
        return self

    def after_load(self) -> None:
        """Called once the runtime handle is available."""

    async def _run_inference(self, inputs: Any, options: Mapping[str, Any]) -> ResultEnvelope:
        await self.ready
        if self._lock is None:
            return await self._infer(inputs, options)
        async with self._lock:
            return await self._infer(inputs, options)

    async def _infer(self, inputs: Any, options: Mapping[str, Any]) -> ResultEnvelope:
        if self.runtime is None:
            raise RuntimeUnavailable(f"{self.name} has no runtime; pass runtime=... when creating it.")
        self._in_flight += 1
        try:
            with resource_scope() as scope:
                raw = await self.runtime.predict(self.model, inputs, options)
                result = self.shape(raw, inputs, options, scope)
        except Exception as exc:
            self.last_error = exc
            LOGGER.error("model.predict.fail model=%s reason=%s: %s", self.name, type(exc).__name__, exc)
            raise
        finally:
            self._in_flight -= 1
        self._emit(self.event, result)
        return result

    def close(self) -> None:
        """Release the runtime handle when it supports closing."""
        close = getattr(self.model, "close", None)
        if callable(close):
            close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self.state.value}, model={self.model_ref!r})"


class MediaModel(BaseModel):
    """A model whose predict input is an image, pixel buffer or video."""

    def __init__(
        self,
        media: Any = None,
        options: Optional[Mapping[str, Any]] = None,
        callback: Optional[Callback[Any]] = None,
        *,
        runtime: Optional[ModelRuntime] = None,
        drawing: Optional[DrawingSink] = None,
        model_ref: Optional[str] = None,
        serialize: bool = False,
    ) -> None:
        self.video: Optional[MediaHandle] = as_media(media) if media is not None else None
        self.adapter = ResultAdapter(drawing)
        super().__init__(options, callback, runtime=runtime, model_ref=model_ref, serialize=serialize)

    @classmethod
    def from_call(cls, call: ResolvedCall, **kwargs: Any) -> "MediaModel":
        return cls(call.media, call.options, call.callback, model_ref=call.extra_string, **kwargs)

    def predict(self, *args: Any) -> "asyncio.Task[ResultEnvelope]":
        """
        predict([media], [options], [callback]) in any order.

        Falls back to the media given at construction time. Returns a task;
        with a callback, the callback also receives ``(error, envelope)``.
        """
        call = resolve_call(*args, default_media=self.video)

        async def _produce() -> ResultEnvelope:
            call.require("media", _NO_MEDIA)
            media = as_media(call.media)
            options = merge_options(self.config, call.options)
            await self.ready
            frame = await self._frame_for(media)
            return await self._run_inference(frame, options)

        return call_callback(_produce, call.callback)

    async def _frame_for(self, media: MediaHandle) -> MediaHandle:
        """Wait for *media* and freeze the frame this call infers and draws on."""
        if media.kind is MediaKind.VIDEO:
            await media.wait_ready()
            return await asyncio.to_thread(media.snapshot)
        if not media.is_ready:
            raise InvalidMedia(f"{media!r} is not ready for inference.", media)
        return media.snapshot()


def create_factory(cls: Type[M]) -> Callable[..., Any]:
    """
    Build the public ``factory(*args, **kwargs)`` for a wrapper class.

    Returns the instance itself when a callback was passed (the callback
    fires once loading settles), otherwise the instance's ``ready`` task.
    Keyword arguments (runtime, drawing, serialize) go to the constructor.
    """

    def factory(*args: Any, **kwargs: Any) -> Any:
        call = resolve_call(*args)
        instance = cls.from_call(call, **kwargs)
        return instance if call.callback is not None else instance.ready

    factory.__name__ = cls.__name__
    factory.__qualname__ = cls.__name__
    factory.__doc__ = f"Create a {cls.__name__}; arguments may come in any order."
    return factory
