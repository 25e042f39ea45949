"""
Scoped release of transient tensors.

Each inference call runs inside ``resource_scope()``. Tensors allocated with
``tensor()`` while the scope is active are released when it exits, on the
success path and on the error path alike, unless they were handed to
``scope.keep()``. Kept tensors move to the enclosing scope, or belong to the
caller when there is none or it has already closed.

The active scope lives in a ``ContextVar``; every asyncio task gets its own
copy of the context, so two overlapping predict calls never share a scope.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
import threading
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Tuple, TypeVar

import numpy as np

from .errors import DisposedResource

if TYPE_CHECKING:
    import numpy.typing as npt

    NDArrayAny = npt.NDArray[Any]
else:
    NDArrayAny = Any

__all__ = [
    "ResourceScope",
    "Tensor",
    "active_scope",
    "live_tensors",
    "release",
    "resource_scope",
    "tensor",
]

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())

R = TypeVar("R")

_live_lock = threading.Lock()
_live_count = 0

_ACTIVE: contextvars.ContextVar[Optional["ResourceScope"]] = contextvars.ContextVar(
    "friendlyml_resource_scope", default=None
)


def _bump(delta: int) -> None:
    global _live_count
    with _live_lock:
        _live_count += delta


def live_tensors() -> int:
    """Number of tensors allocated and not yet disposed."""
    return _live_count


class Tensor:
    """A numpy array with an explicit lifetime."""

    __slots__ = ("_array", "name")

    def __init__(self, array: Any, name: Optional[str] = None) -> None:
        self._array: Optional[NDArrayAny] = np.asarray(array)
        self.name = name
        _bump(1)

    @property
    def disposed(self) -> bool:
        return self._array is None

    @property
    def data(self) -> NDArrayAny:
        if self._array is None:
            raise DisposedResource(f"Tensor {self.name or '<unnamed>'} has already been disposed.")
        return self._array

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(self.data.shape)

    @property
    def dtype(self) -> Any:
        return self.data.dtype

    def numpy(self) -> NDArrayAny:
        """Return a copy that outlives the tensor."""
        return self.data.copy()

    def dispose(self) -> None:
        if self._array is None:
            return
        self._array = None
        _bump(-1)

    def __repr__(self) -> str:
        if self._array is None:
            return f"Tensor(name={self.name!r}, disposed)"
        return f"Tensor(name={self.name!r}, shape={self._array.shape}, dtype={self._array.dtype})"


def release(resource: Any) -> None:
    """Dispose/close/release whatever the resource supports."""
    for attr in ("dispose", "close", "release"):
        fn = getattr(resource, attr, None)
        if callable(fn):
            fn()
            return
    raise TypeError(f"{type(resource).__name__} cannot be released (no dispose/close/release method)")


class ResourceScope:
    def __init__(self, parent: Optional["ResourceScope"] = None) -> None:
        self.parent = parent
        self._tracked: List[Any] = []
        self._kept: List[Any] = []
        self.closed = False

    def track(self, resource: R) -> R:
        if self.closed:
            raise RuntimeError("Cannot track resources in a closed scope.")
        self._tracked.append(resource)
        return resource

    def keep(self, resource: R) -> R:
        """Mark *resource* as escaping: it survives this scope's exit."""
        if not any(r is resource for r in self._tracked):
            self._tracked.append(resource)
        if not any(r is resource for r in self._kept):
            self._kept.append(resource)
        return resource

    @property
    def tracked(self) -> Tuple[Any, ...]:
        return tuple(self._tracked)

    @property
    def kept(self) -> Tuple[Any, ...]:
        return tuple(self._kept)

    def release(self) -> None:
        """Release every tracked resource that was not kept."""
        kept_ids = {id(r) for r in self._kept}
        first_error: Optional[BaseException] = None
        for resource in reversed(self._tracked):
            if id(resource) in kept_ids:
                continue
            try:
                release(resource)
            except Exception as exc:
                LOGGER.error("resource release failed resource=%r error=%s", resource, exc)
                if first_error is None:
                    first_error = exc
        if self.parent is not None and not self.parent.closed:
            for resource in self._kept:
                self.parent.track(resource)
        self._tracked.clear()
        self.closed = True
        if first_error is not None:
            raise first_error


def active_scope() -> Optional[ResourceScope]:
    return _ACTIVE.get()


@contextlib.contextmanager
def resource_scope() -> Iterator[ResourceScope]:
    """Run a block with guaranteed release of its non-escaping tensors."""
    scope = ResourceScope(parent=_ACTIVE.get())
    token = _ACTIVE.set(scope)
    try:
        yield scope
    except BaseException:
        _ACTIVE.reset(token)
        try:
            scope.release()
        except Exception as release_exc:
            LOGGER.error("scope release failed after error: %s", release_exc)
        raise
    else:
        _ACTIVE.reset(token)
        scope.release()


def tensor(array: Any, name: Optional[str] = None) -> Tensor:
    """Allocate a tensor owned by the active scope (caller-owned outside any open scope)."""
    t = Tensor(array, name=name)
    scope = _ACTIVE.get()
    if scope is not None and not scope.closed:
        scope.track(t)
    return t
