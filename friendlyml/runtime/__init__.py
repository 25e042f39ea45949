"""
Model runtimes: the external collaborators that actually load weights and run
inference. Wrappers only talk to them through ``ModelRuntime``; any object with
the two coroutines below can be injected (tests use in-memory fakes).

Backends import their heavy libraries lazily, on first ``load``.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

__all__ = ["ModelRuntime"]


class ModelRuntime(Protocol):
    async def load(self, model_ref: Optional[str], params: Mapping[str, Any]) -> Any: ...

    async def predict(self, handle: Any, media: Any, params: Mapping[str, Any]) -> Any: ...
