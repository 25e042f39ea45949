"""
scikit-learn KMeans runtime: ``load`` fits, ``predict`` assigns clusters.

Fitting can take a while on large data, so both steps run in a worker thread.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import numpy as np

from ..errors import RuntimeUnavailable


class SklearnKMeansRuntime:
    async def load(self, model_ref: Optional[str], params: Mapping[str, Any]) -> Any:
        try:
            from sklearn.cluster import KMeans
        except ImportError as exc:
            raise RuntimeUnavailable("scikit-learn is not installed; pip install scikit-learn") from exc
        estimator = KMeans(
            n_clusters=int(params["k"]),
            max_iter=int(params["max_iter"]),
            tol=float(params["threshold"]),
            n_init=params.get("n_init", 10),
            random_state=params.get("random_state"),
        )
        return await asyncio.to_thread(estimator.fit, np.asarray(params["data"], dtype=np.float64))

    async def predict(self, handle: Any, media: Any, params: Mapping[str, Any]) -> Any:
        points = np.asarray(media, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(1, -1)
        return await asyncio.to_thread(handle.predict, points)
