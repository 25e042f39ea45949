# friendlyml/models/cluster.py
"""
K-means clustering on scikit-learn.

    model = await kmeans(records, {"k": 3})
    model.result.clusters          # fitted once, when ``ready`` resolves
    envelope = await model.predict([[0.2, 0.4]])

Records may be sequences of numbers or mappings; for mappings the column
order is taken from the first record.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..args import ResolvedCall, resolve_call
from ..callbacks import Callback, call_callback
from ..config import merge_options
from ..errors import MissingArgument
from ..resources import ResourceScope, Tensor, tensor
from ..results import ResultAdapter, ResultEnvelope
from ..runtime import ModelRuntime
from ..runtime.sklearn_backend import SklearnKMeansRuntime
from .base import BaseModel, create_factory

__all__ = ["Cluster", "ClusterResult", "KMeansClusterer", "kmeans"]

_NO_DATA = "kmeans needs an array of data points to cluster."
_NO_POINTS = "predict needs a point or an array of points."


@dataclass(frozen=True)
class Cluster:
    index: int
    label: str
    centroid: Optional[Tuple[float, ...]]
    points: Tuple[Tuple[int, Any], ...]


@dataclass(frozen=True)
class ClusterResult:
    original: Tuple[Any, ...]
    labels: Tuple[int, ...]
    cluster_count: int
    centroids: Optional[Tuple[Tuple[float, ...], ...]] = None
    values: Tuple[Tuple[float, ...], ...] = ()
    metrics: Mapping[str, float] = field(default_factory=dict)
    tensor: Optional[Tensor] = None

    @property
    def predictions(self) -> List[Dict[str, Any]]:
        """Data points in input order with the index of their cluster."""
        return [
            {"data": data, "index": i, "cluster": cluster}
            for i, (data, cluster) in enumerate(zip(self.original, self.labels))
        ]

    @property
    def clusters(self) -> List[Cluster]:
        grouped: List[List[Tuple[int, Any]]] = [[] for _ in range(self.cluster_count)]
        for i, (data, cluster) in enumerate(zip(self.original, self.labels)):
            if 0 <= cluster < self.cluster_count:
                grouped[cluster].append((i, data))
        return [
            Cluster(
                index=c,
                label=str(c + 1),
                centroid=self.centroids[c] if self.centroids is not None else self._mean(grouped[c]),
                points=tuple(grouped[c]),
            )
            for c in range(self.cluster_count)
        ]

    def _mean(self, members: Sequence[Tuple[int, Any]]) -> Optional[Tuple[float, ...]]:
        """Centroid of a cluster from its numeric rows; None for an empty cluster."""
        if not members or not self.values:
            return None
        rows = np.asarray([self.values[i] for i, _ in members], dtype=np.float64)
        return tuple(float(v) for v in rows.mean(axis=0))


def _as_matrix(data: Any, columns: Sequence[str] = ()) -> Tuple[np.ndarray, Tuple[str, ...]]:
    """Records → float64 array plus the column names used for mappings."""
    if isinstance(data, np.ndarray):
        return np.asarray(data, dtype=np.float64), tuple(columns)
    rows = list(data)
    if rows and isinstance(rows[0], Mapping):
        cols = tuple(columns) or tuple(str(k) for k in rows[0])
        try:
            values = [[float(row[c]) for c in cols] for row in rows]
        except KeyError as exc:
            raise ValueError(f"record is missing column {exc.args[0]!r}") from exc
        return np.asarray(values, dtype=np.float64).reshape(len(rows), len(cols)), cols
    return np.asarray(rows, dtype=np.float64), tuple(columns)


def _data_argument(call: ResolvedCall) -> Any:
    if call.array is not None:
        return call.array
    if isinstance(call.media, np.ndarray):
        return call.media
    return None


class KMeansClusterer(BaseModel):
    name = "kmeans"
    event = "predict"
    DEFAULTS: ClassVar[Dict[str, Any]] = {
        "k": 3,
        "max_iter": 4,
        "threshold": 0.5,
        "n_init": 10,
        "random_state": None,
        "return_centroids": True,
        "return_tensors": False,
    }

    def __init__(
        self,
        data: Any = None,
        options: Optional[Mapping[str, Any]] = None,
        callback: Optional[Callback[Any]] = None,
        *,
        runtime: Optional[ModelRuntime] = None,
        serialize: bool = False,
    ) -> None:
        self.original: Tuple[Any, ...] = tuple(data) if data is not None else ()
        self.columns: Tuple[str, ...] = ()
        self.points: Optional[np.ndarray] = None
        if data is not None:
            matrix, self.columns = _as_matrix(data)
            self.points = matrix.reshape(-1, 1) if matrix.ndim == 1 else matrix
        self.result: Optional[ClusterResult] = None
        self.adapter = ResultAdapter()
        super().__init__(options, callback, runtime=runtime, serialize=serialize)

    @classmethod
    def from_call(cls, call: ResolvedCall, **kwargs: Any) -> "KMeansClusterer":
        return cls(_data_argument(call), call.options, call.callback, **kwargs)

    def default_runtime(self) -> SklearnKMeansRuntime:
        return SklearnKMeansRuntime()

    def load_params(self) -> Dict[str, Any]:
        if self.points is None or self.points.shape[0] == 0:
            raise MissingArgument("data", _NO_DATA)
        return {**self.config, "data": self.points}

    def after_load(self) -> None:
        if self.points is None:
            raise MissingArgument("data", _NO_DATA)
        labels = tuple(int(v) for v in np.asarray(self.model.labels_).reshape(-1))
        centers = np.asarray(self.model.cluster_centers_, dtype=np.float64)
        self.result = ClusterResult(
            original=self.original,
            labels=labels,
            cluster_count=int(centers.shape[0]),
            centroids=(
                tuple(tuple(float(v) for v in row) for row in centers) if self.config.get("return_centroids") else None
            ),
            values=tuple(tuple(float(v) for v in row) for row in self.points),
            metrics={
                "cluster_count": float(centers.shape[0]),
                "inertia": float(getattr(self.model, "inertia_", float("nan"))),
                "iterations": float(getattr(self.model, "n_iter_", 0)),
            },
            tensor=tensor(self.points, name="data") if self.config.get("return_tensors") else None,
        )

    def predict(self, *args: Any) -> "asyncio.Task[ResultEnvelope]":
        """predict(points, [options], [callback]); a bare number is a 1-D point."""
        call = resolve_call(*args)

        async def _produce() -> ResultEnvelope:
            data = _data_argument(call)
            if data is None and call.extra_number is not None:
                data = [[call.extra_number]]
            if data is None:
                raise MissingArgument("array", _NO_POINTS)
            points, _ = _as_matrix(data, self.columns)
            if points.ndim == 1:
                dims = self.points.shape[1] if self.points is not None else points.shape[0]
                points = points.reshape(-1, dims)
            options = merge_options(self.config, call.options)
            return await self._run_inference(points, options)

        return call_callback(_produce, call.callback)

    def shape(self, raw: Any, inputs: Any, options: Mapping[str, Any], scope: ResourceScope) -> ResultEnvelope:
        labels = [int(v) for v in np.asarray(raw).reshape(-1)]
        return self.adapter.build(labels, options=options, tensor=tensor(inputs, name="points"), scope=scope)


kmeans = create_factory(KMeansClusterer)
