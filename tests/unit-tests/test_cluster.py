from __future__ import annotations

import asyncio
from typing import Any, List

import numpy as np
import pytest

from friendlyml.errors import MissingArgument
from friendlyml.models import ClusterResult, KMeansClusterer, kmeans
from friendlyml.resources import live_tensors

_BLOBS = [
    [0.0, 0.0], [0.1, 0.2], [0.2, 0.1],
    [10.0, 10.0], [10.1, 9.9], [9.8, 10.2],
]


def _fit(*args: Any) -> KMeansClusterer:
    async def main() -> KMeansClusterer:
        return await kmeans(*args)

    return asyncio.run(main())


def test_kmeans_fits_when_ready() -> None:
    model = _fit(_BLOBS, {"k": 2, "random_state": 0, "max_iter": 50})
    result = model.result
    assert isinstance(result, ClusterResult)
    assert result.cluster_count == 2
    assert len(set(result.labels[:3])) == 1 and len(set(result.labels[3:])) == 1
    assert result.labels[0] != result.labels[3]
    assert result.centroids is not None and len(result.centroids) == 2
    sizes = sorted(len(c.points) for c in result.clusters)
    assert sizes == [3, 3]
    assert result.predictions[4] == {"data": _BLOBS[4], "index": 4, "cluster": result.labels[4]}
    assert result.tensor is None


def test_kmeans_records_and_predict() -> None:
    records = [{"x": p[0], "y": p[1]} for p in _BLOBS]

    async def main() -> tuple[KMeansClusterer, Any, Any]:
        model = await kmeans(records, {"k": 2, "random_state": 0})
        single = await model.predict([10.0, 10.0])
        many = await model.predict([{"x": 0.0, "y": 0.1}, {"x": 9.9, "y": 10.0}])
        return model, single, many

    model, single, many = asyncio.run(main())
    assert model.columns == ("x", "y")
    assert single.raw == [model.result.labels[3]]
    assert many.raw == [model.result.labels[0], model.result.labels[3]]


def test_kmeans_accepts_ndarray_data() -> None:
    model = _fit(np.asarray(_BLOBS), {"k": 2, "random_state": 1})
    assert model.points.shape == (6, 2)


def test_kmeans_callback_style() -> None:
    seen: List[Any] = []

    async def main() -> KMeansClusterer:
        model = kmeans(_BLOBS, {"k": 2, "random_state": 0}, lambda err, res: seen.append((err, res)))
        await model.ready
        return model

    model = asyncio.run(main())
    assert seen == [(None, model)]


def test_kmeans_without_data_rejects() -> None:
    errors: List[Any] = []

    async def main() -> None:
        model = kmeans({"k": 2}, lambda err, res: errors.append(err))
        with pytest.raises(MissingArgument):
            await model.ready

    asyncio.run(main())
    assert isinstance(errors[0], MissingArgument)


def test_predict_without_points_rejects() -> None:
    async def main() -> None:
        model = await kmeans(_BLOBS, {"k": 2, "random_state": 0})
        with pytest.raises(MissingArgument):
            await model.predict({"return_tensors": True})

    asyncio.run(main())


def test_return_tensors() -> None:
    before = live_tensors()

    async def main() -> tuple[KMeansClusterer, Any]:
        model = await kmeans(_BLOBS, {"k": 2, "random_state": 0, "return_tensors": True})
        env = await model.predict([[0.0, 0.0]])
        return model, env

    model, env = asyncio.run(main())
    assert model.result.tensor is not None and model.result.tensor.shape == (6, 2)
    assert env.tensor is not None and env.tensor.shape == (1, 2)
    model.result.tensor.dispose()
    env.tensor.dispose()
    assert live_tensors() == before


def test_kmeans_accepts_one_dimensional_ndarray() -> None:
    async def main() -> tuple[KMeansClusterer, Any]:
        model = await kmeans(np.array([1.0, 1.1, 9.0, 9.2]), {"k": 2, "random_state": 0})
        env = await model.predict(np.array([1.05, 9.1]))
        return model, env

    model, env = asyncio.run(main())
    assert model.points.shape == (4, 1)
    labels = model.result.labels
    assert labels[0] == labels[1] and labels[2] == labels[3] and labels[0] != labels[2]
    assert env.raw == [labels[0], labels[2]]


def test_predict_accepts_ndarray_point() -> None:
    async def main() -> tuple[KMeansClusterer, Any]:
        model = await kmeans(_BLOBS, {"k": 2, "random_state": 0})
        return model, await model.predict(np.array([10.0, 10.0]))

    model, env = asyncio.run(main())
    assert env.raw == [model.result.labels[3]]


def test_centroids_fall_back_to_point_means() -> None:
    model = _fit(_BLOBS, {"k": 2, "random_state": 0, "max_iter": 50, "return_centroids": False})
    assert model.result.centroids is None
    for cluster in model.result.clusters:
        rows = np.asarray([_BLOBS[i] for i, _ in cluster.points])
        assert cluster.centroid == pytest.approx(tuple(rows.mean(axis=0)))
