#!/usr/bin/env python3
"""
Voronoi複体の構築

母点のDelaunay分割（scipy.spatial.Delaunay）から隣接する母点対を求め、
各対の垂直二等分面を半空間として両セルに相互リンクします。
Voronoiセルの外側境界は持たず、無限に広がるセルとして扱います。
"""

import time
from typing import Optional, Sequence

import numpy as np
from scipy.spatial import Delaunay, QhullError

from .. import get_logger
from ..config import GeometryConfig
from ..errors import InvalidInputError, DegenerateInputError
from ..geometry import (
    Edge, Cell, BoundingBox, VolumeData, ArrayLike,
    as_point_array, validate_dimension
)

logger = get_logger(__name__)


def _as_generator_indices(indices: Optional[Sequence[int]], num_generators: int) -> np.ndarray:
    """VoronoiIndex の並びを検証（0..N-1 の置換）"""
    if indices is None:
        return np.arange(num_generators, dtype=np.int64)

    array = np.asarray(indices)
    if array.ndim != 1 or len(array) != num_generators:
        raise InvalidInputError(
            f"generator indices must have length {num_generators}, got shape {array.shape}"
        )
    if array.size and not np.issubdtype(array.dtype, np.integer):
        raise InvalidInputError(f"generator indices must be integers, got dtype {array.dtype}")

    array = array.astype(np.int64)
    if not np.array_equal(np.sort(array), np.arange(num_generators)):
        raise InvalidInputError("generator indices must be a permutation of 0..N-1")
    return array


def _bisector_edge(source_point: np.ndarray, target_point: np.ndarray,
                   source: int, target: int) -> Edge:
    """source 側を向く垂直二等分の半空間"""
    normal = source_point - target_point
    normal = normal / np.linalg.norm(normal)
    midpoint = (source_point + target_point) * 0.5
    return Edge(normal=normal, c=float(np.dot(normal, midpoint)), source=source, target=target)


def build_voronoi_complex(
    generators: ArrayLike,
    indices: Optional[Sequence[int]] = None,
    geometry: Optional[GeometryConfig] = None
) -> VolumeData:
    """
    母点からVoronoi複体を構築

    Args:
        generators: 母点座標 (N, d)、d は 2 または 3
        indices: 各母点の VoronoiIndex（Noneなら入力順）
        geometry: 許容誤差設定

    Returns:
        母点ごとに1セルを持つセル複体。cells[index] が VoronoiIndex=index のセル
    """
    geometry = geometry or GeometryConfig()
    start_time = time.perf_counter()

    points = as_point_array(generators, "generators")
    dimension = validate_dimension(points, "generators")
    num_generators = len(points)

    if num_generators < dimension + 1:
        raise InvalidInputError(
            f"At least {dimension + 1} generators required for dimension {dimension}, got {num_generators}"
        )
    voronoi_indices = _as_generator_indices(indices, num_generators)

    # 全母点が同一平面（直線）上にある場合はDelaunay分割できない
    if np.linalg.matrix_rank(points[1:] - points[0], tol=geometry.epsilon) < dimension:
        raise DegenerateInputError("generators are affinely dependent (collinear or coplanar)")

    try:
        tri = Delaunay(points)
    except QhullError as e:
        raise DegenerateInputError(f"Delaunay triangulation of generators failed: {e}") from e

    if len(tri.coplanar) > 0:
        dropped = sorted(set(int(i) for i in tri.coplanar[:, 0]))
        raise DegenerateInputError(f"generators {dropped} coincide with other generators")

    cells = [Cell() for _ in range(num_generators)]
    for position, index in enumerate(voronoi_indices):
        cell = cells[index]
        cell.centroid = points[position].copy()
        cell.voronoi_index = int(index)

    num_pairs = 0
    for simplex in tri.simplices:
        for i in range(dimension + 1):
            for j in range(i + 1, dimension + 1):
                source_position, target_position = int(simplex[i]), int(simplex[j])
                source = int(voronoi_indices[source_position])
                target = int(voronoi_indices[target_position])

                if cells[source].find_edge_to(target) is not None:
                    continue

                edge = cells[source].add_edge(_bisector_edge(
                    points[source_position], points[target_position], source, target
                ))
                cells[target].add_edge(edge.flipped(target, source))
                num_pairs += 1

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.debug(
        f"Voronoi complex: {num_generators} cells, {num_pairs} bisectors, "
        f"{len(tri.simplices)} Delaunay simplices in {elapsed_ms:.1f}ms"
    )

    return VolumeData(
        dimension=dimension,
        cells=cells,
        bounding_box=BoundingBox.from_points(points)
    )
