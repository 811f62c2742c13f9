#!/usr/bin/env python3
"""
凸多面体の重心・体積積分

頂点集合をDelaunay分割（scipy.spatial.Delaunay）し、
各単体の体積で重み付けした重心を合成します。
頂点数がちょうど d+1 の場合は単体1つとして直接計算します。
"""

import math
from typing import Optional, Tuple

import numpy as np
from scipy.spatial import Delaunay, QhullError

from ..config import GeometryConfig
from ..errors import DegenerateGeometryError
from ..geometry import volume_threshold


def integrate_polytope(
    vertices: np.ndarray,
    geometry: Optional[GeometryConfig] = None
) -> Tuple[np.ndarray, float]:
    """
    凸多面体の重心と体積を計算

    Args:
        vertices: 頂点座標 (n, d)、n >= d+1
        geometry: 許容誤差設定（volume_tolerance は頂点の広がりに対する相対値）

    Returns:
        (重心 (d,), 体積)

    Raises:
        DegenerateGeometryError: 頂点不足・Delaunay失敗・体積ゼロ
    """
    geometry = geometry or GeometryConfig()
    points = np.asarray(vertices, dtype=np.float64)

    if points.ndim != 2 or points.shape[1] == 0:
        raise DegenerateGeometryError(f"Vertices must have shape (n, d), got {points.shape}")

    dimension = points.shape[1]
    if len(points) < dimension + 1:
        raise DegenerateGeometryError(
            f"At least {dimension + 1} vertices required to span a volume, got {len(points)}"
        )

    if len(points) == dimension + 1:
        simplices = np.arange(dimension + 1)[np.newaxis, :]
    else:
        try:
            simplices = Delaunay(points).simplices
        except QhullError as e:
            raise DegenerateGeometryError(f"Delaunay triangulation of polytope failed: {e}") from e

    # (m, d+1, d) 各単体の頂点
    simplex_points = points[simplices]
    edge_vectors = simplex_points[:, 1:] - simplex_points[:, :1]
    volumes = np.abs(np.linalg.det(edge_vectors)) / math.factorial(dimension)

    total_volume = float(volumes.sum())
    if total_volume <= volume_threshold(np.ptp(points, axis=0), geometry.volume_tolerance):
        raise DegenerateGeometryError(f"Polytope volume {total_volume:.3e} is below tolerance")

    simplex_centroids = simplex_points.mean(axis=1)
    centroid = (volumes[:, np.newaxis] * simplex_centroids).sum(axis=0) / total_volume

    return centroid, total_volume
