#!/usr/bin/env python3
"""
三角形分割複体の構築

頂点と単体（三角形・四面体）のインデックスから半空間表現のセル複体を生成します。
共有される面（2Dでは辺）を頂点インデックスの組で照合し、
両側のセルを隣接セルとして相互にリンクします。
"""

import time
from typing import Dict, Optional, Tuple

import numpy as np

from .. import get_logger
from ..config import GeometryConfig
from ..errors import InvalidInputError, DegenerateInputError
from ..geometry import (
    Edge, Cell, BoundingBox, VolumeData, ArrayLike,
    as_point_array, validate_dimension, simplex_volume, volume_threshold
)

logger = get_logger(__name__)


def _face_normal_2d(face: np.ndarray) -> np.ndarray:
    """辺に垂直なベクトル"""
    direction = face[1] - face[0]
    return np.array([-direction[1], direction[0]])


def _face_normal_3d(face: np.ndarray) -> np.ndarray:
    """三角形面の外積法線"""
    return np.cross(face[1] - face[0], face[2] - face[0])


# 次元ごとの面法線計算
_FACE_NORMALS = {
    2: _face_normal_2d,
    3: _face_normal_3d,
}


def _as_simplex_array(simplices: ArrayLike, dimension: int, num_vertices: int) -> np.ndarray:
    """単体インデックスを (M, d+1) の整数配列として検証"""
    try:
        array = np.asarray(simplices)
    except ValueError as e:
        raise InvalidInputError(f"simplices must be a rectangular index array: {e}") from e

    if array.ndim != 2 or array.shape[1] != dimension + 1:
        raise InvalidInputError(
            f"simplices must have shape (M, {dimension + 1}) for dimension {dimension}, got {array.shape}"
        )
    if array.size and not np.issubdtype(array.dtype, np.integer):
        if not np.issubdtype(array.dtype, np.floating) or not np.all(np.mod(array, 1) == 0):
            raise InvalidInputError(f"simplices must contain integer indices, got dtype {array.dtype}")
    array = array.astype(np.int64)

    if array.size and (array.min() < 0 or array.max() >= num_vertices):
        raise InvalidInputError(
            f"simplex indices must lie in [0, {num_vertices}), got range [{array.min()}, {array.max()}]"
        )
    return array


def _face_edge(
    face_points: np.ndarray,
    centroid: np.ndarray,
    cell_index: int,
    dimension: int
) -> Edge:
    """面を支持する半空間を単体の重心側に向けて作成"""
    normal = _FACE_NORMALS[dimension](face_points).astype(np.float64)
    length = np.linalg.norm(normal)
    if length == 0.0:
        raise DegenerateInputError(f"Cell {cell_index} has a degenerate face")
    normal /= length

    c = float(np.dot(normal, face_points[0]))

    # 重心が内側になるよう向きを揃える
    if np.dot(normal, centroid) - c < 0:
        normal = -normal
        c = -c

    return Edge(normal=normal, c=c, source=cell_index)


def build_triangulation_complex(
    vertices: ArrayLike,
    simplices: ArrayLike,
    geometry: Optional[GeometryConfig] = None
) -> VolumeData:
    """
    三角形分割（四面体分割）からセル複体を構築

    Args:
        vertices: 頂点座標 (N, d)、d は 2 または 3
        simplices: 単体の頂点インデックス (M, d+1)
        geometry: 許容誤差設定

    Returns:
        体積を持つ単体ごとに1セルのセル複体（TriangleIndex = 入力での単体の位置）。
        体積ゼロの単体は警告を出して除外します
    """
    geometry = geometry or GeometryConfig()
    start_time = time.perf_counter()

    vertex_array = as_point_array(vertices, "vertices")
    dimension = validate_dimension(vertex_array, "vertices")

    if len(vertex_array) < dimension + 1:
        raise InvalidInputError(
            f"At least {dimension + 1} vertices required for dimension {dimension}, got {len(vertex_array)}"
        )

    simplex_array = _as_simplex_array(simplices, dimension, len(vertex_array))
    if len(simplex_array) < 1:
        raise InvalidInputError("At least one simplex required")

    bounding_box = BoundingBox.from_points(vertex_array)
    min_volume = volume_threshold(bounding_box.size, geometry.volume_tolerance)

    cells = []
    # ソート済み面インデックス -> 最初に登録した半空間
    face_dictionary: Dict[Tuple[int, ...], Edge] = {}
    num_linked = 0
    skipped = []

    for simplex_index, simplex in enumerate(simplex_array):
        points = vertex_array[simplex]

        volume = simplex_volume(points)
        if volume <= min_volume:
            skipped.append(simplex_index)
            continue

        # セルの位置（アリーナ上のインデックス）
        cell_index = len(cells)
        centroid = points.mean(axis=0)

        cell = Cell(
            centroid=centroid,
            weight=volume,
            triangle_index=simplex_index,
        )

        # 各頂点の対面
        for opposite in range(dimension + 1):
            face = np.delete(simplex, opposite)
            edge = cell.add_edge(_face_edge(vertex_array[face], centroid, cell_index, dimension))

            face_key = tuple(sorted(int(index) for index in face))
            neighbor_edge = face_dictionary.get(face_key)

            if neighbor_edge is None:
                face_dictionary[face_key] = edge
            elif neighbor_edge.target is None:
                edge.target = neighbor_edge.source
                neighbor_edge.target = cell_index
                num_linked += 1
            else:
                logger.warning(
                    f"Face {face_key} is shared by more than two simplices; "
                    f"simplex {simplex_index} keeps it as a boundary"
                )

        cells.append(cell)

    if skipped:
        logger.warning(
            f"Skipped {len(skipped)} zero-volume simplices: {skipped[:10]}"
            f"{' ...' if len(skipped) > 10 else ''}"
        )
    if not cells:
        raise DegenerateInputError(f"All {len(simplex_array)} simplices have zero volume")

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.debug(
        f"Triangulation complex: {len(cells)} cells, {num_linked} internal faces, "
        f"dimension {dimension} in {elapsed_ms:.1f}ms"
    )

    return VolumeData(
        dimension=dimension,
        cells=cells,
        bounding_box=bounding_box
    )
