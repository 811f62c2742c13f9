#!/usr/bin/env python3
"""
半空間の冗長除去（総当たり）

2つの凸セルの半空間をまとめ、d 枚の組ごとに交点を求めます。
両セルに含まれる交点だけを採用し、十分な数の相異なる交点を
持つ半空間だけを交差多面体の面として残します。

  2D: 2本の直線の交点。ちょうど2点を持つ辺を残す
  3D: 3枚の平面の交点。3点以上を持つ面を残す

組合せ数は 2D で O(n²)、3D で O(n³) ですが、
交点計算と包含判定は一定数の組ごとに numpy でまとめて行います。
"""

import time
import threading
from dataclasses import dataclass, field
from itertools import combinations, islice
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .. import get_logger
from ..config import GeometryConfig
from ..constants import REMOVER_CHUNK_SIZE
from ..errors import InvalidInputError
from ..geometry import Edge, Cell, PointSet

logger = get_logger(__name__)


@dataclass
class RemovalResult:
    """冗長除去の結果"""
    first_edges: List[Edge] = field(default_factory=list)    # 1つ目のセル由来の面
    second_edges: List[Edge] = field(default_factory=list)   # 2つ目のセル由来の面
    vertices: Optional[np.ndarray] = None                    # 交差多面体の頂点 (n, d)

    @property
    def half_spaces(self) -> List[Edge]:
        """残った半空間すべて"""
        return self.first_edges + self.second_edges

    @property
    def num_vertices(self) -> int:
        """頂点数を取得"""
        return 0 if self.vertices is None else len(self.vertices)

    @property
    def is_empty(self) -> bool:
        """交差が面を持たないか"""
        return not self.first_edges and not self.second_edges


def _solve_lines(normals: np.ndarray, offsets: np.ndarray, tolerance: float) -> Tuple[np.ndarray, np.ndarray]:
    """2本の直線 n·x = c の交点（クラメルの公式）

    Args:
        normals: (k, 2, 2) 各組の法線
        offsets: (k, 2) 各組の定数項
        tolerance: 平行とみなす行列式の閾値

    Returns:
        (交点 (k, 2), 有効フラグ (k,))
    """
    n1, n2 = normals[:, 0], normals[:, 1]
    c1, c2 = offsets[:, 0], offsets[:, 1]

    det = n1[:, 0] * n2[:, 1] - n2[:, 0] * n1[:, 1]
    valid = np.abs(det) >= tolerance
    safe_det = np.where(valid, det, 1.0)

    x = (c1 * n2[:, 1] - c2 * n1[:, 1]) / safe_det
    y = (n1[:, 0] * c2 - n2[:, 0] * c1) / safe_det
    return np.stack([x, y], axis=1), valid


def _solve_planes(normals: np.ndarray, offsets: np.ndarray, tolerance: float) -> Tuple[np.ndarray, np.ndarray]:
    """3枚の平面 n·x = c の交点

    x = (c1 (n2×n3) + c2 (n3×n1) + c3 (n1×n2)) / (n1·(n2×n3))
    """
    n1, n2, n3 = normals[:, 0], normals[:, 1], normals[:, 2]
    c1, c2, c3 = offsets[:, 0], offsets[:, 1], offsets[:, 2]

    cross23 = np.cross(n2, n3)
    cross31 = np.cross(n3, n1)
    cross12 = np.cross(n1, n2)

    det = np.einsum('ij,ij->i', n1, cross23)
    valid = np.abs(det) >= tolerance
    safe_det = np.where(valid, det, 1.0)

    points = (
        c1[:, None] * cross23 + c2[:, None] * cross31 + c3[:, None] * cross12
    ) / safe_det[:, None]
    return points, valid


# 次元ごとの交点ソルバー
_SOLVERS: Dict[int, Callable[[np.ndarray, np.ndarray, float], Tuple[np.ndarray, np.ndarray]]] = {
    2: _solve_lines,
    3: _solve_planes,
}

# 次元ごとの面として残す条件（相異なる交点数）
_KEEP_RULES: Dict[int, Callable[[int], bool]] = {
    2: lambda count: count == 2,
    3: lambda count: count >= 3,
}


class HalfSpaceRemover:
    """総当たりによる半空間の冗長除去"""

    def __init__(self, geometry: Optional[GeometryConfig] = None,
                 chunk_size: int = REMOVER_CHUNK_SIZE):
        """
        初期化

        Args:
            geometry: 許容誤差設定（epsilon は包含判定と点の同一判定に使用）
            chunk_size: 一度に解く半空間の組の数
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.geometry = geometry or GeometryConfig()
        self.chunk_size = chunk_size
        self._stats_lock = threading.Lock()
        self.reset_stats()

    def remove(self, first: Cell, second: Cell) -> RemovalResult:
        """
        2つのセルの交差を表す最小の半空間集合と頂点を求める

        Args:
            first: 1つ目のセル（三角形分割側）
            second: 2つ目のセル（Voronoi側）

        Returns:
            残った半空間（セル別）と相異なる頂点
        """
        start_time = time.perf_counter()

        edges = first.edges + second.edges
        if not edges:
            raise InvalidInputError("Both cells have no half-spaces")

        dimension = edges[0].dimension
        if dimension not in _SOLVERS:
            raise InvalidInputError(f"Unsupported dimension: {dimension}")

        eps = self.geometry.epsilon
        vertices = PointSet(dimension, eps)
        result = RemovalResult(vertices=vertices.to_array())

        if len(edges) < dimension:
            self._update_stats(0, 0, start_time)
            return result

        normals = np.array([edge.normal for edge in edges], dtype=np.float64)
        offsets = np.array([edge.c for edge in edges], dtype=np.float64)
        solver = _SOLVERS[dimension]

        per_edge_points = [PointSet(dimension, eps) for _ in edges]
        num_combinations = 0
        num_accepted = 0

        # 組合せを chunk_size 個ずつ処理（作業配列は chunk_size x 半空間数で頭打ち）
        all_groups = combinations(range(len(edges)), dimension)
        while True:
            index_groups = np.array(list(islice(all_groups, self.chunk_size)), dtype=np.int64)
            if len(index_groups) == 0:
                break
            num_combinations += len(index_groups)

            points, valid = solver(
                normals[index_groups], offsets[index_groups], self.geometry.determinant_tolerance
            )
            index_groups = index_groups[valid]
            points = points[valid]

            # 両セルの全半空間の内側（許容誤差内）にある交点だけ採用
            inside = np.all(points @ normals.T - offsets >= -eps, axis=1)
            num_accepted += int(inside.sum())

            for point, group in zip(points[inside], index_groups[inside]):
                vertices.add(point)
                for edge_index in group:
                    per_edge_points[edge_index].add(point)

        keep = _KEEP_RULES[dimension]
        num_first = first.num_edges
        for edge_index, edge in enumerate(edges):
            if not keep(len(per_edge_points[edge_index])):
                continue
            if edge_index < num_first:
                result.first_edges.append(edge)
            else:
                result.second_edges.append(edge)

        result.vertices = vertices.to_array()
        self._update_stats(num_combinations, num_accepted, start_time)
        return result

    def _update_stats(self, num_combinations: int, num_accepted: int, start_time: float):
        """統計を更新"""
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        with self._stats_lock:
            self.stats['total_calls'] += 1
            self.stats['total_combinations'] += num_combinations
            self.stats['accepted_points'] += num_accepted
            if num_accepted == 0:
                self.stats['empty_results'] += 1
            self.stats['total_time_ms'] += elapsed_ms
            self.stats['average_time_ms'] = self.stats['total_time_ms'] / self.stats['total_calls']

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計取得"""
        with self._stats_lock:
            return self.stats.copy()

    def reset_stats(self):
        """統計リセット"""
        self.stats = {
            'total_calls': 0,
            'total_combinations': 0,
            'accepted_points': 0,
            'empty_results': 0,
            'total_time_ms': 0.0,
            'average_time_ms': 0.0
        }
