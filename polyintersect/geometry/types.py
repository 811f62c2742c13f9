#!/usr/bin/env python3
"""
幾何プリミティブの共通データ構造

半空間（Edge）、凸セル（Cell）、バウンディングボックス、
セル複体（VolumeData）を定義します。

セルは複体ごとのリスト（アリーナ）に保持し、Edgeは
source/target をセルのインデックスで参照します。
これによりCell↔Edgeの循環参照を持たずに隣接グラフを表現します。
"""

from dataclasses import dataclass, field
from typing import List, Tuple, Optional
import numpy as np

from ..constants import GEOMETRY_EPSILON, NO_INDEX


@dataclass
class Edge:
    """半空間 {x : normal·x >= c}

    normal は source セルの内側を向く。target が存在する場合、
    target セルは normal'=-normal, c'=-c の逆向きEdgeを持つ。
    """
    normal: np.ndarray          # 法線 (d,)
    c: float                    # 定数項
    source: int                 # 所有セルのインデックス
    target: Optional[int] = None  # 隣接セルのインデックス（境界ならNone）

    @property
    def dimension(self) -> int:
        """次元を取得"""
        return len(self.normal)

    @property
    def is_boundary(self) -> bool:
        """境界面かどうか"""
        return self.target is None

    def evaluate(self, point: np.ndarray) -> float:
        """normal·p - c を計算（内側なら非負）"""
        return float(np.dot(self.normal, point) - self.c)

    def flipped(self, source: int, target: Optional[int]) -> 'Edge':
        """逆向きの半空間を作成"""
        return Edge(normal=-self.normal, c=-self.c, source=source, target=target)


@dataclass(eq=False)
class Cell:
    """凸多面体セル（半空間の共通部分）"""
    edges: List[Edge] = field(default_factory=list)
    centroid: Optional[np.ndarray] = None
    weight: float = 0.0                 # 体積（2Dでは面積）
    triangle_index: int = NO_INDEX      # 元の三角形セル
    voronoi_index: int = NO_INDEX       # 元のVoronoiセル
    visited: bool = False               # 走査フラグ

    def __post_init__(self):
        # (法線行列, 定数ベクトル) を1つの属性としてまとめて差し替える
        self._arrays: Optional[Tuple[np.ndarray, np.ndarray]] = None

    @property
    def num_edges(self) -> int:
        """半空間数を取得"""
        return len(self.edges)

    def add_edge(self, edge: Edge) -> Edge:
        """半空間を追加（キャッシュを破棄）"""
        self.edges.append(edge)
        self._arrays = None
        return edge

    def halfspace_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """法線行列 (m, d) と定数ベクトル (m,) を取得"""
        arrays = self._arrays
        if arrays is None or len(arrays[1]) != len(self.edges):
            edges = list(self.edges)
            if edges:
                normals = np.array([edge.normal for edge in edges], dtype=np.float64)
                offsets = np.array([edge.c for edge in edges], dtype=np.float64)
            else:
                normals = np.empty((0, 0), dtype=np.float64)
                offsets = np.empty(0, dtype=np.float64)
            arrays = (normals, offsets)
            self._arrays = arrays
        return arrays

    def contains(self, point: np.ndarray, eps: float = GEOMETRY_EPSILON) -> bool:
        """点が含まれるかチェック（全半空間で normal·p - c >= -eps）"""
        if not self.edges:
            return True
        normals, offsets = self.halfspace_arrays()
        return bool(np.all(normals @ np.asarray(point, dtype=np.float64) - offsets >= -eps))

    def neighbors(self) -> List[int]:
        """隣接セルのインデックス一覧"""
        return [edge.target for edge in self.edges if edge.target is not None]

    def find_edge_to(self, target: int) -> Optional[Edge]:
        """指定セルへのEdgeを検索"""
        for edge in self.edges:
            if edge.target == target:
                return edge
        return None


@dataclass
class BoundingBox:
    """軸並行バウンディングボックス"""
    min_point: np.ndarray      # 最小点 (d,)
    max_point: np.ndarray      # 最大点 (d,)

    @property
    def dimension(self) -> int:
        """次元を取得"""
        return len(self.min_point)

    @property
    def center(self) -> np.ndarray:
        """中心点を取得"""
        return (self.min_point + self.max_point) * 0.5

    @property
    def size(self) -> np.ndarray:
        """サイズを取得"""
        return self.max_point - self.min_point

    def contains_point(self, point: np.ndarray) -> bool:
        """点が含まれるかチェック"""
        return bool(np.all(point >= self.min_point) and np.all(point <= self.max_point))

    @staticmethod
    def from_points(points: np.ndarray) -> 'BoundingBox':
        """点群からバウンディングボックスを作成"""
        points = np.asarray(points, dtype=np.float64)
        return BoundingBox(np.min(points, axis=0), np.max(points, axis=0))

    @staticmethod
    def union(box1: 'BoundingBox', box2: 'BoundingBox') -> 'BoundingBox':
        """2つのボックスの和集合"""
        return BoundingBox(
            np.minimum(box1.min_point, box2.min_point),
            np.maximum(box1.max_point, box2.max_point)
        )


@dataclass
class VolumeData:
    """セル複体（両ビルダーと交差計算の出力）"""
    dimension: int
    cells: List[Cell] = field(default_factory=list)
    bounding_box: Optional[BoundingBox] = None

    @property
    def num_cells(self) -> int:
        """セル数を取得"""
        return len(self.cells)

    def total_weight(self) -> float:
        """全セルの体積合計"""
        return float(sum(cell.weight for cell in self.cells))

    def edge_count(self) -> int:
        """全セルの半空間数合計"""
        return sum(cell.num_edges for cell in self.cells)

    def reset_visited(self) -> None:
        """走査フラグをリセット"""
        for cell in self.cells:
            cell.visited = False

    def find_containing_cell(self, point: np.ndarray, eps: float = GEOMETRY_EPSILON) -> Optional[int]:
        """点を含む最初のセルのインデックスを線形探索で取得"""
        for index, cell in enumerate(self.cells):
            if cell.contains(point, eps):
                return index
        return None
