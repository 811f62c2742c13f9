#!/usr/bin/env python3
"""
交差エンジン

三角形分割複体とVoronoi複体を構築し、重なり合うセル対を
幅優先探索（BFS）で辿りながら交差多面体を求めます。

全セル対を総当たりせず、三角形セルの重心を含むVoronoiセルを
種として、残った半空間の隣接リンクから隣のセル対へ広げます。
連結成分ごとの探索は独立しているため、max_workers > 1 では
種ごとにスレッドへ分配します（セルとセル対の確保はロック下で
先着優先）。
"""

import time
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from .. import get_logger
from ..config import PolyIntersectConfig
from ..errors import InvalidInputError, DegenerateGeometryError, MissingContainmentError
from ..geometry import (
    Edge, Cell, VolumeData, ArrayLike,
    as_point_array, validate_dimension
)
from ..complex import build_triangulation_complex, build_voronoi_complex
from .halfspace import HalfSpaceRemover
from .integrator import integrate_polytope

logger = get_logger(__name__)

# (三角形セル, Voronoiセル) のインデックス対
CellPair = Tuple[int, int]


@dataclass
class _PairResult:
    """1つのセル対の交差結果"""
    pair: CellPair
    centroid: np.ndarray
    volume: float
    first_edges: List[Edge] = field(default_factory=list)
    second_edges: List[Edge] = field(default_factory=list)


class _TraversalState:
    """1回の交差計算で共有する確保状態"""

    def __init__(self):
        self._lock = threading.Lock()
        self.visited_pairs: Set[CellPair] = set()

    def claim_cell(self, cell: Cell) -> bool:
        """未訪問のセルを訪問済みにして確保（先着優先）"""
        with self._lock:
            if cell.visited:
                return False
            cell.visited = True
            return True

    def claim_pair(self, pair: CellPair) -> bool:
        """未訪問のセル対を確保（先着優先）"""
        with self._lock:
            if pair in self.visited_pairs:
                return False
            self.visited_pairs.add(pair)
            return True


class VolumeIntersector:
    """三角形分割とVoronoi分割の多面体交差"""

    def __init__(self, config: Optional[PolyIntersectConfig] = None):
        """
        初期化

        Args:
            config: 全体設定（Noneならデフォルト）
        """
        self.config = (config or PolyIntersectConfig()).validate()
        self.geometry = self.config.geometry
        self.traversal = self.config.traversal
        self.remover = HalfSpaceRemover(self.geometry)

        self._stats_lock = threading.Lock()
        self.reset_stats()

    def intersect(
        self,
        vertices: ArrayLike,
        simplices: ArrayLike,
        generators: ArrayLike,
        generator_indices: Optional[Sequence[int]] = None
    ) -> VolumeData:
        """
        三角形分割とVoronoi分割の交差を計算

        Args:
            vertices: 三角形分割の頂点 (N, d)
            simplices: 単体の頂点インデックス (M, d+1)
            generators: Voronoi母点 (K, d)
            generator_indices: 母点の VoronoiIndex（Noneなら入力順）

        Returns:
            交差セルの複体
        """
        vertex_array = as_point_array(vertices, "vertices")
        generator_array = as_point_array(generators, "generators")

        dimension = validate_dimension(vertex_array, "vertices")
        generator_dimension = validate_dimension(generator_array, "generators")
        if dimension != generator_dimension:
            raise InvalidInputError(
                f"Dimension mismatch: vertices are {dimension}D, generators are {generator_dimension}D"
            )

        triangulation = build_triangulation_complex(vertex_array, simplices, self.geometry)
        voronoi = build_voronoi_complex(generator_array, generator_indices, self.geometry)

        return self.intersect_complexes(triangulation, voronoi)

    def intersect_complexes(self, triangulation: VolumeData, voronoi: VolumeData) -> VolumeData:
        """
        構築済みの2つの複体の交差を計算

        出力セルは元の2つのセルの TriangleIndex / VoronoiIndex を引き継ぎます。

        Args:
            triangulation: 三角形分割複体
            voronoi: Voronoi複体

        Returns:
            交差セルの複体（BoundingBox は三角形分割側）
        """
        if triangulation.dimension != voronoi.dimension:
            raise InvalidInputError(
                f"Dimension mismatch: triangulation is {triangulation.dimension}D, "
                f"voronoi is {voronoi.dimension}D"
            )

        start_time = time.perf_counter()
        triangulation.reset_visited()
        voronoi.reset_visited()

        state = _TraversalState()
        seeds = range(triangulation.num_cells)

        if self.traversal.max_workers > 1:
            # 半空間配列のキャッシュを構築してからスレッドで共有
            for cell in triangulation.cells + voronoi.cells:
                cell.halfspace_arrays()

            with ThreadPoolExecutor(max_workers=self.traversal.max_workers,
                                    thread_name_prefix="intersector") as executor:
                futures = [
                    executor.submit(self._traverse_component, seed, triangulation, voronoi, state)
                    for seed in seeds
                ]
                results = []
                for future in futures:
                    results.extend(future.result())
            # 並列時は確保順が不定なのでインデックス順に揃える
            results.sort(key=lambda result: result.pair)
        else:
            results = []
            for seed in seeds:
                results.extend(self._traverse_component(seed, triangulation, voronoi, state))

        output = VolumeData(
            dimension=triangulation.dimension,
            cells=self._link_results(results, triangulation, voronoi),
            bounding_box=triangulation.bounding_box
        )

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._update_stats(output.num_cells, elapsed_ms)
        logger.info(
            f"Intersection: {output.num_cells} cells from {triangulation.num_cells} simplices x "
            f"{voronoi.num_cells} generators, total volume {output.total_weight():.6g} "
            f"in {elapsed_ms:.1f}ms"
        )
        return output

    def locate_seed(self, cell: Cell, voronoi: VolumeData) -> int:
        """
        三角形セルの重心を含むVoronoiセルを線形探索

        Raises:
            MissingContainmentError: 含むセルが存在しない
        """
        index = voronoi.find_containing_cell(cell.centroid, self.geometry.epsilon)
        if index is None:
            raise MissingContainmentError(
                f"No voronoi cell contains centroid {np.round(cell.centroid, 6).tolist()} "
                f"of triangle cell {cell.triangle_index}"
            )
        return index

    def _traverse_component(
        self,
        seed: int,
        triangulation: VolumeData,
        voronoi: VolumeData,
        state: _TraversalState
    ) -> List[_PairResult]:
        """種となる三角形セルから連結なセル対をBFSで辿る"""
        seed_cell = triangulation.cells[seed]
        if not state.claim_cell(seed_cell):
            return []

        try:
            voronoi_seed = self.locate_seed(seed_cell, voronoi)
        except MissingContainmentError as e:
            logger.warning(f"Skipping seed {seed}: {e}")
            self._increment('missing_seeds')
            return []

        if not state.claim_pair((seed, voronoi_seed)):
            return []

        queue = deque([(seed, voronoi_seed)])
        results = []

        while queue:
            pair = queue.popleft()
            triangle_index, voronoi_index = pair
            triangle_cell = triangulation.cells[triangle_index]
            voronoi_cell = voronoi.cells[voronoi_index]

            triangle_cell.visited = True
            voronoi_cell.visited = True

            num_half_spaces = triangle_cell.num_edges + voronoi_cell.num_edges
            if num_half_spaces > self.traversal.max_half_spaces_per_pair:
                logger.warning(
                    f"Skipping pair {pair}: {num_half_spaces} half-spaces exceed "
                    f"limit {self.traversal.max_half_spaces_per_pair}"
                )
                self._increment('oversized_pairs')
                continue

            removal = self.remover.remove(triangle_cell, voronoi_cell)
            self._increment('pairs_processed')

            # 三角形側を先に、隣接セル対を列挙
            for edge in removal.first_edges:
                if edge.target is not None:
                    neighbor = (edge.target, voronoi_index)
                    if state.claim_pair(neighbor):
                        queue.append(neighbor)
            for edge in removal.second_edges:
                if edge.target is not None:
                    neighbor = (triangle_index, edge.target)
                    if state.claim_pair(neighbor):
                        queue.append(neighbor)

            try:
                centroid, volume = integrate_polytope(removal.vertices, self.geometry)
            except DegenerateGeometryError as e:
                logger.warning(f"Skipping degenerate pair {pair}: {e}")
                self._increment('degenerate_pairs')
                continue

            results.append(_PairResult(
                pair=pair,
                centroid=centroid,
                volume=volume,
                first_edges=removal.first_edges,
                second_edges=removal.second_edges
            ))

        logger.debug(f"Component from seed {seed}: {len(results)} cells")
        return results

    def _link_results(
        self,
        results: List[_PairResult],
        triangulation: VolumeData,
        voronoi: VolumeData
    ) -> List[Cell]:
        """交差結果を出力セルに変換し、隣接する交差セル同士をリンク"""
        row_of: Dict[CellPair, int] = {result.pair: row for row, result in enumerate(results)}
        link = self.traversal.link_result_neighbors

        cells = []
        for row, result in enumerate(results):
            triangle_index, voronoi_index = result.pair
            cell = Cell(
                centroid=result.centroid,
                weight=result.volume,
                triangle_index=triangulation.cells[triangle_index].triangle_index,
                voronoi_index=voronoi.cells[voronoi_index].voronoi_index
            )

            neighbors = [
                (edge, None if edge.target is None else (edge.target, voronoi_index))
                for edge in result.first_edges
            ] + [
                (edge, None if edge.target is None else (triangle_index, edge.target))
                for edge in result.second_edges
            ]

            for edge, neighbor in neighbors:
                target = row_of.get(neighbor) if link and neighbor is not None else None
                cell.add_edge(Edge(normal=edge.normal.copy(), c=edge.c, source=row, target=target))

            cells.append(cell)
        return cells

    def _increment(self, key: str):
        """カウンタを加算"""
        with self._stats_lock:
            self.stats[key] += 1

    def _update_stats(self, num_cells: int, elapsed_ms: float):
        """統計を更新"""
        with self._stats_lock:
            self.stats['total_runs'] += 1
            self.stats['last_num_cells'] = num_cells
            self.stats['last_run_time_ms'] = elapsed_ms
            self.stats['total_time_ms'] += elapsed_ms

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計取得"""
        with self._stats_lock:
            stats = self.stats.copy()
        stats['remover'] = self.remover.get_performance_stats()
        return stats

    def reset_stats(self):
        """統計リセット"""
        self.stats = {
            'total_runs': 0,
            'pairs_processed': 0,
            'degenerate_pairs': 0,
            'oversized_pairs': 0,
            'missing_seeds': 0,
            'last_num_cells': 0,
            'last_run_time_ms': 0.0,
            'total_time_ms': 0.0
        }
        self.remover.reset_stats()


# 便利関数

def intersect_volumes(
    vertices: ArrayLike,
    simplices: ArrayLike,
    generators: ArrayLike,
    generator_indices: Optional[Sequence[int]] = None,
    config: Optional[PolyIntersectConfig] = None
) -> VolumeData:
    """
    三角形分割とVoronoi分割の交差を計算（簡単なインターフェース）

    Args:
        vertices: 三角形分割の頂点 (N, d)
        simplices: 単体の頂点インデックス (M, d+1)
        generators: Voronoi母点 (K, d)
        generator_indices: 母点の VoronoiIndex
        config: 全体設定

    Returns:
        交差セルの複体
    """
    intersector = VolumeIntersector(config)
    return intersector.intersect(vertices, simplices, generators, generator_indices)
