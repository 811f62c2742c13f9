#!/usr/bin/env python3
"""
交差計算のテスト

半空間の冗長除去、凸多面体の積分、
BFSによる交差エンジンをテストします。
"""

import tracemalloc
import unittest
import pytest
import numpy as np
from scipy.spatial import Delaunay

# テスト対象モジュール
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from polyintersect.config import PolyIntersectConfig, GeometryConfig
from polyintersect.errors import (
    InvalidInputError, DegenerateGeometryError, MissingContainmentError
)
from polyintersect.geometry import Edge, Cell, VolumeData, BoundingBox
from polyintersect.complex import build_triangulation_complex
from polyintersect.intersection import (
    HalfSpaceRemover, RemovalResult, integrate_polytope,
    VolumeIntersector, intersect_volumes
)


def make_box_cell(min_point, max_point) -> Cell:
    """軸並行ボックスのセルを作成"""
    cell = Cell()
    dimension = len(min_point)
    for axis in range(dimension):
        normal = np.zeros(dimension)
        normal[axis] = 1.0
        cell.add_edge(Edge(normal=normal.copy(), c=float(min_point[axis]), source=0))
        cell.add_edge(Edge(normal=-normal, c=-float(max_point[axis]), source=0))
    return cell


def sorted_rows(volume):
    """(TriangleIndex, VoronoiIndex, Weight) をインデックス順に"""
    return sorted((cell.triangle_index, cell.voronoi_index, cell.weight) for cell in volume.cells)


# 立方体の6四面体分割（対角線 0-6 を共有）
CUBE_VERTICES = np.array([
    [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
    [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1]
], dtype=float)
CUBE_SIMPLICES = np.array([
    [0, 1, 2, 6], [0, 2, 3, 6], [0, 3, 7, 6],
    [0, 7, 4, 6], [0, 4, 5, 6], [0, 5, 1, 6]
])


class TestHalfSpaceRemover(unittest.TestCase):
    """半空間の冗長除去テスト"""

    def setUp(self):
        self.remover = HalfSpaceRemover()

    def test_cube_and_shifted_cube(self):
        """単位立方体と(0.5,0.5,0.5)ずらした立方体の交差は [0.5,1]^3"""
        cube = make_box_cell([0.0, 0.0, 0.0], [1.0, 1.0, 1.0])
        shifted = make_box_cell([0.5, 0.5, 0.5], [1.5, 1.5, 1.5])

        result = self.remover.remove(cube, shifted)

        self.assertIsInstance(result, RemovalResult)
        self.assertEqual(len(result.half_spaces), 6)
        self.assertEqual(len(result.first_edges), 3)
        self.assertEqual(len(result.second_edges), 3)
        self.assertEqual(result.num_vertices, 8)

        # 残るのは立方体の上側の面とずらした立方体の下側の面
        for edge in result.first_edges:
            self.assertAlmostEqual(edge.c, -1.0)
        for edge in result.second_edges:
            self.assertAlmostEqual(edge.c, 0.5)

        expected = {(x, y, z) for x in (0.5, 1.0) for y in (0.5, 1.0) for z in (0.5, 1.0)}
        actual = {tuple(np.round(vertex, 9)) for vertex in result.vertices}
        self.assertEqual(actual, expected)

        centroid, volume = integrate_polytope(result.vertices)
        self.assertAlmostEqual(volume, 0.125)
        np.testing.assert_allclose(centroid, [0.75, 0.75, 0.75])

    def test_square_and_shifted_square(self):
        """2Dでは各辺がちょうど2点を持つ"""
        square = make_box_cell([0.0, 0.0], [1.0, 1.0])
        shifted = make_box_cell([0.5, -1.0], [2.0, 0.5])

        result = self.remover.remove(square, shifted)

        self.assertEqual(len(result.half_spaces), 4)
        self.assertEqual(result.num_vertices, 4)
        centroid, area = integrate_polytope(result.vertices)
        self.assertAlmostEqual(area, 0.25)
        np.testing.assert_allclose(centroid, [0.75, 0.25])

    def test_redundant_half_spaces_removed(self):
        """離れた半空間・頂点だけで接する半空間は除去"""
        cube = make_box_cell([0.0, 0.0, 0.0], [1.0, 1.0, 1.0])
        extra = Cell()
        # x <= 5（交差に触れない）
        extra.add_edge(Edge(normal=np.array([-1.0, 0.0, 0.0]), c=-5.0, source=0))
        # x + y + z <= 3（頂点 (1,1,1) でのみ接する）
        normal = -np.ones(3) / np.sqrt(3.0)
        extra.add_edge(Edge(normal=normal, c=-3.0 / np.sqrt(3.0), source=0))

        result = self.remover.remove(cube, extra)

        self.assertEqual(len(result.first_edges), 6)
        self.assertEqual(result.second_edges, [])
        self.assertEqual(result.num_vertices, 8)

    def test_disjoint_cells(self):
        """交差しないセルは空の結果"""
        first = make_box_cell([0.0, 0.0], [1.0, 1.0])
        second = make_box_cell([2.0, 2.0], [3.0, 3.0])

        result = self.remover.remove(first, second)

        self.assertTrue(result.is_empty)
        self.assertEqual(result.num_vertices, 0)
        self.assertEqual(result.vertices.shape, (0, 2))
        self.assertEqual(self.remover.get_performance_stats()['empty_results'], 1)

    def test_epsilon_is_configurable(self):
        """許容誤差を広げると境界付近の交点を採用する"""
        first = make_box_cell([0.0, 0.0], [1.0, 1.0])
        second = make_box_cell([1.001, 0.0], [2.0, 1.0])

        strict = HalfSpaceRemover(GeometryConfig(epsilon=1e-7)).remove(first, second)
        loose = HalfSpaceRemover(GeometryConfig(epsilon=1e-2)).remove(first, second)

        self.assertEqual(strict.num_vertices, 0)
        self.assertGreater(loose.num_vertices, 0)

    def test_stats(self):
        """統計の更新とリセット"""
        cube = make_box_cell([0.0, 0.0, 0.0], [1.0, 1.0, 1.0])
        self.remover.remove(cube, cube)
        stats = self.remover.get_performance_stats()

        self.assertEqual(stats['total_calls'], 1)
        # C(12, 3)
        self.assertEqual(stats['total_combinations'], 220)
        self.assertGreater(stats['accepted_points'], 0)

        self.remover.reset_stats()
        self.assertEqual(self.remover.get_performance_stats()['total_calls'], 0)

    def test_cells_without_half_spaces(self):
        """半空間を持たないセル同士は不正入力"""
        with self.assertRaises(InvalidInputError):
            self.remover.remove(Cell(), Cell())

    def test_chunked_matches_single_batch(self):
        """組合せを小分けにしても結果は同じ"""
        cube = make_box_cell([0.0, 0.0, 0.0], [1.0, 1.0, 1.0])
        shifted = make_box_cell([0.5, 0.5, 0.5], [1.5, 1.5, 1.5])

        small = HalfSpaceRemover(chunk_size=7)
        chunked = small.remove(cube, shifted)
        whole = self.remover.remove(cube, shifted)

        self.assertEqual(len(chunked.first_edges), len(whole.first_edges))
        self.assertEqual(len(chunked.second_edges), len(whole.second_edges))
        self.assertEqual(
            {tuple(np.round(vertex, 9)) for vertex in chunked.vertices},
            {tuple(np.round(vertex, 9)) for vertex in whole.vertices}
        )
        # C(12, 3) 組を 7 組ずつ
        self.assertEqual(small.get_performance_stats()['total_combinations'], 220)

        with self.assertRaises(ValueError):
            HalfSpaceRemover(chunk_size=0)

    def test_memory_bounded_for_many_half_spaces(self):
        """半空間数が多くても作業メモリは組合せ数に比例しない"""
        rng = np.random.default_rng(1)

        def sphere_cell(count):
            # 単位球に外接する多面体
            directions = rng.normal(size=(count, 3))
            directions /= np.linalg.norm(directions, axis=1)[:, np.newaxis]
            cell = Cell()
            for direction in directions:
                cell.add_edge(Edge(normal=-direction, c=-1.0, source=0))
            return cell

        first, second = sphere_cell(60), sphere_cell(60)

        tracemalloc.start()
        try:
            result = self.remover.remove(first, second)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        # C(120, 3) = 280840 組。一括処理では数百MBになる
        self.assertLess(peak, 64 * 1024 * 1024)
        self.assertGreater(result.num_vertices, 0)
        self.assertEqual(self.remover.get_performance_stats()['total_combinations'], 280840)


class TestPolytopeIntegration(unittest.TestCase):
    """重心・体積積分テスト"""

    def test_single_simplex(self):
        """頂点数 d+1 は単体として直接計算"""
        centroid, area = integrate_polytope(np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]))
        self.assertAlmostEqual(area, 0.5)
        np.testing.assert_allclose(centroid, [1.0 / 3.0, 1.0 / 3.0])

        centroid, volume = integrate_polytope(np.array([
            [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]
        ]))
        self.assertAlmostEqual(volume, 1.0 / 6.0)
        np.testing.assert_allclose(centroid, [0.25, 0.25, 0.25])

    def test_square_and_cube(self):
        """Delaunay分割による積分"""
        centroid, area = integrate_polytope(np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 1.0], [0.0, 1.0]]))
        self.assertAlmostEqual(area, 2.0)
        np.testing.assert_allclose(centroid, [1.0, 0.5])

        centroid, volume = integrate_polytope(CUBE_VERTICES)
        self.assertAlmostEqual(volume, 1.0)
        np.testing.assert_allclose(centroid, [0.5, 0.5, 0.5])

    def test_weighted_centroid(self):
        """L字型ではなく台形の体積加重重心"""
        # 台形 (0,0),(2,0),(1,1),(0,1): 面積1.5
        centroid, area = integrate_polytope(np.array([[0.0, 0.0], [2.0, 0.0], [1.0, 1.0], [0.0, 1.0]]))
        self.assertAlmostEqual(area, 1.5)
        # 正方形(面積1, 重心(0.5,0.5)) + 三角形(面積0.5, 重心(4/3,1/3))
        expected = (np.array([0.5, 0.5]) * 1.0 + np.array([4.0 / 3.0, 1.0 / 3.0]) * 0.5) / 1.5
        np.testing.assert_allclose(centroid, expected)

    def test_degenerate_polytopes(self):
        """頂点不足・体積ゼロ"""
        with self.assertRaises(DegenerateGeometryError):
            integrate_polytope(np.array([[0.0, 0.0], [1.0, 0.0]]))
        with self.assertRaises(DegenerateGeometryError):
            integrate_polytope(np.empty((0, 3)))
        with self.assertRaises(DegenerateGeometryError):
            integrate_polytope(np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]]))
        with self.assertRaises(DegenerateGeometryError):
            integrate_polytope(np.array([
                [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0], [0.5, 0.2, 0.0]
            ]))


class TestVolumeIntersector:
    """交差エンジンテスト"""

    def test_triangle_example(self, triangle_example, assert_helper):
        """単一三角形: 面積の合計0.5、全セルの TriangleIndex=0"""
        vertices, simplices, generators = triangle_example

        volume = intersect_volumes(vertices, simplices, generators)

        assert volume.dimension == 2
        assert volume.num_cells == 3
        assert all(cell.triangle_index == 0 for cell in volume.cells)
        assert_helper.assert_within_tolerance(volume.total_weight(), 0.5, 1e-9, "面積合計")

        areas = {cell.voronoi_index: cell.weight for cell in volume.cells}
        assert set(areas) == {0, 1, 3}
        assert areas[1] == pytest.approx(0.25)
        assert areas[0] == pytest.approx(0.125)
        assert areas[3] == pytest.approx(0.125)

        # 種は三角形の重心を含む原点の母点セル
        assert volume.cells[0].voronoi_index == 1
        np.testing.assert_allclose(volume.cells[0].centroid, [0.25, 0.25])

        np.testing.assert_array_equal(volume.bounding_box.min_point, [0.0, 0.0])
        np.testing.assert_array_equal(volume.bounding_box.max_point, [1.0, 1.0])

    def test_tetrahedron_example(self, tetrahedron_example, assert_helper):
        """単一四面体: 体積の合計1/6"""
        vertices, simplices, generators = tetrahedron_example

        volume = intersect_volumes(vertices, simplices, generators)

        assert volume.dimension == 3
        assert all(cell.triangle_index == 0 for cell in volume.cells)
        assert_helper.assert_within_tolerance(volume.total_weight(), 1.0 / 6.0, 1e-9, "体積合計")

        volumes = {cell.voronoi_index: cell.weight for cell in volume.cells}
        assert set(volumes) == {0, 1, 3, 5}
        assert volumes[1] == pytest.approx(5.0 / 48.0)
        for index in (0, 3, 5):
            assert volumes[index] == pytest.approx(1.0 / 48.0)

    def test_output_edges_are_linked(self, triangle_example, tetrahedron_example, assert_helper):
        """出力セル同士の隣接リンクは相互"""
        for example in (triangle_example, tetrahedron_example):
            volume = intersect_volumes(*example)
            assert_helper.assert_reciprocal_edges(volume)
            assert any(edge.target is not None for cell in volume.cells for edge in cell.edges)

    def test_unlinked_output(self, triangle_example):
        """リンク無効時は全て境界"""
        config = PolyIntersectConfig()
        config.traversal.link_result_neighbors = False

        volume = intersect_volumes(*triangle_example, config=config)

        assert all(edge.target is None for cell in volume.cells for edge in cell.edges)

    def test_tetrahedralized_cube_covers_volume(self, assert_helper):
        """複数単体・複数母点でも体積を漏れなく重複なく分割"""
        rng = np.random.default_rng(42)
        generators = rng.uniform(-0.2, 1.2, size=(15, 3))

        volume = intersect_volumes(CUBE_VERTICES, CUBE_SIMPLICES, generators)

        assert_helper.assert_within_tolerance(volume.total_weight(), 1.0, 1e-8, "体積合計")
        pairs = [(cell.triangle_index, cell.voronoi_index) for cell in volume.cells]
        assert len(pairs) == len(set(pairs))

        # 各三角形セル内の重みの合計は単体の体積
        for triangle_index in range(len(CUBE_SIMPLICES)):
            weight = sum(cell.weight for cell in volume.cells if cell.triangle_index == triangle_index)
            assert weight == pytest.approx(1.0 / 6.0, abs=1e-8)

        # 交差セルの重心は元の両セルに含まれる
        triangulation = build_triangulation_complex(CUBE_VERTICES, CUBE_SIMPLICES)
        for cell in volume.cells:
            assert triangulation.cells[cell.triangle_index].contains(cell.centroid)
            nearest = int(np.argmin(np.linalg.norm(generators - cell.centroid, axis=1)))
            assert np.linalg.norm(generators[nearest] - cell.centroid) == pytest.approx(
                np.linalg.norm(generators[cell.voronoi_index] - cell.centroid), abs=1e-9
            )

    def test_deterministic(self, tetrahedron_example):
        """同じ入力で同じ結果"""
        intersector = VolumeIntersector()
        first = intersector.intersect(*tetrahedron_example)
        second = intersector.intersect(*tetrahedron_example)

        assert first.num_cells == second.num_cells
        for a, b in zip(first.cells, second.cells):
            assert (a.triangle_index, a.voronoi_index) == (b.triangle_index, b.voronoi_index)
            assert a.weight == pytest.approx(b.weight)
        assert intersector.get_performance_stats()['total_runs'] == 2

    def test_parallel_matches_sequential(self):
        """並列走査の結果は逐次走査と一致"""
        rng = np.random.default_rng(5)
        generators = rng.uniform(-0.2, 1.2, size=(12, 3))

        sequential = intersect_volumes(CUBE_VERTICES, CUBE_SIMPLICES, generators)

        config = PolyIntersectConfig()
        config.traversal.max_workers = 4
        parallel = intersect_volumes(CUBE_VERTICES, CUBE_SIMPLICES, generators, config=config)

        assert parallel.num_cells == sequential.num_cells
        for a, b in zip(sorted_rows(parallel), sorted_rows(sequential)):
            assert a[:2] == b[:2]
            assert a[2] == pytest.approx(b[2])

        # 並列時はインデックス順
        keys = [(cell.triangle_index, cell.voronoi_index) for cell in parallel.cells]
        assert keys == sorted(keys)

    def test_parallel_with_many_generators(self, assert_helper):
        """多数の母点を多スレッドで共有しても例外なく体積を保存"""
        rng = np.random.default_rng(17)
        for _ in range(3):
            generators = rng.uniform(-0.1, 1.1, size=(200, 3))
            config = PolyIntersectConfig()
            config.traversal.max_workers = 8

            volume = intersect_volumes(CUBE_VERTICES, CUBE_SIMPLICES, generators, config=config)

            assert_helper.assert_within_tolerance(volume.total_weight(), 1.0, 1e-8, "体積合計")

    def test_zero_volume_simplices_skipped(self, assert_helper):
        """潰れた単体を含む分割でも計算を続行"""
        # 底辺の中点 4 を持つ正方形。単体1は底辺上の潰れた三角形
        vertices = np.array([[0, 0], [1, 0], [1, 1], [0, 1], [0.5, 0]], dtype=float)
        simplices = np.array([[0, 4, 3], [0, 4, 1], [4, 1, 2], [4, 2, 3]])
        generators = np.random.default_rng(8).uniform(-0.2, 1.2, size=(10, 2))

        volume = intersect_volumes(vertices, simplices, generators)

        assert_helper.assert_within_tolerance(volume.total_weight(), 1.0, 1e-9, "面積合計")
        weights = {}
        for cell in volume.cells:
            weights[cell.triangle_index] = weights.get(cell.triangle_index, 0.0) + cell.weight
        assert set(weights) == {0, 2, 3}
        assert weights[0] == pytest.approx(0.25)
        assert weights[2] == pytest.approx(0.25)
        assert weights[3] == pytest.approx(0.5)

    def test_grid_delaunay_with_flat_simplices(self, assert_helper):
        """格子点のDelaunay分割（潰れた四面体を含みうる）"""
        axis = np.linspace(0.0, 1.0, 4)
        grid = np.array([[x, y, z] for x in axis for y in axis for z in axis])
        simplices = Delaunay(grid).simplices
        generators = np.random.default_rng(23).uniform(-0.1, 1.1, size=(30, 3))

        volume = intersect_volumes(grid, simplices, generators)

        assert_helper.assert_within_tolerance(volume.total_weight(), 1.0, 1e-8, "体積合計")

    def test_small_scale_input(self, triangle_example):
        """座標の単位が小さくても交差セルを落とさない"""
        vertices, simplices, generators = triangle_example
        scale = 1e-7
        config = PolyIntersectConfig()
        config.geometry.epsilon = 1e-15

        volume = intersect_volumes(vertices * scale, simplices, generators * scale, config=config)

        assert volume.num_cells == 3
        assert volume.total_weight() == pytest.approx(0.5 * scale ** 2, rel=1e-9)

    def test_custom_generator_indices(self, triangle_example):
        """VoronoiIndex の置換が出力に反映される"""
        vertices, simplices, generators = triangle_example

        volume = intersect_volumes(vertices, simplices, generators, generator_indices=[4, 3, 2, 1, 0])

        areas = {cell.voronoi_index: cell.weight for cell in volume.cells}
        # 原点の母点は VoronoiIndex=3
        assert areas[3] == pytest.approx(0.25)
        assert sum(areas.values()) == pytest.approx(0.5)

    def test_degenerate_pairs_are_skipped(self):
        """面積ゼロのセル対は警告してスキップし、走査は続行"""
        vertices = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
        simplices = np.array([[0, 1, 3], [1, 2, 3]])
        # (0,0)-(1,1) の二等分線が三角形の共有辺と一致
        generators = np.array([[0.0, 0.0], [1.0, 1.0], [3.0, -2.0], [-2.0, 3.0]])

        intersector = VolumeIntersector()
        volume = intersector.intersect(vertices, simplices, generators)

        assert volume.num_cells == 2
        assert sorted_rows(volume) == [(0, 0, pytest.approx(0.5)), (1, 1, pytest.approx(0.5))]
        assert intersector.get_performance_stats()['degenerate_pairs'] == 2

    def test_missing_containment(self):
        """重心を含むVoronoiセルがない種はスキップ"""
        triangulation = build_triangulation_complex([[0, 0], [1, 0], [0, 1]], [[0, 1, 2]])
        far_cell = Cell(centroid=np.array([6.0, 0.0]), voronoi_index=0)
        far_cell.add_edge(Edge(normal=np.array([1.0, 0.0]), c=5.0, source=0))
        voronoi = VolumeData(dimension=2, cells=[far_cell],
                             bounding_box=BoundingBox(np.array([6.0, 0.0]), np.array([6.0, 0.0])))

        intersector = VolumeIntersector()
        with pytest.raises(MissingContainmentError):
            intersector.locate_seed(triangulation.cells[0], voronoi)

        volume = intersector.intersect_complexes(triangulation, voronoi)

        assert volume.num_cells == 0
        assert intersector.get_performance_stats()['missing_seeds'] == 1

    def test_half_space_guard(self, triangle_example):
        """半空間数の上限を超えるセル対はスキップ"""
        config = PolyIntersectConfig()
        config.traversal.max_half_spaces_per_pair = 4

        intersector = VolumeIntersector(config)
        volume = intersector.intersect(*triangle_example)

        assert volume.num_cells == 0
        assert intersector.get_performance_stats()['oversized_pairs'] == 1

    def test_dimension_mismatch(self, triangle_example):
        """次元の不一致は計算前に拒否"""
        vertices, simplices, _ = triangle_example
        with pytest.raises(InvalidInputError):
            intersect_volumes(vertices, simplices, np.eye(4, 3))

    def test_ragged_input_rejected(self, tetrahedron_example):
        """一部の行だけ次元が異なる入力"""
        vertices, simplices, generators = tetrahedron_example
        ragged = [list(row) for row in generators] + [[0.5, 0.5]]
        with pytest.raises(InvalidInputError):
            intersect_volumes(vertices, simplices, ragged)
