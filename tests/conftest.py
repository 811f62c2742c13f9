#!/usr/bin/env python3
"""
pytest共通設定とフィクスチャ

テスト実行時の共通設定、サンプル入力、アサーション拡張を提供します。
"""

import pytest
import logging
import sys
import os
import tempfile
import shutil
import numpy as np
from typing import Generator

# パッケージのパス追加
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from polyintersect import setup_logging, get_logger
from polyintersect.config import reset_config

# =============================================================================
# テストロギング設定
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """テスト全体のロギング設定"""
    setup_logging(level="DEBUG")
    logger = get_logger("test")
    logger.info("=== テストセッション開始 ===")
    yield
    logger.info("=== テストセッション終了 ===")


@pytest.fixture
def test_logger() -> logging.Logger:
    """テスト用ロガー"""
    return get_logger("test")


@pytest.fixture(autouse=True)
def isolated_config():
    """グローバル設定をテストごとに破棄"""
    reset_config()
    yield
    reset_config()


# =============================================================================
# テストデータフィクスチャ
# =============================================================================

@pytest.fixture
def triangle_example():
    """単一三角形と5母点（交差面積の合計は0.5）"""
    vertices = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
    simplices = np.array([[0, 1, 2]])
    generators = np.array([[1.0, 0.0], [0.0, 0.0], [-1.0, 0.0], [0.0, 1.0], [0.0, -1.0]])
    return vertices, simplices, generators


@pytest.fixture
def tetrahedron_example():
    """単一四面体と軸上6母点+原点（交差体積の合計は1/6）"""
    vertices = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
    simplices = np.array([[0, 1, 2, 3]])
    generators = np.array([
        [1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [-1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0], [0.0, -1.0, 0.0],
        [0.0, 0.0, 1.0], [0.0, 0.0, -1.0]
    ])
    return vertices, simplices, generators


@pytest.fixture
def temp_directory() -> Generator[str, None, None]:
    """一時ディレクトリ"""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


def pytest_configure(config):
    """pytest設定時に実行"""
    config.addinivalue_line(
        "markers", "unit_slow: 実行時間が長いユニットテスト"
    )


# =============================================================================
# アサーション拡張
# =============================================================================

class GeometryAssertions:
    """拡張アサーション関数"""

    @staticmethod
    def assert_within_tolerance(actual: float, expected: float, tolerance: float, description: str = "値"):
        """許容誤差内アサーション"""
        diff = abs(actual - expected)
        assert diff <= tolerance, (
            f"{description}が許容誤差を超過: |{actual} - {expected}| = {diff} > {tolerance}"
        )

    @staticmethod
    def assert_reciprocal_edges(volume, tolerance: float = 1e-9):
        """隣接リンクを持つ半空間には逆向きの半空間が存在する"""
        for index, cell in enumerate(volume.cells):
            for edge in cell.edges:
                assert edge.source == index, f"セル{index}の半空間のsourceが不一致: {edge.source}"
                if edge.target is None:
                    continue
                reverse = volume.cells[edge.target].find_edge_to(index)
                assert reverse is not None, f"セル{edge.target}にセル{index}への半空間がない"
                assert np.allclose(reverse.normal, -edge.normal, atol=tolerance)
                assert abs(reverse.c + edge.c) <= tolerance


@pytest.fixture
def assert_helper():
    """アサーション拡張のヘルパー"""
    return GeometryAssertions()
