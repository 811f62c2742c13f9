#!/usr/bin/env python3
"""
例外定義

入力エラー（致命的）と幾何的な退化（局所的に回復可能）を区別します。
"""


class PolyIntersectError(Exception):
    """パッケージ共通の基底例外"""


class InputFormatError(PolyIntersectError):
    """入力テキストの書式が不正"""


class InvalidInputError(PolyIntersectError):
    """頂点・単体・生成点の不足、次元の不一致、インデックス範囲外"""


class DegenerateGeometryError(PolyIntersectError):
    """体積ゼロ、三平面が一点で交わらない、Delaunay失敗など"""


class DegenerateInputError(DegenerateGeometryError):
    """構築時に検出した入力点群自体の退化（共線・共面・重複）"""


class MissingContainmentError(PolyIntersectError):
    """三角形セルの重心を含むVoronoiセルが見つからない"""


class ConfigError(PolyIntersectError, ValueError):
    """設定値が不正"""
