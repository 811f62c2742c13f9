"""
セル複体ビルダー

三角形分割（四面体分割）と母点集合のそれぞれから
半空間表現のセル複体（VolumeData）を構築します。
"""

from .triangulation import build_triangulation_complex
from .voronoi import build_voronoi_complex

__all__ = [
    'build_triangulation_complex',
    'build_voronoi_complex',
]
