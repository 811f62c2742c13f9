"""
PolyIntersect 入出力

テキスト形式の三角形分割・母点の読み込み、
セル複体の区切りテキスト出力、断面画像化を提供します。
"""

from .reader import read_triangulation, read_generators
from .writer import VolumeDataWriter
from .slicer import VolumeSlicer

__all__ = [
    'read_triangulation',
    'read_generators',
    'VolumeDataWriter',
    'VolumeSlicer'
]
