"""
PolyIntersect 交差計算

半空間の冗長除去、凸多面体の積分、
BFSによるセル対の交差エンジンを提供します。
"""

from .halfspace import (
    HalfSpaceRemover,
    RemovalResult
)

from .integrator import integrate_polytope

from .engine import (
    VolumeIntersector,
    intersect_volumes
)

__all__ = [
    # 冗長除去
    'HalfSpaceRemover',
    'RemovalResult',

    # 積分
    'integrate_polytope',

    # 交差エンジン
    'VolumeIntersector',
    'intersect_volumes'
]
