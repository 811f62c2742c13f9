"""
PolyIntersect 幾何プリミティブ

半空間・凸セル・セル複体と、許容誤差付きの点集合を提供します。
"""

from .types import (
    Edge,
    Cell,
    BoundingBox,
    VolumeData
)

from .points import (
    ArrayLike,
    PointSet,
    as_point_array,
    validate_dimension,
    simplex_volume,
    volume_threshold,
    remap
)

__all__ = [
    'Edge',
    'Cell',
    'BoundingBox',
    'VolumeData',

    'ArrayLike',
    'PointSet',
    'as_point_array',
    'validate_dimension',
    'simplex_volume',
    'volume_threshold',
    'remap'
]
