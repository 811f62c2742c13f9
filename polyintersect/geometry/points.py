from __future__ import annotations

"""Point helpers.

Small helpers shared by the builders, the half-space remover and the
slicer without introducing import cycles.
"""

import math
from typing import Iterator, List, Sequence, Union
import numpy as np

from ..constants import GEOMETRY_EPSILON, SUPPORTED_DIMENSIONS
from ..errors import InvalidInputError


ArrayLike = Union[np.ndarray, Sequence[Sequence[float]]]


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def as_point_array(points: ArrayLike, name: str = "points") -> np.ndarray:
    """Convert *points* to a float64 ``(N, d)`` array.

    Every row is checked, so ragged input (mixed 2D/3D rows) is rejected
    instead of being silently sampled.
    """
    if isinstance(points, np.ndarray):
        array = points
    else:
        rows = list(points)
        try:
            lengths = {len(row) for row in rows}
        except TypeError as e:
            raise InvalidInputError(f"{name} must be a sequence of coordinate rows: {e}") from e
        if len(lengths) > 1:
            raise InvalidInputError(f"{name} contain rows of different dimensions: {sorted(lengths)}")
        array = np.asarray(rows, dtype=np.float64)

    if array.ndim != 2:
        raise InvalidInputError(f"{name} must be a 2D array of shape (N, d), got shape {array.shape}")
    if not np.issubdtype(array.dtype, np.number):
        raise InvalidInputError(f"{name} must be numeric, got dtype {array.dtype}")

    array = array.astype(np.float64, copy=False)
    if not np.all(np.isfinite(array)):
        raise InvalidInputError(f"{name} contain non-finite coordinates")
    return array


def validate_dimension(points: np.ndarray, name: str = "points") -> int:
    """Return the coordinate dimension of *points* (2 or 3)."""
    dimension = points.shape[1]
    if dimension not in SUPPORTED_DIMENSIONS:
        raise InvalidInputError(
            f"{name} have dimension {dimension}, supported dimensions are {SUPPORTED_DIMENSIONS}"
        )
    return dimension


# ---------------------------------------------------------------------------
# Tolerant point set
# ---------------------------------------------------------------------------

class PointSet:
    """Insertion-ordered set of points compared with a per-coordinate tolerance.

    Two points are the same when every coordinate differs by at most *eps*.
    Sets built by the half-space remover hold a handful of points, so a
    linear scan is enough.
    """

    def __init__(self, dimension: int, eps: float = GEOMETRY_EPSILON) -> None:
        self._dimension = dimension
        self._eps = eps
        self._points: List[np.ndarray] = []

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self._points)

    def __contains__(self, point: np.ndarray) -> bool:
        return self.index_of(point) >= 0

    def index_of(self, point: np.ndarray) -> int:
        """Return the index of the matching point or -1."""
        for index, existing in enumerate(self._points):
            if np.all(np.abs(existing - point) <= self._eps):
                return index
        return -1

    def add(self, point: np.ndarray) -> bool:
        """Add *point*; return True when it was not present yet."""
        if self.index_of(point) >= 0:
            return False
        self._points.append(np.asarray(point, dtype=np.float64))
        return True

    def to_array(self) -> np.ndarray:
        """Return the points as an ``(n, d)`` array."""
        if not self._points:
            return np.empty((0, self._dimension), dtype=np.float64)
        return np.vstack(self._points)


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------

def remap(value: float, low1: float, high1: float, low2: float, high2: float) -> float:
    """Map *value* from ``[low1, high1]`` to ``[low2, high2]``."""
    return low2 + (value - low1) * (high2 - low2) / (high1 - low1)


def simplex_volume(points: np.ndarray) -> float:
    """Unsigned volume ``|det(v1 - v0, ..., vd - v0)| / d!`` of one simplex."""
    edges = np.asarray(points, dtype=np.float64)
    edges = edges[1:] - edges[0]
    return abs(float(np.linalg.det(edges))) / math.factorial(len(edges))


def volume_threshold(extent: np.ndarray, tolerance: float) -> float:
    """Scale a relative volume *tolerance* by ``max(extent) ** d``.

    A volume at or below the result counts as zero, independent of the
    unit the coordinates are given in.
    """
    extent = np.asarray(extent, dtype=np.float64)
    if extent.size == 0:
        return 0.0
    return tolerance * float(np.max(extent)) ** len(extent)
