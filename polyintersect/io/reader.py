#!/usr/bin/env python3
"""
テキスト入力の読み込み

三角形分割ファイル:
    頂点数
    x y [z]         （頂点数だけ繰り返し）
    単体数
    i0 i1 i2 [i3]   （単体数だけ繰り返し）

母点ファイル:
    x y [z]         （1行1点、行順が VoronoiIndex。空行は無視）

値は空白区切りです。書式エラーは行番号付きの InputFormatError になります。
"""

from pathlib import Path
from typing import Iterator, List, Tuple, Union

import numpy as np

from .. import get_logger
from ..constants import SUPPORTED_DIMENSIONS
from ..errors import InputFormatError, InvalidInputError

logger = get_logger(__name__)

PathLike = Union[str, Path]


class _LineSource:
    """行番号付きで行を順に取り出す"""

    def __init__(self, path: Path, lines: List[str]):
        self.path = path
        self._lines = lines
        self.line_number = 0

    def next_line(self, what: str) -> str:
        """次の行を取得（ファイル末尾ならエラー）"""
        if self.line_number >= len(self._lines):
            raise InputFormatError(
                f"{self.path}: unexpected end of file at line {self.line_number + 1}, expected {what}"
            )
        line = self._lines[self.line_number]
        self.line_number += 1
        return line

    def error(self, message: str) -> InputFormatError:
        """現在行のエラーを作成"""
        return InputFormatError(f"{self.path}:{self.line_number}: {message}")


def _read_lines(path: PathLike) -> Tuple[Path, List[str]]:
    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        return path, f.read().splitlines()


def _parse_count(source: _LineSource, what: str) -> int:
    text = source.next_line(what).strip()
    try:
        count = int(text)
    except ValueError:
        raise source.error(f"expected {what}, got {text!r}") from None
    if count < 0:
        raise source.error(f"{what} must be non-negative, got {count}")
    return count


def _parse_floats(source: _LineSource, line: str, dimension: int) -> List[float]:
    values = line.split()
    if len(values) != dimension:
        raise source.error(f"expected {dimension} coordinates, got {len(values)}")
    try:
        return [float(value) for value in values]
    except ValueError:
        raise source.error(f"invalid coordinate in {line.strip()!r}") from None


def _parse_ints(source: _LineSource, line: str, count: int) -> List[int]:
    values = line.split()
    if len(values) != count:
        raise source.error(f"expected {count} indices, got {len(values)}")
    try:
        return [int(value) for value in values]
    except ValueError:
        raise source.error(f"invalid index in {line.strip()!r}") from None


def _check_dimension(dimension: int) -> None:
    if dimension not in SUPPORTED_DIMENSIONS:
        raise InvalidInputError(f"Unsupported dimension {dimension}, expected one of {SUPPORTED_DIMENSIONS}")


def read_triangulation(
    path: PathLike,
    dimension: int = 3,
    index_base: int = 0
) -> Tuple[np.ndarray, np.ndarray]:
    """
    三角形分割ファイルを読み込み

    Args:
        path: ファイルパス
        dimension: 座標の次元（2 または 3）
        index_base: 単体インデックスの基数（1なら1始まり）

    Returns:
        (頂点 (N, d), 単体 (M, d+1))
    """
    _check_dimension(dimension)
    path, lines = _read_lines(path)
    source = _LineSource(path, lines)

    num_vertices = _parse_count(source, "vertex count")
    vertices = np.empty((num_vertices, dimension), dtype=np.float64)
    for i in range(num_vertices):
        vertices[i] = _parse_floats(source, source.next_line("vertex"), dimension)

    num_simplices = _parse_count(source, "simplex count")
    simplices = np.empty((num_simplices, dimension + 1), dtype=np.int64)
    for i in range(num_simplices):
        indices = _parse_ints(source, source.next_line("simplex"), dimension + 1)
        simplices[i] = [index - index_base for index in indices]

    logger.debug(f"Read triangulation {path}: {num_vertices} vertices, {num_simplices} simplices")
    return vertices, simplices


def _iter_point_lines(source: _LineSource, num_lines: int) -> Iterator[str]:
    while source.line_number < num_lines:
        line = source.next_line("point")
        if line.strip():
            yield line


def read_generators(path: PathLike, dimension: int = 3) -> np.ndarray:
    """
    母点ファイルを読み込み

    Args:
        path: ファイルパス
        dimension: 座標の次元（2 または 3）

    Returns:
        母点 (K, d)。行順が VoronoiIndex
    """
    _check_dimension(dimension)
    path, lines = _read_lines(path)
    source = _LineSource(path, lines)

    points = [
        _parse_floats(source, line, dimension)
        for line in _iter_point_lines(source, len(lines))
    ]

    logger.debug(f"Read generators {path}: {len(points)} points")
    return np.array(points, dtype=np.float64).reshape(-1, dimension)
