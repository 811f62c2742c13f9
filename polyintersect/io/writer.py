#!/usr/bin/env python3
"""
セル複体の区切りテキスト出力

書式（2Dでは z 成分なし）:
    # centroid.X,centroid.Y,centroid.Z,triangleIndex,voronoiIndex,weight,visited,edgeIndices
    セルごとに1行（末尾に半空間表の行番号を列挙）
    # normal.x,normal.y,normal.z,c,sourceIndex,targetIndex
    半空間ごとに1行（参照先が無ければ -1）

数値は往復可能な最短表現です。整数値は小数点を付けず、指数は大文字（1E-05, 1E+20）。
"""

from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from .. import get_logger
from ..constants import DEFAULT_SEPARATOR, NO_INDEX
from ..geometry import Edge, VolumeData

logger = get_logger(__name__)

_AXIS_NAMES = ("X", "Y", "Z")


def _format_number(value: float) -> str:
    """最短表現で数値を文字列化（整数値は小数点なし、指数は 1E-05 の形）"""
    text = repr(float(value))
    if text.endswith(".0"):
        return text[:-2]
    return text.replace("e", "E")


class VolumeDataWriter:
    """セル複体をテキストファイルに書き出す"""

    def __init__(self, separator: str = DEFAULT_SEPARATOR):
        """
        初期化

        Args:
            separator: 値の区切り文字
        """
        if len(separator) != 1:
            raise ValueError(f"separator must be a single character, got {separator!r}")
        self.separator = separator

    def format(self, volume: VolumeData) -> str:
        """
        セル複体を書式化

        Args:
            volume: 出力するセル複体

        Returns:
            ファイル内容の文字列（末尾改行付き）
        """
        sep = self.separator
        axes = _AXIS_NAMES[:volume.dimension]
        num_cells = volume.num_cells

        lines = [
            "# " + sep.join([f"centroid.{axis}" for axis in axes] + [
                "triangleIndex", "voronoiIndex", "weight", "visited", "edgeIndices"
            ])
        ]

        edge_table: List[Edge] = []
        for cell in volume.cells:
            centroid = cell.centroid if cell.centroid is not None else np.full(volume.dimension, np.nan)
            fields = [_format_number(value) for value in centroid]
            fields += [
                str(cell.triangle_index),
                str(cell.voronoi_index),
                _format_number(cell.weight),
                str(bool(cell.visited)),
            ]
            for edge in cell.edges:
                fields.append(str(len(edge_table)))
                edge_table.append(edge)
            lines.append(sep.join(fields))

        lines.append(
            "# " + sep.join([f"normal.{axis.lower()}" for axis in axes] + [
                "c", "sourceIndex", "targetIndex"
            ])
        )

        for edge in edge_table:
            fields = [_format_number(value) for value in edge.normal]
            fields += [
                _format_number(edge.c),
                str(self._row_index(edge.source, num_cells)),
                str(self._row_index(edge.target, num_cells)),
            ]
            lines.append(sep.join(fields))

        return "\n".join(lines) + "\n"

    def write(self, path: Union[str, Path], volume: VolumeData) -> Path:
        """
        セル複体をファイルに書き出し

        Args:
            path: 出力ファイルパス
            volume: 出力するセル複体

        Returns:
            書き出したファイルパス
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', encoding='utf-8', newline='\n') as f:
            f.write(self.format(volume))

        logger.info(f"Volume data written to {path}: {volume.num_cells} cells, {volume.edge_count()} edges")
        return path

    @staticmethod
    def _row_index(index: Optional[int], num_cells: int) -> int:
        """セル表の行番号（範囲外・無しは -1）"""
        if index is None or not 0 <= index < num_cells:
            return NO_INDEX
        return index
