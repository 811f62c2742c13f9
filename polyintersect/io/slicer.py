#!/usr/bin/env python3
"""
セル複体の断面画像化

軸に垂直な平面でセル複体を切り、各画素を含む最初のセルの色で
塗った画像を生成します。どのセルにも含まれない画素は黒のままです。
画像の保存には OpenCV を使用します。
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from .. import get_logger
from ..constants import (
    GEOMETRY_EPSILON,
    DEFAULT_SLICE_WIDTH,
    DEFAULT_SLICE_HEIGHT,
    DEFAULT_SLICE_SEED,
)
from ..errors import InvalidInputError
from ..geometry import BoundingBox, VolumeData, remap

logger = get_logger(__name__)


class VolumeSlicer:
    """セル複体の断面を画像化"""

    def __init__(self, seed: int = DEFAULT_SLICE_SEED, epsilon: float = GEOMETRY_EPSILON):
        """
        初期化

        Args:
            seed: セル色の乱数シード
            epsilon: 包含判定の許容誤差
        """
        self.seed = seed
        self.epsilon = epsilon

    def cell_colors(self, num_cells: int) -> np.ndarray:
        """セルごとのランダム色 (n, 3) uint8"""
        rng = np.random.default_rng(self.seed)
        return rng.integers(0, 256, size=(num_cells, 3), dtype=np.uint8)

    def slice(
        self,
        volume: VolumeData,
        axis: int = 2,
        value: float = 0.0,
        width: int = DEFAULT_SLICE_WIDTH,
        height: int = DEFAULT_SLICE_HEIGHT,
        bounding_box: Optional[BoundingBox] = None
    ) -> np.ndarray:
        """
        断面画像を生成

        Args:
            volume: セル複体
            axis: 切断軸（3Dのみ、0=x, 1=y, 2=z）
            value: 切断位置
            width: 画像幅
            height: 画像高さ
            bounding_box: 描画範囲（Noneならセル複体のもの）

        Returns:
            (height, width, 3) uint8 画像
        """
        if width < 1 or height < 1:
            raise InvalidInputError(f"Image size must be positive, got {width}x{height}")

        bounding_box = bounding_box or volume.bounding_box
        if bounding_box is None:
            raise InvalidInputError("Volume has no bounding box; pass one explicitly")

        row_axis, column_axis = self._image_axes(volume.dimension, axis)
        min_bound, max_bound = bounding_box.min_point, bounding_box.max_point

        # 行は最大値から最小値へ、列は最小値から最大値へ
        rows = np.array([
            remap(i, 0, height, max_bound[row_axis], min_bound[row_axis]) for i in range(height)
        ])
        columns = np.array([
            remap(j, 0, width, min_bound[column_axis], max_bound[column_axis]) for j in range(width)
        ])

        points = np.empty((height, width, volume.dimension), dtype=np.float64)
        if volume.dimension == 3:
            points[..., axis] = value
        points[..., row_axis] = rows[:, np.newaxis]
        points[..., column_axis] = columns[np.newaxis, :]
        points = points.reshape(-1, volume.dimension)

        image = np.zeros((height * width, 3), dtype=np.uint8)
        uncovered = np.ones(height * width, dtype=bool)
        colors = self.cell_colors(volume.num_cells)

        for index, cell in enumerate(volume.cells):
            candidates = np.flatnonzero(uncovered)
            if len(candidates) == 0:
                break
            normals, offsets = cell.halfspace_arrays()
            if len(offsets) == 0:
                inside = candidates
            else:
                mask = np.all(points[candidates] @ normals.T - offsets >= -self.epsilon, axis=1)
                inside = candidates[mask]
            image[inside] = colors[index]
            uncovered[inside] = False

        logger.debug(
            f"Slice axis={axis} value={value}: {int((~uncovered).sum())}/{height * width} pixels covered"
        )
        return image.reshape(height, width, 3)

    def save(self, path: Union[str, Path], image: np.ndarray) -> Path:
        """
        画像を保存

        Args:
            path: 出力ファイルパス（拡張子で形式を決定）
            image: 画像

        Returns:
            保存したファイルパス
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if not cv2.imwrite(str(path), image):
            raise OSError(f"Failed to write image to {path}")
        logger.info(f"Slice image saved to {path}")
        return path

    @staticmethod
    def _image_axes(dimension: int, axis: int) -> Tuple[int, int]:
        """(行の軸, 列の軸) を取得"""
        if dimension == 2:
            return 1, 0
        if dimension != 3:
            raise InvalidInputError(f"Unsupported dimension: {dimension}")
        if axis not in (0, 1, 2):
            raise InvalidInputError(f"Slice axis must be 0, 1 or 2, got {axis}")
        return (axis + 2) % 3, (axis + 1) % 3
