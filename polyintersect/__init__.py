#!/usr/bin/env python3
"""
PolyIntersect メインパッケージ

三角形分割（四面体分割）とVoronoi分割の多面体レベルでの交差を計算します。
プロジェクト全体で使用される共通ロギング機能もここで提供します。
"""

import logging
import sys
from pathlib import Path
from typing import Optional

# プロジェクト情報
__version__ = "0.1.0"
__author__ = "PolyIntersect Development Team"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_style: str = "detailed"
) -> logging.Logger:
    """
    プロジェクト全体の統一ログ設定
    
    Args:
        level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: ログファイルパス（Noneならコンソールのみ）
        format_style: フォーマットスタイル ("simple", "detailed", "debug")
    
    Returns:
        設定済みルートロガー
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')
    
    formats = {
        "simple": "%(levelname)s: %(message)s",
        "detailed": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        "debug": "%(asctime)s [%(levelname)s] %(name)s:%(funcName)s:%(lineno)d: %(message)s"
    }
    
    log_format = formats.get(format_style, formats["detailed"])
    formatter = logging.Formatter(log_format, datefmt='%H:%M:%S')
    
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    
    # 既存ハンドラークリア
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    
    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    モジュール用ロガーを取得
    
    Args:
        name: ロガー名（通常は __name__ を使用）
    
    Returns:
        設定済みロガー
    """
    return logging.getLogger(name)


# ハンドラーはアプリ側で設定
logging.getLogger(__name__).addHandler(logging.NullHandler())


from .errors import (  # noqa: E402
    PolyIntersectError,
    InputFormatError,
    InvalidInputError,
    DegenerateGeometryError,
    DegenerateInputError,
    MissingContainmentError,
    ConfigError,
)
from .geometry import Edge, Cell, BoundingBox, VolumeData  # noqa: E402
from .complex import build_triangulation_complex, build_voronoi_complex  # noqa: E402
from .intersection import (  # noqa: E402
    HalfSpaceRemover,
    RemovalResult,
    integrate_polytope,
    VolumeIntersector,
    intersect_volumes,
)

__all__ = [
    'setup_logging',
    'get_logger',

    # 例外
    'PolyIntersectError',
    'InputFormatError',
    'InvalidInputError',
    'DegenerateGeometryError',
    'DegenerateInputError',
    'MissingContainmentError',
    'ConfigError',

    # 幾何プリミティブ
    'Edge',
    'Cell',
    'BoundingBox',
    'VolumeData',

    # 複体構築
    'build_triangulation_complex',
    'build_voronoi_complex',

    # 交差計算
    'HalfSpaceRemover',
    'RemovalResult',
    'integrate_polytope',
    'VolumeIntersector',
    'intersect_volumes',
]
