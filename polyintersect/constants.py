#!/usr/bin/env python3
"""
共通定数・設定値

交差計算全体で使用される許容誤差や既定値を一元管理し、
モジュール間の循環依存を解消します。
"""

from typing import Final, Tuple

# =============================================================================
# 数値精度・許容誤差
# =============================================================================

# 点の包含判定・重複判定の許容誤差
GEOMETRY_EPSILON: Final[float] = 1e-7

# 平面の組が一点で交わらないと判定する行列式の閾値
DETERMINANT_TOLERANCE: Final[float] = 1e-12

# 体積ゼロと判定する閾値（最大辺長の d 乗に対する相対値）
VOLUME_TOLERANCE: Final[float] = 1e-12

# =============================================================================
# 次元
# =============================================================================

SUPPORTED_DIMENSIONS: Final[Tuple[int, ...]] = (2, 3)

# 出典なしを表すインデックス
NO_INDEX: Final[int] = -1

# =============================================================================
# 走査関連
# =============================================================================

# セル対あたりの半空間数上限（総当たり除去の計算量ガード）
MAX_HALF_SPACES_PER_PAIR: Final[int] = 256

# 冗長除去で一度に解く半空間の組の数（作業メモリの上限）
REMOVER_CHUNK_SIZE: Final[int] = 4096

# 既定ワーカー数（1なら逐次実行）
DEFAULT_MAX_WORKERS: Final[int] = 1

# =============================================================================
# 入出力関連
# =============================================================================

DEFAULT_SEPARATOR: Final[str] = ","

DEFAULT_SLICE_WIDTH: Final[int] = 800
DEFAULT_SLICE_HEIGHT: Final[int] = 800
DEFAULT_SLICE_SEED: Final[int] = 0
