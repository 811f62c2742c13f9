#!/usr/bin/env python3
"""
PolyIntersect 設定管理システム

許容誤差・走査・出力の設定値を統一管理し、
Magic Numberのハードコーディングを解消します。
"""

from dataclasses import dataclass, field, fields, asdict
from typing import Optional, Dict, Any
from pathlib import Path

import yaml

from . import get_logger
from .constants import (
    GEOMETRY_EPSILON,
    DETERMINANT_TOLERANCE,
    VOLUME_TOLERANCE,
    MAX_HALF_SPACES_PER_PAIR,
    DEFAULT_MAX_WORKERS,
    DEFAULT_SEPARATOR,
    DEFAULT_SLICE_WIDTH,
    DEFAULT_SLICE_HEIGHT,
    DEFAULT_SLICE_SEED,
)
from .errors import ConfigError

logger = get_logger(__name__)


@dataclass
class GeometryConfig:
    """幾何計算の許容誤差"""
    # 包含判定・頂点の重複判定（ユークリッド距離）
    epsilon: float = GEOMETRY_EPSILON
    # 平面の組を平行とみなす行列式の閾値
    determinant_tolerance: float = DETERMINANT_TOLERANCE
    # 体積ゼロとみなす閾値（最大辺長の d 乗に対する相対値）
    volume_tolerance: float = VOLUME_TOLERANCE

    def validate(self) -> None:
        """値の妥当性チェック"""
        for name in ("epsilon", "determinant_tolerance", "volume_tolerance"):
            value = getattr(self, name)
            if not value > 0:
                raise ConfigError(f"geometry.{name} must be positive, got {value}")


@dataclass
class TraversalConfig:
    """BFS走査設定"""
    # 1なら逐次、2以上なら連結成分ごとにスレッドへ分配
    max_workers: int = DEFAULT_MAX_WORKERS
    # セル対あたりの半空間数上限
    max_half_spaces_per_pair: int = MAX_HALF_SPACES_PER_PAIR
    # 出力セル同士の隣接リンクを張るか
    link_result_neighbors: bool = True

    def validate(self) -> None:
        """値の妥当性チェック"""
        if self.max_workers < 1:
            raise ConfigError(f"traversal.max_workers must be >= 1, got {self.max_workers}")
        if self.max_half_spaces_per_pair < 4:
            raise ConfigError(
                f"traversal.max_half_spaces_per_pair must be >= 4, got {self.max_half_spaces_per_pair}"
            )


@dataclass
class OutputConfig:
    """出力設定"""
    separator: str = DEFAULT_SEPARATOR
    slice_width: int = DEFAULT_SLICE_WIDTH
    slice_height: int = DEFAULT_SLICE_HEIGHT
    slice_seed: int = DEFAULT_SLICE_SEED

    def validate(self) -> None:
        """値の妥当性チェック"""
        if len(self.separator) != 1:
            raise ConfigError(f"output.separator must be a single character, got {self.separator!r}")
        if self.slice_width < 1 or self.slice_height < 1:
            raise ConfigError("output.slice_width and output.slice_height must be positive")


@dataclass
class PolyIntersectConfig:
    """プロジェクト全体設定"""
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    traversal: TraversalConfig = field(default_factory=TraversalConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # ログ設定
    log_level: str = "INFO"
    log_format_style: str = "detailed"

    def validate(self) -> "PolyIntersectConfig":
        """全セクションを検証して自身を返す"""
        self.geometry.validate()
        self.traversal.validate()
        self.output.validate()
        return self

    def to_dict(self) -> Dict[str, Any]:
        """設定オブジェクトを辞書に変換"""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Optional[Dict[str, Any]]) -> "PolyIntersectConfig":
        """辞書から設定オブジェクトを生成（未知のキーは無視）"""
        config = cls()
        if not config_dict:
            return config

        sections = {
            'geometry': config.geometry,
            'traversal': config.traversal,
            'output': config.output,
        }
        for section_name, section in sections.items():
            section_dict = config_dict.get(section_name)
            if not isinstance(section_dict, dict):
                continue
            known = {f.name for f in fields(section)}
            for key, value in section_dict.items():
                if key in known:
                    setattr(section, key, value)
                else:
                    logger.debug(f"Ignoring unknown config key: {section_name}.{key}")

        for key in ('log_level', 'log_format_style'):
            if key in config_dict:
                setattr(config, key, config_dict[key])

        return config.validate()


class ConfigManager:
    """設定管理クラス"""

    def __init__(self):
        self._config: Optional[PolyIntersectConfig] = None
        self._config_file_path: Optional[Path] = None

    def load_config(self, config_file: Optional[Path] = None) -> PolyIntersectConfig:
        """
        設定ファイルを読み込み

        Args:
            config_file: 設定ファイルパス（Noneの場合はデフォルト設定）

        Returns:
            読み込まれた設定
        """
        if config_file is None:
            project_root = Path(__file__).parent.parent
            default_paths = [
                project_root / "polyintersect.yaml",
                project_root / "config.yaml",
                Path.home() / ".polyintersect" / "config.yaml"
            ]

            for path in default_paths:
                if path.exists():
                    config_file = path
                    break

        if config_file and Path(config_file).exists():
            config_file = Path(config_file)
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    config_dict = yaml.safe_load(f)

                self._config = PolyIntersectConfig.from_dict(config_dict)
                self._config_file_path = config_file
                logger.info(f"Configuration loaded from {config_file}")

            except (OSError, yaml.YAMLError, ConfigError, AttributeError) as e:
                logger.warning(f"Failed to load config from {config_file}: {e}")
                logger.info("Using default configuration")
                self._config = PolyIntersectConfig()
        else:
            logger.info("No config file found, using default configuration")
            self._config = PolyIntersectConfig()

        return self._config

    def save_config(self, config_file: Optional[Path] = None) -> bool:
        """
        設定をファイルに保存

        Args:
            config_file: 保存先ファイルパス

        Returns:
            保存成功したかどうか
        """
        if self._config is None:
            logger.error("No configuration to save")
            return False

        if config_file is None:
            config_file = self._config_file_path or Path("polyintersect.yaml")
        config_file = Path(config_file)

        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)

            with open(config_file, 'w', encoding='utf-8') as f:
                yaml.dump(self._config.to_dict(), f, default_flow_style=False,
                          allow_unicode=True, indent=2)

            logger.info(f"Configuration saved to {config_file}")
            return True

        except OSError as e:
            logger.error(f"Failed to save config to {config_file}: {e}")
            return False

    def get_config(self) -> PolyIntersectConfig:
        """現在の設定を取得"""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def set_config(self, config: PolyIntersectConfig) -> None:
        """設定を差し替え"""
        self._config = config.validate()


# グローバル設定マネージャー
_config_manager: Optional[ConfigManager] = None

def get_config_manager() -> ConfigManager:
    """グローバル設定マネージャーを取得"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager

def get_config() -> PolyIntersectConfig:
    """現在の設定を取得"""
    return get_config_manager().get_config()

def load_config(config_file: Optional[Path] = None) -> PolyIntersectConfig:
    """設定を読み込み"""
    return get_config_manager().load_config(config_file)

def save_config(config_file: Optional[Path] = None) -> bool:
    """設定を保存"""
    return get_config_manager().save_config(config_file)

def set_config(config: PolyIntersectConfig) -> None:
    """設定を差し替え"""
    get_config_manager().set_config(config)

def reset_config() -> None:
    """グローバル設定を破棄（テスト用）"""
    global _config_manager
    _config_manager = None
