"""配置管理模块.

两类配置：
- ``Settings``: 来自环境变量 / ``.env`` 的运行时设置 (基准分支、分片覆盖等)
- ``BurnInConfig``: 来自配置文件的 burn-in 策略 (模式、重复次数、采样比例)
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from smart_burn_in.exceptions import ConfigurationError
from smart_burn_in.utils import get_logger

logger = get_logger("config")

DEFAULT_SKIP_BURN_IN_PATTERNS = [
    "**/config/**",
    "**/configuration/**",
    "**/playwright.config.ts",
    "**/*featureFlags*",
    "**/*constants*",
    "**/*config*",
    "**/*types*",
    "**/*interfaces*",
    "**/package.json",
    "**/tsconfig.json",
    "**/*.md",
]

DEFAULT_TEST_PATTERNS = ["**/*.spec.ts", "**/*.test.ts"]

CONFIG_SEARCH_PATHS = [
    "config/.burn-in.yaml",
    "config/.burn-in.yml",
    "config/.burn-in.json",
    ".burn-in.yaml",
    ".burn-in.yml",
    ".burn-in.json",
    "burn-in.yaml",
    "burn-in.yml",
    "burn-in.json",
    "playwright/.burn-in.yaml",
    "playwright/.burn-in.yml",
    "playwright/.burn-in.json",
]

SUPPORTED_CONFIG_SUFFIXES = {".yaml", ".yml", ".json"}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _validate_percentage(name: str, v: Optional[float]) -> Optional[float]:
    if v is None:
        return v
    if not 0 < v <= 1:
        raise ValueError(
            f"Invalid {name}: {v}. Must be greater than 0 and less than or equal to 1."
        )
    return v


class Settings(BaseSettings):
    """运行时配置 (环境变量前缀 BURN_IN_)."""

    model_config = SettingsConfigDict(
        env_prefix="BURN_IN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_branch: str = "main"
    shard: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("BURN_IN_SHARD", "PW_SHARD"),
    )
    config: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None
    ci: bool = Field(default=False, validation_alias=AliasChoices("BURN_IN_CI", "CI"))

    @field_validator("shard")
    @classmethod
    def validate_shard(cls, v: Optional[str]) -> Optional[str]:
        """验证分片格式 (如 1/4)."""
        return parse_shard(v)


def parse_shard(value: Optional[str]) -> Optional[str]:
    """解析分片参数 current/total，空值返回 None.

    Raises:
        ValueError: 格式或范围错误
    """
    if value is None or value.strip() == "":
        return None
    match = re.fullmatch(r"(\d+)/(\d+)", value.strip())
    if not match:
        raise ValueError(f"Invalid shard: {value!r}, expected current/total (e.g. 1/4)")
    current, total = int(match.group(1)), int(match.group(2))
    if total < 1 or not 1 <= current <= total:
        raise ValueError(f"Invalid shard range: {value!r}")
    return value.strip()


class BurnInSettings(BaseModel):
    """Burn-in 执行参数."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    repeat_each: int = 3
    retries: int = 0

    @field_validator("repeat_each")
    @classmethod
    def validate_repeat_each(cls, v: int) -> int:
        """验证重复次数."""
        if v < 1:
            raise ValueError("repeat_each 必须大于 0")
        return v

    @field_validator("retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        """验证重试次数."""
        if v < 0:
            raise ValueError("retries 不能为负数")
        return v


class BurnInConfig(BaseModel):
    """Burn-in 策略配置."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    skip_burn_in_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SKIP_BURN_IN_PATTERNS)
    )
    common_burn_in_patterns: List[str] = Field(default_factory=list)
    test_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_TEST_PATTERNS))

    burn_in: BurnInSettings = Field(default_factory=BurnInSettings)

    burn_in_test_percentage: float = 1.0
    common_burn_in_test_percentage: float = 0.1
    common_burn_in_test_tag: Optional[str] = None

    max_files_for_smart_mode: Optional[int] = None
    max_depth_for_run_all: Optional[int] = None

    match_strictness: Literal["exact", "basename"] = "basename"
    file_extensions: List[str] = Field(default_factory=lambda: ["ts", "js", "tsx", "jsx"])
    tsconfig: Optional[str] = None

    runner_command: List[str] = Field(default_factory=lambda: ["npx", "playwright", "test"])
    burn_in_marker: str = "PW_BURN_IN"

    @field_validator("burn_in_test_percentage", "common_burn_in_test_percentage")
    @classmethod
    def validate_percentage(cls, v: float, info: ValidationInfo) -> float:
        """验证采样比例范围 (0, 1]."""
        return _validate_percentage(info.field_name, v)

    @field_validator("max_files_for_smart_mode", "max_depth_for_run_all")
    @classmethod
    def validate_threshold(cls, v: Optional[int]) -> Optional[int]:
        """验证阈值."""
        if v is not None and v < 1:
            raise ValueError("阈值必须大于 0")
        return v

    @field_validator("file_extensions")
    @classmethod
    def validate_extensions(cls, v: List[str]) -> List[str]:
        """去掉扩展名前导点."""
        return [ext.lstrip(".") for ext in v if ext.strip(".")]

    @field_validator("runner_command")
    @classmethod
    def validate_runner_command(cls, v: List[str]) -> List[str]:
        """验证运行器命令非空."""
        if not v:
            raise ValueError("runner_command 不能为空")
        return v


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _normalize_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    """将 camelCase 键转换为 snake_case (兼容 JS 风格配置文件)."""
    normalized: Dict[str, Any] = {}
    for key, value in raw.items():
        name = _snake_case(str(key))
        if name in ("burn_in", "ci") and isinstance(value, dict):
            value = _normalize_keys(value)
        normalized[name] = value
    return normalized


def merge_configs(*sources: Dict[str, Any]) -> Dict[str, Any]:
    """按顺序合并配置，后者覆盖前者；burn_in 子对象逐键合并.

    Args:
        *sources: 已规范化的配置字典

    Returns:
        合并后的配置字典
    """
    merged: Dict[str, Any] = {}
    for source in sources:
        burn_in = {**merged.get("burn_in", {}), **source.get("burn_in", {})}
        merged = {**merged, **source, "burn_in": burn_in}
    return merged


def read_config_file(config_file: Path) -> Dict[str, Any]:
    """读取单个配置文件.

    Args:
        config_file: 配置文件路径 (YAML 或 JSON)

    Returns:
        规范化后的配置字典

    Raises:
        ConfigurationError: 文件无法读取或内容格式错误
    """
    if config_file.suffix.lower() not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigurationError(
            f"Unsupported config file type: {config_file}. "
            f"Use one of {', '.join(sorted(SUPPORTED_CONFIG_SUFFIXES))}",
            config_key="config",
            value=str(config_file),
        )

    try:
        content = config_file.read_text(encoding="utf-8")
        if config_file.suffix.lower() == ".json":
            data = json.loads(content) if content.strip() else None
        else:
            data = yaml.safe_load(content)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to load config from {config_file}: {e}",
            config_key="config",
            value=str(config_file),
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {config_file} must contain a mapping, got {type(data).__name__}",
            config_key="config",
            value=str(config_file),
        )
    return _normalize_keys(data)


def build_config(raw: Dict[str, Any], is_ci: bool = False) -> BurnInConfig:
    """从合并后的配置字典构建 BurnInConfig.

    ``ci`` 小节在 CI 环境下覆盖顶层配置。
    """
    raw = dict(raw)
    ci_overrides = raw.pop("ci", None) or {}
    if is_ci and ci_overrides:
        raw = merge_configs(raw, ci_overrides)

    try:
        return BurnInConfig(**raw)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(
            f"Invalid burn-in configuration ({key}): {first.get('msg')}",
            config_key=key or None,
            value=first.get("input"),
        ) from e


def find_config_file(root: Path) -> Optional[Path]:
    """在默认位置搜索配置文件."""
    for candidate in CONFIG_SEARCH_PATHS:
        path = root / candidate
        if path.is_file():
            return path
    return None


def load_config(
    config_path: Optional[str] = None,
    root: Optional[Path] = None,
    is_ci: bool = False,
) -> BurnInConfig:
    """加载 burn-in 配置.

    默认配置 → 配置文件 → (CI 环境下) 文件中的 ``ci`` 小节，依次覆盖。

    Args:
        config_path: 显式指定的配置文件路径
        root: 搜索默认配置文件的根目录
        is_ci: 是否运行在 CI 环境

    Returns:
        BurnInConfig: 不可变配置对象

    Raises:
        ConfigurationError: 配置文件缺失、格式错误或取值越界
    """
    root = root or Path.cwd()
    sources: List[Dict[str, Any]] = []

    if config_path:
        config_file = Path(config_path)
        if not config_file.is_absolute():
            config_file = root / config_file
        if not config_file.is_file():
            raise ConfigurationError(
                f"Config file not found: {config_path}",
                config_key="config",
                value=config_path,
            )
        sources.append(read_config_file(config_file))
        logger.info(f"Loaded burn-in config from: {config_path}")
    else:
        config_file = find_config_file(root)
        if config_file is not None:
            sources.append(read_config_file(config_file))
            logger.info(f"Loaded burn-in config from: {config_file.relative_to(root)}")

    return build_config(merge_configs({}, *sources), is_ci=is_ci)
