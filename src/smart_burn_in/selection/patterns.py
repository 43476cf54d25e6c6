"""文件模式分类器."""

from enum import Enum
from typing import Iterable, Sequence, Tuple

from wcmatch import glob

from smart_burn_in.config import BurnInConfig
from smart_burn_in.utils import get_logger

logger = get_logger("patterns")

GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE


class FileCategory(Enum):
    """变更文件类别."""

    TEST = "test"
    SKIP = "skip"
    COMMON = "common"
    OTHER = "other"


# 解析顺序即优先级: 同时命中多个类别时取第一个
CATEGORY_PRIORITY: Tuple[FileCategory, ...] = (
    FileCategory.TEST,
    FileCategory.SKIP,
    FileCategory.COMMON,
)


def _normalize(path: str) -> str:
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def match_pattern(path: str, pattern: str) -> bool:
    """判断路径是否匹配单个 glob 模式.

    与 picomatch 默认行为一致，``*`` 和 ``**`` 不匹配以点开头的目录或文件，
    需要在模式中显式写出点 (如 ``.github/**``)。非法模式记录警告并视为不匹配。
    """
    try:
        return glob.globmatch(_normalize(path), pattern, flags=GLOB_FLAGS)
    except Exception as e:
        logger.warning(f"Invalid glob pattern: {pattern} ({e})")
        return False


def matches(path: str, patterns: Iterable[str]) -> bool:
    """判断路径是否匹配任一模式."""
    return any(match_pattern(path, pattern) for pattern in patterns)


def patterns_for(category: FileCategory, config: BurnInConfig) -> Sequence[str]:
    """获取类别对应的模式列表."""
    if category == FileCategory.TEST:
        return config.test_patterns
    if category == FileCategory.SKIP:
        return config.skip_burn_in_patterns
    if category == FileCategory.COMMON:
        return config.common_burn_in_patterns
    return ()


def classify(path: str, config: BurnInConfig) -> FileCategory:
    """按优先级 (test > skip > common > other) 对文件分类.

    Args:
        path: 仓库相对路径
        config: burn-in 配置

    Returns:
        FileCategory: 第一个命中的类别，均未命中时为 OTHER
    """
    for category in CATEGORY_PRIORITY:
        if matches(path, patterns_for(category, config)):
            return category
    return FileCategory.OTHER
