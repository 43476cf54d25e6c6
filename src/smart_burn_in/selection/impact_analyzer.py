"""影响分析器 - 找出传递依赖了变更文件的测试."""

import os
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Deque, Iterable, List, Optional, Protocol, Set, Tuple, Union

from smart_burn_in.config import BurnInConfig
from smart_burn_in.exceptions import DependencyAnalysisError, DependencyDepthExceededError
from smart_burn_in.selection.change_detector import ChangedFileSet
from smart_burn_in.selection.module_graph import ModuleGraphBuilder, normalize_path
from smart_burn_in.utils import get_logger

logger = get_logger("impact_analyzer")


class AdjacencyLookup(Protocol):
    """邻接查询接口: 节点 → 直接依赖."""

    def neighbors(self, node: str) -> Iterable[str]:
        ...


class MatchStrictness(Enum):
    """变更文件匹配严格度."""

    EXACT = "exact"
    BASENAME = "basename"


def reachable(
    start: str,
    lookup: AdjacencyLookup,
    is_target: Callable[[str], bool],
    max_depth: Optional[int] = None,
) -> Optional[str]:
    """广度优先搜索，从 start 沿依赖边查找第一个目标节点.

    每个节点最多展开一次，因此含环的图也能终止。

    Args:
        start: 起始节点
        lookup: 邻接查询
        is_target: 目标判定函数
        max_depth: 最大搜索深度，超过时抛出 DependencyDepthExceededError

    Returns:
        命中的节点，未命中返回 None
    """
    visited: Set[str] = set()
    queue: Deque[Tuple[str, int]] = deque([(start, 0)])

    while queue:
        node, depth = queue.popleft()
        if node in visited:
            continue
        visited.add(node)

        if is_target(node):
            return node

        pending = [dep for dep in lookup.neighbors(node) if dep not in visited]
        if pending and max_depth is not None and depth >= max_depth:
            raise DependencyDepthExceededError(max_depth, file_path=start)
        queue.extend((dep, depth + 1) for dep in pending)

    return None


class PathMatcher:
    """判断图节点是否为变更文件.

    先比较规范化绝对路径；BASENAME 模式下再按文件名回退匹配，
    不同目录下的同名文件会被视为命中。
    """

    def __init__(
        self,
        changed_files: Iterable[str],
        root: Union[str, Path] = ".",
        strictness: MatchStrictness = MatchStrictness.BASENAME,
    ):
        root_path = Path(normalize_path(str(root)))
        self._exact = {normalize_path(path, root_path) for path in changed_files}
        self._basenames = {os.path.basename(path) for path in self._exact}
        self._strictness = strictness

    def __call__(self, node: str) -> bool:
        node = os.path.normpath(node)
        if node in self._exact:
            return True
        if self._strictness == MatchStrictness.BASENAME:
            return os.path.basename(node) in self._basenames
        return False


def find_affected(
    changed_files: Iterable[str],
    test_files: Iterable[str],
    graph: AdjacencyLookup,
    root: Union[str, Path] = ".",
    strictness: MatchStrictness = MatchStrictness.BASENAME,
    max_depth: Optional[int] = None,
) -> List[str]:
    """找出依赖 (直接或间接) 任一变更文件的测试文件.

    Args:
        changed_files: 变更文件 (仓库相对或绝对路径)
        test_files: 测试文件 (仓库相对路径)
        graph: 依赖图
        root: 仓库根目录
        strictness: 路径匹配严格度
        max_depth: 最大依赖深度

    Returns:
        受影响的测试文件，保持 test_files 的顺序
    """
    root_path = Path(normalize_path(str(root)))
    is_changed = PathMatcher(changed_files, root_path, strictness)

    affected = []
    for test_file in test_files:
        start = normalize_path(test_file, root_path)
        hit = reachable(start, graph, is_changed, max_depth=max_depth)
        if hit is not None:
            logger.debug(f"{test_file} depends on changed file {hit}")
            if test_file not in affected:
                affected.append(test_file)
    return affected


@dataclass
class ImpactReport:
    """影响分析结果."""

    affected_tests: Optional[List[str]] = None
    test_files: List[str] = field(default_factory=list)
    unavailable_reason: str = ""

    @property
    def available(self) -> bool:
        return self.affected_tests is not None


class ImpactAnalyzer:
    """影响分析器 - 组合模块图与可达性搜索."""

    def __init__(self, graph_builder: ModuleGraphBuilder, config: BurnInConfig):
        self._graph_builder = graph_builder
        self._config = config

    def analyze(self, changed: ChangedFileSet) -> ImpactReport:
        """分析受变更影响的测试.

        依赖图构建失败时不抛出异常，返回 affected_tests=None 及原因。
        """
        relevant_files = changed.relevant_files
        logger.info(f"Analyzing dependencies for {len(relevant_files)} relevant file(s)...")

        test_files = self._graph_builder.list_test_files(self._config.test_patterns)
        if not test_files:
            logger.warning("No test files found")
            return ImpactReport(affected_tests=[], test_files=[])

        logger.info(f"Analyzing {len(test_files)} test file(s) for dependencies...")

        try:
            graph = self._graph_builder.build_graph()
            affected = find_affected(
                relevant_files,
                test_files,
                graph,
                root=self._graph_builder.root,
                strictness=MatchStrictness(self._config.match_strictness),
                max_depth=self._config.max_depth_for_run_all,
            )
        except DependencyAnalysisError as e:
            logger.warning(f"Custom dependency analysis failed, falling back to percentage mode: {e}")
            return ImpactReport(
                affected_tests=None,
                test_files=test_files,
                unavailable_reason=e.message,
            )

        logger.info(f"Found {len(affected)} test(s) affected by changes")
        return ImpactReport(affected_tests=affected, test_files=test_files)
