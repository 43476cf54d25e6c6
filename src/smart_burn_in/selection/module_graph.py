"""模块依赖图构建.

用 tree-sitter 解析 JS/TS 源文件的 import/export/require 语句，
构建 "模块 → 直接依赖模块" 的有向图。
图的键和值均为规范化后的绝对路径。
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence

import tree_sitter_typescript as ts_typescript
from tree_sitter import Language, Node, Parser

from smart_burn_in.config import BurnInConfig
from smart_burn_in.exceptions import BurnInError, DependencyAnalysisError
from smart_burn_in.selection.patterns import matches
from smart_burn_in.utils import get_logger

logger = get_logger("module_graph")

EXCLUDED_DIRS = {"node_modules", ".git"}

TSCONFIG_LOCATIONS = ["tsconfig.json", "tsconfig.build.json", "src/tsconfig.json"]

# 以 .js 形式书写、实际指向 TS 源文件的导入
_JS_TO_TS = {".js": (".ts", ".tsx"), ".jsx": (".tsx",)}

# 含 JSX 语法、需要用 tsx 语法解析的扩展名
JSX_SUFFIXES = {".tsx", ".jsx"}

_PARSERS: Dict[str, Parser] = {}


def _get_parser(dialect: str) -> Parser:
    """获取或创建 tree-sitter 解析器 (typescript / tsx)."""
    if dialect not in _PARSERS:
        if dialect == "tsx":
            language = Language(ts_typescript.language_tsx())
        else:
            language = Language(ts_typescript.language_typescript())
        _PARSERS[dialect] = Parser(language)
    return _PARSERS[dialect]


def _string_value(node: Optional[Node]) -> Optional[str]:
    """取字符串字面量的内容；模板字符串或非字符串返回 None."""
    if node is None or node.type != "string":
        return None
    return node.text.decode("utf-8")[1:-1]


def _call_specifier(node: Node) -> Optional[str]:
    """require('...') 或 import('...') 的模块说明符."""
    function = node.child_by_field_name("function")
    if function is None:
        return None
    if function.type == "import" or (function.type == "identifier" and function.text == b"require"):
        arguments = node.child_by_field_name("arguments")
        if arguments is not None and arguments.named_child_count:
            return _string_value(arguments.named_children[0])
    return None


def _node_specifier(node: Node) -> Optional[str]:
    if node.type in ("import_statement", "export_statement", "import_require_clause"):
        return _string_value(node.child_by_field_name("source"))
    if node.type == "call_expression":
        return _call_specifier(node)
    return None


def extract_import_specifiers(content: str, tsx: bool = False) -> List[str]:
    """用 TypeScript 语法树提取模块说明符 (保持出现顺序并去重).

    注释和字符串中的 import 文本不会被当作依赖。

    Args:
        content: 源码
        tsx: 是否按 tsx 语法解析

    Returns:
        模块说明符列表
    """
    tree = _get_parser("tsx" if tsx else "typescript").parse(content.encode("utf-8"))

    specifiers: List[str] = []
    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        specifier = _node_specifier(node)
        if specifier and specifier not in specifiers:
            specifiers.append(specifier)
        stack.extend(reversed(node.children))
    return specifiers


def normalize_path(path: str, root: Optional[Path] = None) -> str:
    """转换为规范化的绝对路径字符串."""
    if root is not None and not os.path.isabs(path):
        path = os.path.join(str(root), path)
    return os.path.normpath(os.path.abspath(path))


class DependencyGraph:
    """依赖图: 绝对路径 → 直接依赖的绝对路径列表.

    允许存在环，遍历方负责记录已访问节点。
    """

    def __init__(self, edges: Optional[Dict[str, Sequence[str]]] = None):
        self._edges: Dict[str, List[str]] = {
            os.path.normpath(node): [os.path.normpath(dep) for dep in deps]
            for node, deps in (edges or {}).items()
        }

    def neighbors(self, node: str) -> List[str]:
        return self._edges.get(os.path.normpath(node), [])

    def add_node(self, node: str) -> None:
        self._edges.setdefault(os.path.normpath(node), [])

    def add_edge(self, source: str, target: str) -> None:
        deps = self._edges.setdefault(os.path.normpath(source), [])
        target = os.path.normpath(target)
        if target not in deps:
            deps.append(target)

    @property
    def nodes(self) -> List[str]:
        return list(self._edges)

    def __contains__(self, node: object) -> bool:
        return isinstance(node, str) and os.path.normpath(node) in self._edges

    def __len__(self) -> int:
        return len(self._edges)


@dataclass
class PathAliases:
    """tsconfig 中的 baseUrl / paths 别名."""

    base_url: Optional[Path] = None
    paths: Dict[str, List[str]] = field(default_factory=dict)

    def candidates(self, specifier: str) -> Iterator[Path]:
        """生成别名说明符可能对应的路径."""
        if self.base_url is None:
            return
        for alias, targets in self.paths.items():
            if "*" in alias:
                prefix, _, suffix = alias.partition("*")
                if not (specifier.startswith(prefix) and specifier.endswith(suffix)):
                    continue
                if len(specifier) < len(prefix) + len(suffix):
                    continue
                wildcard = specifier[len(prefix):len(specifier) - len(suffix)]
                for target in targets:
                    yield self.base_url / target.replace("*", wildcard)
            elif alias == specifier:
                for target in targets:
                    yield self.base_url / target
        yield self.base_url / specifier


def _strip_json_comments(content: str) -> str:
    content = re.sub(r"/\*.*?\*/", "", content, flags=re.DOTALL)
    content = re.sub(r"^\s*//.*$", "", content, flags=re.MULTILINE)
    return re.sub(r",(\s*[}\]])", r"\1", content)


def load_path_aliases(tsconfig_path: Optional[Path]) -> PathAliases:
    """读取 tsconfig 的 compilerOptions.baseUrl / paths.

    tsconfig 缺失或无法解析时返回空别名并记录警告。
    """
    if tsconfig_path is None or not tsconfig_path.is_file():
        return PathAliases()

    try:
        data = json.loads(_strip_json_comments(tsconfig_path.read_text(encoding="utf-8")))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not parse {tsconfig_path}, path aliases ignored: {e}")
        return PathAliases()

    options = data.get("compilerOptions") or {}
    base_url = options.get("baseUrl")
    paths = options.get("paths") or {}
    if base_url is None and not paths:
        return PathAliases()

    return PathAliases(
        base_url=(tsconfig_path.parent / (base_url or ".")),
        paths={alias: list(targets) for alias, targets in paths.items()},
    )


class ModuleGraphBuilder:
    """模块图构建器 - 每次运行只构建一次依赖图."""

    def __init__(
        self,
        root: str,
        config: BurnInConfig,
        tracked_files: Optional[Callable[[], List[str]]] = None,
    ):
        """初始化构建器.

        Args:
            root: 项目根目录
            config: burn-in 配置
            tracked_files: 返回仓库相对路径列表的回调 (通常为 git ls-files)；
                为空时遍历目录
        """
        self._root = Path(normalize_path(root))
        self._config = config
        self._tracked_files = tracked_files
        self._extensions = tuple(f".{ext}" for ext in config.file_extensions)
        self._graph: Optional[DependencyGraph] = None
        self._aliases: Optional[PathAliases] = None

    @property
    def root(self) -> Path:
        return self._root

    def list_test_files(self, patterns: Optional[Iterable[str]] = None) -> List[str]:
        """列出所有被跟踪的测试文件 (仓库相对路径).

        无法获取文件列表时记录警告并返回空列表。
        """
        patterns = list(patterns if patterns is not None else self._config.test_patterns)
        try:
            files = self._list_files()
        except (BurnInError, OSError) as e:
            logger.warning(f"Failed to list tracked files, using empty test list: {e}")
            return []

        return [path for path in files if matches(path, patterns)]

    def build_graph(self) -> DependencyGraph:
        """构建整个项目的依赖图 (结果在本实例内缓存).

        Raises:
            DependencyAnalysisError: 构建失败
        """
        if self._graph is not None:
            return self._graph

        try:
            sources = [path for path in self._list_files() if self._is_source_file(path)]
            graph = DependencyGraph()
            for relative in sources:
                module = normalize_path(relative, self._root)
                graph.add_node(module)
                for dependency in self._module_dependencies(Path(module)):
                    graph.add_edge(module, dependency)
        except DependencyAnalysisError:
            raise
        except Exception as e:
            raise DependencyAnalysisError(f"Failed to build dependency graph: {e}") from e

        logger.debug(f"Dependency graph built: {len(graph)} module(s)")
        self._graph = graph
        return graph

    def resolve(self, specifier: str, importer: Path) -> Optional[str]:
        """把模块说明符解析为项目内文件的绝对路径；第三方包返回 None."""
        if specifier.startswith("."):
            candidates: Iterable[Path] = [importer.parent / specifier]
        elif specifier.startswith("/"):
            candidates = [Path(specifier)]
        else:
            candidates = self.aliases.candidates(specifier)

        for candidate in candidates:
            resolved = self._resolve_file(candidate)
            if resolved is not None:
                return resolved
        return None

    @property
    def aliases(self) -> PathAliases:
        if self._aliases is None:
            self._aliases = load_path_aliases(self._find_tsconfig())
        return self._aliases

    def _module_dependencies(self, module: Path) -> List[str]:
        try:
            content = module.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            logger.debug(f"Skipping unreadable module {module}: {e}")
            return []

        dependencies = []
        for specifier in extract_import_specifiers(content, tsx=module.suffix in JSX_SUFFIXES):
            resolved = self.resolve(specifier, module)
            if resolved is not None and resolved != str(module):
                dependencies.append(resolved)
        return dependencies

    def _resolve_file(self, base: Path) -> Optional[str]:
        path = Path(normalize_path(str(base)))
        if self._is_project_file(path):
            return str(path)

        for alternative in _JS_TO_TS.get(path.suffix, ()):
            candidate = path.with_suffix(alternative)
            if self._is_project_file(candidate):
                return str(candidate)

        for ext in self._extensions:
            candidate = path.parent / f"{path.name}{ext}"
            if self._is_project_file(candidate):
                return str(candidate)

        for ext in self._extensions:
            candidate = path / f"index{ext}"
            if self._is_project_file(candidate):
                return str(candidate)
        return None

    def _is_project_file(self, path: Path) -> bool:
        if path.suffix not in self._extensions:
            return False
        if EXCLUDED_DIRS.intersection(path.parts):
            return False
        return path.is_file()

    def _is_source_file(self, relative: str) -> bool:
        if EXCLUDED_DIRS.intersection(Path(relative).parts):
            return False
        return relative.endswith(self._extensions)

    def _list_files(self) -> List[str]:
        if self._tracked_files is not None:
            return list(self._tracked_files())

        files = []
        for dirpath, dirnames, filenames in os.walk(self._root):
            dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
            for filename in sorted(filenames):
                full = os.path.join(dirpath, filename)
                files.append(os.path.relpath(full, self._root).replace(os.sep, "/"))
        return files

    def _find_tsconfig(self) -> Optional[Path]:
        if self._config.tsconfig:
            return self._root / self._config.tsconfig
        for location in TSCONFIG_LOCATIONS:
            path = self._root / location
            if path.is_file():
                return path
        return None
