"""变更检测器."""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import git

from smart_burn_in.config import BurnInConfig
from smart_burn_in.exceptions import (
    GitCommandFailedError,
    InvalidReferenceError,
    MalformedReferenceError,
    NotAGitRepositoryError,
    UnknownReferenceError,
)
from smart_burn_in.selection.patterns import FileCategory, classify
from smart_burn_in.utils import get_logger

logger = get_logger("change_detector")

REFERENCE_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")


def validate_reference(reference: str) -> str:
    """校验 Git 引用名，防止命令注入.

    Raises:
        InvalidReferenceError: 引用为空或包含 [A-Za-z0-9._/-] 以外的字符
    """
    if not isinstance(reference, str) or not REFERENCE_PATTERN.match(reference):
        raise InvalidReferenceError(str(reference))
    return reference


def _split_lines(output: str) -> List[str]:
    return [line.strip() for line in output.strip().splitlines() if line.strip()]


@dataclass(frozen=True)
class ChangedFileSet:
    """变更文件集合 (按类别划分，构建后不可变)."""

    test_files: Tuple[str, ...] = ()
    skip_files: Tuple[str, ...] = ()
    common_files: Tuple[str, ...] = ()
    other_files: Tuple[str, ...] = ()
    all_files: Tuple[str, ...] = ()
    base_ref: str = ""

    @classmethod
    def from_files(
        cls,
        files: List[str],
        config: BurnInConfig,
        base_ref: str = "",
    ) -> "ChangedFileSet":
        buckets: Dict[FileCategory, List[str]] = {category: [] for category in FileCategory}
        for path in files:
            buckets[classify(path, config)].append(path)

        return cls(
            test_files=tuple(buckets[FileCategory.TEST]),
            skip_files=tuple(buckets[FileCategory.SKIP]),
            common_files=tuple(buckets[FileCategory.COMMON]),
            other_files=tuple(buckets[FileCategory.OTHER]),
            all_files=tuple(files),
            base_ref=base_ref,
        )

    @property
    def relevant_files(self) -> List[str]:
        """非 skip 的变更文件 (保持原始顺序)."""
        skipped = set(self.skip_files)
        return [path for path in self.all_files if path not in skipped]

    @property
    def is_empty(self) -> bool:
        return not self.all_files

    @property
    def only_skip_files_changed(self) -> bool:
        return bool(self.all_files) and len(self.skip_files) == len(self.all_files)

    @property
    def only_common_files_changed(self) -> bool:
        return bool(self.common_files) and not self.test_files and not self.other_files

    def get_by_category(self, category: FileCategory) -> Tuple[str, ...]:
        return {
            FileCategory.TEST: self.test_files,
            FileCategory.SKIP: self.skip_files,
            FileCategory.COMMON: self.common_files,
            FileCategory.OTHER: self.other_files,
        }[category]


class ChangeDetector:
    """变更检测器 - 计算相对基准引用的变更文件并分类."""

    def __init__(self, repo_path: str, config: BurnInConfig):
        self._repo_path = Path(repo_path)
        self._config = config
        self._repo: Optional[git.Repo] = None

    @property
    def repo(self) -> git.Repo:
        """延迟打开仓库."""
        if self._repo is None:
            try:
                self._repo = git.Repo(self._repo_path, search_parent_directories=True)
            except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
                raise NotAGitRepositoryError(str(self._repo_path)) from e
        return self._repo

    @property
    def root(self) -> Path:
        """仓库工作区根目录."""
        return Path(self.repo.working_tree_dir)

    def get_changed_files(self, base_ref: str) -> ChangedFileSet:
        """获取当前分支自基准引用分叉以来的变更文件.

        Args:
            base_ref: 基准分支/提交

        Returns:
            ChangedFileSet: 分类后的变更集合

        Raises:
            InvalidReferenceError: 引用包含非法字符 (不会执行任何 git 命令)
            NotAGitRepositoryError: 不在 Git 仓库中
            UnknownReferenceError: 引用不存在
            MalformedReferenceError: 引用格式错误
            GitCommandFailedError: 其他 git 错误
        """
        reference = validate_reference(base_ref)

        output = self._run_git("diff", "--name-only", f"{reference}...HEAD", reference=reference)
        files = _split_lines(output)
        logger.debug(f"git diff {reference}...HEAD: {len(files)} file(s)")

        return ChangedFileSet.from_files(files, self._config, base_ref=reference)

    def list_tracked_files(self) -> List[str]:
        """获取所有被 Git 跟踪的文件."""
        return _split_lines(self._run_git("ls_files"))

    def _run_git(self, command: str, *args: str, reference: Optional[str] = None) -> str:
        """执行 Git 命令并转换错误类型."""
        repo = self.repo
        try:
            return getattr(repo.git, command)(*args)
        except git.GitCommandError as e:
            raise self._translate_error(e, command, reference) from e
        except git.GitCommandNotFound as e:
            raise GitCommandFailedError(
                "git executable not found, please ensure Git is installed",
                operation=command,
                repo_path=str(self._repo_path),
            ) from e

    def _translate_error(
        self,
        error: git.GitCommandError,
        command: str,
        reference: Optional[str],
    ) -> Exception:
        stderr = str(error.stderr or "")
        repo_path = str(self._repo_path)

        if "not a git repository" in stderr:
            return NotAGitRepositoryError(repo_path)
        if reference and "unknown revision" in stderr:
            return UnknownReferenceError(reference, repo_path)
        if reference and "bad revision" in stderr:
            return MalformedReferenceError(reference, repo_path)
        return GitCommandFailedError(
            f"git {command.replace('_', '-')} failed: {stderr.strip() or error}",
            operation=command,
            repo_path=repo_path,
            stderr=stderr,
        )
