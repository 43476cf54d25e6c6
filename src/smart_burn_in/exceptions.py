"""Smart Burn-in 专用异常类.

按错误来源划分：配置错误、环境（Git）错误、可降级的依赖分析错误、执行错误。
"""

from typing import Any, Optional


class BurnInError(Exception):
    """Smart Burn-in 基础异常类."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(BurnInError):
    """配置错误."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        value: Any = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if value is not None:
            details["value"] = str(value)[:100]
        super().__init__(message, details)


class InvalidReferenceError(ConfigurationError):
    """Git 引用名包含非法字符."""

    def __init__(self, reference: str):
        super().__init__(
            f"Invalid branch name: {reference!r}. Branch names can only contain "
            "letters, numbers, dots, underscores, hyphens, and forward slashes.",
            config_key="base_ref",
            value=reference,
        )
        self.reference = reference


class GitError(BurnInError):
    """Git 相关错误."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        repo_path: Optional[str] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if repo_path:
            details["repo_path"] = repo_path
        super().__init__(message, details)


class NotAGitRepositoryError(GitError):
    """不在 Git 仓库中."""

    def __init__(self, repo_path: Optional[str] = None):
        super().__init__(
            "Not in a git repository. Please run this command from within a git repository.",
            repo_path=repo_path,
        )


class UnknownReferenceError(GitError):
    """引用不存在."""

    def __init__(self, reference: str, repo_path: Optional[str] = None):
        super().__init__(
            f"Branch '{reference}' does not exist. Please check the branch name.",
            operation="diff",
            repo_path=repo_path,
        )
        self.reference = reference


class MalformedReferenceError(GitError):
    """引用格式错误."""

    def __init__(self, reference: str, repo_path: Optional[str] = None):
        super().__init__(
            f"Invalid git reference: {reference}",
            operation="diff",
            repo_path=repo_path,
        )
        self.reference = reference


class GitCommandFailedError(GitError):
    """Git 命令执行失败."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        repo_path: Optional[str] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message, operation, repo_path)
        if stderr:
            self.details["stderr"] = stderr[:1000] if len(stderr) > 1000 else stderr


class DependencyAnalysisError(BurnInError):
    """依赖分析错误，可降级为回退计划."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        details = {"file_path": file_path} if file_path else {}
        super().__init__(message, details)


class DependencyDepthExceededError(DependencyAnalysisError):
    """依赖遍历超过最大深度."""

    def __init__(self, max_depth: int, file_path: Optional[str] = None):
        super().__init__(
            f"Dependency chain deeper than max_depth_for_run_all={max_depth}",
            file_path=file_path,
        )
        self.details["max_depth"] = max_depth
        self.max_depth = max_depth


class BurnInExecutionFailed(BurnInError):
    """测试运行器以非零状态退出."""

    def __init__(
        self,
        message: str = "Burn-in tests failed",
        exit_code: Optional[int] = None,
        command: Optional[list] = None,
    ):
        details = {}
        if exit_code is not None:
            details["exit_code"] = exit_code
        if command:
            details["command"] = " ".join(command)
        super().__init__(message, details)
        self.exit_code = exit_code
