"""Burn-in 运行器.

按顺序执行: 变更检测 → 依赖分析 → 选择策略 → 命令构建 → 子进程执行。
"""

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.markup import escape

from smart_burn_in.config import BurnInConfig, load_config
from smart_burn_in.exceptions import BurnInExecutionFailed
from smart_burn_in.runner.command import CommandBuilder
from smart_burn_in.selection.change_detector import ChangeDetector, ChangedFileSet
from smart_burn_in.selection.impact_analyzer import ImpactAnalyzer, ImpactReport
from smart_burn_in.selection.module_graph import ModuleGraphBuilder
from smart_burn_in.selection.patterns import FileCategory
from smart_burn_in.selection.test_selector import SelectionPolicy, TestRunPlan
from smart_burn_in.utils import console, get_logger

logger = get_logger("runner")


@dataclass
class BurnInOptions:
    """运行选项."""

    base_branch: str = "main"
    config_path: Optional[str] = None
    shard: Optional[str] = None
    repo_path: str = "."
    ci: bool = False


@dataclass
class BurnInResult:
    """一次运行的决策结果."""

    changed: ChangedFileSet
    plan: TestRunPlan
    command: Optional[List[str]]
    impact: Optional[ImpactReport] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_ref": self.changed.base_ref,
            "changed_files": {
                category.value: list(self.changed.get_by_category(category))
                for category in FileCategory
            },
            "plan": self.plan.to_dict(),
            "command": self.command,
        }


class BurnInRunner:
    """Burn-in 运行器."""

    def __init__(
        self,
        options: Optional[BurnInOptions] = None,
        config: Optional[BurnInConfig] = None,
        change_detector: Optional[ChangeDetector] = None,
        graph_builder: Optional[ModuleGraphBuilder] = None,
    ):
        self.options = options or BurnInOptions()
        self.config = config or load_config(
            self.options.config_path,
            root=Path(self.options.repo_path),
            is_ci=self.options.ci,
        )
        self._detector = change_detector or ChangeDetector(self.options.repo_path, self.config)
        self._graph_builder = graph_builder
        self._policy = SelectionPolicy(self.config)
        self._command_builder = CommandBuilder(
            self.config,
            base_ref=self.options.base_branch,
            shard_override=self.options.shard,
        )

    def plan(self) -> BurnInResult:
        """计算执行计划和命令，不执行测试."""
        base_branch = self.options.base_branch
        console.print("🔍 Smart Burn-in Test Runner")
        console.print(f"🌳 Base branch: {escape(base_branch)}")

        changed = self._detector.get_changed_files(base_branch)
        if changed.is_empty:
            console.print("✅ No changes detected. Nothing to burn-in.")
        else:
            console.print(f"📝 Found {len(changed.all_files)} changed file(s)")

        impact: Optional[ImpactReport] = None
        if self._policy.requires_analysis(changed):
            impact = ImpactAnalyzer(self._get_graph_builder(), self.config).analyze(changed)
            plan = self._policy.decide(changed, impact.affected_tests, impact.unavailable_reason)
        else:
            plan = self._policy.decide(changed, None)

        command = self._command_builder.build(plan)
        return BurnInResult(changed=changed, plan=plan, command=command, impact=impact)

    def run(self) -> BurnInResult:
        """执行完整流程.

        Raises:
            BurnInExecutionFailed: 测试运行器以非零状态退出
        """
        result = self.plan()
        self.report(result)

        if result.command is None:
            return result

        self.execute(result.command)
        return result

    def report(self, result: BurnInResult) -> None:
        """输出选择原因和命令."""
        console.print("\n🎯 Test execution plan:")
        console.print(f"  {escape(result.plan.reason)}")

        if result.command is None:
            console.print("ℹ️  No tests need to be run based on the changes.")
            return

        if result.plan.tests is not None:
            console.print(f"  Tests to run: {len(result.plan.tests)}")
            for test in result.plan.tests:
                console.print(f"    - {escape(test)}")

        console.print("\n📦 Command to execute:")
        console.print(f"  {escape(shlex.join(result.command))}")

    def execute(self, command: List[str]) -> int:
        """同步执行运行器命令，子进程继承标准输入输出.

        burn-in 标记只传给子进程环境，不修改当前进程环境。
        """
        env = {**os.environ, self.config.burn_in_marker: "true"}
        console.print("\n🚀 Starting burn-in tests...\n")
        logger.debug(f"Executing: {shlex.join(command)}")

        try:
            completed = subprocess.run(command, cwd=self._working_dir(), env=env, check=False)
        except FileNotFoundError as e:
            raise BurnInExecutionFailed(
                f"Test runner not found: {command[0]}",
                command=command,
            ) from e

        if completed.returncode != 0:
            console.print("\n[red]❌ Burn-in tests failed[/red]")
            raise BurnInExecutionFailed(
                f"Burn-in tests failed with exit code {completed.returncode}",
                exit_code=completed.returncode,
                command=command,
            )

        console.print("\n[green]✅ Burn-in tests completed successfully![/green]")
        return completed.returncode

    def _get_graph_builder(self) -> ModuleGraphBuilder:
        if self._graph_builder is None:
            self._graph_builder = ModuleGraphBuilder(
                str(self._working_dir()),
                self.config,
                tracked_files=self._detector.list_tracked_files,
            )
        return self._graph_builder

    def _working_dir(self) -> Path:
        return Path(self._detector.root)


def run_burn_in(options: Optional[BurnInOptions] = None) -> BurnInResult:
    """运行 burn-in (便捷入口)."""
    return BurnInRunner(options).run()
