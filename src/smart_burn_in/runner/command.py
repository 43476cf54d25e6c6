"""测试运行器命令构建."""

from typing import List, Optional

from smart_burn_in.config import BurnInConfig
from smart_burn_in.selection.test_selector import TestRunPlan

SHARD_FLAG = "--shard="


class CommandBuilder:
    """把执行计划渲染为运行器命令行.

    顺序: 基础命令, 测试文件或 --only-changed, 计划附加参数, 外部分片覆盖,
    最后是 --repeat-each / --retries。
    """

    def __init__(
        self,
        config: BurnInConfig,
        base_ref: str = "main",
        shard_override: Optional[str] = None,
    ):
        self._config = config
        self._base_ref = base_ref
        self._shard_override = shard_override

    def build(self, plan: TestRunPlan) -> Optional[List[str]]:
        """构建命令；计划为显式空列表时返回 None (无需运行)."""
        if plan.is_empty:
            return None

        command = list(self._config.runner_command)

        if plan.tests is None:
            command.append(f"--only-changed={self._base_ref}")
        else:
            command.extend(plan.tests)

        for flag in plan.flags:
            if self._shard_override and flag.startswith(SHARD_FLAG):
                continue
            if flag not in command:
                command.append(flag)

        if self._shard_override:
            command.append(f"{SHARD_FLAG}{self._shard_override}")

        command.extend(self.execution_flags())
        return command

    def execution_flags(self) -> List[str]:
        burn_in = self._config.burn_in
        return [
            f"--repeat-each={burn_in.repeat_each}",
            f"--retries={burn_in.retries}",
        ]
