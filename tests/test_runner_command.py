"""运行器命令构建单元测试."""

import pytest

from smart_burn_in.config import BurnInConfig, BurnInSettings
from smart_burn_in.runner.command import CommandBuilder
from smart_burn_in.selection.test_selector import TestRunPlan


@pytest.fixture
def config():
    return BurnInConfig(burn_in=BurnInSettings(repeat_each=5, retries=1))


class TestCommandBuilder:
    """CommandBuilder 测试."""

    def test_empty_plan(self, config):
        """测试空计划不生成命令."""
        assert CommandBuilder(config).build(TestRunPlan.nothing("nothing")) is None

    def test_targeted(self, config):
        """测试定向计划."""
        plan = TestRunPlan.targeted(["tests/a.spec.ts", "tests/b.spec.ts"], "found 2")

        assert CommandBuilder(config).build(plan) == [
            "npx", "playwright", "test",
            "tests/a.spec.ts", "tests/b.spec.ts",
            "--repeat-each=5", "--retries=1",
        ]

    def test_fallback_uses_only_changed(self, config):
        """测试回退计划使用运行器的变更过滤."""
        plan = TestRunPlan.fallback("graph failed", flags=["--shard=1/2"])

        assert CommandBuilder(config, base_ref="develop").build(plan) == [
            "npx", "playwright", "test",
            "--only-changed=develop",
            "--shard=1/2",
            "--repeat-each=5", "--retries=1",
        ]

    def test_shard_override_replaces_plan_shard(self, config):
        """测试外部分片覆盖计划分片."""
        plan = TestRunPlan.fallback("graph failed", flags=["--shard=1/2", "--grep=@smoke"])

        command = CommandBuilder(config, shard_override="3/4").build(plan)

        assert "--shard=1/2" not in command
        assert command.count("--shard=3/4") == 1
        assert "--grep=@smoke" in command

    def test_shard_override_on_targeted(self, config):
        """测试定向计划也可以分片."""
        plan = TestRunPlan.targeted(["a.spec.ts"], "found 1")

        command = CommandBuilder(config, shard_override="1/2").build(plan)

        assert command[-3:] == ["--shard=1/2", "--repeat-each=5", "--retries=1"]

    def test_custom_runner(self):
        """测试自定义运行器命令."""
        config = BurnInConfig(runner_command=["pnpm", "exec", "playwright", "test"])
        plan = TestRunPlan.targeted(["a.spec.ts"], "found 1")

        command = CommandBuilder(config).build(plan)

        assert command[:4] == ["pnpm", "exec", "playwright", "test"]

    def test_execution_flags(self, config):
        """测试执行参数."""
        assert CommandBuilder(config).execution_flags() == ["--repeat-each=5", "--retries=1"]

    def test_build_is_idempotent(self, config):
        """测试同一计划多次构建结果一致."""
        builder = CommandBuilder(config, shard_override="1/2")
        plan = TestRunPlan.fallback("graph failed", flags=["--shard=1/4"])

        assert builder.build(plan) == builder.build(plan)
