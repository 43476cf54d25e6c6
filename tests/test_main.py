"""CLI 入口单元测试."""

import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from smart_burn_in import __version__
from smart_burn_in.exceptions import (
    BurnInExecutionFailed,
    InvalidReferenceError,
    NotAGitRepositoryError,
)
from smart_burn_in.main import ExitCode, app

runner = CliRunner()


@pytest.fixture
def mock_runner():
    with patch("smart_burn_in.main.BurnInRunner") as runner_cls:
        yield runner_cls


class TestVersion:
    """版本选项测试."""

    def test_version(self):
        """测试 --version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestRunCommand:
    """run 命令测试."""

    def test_success(self, mock_runner, tmp_path):
        """测试运行成功."""
        result = runner.invoke(app, ["run", "--repo", str(tmp_path), "-b", "develop"])

        assert result.exit_code == 0
        options = mock_runner.call_args.args[0]
        assert options.base_branch == "develop"
        assert options.repo_path == str(tmp_path)
        mock_runner.return_value.run.assert_called_once()

    def test_options_from_env(self, mock_runner, tmp_path, monkeypatch):
        """测试从环境变量读取默认值."""
        monkeypatch.setenv("BURN_IN_BASE_BRANCH", "release")
        monkeypatch.setenv("PW_SHARD", "2/4")
        monkeypatch.setenv("CI", "true")

        result = runner.invoke(app, ["run", "--repo", str(tmp_path)])

        assert result.exit_code == 0
        options = mock_runner.call_args.args[0]
        assert options.base_branch == "release"
        assert options.shard == "2/4"
        assert options.ci is True

    def test_cli_shard_overrides_env(self, mock_runner, tmp_path, monkeypatch):
        """测试命令行分片优先于环境变量."""
        monkeypatch.setenv("PW_SHARD", "2/4")

        runner.invoke(app, ["run", "--repo", str(tmp_path), "--shard", "1/2"])

        assert mock_runner.call_args.args[0].shard == "1/2"

    def test_invalid_shard(self, mock_runner, tmp_path):
        """测试非法分片参数."""
        result = runner.invoke(app, ["run", "--repo", str(tmp_path), "--shard", "5/4"])

        assert result.exit_code == ExitCode.CONFIGURATION_ERROR.value
        mock_runner.assert_not_called()

    def test_invalid_shard_env(self, mock_runner, tmp_path, monkeypatch):
        """测试环境变量中的非法分片."""
        monkeypatch.setenv("BURN_IN_SHARD", "bogus")

        result = runner.invoke(app, ["run", "--repo", str(tmp_path)])

        assert result.exit_code == ExitCode.CONFIGURATION_ERROR.value

    def test_tests_failed_propagates_exit_code(self, mock_runner, tmp_path):
        """测试透传运行器退出码."""
        mock_runner.return_value.run.side_effect = BurnInExecutionFailed(exit_code=2)

        result = runner.invoke(app, ["run", "--repo", str(tmp_path)])

        assert result.exit_code == 2

    def test_runner_not_found_exit_code(self, mock_runner, tmp_path):
        """测试运行器不存在时退出码为 1."""
        mock_runner.return_value.run.side_effect = BurnInExecutionFailed("Test runner not found: npx")

        result = runner.invoke(app, ["run", "--repo", str(tmp_path)])

        assert result.exit_code == ExitCode.TESTS_FAILED.value
        assert "Test runner not found" in result.output

    def test_invalid_reference(self, mock_runner, tmp_path):
        """测试非法分支名."""
        mock_runner.return_value.run.side_effect = InvalidReferenceError("a;b")

        result = runner.invoke(app, ["run", "--repo", str(tmp_path)])

        assert result.exit_code == ExitCode.CONFIGURATION_ERROR.value
        assert "Invalid branch name" in result.output

    def test_not_a_repository(self, mock_runner, tmp_path):
        """测试不在 git 仓库中."""
        mock_runner.return_value.run.side_effect = NotAGitRepositoryError(str(tmp_path))

        result = runner.invoke(app, ["run", "--repo", str(tmp_path)])

        assert result.exit_code == ExitCode.ENVIRONMENT_ERROR.value
        assert "Not in a git repository" in result.output


class TestPlanCommand:
    """plan 命令测试."""

    def test_json_output(self, mock_runner, tmp_path):
        """测试 JSON 输出."""
        result_obj = MagicMock()
        result_obj.to_dict.return_value = {"plan": {"tests": ["a.spec.ts"]}, "command": None}
        mock_runner.return_value.plan.return_value = result_obj

        result = runner.invoke(app, ["plan", "--repo", str(tmp_path), "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output[result.output.index("{"):])
        assert payload["plan"]["tests"] == ["a.spec.ts"]
        mock_runner.return_value.run.assert_not_called()

    def test_report_output(self, mock_runner, tmp_path):
        """测试文本输出."""
        result = runner.invoke(app, ["plan", "--repo", str(tmp_path)])

        assert result.exit_code == 0
        mock_runner.return_value.report.assert_called_once_with(
            mock_runner.return_value.plan.return_value
        )


class TestConfigCommand:
    """config 命令测试."""

    def test_show_defaults(self, tmp_path):
        """测试显示默认配置."""
        result = runner.invoke(app, ["config", "--repo", str(tmp_path)])

        assert result.exit_code == 0
        assert "Repeat each" in result.output
        assert "npx playwright test" in result.output

    def test_missing_config_file(self, tmp_path):
        """测试配置文件不存在."""
        result = runner.invoke(app, ["config", "--repo", str(tmp_path), "-c", "nope.yaml"])

        assert result.exit_code == ExitCode.CONFIGURATION_ERROR.value
