"""CLI 入口模块."""

import json
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich import box
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from smart_burn_in import __version__
from smart_burn_in.config import Settings, load_config, parse_shard
from smart_burn_in.exceptions import (
    BurnInError,
    BurnInExecutionFailed,
    ConfigurationError,
)
from smart_burn_in.runner import BurnInOptions, BurnInRunner
from smart_burn_in.utils import console, setup_logging

app = typer.Typer(
    name="smart-burn-in",
    help="Run burn-in only for the tests affected by your changes",
    no_args_is_help=True,
)


class ExitCode(Enum):
    SUCCESS = 0
    TESTS_FAILED = 1
    CONFIGURATION_ERROR = 3
    ENVIRONMENT_ERROR = 4


def version_callback(value: bool) -> None:
    """版本回调."""
    if value:
        console.print(f"[bold blue]smart-burn-in[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
) -> None:
    """Smart Burn-in: 基于依赖分析的 CI 测试选择."""
    pass


def _load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        first = e.errors()[0]
        console.print(f"[red]Configuration error: {escape(str(first.get('msg')))}[/red]")
        raise typer.Exit(ExitCode.CONFIGURATION_ERROR.value)


def _build_options(
    settings: Settings,
    base_branch: Optional[str],
    config_path: Optional[str],
    shard: Optional[str],
    repo: Path,
) -> BurnInOptions:
    shard_value = shard or settings.shard
    if shard_value:
        try:
            shard_value = parse_shard(shard_value)
        except ValueError as e:
            console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
            raise typer.Exit(ExitCode.CONFIGURATION_ERROR.value)

    return BurnInOptions(
        base_branch=base_branch or settings.base_branch,
        config_path=config_path or settings.config,
        shard=shard_value,
        repo_path=str(repo),
        ci=settings.ci,
    )


def _exit_for(error: BurnInError) -> int:
    if isinstance(error, BurnInExecutionFailed):
        return error.exit_code or ExitCode.TESTS_FAILED.value
    if isinstance(error, ConfigurationError):
        return ExitCode.CONFIGURATION_ERROR.value
    return ExitCode.ENVIRONMENT_ERROR.value


def _setup(settings: Settings, verbose: bool) -> None:
    setup_logging("DEBUG" if verbose else settings.log_level, settings.log_file)


BASE_BRANCH_OPTION = typer.Option(
    None, "--base-branch", "-b", help="基准分支 (默认: $BURN_IN_BASE_BRANCH 或 main)"
)
CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="配置文件路径 (YAML/JSON)"
)
SHARD_OPTION = typer.Option(
    None, "--shard", "-s", help="分片覆盖，如 1/4 (默认: $BURN_IN_SHARD 或 $PW_SHARD)"
)
REPO_OPTION = typer.Option(
    Path("."), "--repo", "-r", help="仓库路径", exists=True, file_okay=False, dir_okay=True
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="输出调试日志")


@app.command(name="run")
def run_command(
    base_branch: Optional[str] = BASE_BRANCH_OPTION,
    config_path: Optional[str] = CONFIG_OPTION,
    shard: Optional[str] = SHARD_OPTION,
    repo: Path = REPO_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """分析变更并运行受影响的测试."""
    settings = _load_settings()
    _setup(settings, verbose)
    options = _build_options(settings, base_branch, config_path, shard, repo)

    try:
        BurnInRunner(options).run()
    except BurnInError as e:
        console.print(f"[red]❌ {escape(e.message)}[/red]")
        raise typer.Exit(_exit_for(e))


@app.command(name="plan")
def plan_command(
    base_branch: Optional[str] = BASE_BRANCH_OPTION,
    config_path: Optional[str] = CONFIG_OPTION,
    shard: Optional[str] = SHARD_OPTION,
    repo: Path = REPO_OPTION,
    verbose: bool = VERBOSE_OPTION,
    as_json: bool = typer.Option(False, "--json", help="以 JSON 输出计划"),
) -> None:
    """只计算执行计划，不运行测试."""
    settings = _load_settings()
    _setup(settings, verbose)
    options = _build_options(settings, base_branch, config_path, shard, repo)

    try:
        runner = BurnInRunner(options)
        result = runner.plan()
    except BurnInError as e:
        console.print(f"[red]❌ {escape(e.message)}[/red]")
        raise typer.Exit(_exit_for(e))

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        runner.report(result)


@app.command(name="config")
def show_config(
    config_path: Optional[str] = CONFIG_OPTION,
    repo: Path = REPO_OPTION,
) -> None:
    """显示合并后的 burn-in 配置."""
    settings = _load_settings()
    try:
        config = load_config(config_path or settings.config, root=repo, is_ci=settings.ci)
    except ConfigurationError as e:
        console.print(f"[red]❌ {escape(e.message)}[/red]")
        raise typer.Exit(ExitCode.CONFIGURATION_ERROR.value)

    console.print(Panel.fit(
        "[bold blue]⚙️ Burn-in 配置[/bold blue]",
        border_style="blue"
    ))

    table = Table(box=box.ROUNDED)
    table.add_column("配置项", style="cyan")
    table.add_column("值", style="green")

    table.add_row("Test patterns", escape(", ".join(config.test_patterns)))
    table.add_row("Skip patterns", escape(", ".join(config.skip_burn_in_patterns)))
    table.add_row("Common patterns", escape(", ".join(config.common_burn_in_patterns) or "-"))
    table.add_row("Repeat each", str(config.burn_in.repeat_each))
    table.add_row("Retries", str(config.burn_in.retries))
    table.add_row("Test percentage", f"{config.burn_in_test_percentage:.0%}")
    table.add_row("Common test percentage", f"{config.common_burn_in_test_percentage:.0%}")
    table.add_row("Common test tag", escape(config.common_burn_in_test_tag or "-"))
    table.add_row("Max files for smart mode", str(config.max_files_for_smart_mode or "-"))
    table.add_row("Max depth for run-all", str(config.max_depth_for_run_all or "-"))
    table.add_row("Match strictness", config.match_strictness)
    table.add_row("Runner command", escape(" ".join(config.runner_command)))
    table.add_row("Base branch", escape(settings.base_branch))
    table.add_row("CI", "是" if settings.ci else "否")

    console.print(table)


if __name__ == "__main__":
    app()
