"""Burn-in 执行模块."""

from smart_burn_in.runner.command import CommandBuilder
from smart_burn_in.runner.burn_in import (
    BurnInOptions,
    BurnInResult,
    BurnInRunner,
    run_burn_in,
)

__all__ = [
    "CommandBuilder",
    "BurnInOptions",
    "BurnInResult",
    "BurnInRunner",
    "run_burn_in",
]
