"""智能测试选择模块."""

from smart_burn_in.selection.patterns import (
    FileCategory,
    classify,
    matches,
)
from smart_burn_in.selection.change_detector import (
    ChangeDetector,
    ChangedFileSet,
    validate_reference,
)
from smart_burn_in.selection.module_graph import (
    DependencyGraph,
    ModuleGraphBuilder,
)
from smart_burn_in.selection.impact_analyzer import (
    ImpactAnalyzer,
    ImpactReport,
    MatchStrictness,
    PathMatcher,
    find_affected,
    reachable,
)
from smart_burn_in.selection.test_selector import (
    PlanMode,
    SelectionPolicy,
    TestRunPlan,
)

__all__ = [
    "FileCategory",
    "classify",
    "matches",
    "ChangeDetector",
    "ChangedFileSet",
    "validate_reference",
    "DependencyGraph",
    "ModuleGraphBuilder",
    "ImpactAnalyzer",
    "ImpactReport",
    "MatchStrictness",
    "PathMatcher",
    "find_affected",
    "reachable",
    "PlanMode",
    "SelectionPolicy",
    "TestRunPlan",
]
