"""端到端测试: 在临时 git 仓库中计算 burn-in 计划."""

import shutil
from pathlib import Path

import git
import pytest

from smart_burn_in.config import BurnInConfig
from smart_burn_in.exceptions import UnknownReferenceError
from smart_burn_in.runner.burn_in import BurnInOptions, BurnInRunner
from smart_burn_in.selection.change_detector import ChangeDetector
from smart_burn_in.selection.test_selector import PlanMode

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git 不可用")

AUTHOR = git.Actor("Burn In", "burn-in@example.com")

FILES = {
    "tsconfig.json": '{"compilerOptions": {"baseUrl": ".", "paths": {"@lib/*": ["src/lib/*"]}}}\n',
    "src/lib/util.ts": "export const add = (a: number, b: number) => a + b;\n",
    "src/pages/home.ts": "import { add } from '@lib/util';\nexport const total = add(1, 2);\n",
    "src/pages/about.ts": "export const about = 'about';\n",
    "tests/home.spec.ts": "import { total } from '../src/pages/home';\n",
    "tests/about.spec.ts": "import { about } from '../src/pages/about';\n",
    "tests/util.spec.ts": "import { add } from '../src/lib/util';\n",
    "README.md": "# demo\n",
}


def _commit(repo, files, message):
    root = Path(repo.working_tree_dir)
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    repo.index.add(list(files))
    repo.index.commit(message, author=AUTHOR, committer=AUTHOR)


@pytest.fixture
def repo(tmp_path):
    """main 分支上带初始提交、feature 分支已检出的仓库."""
    repo = git.Repo.init(tmp_path)
    repo.git.symbolic_ref("HEAD", "refs/heads/main")
    _commit(repo, FILES, "initial")
    repo.git.checkout("-b", "feature")
    return repo


def _plan(repo, config=None):
    runner = BurnInRunner(
        BurnInOptions(base_branch="main", repo_path=repo.working_tree_dir),
        config=config or BurnInConfig(),
    )
    return runner.plan()


class TestEndToEnd:
    """端到端计划测试."""

    def test_no_changes(self, repo):
        """测试分支没有提交."""
        result = _plan(repo)

        assert result.plan.is_empty
        assert result.command is None

    def test_readme_only(self, repo):
        """测试只修改文档."""
        _commit(repo, {"README.md": "# demo\n\nmore\n"}, "docs")

        result = _plan(repo)

        assert result.plan.is_empty
        assert "skip-pattern" in result.plan.reason

    def test_transitive_change(self, repo):
        """测试修改被间接依赖的模块."""
        _commit(repo, {"src/lib/util.ts": "export const add = (a, b) => b + a;\n"}, "util")

        result = _plan(repo)

        assert result.plan.mode == PlanMode.TARGETED
        assert sorted(result.plan.tests) == ["tests/home.spec.ts", "tests/util.spec.ts"]
        assert result.command[-2:] == ["--repeat-each=3", "--retries=0"]

    def test_unrelated_change(self, repo):
        """测试修改只影响一个测试的模块."""
        _commit(repo, {"src/pages/about.ts": "export const about = 'About';\n"}, "about")

        result = _plan(repo)

        assert result.plan.tests == ("tests/about.spec.ts",)

    def test_changed_files_detected(self, repo):
        """测试 git diff 结果."""
        _commit(repo, {"src/pages/about.ts": "export const about = 1;\n"}, "about")

        changed = ChangeDetector(repo.working_tree_dir, BurnInConfig()).get_changed_files("main")

        assert changed.all_files == ("src/pages/about.ts",)

    def test_unknown_branch(self, repo):
        """测试基准分支不存在."""
        detector = ChangeDetector(repo.working_tree_dir, BurnInConfig())

        with pytest.raises(UnknownReferenceError):
            detector.get_changed_files("does-not-exist")
