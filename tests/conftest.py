"""测试公共夹具."""

import pytest

ENV_VARS = [
    "CI",
    "PW_SHARD",
    "BURN_IN_BASE_BRANCH",
    "BURN_IN_SHARD",
    "BURN_IN_CONFIG",
    "BURN_IN_CI",
    "BURN_IN_LOG_LEVEL",
    "BURN_IN_LOG_FILE",
    "PW_BURN_IN",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """清理会影响 Settings 的环境变量."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_files(tmp_path):
    """在临时目录中批量写入文件."""

    def _write(files):
        for relative, content in files.items():
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return tmp_path

    return _write
