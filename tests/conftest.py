import sys
from pathlib import Path

import pytest  # type: ignore[import-not-found]

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sail import cli as main  # noqa: E402


@pytest.fixture(autouse=True)
def reset_sail_config():
    original_manager = main.SailConfigManager.from_dict(main.config_manager.to_dict())
    main.config_manager = main.SailConfigManager()
    yield
    main.config_manager = original_manager


class RecordingExecutor:
    """Records commands and answers with scripted exit codes."""

    def __init__(self, exit_codes=None, on_call=None):
        self.calls = []
        self._exit_codes = list(exit_codes or [])
        self._on_call = on_call

    def __call__(self, cmd):
        self.calls.append(list(cmd))
        if self._on_call is not None:
            self._on_call(list(cmd))
        if self._exit_codes:
            return self._exit_codes.pop(0)
        return 0


@pytest.fixture
def recorder():
    return RecordingExecutor


@pytest.fixture
def sail_project(tmp_path):
    project_dir = tmp_path / "demo"
    (project_dir / "src").mkdir(parents=True)
    (project_dir / "Sail.toml").write_text(
        '[project]\nname = "demo"\nversion = "0.1.0"\n\n[dependencies]\n',
        encoding="utf-8",
    )
    (project_dir / "src" / "main.cpp").write_text(
        "int main() { return 0; }\n", encoding="utf-8"
    )
    return project_dir


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--type",
        action="store",
        default="all",
        choices=("unit", "integration", "all"),
        help="Select which tests to run: unit, integration, or all.",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    selected = config.getoption("--type")
    if selected == "all":
        return

    skip_integration = pytest.mark.skip(reason="skipped by --type unit")
    skip_unit = pytest.mark.skip(reason="skipped by --type integration")

    for item in items:
        is_integration = item.get_closest_marker("integration") is not None
        if selected == "unit" and is_integration:
            item.add_marker(skip_integration)
        elif selected == "integration" and not is_integration:
            item.add_marker(skip_unit)
