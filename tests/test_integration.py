import os
import shutil
import subprocess
import sys
from pathlib import Path
import pytest

ROOT = Path(__file__).resolve().parents[1]

requires_toolchain = pytest.mark.skipif(
    shutil.which("cmake") is None
    or not any(shutil.which(cxx) for cxx in ("c++", "g++", "clang++", "cl")),
    reason="cmake and a C++ compiler are required",
)


def _sail(args, cwd):
    return subprocess.run(
        [sys.executable, str(ROOT / "main.py"), *args],
        cwd=cwd,
        check=False,
        capture_output=True,
        text=True,
    )


def _new_project(tmp_path: Path) -> Path:
    result = _sail(["new", "hello"], tmp_path)
    assert result.returncode == 0, result.stderr
    return tmp_path / "hello"


@pytest.mark.integration
def test_cli_build_without_manifest(tmp_path):
    result = _sail(["build"], tmp_path)

    assert result.returncode != 0
    assert "Sail.toml not found" in result.stderr


@pytest.mark.integration
@requires_toolchain
def test_cli_build_command(tmp_path):
    project_dir = _new_project(tmp_path)

    result = _sail(["build"], project_dir / "src")

    exe_name = "hello.exe" if os.name == "nt" else "hello"
    assert result.returncode == 0, result.stderr
    assert (project_dir / "CMakeLists.txt").exists()
    assert (project_dir / "target" / "debug" / exe_name).exists()


@pytest.mark.integration
@requires_toolchain
def test_cli_run_release_command(tmp_path):
    project_dir = _new_project(tmp_path)

    result = _sail(["run", "--release"], project_dir)

    assert result.returncode == 0, result.stderr
    assert "Hello, World!" in result.stdout
