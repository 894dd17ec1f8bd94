#!/usr/bin/env python3
"""Build orchestration helper for Sail.toml C++ projects."""

import importlib.metadata
import os
import shlex
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import Callable, Optional, Sequence


MANIFEST_FILE_NAME = "Sail.toml"
BUILD_DESCRIPTION_FILE_NAME = "CMakeLists.txt"
SOURCE_DIR_NAME = "src"
TARGET_DIR_NAME = "target"
BUILD_SUBDIR_NAME = "build"
PROJECT_NAME_MARKER = 'name = "'
DEFAULT_CMAKE_COMMAND = "cmake"
DEFAULT_MIN_CMAKE = "3.21"
DEFAULT_CXX_STANDARD = "17"
DEFAULT_PROJECT_VERSION = "0.1.0"
DEFAULT_EXECUTABLE_SUFFIX = ".exe"
COMMAND_NOT_EXECUTABLE_EXIT_CODE = 126
COMMAND_NOT_FOUND_EXIT_CODE = 127
USAGE_EXIT_CODE = 2


class Failure(IntEnum):
    """Failure kinds; each value is the exit status reported for it."""

    PROJECT_NOT_FOUND = 3
    MANIFEST_UNREADABLE = 4
    MANIFEST_INVALID = 5
    MISSING_SOURCES = 6
    FILESYSTEM_ERROR = 7
    DESCRIPTION_WRITE_FAILED = 8
    CONFIGURE_FAILED = 9
    BUILD_FAILED = 10
    ARTIFACT_MISSING = 11


class BuildMode(str, Enum):
    DEBUG = "Debug"
    RELEASE = "Release"

    @property
    def build_type(self) -> str:
        return self.value

    @property
    def target_subdir(self) -> str:
        return self.value.lower()

    @classmethod
    def from_release_flag(cls, release: bool) -> "BuildMode":
        return cls.RELEASE if release else cls.DEBUG


Status = int
NameResult = tuple[Status, Optional[str]]
BuildResult = tuple[Status, Optional[Path]]
PathLike = Path | str
Executor = Callable[[Sequence[str]], int]


def _quote_posix(path: str) -> str:
    return shlex.quote(path)


def _quote_windows(path: str) -> str:
    return f'"{path}"'


@dataclass(frozen=True)
class PlatformPolicy:
    """Executable naming and shell quoting rules for one platform family."""

    name: str
    exe_suffix: str
    quote: Callable[[str], str]


POSIX_POLICY = PlatformPolicy(name="posix", exe_suffix="", quote=_quote_posix)
WINDOWS_POLICY = PlatformPolicy(
    name="nt", exe_suffix=DEFAULT_EXECUTABLE_SUFFIX, quote=_quote_windows
)
PLATFORM_POLICIES = {
    POSIX_POLICY.name: POSIX_POLICY,
    WINDOWS_POLICY.name: WINDOWS_POLICY,
}


def host_policy(platform_key: Optional[str] = None) -> PlatformPolicy:
    """Return the policy for ``platform_key`` (defaults to ``os.name``)."""
    key = platform_key if platform_key is not None else os.name
    return PLATFORM_POLICIES.get(key, POSIX_POLICY)


def quote_path(path: PathLike, policy: Optional[PlatformPolicy] = None) -> str:
    """Escape a path for inclusion in a shell command line."""
    policy = policy if policy is not None else host_policy()
    return policy.quote(str(path))


def artifact_path(
    target_dir: PathLike,
    project_name: str,
    policy: Optional[PlatformPolicy] = None,
) -> Path:
    """Compute where the toolchain places the project executable."""
    policy = policy if policy is not None else host_policy()
    return Path(target_dir) / f"{project_name}{policy.exe_suffix}"


class SailConfigManager:
    def __init__(
        self,
        cmake_command: str = DEFAULT_CMAKE_COMMAND,
        cmake_generator: Optional[str] = None,
        cxx_standard: str = DEFAULT_CXX_STANDARD,
        min_cmake: str = DEFAULT_MIN_CMAKE,
    ):
        self._cmake_command = cmake_command
        self._cmake_generator = cmake_generator
        self._cxx_standard = cxx_standard
        self._min_cmake = min_cmake

    @property
    def cmake_command(self) -> str:
        return self._cmake_command

    @property
    def cmake_generator(self) -> Optional[str]:
        return self._cmake_generator

    @property
    def cxx_standard(self) -> str:
        return self._cxx_standard

    @property
    def min_cmake(self) -> str:
        return self._min_cmake

    def set_cmake_command(self, value: str) -> None:
        self._cmake_command = value

    def set_cmake_generator(self, value: Optional[str]) -> None:
        self._cmake_generator = value

    def set_cxx_standard(self, value: str) -> None:
        self._cxx_standard = value

    def set_min_cmake(self, value: str) -> None:
        self._min_cmake = value

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "cmake_command": self._cmake_command,
            "cmake_generator": self._cmake_generator,
            "cxx_standard": self._cxx_standard,
            "min_cmake": self._min_cmake,
        }

    @classmethod
    def from_dict(cls, config: dict[str, Optional[str]]) -> "SailConfigManager":
        return cls(
            cmake_command=config["cmake_command"] or DEFAULT_CMAKE_COMMAND,
            cmake_generator=config["cmake_generator"],
            cxx_standard=config["cxx_standard"] or DEFAULT_CXX_STANDARD,
            min_cmake=config["min_cmake"] or DEFAULT_MIN_CMAKE,
        )


# Tool configuration manager
config_manager = SailConfigManager()


def _apply_env_overrides() -> None:
    manager = globals()["config_manager"]
    cmake_override = os.environ.get("SAIL_CMAKE")
    if cmake_override:
        manager.set_cmake_command(cmake_override)
    generator_override = os.environ.get("SAIL_CMAKE_GENERATOR")
    if generator_override:
        manager.set_cmake_generator(generator_override)
    standard_override = os.environ.get("SAIL_CXX_STANDARD")
    if standard_override:
        manager.set_cxx_standard(standard_override.strip())
    min_cmake_override = os.environ.get("SAIL_MIN_CMAKE")
    if min_cmake_override:
        manager.set_min_cmake(min_cmake_override.strip())


def info(message: str) -> None:
    """Print a standard informational message."""
    print(f"[sail] {message}")


def warning(message: str) -> None:
    print(f"warning: {message}", file=sys.stderr)


def error(message: str) -> None:
    """Print a standardized error message to stderr."""
    print(f"error: {message}", file=sys.stderr)


def run_cmd(cmd: Sequence[str]) -> int:
    """Run a subprocess command and return the exit code.

    Output is not captured; the child writes straight to the terminal.
    """
    print("+", " ".join(quote_path(part) for part in cmd))
    try:
        completed = subprocess.run(list(cmd))
    except FileNotFoundError:
        return COMMAND_NOT_FOUND_EXIT_CODE
    except OSError as exc:
        error(f"failed to run {cmd[0]}: {exc}")
        return COMMAND_NOT_EXECUTABLE_EXIT_CODE
    return completed.returncode


def locate_project_root(start_dir: Optional[PathLike] = None) -> Optional[Path]:
    """Find the nearest directory at or above ``start_dir`` holding a manifest."""
    start = start_dir if start_dir is not None else Path.cwd()
    current = Path(os.path.abspath(start))
    while True:
        if (current / MANIFEST_FILE_NAME).is_file():
            return current
        if current.parent == current:
            return None
        current = current.parent


def read_project_name(manifest_path: PathLike) -> NameResult:
    """Extract the project name from a manifest with a line scan.

    The first line containing ``name = "`` wins, whatever section it sits
    in, so a dependency entry placed above ``[project]`` shadows the real
    name. A marker line without a closing quote is skipped.

    Returns (0, name) on success, or (Failure, None) with an error printed.
    """
    manifest_path = Path(manifest_path)
    try:
        with manifest_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                index = line.find(PROJECT_NAME_MARKER)
                if index == -1:
                    continue
                start = index + len(PROJECT_NAME_MARKER)
                end = line.find('"', start)
                if end == -1:
                    continue
                name = line[start:end]
                if not name:
                    break
                return (0, name)
    except (OSError, UnicodeDecodeError) as exc:
        error(f"failed to read {manifest_path}: {exc}")
        return (Failure.MANIFEST_UNREADABLE, None)
    error(f"could not find project name in {manifest_path}")
    return (Failure.MANIFEST_INVALID, None)


def _render_cmakelists(project_name: str) -> str:
    manager = globals()["config_manager"]
    lines = [
        f"cmake_minimum_required(VERSION {manager.min_cmake})",
        "",
        f"project({project_name} VERSION {DEFAULT_PROJECT_VERSION} LANGUAGES CXX)",
        "",
        f"set(CMAKE_CXX_STANDARD {manager.cxx_standard})",
        "set(CMAKE_CXX_STANDARD_REQUIRED ON)",
        "",
        "# Collect all source files",
        f"file(GLOB_RECURSE SOURCES {SOURCE_DIR_NAME}/*.cpp {SOURCE_DIR_NAME}/*.c)",
        "",
        "# Create executable",
        f"add_executable({project_name} ${{SOURCES}})",
        "",
        "# Set output directory based on build type",
        f"set_target_properties({project_name} PROPERTIES",
    ]
    for mode in BuildMode:
        lines.append(
            f"    RUNTIME_OUTPUT_DIRECTORY_{mode.build_type.upper()} "
            f'"${{CMAKE_SOURCE_DIR}}/{TARGET_DIR_NAME}/{mode.target_subdir}"'
        )
    lines.extend(
        [
            ")",
            "",
            "# Ensure consistent output name across platforms",
            f'set_target_properties({project_name} PROPERTIES OUTPUT_NAME "{project_name}")',
        ]
    )
    return "\n".join(lines) + "\n"


def _write_text_file(path: Path, contents: str) -> int:
    """Write UTF-8 text through a temporary sibling so readers never see a partial file."""
    temp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_name = handle.name
            handle.write(contents)
        os.replace(temp_name, path)
    except OSError as exc:
        if temp_name is not None:
            Path(temp_name).unlink(missing_ok=True)
        error(f"failed to write {path}: {exc}")
        return 1
    return 0


def ensure_build_description(root: PathLike, project_name: str) -> Status:
    """Create CMakeLists.txt under ``root`` unless one already exists."""
    cmake_path = Path(root) / BUILD_DESCRIPTION_FILE_NAME
    if cmake_path.exists():
        return 0
    if _write_text_file(cmake_path, _render_cmakelists(project_name)) != 0:
        return Failure.DESCRIPTION_WRITE_FAILED
    info(f"created {cmake_path}")
    return 0


# CMake backend adapter.
def cmake_configure_command(
    root: PathLike, build_dir: PathLike, mode: BuildMode
) -> list[str]:
    manager = globals()["config_manager"]
    command = [
        manager.cmake_command,
        f"-DCMAKE_BUILD_TYPE={mode.build_type}",
        "-S",
        str(root),
        "-B",
        str(build_dir),
    ]
    if manager.cmake_generator:
        command.extend(["-G", manager.cmake_generator])
    return command


def cmake_build_command(build_dir: PathLike, mode: BuildMode) -> list[str]:
    manager = globals()["config_manager"]
    return [
        manager.cmake_command,
        "--build",
        str(build_dir),
        "--config",
        mode.build_type,
    ]


def configure_and_build(
    root: PathLike,
    build_dir: PathLike,
    mode: BuildMode,
    execute: Optional[Executor] = None,
) -> Status:
    """Run CMake configure, then build if configure succeeded."""
    execute = execute if execute is not None else run_cmd
    result = execute(cmake_configure_command(root, build_dir, mode))
    if result != 0:
        error(f"CMake configuration failed (exit code {result})")
        return Failure.CONFIGURE_FAILED
    result = execute(cmake_build_command(build_dir, mode))
    if result != 0:
        error(f"build failed (exit code {result})")
        return Failure.BUILD_FAILED
    return 0


def target_dir_for(root: PathLike, mode: BuildMode) -> Path:
    return Path(root) / TARGET_DIR_NAME / mode.target_subdir


def build_project(
    mode: BuildMode,
    start_dir: Optional[PathLike] = None,
    execute: Optional[Executor] = None,
    policy: Optional[PlatformPolicy] = None,
) -> BuildResult:
    """Locate the project, generate CMakeLists.txt if needed and build it.

    Returns (0, artifact_path) on success. The artifact is not checked for
    existence; callers decide how a missing binary is reported.
    """
    project_root = locate_project_root(start_dir)
    if project_root is None:
        error(
            f"{MANIFEST_FILE_NAME} not found in current directory or any parent "
            "directory; run 'sail init' first"
        )
        return (Failure.PROJECT_NOT_FOUND, None)

    result, project_name = read_project_name(project_root / MANIFEST_FILE_NAME)
    if result or project_name is None:
        return (result, None)

    if not (project_root / SOURCE_DIR_NAME).is_dir():
        error(f"{SOURCE_DIR_NAME} directory not found in {project_root}")
        return (Failure.MISSING_SOURCES, None)

    target_dir = target_dir_for(project_root, mode)
    build_dir = target_dir / BUILD_SUBDIR_NAME
    try:
        build_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        error(f"failed to create {build_dir}: {exc}")
        return (Failure.FILESYSTEM_ERROR, None)

    result = ensure_build_description(project_root, project_name)
    if result:
        return (result, None)

    result = configure_and_build(project_root, build_dir, mode, execute)
    if result:
        return (result, None)

    return (0, artifact_path(target_dir, project_name, policy))


def build_command(
    release: bool,
    start_dir: Optional[PathLike] = None,
    execute: Optional[Executor] = None,
) -> int:
    """Build the project and report where the executable landed."""
    mode = BuildMode.from_release_flag(release)
    info("configuring project")
    info(f"compiling {mode.target_subdir}")
    result, exe_path = build_project(mode, start_dir, execute)
    if result or exe_path is None:
        return result
    if exe_path.exists():
        info(
            f"finished {mode.target_subdir} [{mode.build_type}] target(s) in "
            f"{TARGET_DIR_NAME}/{mode.target_subdir}/"
        )
    else:
        warning(f"executable not found at expected location {exe_path}")
    return 0


def run_command(
    release: bool,
    args: Sequence[str],
    start_dir: Optional[PathLike] = None,
    execute: Optional[Executor] = None,
) -> int:
    """Build the project, then run its executable with ``args``."""
    mode = BuildMode.from_release_flag(release)
    execute = execute if execute is not None else run_cmd
    info(f"compiling {mode.target_subdir}")
    result, exe_path = build_project(mode, start_dir, execute)
    if result or exe_path is None:
        return result
    if not exe_path.exists():
        error(f"executable not found at {exe_path}")
        return Failure.ARTIFACT_MISSING
    info(f"running `{exe_path.name}`")
    return execute([str(exe_path), *args])


def _render_manifest(project_name: str) -> str:
    return (
        "[project]\n"
        f'name = "{project_name}"\n'
        f'version = "{DEFAULT_PROJECT_VERSION}"\n'
        "\n"
        "[dependencies]\n"
    )


def _render_main_source() -> str:
    return (
        "#include <iostream>\n\n"
        "int main() {\n"
        '    std::cout << "Hello, World!" << std::endl;\n'
        "    return 0;\n"
        "}\n"
    )


def init_command(base_dir: Optional[Path] = None) -> int:
    """Write a Sail.toml named after ``base_dir`` if none exists there."""
    base_dir = base_dir if base_dir is not None else Path.cwd()
    manifest_path = base_dir / MANIFEST_FILE_NAME
    if manifest_path.exists():
        error(f"{MANIFEST_FILE_NAME} already exists in {base_dir}")
        return 1
    project_name = base_dir.absolute().name
    if _write_text_file(manifest_path, _render_manifest(project_name)) != 0:
        return 1
    info(f"created {MANIFEST_FILE_NAME}")
    return 0


def _valid_new_project_name(name: str) -> bool:
    if not name or name in {".", ".."}:
        return False
    return "/" not in name and os.sep not in name and '"' not in name


def new_command(name: str, parent_dir: Optional[Path] = None) -> int:
    """Create ``name/`` with a manifest and a starter source file."""
    parent_dir = parent_dir if parent_dir is not None else Path.cwd()
    if not _valid_new_project_name(name):
        error(f"invalid project name '{name}'")
        return USAGE_EXIT_CODE
    project_dir = parent_dir / name
    if project_dir.exists():
        error(f"directory '{name}' already exists")
        return 1
    try:
        (project_dir / SOURCE_DIR_NAME).mkdir(parents=True)
    except OSError as exc:
        error(f"failed to create project: {exc}")
        return 1
    result = _write_text_file(project_dir / MANIFEST_FILE_NAME, _render_manifest(name))
    if result != 0:
        return result
    result = _write_text_file(
        project_dir / SOURCE_DIR_NAME / "main.cpp", _render_main_source()
    )
    if result != 0:
        return result
    info(f"created project '{name}'")
    return 0


def usage() -> None:
    print("usage: sail <command> [args...]")
    print("")
    print("commands:")
    print("  init (i)                 create Sail.toml in the current directory")
    print("  new (n) <name>           create a new project directory")
    print("  build (b) [--release]    compile the current project")
    print("  run (r) [--release]      compile and run the current project")
    print("  help (h)                 show this help text")
    print("")
    print("options:")
    print("  -v, --version            print the sail version")
    print("  -r, --release            build in release mode")
    print("")
    print("environment:")
    print("  SAIL_CMAKE               cmake executable to invoke")
    print("  SAIL_CMAKE_GENERATOR     generator passed to cmake -G")
    print("  SAIL_CXX_STANDARD        C++ standard for generated CMakeLists.txt")
    print("  SAIL_MIN_CMAKE           minimum CMake version for generated CMakeLists.txt")
    print("")
    print("examples:")
    print("  sail new hello")
    print("  sail build --release")
    print("  sail run -- --verbose input.txt")


def _version() -> str:
    try:
        return importlib.metadata.version("sail")
    except importlib.metadata.PackageNotFoundError:
        return DEFAULT_PROJECT_VERSION


def _split_release_flag(args: Sequence[str]) -> tuple[bool, list[str], list[str]]:
    """Split args into (release, leftover options, pass-through args after --)."""
    release = False
    leftover = []
    passthrough: list[str] = []
    for index, arg in enumerate(args):
        if arg == "--":
            passthrough = list(args[index + 1 :])
            break
        if arg in {"--release", "-r"}:
            release = True
            continue
        leftover.append(arg)
    return release, leftover, passthrough


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        usage()
        return USAGE_EXIT_CODE

    command = argv[0]
    if command in {"-v", "--version"}:
        print(f"sail {_version()}")
        return 0
    args = argv[1:]

    aliases = {
        "i": "init",
        "n": "new",
        "b": "build",
        "r": "run",
        "h": "help",
    }
    command = aliases.get(command, command)
    if command in {"help", "-h", "--help"}:
        usage()
        return 0

    _apply_env_overrides()

    if command == "init":
        if args:
            error("usage: sail init")
            return USAGE_EXIT_CODE
        return init_command()
    if command == "new":
        if len(args) != 1:
            error("usage: sail new <name>")
            return USAGE_EXIT_CODE
        return new_command(args[0].strip())
    if command == "build":
        release, leftover, passthrough = _split_release_flag(args)
        if leftover or passthrough:
            error("usage: sail build [--release]")
            return USAGE_EXIT_CODE
        return build_command(release)
    if command == "run":
        release, leftover, passthrough = _split_release_flag(args)
        if leftover:
            error("usage: sail run [--release] [-- args...]")
            return USAGE_EXIT_CODE
        return run_command(release, passthrough)

    error(f"unknown command '{command}'")
    usage()
    return USAGE_EXIT_CODE


if __name__ == "__main__":
    raise SystemExit(main())
