import shlex
import sys
import textwrap
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

import constconv

TOOL_DIR = Path(__file__).resolve().parent.parent
if str(TOOL_DIR) not in sys.path:
    sys.path.insert(0, str(TOOL_DIR))

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"

ECHO_FORMATTER = (
    sys.executable,
    "-c",
    "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read())",
)
FAILING_FORMATTER = (
    sys.executable,
    "-c",
    "import sys; sys.stderr.write('1:1: expected declaration'); sys.exit(2)",
)


@pytest.fixture(autouse=True)
def go_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> Iterator[Path]:
    goroot = tmp_path_factory.mktemp("goroot")
    monkeypatch.setenv("GOOS", "linux")
    monkeypatch.setenv("GOARCH", "amd64")
    monkeypatch.setenv("GOROOT", str(goroot))
    monkeypatch.setenv("GOMODCACHE", str(tmp_path_factory.mktemp("modcache")))
    monkeypatch.delenv("CGO_ENABLED", raising=False)
    constconv.goroot.cache_clear()
    yield goroot
    constconv.goroot.cache_clear()


@pytest.fixture
def echo_formatter() -> tuple[str, ...]:
    return ECHO_FORMATTER


@pytest.fixture
def echo_formatter_cmd() -> str:
    return shlex.join(ECHO_FORMATTER)


@pytest.fixture
def failing_formatter() -> tuple[str, ...]:
    return FAILING_FORMATTER


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def write_go_package(tmp_path: Path) -> Callable[..., Path]:
    def _write_go_package(files: dict[str, str], subdir: str = "pkg") -> Path:
        directory = tmp_path / subdir
        directory.mkdir(parents=True, exist_ok=True)
        for name, content in files.items():
            path = directory / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return directory

    return _write_go_package


@pytest.fixture
def load_source(
    write_go_package: Callable[..., Path],
) -> Callable[[str], constconv.Package]:
    def _load_source(source: str) -> constconv.Package:
        directory = write_go_package({"sample.go": source})
        return constconv.load_package([str(directory)])

    return _load_source


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., constconv.Config]:
    def _make_config(**overrides: object) -> constconv.Config:
        base_dir = Path(overrides.pop("base_dir", tmp_path / "pkg"))  # type: ignore[arg-type]
        values: dict[str, object] = {
            "types": ("T",),
            "tags": tuple(),
            "extra_data": {},
            "exec_args_str": "--type T --template gen.tmpl",
            "dir_or_files": (str(base_dir),),
            "base_dir": base_dir,
            "template_file": base_dir / "gen.tmpl",
            "output_file": base_dir / "t_constconv.go",
            "formatter": ECHO_FORMATTER,
        }
        values.update(overrides)
        return constconv.Config(**values)  # type: ignore[arg-type]

    return _make_config


@pytest.fixture
def resolve_const() -> Callable[[constconv.Package, str], constconv.ResolvedConst]:
    def _resolve_const(pkg: constconv.Package, name: str) -> constconv.ResolvedConst:
        for owner in (pkg, *pkg.imported):
            decl = owner.scope.get(name)
            if decl is not None:
                return owner.defs[decl.key]
        raise AssertionError(f"constant {name} not declared")

    return _resolve_const
