from __future__ import annotations

from pathlib import Path
import shlex
import subprocess
import sys

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


def _tool_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _fixture_dayofweek() -> Path:
    return _tool_root() / "tests" / "fixtures" / "dayofweek"


def _run(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    run_cwd = _tool_root() if cwd is None else cwd
    return subprocess.run(
        [sys.executable, "constconv.py", *args],
        cwd=run_cwd,
        capture_output=True,
        text=True,
        check=False,
    )


def _run_generate(output: Path, formatter: tuple[str, ...] = ECHO_FORMATTER) -> subprocess.CompletedProcess[str]:
    return _run(
        [
            "--type=DayOfWeek",
            "--template=dayofweek.tmpl",
            "--data=package=dayofweek;typename=DayOfWeek",
            "--gofmt",
            shlex.join(formatter),
            "--output",
            str(output.resolve()),
            str((_fixture_dayofweek() / "dayofweek.go").resolve()),
        ]
    )


def test_t_01_generate_from_file_writes_rendered_output(tmp_path: Path) -> None:
    output = tmp_path / "generated" / "dayofweek_string.go"

    result = _run_generate(output)

    assert result.returncode == 0, result.stdout + result.stderr
    assert result.stdout.startswith("Loading: ")
    assert "  Type DayOfWeek: 8 values" in result.stdout
    assert f"  Written: {output.resolve()}" in result.stdout
    text = output.read_text(encoding="utf-8")
    assert text.startswith('// Code generated by "constconv --type=DayOfWeek --template=dayofweek.tmpl')
    assert text.splitlines()[0].endswith('"; DO NOT EDIT.')
    assert '\tcase DayOfWeek_SUNDAY:\n\t\treturn "SUNDAY"\n' in text


def test_t_02_missing_type_exits_with_config_error(tmp_path: Path) -> None:
    result = _run(["--template=dayofweek.tmpl", str(_fixture_dayofweek().resolve())])

    assert result.returncode == 1
    assert "Config error [MISSING_TYPE]" in result.stdout
    assert "Hint:" in result.stdout


def test_t_03_unknown_type_exits_without_writing(tmp_path: Path) -> None:
    output = tmp_path / "never.go"

    result = _run(
        [
            "--type=Weekday",
            "--template=dayofweek.tmpl",
            "--output",
            str(output),
            str(_fixture_dayofweek().resolve()),
        ]
    )

    assert result.returncode == 1
    assert "Error: no values defined for type Weekday" in result.stdout
    assert not output.exists()


def test_t_04_formatter_failure_keeps_unformatted_output(tmp_path: Path) -> None:
    output = tmp_path / "dayofweek_constconv.go"

    result = _run_generate(output, FAILING_FORMATTER)

    assert result.returncode == 1
    assert "Written (unformatted):" in result.stdout
    assert "Error: format failed: 1:1: expected declaration" in result.stdout
    assert "case DayOfWeek_MONDAY:" in output.read_text(encoding="utf-8")


def test_t_05_default_output_lands_beside_sources(tmp_path: Path) -> None:
    package_dir = tmp_path / "dayofweek"
    package_dir.mkdir()
    for name in ("dayofweek.go", "dayofweek.tmpl"):
        (package_dir / name).write_bytes((_fixture_dayofweek() / name).read_bytes())

    result = subprocess.run(
        [
            sys.executable,
            str(_tool_root() / "constconv.py"),
            "--type",
            "DayOfWeek",
            "--template",
            "dayofweek.tmpl",
            "--data",
            "typename=DayOfWeek",
            "--gofmt",
            shlex.join(ECHO_FORMATTER),
        ],
        cwd=package_dir,
        capture_output=True,
        text=True,
        check=False,
    )

    assert result.returncode == 0, result.stdout + result.stderr
    assert (package_dir / "dayofweek_constconv.go").is_file()
