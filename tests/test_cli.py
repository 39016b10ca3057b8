import argparse
from collections.abc import Callable
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

import constconv


def _assert_config_code(exc_info: pytest.ExceptionInfo[Exception], code: str) -> None:
    err = exc_info.value
    assert getattr(err, "code") == code
    assert getattr(err, "code") in constconv.VALID_ERROR_CODES


def _make_args(**overrides: object) -> argparse.Namespace:
    base_args: dict[str, object] = {
        "type": "DayOfWeek",
        "template": "gen.tmpl",
        "data": "",
        "output": "",
        "tags": "",
        "gofmt": "gofmt",
        "dir_or_files": [],
    }
    base_args.update(overrides)
    return argparse.Namespace(**base_args)


@pytest.fixture
def package_dir(write_go_package: Callable[..., Path]) -> Path:
    return write_go_package({"day.go": "package day\n"})


def test_import_constconv_module_smoke() -> None:
    assert callable(constconv.main)


def test_build_argument_parser_exposes_flags_and_defaults() -> None:
    parser = constconv.build_argument_parser()
    option_actions = {
        option: action for action in parser._actions for option in action.option_strings
    }

    assert {"--type", "--template", "--data", "--output", "--tags", "--gofmt"}.issubset(
        option_actions.keys()
    )
    assert option_actions["--type"].default is None
    assert option_actions["--template"].default is None
    assert option_actions["--data"].default == ""
    assert option_actions["--gofmt"].default == "gofmt"


def test_parse_args_collects_positional_dir_or_files() -> None:
    args = constconv.parse_args(["--type", "T", "--template", "t.tmpl", "a.go", "b.go"])

    assert args.type == "T"
    assert args.dir_or_files == ["a.go", "b.go"]


def test_split_list_splits_on_commas_and_handles_empty() -> None:
    assert constconv.split_list("DayOfWeek,os.FileMode") == ("DayOfWeek", "os.FileMode")
    assert constconv.split_list("") == tuple()
    assert constconv.split_list(None) == tuple()


def test_parse_extra_data_splits_pairs_on_first_equal_sign() -> None:
    extra = constconv.parse_extra_data("typename=Foo;prefix=Bar;expr=a=b")

    assert extra == {"typename": "Foo", "prefix": "Bar", "expr": "a=b"}
    assert constconv.parse_extra_data("") == {}


@pytest.mark.parametrize("raw", ["typename", "typename=Foo;", "a=1;;b=2"])
def test_parse_extra_data_rejects_pairs_without_equal_sign(raw: str) -> None:
    with pytest.raises(constconv.ConfigError) as exc_info:
        constconv.parse_extra_data(raw)

    _assert_config_code(exc_info, "INVALID_DATA")


def test_detect_directory_single_directory(package_dir: Path) -> None:
    base_dir, dir_specified = constconv.detect_directory([str(package_dir)])

    assert base_dir == package_dir
    assert dir_specified is True


def test_detect_directory_file_list_uses_parent(package_dir: Path) -> None:
    file_path = package_dir / "day.go"

    base_dir, dir_specified = constconv.detect_directory([str(file_path)])

    assert base_dir == package_dir
    assert dir_specified is False


def test_detect_directory_missing_path(tmp_path: Path) -> None:
    with pytest.raises(constconv.ConfigError) as exc_info:
        constconv.detect_directory([str(tmp_path / "missing")])

    _assert_config_code(exc_info, "PATH_NOT_FOUND")


@pytest.mark.parametrize(
    ("type_name", "expected"),
    [
        ("DayOfWeek", "dayofweek_constconv.go"),
        ("os.FileMode", "os_filemode_constconv.go"),
    ],
)
def test_default_output_file_lowercases_and_replaces_first_dot(
    tmp_path: Path, type_name: str, expected: str
) -> None:
    assert constconv.default_output_file(tmp_path, type_name) == tmp_path / expected


def test_validate_config_builds_frozen_config(package_dir: Path) -> None:
    args = _make_args(
        type="DayOfWeek,os.FileMode",
        data="typename=DayOfWeek",
        tags="linux,extra",
        gofmt="gofmt -s",
        dir_or_files=[str(package_dir)],
    )

    config = constconv.validate_config(args, "--type DayOfWeek")

    assert config.types == ("DayOfWeek", "os.FileMode")
    assert config.tags == ("linux", "extra")
    assert config.extra_data == {"typename": "DayOfWeek"}
    assert config.exec_args_str == "--type DayOfWeek"
    assert config.base_dir == package_dir
    assert config.template_file == package_dir / "gen.tmpl"
    assert config.output_file == package_dir / "dayofweek_constconv.go"
    assert config.formatter == ("gofmt", "-s")
    with pytest.raises(FrozenInstanceError):
        config.types = ("Other",)  # type: ignore[misc]


def test_validate_config_keeps_explicit_output(package_dir: Path, tmp_path: Path) -> None:
    output = tmp_path / "out" / "gen.go"
    args = _make_args(output=str(output), dir_or_files=[str(package_dir)])

    config = constconv.validate_config(args)

    assert config.output_file == output


def test_validate_config_defaults_to_current_directory(
    package_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(package_dir)

    config = constconv.validate_config(_make_args())

    assert config.dir_or_files == (".",)
    assert config.base_dir == Path(".")


@pytest.mark.parametrize(
    ("overrides", "code"),
    [
        ({"type": None}, "MISSING_TYPE"),
        ({"type": "A,,B"}, "MISSING_TYPE"),
        ({"template": None}, "MISSING_TEMPLATE"),
        ({"data": "novalue"}, "INVALID_DATA"),
        ({"gofmt": "  "}, "INVALID_FORMATTER"),
    ],
)
def test_validate_config_error_codes(
    package_dir: Path, overrides: dict[str, object], code: str
) -> None:
    args = _make_args(dir_or_files=[str(package_dir)], **overrides)

    with pytest.raises(constconv.ConfigError) as exc_info:
        constconv.validate_config(args)

    _assert_config_code(exc_info, code)


def test_validate_config_rejects_tags_with_file_list(package_dir: Path) -> None:
    args = _make_args(tags="linux", dir_or_files=[str(package_dir / "day.go")])

    with pytest.raises(constconv.ConfigError) as exc_info:
        constconv.validate_config(args)

    _assert_config_code(exc_info, "TAGS_WITH_FILES")


def test_build_config_records_exec_args(package_dir: Path) -> None:
    argv = ["--type", "DayOfWeek", "--template", "gen.tmpl", str(package_dir)]

    config = constconv.build_config(argv)

    assert config.exec_args_str == " ".join(argv)


def test_config_error_rejects_unknown_code() -> None:
    with pytest.raises(ValueError):
        constconv.ConfigError("NOT_A_CODE", "message")


def test_main_prints_config_error_and_exits(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        constconv.main(["--template", "gen.tmpl"])

    assert exc_info.value.code == 1
    out = capsys.readouterr().out
    assert "Config error [MISSING_TYPE]" in out
    assert "Hint:" in out


def test_main_prints_pipeline_error_and_exits(
    package_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    with pytest.raises(SystemExit) as exc_info:
        constconv.main(["--type", "Day", "--template", "missing.tmpl", str(package_dir)])

    assert exc_info.value.code == 1
    assert "Error: can't find template file" in capsys.readouterr().out
