from collections.abc import Callable
from pathlib import Path

import pytest

import constconv

MakeConfig = Callable[..., constconv.Config]

DAY_NAMES = [
    "DayOfWeek_DAY_OF_WEEK_UNSPECIFIED",
    "DayOfWeek_MONDAY",
    "DayOfWeek_TUESDAY",
    "DayOfWeek_WEDNESDAY",
    "DayOfWeek_THURSDAY",
    "DayOfWeek_FRIDAY",
    "DayOfWeek_SATURDAY",
    "DayOfWeek_SUNDAY",
]


@pytest.fixture
def color_dir(fixtures_dir: Path) -> Path:
    return fixtures_dir / "module" / "color"


def test_split_type_name() -> None:
    assert constconv.split_type_name("DayOfWeek", "dayofweek") == ("dayofweek", "DayOfWeek")
    assert constconv.split_type_name("os.FileMode", "dayofweek") == ("os", "FileMode")
    with pytest.raises(constconv.ParseError, match="unexpected type name: a.b.c"):
        constconv.split_type_name("a.b.c", "dayofweek")


def test_parse_collects_values_in_declaration_order(
    make_config: MakeConfig, fixtures_dir: Path
) -> None:
    directory = fixtures_dir / "dayofweek"
    parser = constconv.Parser(
        make_config(types=("DayOfWeek",), dir_or_files=(str(directory),), base_dir=directory)
    )

    parser.parse()
    results = parser.result_list()

    assert parser.base_package_name() == "dayofweek"
    assert len(results) == 1
    result = results[0]
    assert (result.pkg_name, result.type_name, result.rep_type_name) == (
        "dayofweek",
        "DayOfWeek",
        "DayOfWeek",
    )
    assert [value.name for value in result.values] == DAY_NAMES
    assert [value.str for value in result.values] == [str(n) for n in range(8)]
    assert result.imports == ()


def test_parse_qualified_type_scans_only_that_package(
    make_config: MakeConfig, color_dir: Path
) -> None:
    parser = constconv.Parser(
        make_config(types=("shade.Level", "Color"), dir_or_files=(str(color_dir),), base_dir=color_dir)
    )

    parser.parse()
    level, color = parser.result_list()

    assert parser.base_package_name() == "color"
    assert (level.pkg_name, level.type_name, level.rep_type_name) == ("shade", "Level", "shade.Level")
    assert [value.name for value in level.values] == ["Dark", "Dim", "Bright"]
    assert [value.name for value in color.values] == ["Red", "Green", "Blue"]
    assert [value.str for value in color.values] == ['"red"', '"green"', '"blue"']
    assert all(value.is_string() for value in color.values)
    assert level.imports == color.imports == (
        constconv.Import(
            name="", path='"example.com/sample/shade"', comment="brightness\n", doc="shade levels\n"
        ),
    )


def test_qualifier_must_match_declaring_package(make_config: MakeConfig, color_dir: Path) -> None:
    parser = constconv.Parser(
        make_config(types=("color.Level",), dir_or_files=(str(color_dir),), base_dir=color_dir)
    )

    with pytest.raises(constconv.NoValuesError, match="no values defined for type color.Level"):
        parser.parse()


def test_parse_stops_at_first_failing_type(make_config: MakeConfig, fixtures_dir: Path) -> None:
    directory = fixtures_dir / "dayofweek"
    parser = constconv.Parser(
        make_config(
            types=("Missing", "DayOfWeek"), dir_or_files=(str(directory),), base_dir=directory
        )
    )

    with pytest.raises(constconv.NoValuesError) as exc_info:
        parser.parse()

    assert exc_info.value.type_name == "Missing"
    assert parser.result_list() == []


def test_parse_rejects_malformed_type_name(make_config: MakeConfig, fixtures_dir: Path) -> None:
    directory = fixtures_dir / "dayofweek"
    parser = constconv.Parser(
        make_config(types=("a.b.c",), dir_or_files=(str(directory),), base_dir=directory)
    )

    with pytest.raises(constconv.ParseError):
        parser.parse()


def test_inspect_requires_loaded_package(make_config: MakeConfig) -> None:
    parser = constconv.Parser(make_config())

    with pytest.raises(constconv.LoadError, match="no files found for inspecting"):
        parser.inspect("T")


def test_inspect_aggregates_symbol_errors_across_files(
    make_config: MakeConfig, write_go_package: Callable[..., Path]
) -> None:
    directory = write_go_package(
        {
            "a.go": "package sample\n\ntype T int\n\nconst A T = 1\n",
            "b.go": "package sample\n\nconst B T = 2\n",
        }
    )
    parser = constconv.Parser(make_config(dir_or_files=(str(directory),)))
    parser.package = constconv.load_package([str(directory)])
    parser.package.defs = {}

    with pytest.raises(constconv.InspectionError) as exc_info:
        parser.inspect("T")

    err = exc_info.value
    assert [symbol_error.name for symbol_error in err.errors] == ["A", "B"]
    assert str(err).startswith("inspection of T failed: ")
    assert "a.go:5: no value for constant A; " in str(err)
    assert str(err).endswith("b.go:3: no value for constant B")


def test_result_template_view(make_config: MakeConfig, color_dir: Path) -> None:
    parser = constconv.Parser(
        make_config(types=("Color",), dir_or_files=(str(color_dir),), base_dir=color_dir)
    )
    parser.parse()

    view = parser.result_list()[0].to_template()

    assert view["PkgName"] == "color"
    assert view["TypeName"] == "Color"
    assert view["RepTypeName"] == "Color"
    assert [value["Name"] for value in view["Values"]] == ["Red", "Green", "Blue"]
    assert view["Values"][0]["ExactStr"] == '"red"'
    assert view["Imports"][0]["Path"] == '"example.com/sample/shade"'


def test_parse_with_explicit_files(make_config: MakeConfig, fixtures_dir: Path) -> None:
    path = fixtures_dir / "dayofweek" / "dayofweek.go"
    parser = constconv.Parser(
        make_config(types=("DayOfWeek",), dir_or_files=(str(path),), base_dir=path.parent)
    )

    parser.parse()

    assert len(parser.result_list()[0].values) == 8
