"""Constant conversion code generator for Go packages.

Finds every constant declared with a given Go type, resolves its value and
kind, and renders the collected constants through a Jinja2 template into a
gofmt-ed Go source file.

Usage:
    python constconv.py --type DayOfWeek --template dayofweek.tmpl ./pkg/week
    python constconv.py --type os.FileMode,Level --template t.tmpl \
        --data "prefix=Level" --tags linux ./pkg/level
"""

import argparse
import functools
import math
import os
import platform
import re
import shlex
import struct
import subprocess
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from pathlib import Path

import jinja2
from tree_sitter import Node, Parser as TreeSitterParser, Tree
from tree_sitter_language_pack import get_language

PROGRAM_NAME = "constconv"
OUTPUT_SUFFIX = "_constconv.go"
DEFAULT_FORMATTER = ("gofmt",)


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class Config:
    types: tuple[str, ...]
    tags: tuple[str, ...]
    extra_data: dict[str, str]
    exec_args_str: str
    dir_or_files: tuple[str, ...]
    base_dir: Path
    template_file: Path
    output_file: Path
    formatter: tuple[str, ...] = DEFAULT_FORMATTER


VALID_ERROR_CODES = {
    "MISSING_TYPE",
    "MISSING_TEMPLATE",
    "INVALID_DATA",
    "INVALID_FORMATTER",
    "TAGS_WITH_FILES",
    "PATH_NOT_FOUND",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        description="Generate Go code from the constants of a named type",
        usage=(
            "%(prog)s --type T --template F [optional flags] [directory]\n"
            "       %(prog)s --type T --template F [optional flags] files... "
            "# Must be a single package"
        ),
    )

    parser.add_argument(
        "--type",
        type=str,
        default=None,
        help="comma-separated list of type names; must be set",
    )
    parser.add_argument(
        "--template",
        type=str,
        default=None,
        help="template file path relative to the source directory; must be set",
    )
    parser.add_argument(
        "--data",
        type=str,
        default="",
        help='semicolon-separated extra template data, e.g. "typename=Foo;prefix=Bar"',
    )
    parser.add_argument(
        "--output",
        type=str,
        default="",
        help=f"output file name; default srcdir/<lower-cased type>{OUTPUT_SUFFIX}",
    )
    parser.add_argument(
        "--tags",
        type=str,
        default="",
        help="comma-separated list of build tags to apply",
    )
    parser.add_argument(
        "--gofmt",
        type=str,
        default=" ".join(DEFAULT_FORMATTER),
        help="formatter command that reads Go source on stdin",
    )
    parser.add_argument("dir_or_files", nargs="*", default=[])

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def split_list(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return tuple()
    return tuple(raw.split(","))


def parse_extra_data(raw: str) -> dict[str, str]:
    """Convert ``"typename=Foo;prefix=Bar"`` into ``{"typename": "Foo", "prefix": "Bar"}``."""
    extra: dict[str, str] = {}
    if not raw:
        return extra
    for pair in raw.split(";"):
        key, sep, value = pair.partition("=")
        if not sep:
            raise ConfigError(
                "INVALID_DATA",
                f"Invalid extra data: {pair!r}",
                'Pass key=value pairs separated by ";", e.g. --data "typename=Foo;prefix=Bar".',
            )
        extra[key] = value
    return extra


def detect_directory(dir_or_files: Sequence[str]) -> tuple[Path, bool]:
    """Return the base directory and whether a directory (not files) was given."""
    for entry in dir_or_files:
        if not os.path.exists(entry):
            raise ConfigError(
                "PATH_NOT_FOUND",
                f"Path does not exist: {entry}",
                "Pass an existing package directory or a list of its .go files.",
            )
    first = Path(dir_or_files[0])
    if len(dir_or_files) == 1 and first.is_dir():
        return first, True
    return first.parent, False


def default_output_file(base_dir: Path, type_name: str) -> Path:
    underscored = type_name.replace(".", "_", 1)
    return base_dir / f"{underscored}{OUTPUT_SUFFIX}".lower()


def validate_config(args: argparse.Namespace, exec_args_str: str = "") -> Config:
    types = split_list(args.type)
    if not types:
        raise ConfigError(
            "MISSING_TYPE",
            "--type is required.",
            "Pass one or more type names: --type DayOfWeek or --type os.FileMode,Level",
        )
    if any(not name for name in types):
        raise ConfigError(
            "MISSING_TYPE",
            f"Empty type name in --type {args.type!r}.",
            "Separate type names with single commas.",
        )
    if not args.template:
        raise ConfigError(
            "MISSING_TEMPLATE",
            "--template is required.",
            "Pass a template path relative to the source directory: --template gen.tmpl",
        )

    tags = split_list(args.tags)
    extra_data = parse_extra_data(args.data)

    formatter = tuple(shlex.split(args.gofmt))
    if not formatter:
        raise ConfigError(
            "INVALID_FORMATTER",
            "--gofmt must name a formatter command.",
            "Leave --gofmt unset to use gofmt from PATH.",
        )

    dir_or_files = tuple(args.dir_or_files) or (".",)
    base_dir, dir_specified = detect_directory(dir_or_files)
    if tags and not dir_specified:
        raise ConfigError(
            "TAGS_WITH_FILES",
            "--tags applies only to directories, not when files are specified.",
            "Pass the package directory instead of its files, or drop --tags.",
        )

    output_file = (
        Path(args.output) if args.output else default_output_file(base_dir, types[0])
    )

    return Config(
        types=types,
        tags=tags,
        extra_data=extra_data,
        exec_args_str=exec_args_str,
        dir_or_files=dir_or_files,
        base_dir=base_dir,
        template_file=base_dir / args.template,
        output_file=output_file,
        formatter=formatter,
    )


def build_config(argv: list[str] | None = None) -> Config:
    raw_argv = sys.argv[1:] if argv is None else argv
    return validate_config(parse_args(raw_argv), " ".join(raw_argv))


# ===--- Errors ---=== #


class ConstconvError(Exception):
    """Base class for every failure of the load/scan/render pipeline."""


class LoadError(ConstconvError):
    pass


class ScanSymbolError(ConstconvError):
    def __init__(self, name: str, path: Path, line: int):
        super().__init__(f"{path}:{line}: no value for constant {name}")
        self.name = name
        self.path = path
        self.line = line


class InspectionError(ConstconvError):
    def __init__(self, type_name: str, errors: Sequence[ScanSymbolError]):
        joined = "; ".join(str(err) for err in errors)
        super().__init__(f"inspection of {type_name} failed: {joined}")
        self.type_name = type_name
        self.errors = tuple(errors)


class ParseError(ConstconvError):
    pass


class NoValuesError(ConstconvError):
    def __init__(self, type_name: str):
        super().__init__(f"no values defined for type {type_name}")
        self.type_name = type_name


class TemplateError(ConstconvError):
    pass


class RenderError(ConstconvError):
    pass


class FormatError(ConstconvError):
    """Formatter rejected the rendered source; ``source`` keeps the raw bytes."""

    def __init__(self, message: str, source: bytes):
        super().__init__(message)
        self.source = source


class ConstEvalError(Exception):
    """A constant expression has no value; the constant is recorded as Unknown."""


# ===--- Go literal helpers ---=== #

_SIMPLE_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "f": 0x0C,
    "n": 0x0A,
    "r": 0x0D,
    "t": 0x09,
    "v": 0x0B,
    "\\": 0x5C,
}
_QUOTE_ESCAPES = {
    0x07: "\\a",
    0x08: "\\b",
    0x0C: "\\f",
    0x0A: "\\n",
    0x0D: "\\r",
    0x09: "\\t",
    0x0B: "\\v",
}
_HEX_DIGITS = "0123456789abcdefABCDEF"


def go_quote(text: str) -> str:
    """Quote a string the way Go's strconv.Quote does."""
    out = ['"']
    for ch in text:
        code = ord(ch)
        if 0xDC80 <= code <= 0xDCFF:
            # byte of an invalid UTF-8 sequence (surrogateescape)
            out.append(f"\\x{code - 0xDC00:02x}")
        elif ch in ('"', "\\"):
            out.append("\\" + ch)
        elif ch.isprintable():
            out.append(ch)
        elif code in _QUOTE_ESCAPES:
            out.append(_QUOTE_ESCAPES[code])
        elif code < 0x20 or code == 0x7F:
            out.append(f"\\x{code:02x}")
        elif code < 0x10000:
            out.append(f"\\u{code:04x}")
        else:
            out.append(f"\\U{code:08x}")
    out.append('"')
    return "".join(out)


def _decode_escapes(body: str, quote: str) -> list[tuple[bool, int]]:
    """Decode the body of an interpreted literal into (is_byte, value) pieces.

    Byte pieces come from octal and ``\\x`` escapes; every other piece is a
    Unicode code point.

    Raises:
        ValueError: Malformed escape sequence or forbidden character.
    """
    pieces: list[tuple[bool, int]] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == quote or ch == "\n":
            raise ValueError(f"unexpected {ch!r} in literal")
        if ch != "\\":
            pieces.append((False, ord(ch)))
            i += 1
            continue
        if i + 1 >= len(body):
            raise ValueError("literal ends in an escape")
        esc = body[i + 1]
        i += 2
        if esc in _SIMPLE_ESCAPES:
            pieces.append((False, _SIMPLE_ESCAPES[esc]))
        elif esc == quote:
            pieces.append((False, ord(esc)))
        elif esc in "01234567":
            digits = body[i - 1 : i + 2]
            if len(digits) != 3 or any(d not in "01234567" for d in digits):
                raise ValueError(f"invalid octal escape \\{digits}")
            value = int(digits, 8)
            if value > 0xFF:
                raise ValueError(f"octal escape value > 255: \\{digits}")
            pieces.append((True, value))
            i += 2
        elif esc in "xuU":
            width = {"x": 2, "u": 4, "U": 8}[esc]
            digits = body[i : i + width]
            if len(digits) != width or any(d not in _HEX_DIGITS for d in digits):
                raise ValueError(f"invalid escape \\{esc}{digits}")
            value = int(digits, 16)
            i += width
            if esc == "x":
                pieces.append((True, value))
                continue
            if value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
                raise ValueError(f"escape is an invalid Unicode code point: \\{esc}{digits}")
            pieces.append((False, value))
        else:
            raise ValueError(f"unknown escape sequence \\{esc}")
    return pieces


def _pieces_to_str(pieces: list[tuple[bool, int]]) -> str:
    raw = bytearray()
    for is_byte, value in pieces:
        if is_byte:
            raw.append(value)
        else:
            raw.extend(chr(value).encode("utf-8"))
    return raw.decode("utf-8", "surrogateescape")


def go_unquote(literal: str) -> str:
    """Interpret a Go string or rune literal the way strconv.Unquote does.

    Raises:
        ValueError: ``literal`` is not a valid quoted Go literal.
    """
    if len(literal) < 2 or literal[0] != literal[-1] or literal[0] not in "\"'`":
        raise ValueError(f"invalid syntax: {literal!r}")
    quote = literal[0]
    body = literal[1:-1]
    if quote == "`":
        if "`" in body:
            raise ValueError(f"invalid syntax: {literal!r}")
        return body.replace("\r", "")
    pieces = _decode_escapes(body, quote)
    if quote == "'" and len(pieces) != 1:
        raise ValueError(f"invalid rune literal: {literal!r}")
    return _pieces_to_str(pieces)


def parse_string_literal(literal: str) -> str:
    if literal.startswith("`"):
        return literal[1:-1].replace("\r", "")
    return _pieces_to_str(_decode_escapes(literal[1:-1], '"'))


def parse_rune_literal(literal: str) -> int:
    pieces = _decode_escapes(literal[1:-1], "'")
    if len(pieces) != 1:
        raise ValueError(f"invalid rune literal: {literal}")
    return pieces[0][1]


def parse_int_literal(literal: str) -> int:
    text = literal.replace("_", "")
    if len(text) > 1 and text[0] == "0" and text[1].isdigit():
        return int(text, 8)
    return int(text, 0)


def parse_float_literal(literal: str) -> Fraction:
    text = literal.replace("_", "")
    prefix = text[:2].lower()
    if prefix in ("0b", "0o"):
        return Fraction(int(text, 0))
    if prefix != "0x":
        return Fraction(text)
    mantissa, _, exponent = text[2:].replace("P", "p").partition("p")
    whole, _, frac = mantissa.partition(".")
    value = Fraction(int(whole + frac or "0", 16), 16 ** len(frac))
    return value * Fraction(2) ** int(exponent or "0")


def parse_imaginary_literal(literal: str) -> Fraction:
    return parse_float_literal(literal[:-1])


# ===--- Constant values ---=== #


class Kind(Enum):
    UNKNOWN = "Unknown"
    BOOL = "Bool"
    STRING = "String"
    INT = "Int"
    FLOAT = "Float"
    COMPLEX = "Complex"

    def __str__(self) -> str:
        return self.value


Number = int | Fraction

_MAX_DISPLAY_RUNES = 72
_NUMERIC_RANK = {Kind.INT: 0, Kind.FLOAT: 1, Kind.COMPLEX: 2}
_LOG10_2 = math.log(2) / math.log(10)


@dataclass(frozen=True)
class ConstValue:
    """Tagged union over the Go constant kinds.

    ``val`` holds a bool, a str, an int, a Fraction, or a ``(re, im)`` pair of
    ints/Fractions depending on ``kind``; it is None for Unknown.
    """

    kind: Kind
    val: object = None

    def string(self) -> str:
        """Short display form, as go/constant's Value.String."""
        if self.kind is Kind.BOOL:
            return "true" if self.val else "false"
        if self.kind is Kind.STRING:
            quoted = go_quote(self.val)
            if len(quoted) > _MAX_DISPLAY_RUNES:
                quoted = quoted[: _MAX_DISPLAY_RUNES - 3] + "..."
            return quoted
        if self.kind in (Kind.INT, Kind.FLOAT):
            return _number_string(self.val)
        if self.kind is Kind.COMPLEX:
            re_part, im_part = self.val
            return f"({_number_string(re_part)} + {_number_string(im_part)}i)"
        return "unknown"

    def exact_string(self) -> str:
        """Full precision form, as go/constant's Value.ExactString."""
        if self.kind is Kind.STRING:
            return go_quote(self.val)
        if self.kind in (Kind.INT, Kind.FLOAT):
            return _number_exact(self.val)
        if self.kind is Kind.COMPLEX:
            re_part, im_part = self.val
            return f"({_number_exact(re_part)} + {_number_exact(im_part)}i)"
        return self.string()


UNKNOWN = ConstValue(Kind.UNKNOWN)


def make_bool(value: bool) -> ConstValue:
    return ConstValue(Kind.BOOL, bool(value))


def make_string(value: str) -> ConstValue:
    return ConstValue(Kind.STRING, value)


def make_int(value: int) -> ConstValue:
    return ConstValue(Kind.INT, int(value))


def make_float(value: Number) -> ConstValue:
    return ConstValue(Kind.FLOAT, Fraction(value))


def make_complex(re_part: Number, im_part: Number) -> ConstValue:
    return ConstValue(Kind.COMPLEX, (re_part, im_part))


def _number_string(value: Number) -> str:
    if isinstance(value, Fraction):
        return format_float(value)
    return str(value)


def _number_exact(value: Number) -> str:
    if isinstance(value, Fraction):
        if value.denominator == 1:
            return str(value.numerator)
        return f"{value.numerator}/{value.denominator}"
    return str(value)


def format_float(value: Fraction) -> str:
    """Format a rational the way go/constant prints float constants (``%.6g``)."""
    try:
        approx = float(value)
    except OverflowError:
        return _format_float_out_of_range(value)
    if (value == 0) != (approx == 0) or math.isinf(approx):
        return _format_float_out_of_range(value)
    text = "%.6g" % approx
    if value.denominator != 1 and "." not in text:
        # not an integer, but the short form hides that
        text = _format_shortest(approx)
    return text


def _format_shortest(value: float) -> str:
    """Go's ``%g``: shortest round-trip digits, exponent form outside [1e-4, 1e6)."""
    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).lstrip("0") or "0"
    while len(digits) > 1 and digits.endswith("0"):
        digits = digits[:-1]
        exponent += 1
    point = len(digits) + exponent
    exp10 = point - 1
    if exp10 < -4 or exp10 >= 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        return f"{sign}{mantissa}e{'-' if exp10 < 0 else '+'}{abs(exp10):02d}"
    if point <= 0:
        return f"{sign}0.{'0' * -point}{digits}"
    if point >= len(digits):
        return f"{sign}{digits}{'0' * (point - len(digits))}"
    return f"{sign}{digits[:point]}.{digits[point:]}"


def _format_float_out_of_range(value: Fraction) -> str:
    """Approximate decimal form for magnitudes outside the float64 range."""
    magnitude = abs(value)
    exp = magnitude.numerator.bit_length() - magnitude.denominator.bit_length()
    mant = magnitude * Fraction(2) ** -exp
    while mant >= 1:
        mant /= 2
        exp += 1
    while mant < Fraction(1, 2):
        mant *= 2
        exp -= 1
    m = float(mant) if value > 0 else -float(mant)
    d = exp * _LOG10_2
    e = int(d)
    m *= 10 ** (d - e)
    am = abs(m)
    if am < 1 - 0.5e-6:
        m *= 10
        e -= 1
    elif am >= 10:
        m /= 10
        e += 1
    return "%.6ge%+d" % (m, e)


def _to_fraction(value: ConstValue) -> Fraction:
    if value.kind is Kind.INT or value.kind is Kind.FLOAT:
        return Fraction(value.val)
    if value.kind is Kind.COMPLEX and value.val[1] == 0:
        return Fraction(value.val[0])
    raise ConstEvalError(f"{value.string()} is not a real number")


def _to_integer(value: ConstValue) -> int:
    if value.kind is Kind.INT:
        return value.val
    number = _to_fraction(value)
    if number.denominator != 1:
        raise ConstEvalError(f"{value.string()} truncated to integer")
    return number.numerator


def _promote(value: ConstValue, kind: Kind) -> ConstValue:
    if value.kind is kind:
        return value
    if kind is Kind.FLOAT:
        return make_float(value.val)
    if kind is Kind.COMPLEX:
        return make_complex(value.val, 0)
    raise ConstEvalError(f"cannot convert {value.kind} constant to {kind}")


def match_values(x: ConstValue, y: ConstValue) -> tuple[ConstValue, ConstValue]:
    """Bring two operands to a common kind (Int < Float < Complex)."""
    if x.kind in _NUMERIC_RANK and y.kind in _NUMERIC_RANK:
        if _NUMERIC_RANK[x.kind] < _NUMERIC_RANK[y.kind]:
            return _promote(x, y.kind), y
        return x, _promote(y, x.kind)
    if x.kind is y.kind and x.kind is not Kind.UNKNOWN:
        return x, y
    raise ConstEvalError(f"mismatched constant kinds {x.kind} and {y.kind}")


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


def _trunc_rem(a: int, b: int) -> int:
    remainder = abs(a) % abs(b)
    return -remainder if a < 0 else remainder


def _complex_op(x: tuple, op: str, y: tuple) -> tuple:
    a, b = x
    c, d = y
    if op == "+":
        return a + c, b + d
    if op == "-":
        return a - c, b - d
    if op == "*":
        return a * c - b * d, b * c + a * d
    if op == "/":
        denom = Fraction(c * c + d * d)
        if denom == 0:
            raise ConstEvalError("division by zero")
        return (a * c + b * d) / denom, (b * c - a * d) / denom
    raise ConstEvalError(f"operator {op} not defined on complex constants")


def binary_op(x: ConstValue, op: str, y: ConstValue, integer_division: bool = True) -> ConstValue:
    """Apply an arithmetic or logical operator to two constant values.

    Raises:
        ConstEvalError: Operator not defined on the operands, or division by zero.
    """
    x, y = match_values(x, y)
    kind = x.kind
    if kind is Kind.BOOL:
        if op == "&&":
            return make_bool(x.val and y.val)
        if op == "||":
            return make_bool(x.val or y.val)
    elif kind is Kind.STRING:
        if op == "+":
            return make_string(x.val + y.val)
    elif kind is Kind.INT:
        a, b = x.val, y.val
        if op in ("/", "%") and b == 0:
            raise ConstEvalError("division by zero")
        if op == "/":
            return make_int(_trunc_div(a, b)) if integer_division else make_float(Fraction(a, b))
        simple: dict[str, Callable[[int, int], int]] = {
            "+": lambda p, q: p + q,
            "-": lambda p, q: p - q,
            "*": lambda p, q: p * q,
            "%": _trunc_rem,
            "&": lambda p, q: p & q,
            "|": lambda p, q: p | q,
            "^": lambda p, q: p ^ q,
            "&^": lambda p, q: p & ~q,
        }
        if op in simple:
            return make_int(simple[op](a, b))
    elif kind is Kind.FLOAT:
        a, b = x.val, y.val
        if op == "+":
            return make_float(a + b)
        if op == "-":
            return make_float(a - b)
        if op == "*":
            return make_float(a * b)
        if op == "/":
            if b == 0:
                raise ConstEvalError("division by zero")
            return make_float(a / b)
    elif kind is Kind.COMPLEX:
        return ConstValue(Kind.COMPLEX, _complex_op(x.val, op, y.val))
    raise ConstEvalError(f"operator {op} not defined on {kind} constants")


def compare(x: ConstValue, op: str, y: ConstValue) -> bool:
    x, y = match_values(x, y)
    if op == "==":
        return x.val == y.val
    if op == "!=":
        return x.val != y.val
    if x.kind in (Kind.BOOL, Kind.COMPLEX):
        raise ConstEvalError(f"operator {op} not defined on {x.kind} constants")
    ordering = {
        "<": x.val < y.val,
        "<=": x.val <= y.val,
        ">": x.val > y.val,
        ">=": x.val >= y.val,
    }
    if op not in ordering:
        raise ConstEvalError(f"unknown comparison operator {op}")
    return ordering[op]


SHIFT_BOUND = 1023 - 1 + 52


def shift(x: ConstValue, op: str, count: ConstValue) -> ConstValue:
    amount = _to_integer(count)
    if amount < 0:
        raise ConstEvalError(f"negative shift count {amount}")
    if amount > SHIFT_BOUND:
        raise ConstEvalError(f"shift count {amount} too large")
    value = _to_integer(x)
    return make_int(value << amount if op == "<<" else value >> amount)


def unary_op(op: str, x: ConstValue, unsigned_bits: int | None = None) -> ConstValue:
    if op == "+" and x.kind in _NUMERIC_RANK:
        return x
    if op == "-":
        if x.kind is Kind.INT:
            return make_int(-x.val)
        if x.kind is Kind.FLOAT:
            return make_float(-x.val)
        if x.kind is Kind.COMPLEX:
            return make_complex(-x.val[0], -x.val[1])
    if op == "!" and x.kind is Kind.BOOL:
        return make_bool(not x.val)
    if op == "^" and x.kind is Kind.INT:
        if unsigned_bits is not None:
            return make_int(~x.val & ((1 << unsigned_bits) - 1))
        return make_int(~x.val)
    raise ConstEvalError(f"operator {op} not defined on {x.kind} constants")


# ===--- Go types ---=== #


@dataclass(frozen=True)
class BasicType:
    name: str
    info: str  # bool, string, int, uint, float, complex
    size: int = 0

    @property
    def is_integer(self) -> bool:
        return self.info in ("int", "uint")


BASIC_TYPES = {
    "bool": BasicType("bool", "bool"),
    "string": BasicType("string", "string"),
    "int": BasicType("int", "int", 8),
    "int8": BasicType("int8", "int", 1),
    "int16": BasicType("int16", "int", 2),
    "int32": BasicType("int32", "int", 4),
    "int64": BasicType("int64", "int", 8),
    "uint": BasicType("uint", "uint", 8),
    "uint8": BasicType("uint8", "uint", 1),
    "uint16": BasicType("uint16", "uint", 2),
    "uint32": BasicType("uint32", "uint", 4),
    "uint64": BasicType("uint64", "uint", 8),
    "uintptr": BasicType("uintptr", "uint", 8),
    "float32": BasicType("float32", "float", 4),
    "float64": BasicType("float64", "float", 8),
    "complex64": BasicType("complex64", "complex", 8),
    "complex128": BasicType("complex128", "complex", 16),
}
BASIC_TYPES["byte"] = BASIC_TYPES["uint8"]
BASIC_TYPES["rune"] = BASIC_TYPES["int32"]


def _round_float(value: Fraction, size: int) -> Fraction:
    try:
        if size == 4:
            rounded = struct.unpack("<f", struct.pack("<f", float(value)))[0]
        else:
            rounded = float(value)
    except OverflowError as err:
        raise ConstEvalError(f"{format_float(value)} overflows float{size * 8}") from err
    if math.isinf(rounded):
        raise ConstEvalError(f"{format_float(value)} overflows float{size * 8}")
    return Fraction(rounded)


def represent(value: ConstValue, basic: BasicType) -> ConstValue:
    """Return ``value`` as a constant of type ``basic``, rounding floats.

    Raises:
        ConstEvalError: The value is not representable by the type.
    """
    if value.kind is Kind.UNKNOWN:
        raise ConstEvalError("invalid constant")
    if basic.info == "bool":
        if value.kind is not Kind.BOOL:
            raise ConstEvalError(f"cannot use {value.string()} as {basic.name} value")
        return value
    if basic.info == "string":
        if value.kind is not Kind.STRING:
            raise ConstEvalError(f"cannot use {value.string()} as {basic.name} value")
        return value
    if value.kind not in _NUMERIC_RANK:
        raise ConstEvalError(f"cannot use {value.string()} as {basic.name} value")

    if basic.is_integer:
        number = _to_integer(value)
        bits = basic.size * 8
        if basic.info == "int":
            low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        else:
            low, high = 0, (1 << bits) - 1
        if not low <= number <= high:
            raise ConstEvalError(f"{value.string()} overflows {basic.name}")
        return make_int(number)
    if basic.info == "float":
        return make_float(_round_float(_to_fraction(value), basic.size))

    if value.kind is Kind.COMPLEX:
        re_part, im_part = value.val
    else:
        re_part, im_part = value.val, 0
    half = basic.size // 2
    return make_complex(
        _round_float(Fraction(re_part), half), _round_float(Fraction(im_part), half)
    )


def convert(value: ConstValue, basic: BasicType) -> ConstValue:
    """Constant conversion ``T(x)``."""
    if basic.info == "string" and value.kind is Kind.INT:
        code = value.val
        if 0 <= code <= 0x10FFFF and not 0xD800 <= code <= 0xDFFF:
            return make_string(chr(code))
        return make_string("\ufffd")
    return represent(value, basic)


# ===--- Source loading ---=== #


@functools.lru_cache(maxsize=1)
def go_parser() -> TreeSitterParser:
    return TreeSitterParser(get_language("go"))


def node_text(node: Node) -> str:
    return node.text.decode("utf-8", "surrogateescape")


def named_children(node: Node) -> list[Node]:
    """Named children without interleaved comments."""
    return [child for child in node.named_children if child.type != "comment"]


@dataclass(frozen=True)
class Import:
    name: str  # "", "_", ".", or an alias such as "mathrand"
    path: str  # the literal as written, e.g. "\"math/rand\""
    comment: str
    doc: str

    def to_template(self) -> dict[str, str]:
        return {
            "Name": self.name,
            "Path": self.path,
            "Comment": self.comment,
            "Doc": self.doc,
        }


@dataclass
class SourceFile:
    path: Path
    source: bytes
    tree: Tree
    package_name: str
    build_expr: str | None
    imports: list[Import]
    pkg: "Package | None" = None

    @property
    def root(self) -> Node:
        return self.tree.root_node


@dataclass(frozen=True)
class ConstDecl:
    name: str
    name_node: Node
    file: SourceFile
    type_node: Node | None
    expr: Node | None
    iota: int

    @property
    def key(self) -> tuple[Path, int]:
        return (self.file.path, self.name_node.start_byte)

    @property
    def line(self) -> int:
        return self.name_node.start_point[0] + 1


@dataclass(frozen=True)
class TypeDecl:
    name: str
    file: SourceFile
    type_node: Node


@dataclass(frozen=True)
class ResolvedConst:
    name: str
    value: ConstValue
    basic: BasicType | None = None


@dataclass
class Package:
    """One Go package: syntax, declarations and resolved constants.

    ``defs`` maps the declaring identifier of every constant, keyed by
    ``(file path, start byte)``, to its resolved value.
    """

    name: str
    directory: Path
    path: str
    files: list[SourceFile] = field(default_factory=list)
    imports: list[Import] = field(default_factory=list)
    imported: list["Package"] = field(default_factory=list)
    decls: list[ConstDecl] = field(default_factory=list)
    scope: dict[str, ConstDecl] = field(default_factory=dict)
    types: dict[str, TypeDecl] = field(default_factory=dict)
    defs: dict[tuple[Path, int], ResolvedConst] = field(default_factory=dict)

    @property
    def file_set(self) -> list[SourceFile]:
        """Own files followed by the files of every directly imported package."""
        files = list(self.files)
        for imported in self.imported:
            files.extend(imported.files)
        return files

    def lookup(self, file: SourceFile, ident: Node) -> ResolvedConst | None:
        return self.defs.get((file.path, ident.start_byte))


_DIRECTIVE_RE = re.compile(r"^(line |extern |export |[a-z0-9]+:[a-z0-9])")


def comment_text(comments: Sequence[Node]) -> str:
    """Text of a comment group with comment markers removed, as go/ast does."""
    lines: list[str] = []
    for comment in comments:
        text = node_text(comment)
        if text.startswith("//"):
            text = text[2:]
            if text.startswith(" "):
                text = text[1:]
            elif _DIRECTIVE_RE.match(text):
                continue
        else:
            text = text[2:-2]
        lines.extend(text.split("\n"))

    kept: list[str] = []
    for line in (line.rstrip() for line in lines):
        if line or (kept and kept[-1]):
            kept.append(line)
    if kept and kept[-1]:
        kept.append("")
    return "\n".join(kept)


def _line_comments(node: Node) -> list[Node]:
    row = node.end_point[0]
    found: list[Node] = []
    current = node
    sibling = current.next_sibling
    while sibling is None and current.parent is not None and current.parent.type != "source_file":
        current = current.parent
        sibling = current.next_sibling
    while sibling is not None and sibling.start_point[0] == row:
        if sibling.type == "comment":
            found.append(sibling)
        elif sibling.is_named:
            break
        sibling = sibling.next_sibling
    return found


def _doc_comments(spec_list: Node, index: int) -> list[Node]:
    children = spec_list.named_children
    taken_rows = {spec_list.start_point[0]}
    for child in children[:index]:
        if child.type == "import_spec":
            taken_rows.add(child.end_point[0])
    group: list[Node] = []
    row = children[index].start_point[0]
    j = index - 1
    while j >= 0 and children[j].type == "comment":
        comment = children[j]
        if comment.end_point[0] < row - 1 or comment.start_point[0] in taken_rows:
            break
        group.insert(0, comment)
        row = comment.start_point[0]
        j -= 1
    return group


def _make_import(spec: Node, doc: list[Node]) -> Import:
    name_node = spec.child_by_field_name("name")
    path_node = spec.child_by_field_name("path")
    return Import(
        name=node_text(name_node) if name_node is not None else "",
        path=node_text(path_node) if path_node is not None else "",
        comment=comment_text(_line_comments(spec)),
        doc=comment_text(doc),
    )


def collect_imports(root: Node) -> list[Import]:
    imports: list[Import] = []
    for decl in root.named_children:
        if decl.type != "import_declaration":
            continue
        for child in decl.named_children:
            if child.type == "import_spec":
                imports.append(_make_import(child, []))
            elif child.type == "import_spec_list":
                for index, spec in enumerate(child.named_children):
                    if spec.type == "import_spec":
                        imports.append(_make_import(spec, _doc_comments(child, index)))
    return imports


# Build constraints

KNOWN_OS = frozenset(
    "aix android darwin dragonfly freebsd hurd illumos ios js linux nacl netbsd "
    "openbsd plan9 solaris wasip1 windows zos".split()
)
KNOWN_ARCH = frozenset(
    "386 amd64 amd64p32 arm armbe arm64 arm64be loong64 mips mipsle mips64 "
    "mips64le mips64p32 mips64p32le ppc ppc64 ppc64le riscv riscv64 s390 s390x "
    "sparc sparc64 wasm".split()
)
UNIX_OS = frozenset(
    "aix android darwin dragonfly freebsd hurd illumos ios linux netbsd openbsd "
    "solaris".split()
)
GO_RELEASE_TAGS = tuple(f"go1.{minor}" for minor in range(1, 27))
_OS_IMPLIES = {"android": "linux", "illumos": "solaris", "ios": "darwin"}
_HOST_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
    "loongarch64": "loong64",
}


def host_goos() -> str:
    env = os.environ.get("GOOS")
    if env:
        return env
    for prefix, goos in (("linux", "linux"), ("darwin", "darwin"), ("win", "windows"),
                         ("freebsd", "freebsd"), ("openbsd", "openbsd"),
                         ("netbsd", "netbsd"), ("aix", "aix")):
        if sys.platform.startswith(prefix):
            return goos
    return sys.platform


def host_goarch() -> str:
    env = os.environ.get("GOARCH")
    if env:
        return env
    machine = platform.machine().lower()
    return _HOST_ARCH.get(machine, machine)


def build_context_tags(tags: Sequence[str] = ()) -> frozenset[str]:
    """Every tag satisfied under the current GOOS/GOARCH plus the user tags."""
    goos = host_goos()
    satisfied = {goos, host_goarch(), "gc", *GO_RELEASE_TAGS, *tags}
    if goos in _OS_IMPLIES:
        satisfied.add(_OS_IMPLIES[goos])
    if goos in UNIX_OS:
        satisfied.add("unix")
    if os.environ.get("CGO_ENABLED") == "1":
        satisfied.add("cgo")
    return frozenset(satisfied)


def match_file_name(name: str, tags: frozenset[str]) -> bool:
    """Apply the ``_GOOS``, ``_GOARCH`` and ``_GOOS_GOARCH`` file name suffixes."""
    stem = name.split(".", 1)[0]
    if "_" not in stem:
        return True
    parts = stem[stem.index("_") :].split("_")
    if parts and parts[-1] == "test":
        parts = parts[:-1]
    if len(parts) >= 2 and parts[-2] in KNOWN_OS and parts[-1] in KNOWN_ARCH:
        return parts[-2] in tags and parts[-1] in tags
    if parts and (parts[-1] in KNOWN_OS or parts[-1] in KNOWN_ARCH):
        return parts[-1] in tags
    return True


_CONSTRAINT_TOKEN_RE = re.compile(r"\s*(\(|\)|!|&&|\|\||[A-Za-z0-9_.]+)")


def eval_build_constraint(expr: str, tags: frozenset[str]) -> bool:
    """Evaluate a ``//go:build`` expression against the satisfied tags.

    Raises:
        ValueError: Malformed expression.
    """
    tokens: list[str] = []
    pos = 0
    while pos < len(expr):
        if expr[pos:].strip() == "":
            break
        match = _CONSTRAINT_TOKEN_RE.match(expr, pos)
        if match is None:
            raise ValueError(f"unexpected character in build constraint: {expr[pos:]!r}")
        tokens.append(match.group(1))
        pos = match.end()
    tokens.append("")
    index = 0

    def peek() -> str:
        return tokens[index]

    def take() -> str:
        nonlocal index
        token = tokens[index]
        index += 1
        return token

    def parse_or() -> bool:
        result = parse_and()
        while peek() == "||":
            take()
            result = parse_and() or result
        return result

    def parse_and() -> bool:
        result = parse_not()
        while peek() == "&&":
            take()
            result = parse_not() and result
        return result

    def parse_not() -> bool:
        token = take()
        if token == "!":
            return not parse_not()
        if token == "(":
            result = parse_or()
            if take() != ")":
                raise ValueError(f"missing ')' in build constraint: {expr!r}")
            return result
        if not token or token in (")", "&&", "||"):
            raise ValueError(f"unexpected {token or 'end'} in build constraint: {expr!r}")
        return token in tags

    result = parse_or()
    if peek():
        raise ValueError(f"unexpected {peek()} in build constraint: {expr!r}")
    return result


def _plus_build_expr(comment: Node) -> str | None:
    """Translate one ``// +build`` line: spaces OR, commas AND, ``!`` NOT."""
    text = node_text(comment)
    if not text.startswith("//"):
        return None
    body = text[2:].strip()
    rest = body[len("+build") :]
    if not body.startswith("+build") or (rest and not rest[0].isspace()):
        return None
    options = [f"({' && '.join(option.split(','))})" for option in rest.split()]
    if not options:
        return None
    return f"({' || '.join(options)})"


def find_build_expr(root: Node) -> str | None:
    """Build constraint of a file as a ``//go:build`` expression.

    Legacy ``// +build`` lines apply only without a ``//go:build`` line, and
    only from comment groups followed by a blank line.
    """
    header: list[Node] = []
    package_row: int | None = None
    for child in root.children:
        if child.type == "package_clause":
            package_row = child.start_point[0]
            break
        if child.type == "comment":
            text = node_text(child)
            if text.startswith("//go:build ") or text.startswith("//go:build\t"):
                return text[len("//go:build") :].strip()
            header.append(child)

    lines: list[str] = []
    group: list[Node] = []
    for index, comment in enumerate(header):
        group.append(comment)
        next_row = header[index + 1].start_point[0] if index + 1 < len(header) else package_row
        if next_row is not None and next_row <= comment.end_point[0] + 1:
            continue
        lines.extend(expr for expr in map(_plus_build_expr, group) if expr is not None)
        group = []
    return " && ".join(lines) if lines else None


# Module and import resolution


@dataclass(frozen=True)
class ModuleInfo:
    path: str
    directory: Path
    requires: dict[str, str]


def _strip_go_mod_comment(line: str) -> str:
    return line.split("//", 1)[0].strip()


def _unquote_mod_token(token: str) -> str:
    if len(token) >= 2 and token[0] in "\"`" and token[-1] == token[0]:
        return go_unquote(token)
    return token


def parse_go_mod(path: Path) -> ModuleInfo:
    module_path = ""
    requires: dict[str, str] = {}
    in_require = False
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = _strip_go_mod_comment(raw_line)
        if not line:
            continue
        if in_require:
            if line == ")":
                in_require = False
                continue
            fields = line.split()
            if len(fields) >= 2:
                requires[_unquote_mod_token(fields[0])] = fields[1]
            continue
        fields = line.split()
        if fields[0] == "module" and len(fields) >= 2:
            module_path = _unquote_mod_token(fields[1])
        elif fields[0] == "require":
            if fields[1:] == ["("]:
                in_require = True
            elif len(fields) >= 3:
                requires[_unquote_mod_token(fields[1])] = fields[2]
    return ModuleInfo(path=module_path, directory=path.parent, requires=requires)


def find_module(start: Path) -> ModuleInfo | None:
    start = start.resolve()
    for directory in (start, *start.parents):
        go_mod = directory / "go.mod"
        if go_mod.is_file():
            return parse_go_mod(go_mod)
    return None


@functools.lru_cache(maxsize=1)
def goroot() -> Path | None:
    env = os.environ.get("GOROOT")
    if env:
        return Path(env)
    try:
        result = subprocess.run(
            ["go", "env", "GOROOT"],
            check=True,
            capture_output=True,
            text=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
    value = result.stdout.strip()
    return Path(value) if value else None


def module_cache_dir() -> Path:
    env = os.environ.get("GOMODCACHE")
    if env:
        return Path(env)
    gopath = os.environ.get("GOPATH")
    if gopath:
        return Path(gopath.split(os.pathsep)[0]) / "pkg" / "mod"
    return Path.home() / "go" / "pkg" / "mod"


def escape_module_path(module_path: str) -> str:
    """Module cache escaping: upper-case letters become ``!`` + lower case."""
    return re.sub(r"[A-Z]", lambda m: "!" + m.group(0).lower(), module_path)


def _within(import_path: str, prefix: str) -> str | None:
    if import_path == prefix:
        return ""
    if import_path.startswith(prefix + "/"):
        return import_path[len(prefix) + 1 :]
    return None


class ImportResolver:
    """Map Go import paths to package directories.

    Lookup order: the enclosing module, its vendor directory, GOROOT/src, then
    the module cache at the version required by go.mod.
    """

    def __init__(self, module: ModuleInfo | None):
        self.module = module

    def resolve(self, import_path: str) -> Path | None:
        for candidate in self._candidates(import_path):
            if candidate.is_dir():
                return candidate
        return None

    def _candidates(self, import_path: str) -> list[Path]:
        candidates: list[Path] = []
        module = self.module
        if module is not None and module.path:
            rel = _within(import_path, module.path)
            if rel is not None:
                candidates.append(module.directory / rel if rel else module.directory)
            candidates.append(module.directory / "vendor" / import_path)
        root = goroot()
        if root is not None:
            candidates.append(root / "src" / import_path)
        if module is not None:
            best = ""
            for required in module.requires:
                if _within(import_path, required) is not None and len(required) > len(best):
                    best = required
            if best:
                rel = _within(import_path, best)
                base = module_cache_dir() / f"{escape_module_path(best)}@{module.requires[best]}"
                candidates.append(base / rel if rel else base)
        return candidates


# Package assembly


def parse_go_file(path: Path) -> SourceFile:
    source = path.read_bytes()
    tree = go_parser().parse(source)
    root = tree.root_node
    if root.has_error:
        print(f"  Warning: syntax errors in {path}")
    package_name = ""
    for child in root.named_children:
        if child.type == "package_clause":
            ident = next((c for c in child.named_children if c.type == "package_identifier"), None)
            package_name = node_text(ident) if ident is not None else ""
            break
    if not package_name:
        raise LoadError(f"{path}: expected 'package' clause")
    return SourceFile(
        path=path,
        source=source,
        tree=tree,
        package_name=package_name,
        build_expr=find_build_expr(root),
        imports=collect_imports(root),
    )


def select_package_files(directory: Path, tags: frozenset[str]) -> list[SourceFile]:
    """Parse the buildable, non-test Go files of a directory in name order."""
    selected: list[SourceFile] = []
    for path in sorted(directory.iterdir()):
        name = path.name
        if not name.endswith(".go") or not path.is_file():
            continue
        if name.startswith(("_", ".")) or name.endswith("_test.go"):
            continue
        if not match_file_name(name, tags):
            continue
        source_file = parse_go_file(path)
        if source_file.build_expr is not None:
            try:
                keep = eval_build_constraint(source_file.build_expr, tags)
            except ValueError as err:
                raise LoadError(f"{path}: {err}") from err
            if not keep:
                continue
        selected.append(source_file)
    return selected


def const_spec_names(spec: Node) -> list[Node]:
    return [node for node in spec.children_by_field_name("name") if node.is_named]


def collect_const_decls(file: SourceFile, block: Node) -> list[ConstDecl]:
    """Expand one const block into per-name declarations.

    A spec without type and values repeats the type and expressions of the
    last spec that had values, with its own iota.
    """
    decls: list[ConstDecl] = []
    last_type: Node | None = None
    last_values: list[Node] | None = None
    iota = 0
    for spec in block.named_children:
        if spec.type != "const_spec":
            continue
        type_node = spec.child_by_field_name("type")
        value_list = spec.child_by_field_name("value")
        if value_list is not None:
            last_type, last_values = type_node, named_children(value_list)
            values: list[Node] | None = last_values
        elif type_node is None:
            type_node, values = last_type, last_values
        else:
            values = None
        if not spec.has_error:
            for index, name_node in enumerate(const_spec_names(spec)):
                name = node_text(name_node)
                if name == "_":
                    continue
                expr = values[index] if values is not None and index < len(values) else None
                decls.append(ConstDecl(name, name_node, file, type_node, expr, iota))
        iota += 1
    return decls


def build_package(name: str, directory: Path, import_path: str, files: list[SourceFile]) -> Package:
    pkg = Package(name=name, directory=directory, path=import_path, files=files)
    for file in files:
        file.pkg = pkg
        for decl in file.root.named_children:
            if decl.type == "const_declaration":
                pkg.decls.extend(collect_const_decls(file, decl))
            elif decl.type == "type_declaration":
                for spec in decl.named_children:
                    if spec.type not in ("type_spec", "type_alias"):
                        continue
                    name_node = spec.child_by_field_name("name")
                    type_node = spec.child_by_field_name("type")
                    if name_node is not None and type_node is not None:
                        type_name = node_text(name_node)
                        pkg.types.setdefault(type_name, TypeDecl(type_name, file, type_node))
    for const in pkg.decls:
        pkg.scope.setdefault(const.name, const)
    return pkg


def _package_name(files: list[SourceFile]) -> str:
    names = list(dict.fromkeys(file.package_name for file in files))
    if len(names) != 1:
        raise LoadError(f"{len(names)} packages found")
    return names[0]


def _import_path_for(directory: Path, module: ModuleInfo | None, fallback: str) -> str:
    if module is None or not module.path:
        return fallback
    try:
        rel = directory.resolve().relative_to(module.directory)
    except ValueError:
        return fallback
    return module.path if str(rel) == "." else f"{module.path}/{rel.as_posix()}"


def _load_imported(
    primary: Package, resolver: ImportResolver, tags: frozenset[str]
) -> None:
    seen: set[str] = set()
    for imp in primary.imports:
        try:
            import_path = go_unquote(imp.path)
        except ValueError:
            print(f"  Warning: malformed import path {imp.path}")
            continue
        if import_path in seen:
            continue
        seen.add(import_path)
        if import_path == "C":
            print('  Warning: skipping import "C"')
            continue
        directory = resolver.resolve(import_path)
        if directory is None:
            print(f"  Warning: cannot resolve import {import_path}")
            continue
        files = select_package_files(directory, tags)
        if not files:
            print(f"  Warning: no buildable Go files for import {import_path}")
            continue
        try:
            name = _package_name(files)
        except LoadError as err:
            print(f"  Warning: skipping import {import_path}: {err}")
            continue
        primary.imported.append(build_package(name, directory, import_path, files))


def load_package(patterns: Sequence[str], tags: Sequence[str] = ()) -> Package:
    """Load one primary package and the packages it directly imports.

    Args:
        patterns: A single directory, or the .go files of one package.
        tags: Extra build tags; only valid with directory input.

    Returns:
        The primary Package with ``defs`` resolved for it and its imports.

    Raises:
        LoadError: Zero or several packages found, missing files, or tags
            combined with a file list.
    """
    paths = [Path(pattern) for pattern in patterns] or [Path(".")]
    is_directory = len(paths) == 1 and paths[0].is_dir()
    if tags and not is_directory:
        raise LoadError("build tags apply only to directories, not when files are specified")

    build_tags = build_context_tags(tags)
    if is_directory:
        directory = paths[0]
        files = select_package_files(directory, build_tags)
    else:
        for path in paths:
            if not path.is_file():
                raise LoadError(f"no such file: {path}")
            if path.suffix != ".go":
                raise LoadError(f"named files must be .go files: {path}")
        directories = {path.resolve().parent for path in paths}
        if len(directories) != 1:
            raise LoadError("named files must all be in one directory")
        directory = paths[0].parent
        files = [parse_go_file(path) for path in paths]

    name = _package_name(files)
    module = find_module(directory)
    pkg = build_package(name, directory, _import_path_for(directory, module, name), files)
    for file in files:
        pkg.imports.extend(file.imports)

    _load_imported(pkg, ImportResolver(module), build_tags)
    evaluate_constants(pkg)
    return pkg


# ===--- Constant evaluation ---=== #


@dataclass(frozen=True)
class TypedConst:
    value: ConstValue
    basic: BasicType | None = None  # None for untyped constants


_COMPARISON_OPS = frozenset({"==", "!=", "<", "<=", ">", ">="})
_BUILTINS = frozenset({"len", "complex", "real", "imag", "min", "max"})
_INVALID = TypedConst(UNKNOWN)


class ConstEvaluator:
    """Evaluate the constant declarations of one package.

    References into directly imported packages go through their own
    evaluators; those evaluators see no imports of their own.
    """

    def __init__(
        self,
        pkg: Package,
        imported: dict[str, Package] | None = None,
        registry: dict[str, "ConstEvaluator"] | None = None,
        report: bool = False,
    ):
        self.pkg = pkg
        self.imported = imported or {}
        self.registry = registry if registry is not None else {}
        self.report = report
        self._memo: dict[tuple[Path, int], TypedConst] = {}
        self._active: set[tuple[Path, int]] = set()
        self._type_memo: dict[str, BasicType] = {}
        self._types_active: set[str] = set()
        self._file_imports: dict[Path, tuple[dict[str, Package], list[Package]]] = {}
        self.registry.setdefault(pkg.path, self)

    def evaluate_all(self) -> dict[tuple[Path, int], ResolvedConst]:
        resolved: dict[tuple[Path, int], ResolvedConst] = {}
        for decl in self.pkg.decls:
            typed = self.eval_decl(decl)
            resolved[decl.key] = ResolvedConst(decl.name, typed.value, typed.basic)
        return resolved

    def eval_decl(self, decl: ConstDecl) -> TypedConst:
        key = decl.key
        if key in self._memo:
            return self._memo[key]
        if key in self._active:
            raise ConstEvalError(f"initialization cycle for {decl.name}")
        self._active.add(key)
        try:
            result = self._eval_decl(decl)
        except ConstEvalError as err:
            if self.report:
                print(f"  Warning: {decl.file.path}:{decl.line}: {decl.name}: {err}")
            result = _INVALID
        finally:
            self._active.discard(key)
        self._memo[key] = result
        return result

    def _eval_decl(self, decl: ConstDecl) -> TypedConst:
        if decl.expr is None:
            raise ConstEvalError("missing init expr for const declaration")
        typed = self.eval_expr(decl.expr, decl.file, decl.iota)
        if decl.type_node is None:
            return typed
        basic = self.resolve_type(decl.type_node, decl.file)
        return TypedConst(represent(typed.value, basic), basic)

    # Types

    def named_type(self, name: str) -> BasicType:
        """Underlying basic type of a type name declared in (or predeclared for) this package."""
        if name in self._type_memo:
            return self._type_memo[name]
        decl = self.pkg.types.get(name)
        if decl is None:
            if name in BASIC_TYPES:
                return BASIC_TYPES[name]
            raise ConstEvalError(f"undefined type {name}")
        if name in self._types_active:
            raise ConstEvalError(f"invalid recursive type {name}")
        self._types_active.add(name)
        try:
            basic = self.resolve_type(decl.type_node, decl.file)
        finally:
            self._types_active.discard(name)
        self._type_memo[name] = basic
        return basic

    def resolve_type(self, node: Node, file: SourceFile) -> BasicType:
        if node.type in ("type_identifier", "identifier"):
            return self.named_type(node_text(node))
        if node.type in ("parenthesized_type", "parenthesized_expression"):
            inner = named_children(node)
            if len(inner) == 1:
                return self.resolve_type(inner[0], file)
        if node.type in ("qualified_type", "selector_expression"):
            qualifier, name = self._split_selector(node)
            other = self._evaluator_for(qualifier, file)
            if other is not None:
                return other.named_type(name)
        raise ConstEvalError(f"{node_text(node)} is not a basic type")

    def _is_type_name(self, node: Node, file: SourceFile) -> bool:
        if node.type == "parenthesized_expression":
            inner = named_children(node)
            return len(inner) == 1 and self._is_type_name(inner[0], file)
        if node.type in ("identifier", "type_identifier"):
            name = node_text(node)
            if name in self.pkg.scope:
                return False
            return name in self.pkg.types or name in BASIC_TYPES
        if node.type in ("selector_expression", "qualified_type"):
            qualifier, name = self._split_selector(node)
            other = self._evaluator_for(qualifier, file)
            return other is not None and name in other.pkg.types
        return node.type in ("qualified_type", "parenthesized_type")

    # Imports

    def _imports_of(self, file: SourceFile) -> tuple[dict[str, Package], list[Package]]:
        cached = self._file_imports.get(file.path)
        if cached is not None:
            return cached
        named: dict[str, Package] = {}
        dotted: list[Package] = []
        for imp in file.imports:
            try:
                pkg = self.imported.get(go_unquote(imp.path))
            except ValueError:
                continue
            if pkg is None or imp.name == "_":
                continue
            if imp.name == ".":
                dotted.append(pkg)
            else:
                named[imp.name or pkg.name] = pkg
        self._file_imports[file.path] = (named, dotted)
        return named, dotted

    def _evaluator_for(self, qualifier: str, file: SourceFile) -> "ConstEvaluator | None":
        named, _ = self._imports_of(file)
        pkg = named.get(qualifier)
        if pkg is None:
            return None
        return evaluator_for(pkg, self.registry)

    @staticmethod
    def _split_selector(node: Node) -> tuple[str, str]:
        if node.type == "qualified_type":
            left = node.child_by_field_name("package")
            right = node.child_by_field_name("name")
        else:
            left = node.child_by_field_name("operand")
            right = node.child_by_field_name("field")
        if left is None or right is None or left.type not in ("identifier", "package_identifier"):
            raise ConstEvalError(f"unsupported selector {node_text(node)}")
        return node_text(left), node_text(right)

    # Expressions

    def lookup_const(self, name: str, file: SourceFile) -> TypedConst | None:
        decl = self.pkg.scope.get(name)
        if decl is not None:
            return self.eval_decl(decl)
        _, dotted = self._imports_of(file)
        for pkg in dotted:
            if name in pkg.scope:
                other = evaluator_for(pkg, self.registry)
                return other.eval_decl(pkg.scope[name])
        return None

    def eval_expr(self, node: Node, file: SourceFile, iota: int | None) -> TypedConst:
        """Evaluate a constant expression.

        Raises:
            ConstEvalError: The expression is not a valid constant.
        """
        kind = node.type
        text = node_text(node)
        try:
            if kind == "int_literal":
                return TypedConst(make_int(parse_int_literal(text)))
            if kind == "float_literal":
                return TypedConst(make_float(parse_float_literal(text)))
            if kind == "imaginary_literal":
                return TypedConst(make_complex(0, parse_imaginary_literal(text)))
            if kind == "rune_literal":
                return TypedConst(make_int(parse_rune_literal(text)))
            if kind in ("interpreted_string_literal", "raw_string_literal"):
                return TypedConst(make_string(parse_string_literal(text)))
        except ValueError as err:
            raise ConstEvalError(str(err)) from err

        if kind in ("true", "false"):
            return TypedConst(make_bool(kind == "true"))
        if kind == "iota":
            return self._iota(iota)
        if kind == "identifier":
            return self._eval_identifier(text, file, iota)
        if kind == "parenthesized_expression":
            inner = named_children(node)
            if len(inner) != 1:
                raise ConstEvalError(f"unsupported expression {text}")
            return self.eval_expr(inner[0], file, iota)
        if kind == "unary_expression":
            return self._eval_unary(node, file, iota)
        if kind == "binary_expression":
            left = self.eval_expr(node.child_by_field_name("left"), file, iota)
            right = self.eval_expr(node.child_by_field_name("right"), file, iota)
            return self._binary(left, node.child_by_field_name("operator").type, right)
        if kind == "selector_expression":
            qualifier, name = self._split_selector(node)
            other = self._evaluator_for(qualifier, file)
            if other is None or name not in other.pkg.scope:
                raise ConstEvalError(f"undefined: {text}")
            return self._valid(other.eval_decl(other.pkg.scope[name]), text)
        if kind == "call_expression":
            return self._eval_call(node, file, iota)
        if kind == "type_conversion_expression":
            basic = self.resolve_type(node.child_by_field_name("type"), file)
            operand = self.eval_expr(node.child_by_field_name("operand"), file, iota)
            return TypedConst(convert(operand.value, basic), basic)
        raise ConstEvalError(f"{text} is not constant")

    @staticmethod
    def _iota(iota: int | None) -> TypedConst:
        if iota is None:
            raise ConstEvalError("cannot use iota outside constant declaration")
        return TypedConst(make_int(iota))

    @staticmethod
    def _valid(typed: TypedConst, text: str) -> TypedConst:
        if typed.value.kind is Kind.UNKNOWN:
            raise ConstEvalError(f"{text} is not a valid constant")
        return typed

    def _eval_identifier(self, name: str, file: SourceFile, iota: int | None) -> TypedConst:
        found = self.lookup_const(name, file)
        if found is not None:
            return self._valid(found, name)
        if name in ("true", "false"):
            return TypedConst(make_bool(name == "true"))
        if name == "iota":
            return self._iota(iota)
        raise ConstEvalError(f"undefined: {name}")

    def _eval_unary(self, node: Node, file: SourceFile, iota: int | None) -> TypedConst:
        op = node.child_by_field_name("operator").type
        operand = self.eval_expr(node.child_by_field_name("operand"), file, iota)
        bits = None
        if operand.basic is not None and operand.basic.info == "uint":
            bits = operand.basic.size * 8
        return self._typed(unary_op(op, operand.value, bits), operand.basic)

    @staticmethod
    def _typed(value: ConstValue, basic: BasicType | None) -> TypedConst:
        if basic is None:
            return TypedConst(value)
        return TypedConst(represent(value, basic), basic)

    def _unify(self, left: TypedConst, right: TypedConst) -> tuple[ConstValue, ConstValue, BasicType | None]:
        basic = left.basic or right.basic
        lv, rv = left.value, right.value
        if basic is not None:
            if left.basic is None:
                lv = represent(lv, basic)
            if right.basic is None:
                rv = represent(rv, basic)
        return lv, rv, basic

    def _binary(self, left: TypedConst, op: str, right: TypedConst) -> TypedConst:
        if op in ("<<", ">>"):
            return self._typed(shift(left.value, op, right.value), left.basic)
        lv, rv, basic = self._unify(left, right)
        if op in _COMPARISON_OPS:
            return TypedConst(make_bool(compare(lv, op, rv)))
        if basic is not None:
            integer_division = basic.is_integer
        else:
            integer_division = lv.kind is Kind.INT and rv.kind is Kind.INT
        return self._typed(binary_op(lv, op, rv, integer_division), basic)

    def _eval_call(self, node: Node, file: SourceFile, iota: int | None) -> TypedConst:
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        args = named_children(arguments) if arguments is not None else []
        name = node_text(function)
        if function.type == "identifier" and name in _BUILTINS and name not in self.pkg.scope:
            values = [self.eval_expr(arg, file, iota) for arg in args]
            return self._builtin(name, values)
        if self._is_type_name(function, file):
            if len(args) != 1:
                raise ConstEvalError(f"conversion to {name} needs exactly one argument")
            basic = self.resolve_type(function, file)
            operand = self.eval_expr(args[0], file, iota)
            return TypedConst(convert(operand.value, basic), basic)
        raise ConstEvalError(f"{node_text(node)} is not constant")

    def _builtin(self, name: str, args: list[TypedConst]) -> TypedConst:
        if name == "len":
            if len(args) != 1 or args[0].value.kind is not Kind.STRING:
                raise ConstEvalError("len of a constant needs one string argument")
            size = len(args[0].value.val.encode("utf-8", "surrogateescape"))
            return TypedConst(make_int(size), BASIC_TYPES["int"])
        if name == "complex":
            if len(args) != 2:
                raise ConstEvalError("complex needs two arguments")
            re_value, im_value, basic = self._unify(args[0], args[1])
            complex_type = None
            if basic is not None:
                if basic.info != "float":
                    raise ConstEvalError(f"complex of {basic.name} arguments")
                complex_type = BASIC_TYPES["complex64" if basic.size == 4 else "complex128"]
            parts = []
            for value in (re_value, im_value):
                if value.kind is Kind.COMPLEX:
                    value = make_float(_to_fraction(value))
                if value.kind not in (Kind.INT, Kind.FLOAT):
                    raise ConstEvalError("complex needs numeric arguments")
                parts.append(value.val)
            return self._typed(make_complex(*parts), complex_type)
        if name in ("real", "imag"):
            if len(args) != 1 or args[0].value.kind not in _NUMERIC_RANK:
                raise ConstEvalError(f"{name} needs one numeric argument")
            arg = args[0]
            value = _promote(arg.value, Kind.COMPLEX)
            part = value.val[0 if name == "real" else 1]
            float_type = None
            if arg.basic is not None:
                if arg.basic.info != "complex":
                    raise ConstEvalError(f"{name} of {arg.basic.name} argument")
                float_type = BASIC_TYPES["float32" if arg.basic.size == 8 else "float64"]
            part_value = make_float(part) if isinstance(part, Fraction) else make_int(part)
            return self._typed(part_value, float_type)
        # min / max
        if not args:
            raise ConstEvalError(f"{name} needs at least one argument")
        best = args[0]
        for candidate in args[1:]:
            lv, rv, basic = self._unify(best, candidate)
            if lv.kind is Kind.COMPLEX or rv.kind is Kind.COMPLEX or lv.kind is Kind.BOOL:
                raise ConstEvalError(f"{name} needs ordered arguments")
            take_candidate = compare(rv, "<" if name == "min" else ">", lv)
            lv, rv = match_values(lv, rv)
            best = TypedConst(rv if take_candidate else lv, basic)
        return best


def evaluator_for(pkg: Package, registry: dict[str, ConstEvaluator]) -> ConstEvaluator:
    existing = registry.get(pkg.path)
    if existing is not None and existing.pkg is pkg:
        return existing
    return ConstEvaluator(pkg, registry=registry)


def evaluate_constants(primary: Package) -> None:
    """Resolve ``defs`` for the primary package and each package it imports."""
    imported = {pkg.path: pkg for pkg in primary.imported}
    registry: dict[str, ConstEvaluator] = {}
    primary_evaluator = ConstEvaluator(primary, imported, registry, report=True)
    primary.defs = primary_evaluator.evaluate_all()
    for pkg in primary.imported:
        pkg.defs = evaluator_for(pkg, registry).evaluate_all()


# ===--- Declaration scanner ---=== #


@dataclass(frozen=True)
class Value:
    """One resolved constant of the requested type."""

    name: str
    str: str
    exact_str: str
    kind: Kind

    @classmethod
    def from_const(cls, name: str, value: ConstValue) -> "Value":
        return cls(name=name, str=value.string(), exact_str=value.exact_string(), kind=value.kind)

    def is_bool(self) -> bool:
        return self.kind is Kind.BOOL

    def is_string(self) -> bool:
        return self.kind is Kind.STRING

    def is_int(self) -> bool:
        return self.kind is Kind.INT

    def is_float(self) -> bool:
        return self.kind is Kind.FLOAT

    def is_complex(self) -> bool:
        return self.kind is Kind.COMPLEX

    def __str__(self) -> str:
        return self.str

    def to_template(self) -> "TemplateValue":
        return TemplateValue({
            "Name": self.name,
            "Str": self.str,
            "ExactStr": self.exact_str,
            "Kind": str(self.kind),
            "IsBool": self.is_bool(),
            "IsString": self.is_string(),
            "IsInt": self.is_int(),
            "IsFloat": self.is_float(),
            "IsComplex": self.is_complex(),
        })


class TemplateValue(dict):
    """Template view of a Value; prints as its display string."""

    def __str__(self) -> str:
        return str(self["Str"])


@dataclass
class ScanSession:
    """Values and symbol errors collected for one (file, type) pairing."""

    type_name: str
    values: list[Value] = field(default_factory=list)
    errors: list[ScanSymbolError] = field(default_factory=list)


def walk_declarations(root: Node, visit: Callable[[Node], bool]) -> None:
    """Pre-order walk; children of a node are visited only if ``visit`` returns True."""
    pending = [root]
    while pending:
        node = pending.pop()
        if visit(node):
            pending.extend(reversed(node.named_children))


def scan_const_block(file: SourceFile, block: Node, session: ScanSession) -> bool:
    """Collect the values of ``session.type_name`` from one const block.

    Returns False when a name had no resolved symbol; the error is recorded in
    the session and the rest of the file is not scanned.
    """
    remembered = ""
    for spec in block.named_children:
        if spec.type != "const_spec":
            continue
        type_node = spec.child_by_field_name("type")
        if type_node is not None:
            # "X T": remember simple type names; skip qualified ones.
            if type_node.type != "type_identifier":
                continue
            remembered = node_text(type_node)
        elif spec.child_by_field_name("value") is not None:
            # "X = 1": untyped, resets the remembered type.
            remembered = ""

        if remembered != session.type_name:
            continue

        for name_node in const_spec_names(spec):
            name = node_text(name_node)
            if name == "_":
                continue
            resolved = file.pkg.lookup(file, name_node) if file.pkg is not None else None
            if resolved is None:
                line = name_node.start_point[0] + 1
                session.errors.append(ScanSymbolError(name, file.path, line))
                return False
            session.values.append(Value.from_const(name, resolved.value))
    return True


def scan_file(file: SourceFile, session: ScanSession) -> None:
    def visit(node: Node) -> bool:
        if node.type == "source_file":
            return True
        if node.type == "const_declaration" and not session.errors:
            scan_const_block(file, node, session)
        return False

    walk_declarations(file.root, visit)


# ===--- Parser ---=== #


@dataclass(frozen=True)
class Result:
    pkg_name: str
    type_name: str
    rep_type_name: str
    values: tuple[Value, ...]
    imports: tuple[Import, ...]

    def to_template(self) -> dict[str, object]:
        return {
            "PkgName": self.pkg_name,
            "TypeName": self.type_name,
            "RepTypeName": self.rep_type_name,
            "Values": [value.to_template() for value in self.values],
            "Imports": [imp.to_template() for imp in self.imports],
        }


def split_type_name(type_name: str, default_pkg: str) -> tuple[str, str]:
    """Split ``"os.FileMode"`` into ``("os", "FileMode")``; bare names use ``default_pkg``."""
    parts = type_name.split(".")
    if len(parts) == 1:
        return default_pkg, type_name
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ParseError(f"unexpected type name: {type_name}")


class Parser:
    def __init__(self, config: Config):
        self.config = config
        self.package: Package | None = None
        self._results: list[Result] = []
        self._base_package_name = ""

    def parse(self) -> None:
        """Load the package once, then inspect every requested type in order.

        Raises:
            LoadError: The package could not be loaded.
            ParseError: A malformed type name.
            InspectionError: Some constant names had no resolved symbol.
            NoValuesError: A type matched no constants.
        """
        self.package = load_package(self.config.dir_or_files, self.config.tags)
        self._base_package_name = self.package.name
        self._results = [self.inspect(type_name) for type_name in self.config.types]

    def inspect(self, type_name: str) -> Result:
        if self.package is None or not self.package.file_set:
            raise LoadError("no files found for inspecting")
        pkg_name, bare_name = split_type_name(type_name, self.package.name)

        values: list[Value] = []
        errors: list[ScanSymbolError] = []
        for file in self.package.file_set:
            if file.pkg is None or file.pkg.name != pkg_name:
                continue
            session = ScanSession(bare_name)
            scan_file(file, session)
            values.extend(session.values)
            errors.extend(session.errors)

        if errors:
            raise InspectionError(type_name, errors)
        if not values:
            raise NoValuesError(type_name)

        return Result(
            pkg_name=pkg_name,
            type_name=bare_name,
            rep_type_name=type_name,
            values=tuple(values),
            imports=tuple(self.package.imports),
        )

    def result_list(self) -> list[Result]:
        return list(self._results)

    def base_package_name(self) -> str:
        return self._base_package_name


# ===--- Template helpers ---=== #


def _is_lower(ch: str) -> bool:
    return "a" <= ch <= "z"


def _is_upper(ch: str) -> bool:
    return "A" <= ch <= "Z"


def _is_delimiter(ch: str) -> bool:
    return ch in ("-", "_", " ", "\t", "\n", "\r")


def _ascii_lower(ch: str) -> str:
    return ch.lower() if _is_upper(ch) else ch


def _ascii_upper(ch: str) -> str:
    return ch.upper() if _is_lower(ch) else ch


def _delimiter_case(text: str, delimiter: str, upper: bool) -> str:
    text = text.strip()
    adjust = _ascii_upper if upper else _ascii_lower
    out: list[str] = []
    prev = curr = ""
    for nxt in text:
        if _is_delimiter(curr):
            if not _is_delimiter(prev):
                out.append(delimiter)
        elif _is_upper(curr):
            if _is_lower(prev) or (_is_upper(prev) and _is_lower(nxt)):
                out.append(delimiter)
            out.append(adjust(curr))
        elif curr:
            out.append(adjust(curr))
        prev, curr = curr, nxt
    if text:
        if _is_upper(curr) and _is_lower(prev):
            out.append(delimiter)
        out.append(adjust(curr))
    return "".join(out)


def _camel_case(text: str, upper: bool) -> str:
    text = text.strip()
    out: list[str] = []
    chars = list(text)
    for i, curr in enumerate(chars):
        prev = chars[i - 1] if i > 0 else ""
        nxt = chars[i + 1] if i + 1 < len(chars) else ""
        if _is_delimiter(curr):
            continue
        if _is_delimiter(prev) or (upper and not prev):
            out.append(_ascii_upper(curr))
        elif _is_lower(prev):
            out.append(curr)
        elif _is_upper(prev) and _is_upper(curr) and _is_lower(nxt):
            # the "R" of "XRequestId"
            out.append(curr)
        else:
            out.append(_ascii_lower(curr))
    return "".join(out)


def snake_case(text: str) -> str:
    return _delimiter_case(text, "_", False)


def kebab_case(text: str) -> str:
    return _delimiter_case(text, "-", False)


def upper_snake_case(text: str) -> str:
    return _delimiter_case(text, "_", True)


def upper_kebab_case(text: str) -> str:
    return _delimiter_case(text, "-", True)


def upper_camel_case(text: str) -> str:
    return _camel_case(text, True)


def lower_camel_case(text: str) -> str:
    return _camel_case(text, False)


def _is_title_separator(ch: str) -> bool:
    if ord(ch) <= 0x7F:
        return not (ch.isalnum() or ch == "_")
    if ch.isalpha() or ch.isdecimal():
        return False
    return ch.isspace()


def _map_runes(text: str, mapping: Callable[[str], str]) -> str:
    out = []
    for ch in text:
        mapped = mapping(ch)
        out.append(mapped if len(mapped) == 1 else ch)
    return "".join(out)


def go_title(text: str) -> str:
    """strings.Title: upper-case the first letter of every word."""
    out = []
    prev = " "
    for ch in text:
        out.append(_map_runes(ch, str.title) if _is_title_separator(prev) else ch)
        prev = ch
    return "".join(out)


def unquote_or_original(text: str) -> str:
    try:
        return go_unquote(text)
    except ValueError:
        return text


def template_funcs() -> dict[str, Callable[..., object]]:
    return {
        "SnakeCase": snake_case,
        "KebabCase": kebab_case,
        "LowerCamelCase": lower_camel_case,
        "UpperSnakeCase": upper_snake_case,
        "UpperKebabCase": upper_kebab_case,
        "UpperCamelCase": upper_camel_case,
        "HasPrefix": lambda s, prefix: s.startswith(prefix),
        "HasSuffix": lambda s, suffix: s.endswith(suffix),
        "Contains": lambda s, sub: sub in s,
        "Title": go_title,
        "ToLower": lambda s: _map_runes(s, str.lower),
        "ToUpper": lambda s: _map_runes(s, str.upper),
        "TrimSpace": lambda s: s.strip(),
        "TrimPrefix": lambda s, prefix: s.removeprefix(prefix),
        "TrimSuffix": lambda s, suffix: s.removesuffix(suffix),
        "Trim": lambda s, cutset: s.strip(cutset),
        "TrimLeft": lambda s, cutset: s.lstrip(cutset),
        "TrimRight": lambda s, cutset: s.rstrip(cutset),
        "Quote": go_quote,
        "Unquote": unquote_or_original,
    }


# ===--- Generator ---=== #


def do_not_edit_banner(exec_args_str: str) -> str:
    return f'// Code generated by "{PROGRAM_NAME} {exec_args_str}"; DO NOT EDIT.'


def build_template_data(config: Config, parser: Parser) -> dict[str, object]:
    results = parser.result_list()
    if not results:
        raise RenderError(f"no values to render for types {', '.join(config.types)}")
    values_list = [result.to_template() for result in results]
    return {
        "doNotEdit": do_not_edit_banner(config.exec_args_str),
        "extra": dict(config.extra_data),
        "basePackageName": parser.base_package_name(),
        "values": values_list[0]["Values"],
        "valuesList": values_list,
    }


def format_source(source: bytes, command: Sequence[str] = DEFAULT_FORMATTER) -> bytes:
    """Pipe Go source through the formatter.

    Raises:
        FormatError: Formatter missing or rejected the source; ``source`` is
            attached unchanged.
    """
    try:
        result = subprocess.run(
            list(command),
            input=source,
            check=True,
            capture_output=True,
        )
    except subprocess.CalledProcessError as err:
        detail = err.stderr.decode("utf-8", "replace").strip()
        raise FormatError(f"format failed: {detail}", source) from err
    except FileNotFoundError as err:
        raise FormatError(f"format failed: {command[0]} not found", source) from err
    return result.stdout


class Generator:
    def __init__(self, config: Config):
        self.config = config
        self.template: jinja2.Template | None = None

    def load_template(self) -> None:
        """Parse the template file with the helper library bound.

        Raises:
            TemplateError: Missing or unreadable file, or a syntax error.
        """
        path = self.config.template_file
        env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(path.parent)),
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        funcs = template_funcs()
        env.globals.update(funcs)
        env.filters.update(funcs)
        try:
            self.template = env.get_template(path.name)
        except jinja2.TemplateNotFound as err:
            raise TemplateError(f"can't find template file {path}") from err
        except jinja2.TemplateSyntaxError as err:
            raise TemplateError(
                f"can't parse template file {path}: line {err.lineno}: {err.message}"
            ) from err
        except (OSError, UnicodeDecodeError) as err:
            raise TemplateError(f"can't read template file {path}: {err}") from err

    def generate(self, parser: Parser) -> bytes:
        """Render the parsed results and format them.

        Raises:
            RenderError: Template execution failed.
            FormatError: The rendered text is not valid Go; ``source`` holds it.
        """
        if self.template is None:
            raise RenderError("template not loaded")
        data = build_template_data(self.config, parser)
        try:
            body = self.template.render(data)
        except Exception as err:
            raise RenderError(f"template execution failed: {err}") from err
        return format_source(body.encode("utf-8", "surrogateescape"), self.config.formatter)


# ===--- Pipeline ---=== #


def write_output(path: Path, source: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(source)


def run_generate(config: Config) -> Path:
    """Load the template, parse the package, render, format and write.

    Raises:
        ConstconvError: Any pipeline failure. On FormatError the unformatted
            output is written before the error propagates.
        OSError: Output file not writable.
    """
    print(f"Loading: {' '.join(config.dir_or_files)}")
    generator = Generator(config)
    generator.load_template()
    print(f"  Template: {config.template_file}")

    parser = Parser(config)
    parser.parse()
    package = parser.package
    imported = len(package.imported) if package is not None else 0
    print(f"  Package: {parser.base_package_name()} ({imported} imports loaded)")
    for result in parser.result_list():
        print(f"  Type {result.rep_type_name}: {len(result.values)} values")

    try:
        source = generator.generate(parser)
    except FormatError as err:
        write_output(config.output_file, err.source)
        print(f"  Written (unformatted): {config.output_file}")
        raise
    write_output(config.output_file, source)
    print(f"  Written: {config.output_file}")
    return config.output_file


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        run_generate(config)
    except ConstconvError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except OSError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
