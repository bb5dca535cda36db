"""
Built-in value kinds: sized numeric types, durations and IP masks.

Scope
- Python has one int and one float; configurations that need the classic widths
  declare them with the NewTypes below (int8 … uint64, float32). Each kind has a
  parser that enforces its range and a formatter producing the canonical text form.
- Durations are datetime.timedelta values written in the usual "1h30m", "10m0s",
  "250ms" notation (units ns, us/µs, ms, s, m, h).
- ip_mask is an IPv4Address used as a netmask, written as 8 hex digits ("ffffff00")
  and read from either hex or dotted form.

Everything here is stateless; see cfgbind.values for the mutable flag values
built on top of these parsers.
"""
import decimal
import math
import re
import struct
from datetime import timedelta
from ipaddress import IPv4Address
from typing import NewType

int8 = NewType("int8", int)
int16 = NewType("int16", int)
int32 = NewType("int32", int)
int64 = NewType("int64", int)
uint = NewType("uint", int)
uint8 = NewType("uint8", int)
uint16 = NewType("uint16", int)
uint32 = NewType("uint32", int)
uint64 = NewType("uint64", int)
float32 = NewType("float32", float)
ip_mask = NewType("ip_mask", IPv4Address)

# (bits, signed) per sized integer kind; plain int is unbounded.
WIDTHS = {
    int8: (8, True),
    int16: (16, True),
    int32: (32, True),
    int64: (64, True),
    uint: (64, False),
    uint8: (8, False),
    uint16: (16, False),
    uint32: (32, False),
    uint64: (64, False),
}

# "010" is octal 8 when the base comes from the prefix
_LEADING_ZERO = re.compile(r"[+-]?0_?[0-9][0-9_]*")

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def parse_bool(text, /):
    """
    Accept 1/t/T/TRUE/true/True and 0/f/F/FALSE/false/False.
    """
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean {text!r}")


def format_bool(value, /):
    return "true" if value else "false"


def parse_int(text, /, kind=int, *, base=0):
    """
    Parse an integer and check the range of sized kinds.

    With base 0 the prefixes 0x, 0o and 0b are honored, and a bare leading zero also
    selects octal ("010" is 8).
    """
    text = text.strip()
    if base == 0 and _LEADING_ZERO.fullmatch(text):
        value = int(text, 8)
    else:
        value = int(text, base)
    if kind in WIDTHS:
        bits, signed = WIDTHS[kind]
        low, high = (-(1 << bits - 1), (1 << bits - 1) - 1) if signed else (0, (1 << bits) - 1)
        if not low <= value <= high:
            raise ValueError(f"value {text!r} out of range for {kind.__name__}")
    return value


def _round32(value):
    # float32 rounding; struct refuses values beyond the float32 range
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        raise ValueError(f"value {value!r} out of range for float32") from None


def parse_float(text, /, kind=float):
    value = float(text.strip())
    if kind is float32 and math.isfinite(value):
        value = _round32(value)
    return value


def _shortest32(value):
    """
    Shortest decimal text that rounds back to the same float32.
    """
    for precision in range(1, 10):
        if _round32(float(text := "%.*g" % (precision, value))) == value:
            return text
    return repr(value)


def format_float(value, /, kind=float):
    """
    Shortest round-trip text with exponent notation outside [1e-4, 1e6),
    e.g. 42.0 -> "42", 0.5 -> "0.5", 1e6 -> "1e+06".
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = _shortest32(value) if kind is float32 else repr(value)
    sign, digits, exponent = decimal.Decimal(text).normalize().as_tuple()
    prefix = "-" if sign else ""
    if digits == (0,):
        return prefix + "0"
    digits = "".join(map(str, digits))
    point = len(digits) + exponent
    if point - 1 < -4 or point - 1 >= 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        return "%s%se%+03d" % (prefix, mantissa, point - 1)
    if point <= 0:
        return prefix + "0." + "0" * -point + digits
    if point >= len(digits):
        return prefix + digits + "0" * (point - len(digits))
    return prefix + digits[:point] + "." + digits[point:]


_UNITS = {
    "ns": decimal.Decimal("0.001"),
    "us": decimal.Decimal(1),
    "µs": decimal.Decimal(1),
    "μs": decimal.Decimal(1),
    "ms": decimal.Decimal(1000),
    "s": decimal.Decimal(1000000),
    "m": decimal.Decimal(60000000),
    "h": decimal.Decimal(3600000000),
}
_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text, /):
    """
    Parse "1h30m", "-1.5s", "300ms" or "0" into a timedelta (microsecond resolution).
    """
    source = text.strip()
    body = source.lstrip("+-")
    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f"invalid duration {text!r}")

    total = decimal.Decimal(0)
    position = 0
    while position < len(body):
        if not (match := _COMPONENT.match(body, position)):
            raise ValueError(f"invalid duration {text!r}")
        total += decimal.Decimal(match[1]) * _UNITS[match[2]]
        position = match.end()

    microseconds = int(total.to_integral_value(decimal.ROUND_HALF_EVEN))
    return timedelta(microseconds=-microseconds if source.startswith("-") else microseconds)


def _fraction(value, unit):
    whole, rest = divmod(value, unit)
    if not rest:
        return str(whole)
    return "%d.%s" % (whole, str(rest).rjust(len(str(unit)) - 1, "0").rstrip("0"))


def format_duration(value, /):
    """
    Canonical duration text: "0s", "250ms", "1.5s", "10m0s", "1h0m0s".
    """
    total = value // timedelta(microseconds=1)
    if total == 0:
        return "0s"
    sign, total = ("-" if total < 0 else ""), abs(total)
    if total < 1000:
        return f"{sign}{total}µs"
    if total < 1000000:
        return f"{sign}{_fraction(total, 1000)}ms"

    seconds, micros = divmod(total, 1000000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    text = _fraction(seconds * 1000000 + micros, 1000000) + "s"
    if hours or minutes:
        text = f"{minutes}m{text}"
    if hours:
        text = f"{hours}h{text}"
    return sign + text


def parse_ip_mask(text, /):
    """
    Accept "255.255.255.0" or "ffffff00".
    """
    text = text.strip()
    if re.fullmatch(r"[0-9a-fA-F]{8}", text):
        return IPv4Address(int(text, 16))
    return IPv4Address(text)


def format_ip_mask(value, /):
    return "%08x" % int(value)


__all__ = (
    # Sized kinds
    "int8",
    "int16",
    "int32",
    "int64",
    "uint",
    "uint8",
    "uint16",
    "uint32",
    "uint64",
    "float32",
    "ip_mask",

    # Parsers and formatters
    "parse_bool",
    "format_bool",
    "parse_int",
    "parse_float",
    "format_float",
    "parse_duration",
    "format_duration",
    "parse_ip_mask",
    "format_ip_mask",
)
