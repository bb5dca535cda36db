"""
Errors raised by cfgbind, and how operator-facing ones render.

Two families
- SchemaError: the configuration dataclass itself is wrong (bad annotation, unsupported
  field type, clashing names). Raised while binding, never collected or rendered; fix the code.
- CommandException: something the operator typed or exported is wrong. Each carries a
  message and options (title, code, hint, docs, command, shell, fancy, colorful, plus
  fault-specific data such as input/index/names/errors) and renders itself through rich.

Faults found while parsing one command line are collected into a CommandExit group.
trigger() is the single exit point: it merges runtime options into the fault and either
raises it or, in shell mode, prints it to stderr and exits with status 1.

Host hooks read from __main__
- __styles__: palette overrides (see _PALETTE);
- __codes__: FaultCode -> label shown instead of the numeric code;
- __docs__: FaultCode -> short documentation string (see getdoc());
- __prog__: program name shown in headers instead of the root command name.
"""
import copy
import sys
from collections import defaultdict, namedtuple
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)

_PALETTE = {
    "prog-name": "bold #E6E6F0",  # near-white
    "code": "bold #00E5FF",  # cyan
    "error-title": "bold #FF4DA6",  # pink
    "title": "bold #FF4DA6",  # group title ("Bad Exit")
    "error-message": "#C8C8D0",  # light gray
    "hint-arrow": "#9CE19C dim",
    "hint": "italic #9CE19C",
    "docs": "#737373",
}


class SchemaError(ValueError):
    """
    Invalid configuration schema: the message names the offending field and the rule.
    """


FieldError = namedtuple("FieldError", ("flag", "error"))
FieldError.__doc__ = """
One environment variable that could not be applied: the flag it targets and the parse error.
"""


class FaultCode(IntEnum):
    """
    Stable numeric identifiers of operator-facing faults.

    1110x routing, 1111x/1112x flags, 1113x positionals, 1114x environment.
    """
    UNKNOWN_COMMAND             = 11101
    UNKNOWN_SUBCOMMAND          = 11102

    MALFORMED_TOKEN             = 11111
    UNKNOWN_FLAG                = 11112
    FLAG_VALUE_REQUIRED         = 11117
    INVALID_FLAG_VALUE          = 11124
    MISSING_REQUIRED_FLAGS      = 11125

    ARGUMENT_COUNT              = 11131

    INVALID_ENVIRONMENT         = 11141
    UNBOUND_ENVIRONMENT         = 11142
    DOTENV_FAILURE              = 11143

    def normalize(self):
        """
        Label for this code: the host's __codes__ entry, else the number as text.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _painter(colorful):
    """
    Return text(fragment, style) producing rich Text, styled from the palette when colorful.
    """
    styles = defaultdict(str, _PALETTE | getattr(__import__("__main__"), "__styles__", {}))

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment if colorful else Text(fragment.plain)
        return Text(str(fragment), styles[style] if colorful else "")

    return text


def _prog(options):
    try:
        name = options["command"].root.name
    except KeyError:
        name = "cfgbind"
    return getattr(__import__("__main__"), "__prog__", name)


class CommandException(Exception):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message or type(self).__name__

    def __rich__(self):
        text = _painter(self.options.get("colorful", False))

        code = self.options.get("code")
        header = Text.assemble(
            "[ ",
            text(_prog(self.options), "prog-name"),
            " — ",
            text(code.normalize() if code is not None else "", "code"),
            " | ",
            text(self.options.get("title", type(self).__name__).title(), "error-title"),
            " ]",
        )
        body = [
            text(self.message, "error-message"),
            Text.assemble(text(" → ", "hint-arrow"), text(self.options.get("hint"), "hint")),
        ]
        if docs := self.options.get("docs"):
            body.append(text(docs, "docs"))

        if self.options.get("fancy", False):
            ratio = self.options.get("ratio")
            width = None if ratio is None else int((console.width - 4) * ratio)
            return Panel(Group(*body), title=header, title_align="left", width=width)

        return Group(header, *body)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class MalformedTokenError(CommandException): ...
class UnknownFlagError(CommandException): ...
class FlagValueRequiredError(CommandException): ...
class InvalidFlagValueError(CommandException): ...
class UnknownCommandError(CommandException): ...
class UnknownSubcommandError(CommandException): ...
class ArgumentCountError(CommandException): ...
class DotenvError(CommandException): ...


class MissingRequiredError(CommandException):
    @property
    def names(self):
        """
        Required flags that neither argv nor the environment provided.
        """
        return self.options.get("names", ())


class InvalidEnvironmentError(CommandException):
    """
    One or more environment variables could not be applied to their flags.

    options["errors"] holds one FieldError per offending flag, in flag order; the
    message lists them as "  NAME: error" lines.
    """

    @property
    def errors(self):
        return self.options.get("errors", ())


class UnboundEnvironmentError(CommandException):
    """
    Environment variables share the command prefix but no flag claims them.

    options["names"] holds the unclaimed names, sorted.
    """

    @property
    def names(self):
        return self.options.get("names", ())


class CommandExit(ExceptionGroup[CommandException]):
    """
    Every fault found while parsing one command line.
    """

    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "bad exit", exceptions)

    def __init__(self, exceptions, **options):
        super().__init__("bad exit", tuple(exceptions))
        self.options = MappingProxyType(options)

    def __rich__(self):
        text = _painter(self.options.get("colorful", False))
        header = Text.assemble("[ ", text(_prog(self.options), "prog-name"), " — ", text(self.message.title(), "title"), " ]")
        renders = [copy.replace(exception, ratio=2 / 3) for exception in self.exceptions]
        if self.options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")
        return Group(header, *renders)

    __trigger__ = CommandException.__trigger__

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.exceptions, **{**self.options, **overrides})


def trigger(fault, /, **options):
    """
    Surface fault with options merged in (command, shell, fancy, colorful, ...).

    Raises the merged copy, or in shell mode prints it to stderr and exits with status 1.
    """
    for name in ("__trigger__", "__replace__"):
        if not callable(getattr(fault, name, None)):
            raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    Documentation string for code from the host's __docs__ mapping, or None.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    return getattr(__import__("__main__"), "__docs__", {}).get(code)


__all__ = (
    "SchemaError",
    "FieldError",
    "FaultCode",
    "CommandException",
    "MalformedTokenError",
    "UnknownFlagError",
    "FlagValueRequiredError",
    "InvalidFlagValueError",
    "UnknownCommandError",
    "UnknownSubcommandError",
    "ArgumentCountError",
    "MissingRequiredError",
    "DotenvError",
    "InvalidEnvironmentError",
    "UnboundEnvironmentError",
    "CommandExit",
    "trigger",
    "getdoc",
)
