"""
Binding a configuration dataclass to a command's flag sets.

Overview
- Binder walks a dataclass instance field by field (declaration order), resolves each
  field's annotation into Tags, picks a Value for the field's type and registers it as a
  flag on the command: persistent fields on command.persistent_flags, all others on
  command.flags. Nested dataclasses are walked recursively with extended prefixes.
- bind_config() validates the environment prefix, records it on the command and runs a Binder.

Type dispatch (first match wins)
1. the TypeRegistry (explicit registrations override everything else);
2. built-in kinds: bool, int (or a counter with encoding "count"), the sized kinds of
   cfgbind.kinds, float, str, lists of those, bytes (hex/base64), str-keyed dicts,
   timedelta, IP addresses, masks and networks;
3. value-like objects: the current field value provides set(text), type_name() and __str__;
4. text codecs: the field type provides from_text(text), its instances to_text() and type_desc();
5. non-empty dataclass instances: walked recursively;
anything else is a SchemaError.

Schema errors are programmer mistakes: they are raised immediately and never collected.
"""
import dataclasses
import functools
import logging
import typing
from datetime import timedelta
from ipaddress import IPv4Address, IPv6Address, IPv4Network, IPv6Network

from .faults import SchemaError
from .kinds import *
from .registry import default_registry
from .tags import *
from .utils import *
from .values import *
from .values import split_csv, split_plain

logger = logging.getLogger(__name__)


class Parameter(metaclass=IntrospectiveType):
    """
    One bound leaf field, as registered on the command.

    - name/abbrev: long flag name (with prefix) and optional abbreviation.
    - env: claimed environment variable, or None.
    - usage: declared usage text.
    - persistent/required/hidden: effective options.
    - type_name: semantic type tag shown in help ("int", "stringSlice", ...).
    - flag: the registered Flag.
    """
    __introspectable__ = (
        "name",
        "abbrev",
        "env",
        "usage",
        "persistent",
        "required",
        "hidden",
        "type_name",
        "flag",
    )
    __displayable__ = (
        "name",
        "abbrev",
        "env",
        "type_name",
        "persistent",
        "required",
    )

    def __init__(self, tags, flag, /):
        self._name = tags.name
        self._abbrev = tags.abbrev
        self._env = tags.env
        self._usage = tags.usage
        self._persistent = PERSISTENT in tags.options
        self._required = REQUIRED in tags.options
        self._hidden = HIDDEN in tags.options
        self._type_name = flag.type_name
        self._flag = flag


# name, parser, formatter; parsers raise ValueError on bad input
_SCALARS = {
    str: ("string", str, str),
    int: ("int", parse_int, str),
    float: ("float64", parse_float, format_float),
    float32: ("float32", functools.partial(parse_float, kind=float32), functools.partial(format_float, kind=float32)),
    timedelta: ("duration", parse_duration, format_duration),
    IPv4Address: ("ip", IPv4Address, str),
    IPv6Address: ("ip", IPv6Address, str),
    ip_mask: ("ipMask", parse_ip_mask, format_ip_mask),
    IPv4Network: ("ipNet", functools.partial(IPv4Network, strict=False), str),
    IPv6Network: ("ipNet", functools.partial(IPv6Network, strict=False), str),
} | {
    kind: (kind.__name__, functools.partial(parse_int, kind=kind), str)
    for kind in (int8, int16, int32, int64, uint, uint8, uint16, uint32, uint64)
}

_SLICES = {
    bool: ("boolSlice", parse_bool, format_bool),
    int: ("intSlice", parse_int, str),
    int32: ("int32Slice", functools.partial(parse_int, kind=int32), str),
    int64: ("int64Slice", functools.partial(parse_int, kind=int64), str),
    uint: ("uintSlice", functools.partial(parse_int, kind=uint), str),
    float32: ("float32Slice",) + _SCALARS[float32][1:],
    float: ("float64Slice", parse_float, format_float),
    timedelta: ("durationSlice", parse_duration, format_duration),
}

_MAPS = {
    int: ("stringToInt", functools.partial(parse_int, base=10), str),
    int64: ("stringToInt64", functools.partial(parse_int, kind=int64, base=10), str),
    str: ("stringToString", str, str),
}


def _describe(hint):
    if isinstance(hint, type) and not typing.get_args(hint):
        return hint.__qualname__
    return repr(hint)


def _is_schema(object):
    return dataclasses.is_dataclass(object) and not isinstance(object, type)


def _is_value_like(object):
    return all(callable(getattr(object, name, None)) for name in ("set", "type_name"))


def _is_text_codec(hint, object):
    return (
        isinstance(hint, type) and
        isinstance(object, hint) and
        callable(getattr(hint, "from_text", None)) and
        callable(getattr(object, "to_text", None)) and
        callable(getattr(object, "type_desc", None))
    )


class Binder:
    """
    Registers the leaf fields of a configuration dataclass as flags of one command.

    Parameters
    - command: anything exposing flags, persistent_flags (FlagSet) and annotate(key, value).
    - registry: TypeRegistry consulted first; defaults to default_registry.
    - environment: False drops every environment claim (the environment kill-switch).
    """

    def __init__(self, command, /, *, registry=Unset, environment=True):
        self._command = command
        self._registry = coalesce(registry, default_registry)
        self._environment = bool(environment)
        self._claims = {}

    def bind(self, config, /, env_prefix=None):
        """
        Walk config and return the ordered list of bound Parameters.

        env_prefix is the bare prefix (no trailing underscore); "" derives unprefixed
        names and None means no derived environment names.
        """
        if not _is_schema(config):
            raise SchemaError(f"config must be a dataclass instance, got {type(config).__qualname__}")
        parameters = []
        if env_prefix is None or not self._environment:
            prefix = None
        else:
            prefix = env_prefix and env_prefix + "_"
        self._walk(config, PrefixContext("", prefix, frozenset()), parameters)
        return parameters

    def _walk(self, config, context, parameters):
        if type(config).__dataclass_params__.frozen:
            raise SchemaError(f"config {type(config).__qualname__} must not be a frozen dataclass")

        hints = typing.get_type_hints(type(config))
        for field in dataclasses.fields(config):
            if field.name.startswith("_"):
                continue

            tags = parse_tags(Annotation.from_metadata(field.metadata), field.name, context)
            if not self._environment:
                tags = tags._replace(env=None)
            hint = hints.get(field.name, field.type)

            if (value := self._dispatch(config, field.name, hint, tags)) is not None:
                parameters.append(self._register(field.name, tags, value))
            elif _is_schema(nested := getattr(config, field.name)) and dataclasses.fields(nested):
                self._walk(nested, PrefixContext(
                    tags.name + "-",
                    None if tags.env is None else tags.env + "_",
                    tags.options,
                ), parameters)
            else:
                raise SchemaError(f"unsupported field type {_describe(hint)} for {tags.name!r}")

    def _dispatch(self, config, field, hint, tags):
        """
        Return the Value for one field, or None when only recursion can handle it.
        """
        if (registration := self._registry.lookup(hint)) is not None:
            return RegisteredValue(config, field, registration)

        if hint is bool:
            if tags.encoding is not None:
                raise SchemaError(f"expected no encoding for bool {tags.name!r}, got encoding {tags.encoding!r}")
            return BoolValue(config, field, "bool", parse_bool, format_bool)

        if hint is int:
            match tags.encoding:
                case None:
                    pass
                case "count":
                    if tags.env is not None:
                        raise SchemaError(f"count encoding for {tags.name!r} requires env '-', environment variables cannot be counted")
                    return CountValue(config, field)
                case encoding:
                    raise SchemaError(f"expected no encoding or encoding 'count' for int {tags.name!r}, got encoding {encoding!r}")

        if hint is bytes:
            match tags.encoding:
                case "hex" | "base64" as encoding:
                    return BytesValue(config, field, encoding)
                case encoding:
                    raise SchemaError(f"expected encoding 'base64' or encoding 'hex' for bytes {tags.name!r}, got encoding {encoding or ''!r}")

        try:
            scalar = _SCALARS.get(hint)
        except TypeError:  # unhashable hint
            scalar = None
        if scalar is not None:
            if tags.encoding is not None:
                raise SchemaError(f"expected no encoding for {scalar[0]} {tags.name!r}, got encoding {tags.encoding!r}")
            return ScalarValue(config, field, *scalar)

        origin, arguments = typing.get_origin(hint), typing.get_args(hint)

        if origin is list and len(arguments) == 1:
            if (item := arguments[0]) is str:
                match tags.encoding:
                    case None | "csv":
                        return ListValue(config, field, "stringSlice", str, str, split=split_csv, quoted=True)
                    case "raw":
                        if tags.env is not None:
                            raise SchemaError(f"encoding 'raw' for string list {tags.name!r} requires env '-'")
                        return ListValue(config, field, "stringArray", str, str, split=None, quoted=True)
                    case encoding:
                        raise SchemaError(f"expected encoding 'csv' or encoding 'raw' for string list {tags.name!r}, got encoding {encoding!r}")
            try:
                if (items := _SLICES.get(item)) is not None:
                    return ListValue(config, field, *items)
            except TypeError:
                pass

        if origin is dict and len(arguments) == 2 and arguments[0] is str:
            try:
                if (mapping := _MAPS.get(arguments[1])) is not None:
                    return MapValue(config, field, *mapping, split=split_csv if arguments[1] is str else split_plain)
            except TypeError:
                pass

        current = getattr(config, field)
        if _is_value_like(current):
            return ForeignValue(config, field)
        if _is_text_codec(hint, current):
            return TextValue(config, field, hint)
        return None

    def _register(self, field, tags, value):
        command = self._command
        for flags in (command.flags, command.persistent_flags):
            if tags.name in flags:
                raise SchemaError(f"flag {tags.name!r} for {field!r} is already defined")
            if tags.abbrev is not None and (other := flags.shorthand(tags.abbrev)) is not None:
                raise SchemaError(f"abbreviation {tags.abbrev!r} for {tags.name!r} is already used by {other.name!r}")
        if tags.env is not None and tags.env in self._claims:
            raise SchemaError(f"env {tags.env!r} for {tags.name!r} is already claimed by {self._claims[tags.env]!r}")

        flags = command.persistent_flags if PERSISTENT in tags.options else command.flags
        flag = flags.add(tags.name, value, tags.abbrev, tags.usage, hidden=HIDDEN in tags.options)

        if REQUIRED in tags.options:
            flag.annotate("required")
            flag.note("(required)", "required")
        if tags.env is not None:
            self._claims[tags.env] = tags.name
            flag.annotate("env", tags.env)
            flag.note(f"(env {tags.env})", "env")

        logger.debug("bound %r as %s flag %r (env %s)", field, flag.type_name, flag.name, tags.env or "-")
        return Parameter(tags, flag)


def check_env_prefix(env_prefix, /):
    """
    Raise SchemaError unless env_prefix is all uppercase without a trailing underscore.
    """
    if env_prefix.upper() != env_prefix:
        raise SchemaError(f"env prefix {env_prefix!r} must be all uppercase")
    if env_prefix.endswith("_"):
        raise SchemaError(f"env prefix {env_prefix!r} must not end with an underscore, it is added automatically")


def bind_config(command, config, /, env_prefix=None, *, registry=Unset, environment=True):
    """
    Bind config to command and return the ordered Parameters.

    Parameters
    - env_prefix: SCREAMING_SNAKE prefix for derived environment names, all uppercase
      and without a trailing underscore (it is added automatically). "" derives
      unprefixed names, None disables derived names; explicit env annotations
      still apply. Only a non-empty prefix is audited for unbound variables.
    - registry: TypeRegistry to consult before the built-in kinds.
    - environment: False ignores every environment annotation.

    Behavior
    - The prefix is stored as command annotation "env" so sub-commands can extend it
      and the unbound-environment audit can find it.

    Raises
    - SchemaError on any invalid prefix, annotation or field type.
    """
    if not isinstance(env_prefix, str | None):
        raise TypeError("bind_config() 'env_prefix' must be a string")
    if env_prefix:
        check_env_prefix(env_prefix)
        if environment:
            command.annotate("env", env_prefix)
    return Binder(command, registry=registry, environment=environment).bind(config, env_prefix)


__all__ = (
    "Parameter",
    "Binder",
    "bind_config",
    "check_env_prefix",
)
