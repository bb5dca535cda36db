"""
Field annotations: how a dataclass field asks to be exposed as a flag and an environment variable.

Two surfaces produce the same Annotation record:

- string tags in the field metadata, mirroring the classic struct-tag grammar
      name: str = field(default="", metadata={"param": "name,n", "env": "NAME", "usage": "who"})
  keys: "flag" (comma-separated options), "param" ("long,s" or a single "s"), "env"
  ("-" suppresses the variable), "encoding", "usage";
- the setting() builder, which returns a dataclasses.field carrying an Annotation
      name: str = setting("", param="name", abbrev="n", env="NAME", usage="who")

parse_tags() turns an Annotation plus the field name and the enclosing PrefixContext into
the final Tags (prefixed long name, abbreviation, environment name, usage, encoding,
effective options), raising SchemaError for every malformed annotation.
"""
import dataclasses
import logging
from collections import namedtuple

from .faults import SchemaError
from .naming import *
from .utils import *

logger = logging.getLogger(__name__)

PERSISTENT = "persistent"
REQUIRED = "required"
HIDDEN = "hidden"
OPTIONS = frozenset({PERSISTENT, REQUIRED, HIDDEN})

METADATA_KEY = "cfgbind"

Tags = namedtuple("Tags", ("name", "abbrev", "env", "usage", "encoding", "options"))

PrefixContext = namedtuple("PrefixContext", ("param_prefix", "env_prefix", "options"), defaults=("", None, frozenset()))
PrefixContext.__doc__ = """
Prefixes and inherited options in effect while walking one (possibly nested) dataclass.

- param_prefix: prepended to every long flag name ("" at the top, "level1-" inside a field named level1).
- env_prefix: prepended to derived environment names, including the trailing underscore; None
  when no derived names are wanted (explicit env names still apply).
- options: options OR-combined from enclosing fields; they only ever flow downward.
"""


def _options(object, /):
    if isinstance(object, str):
        object = object.split(",")
    try:
        return frozenset(option.strip() for option in object if option.strip())
    except (TypeError, AttributeError):
        raise TypeError("annotation 'options' must be a string or an iterable of strings") from None


class Annotation(metaclass=IntrospectiveType):
    """
    Parsed, not yet validated, field annotation.

    Empty strings count as absent (the tag grammar has no other way to say "not given").
    """
    __introspectable__ = (
        "options",
        "name",
        "abbrev",
        "env",
        "encoding",
        "usage",
    )

    def __init__(self, options=(), name=Unset, abbrev=Unset, env=Unset, encoding=Unset, usage=Unset):
        cls = type(self)
        self._options = _options(options)
        for key, object in (("name", name), ("abbrev", abbrev), ("env", env), ("encoding", encoding), ("usage", usage)):
            if not isinstance(object, str | Unset | None):
                raise TypeError(f"{cls.__typename__} {key!r} must be a string")
            setattr(self, "_" + key, object or None)

    @classmethod
    def from_metadata(cls, metadata, /):
        """
        Read the annotation of a dataclass field from its metadata mapping.

        A structured Annotation stored by setting() wins; otherwise the string tags are parsed.
        """
        if (annotation := metadata.get(METADATA_KEY)) is not None:
            if not isinstance(annotation, Annotation):
                raise TypeError(f"{cls.__typename__} metadata {METADATA_KEY!r} must be an annotation")
            return annotation
        name, _, abbrev = metadata.get("param", "").partition(",")
        return cls(
            metadata.get("flag", ""),
            name,
            abbrev,
            metadata.get("env", Unset),
            metadata.get("encoding", Unset),
            metadata.get("usage", Unset),
        )


def setting(
        default=dataclasses.MISSING,
        *,
        default_factory=dataclasses.MISSING,
        flag=(),
        param=Unset,
        abbrev=Unset,
        env=Unset,
        encoding=Unset,
        usage=Unset,
        **options
):
    """
    Build a dataclasses.field carrying a structured Annotation.

    Parameters
    - default / default_factory: forwarded to dataclasses.field.
    - flag: options, either "persistent,required" or an iterable such as ("required",).
    - param, abbrev: long name (without prefix) and single-character abbreviation.
    - env: absolute environment variable name, or "-" to suppress it.
    - encoding: type-specific encoding (count, hex, base64, csv, raw).
    - usage: help text.
    - options: forwarded to dataclasses.field (repr, compare, kw_only, ...).

    Example
        @dataclass
        class Config:
            verbose: int = setting(0, abbrev="v", encoding="count", env="-")
    """
    annotation = Annotation(flag, param, abbrev, env, encoding, usage)
    metadata = dict(options.pop("metadata", None) or {}) | {METADATA_KEY: annotation}
    return dataclasses.field(default=default, default_factory=default_factory, metadata=metadata, **options)


def parse_tags(annotation, field, context, /):
    """
    Resolve one field's annotation into Tags under the given PrefixContext.

    Rules
    - A single-character name is an abbreviation; combined with an explicit abbreviation
      it is rejected ("must be at least two characters").
    - The long name is param_prefix plus the explicit name, or plus slug(field).
    - Abbreviations must be exactly one character.
    - Without an explicit env, the name is env_prefix + screaming_snake(field), or None
      when no env prefix is in effect. "-" suppresses the variable; any other explicit
      name is used as-is and must be SCREAMING_SNAKE_CASE.
    - Unknown options are ignored with a warning; known ones are OR-combined with the
      inherited options.
    """
    name, abbrev = annotation.name, annotation.abbrev

    if name is not None and len(name) == 1:
        if abbrev is not None:
            raise SchemaError(f"param {name!r} for {field!r} must be at least two characters")
        name, abbrev = None, name
    name = context.param_prefix + (name if name is not None else slug(field))

    if abbrev is not None and len(abbrev) != 1:
        raise SchemaError(f"abbreviation {abbrev!r} for {name!r} must be a single character")

    match annotation.env:
        case None:
            env = None if context.env_prefix is None else context.env_prefix + screaming_snake(field)
        case "-":
            env = None
        case explicit if not is_screaming_snake(explicit):
            raise SchemaError(f"env {explicit!r} for {name!r} must be SCREAMING_SNAKE_CASE")
        case explicit:
            env = explicit

    for option in sorted(annotation.options - OPTIONS):
        logger.warning("ignoring unknown option %r on field %r", option, field)

    return Tags(
        name,
        abbrev,
        env,
        annotation.usage or "",
        annotation.encoding,
        (annotation.options & OPTIONS) | context.options,
    )


__all__ = (
    "PERSISTENT",
    "REQUIRED",
    "HIDDEN",
    "Annotation",
    "Tags",
    "PrefixContext",
    "setting",
    "parse_tags",
)
