"""
Flags and flag sets: the switch layer the binder registers parameters on.

Flag
- One named switch wrapping a Value (see cfgbind.values) plus the bookkeeping the
  environment resolver and the renderers need: whether it was changed, where its
  value came from (source), free-form annotations (env claim, processed marker,
  required marker), and usage notes appended after the declared description.

FlagSet
- An ordered collection of flags with unique long names and unique abbreviations.
  Commands own two of them: local flags and persistent flags (visible to descendants).
"""
from .utils import *

SOURCES = frozenset({"default", "explicit", "environment", "invalid-environment"})


class Flag(metaclass=IntrospectiveType):
    """
    A named switch bound to one value.

    Properties
    - name, abbrev, descr: long name, optional single-character abbreviation, declared usage.
    - value: the Value doing the parsing/formatting.
    - default: text of the value at registration time (shown in help and env dumps).
    - changed/source: whether anything set the flag, and whether that was the command
      line ("explicit") or the environment ("environment"); "invalid-environment" marks
      a variable that failed to parse.
    - annotations: string keys to string values ("env", "processed", "required", ...).
    - notes: (text, kind) pairs appended to the usage, e.g. ("(env NAME)", "env").
    """
    __introspectable__ = (
        "name",
        "abbrev",
        "descr",
        "value",
        "default",
        "changed",
        "hidden",
        "source",
        "annotations",
        "notes",
    )
    __displayable__ = (
        "name",
        "abbrev",
        "default",
        "changed",
        "source",
    )

    def __init__(self, name, value, /, abbrev=None, descr="", *, hidden=False):
        cls = type(self)
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        elif not name or name.startswith("-"):
            raise ValueError(f"{cls.__typename__} 'name' must be non-empty and must not start with a dash")
        if not isinstance(abbrev, str | None):
            raise TypeError(f"{cls.__typename__} 'abbrev' must be a string")
        elif abbrev is not None and len(abbrev) != 1:
            raise ValueError(f"{cls.__typename__} 'abbrev' must be a single character")
        if not isinstance(descr, str):
            raise TypeError(f"{cls.__typename__} 'descr' must be a string")
        self._name = name
        self._abbrev = abbrev
        self._descr = descr
        self._value = value
        self._default = str(value)
        self._changed = False
        self._hidden = bool(hidden)
        self._source = "default"
        self._annotations = {}
        self._notes = []
        self._initial = Unset

    @property
    def type_name(self):
        return self._value.type_name()

    @property
    def noopt(self):
        """
        Text implied by a bare occurrence ("--verbose"), or None when a value is mandatory.
        """
        return self._value.noopt

    @property
    def required(self):
        return "required" in self._annotations

    @property
    def usage(self):
        """
        Declared usage followed by every note, separated by single spaces.
        """
        return " ".join(part for part in (self._descr, *(text for text, _ in self._notes)) if part)

    def annotate(self, key, value="", /):
        self._annotations[key] = value

    def note(self, text, /, kind="plain"):
        self._notes.append((text, kind))

    def unnote(self, *kinds):
        """
        Drop every note of the given kinds (an environment note is rewritten once resolved).
        """
        self._notes = [(text, kind) for text, kind in self._notes if kind not in kinds]

    def set(self, text, /, *, source="explicit"):
        """
        Parse text into the value and mark the flag as changed by source.

        Parse errors propagate unchanged; the flag is left untouched in that case.
        """
        if source not in SOURCES:
            raise ValueError(f"{type(self).__typename__} 'source' must be one of {sorted(SOURCES)}")
        self._value.set(text)
        self._changed = True
        self._source = source

    def mark(self, source, /):
        """
        Record a source without setting a value (used for environment failures).
        """
        if source not in SOURCES:
            raise ValueError(f"{type(self).__typename__} 'source' must be one of {sorted(SOURCES)}")
        self._source = source

    def rewind(self):
        """
        Return the flag to the state it had before the first invocation.

        The first call only records that state (value snapshot, changed, source), taken after
        binding and any programmatic setup. Later calls restore it, drop the "processed"
        marker and turn resolved env notes back into "(env NAME)".
        """
        if self._initial is Unset:
            self._initial = (self._value.snapshot(), self._changed, self._source)
            return
        snapshot, self._changed, self._source = self._initial
        self._value.restore(snapshot)
        self._annotations.pop("processed", None)
        self.unnote("env", "env-set", "env-invalid")
        if (env := self._annotations.get("env")) is not None:
            self.note(f"(env {env})", "env")

    def __str__(self):
        return str(self._value)


class FlagSet(metaclass=IntrospectiveType):
    """
    Ordered flags keyed by long name, with an abbreviation index.
    """
    __displayable__ = (
        "names",
    )

    def __init__(self):
        self._flags = {}
        self._abbrevs = {}

    @property
    def names(self):
        return tuple(self._flags)

    def add(self, name, value, /, abbrev=None, descr="", *, hidden=False):
        """
        Register a new flag and return it.

        Raises ValueError when the long name or the abbreviation is already taken in this set.
        """
        cls = type(self)
        if name in self._flags:
            raise ValueError(f"{cls.__typename__} flag name {name!r} is already in use")
        if abbrev is not None and abbrev in self._abbrevs:
            raise ValueError(f"{cls.__typename__} abbreviation {abbrev!r} for {name!r} is already used by {self._abbrevs[abbrev].name!r}")
        flag = Flag(name, value, abbrev, descr, hidden=hidden)
        self._flags[name] = flag
        if abbrev is not None:
            self._abbrevs[abbrev] = flag
        return flag

    def lookup(self, name, /):
        return self._flags.get(name)

    def shorthand(self, abbrev, /):
        return self._abbrevs.get(abbrev)

    def set(self, name, text, /):
        """
        Set a flag by long name as if it was given on the command line.
        """
        if (flag := self.lookup(name)) is None:
            raise KeyError(name)
        flag.set(text)

    def __contains__(self, name):
        return name in self._flags

    def __iter__(self):
        return iter(tuple(self._flags.values()))

    def __len__(self):
        return len(self._flags)


__all__ = (
    "Flag",
    "FlagSet",
)
