"""
Flag values: text setters bound to one attribute of a configuration object.

Every value exposes the same small surface used by flags and the environment
resolver:
- set(text): parse text and store the result on the bound attribute (raises on bad input);
- str(value): the canonical text of the attribute's current value;
- type_name(): the short type label shown in help and env dumps (e.g. "int", "stringSlice");
- noopt: text implied when the flag is given without a value (bools and counters), else None.
- snapshot()/restore(snapshot): copy of the attribute's current object, and putting a copy
  of it back (a command tree rewinds its flags with these before each invocation).

Collection values follow the usual command-line semantics: the first explicit
set replaces the default, later sets append (lists) or merge (maps).
"""
import base64
import binascii
import copy
import csv
import io

from .kinds import parse_int


def split_csv(text):
    if not text:
        return []
    return next(csv.reader([text]))


def _join_csv(items):
    if not items:
        return ""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="").writerow(items)
    return buffer.getvalue()


def split_plain(text):
    if not text:
        return []
    return text.split(",")


class Value:
    """
    Base class: holds the (target, attribute) slot every subclass reads and writes.
    """
    noopt = None

    def __init__(self, target, attribute, /):
        self._target = target
        self._attribute = attribute

    def get(self):
        return getattr(self._target, self._attribute)

    def put(self, object):
        setattr(self._target, self._attribute, object)

    def snapshot(self):
        return copy.deepcopy(self.get())

    def restore(self, snapshot):
        self.put(copy.deepcopy(snapshot))

    def set(self, text):
        raise NotImplementedError

    def type_name(self):
        raise NotImplementedError

    def __str__(self):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}({self._attribute}={str(self)!r})"


class ScalarValue(Value):
    def __init__(self, target, attribute, /, name, parse, format):
        super().__init__(target, attribute)
        self._name = name
        self._parse = parse
        self._format = format

    def set(self, text):
        self.put(self._parse(text))

    def type_name(self):
        return self._name

    def __str__(self):
        return self._format(self.get())


class BoolValue(ScalarValue):
    noopt = "true"


class CountValue(Value):
    """
    Integer bumped once per bare occurrence (-v -v -v, or -vvv); an explicit value replaces it.
    """
    noopt = "+1"

    def set(self, text):
        if text == self.noopt:
            self.put(self.get() + 1)
        else:
            self.put(parse_int(text, base=10))

    def type_name(self):
        return "count"

    def __str__(self):
        return str(self.get())


class ListValue(Value):
    """
    List of parsed items; the first set replaces the default, later ones extend it.

    Options
    - split: how one text turns into items (csv, plain comma split, or None to keep
      the whole text as a single item for repeatable arrays).
    - quoted: render with csv quoting instead of a plain comma join.
    """

    def __init__(self, target, attribute, /, name, parse, format, *, split=split_plain, quoted=False):
        super().__init__(target, attribute)
        self._name = name
        self._parse = parse
        self._format = format
        self._split = split
        self._quoted = quoted
        self._touched = False

    def set(self, text):
        items = [text] if self._split is None else self._split(text)
        items = [self._parse(item) for item in items]
        if self._touched:
            items = list(self.get()) + items
        self.put(items)
        self._touched = True

    def restore(self, snapshot):
        super().restore(snapshot)
        self._touched = False

    def type_name(self):
        return self._name

    def __str__(self):
        items = [self._format(item) for item in self.get() or ()]
        return "[%s]" % (_join_csv(items) if self._quoted else ",".join(items))


class MapValue(Value):
    """
    Mapping of string keys to parsed values written as "key=value,key=value".
    """

    def __init__(self, target, attribute, /, name, parse, format, *, split=split_plain):
        super().__init__(target, attribute)
        self._name = name
        self._parse = parse
        self._format = format
        self._split = split
        self._touched = False

    def set(self, text):
        mapping = {}
        for pair in self._split(text):
            key, separator, value = pair.partition("=")
            if not separator:
                raise ValueError(f"{pair!r} must be formatted as key=value")
            mapping[key] = self._parse(value)
        if self._touched:
            mapping = dict(self.get()) | mapping
        self.put(mapping)
        self._touched = True

    def restore(self, snapshot):
        super().restore(snapshot)
        self._touched = False

    def type_name(self):
        return self._name

    def __str__(self):
        return "[%s]" % ",".join(f"{key}={self._format(value)}" for key, value in (self.get() or {}).items())


class BytesValue(Value):
    """
    Byte string written in hex ("DEADBEEF") or standard base64.
    """

    def __init__(self, target, attribute, /, encoding):
        super().__init__(target, attribute)
        self._encoding = encoding

    def set(self, text):
        try:
            if self._encoding == "hex":
                self.put(bytes.fromhex(text))
            else:
                self.put(base64.b64decode(text, validate=True))
        except binascii.Error as error:
            raise ValueError(str(error)) from None

    def type_name(self):
        return "bytesHex" if self._encoding == "hex" else "bytesBase64"

    def __str__(self):
        if self._encoding == "hex":
            return bytes(self.get()).hex().upper()
        return base64.b64encode(bytes(self.get())).decode("ascii")


class RegisteredValue(Value):
    """
    Value for a type known to a TypeRegistry; parse/serialize come from its registration.
    """

    def __init__(self, target, attribute, /, registration):
        super().__init__(target, attribute)
        self._registration = registration

    def set(self, text):
        self.put(self._registration.parse(text))

    def type_name(self):
        return self._registration.name

    def __str__(self):
        return self._registration.serialize(self.get())


class ForeignValue(Value):
    """
    Delegates to a value-like object stored on the attribute (set(text), str(), type_name()).
    """

    def set(self, text):
        self.get().set(text)

    def type_name(self):
        return self.get().type_name()

    def __str__(self):
        return str(self.get())


class TextValue(Value):
    """
    Delegates to a text codec: kind.from_text(text) builds the new value, which
    provides to_text() and type_desc().
    """

    def __init__(self, target, attribute, /, kind):
        super().__init__(target, attribute)
        self._kind = kind

    def set(self, text):
        self.put(self._kind.from_text(text))

    def type_name(self):
        return self.get().type_desc()

    def __str__(self):
        return self.get().to_text()


__all__ = (
    "Value",
    "ScalarValue",
    "BoolValue",
    "CountValue",
    "ListValue",
    "MapValue",
    "BytesValue",
    "RegisteredValue",
    "ForeignValue",
    "TextValue",
)
