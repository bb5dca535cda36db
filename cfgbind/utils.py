"""
Internal helpers shared by the flag, binding and command layers.

- Unset: "argument not given" sentinel, distinct from None (None often means "disable",
  e.g. env_prefix=None). coalesce() swaps it for a default and leaves every other value,
  falsey ones included, alone.
- rename("name"): decorator pinning __name__/__qualname__ on generated closures, so
  validators built by factories (maximum_args(2)) print under their factory's name.
- IntrospectiveType: metaclass for the package's records. Names listed in
  __introspectable__ become read-only properties over "_name" (containers are handed
  out as copies), __typename__ is the kebab-cased class name used in validation
  messages, and __repr__/__rich_repr__ list __displayable__ (or every introspectable).

    >>> class Point(metaclass=IntrospectiveType):
    ...     __introspectable__ = ("x", "tags")
    ...     def __init__(self):
    ...         self._x, self._tags = 1, ["a"]
    >>> Point()
    point(x=1, tags=['a'])
"""
import functools
import re
from collections.abc import Mapping, Sequence, Set
from typing import final


@final
class UnsetType:
    """
    Type of the Unset singleton: falsey, printed as "Unset", usable in unions (str | Unset).
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __or__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    __ror__ = __or__

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


Unset = UnsetType()


def coalesce(object, default=None, /):
    return default if object is Unset else object


def rename(name, /):
    """
    Decorator setting __name__ and __qualname__ of a function to name.
    """
    if not isinstance(name, str):
        raise TypeError("rename() argument must be a string")

    def decorator(function):
        if not callable(function):
            raise TypeError("rename() must decorate a callable")
        function.__name__ = function.__qualname__ = name
        return function

    return decorator


def _copied(object):
    # plain containers only; named tuples (Hooks, Tags) and FlagSets are returned as they are
    if type(object) is tuple:
        return tuple(map(_copied, object))
    if isinstance(object, tuple | str | bytes):
        return object
    if isinstance(object, Sequence):
        return list(map(_copied, object))
    if isinstance(object, Mapping):
        return {key: _copied(value) for key, value in object.items()}
    if isinstance(object, Set) and not isinstance(object, frozenset):
        return set(map(_copied, object))
    return object


def _property(name):
    @rename(name)
    def getter(self):
        return _copied(getattr(self, "_" + name))

    return property(getter)


class IntrospectiveType(type):
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        namespace = namespace | {"__typename__": re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()}
        for attribute in namespace.get("__introspectable__", ()):
            namespace[attribute] = _property(attribute)
        self = super().__new__(cls, name, bases, namespace)

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for attribute in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield attribute, getattr(self, attribute)

        @rename("__repr__")
        def __repr__(self):
            return "%s(%s)" % (
                type(self).__typename__,
                ", ".join("%s=%r" % item for item in self.__rich_repr__()),
            )

        self.__rich_repr__ = __rich_repr__
        self.__repr__ = __repr__
        return self


__all__ = (
    "Unset",
    "UnsetType",
    "coalesce",
    "rename",
    "IntrospectiveType",
)
