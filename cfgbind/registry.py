"""
Runtime type registry for configuration field types unknown to the binder.

Scope
- Registration: one record per type with a display name, a parser (text -> value)
  and a serializer (value -> text).
- TypeRegistry: an explicit registry object. Binders receive one (or use
  default_registry); a registered type takes precedence over every built-in kind
  and extension capability, so applications can override default behavior for any type.
- register_type()/unregister_type(): shortcuts on default_registry.

Contract
- Lookups are by type identity (the resolved annotation of the field).
- Not internally synchronized: register types at startup, before binding starts
  on other threads.

Example
    >>> from decimal import Decimal
    >>> registry = TypeRegistry()
    >>> registry.register(Decimal, Decimal, str)
    registration(type=<class 'decimal.Decimal'>, name='Decimal', ...)
"""
import builtins
import logging

from .utils import *

logger = logging.getLogger(__name__)


class Registration(metaclass=IntrospectiveType):
    """
    Parse/serialize pair registered for one type.
    """
    __introspectable__ = (
        "type",
        "name",
        "parse",
        "serialize",
    )
    __displayable__ = (
        "type",
        "name",
    )

    def __init__(self, type, parse, serialize, /, name=Unset):
        cls = builtins.type(self)
        if not callable(parse):
            raise TypeError(f"{cls.__typename__} 'parse' must be callable")
        if not callable(serialize):
            raise TypeError(f"{cls.__typename__} 'serialize' must be callable")
        if not isinstance(name := coalesce(name, getattr(type, "__name__", Unset)), str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
        self._type = type
        self._name = name
        self._parse = parse
        self._serialize = serialize


class TypeRegistry(metaclass=IntrospectiveType):
    """
    Mapping from type identity to Registration.

    Behavior
    - register() replaces any previous registration for the same type.
    - unregister() returns the removed registration, or None when the type was unknown.
    - lookup() returns None when nothing is registered, which makes the binder fall
      through to its built-in and capability-based strategies.
    """
    __introspectable__ = (
        "registrations",
    )

    def __init__(self, registrations=(), /):
        self._registrations = {}
        for registration in registrations:
            if not isinstance(registration, Registration):
                raise TypeError(f"{builtins.type(self).__typename__} 'registrations' must be an iterable of registrations")
            self._registrations[registration.type] = registration

    def register(self, type, parse, serialize, /, name=Unset):
        registration = self._registrations[type] = Registration(type, parse, serialize, name)
        logger.debug("registered type %r as %r", type, registration.name)
        return registration

    def unregister(self, type, /):
        if (registration := self._registrations.pop(type, None)) is not None:
            logger.debug("unregistered type %r", type)
        return registration

    def lookup(self, type, /):
        try:
            return self._registrations.get(type)
        except TypeError:  # unhashable annotations are never registered
            return None

    def copy(self):
        return builtins.type(self)(self._registrations.values())

    def __contains__(self, type):
        return self.lookup(type) is not None

    def __iter__(self):
        return iter(tuple(self._registrations.values()))

    def __len__(self):
        return len(self._registrations)


default_registry = TypeRegistry()
"""
Process-wide registry used by binders that are not given one explicitly.
"""


def register_type(type, parse, serialize, /, name=Unset):
    """
    Register type on default_registry, e.g. to make a third-party type usable in configurations.

    Prefer a value-like or text-codec type for first-party types: those need no global state.
    """
    return default_registry.register(type, parse, serialize, name)


def unregister_type(type, /):
    """
    Remove type from default_registry (mostly useful in tests).
    """
    return default_registry.unregister(type)


__all__ = (
    "Registration",
    "TypeRegistry",
    "default_registry",
    "register_type",
    "unregister_type",
)
