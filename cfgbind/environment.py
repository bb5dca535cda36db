"""
Environment resolution for bound flags.

apply_environment(command)
- Runs after the command line was parsed. For every flag of the command and of its
  ancestors (local and persistent) that claims an environment variable:
  • explicitly given flags keep their value (explicit flag > environment > default);
  • otherwise a present variable is parsed through the flag, marking it changed with
    source "environment";
  • parse failures along the whole path are collected and raised together as
    InvalidEnvironmentError.
  Each flag is processed at most once per invocation: calling it again for a descendant
  never applies a variable twice, and Command rewinds its flags before the next run.

check_environment(command)
- Audits the environment for variables that carry the root command's prefix but are not
  claimed by the executing command or any of its ancestors (typos, stale deployment
  settings), raising UnboundEnvironmentError with the sorted names.
"""
import itertools
import json
import logging
import os

from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


def _own_flags(command):
    return itertools.chain(command.flags, command.persistent_flags)


def apply_environment(command, environ=Unset, /):
    """
    Apply claimed environment variables to the flags of command and of its ancestors.

    Notes
    - Nodes are visited root first; failures of every node are collected before raising,
      so one run reports each offending variable on the path.
    - An empty but present variable is applied (and may fail to parse, e.g. for ints).
    - Usage notes are rewritten to show the claim: "(env NAME)" when the variable is absent
      or overridden, '(env NAME="value")' when it was applied or rejected.
    """
    environ = coalesce(environ, os.environ)
    errors = []

    for flag in itertools.chain.from_iterable(map(_own_flags, command.path)):
        annotations = flag.annotations
        if "processed" in annotations or (env := annotations.get("env")) is None:
            continue
        flag.annotate("processed")
        flag.unnote("env", "env-set", "env-invalid")

        if flag.changed or (text := environ.get(env)) is None:
            flag.note(f"(env {env})", "env")
            continue

        try:
            flag.set(text, source="environment")
        except Exception as exception:
            flag.mark("invalid-environment")
            flag.note(f"(env {env}={json.dumps(text, ensure_ascii=False)})", "env-invalid")
            errors.append(FieldError(flag, exception))
            logger.debug("environment variable %s rejected by flag %r: %s", env, flag.name, exception)
        else:
            flag.note(f"(env {env}={json.dumps(text, ensure_ascii=False)})", "env-set")
            logger.debug("applied environment variable %s to flag %r", env, flag.name)

    if errors:
        route = " ".join(step.name for step in command.path)
        raise InvalidEnvironmentError(
            "invalid environment variables:\n%s" % "\n".join(
                "  %s: %s" % (error.flag.annotations["env"], error.error) for error in errors
            ),
            title="invalid environment",
            code=FaultCode.INVALID_ENVIRONMENT,
            hint="fix or unset them, or run '%s --help' to see the expected types" % route,
            errors=tuple(errors),
            docs=getdoc(FaultCode.INVALID_ENVIRONMENT),
        )


def check_environment(command, environ=Unset, /, *, lax=False):
    """
    Raise UnboundEnvironmentError when variables with the root prefix stay unclaimed.

    Behavior
    - The prefix is the root's "env" annotation followed by an underscore; without one
      (environment disabled or no prefix) there is nothing to audit.
    - Claims of the executing command and all of its ancestors are honored; variables
      of sibling commands count as unbound.
    - lax=True (the root's --env-lax) skips the audit.
    """
    if lax or (prefix := command.root.annotations.get("env")) is None:
        return
    prefix += "_"

    unbound = {name for name in coalesce(environ, os.environ) if name.startswith(prefix)}
    for node in command.path:
        for flag in _own_flags(node):
            unbound.discard(flag.annotations.get("env"))

    if unbound:
        names = tuple(sorted(unbound))
        raise UnboundEnvironmentError(
            "unbound environment variables:\n%s" % "\n".join("  " + name for name in names),
            title="unbound environment",
            code=FaultCode.UNBOUND_ENVIRONMENT,
            hint="unset them or pass --env-lax to skip this check",
            names=names,
            docs=getdoc(FaultCode.UNBOUND_ENVIRONMENT),
        )


__all__ = (
    "apply_environment",
    "check_environment",
)
