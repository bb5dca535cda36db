"""
The printenv sub-command: dump a command's environment-bound parameters as a dotenv file.

Output (for the command the printenv child is attached to)
    # <full command path>

    # <name>[: <usage>] (type: <type>)[ (required)]
    <ENV>=<value>            when the flag was set (command line or environment)
    # <ENV>=<default>        otherwise

Local and persistent flags of the command come first, then persistent flags inherited
from its ancestors (nearest first). Hidden flags and flags without an environment claim
are skipped. Values are double-quoted unless they only contain letters, digits and
underscores; the quoting is cosmetic.
"""
import itertools
import json
import re
import sys

DESCR = "print all environment variable values or defaults for this command"


def _quote(text):
    if re.fullmatch(r"[A-Za-z0-9_]*", text):
        return text
    return json.dumps(text, ensure_ascii=False)


def render(command, /):
    """
    Return the dotenv text for command.
    """
    chunks = ["# %s\n" % " ".join(step.name for step in command.path)]
    for flag in itertools.chain(
            command.flags,
            command.persistent_flags,
            *(ancestor.persistent_flags for ancestor in reversed(command.path[:-1]))
    ):
        if flag.hidden or (env := flag.annotations.get("env")) is None:
            continue
        chunks.append("\n# %s" % flag.name)
        if flag.descr:
            chunks.append(": %s" % flag.descr)
        chunks.append(" (type: %s)" % flag.type_name)
        if flag.required:
            chunks.append(" (required)")
        if flag.changed:
            chunks.append("\n%s=%s\n" % (env, _quote(str(flag))))
        else:
            chunks.append("\n# %s=%s\n" % (env, _quote(flag.default)))
    return "".join(chunks)


def run(config, command, args):
    """
    Run hook of the printenv child: writes the dump of its parent to stdout.
    """
    sys.stdout.write(render(command.parent))


__all__ = (
    "render",
)
