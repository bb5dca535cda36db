"""
Command trees: nodes owning bound configurations, argv parsing, hooks and rich help.

Overview
- Command: one node of a command tree. It owns two flag sets (local flags and persistent
  flags, the latter accepted anywhere below the node), a bound configuration dataclass,
  run hooks and a positional-argument validator.
- root_command()/sub_command(): create a node and bind its configuration. The environment
  prefix defaults to the parent's prefix extended with the command name, or to the
  SCREAMING_SNAKE command path for roots; every bound node gets a "printenv" child.
- root_group()/sub_group(): configuration-less nodes that only route to children; builders
  are callables receiving the new node as parent.
- invoke(): parse a prompt and run the selected command.

Execution order for one invocation
1. parse argv from the invoked node down to the selected leaf (faults are collected and
   raised together as CommandExit);
2. --help renders help and stops; a leaf without a run hook renders help as well;
3. positional-argument validation;
4. dotenv files (--env-file, --env-overwrite) on the root;
5. environment resolution for every node on the path (root first); invalid variables
   print the help to stderr and fail with InvalidEnvironmentError;
6. unbound-environment audit unless --env-lax;
7. required flags that ended up unset fail together with MissingRequiredError;
8. hooks: persistent pre-runs root → leaf, the leaf's pre-run, run and post-run, then
   persistent post-runs leaf → root. Each hook receives its own node's configuration,
   the leaf command and the positional arguments.

Example
    >>> @dataclass
    ... class Config:
    ...     name: str = field(default="", metadata={"flag": "required", "usage": "person to greet"})
    >>> def greet(config, command, args):
    ...     print(f"Hello, {config.name}!")
    >>> invoke(root_command(run(greet), Config(), "greet"), "--name world")
    Hello, world!
"""
import difflib
import functools
import itertools
import shlex
import sys
from collections import defaultdict, deque, namedtuple
from collections.abc import Iterable
from types import SimpleNamespace

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import envfiles, printenv
from .binding import bind_config, check_env_prefix
from .environment import apply_environment, check_environment
from .faults import *
from .faults import trigger as _trigger
from .flags import FlagSet
from .kinds import format_bool, parse_bool
from .naming import screaming_snake
from .utils import *
from .values import BoolValue, ListValue

Hooks = namedtuple(
    "Hooks",
    ("persistent_pre_run", "pre_run", "run", "post_run", "persistent_post_run"),
    defaults=(None, None, None, None, None),
)
Hooks.__doc__ = """
Run hooks of one command, each called as hook(config, command, args) or left None.

Only the persistent hooks of ancestors run when a descendant is selected.
"""


def setup(hook, /):
    """
    Hooks with only persistent_pre_run: runs for the command and every descendant.
    """
    return Hooks(persistent_pre_run=hook)


def run(hook, /):
    """
    Hooks with only run: runs when this exact command is selected.
    """
    return Hooks(run=hook)


def setup_and_run(setup, run, /):
    return Hooks(persistent_pre_run=setup, run=run)


_ORDINALS = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth")


@functools.cache
def _ordinal(number):
    """
    1 -> "first" … 10 -> "tenth", then 11 -> "11th", 22 -> "22nd", 103 -> "103rd".
    """
    if 1 <= number <= len(_ORDINALS):
        return _ORDINALS[number - 1]
    if 10 < number % 100 < 20:
        return "%dth" % number
    return "%d%s" % (number, {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th"))


def _route(command):
    return " ".join(step.name for step in command.path)


def _argument_count(command, message):
    return ArgumentCountError(
        message,
        title="wrong number of arguments",
        code=FaultCode.ARGUMENT_COUNT,
        hint="run '%s --help' to see the expected usage" % _route(command),
        docs=getdoc(FaultCode.ARGUMENT_COUNT),
    )


def no_args(command, args, /):
    """
    Accept no positional arguments (the default).
    """
    if args:
        raise _argument_count(command, "unexpected positional argument %r, '%s' takes no arguments" % (args[0], _route(command)))


def arbitrary_args(command, args, /):
    """
    Accept any positional arguments.
    """


def maximum_args(count, /):
    """
    Accept at most count positional arguments.
    """
    if not isinstance(count, int) or count < 0:
        raise TypeError("maximum_args() argument must be a non-negative integer")

    @rename("maximum_args")
    def validator(command, args, /):
        if len(args) > count:
            raise _argument_count(command, "'%s' accepts at most %d argument(s), received %d" % (_route(command), count, len(args)))

    return validator


def exact_args(count, /):
    """
    Accept exactly count positional arguments.
    """
    if not isinstance(count, int) or count < 0:
        raise TypeError("exact_args() argument must be a non-negative integer")

    @rename("exact_args")
    def validator(command, args, /):
        if len(args) != count:
            raise _argument_count(command, "'%s' accepts %d argument(s), received %d" % (_route(command), count, len(args)))

    return validator


class _Palette:
    """
    Help styles keyed by role; __styles__ in __main__ overrides entries. Plain unless colorful.
    """
    DEFAULTS = {
        "usage-label": "bold #00E6FF",
        "program-name": "bold #FF4D94",
        "usage-section": "bold #36C5F0",
        "description-section": "italic #A3A3A3",
        "epilog-section": "#737373",
        "group-label": "bold #FFFFFF",
        "flag-name": "bold #22C55E",
        "metavar": "bold #FFD600",
        "argument-description": "#9CA3AF",
        "required-note": "bold #FFD600",
        "env-note": "#737373",
        "env-set-note": "#22C55E",  # value taken from the environment
        "env-invalid-note": "bold #EF4444",
        "children-title": "bold #FFFFFF",
        "children-table": "#4B5563",
        "children": "bold #36C5F0",
        "children-description": "#9CA3AF",
        "name-column": "",
        "panel-title": "bold #FF4D94",
    }

    def __init__(self, colorful):
        self._styles = defaultdict(str, self.DEFAULTS | getattr(__import__("__main__"), "__styles__", {}))
        self._colorful = colorful

    def __getitem__(self, role):
        return self._styles[role] if self._colorful else ""

    def __call__(self, fragment, role=""):
        return Text(str(fragment), self[role])


_NOTE_ROLES = {
    "required": "required-note",
    "env": "env-note",
    "env-set": "env-set-note",
    "env-invalid": "env-invalid-note",
}

_DESCR_COLUMN = 15


def _flag_line(flag, paint, console, width):
    """
    "  -n, --name string  usage (notes)", the usage wrapped with a hanging indent.
    """
    names = ["--" + flag.name] if flag.abbrev is None else ["-" + flag.abbrev, "--" + flag.name]
    line = Text("  ").append(Text(", ").join(paint(name, "flag-name") for name in names))
    if flag.noopt is None:
        line.append(" ").append(paint(flag.type_name, "metavar"))

    parts = [paint(flag.descr, "argument-description")] if flag.descr else []
    parts.extend(paint(note, _NOTE_ROLES.get(kind, "argument-description")) for note, kind in flag.notes)
    if not parts:
        return line

    if len(line) < _DESCR_COLUMN:
        line.append(" " * (_DESCR_COLUMN - len(line)))
    else:
        line.append("\n" + " " * _DESCR_COLUMN)
    wrapped = Text(" ").join(parts).wrap(console, width - _DESCR_COLUMN)
    return line.append(Text("\n" + " " * _DESCR_COLUMN).join(wrapped))


class Command(metaclass=IntrospectiveType):
    """
    One node of a command tree.

    Properties
    - use, name: the use line ("sub [flags] <file>") and its first word.
    - descr, epilog: help paragraphs.
    - args: positional-argument validator, called as args(command, args).
    - hooks: Hooks of this node.
    - config, parameters: the bound configuration and its Parameters (None/[] for groups).
    - flags, persistent_flags: local and persistent FlagSets.
    - annotations: string keys to string values; "env" holds the environment prefix.
    - parent, children, path, root: tree navigation.
    - context: dict shared by every node of the current invocation, for hooks to pass state down.
    - environment: whether environment features are enabled (inherited from the parent).
    - shell, fancy, colorful: fault and help rendering options (inherited from the parent).
    """
    __introspectable__ = (
        "use",
        "name",
        "descr",
        "epilog",
        "args",
        "hooks",
        "config",
        "parameters",
        "flags",
        "persistent_flags",
        "annotations",
        "parent",
        "children",
        "environment",
        "shell",
        "fancy",
        "colorful",
    )
    __displayable__ = (
        "name",
        "descr",
        "children",
        "environment",
        "shell",
        "fancy",
        "colorful",
    )

    @property
    def root(self):
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """
        Ancestry from the root to this command, both included.
        """
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    @property
    def context(self):
        return self._context

    def __init__(
            self,
            use,
            /,
            parent=Unset,
            descr=Unset,
            epilog=Unset,
            args=Unset,
            hooks=Unset,
            *,
            environment=Unset,
            shell=Unset,
            fancy=Unset,
            colorful=Unset
    ):
        """
        Create a node and attach it to parent.

        Raises
        - TypeError on badly typed arguments.
        - ValueError when the use line is empty or the name is already taken under parent.
        """
        cls = type(self)
        if not isinstance(parent, Command | Unset):
            raise TypeError(f"{cls.__typename__} 'parent' must be a command")
        if not isinstance(use, str):
            raise TypeError(f"{cls.__typename__} 'use' must be a string")
        elif not (use := use.strip()):
            raise ValueError(f"{cls.__typename__} use line must be set, and should name the command")
        for key, object in (("descr", descr), ("epilog", epilog)):
            if not isinstance(object, str | Unset):
                raise TypeError(f"{cls.__typename__} {key!r} must be a string")
        if not callable(args := coalesce(args, no_args)):
            raise TypeError(f"{cls.__typename__} 'args' must be callable")
        if not isinstance(hooks := coalesce(hooks, Hooks()), Hooks):
            raise TypeError(f"{cls.__typename__} 'hooks' must be hooks")
        elif not all(hook is None or callable(hook) for hook in hooks):
            raise TypeError(f"{cls.__typename__} every hook must be callable or None")

        self._use = use
        self._name = use.split()[0]
        self._descr = coalesce(descr, "")
        self._epilog = coalesce(epilog, "")
        self._args = args
        self._hooks = hooks
        self._config = None
        self._parameters = []
        self._flags = FlagSet()
        self._persistent_flags = FlagSet()
        self._annotations = {}
        self._parent = coalesce(parent)
        self._children = {}
        self._environment = bool(coalesce(environment, getattr(self._parent, "environment", True)))
        self._shell = bool(coalesce(shell, getattr(self._parent, "shell", False)))
        self._fancy = bool(coalesce(fancy, getattr(self._parent, "fancy", False)))
        self._colorful = bool(coalesce(colorful, getattr(self._parent, "colorful", False)))
        self._context = {}
        self._switches = SimpleNamespace(help=False, env_file=[], env_overwrite=False, env_lax=False)

        if self._parent is not None:
            if self._parent._children.setdefault(self._name, self) is not self:
                typeof = "subcommand" if self._parent.parent else "command"
                raise ValueError(f"{cls.__typename__} {typeof} name {self._name!r} is already in use")

        self._flags.add(
            "help",
            BoolValue(self._switches, "help", "bool", parse_bool, format_bool),
            "h",
            "show this help message and exit",
        )
        if self._parent is None and self._environment:
            self._persistent_flags.add(
                "env-file",
                ListValue(self._switches, "env_file", "stringArray", str, str, split=None, quoted=True),
                None,
                "load dotenv file (repeat for multiple files)",
            )
            self._persistent_flags.add(
                "env-overwrite",
                BoolValue(self._switches, "env_overwrite", "bool", parse_bool, format_bool),
                None,
                "give precedence to dotenv environment variables",
            )
            self._persistent_flags.add(
                "env-lax",
                BoolValue(self._switches, "env_lax", "bool", parse_bool, format_bool),
                None,
                "do not fail on unbound environment variables",
            )

    def annotate(self, key, value="", /):
        self._annotations[key] = value

    def inherited_flags(self):
        """
        Persistent flags of the ancestors, nearest ancestor first.
        """
        for ancestor in reversed(self.path[:-1]):
            yield from ancestor.persistent_flags

    def _visible_flags(self):
        seen = set()
        for flag in itertools.chain(self.flags, self.persistent_flags, self.inherited_flags()):
            if flag.name not in seen:
                seen.add(flag.name)
                yield flag

    def _lookup(self, name, /, *, abbrev=False):
        for flags in (self.flags, self.persistent_flags, *(ancestor.persistent_flags for ancestor in reversed(self.path[:-1]))):
            if (flag := flags.shorthand(name) if abbrev else flags.lookup(name)) is not None:
                return flag
        return None

    def _default_prefix(self):
        if self.parent is not None and (prefix := self.parent.annotations.get("env")) is not None:
            return prefix + "_" + screaming_snake(self.name)
        return screaming_snake("_".join(step.name for step in self.path))

    def bind(self, config, /, env_prefix=Unset, *, registry=Unset):
        """
        Bind config to this command and return its Parameters.

        env_prefix defaults to the parent's prefix extended with this command's name
        (ROOT_SUB), or to the SCREAMING_SNAKE command path; None disables derived names.
        With environment features enabled a printenv child is attached.
        """
        if self._config is not None:
            raise ValueError(f"{type(self).__typename__} {self.name!r} is already bound")
        self._config = config
        self._parameters = bind_config(
            self,
            config,
            self._default_prefix() if env_prefix is Unset else env_prefix,
            registry=registry,
            environment=self.environment,
        )
        if self.environment:
            Command("printenv", self, printenv.DESCR, hooks=Hooks(run=printenv.run))
        return self.parameters

    @property
    def _options(self):
        return {"command": self, "shell": self.shell, "fancy": self.fancy, "colorful": self.colorful}

    def trigger(self, fault, /, *, help=Unset, **options):
        """
        Surface a fault with this command's rendering options.

        help (default: shell mode) renders this command's help to stderr first.
        """
        if coalesce(help, self.shell):
            self.help(stderr=True)
        _trigger(fault, **{**self._options, **options})

    def help(self, *, stderr=False):
        """
        Render help to stdout (or stderr).

        Layout: usage line, description, children table, "flags" (local and persistent),
        "global flags" (persistent flags of ancestors), epilog; framed in a panel when fancy.
        Flag notes are styled by kind: required-note, env-note, env-set-note, env-invalid-note.
        """
        console = Console(stderr=stderr)
        paint = _Palette(self.colorful)
        width = console.width - 4 * self.fancy  # panel borders

        renders = [self._usage(paint)]
        if self.descr:
            renders.append(paint(self.descr, "description-section").append("\n"))
        if self.children:
            renders.append(self._children_table(paint, int(width * 2 / 3)))
        if groups := self._flag_groups(paint, console, width):
            renders.append(groups)
        if self.epilog:
            renders.append(paint(self.epilog, "epilog-section").append("\n"))
        if isinstance(renders[-1], Text):
            renders[-1].rstrip()

        renderable = Group(*renders)
        if self.fancy:
            renderable = Panel(renderable, title=paint("[ %s HELP ]" % self.name.upper(), "panel-title"), title_align="left")
        console.print(renderable)

    def _usage(self, paint):
        usage = Text.assemble(paint("usage", "usage-label"), ": ")
        if ancestors := self.path[:-1]:
            usage.append(paint(" ".join(step.name for step in ancestors), "program-name")).append(" ")
        return usage.append(paint(self.use, "usage-section")).append("\n")

    def _children_table(self, paint, width):
        table = Table(
            "name", "help",
            title=paint("subcommands" if self.parent else "commands", "children-title"),
            width=width,
            box=ROUNDED,
            style=paint["children-table"],
            header_style=paint["children-title"],
        )
        for name, child in self.children.items():
            descr = child.descr or "no description, run '%s --help' for details" % _route(child)
            table.add_row(paint(name, "children"), paint(descr, "children-description"), style=paint["name-column"])
        return table

    def _flag_groups(self, paint, console, width):
        blocks = []
        for label, flags in (
                ("flags", itertools.chain(self.flags, self.persistent_flags)),
                ("global flags", self.inherited_flags()),
        ):
            if visible := [flag for flag in flags if not flag.hidden]:
                block = paint(label, "group-label").append(":\n")
                for flag in visible:
                    block.append(_flag_line(flag, paint, console, width)).append("\n")
                blocks.append(block)
        groups = Text("\n").join(blocks)
        if groups and self.children:
            groups = Text("\n").append(groups)
        return groups

    def _unknown_flag(self, input, index):
        candidates = [
            spelling
            for flag in self._visible_flags()
            for spelling in (("--" + flag.name,) if flag.abbrev is None else ("--" + flag.name, "-" + flag.abbrev))
        ]
        suggestions = difflib.get_close_matches(input, candidates, 5)
        try:
            hint = "did you mean %r? you can also run '%s --help' to see all flags" % (suggestions[0], _route(self))
        except IndexError:
            hint = "try '%s --help' to see all available flags" % _route(self)
        return UnknownFlagError(
            "unknown flag %r at %s position" % (input, _ordinal(index)),
            title="unknown flag",
            code=FaultCode.UNKNOWN_FLAG,
            input=input,
            index=index,
            suggestions=suggestions,
            hint=hint,
            docs=getdoc(FaultCode.UNKNOWN_FLAG),
            **self._options
        )

    def _malformed(self, input, index):
        return MalformedTokenError(
            "malformed token %r at %s position" % (input, _ordinal(index)),
            title="malformed token",
            code=FaultCode.MALFORMED_TOKEN,
            input=input,
            index=index,
            hint="long flags are written as --name or --name=value; use '--' to pass dashed arguments",
            docs=getdoc(FaultCode.MALFORMED_TOKEN),
            **self._options
        )

    def _value_required(self, flag, input, index):
        return FlagValueRequiredError(
            "flag %r at %s position needs a value" % (input, _ordinal(index)),
            title="missing flag value",
            code=FaultCode.FLAG_VALUE_REQUIRED,
            input=input,
            index=index,
            hint="pass a %s after it (for example: %s=<value>)" % (flag.type_name, input),
            docs=getdoc(FaultCode.FLAG_VALUE_REQUIRED),
            **self._options
        )

    def _unknown_command(self, input, index):
        suggestions = difflib.get_close_matches(input, self.children.keys(), 5)
        typeof = "subcommand" if self.parent else "command"
        try:
            hint = "did you mean %r? you can also run '%s --help' to see available %ss" % (suggestions[0], _route(self), typeof)
        except IndexError:
            hint = "run '%s --help' to see available %ss" % (_route(self), typeof)
        return (UnknownSubcommandError if self.parent else UnknownCommandError)(
            "unknown %s %r at %s position" % (typeof, input, _ordinal(index)),
            title="unknown %s" % typeof,
            code=FaultCode.UNKNOWN_SUBCOMMAND if self.parent else FaultCode.UNKNOWN_COMMAND,
            input=input,
            index=index,
            suggestions=suggestions,
            hint=hint,
            docs=getdoc(FaultCode.UNKNOWN_SUBCOMMAND if self.parent else FaultCode.UNKNOWN_COMMAND),
            **self._options
        )

    def _assign(self, flag, input, text, index):
        try:
            flag.set(text)
        except Exception as exception:
            return InvalidFlagValueError(
                "invalid value %r for flag %r at %s position: %s" % (text, input, _ordinal(index), exception),
                title="invalid flag value",
                code=FaultCode.INVALID_FLAG_VALUE,
                input=input,
                index=index,
                hint="%r expects a %s; run '%s --help' for details" % (input, flag.type_name, _route(self)),
                docs=getdoc(FaultCode.INVALID_FLAG_VALUE),
                **self._options
            )
        return None

    def _parseargs(self, tokens):
        """
        Walk tokens from this command down to the selected leaf, setting flags on the way.

        grammar
        - "--name=value", "--name value", "-n value", "-nvalue", "-n=value";
        - bool and count flags take no separate value ("--verbose", "-vvv"), but accept
          an inline one ("--verbose=false");
        - "--" ends flag parsing, everything after it is positional;
        - a bare word names a child command until the first positional argument;
          persistent flags of ancestors are accepted anywhere below them.

        returns (leaf, args); collected faults are raised together as CommandExit.
        """
        command, args, faults, index = self, [], [], 0

        while tokens:
            token = tokens.popleft()
            index += 1

            if token == "--":
                args.extend(tokens)
                tokens.clear()
            elif token.startswith("--"):
                name, separator, value = token[2:].partition("=")
                input = "--" + name
                if not name or name.startswith("-"):
                    faults.append(command._malformed(token, index))
                    continue
                if (flag := command._lookup(name)) is None:
                    faults.append(command._unknown_flag(input, index))
                    continue
                start = index
                if separator:
                    text = value
                elif flag.noopt is not None:
                    text = flag.noopt
                elif tokens:
                    text = tokens.popleft()
                    index += 1
                else:
                    faults.append(command._value_required(flag, input, start))
                    continue
                if fault := command._assign(flag, input, text, start):
                    faults.append(fault)
            elif token.startswith("-") and token != "-":
                shorthands, start = token[1:], index
                while shorthands:
                    char, shorthands = shorthands[0], shorthands[1:]
                    input = "-" + char
                    if (flag := command._lookup(char, abbrev=True)) is None:
                        faults.append(command._unknown_flag(input, start))
                        break
                    if shorthands.startswith("="):
                        text, shorthands = shorthands[1:], ""
                    elif flag.noopt is not None:
                        text = flag.noopt
                    elif shorthands:
                        text, shorthands = shorthands, ""
                    elif tokens:
                        text = tokens.popleft()
                        index += 1
                    else:
                        faults.append(command._value_required(flag, input, start))
                        break
                    if fault := command._assign(flag, input, text, start):
                        faults.append(fault)
            elif not args and token in command.children:
                command = command.children[token]
            elif not args and command.children and command.hooks.run is None:
                faults.append(command._unknown_command(token, index))
                break
            else:
                args.append(token)

        if faults:
            command.trigger(CommandExit(faults))

        return command, args

    def _rewind(self):
        for flag in itertools.chain(self._flags, self._persistent_flags):
            flag.rewind()
        for child in self._children.values():
            child._rewind()

    def _execute(self, tokens):
        self.root._rewind()
        leaf, args = self._parseargs(tokens)
        root = leaf.root

        context = {}
        for node in leaf.path:
            node._context = context

        if leaf._switches.help or leaf.hooks.run is None:
            leaf.help()
            return

        try:
            leaf.args(leaf, args)
            if leaf.environment:
                if files := root._switches.env_file:
                    (envfiles.load_with_overwrite if root._switches.env_overwrite else envfiles.load)(files)
                apply_environment(leaf)
                check_environment(leaf, lax=root._switches.env_lax)
            if missing := [flag.name for flag in leaf._visible_flags() if flag.required and not flag.changed]:
                raise MissingRequiredError(
                    "required flag(s) %s not set" % ", ".join(map(repr, missing)),
                    title="missing required flags",
                    code=FaultCode.MISSING_REQUIRED_FLAGS,
                    hint="pass them on the command line or through their environment variables",
                    names=tuple(missing),
                    docs=getdoc(FaultCode.MISSING_REQUIRED_FLAGS),
                )
        except InvalidEnvironmentError as fault:
            return leaf.trigger(fault, help=True)
        except CommandException as fault:
            return leaf.trigger(fault)

        for node in leaf.path:
            if (hook := node.hooks.persistent_pre_run) is not None:
                hook(node.config, leaf, args)
        for hook in (leaf.hooks.pre_run, leaf.hooks.run, leaf.hooks.post_run):
            if hook is not None:
                hook(leaf.config, leaf, args)
        for node in reversed(leaf.path):
            if (hook := node.hooks.persistent_post_run) is not None:
                hook(node.config, leaf, args)

    def __invoke__(self, prompt=Unset):
        """
        Execute this command with a token stream.

        Parameters
        - prompt:
          • Unset: read tokens from sys.argv[1:].
          • str: shell-like string; will be split via shlex.split.
          • Iterable[str]: pre-tokenized sequence; each element is trimmed.

        Raises
        - TypeError: when prompt is not Unset/str/Iterable[str], or when an
          iterable contains a non-string element.
        """
        if prompt is Unset:
            tokens = sys.argv[1:]
        elif isinstance(prompt, str):
            tokens = shlex.split(prompt)
        elif isinstance(prompt, Iterable):
            def _sanitized(iterable):
                for item in iterable:
                    if not isinstance(item, str):
                        raise TypeError(f"__invoke__() argument must be a string or an iterable of strings")
                    if item := item.strip():
                        yield item
            tokens = list(_sanitized(prompt))
        else:
            raise TypeError(f"__invoke__() argument must be a string or an iterable of strings")

        self._execute(deque(tokens))


def _check_parent(parent):
    if not isinstance(parent, Command):
        raise TypeError("sub-command parent must be a command")


def root_command(
        hooks,
        config,
        /,
        use,
        *,
        descr=Unset,
        epilog=Unset,
        args=Unset,
        env_prefix=Unset,
        environment=Unset,
        registry=Unset,
        shell=Unset,
        fancy=Unset,
        colorful=Unset
):
    """
    Create a root command and bind config to it.

    Parameters
    - hooks: Hooks (see setup(), run(), setup_and_run()).
    - config: dataclass instance; its fields become flags and environment variables.
    - use: use line, its first word names the command.
    - env_prefix: environment prefix (defaults to the SCREAMING_SNAKE name, None disables
      derived names).
    - environment: False disables every environment feature for the tree.
    - registry: TypeRegistry for this binding (defaults to default_registry).
    """
    command = Command(
        use, Unset, descr, epilog, args, hooks,
        environment=environment, shell=shell, fancy=fancy, colorful=colorful
    )
    command.bind(config, env_prefix, registry=registry)
    return command


def sub_command(
        parent,
        hooks,
        config,
        /,
        use,
        *,
        descr=Unset,
        epilog=Unset,
        args=Unset,
        env_prefix=Unset,
        registry=Unset,
        shell=Unset,
        fancy=Unset,
        colorful=Unset
):
    """
    Create a command under parent and bind config to it (see root_command()).

    The environment prefix defaults to the parent's prefix extended with this command's name.
    """
    _check_parent(parent)
    command = Command(
        use, parent, descr, epilog, args, hooks,
        shell=shell, fancy=fancy, colorful=colorful
    )
    command.bind(config, env_prefix, registry=registry)
    return command


def _group(command, env_prefix, builders):
    if command.environment:
        prefix = command._default_prefix() if env_prefix is Unset else env_prefix
        if prefix:
            check_env_prefix(prefix)
            command.annotate("env", prefix)
    for builder in builders:
        if not callable(builder):
            raise TypeError("group builders must be callable")
        builder(command)
    return command


def root_group(
        use,
        /,
        *builders,
        descr=Unset,
        epilog=Unset,
        env_prefix=Unset,
        environment=Unset,
        shell=Unset,
        fancy=Unset,
        colorful=Unset
):
    """
    Create a configuration-less root that routes to children made by builders.

    Each builder is called with the new command as its only argument, e.g.
        root_group("tool", lambda parent: sub_command(parent, run(main), Config(), "main"))
    """
    command = Command(
        use, Unset, descr, epilog,
        environment=environment, shell=shell, fancy=fancy, colorful=colorful
    )
    return _group(command, env_prefix, builders)


def sub_group(
        parent,
        use,
        /,
        *builders,
        descr=Unset,
        epilog=Unset,
        env_prefix=Unset,
        shell=Unset,
        fancy=Unset,
        colorful=Unset
):
    """
    Create a configuration-less command under parent (see root_group()).
    """
    _check_parent(parent)
    command = Command(
        use, parent, descr, epilog,
        shell=shell, fancy=fancy, colorful=colorful
    )
    return _group(command, env_prefix, builders)


def invoke(object, prompt=Unset, /):
    """
    Run a command with a prompt.

    Parameters
    - object: an instance providing __invoke__(prompt), typically a Command.
    - prompt:
      • Unset: read sys.argv[1:].
      • str: split with shlex.split.
      • Iterable[str]: use items as tokens (each must be str).

    Raises
    - TypeError: when object cannot be invoked or the prompt type is invalid.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        object.__invoke__(prompt)
        return

    target = "argument" if prompt is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method") from None


__all__ = (
    "Hooks",
    "Command",
    "setup",
    "run",
    "setup_and_run",
    "no_args",
    "arbitrary_args",
    "maximum_args",
    "exact_args",
    "root_command",
    "sub_command",
    "root_group",
    "sub_group",
    "invoke",
)
