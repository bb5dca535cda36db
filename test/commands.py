"""
Command tree behavioral tests (execution, hooks, environment, dotenv, faults, help).

Scope
- Validate execution of root commands, groups and nested sub-commands.
- Validate hook order, per-command configurations and context propagation.
- Validate environment features end to end: prefixes of sub-commands, applying each
  variable once, the kill-switch, invalid and unbound variables, dotenv files.
- Validate argv parsing (long/short forms, terminator) and the collected faults.
- Validate help rendering and shell-mode exits.
- Validate that running a tree again starts from the bound defaults.

Conventions
- Test method names follow CamelCase per project convention.
- os.environ is cleared for every test; tests that need variables patch them in.
- Output is captured with contextlib.redirect_stdout/redirect_stderr.
"""
import io
import os
import tempfile
import unittest
from collections import Counter
from contextlib import redirect_stderr, redirect_stdout
from dataclasses import dataclass, field
from unittest import TestCase, mock

from cfgbind import (
    Hooks,
    invoke,
    root_command,
    root_group,
    sub_command,
    sub_group,
    run,
    setup,
    setup_and_run,
    no_args,
    arbitrary_args,
    maximum_args,
    exact_args,
)
from cfgbind.faults import (
    ArgumentCountError,
    CommandExit,
    DotenvError,
    FaultCode,
    FlagValueRequiredError,
    InvalidEnvironmentError,
    InvalidFlagValueError,
    MalformedTokenError,
    MissingRequiredError,
    UnboundEnvironmentError,
    UnknownCommandError,
    UnknownFlagError,
    UnknownSubcommandError,
)
from cfgbind import envfiles


@dataclass
class TrivialConfig:
    foo: str = ""
    bar: int = 0


@dataclass
class SubConfig:
    bar: str = ""


@dataclass
class NumberConfig:
    count: int = 0


@dataclass
class ListConfig:
    tags: list[str] = field(default_factory=lambda: ["a"])


@dataclass
class RequiredConfig:
    name: str = field(default="", metadata={"flag": "required", "usage": "person to greet"})


@dataclass
class ShortConfig:
    verbose: int = field(default=0, metadata={"param": "v", "encoding": "count", "env": "-"})
    name: str = field(default="", metadata={"param": "name,n"})
    quiet: bool = field(default=False, metadata={"param": "q"})


class SetCounter:
    """Value-like type counting how often it was set."""

    def __init__(self):
        self.count = 0

    def set(self, text):
        self.count += 1

    def type_name(self):
        return "setCounter"

    def __str__(self):
        return str(self.count)


@dataclass
class CountConfig:
    count: SetCounter = field(default_factory=SetCounter)


class FooMismatch(Exception):
    def __init__(self, actual):
        super().__init__(f'expected config.foo="foo", got {actual!r}')
        self.actual = actual


def trivial_run(config, command, args):
    if config.foo != "foo":
        raise FooMismatch(config.foo)


def noop(config, command, args):
    pass


@mock.patch.dict(os.environ, {}, clear=True)
class TestExecution(TestCase):
    """Running commands and groups."""

    def testExecute(self):
        command = root_command(run(trivial_run), TrivialConfig(), "cfgbind-test")
        self.assertIs(command.args, no_args)
        invoke(command, ["--foo", "foo"])

    def testPromptString(self):
        config = TrivialConfig()
        invoke(root_command(run(noop), config, "cfgbind-test"), "--foo 'two words' --bar=3")
        self.assertEqual((config.foo, config.bar), ("two words", 3))

    def testGroups(self):
        def subgroup(index):
            def build(parent):
                sub_group(parent, f"sub{index}", lambda parent: sub_command(parent, run(trivial_run), TrivialConfig(), "leaf"))
            return build

        command = root_group("cfgbind-test", *map(subgroup, range(1, 4)))
        self.assertEqual(sum(name.startswith("sub") for name in command.children), 3)
        self.assertEqual(command.children["sub2"].children["leaf"].annotations["env"], "CFGBIND_TEST_SUB2_LEAF")
        invoke(command, ["sub1", "leaf", "--foo", "foo"])

    def testGroupWithoutCommandRendersHelp(self):
        command = root_group("cfgbind-test", lambda parent: sub_command(parent, run(noop), TrivialConfig(), "leaf"))
        with redirect_stdout(io.StringIO()) as stdout:
            invoke(command, [])
        self.assertIn("usage: cfgbind-test", stdout.getvalue())

    def testMissingUseLine(self):
        with self.assertRaisesRegex(ValueError, "use line"):
            root_command(run(trivial_run), TrivialConfig(), "")
        with self.assertRaisesRegex(ValueError, "use line"):
            root_command(run(trivial_run), TrivialConfig(), "   ")

    def testUseLineNamesCommand(self):
        command = root_command(run(noop), TrivialConfig(), "cfgbind-test --foo <foo>")
        self.assertEqual(command.name, "cfgbind-test")
        self.assertEqual(command.use, "cfgbind-test --foo <foo>")

    def testDuplicateChildName(self):
        command = root_command(run(noop), TrivialConfig(), "cfgbind-test")
        sub_command(command, run(noop), TrivialConfig(), "sub")
        with self.assertRaises(ValueError):
            sub_command(command, run(noop), TrivialConfig(), "sub")

    def testInvokeRejectsBadArguments(self):
        command = root_command(run(noop), TrivialConfig(), "cfgbind-test")
        with self.assertRaises(TypeError):
            invoke(object())
        with self.assertRaises(TypeError):
            invoke(command, 42)
        with self.assertRaises(TypeError):
            invoke(command, ["--foo", 42])

    def testSubCommandNeedsCommandParent(self):
        with self.assertRaises(TypeError):
            sub_command(object(), run(noop), TrivialConfig(), "sub")


@mock.patch.dict(os.environ, {}, clear=True)
class TestHooks(TestCase):
    """Hook order, configurations and the shared context."""

    def testContextPropagation(self):
        calls = Counter()

        def root_setup(config, command, args):
            command.context["foo"] = config.foo

        def root_other(config, command, args):
            calls["root"] += 1

        def sub_other(config, command, args):
            calls["sub"] += 1

        def sub_main(config, command, args):
            self.assertEqual(command.context.get("foo"), "foo")
            self.assertEqual(args, ["baz"])
            self.assertEqual(config.bar, "bar")
            calls["main"] += 1

        root = root_command(
            Hooks(root_setup, root_other, root_other, root_other, root_other),
            TrivialConfig(foo="foo default"),
            "root",
        )
        sub = sub_command(
            root,
            Hooks(sub_other, sub_other, sub_main, sub_other, sub_other),
            SubConfig(bar="bar default"),
            "sub",
            args=arbitrary_args,
        )
        self.assertIn("(env ROOT_SUB_BAR)", sub.flags.lookup("bar").usage)

        invoke(root, ["--foo", "foo", "sub", "--bar", "bar", "baz"])
        self.assertEqual(calls, Counter(root=1, sub=4, main=1))

    def testOrder(self):
        events = []

        def hooks(name):
            def hook(step):
                return lambda config, command, args: events.append((name, step, command.name))
            return Hooks(*map(hook, Hooks._fields))

        root = root_command(hooks("root"), TrivialConfig(), "root")
        sub_command(root, hooks("sub"), SubConfig(), "sub")
        invoke(root, ["sub"])
        self.assertEqual(events, [
            ("root", "persistent_pre_run", "sub"),
            ("sub", "persistent_pre_run", "sub"),
            ("sub", "pre_run", "sub"),
            ("sub", "run", "sub"),
            ("sub", "post_run", "sub"),
            ("sub", "persistent_post_run", "sub"),
            ("root", "persistent_post_run", "sub"),
        ])

    def testEachHookGetsItsOwnConfig(self):
        seen = {}
        root_config, sub_config = TrivialConfig(), SubConfig()
        root = root_command(setup(lambda config, command, args: seen.setdefault("root", config)), root_config, "root")
        sub_command(root, run(lambda config, command, args: seen.setdefault("sub", config)), sub_config, "sub")
        invoke(root, ["sub"])
        self.assertIs(seen["root"], root_config)
        self.assertIs(seen["sub"], sub_config)

    def testHookExceptionsPropagate(self):
        command = root_command(run(trivial_run), TrivialConfig(), "cfgbind-test")
        with self.assertRaises(FooMismatch) as context:
            invoke(command, ["--foo", "bar"])
        self.assertEqual(context.exception.actual, "bar")


@mock.patch.dict(os.environ, {}, clear=True)
class TestEnvironment(TestCase):
    """Environment features through the command tree."""

    def testEnvironmentFeaturesDisabled(self):
        with mock.patch.dict(os.environ, {"CFGBIND_TEST_FOO": "foo"}):
            command = root_command(run(trivial_run), TrivialConfig(), "cfgbind-test", environment=False)
            for name in ("env-file", "env-overwrite", "env-lax"):
                self.assertNotIn(name, command.persistent_flags)
                self.assertNotIn(name, command.flags)
            self.assertNotIn("printenv", command.children)
            with self.assertRaises(FooMismatch) as context:
                invoke(command, [])
            self.assertEqual(context.exception.actual, "")

    def testEnvironmentBindsFlags(self):
        with mock.patch.dict(os.environ, {"CFGBIND_TEST_FOO": "foo", "CFGBIND_TEST_BAR": "12"}):
            config = TrivialConfig()
            invoke(root_command(run(trivial_run), config, "cfgbind-test"), [])
            self.assertEqual(config.bar, 12)

    def testExplicitFlagBeatsEnvironment(self):
        with mock.patch.dict(os.environ, {"CFGBIND_TEST_FOO": "env"}):
            invoke(root_command(run(trivial_run), TrivialConfig(), "cfgbind-test"), ["--foo", "foo"])

    def testSubEnvAppliedOnce(self):
        counts = []

        def check(config, command, args):
            counts.append(config.count.count)

        with mock.patch.dict(os.environ, {"CFGBIND_TEST_COUNT": "blubi"}):
            root = root_command(Hooks(run=noop, persistent_post_run=check), CountConfig(), "cfgbind-test")
            sub_command(root, run(noop), CountConfig(), "sub")
            invoke(root, ["sub"])
            invoke(root, ["sub"])
        self.assertEqual(counts, [1, 1])

    def testSubEnvVars(self):
        passed = []

        def check_bar(index):
            def check(config, command, args):
                self.assertEqual(config.bar, index)
                passed.append(index)
            return check

        def fail_on_run(config, command, args):
            self.fail("this should not be called")

        root = root_command(setup(trivial_run), TrivialConfig(), "cfgbind-test", env_prefix="CFGBIND_CUSTOM")
        parent = root
        for index in range(1, 4):
            parent = sub_command(parent, setup_and_run(check_bar(index), fail_on_run), TrivialConfig(), f"sub{index}")
        sub_command(parent, setup_and_run(check_bar(4), trivial_run), TrivialConfig(), "leaf")

        with mock.patch.dict(os.environ, {
            "CFGBIND_CUSTOM_FOO": "foo",
            "CFGBIND_CUSTOM_SUB1_BAR": "1",
            "CFGBIND_CUSTOM_SUB1_SUB2_BAR": "2",
            "CFGBIND_CUSTOM_SUB1_SUB2_SUB3_BAR": "3",
            "CFGBIND_CUSTOM_SUB1_SUB2_SUB3_LEAF_FOO": "foo",
            "CFGBIND_CUSTOM_SUB1_SUB2_SUB3_LEAF_BAR": "4",
        }):
            invoke(root, ["sub1", "sub2", "sub3", "leaf"])
        self.assertEqual(passed, [1, 2, 3, 4])

    def testDotEnv(self):
        for overwrite in (False, True):
            with self.subTest(overwrite=overwrite):
                loaded = []

                def load(filenames):
                    self.assertEqual(filenames, [".env"])
                    os.environ["CFGBIND_TEST_FOO"] = "foo"
                    os.environ["CFGBIND_TEST_SUB_FOO"] = "foo"
                    loaded.append(filenames)

                target = "load_with_overwrite" if overwrite else "load"
                with mock.patch.dict(os.environ), mock.patch.object(envfiles, target, side_effect=load):
                    root = root_command(setup(trivial_run), TrivialConfig(), "cfgbind-test")
                    sub_command(root, run(trivial_run), TrivialConfig(), "sub")
                    invoke(root, ["--env-file", ".env", "sub", *(["--env-overwrite"] if overwrite else [])])
                self.assertEqual(len(loaded), 1)

    def testDotEnvMissingFile(self):
        command = root_command(run(noop), TrivialConfig(), "cfgbind-test")
        with self.assertRaisesRegex(DotenvError, "load dotenv"):
            invoke(command, ["--env-file", os.path.join(os.path.dirname(__file__), "missing.env")])

    def testDotEnvInvalidEncoding(self):
        with tempfile.NamedTemporaryFile("wb", suffix=".env", delete=False) as stream:
            stream.write(b"CFGBIND_TEST_X=\xff\n")
        self.addCleanup(os.remove, stream.name)

        command = root_command(run(noop), TrivialConfig(), "cfgbind-test")
        with self.assertRaisesRegex(DotenvError, "load dotenv") as context:
            invoke(command, ["--env-file", stream.name])
        self.assertEqual(context.exception.options["code"], FaultCode.DOTENV_FAILURE)

        command = root_command(run(noop), TrivialConfig(), "cfgbind-test", shell=True)
        with redirect_stderr(io.StringIO()) as stderr, self.assertRaises(SystemExit) as context:
            invoke(command, ["--env-file", stream.name])
        self.assertEqual(context.exception.code, 1)
        self.assertIn("load dotenv", stderr.getvalue())

    def testUsageOnInvalidEnvironment(self):
        with mock.patch.dict(os.environ, {"CFGBIND_TEST_BAR": "not-an-integer"}):
            command = root_command(run(trivial_run), TrivialConfig(), "cfgbind-test")
            with redirect_stderr(io.StringIO()) as stderr, self.assertRaises(InvalidEnvironmentError) as context:
                invoke(command, [])
        self.assertEqual([error.flag.name for error in context.exception.errors], ["bar"])
        self.assertIs(context.exception.options["command"], command)
        self.assertIn("usage:", stderr.getvalue())

    def testInvalidEnvironmentAcrossPath(self):
        environ = {"CFGBIND_TEST_BAR": "x", "CFGBIND_TEST_SUB_COUNT": "y"}
        with mock.patch.dict(os.environ, environ):
            root = root_command(run(noop), TrivialConfig(), "cfgbind-test")
            sub_command(root, run(noop), NumberConfig(), "sub")
            with redirect_stderr(io.StringIO()), self.assertRaises(InvalidEnvironmentError) as context:
                invoke(root, ["sub"])
        fault = context.exception
        self.assertEqual([error.flag.name for error in fault.errors], ["bar", "count"])
        self.assertIn("CFGBIND_TEST_BAR:", fault.message)
        self.assertIn("CFGBIND_TEST_SUB_COUNT:", fault.message)

    def testUnboundEnv(self):
        environ = {
            "CFGBIND_TEST_FOO": "foo",
            "CFGBIND_TEST_UNBOUND": "bar",
            "CFGBIND_TEST_SUB_FOO": "foo",
            "CFGBIND_TEST_SUB_UNBOUND": "bar",
        }
        for args, count in (([], 3), (["sub"], 2)):
            with self.subTest(args=args), mock.patch.dict(os.environ, environ):
                root = root_command(run(trivial_run), TrivialConfig(), "cfgbind-test")
                sub_command(root, run(trivial_run), TrivialConfig(), "sub")
                with self.assertRaises(UnboundEnvironmentError) as context:
                    invoke(root, args)
                self.assertEqual(len(context.exception.names), count)

    def testUnboundEnvLax(self):
        with mock.patch.dict(os.environ, {"CFGBIND_TEST_FOO": "foo", "CFGBIND_TEST_UNBOUND": "bar"}):
            invoke(root_command(run(trivial_run), TrivialConfig(), "cfgbind-test"), ["--env-lax"])

    def testRequiredFromEnvironment(self):
        command = root_command(run(noop), RequiredConfig(), "greet")
        with self.assertRaises(MissingRequiredError) as context:
            invoke(command, [])
        self.assertEqual(context.exception.names, ("name",))

        with mock.patch.dict(os.environ, {"GREET_NAME": "world"}):
            config = RequiredConfig()
            invoke(root_command(run(noop), config, "greet"), [])
        self.assertEqual(config.name, "world")


@mock.patch.dict(os.environ, {}, clear=True)
class TestParsing(TestCase):
    """Argv grammar and collected faults."""

    def testShorthands(self):
        config = ShortConfig()
        invoke(root_command(run(noop), config, "short"), ["-vvv", "-nalice", "-q"])
        self.assertEqual((config.verbose, config.name, config.quiet), (3, "alice", True))

    def testShorthandForms(self):
        config = ShortConfig()
        invoke(root_command(run(noop), config, "short"), ["-n", "bob", "-v", "--quiet=false"])
        self.assertEqual((config.verbose, config.name, config.quiet), (1, "bob", False))

        config = ShortConfig()
        invoke(root_command(run(noop), config, "short"), ["-qn=carol"])
        self.assertEqual((config.name, config.quiet), ("carol", True))

    def testPersistentFlagsBelowTheirCommand(self):
        root = root_command(run(noop), TrivialConfig(), "cfgbind-test")
        sub_command(root, run(noop), SubConfig(), "sub")
        invoke(root, ["sub", "--env-lax"])
        self.assertTrue(root.persistent_flags.lookup("env-lax").changed)

    def testTerminator(self):
        received = []
        command = root_command(
            run(lambda config, command, args: received.extend(args)),
            TrivialConfig(),
            "cfgbind-test",
            args=arbitrary_args,
        )
        invoke(command, ["--foo", "foo", "--", "--bar", "x"])
        self.assertEqual(received, ["--bar", "x"])

    def testUnknownFlag(self):
        command = root_command(run(noop), TrivialConfig(), "cfgbind-test")
        with self.assertRaises(CommandExit) as context:
            invoke(command, ["--fo", "foo"])
        fault, = context.exception.exceptions
        self.assertIsInstance(fault, UnknownFlagError)
        self.assertEqual(fault.options["input"], "--fo")
        self.assertIn("--foo", fault.options["suggestions"])
        self.assertIn("first position", fault.message)

    def testFaultsAreCollected(self):
        command = root_command(run(noop), TrivialConfig(), "cfgbind-test")
        with self.assertRaises(CommandExit) as context:
            invoke(command, ["--nope", "--bar", "x", "---", "--foo"])
        self.assertEqual(
            [type(fault) for fault in context.exception.exceptions],
            [UnknownFlagError, InvalidFlagValueError, MalformedTokenError, FlagValueRequiredError],
        )
        self.assertEqual(
            [fault.options["code"] for fault in context.exception.exceptions],
            [
                FaultCode.UNKNOWN_FLAG,
                FaultCode.INVALID_FLAG_VALUE,
                FaultCode.MALFORMED_TOKEN,
                FaultCode.FLAG_VALUE_REQUIRED,
            ],
        )

    def testUnknownCommand(self):
        command = root_group("cfgbind-test", lambda parent: sub_command(parent, run(noop), TrivialConfig(), "serve"))
        with self.assertRaises(CommandExit) as context:
            invoke(command, ["serv"])
        fault, = context.exception.exceptions
        self.assertIsInstance(fault, UnknownCommandError)
        self.assertEqual(fault.options["suggestions"], ["serve"])

    def testUnknownSubcommand(self):
        command = root_group(
            "cfgbind-test",
            lambda parent: sub_group(parent, "db", lambda parent: sub_command(parent, run(noop), TrivialConfig(), "migrate")),
        )
        with self.assertRaises(CommandExit) as context:
            invoke(command, ["db", "migrat"])
        self.assertIsInstance(context.exception.exceptions[0], UnknownSubcommandError)

    def testArgumentValidators(self):
        cases = (
            (no_args, ["one"], True),
            (arbitrary_args, ["one", "two", "three"], False),
            (maximum_args(2), ["one", "two"], False),
            (maximum_args(2), ["one", "two", "three"], True),
            (exact_args(1), ["one"], False),
            (exact_args(1), [], True),
        )
        for validator, args, fails in cases:
            with self.subTest(validator=validator.__name__, args=args):
                command = root_command(run(noop), TrivialConfig(), "cfgbind-test", args=validator)
                if fails:
                    with self.assertRaises(ArgumentCountError):
                        invoke(command, args)
                else:
                    invoke(command, args)


@mock.patch.dict(os.environ, {}, clear=True)
class TestHelp(TestCase):
    """Help rendering and shell mode."""

    def testHelpFlag(self):
        called = []
        root = root_command(run(lambda *_: called.append(True)), RequiredConfig(), "greet --name <name>", descr="say hello")
        sub_command(root, run(noop), TrivialConfig(), "sub", descr="a sub-command")
        with redirect_stdout(io.StringIO()) as stdout:
            invoke(root, ["--help"])
        output = stdout.getvalue()
        self.assertFalse(called)
        self.assertIn("usage: greet --name <name>", output)
        self.assertIn("say hello", output)
        self.assertIn("--name", output)
        self.assertIn("(required)", output)
        self.assertIn("--env-file", output)
        self.assertIn("a sub-command", output)

    def testSubCommandHelpShowsGlobalFlags(self):
        root = root_command(run(noop), TrivialConfig(), "cfgbind-test")
        sub_command(root, run(noop), SubConfig(), "sub")
        with redirect_stdout(io.StringIO()) as stdout:
            invoke(root, ["sub", "-h"])
        output = stdout.getvalue()
        self.assertIn("usage: cfgbind-test sub", output)
        self.assertIn("global flags:", output)
        self.assertIn("--env-lax", output)

    def testShellModeExits(self):
        command = root_command(run(noop), TrivialConfig(), "cfgbind-test", shell=True)
        with redirect_stderr(io.StringIO()) as stderr, self.assertRaises(SystemExit) as context:
            invoke(command, ["--nope"])
        self.assertEqual(context.exception.code, 1)
        self.assertIn("unknown flag", stderr.getvalue())


@mock.patch.dict(os.environ, {}, clear=True)
class TestRepeatedInvocation(TestCase):
    """Running the same tree more than once."""

    def testListStartsFromDefault(self):
        seen = []
        config = ListConfig()
        command = root_command(run(lambda config, command, args: seen.append(list(config.tags))), config, "cfgbind-test")
        invoke(command, ["--tags", "b"])
        invoke(command, ["--tags", "b"])
        invoke(command, [])
        self.assertEqual(seen, [["b"], ["b"], ["a"]])

    def testEnvironmentIsReadAgain(self):
        config = TrivialConfig()
        command = root_command(run(noop), config, "cfgbind-test")
        with mock.patch.dict(os.environ, {"CFGBIND_TEST_BAR": "1"}):
            invoke(command, [])
        self.assertEqual(config.bar, 1)
        with mock.patch.dict(os.environ, {"CFGBIND_TEST_BAR": "2"}):
            invoke(command, [])
        self.assertEqual(config.bar, 2)
        invoke(command, [])
        flag = command.flags.lookup("bar")
        self.assertEqual((config.bar, flag.changed, flag.source), (0, False, "default"))
        self.assertEqual(flag.usage, "(env CFGBIND_TEST_BAR)")

    def testRequiredFlagIsCheckedEveryRun(self):
        command = root_command(run(noop), RequiredConfig(), "greet")
        invoke(command, ["--name", "world"])
        with self.assertRaises(MissingRequiredError):
            invoke(command, [])

    def testHelpSwitchIsReset(self):
        ran = []
        command = root_command(run(lambda config, command, args: ran.append(True)), TrivialConfig(), "cfgbind-test")
        with redirect_stdout(io.StringIO()):
            invoke(command, ["--help"])
        invoke(command, [])
        self.assertEqual(ran, [True])


if __name__ == "__main__":
    unittest.main()
