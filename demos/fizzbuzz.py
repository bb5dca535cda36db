"""
fizzbuzz: an enterprise-grade, highly configurable fizz buzzer.

Everything here is nonsense, but it shows a realistic cfgbind program:
- a persistent nested configuration (log level and format) on the root, shared by
  every sub-command and settable through FIZZBUZZ_LOG_LEVEL / FIZZBUZZ_LOG_FORMAT;
- a value-like type (Level) and a text codec (Format);
- a setup hook that configures logging and hands the logger down via the command context;
- a sub-command with its own configuration and at most two positional arguments.

    $ python demos/fizzbuzz.py local --limit 15 Fizz Buzz
    $ FIZZBUZZ_LOG_LEVEL=debug python demos/fizzbuzz.py local printenv
"""
import enum
import json
import logging
import time
from dataclasses import dataclass, field

from rich.logging import RichHandler

from cfgbind import *

TRACE = 5
FATAL = 50

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(FATAL, "FATAL")


class Level:
    """
    Mutable log level, parsed by name ("info", "TRACE") or number ("20").
    """

    def __init__(self, level=logging.INFO):
        self.level = level

    def set(self, text):
        if (level := logging.getLevelNamesMapping().get(text.strip().upper())) is not None:
            self.level = level
        else:
            try:
                self.level = int(text)
            except ValueError:
                raise ValueError(f"invalid log level {text!r}") from None

    def type_name(self):
        return "level"

    def __str__(self):
        return logging.getLevelName(self.level)


class Format(enum.Enum):
    TEXT = "TEXT"
    JSON = "JSON"

    @classmethod
    def from_text(cls, text):
        try:
            return cls(text.strip().upper())
        except ValueError:
            raise ValueError(f"invalid log format text: {text!r}") from None

    def to_text(self):
        return self.value

    def type_desc(self):
        return "format"


class JSONFormatter(logging.Formatter):
    def format(self, record):
        return json.dumps({
            "time": self.formatTime(record),
            "level": record.levelname,
            "msg": record.getMessage(),
            **getattr(record, "attrs", {}),
        })


@dataclass
class LogConfig:
    level: Level = field(default_factory=Level, metadata={"usage": "TRACE, DEBUG, INFO, WARNING, ERROR or FATAL"})
    format: Format = field(default=Format.TEXT, metadata={"usage": "TEXT or JSON"})


@dataclass
class MainConfig:
    log: LogConfig = field(default_factory=LogConfig, metadata={"flag": "persistent"})


@dataclass
class LocalConfig:
    limit: int = field(default=100, metadata={"usage": "stop fizzbuzzing at this number"})


def setup_logging(config, command, args):
    match config.log.format:
        case Format.TEXT:
            handler = RichHandler(rich_tracebacks=True, show_path=False)
        case Format.JSON:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
    logger = logging.getLogger("fizzbuzz")
    logger.addHandler(handler)
    logger.setLevel(config.log.level.level)
    command.context["logger"] = logger


def fizzbuzz(limit, fizz, buzz):
    for number in range(1, limit + 1):
        match number % 3, number % 5:
            case 0, 0:
                yield fizz + buzz
            case 0, _:
                yield fizz
            case _, 0:
                yield buzz
            case _:
                yield str(number)


def local(config, command, args):
    if config.limit <= 0:
        raise SystemExit(f"limit must be >0, but got {config.limit}")

    fizz, buzz = [*args, "Fizz", "Buzz"][:2]
    logger = command.context.get("logger") or logging.getLogger("fizzbuzz")
    logger.info("local fizzbuzzer starting", extra={"attrs": {"limit": config.limit}})
    start = time.monotonic()

    for line in fizzbuzz(config.limit, fizz, buzz):
        print(line)

    logger.info(
        "local fizzbuzzer has completed",
        extra={"attrs": {"duration": "%.3fs" % (time.monotonic() - start)}},
    )


def main():
    command = root_command(
        setup(setup_logging),
        MainConfig(),
        "fizzbuzz [--log-level <level>] [--log-format <TEXT|JSON>]",
        descr="enterprise-grade fizzbuzz (cfgbind demo)",
        env_prefix="FIZZBUZZ",
        shell=True,
        colorful=True,
    )
    sub_command(
        command,
        run(local),
        LocalConfig(),
        "local [--limit <num>] [fizz text] [buzz text]",
        descr="fizz and buzz on the local console",
        args=maximum_args(2),
    )
    invoke(command)


if __name__ == '__main__':
    main()
