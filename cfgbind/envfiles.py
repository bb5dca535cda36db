"""
Loading dotenv files into the process environment (the --env-file flag).

Both loaders read every file in order through python-dotenv:
- load(): variables already present in the environment win, so earlier files take
  precedence over later ones;
- load_with_overwrite(): every file overrides the environment, so later files win.

A file that cannot be opened or is not valid UTF-8 raises DotenvError ("load dotenv: ...").
"""
import logging

import dotenv

from .faults import DotenvError, FaultCode, getdoc

logger = logging.getLogger(__name__)


def _load(filenames, override):
    for filename in filenames:
        try:
            with open(filename, encoding="utf-8") as stream:
                dotenv.load_dotenv(stream=stream, override=override)
        except (OSError, UnicodeDecodeError) as error:
            raise DotenvError(
                "load dotenv: %s" % error,
                title="dotenv failure",
                code=FaultCode.DOTENV_FAILURE,
                hint="check the path given to --env-file, files are read as UTF-8",
                filename=filename,
                docs=getdoc(FaultCode.DOTENV_FAILURE),
            ) from None
        logger.debug("loaded dotenv file %r (override=%s)", filename, override)


def load(filenames, /):
    _load(filenames, False)


def load_with_overwrite(filenames, /):
    _load(filenames, True)


__all__ = (
    "load",
    "load_with_overwrite",
)
