"""
Name derivation for parameters and environment variables.

Overview
- slug(identifier, separator): splits an identifier into lowercase words joined by
  separator. Acronym runs collapse into one word ("IPMask" -> "ip-mask"), an uppercase
  letter opening a lowercase word starts a new one ("PathToCSV" -> "path-to-csv"),
  and punctuation/whitespace only ever acts as a boundary ("ip_mask" -> "ip-mask").
- screaming_snake(identifier): slug(identifier, "_").upper().
- is_screaming_snake(name): whether an explicit environment name is acceptable.

All functions are pure and total: any string (including "") is accepted.
"""
import functools
import re
import unicodedata

_START, _WORD, _PUNCT = range(3)


def _separates(char):
    """
    Non-printable, punctuation and whitespace characters are word separators.
    """
    return not char.isprintable() or unicodedata.category(char).startswith("P") or char.isspace()


@functools.cache
def slug(identifier, separator="-", /):
    """
    Split identifier into lowercase words joined by separator.

    State machine over characters (start, word, punct):
    - separator characters switch to punct and are never copied;
    - an uppercase character, or any character right after punctuation, opens a
      word: the separator is written when output exists and either the previous
      character ended a word/punctuation run or this uppercase letter starts a
      lowercase tail inside an acronym run;
    - every other character extends the current word verbatim.

    Examples
    - slug("CamelCase") -> "camel-case"
    - slug("CAPath") -> "ca-path"
    - slug("EndsInUppeR") -> "ends-in-uppe-r"
    - slug("eNdSiNLower") -> "e-nd-si-n-lower"
    - slug("ALLUPPER") -> "allupper"
    """
    if not isinstance(identifier, str):
        raise TypeError("slug() first argument must be a string")
    if not isinstance(separator, str):
        raise TypeError("slug() second argument must be a string")

    parts = []
    state = _START
    for index, char in enumerate(identifier):
        if _separates(char):
            state = _PUNCT
        elif state == _PUNCT or char.isupper():
            if parts and (
                    state != _START or
                    0 < index < len(identifier) - 1 and identifier[index + 1].islower()
            ):
                parts.append(separator)
            state = _START
            parts.append(char.lower())
        else:
            state = _WORD
            parts.append(char)
    return "".join(parts)


def screaming_snake(identifier, /):
    """
    Environment-style name: screaming_snake("LogLevel") -> "LOG_LEVEL".
    """
    return slug(identifier, "_").upper()


def is_screaming_snake(name, /):
    """
    Accept names made of uppercase letters, digits and underscores, not starting with a digit.
    """
    return isinstance(name, str) and re.fullmatch(r"[A-Z_][A-Z0-9_]*", name) is not None


__all__ = (
    "slug",
    "screaming_snake",
    "is_screaming_snake",
)
