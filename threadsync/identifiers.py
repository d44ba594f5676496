"""Linear issue identifiers (TEAMKEY-NUMBER) embedded in free text."""

import re

from threadsync.errors import ParseError

# Whole-token match: no word character or hyphen may touch either end, so
# "pre-ENG-1" and "ENG-1-2" never yield a partial identifier.
_IDENTIFIER_RE = re.compile(r"(?<![\w-])([A-Z0-9]+-[0-9]+)(?![\w-])")
_NUMBER_RE = re.compile(r"[0-9]+")


def extract(text: str | None) -> str | None:
    """Return the first identifier found in text, or None."""
    if not text:
        return None
    match = _IDENTIFIER_RE.search(text)
    return match.group(1) if match else None


def split(identifier: str) -> tuple[str, int]:
    """Split 1SW-42 into ("1SW", 42) on the last hyphen."""
    team_key, sep, suffix = identifier.rpartition("-")
    if not sep or not team_key or not _NUMBER_RE.fullmatch(suffix):
        raise ParseError(f"Malformed issue identifier: {identifier!r}")
    return team_key, int(suffix)


def join(team_key: str, number: int) -> str:
    return f"{team_key}-{number}"
