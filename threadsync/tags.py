"""Bracketed tag prefixes on issue titles: "[QA] [Login] Fix redirect"."""

import re

# Only a contiguous run of [..] groups anchored at position 0 counts.
_LEADING_RUN_RE = re.compile(r"^\[[^\[\]]*\](?:\s*\[[^\[\]]*\])*")
_GROUP_RE = re.compile(r"\[([^\[\]]*)\]")


def extract_tags(title: str) -> list[str]:
    run = _LEADING_RUN_RE.match(title)
    if not run:
        return []
    tags = (inner.strip() for inner in _GROUP_RE.findall(run.group(0)))
    return [tag for tag in tags if tag]
