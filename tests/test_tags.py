"""Tests for threadsync.tags."""

import pytest

from threadsync.tags import extract_tags


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("[A] [B] rest", ["A", "B"]),
        ("[A][B] rest", ["A", "B"]),
        ("[QA] Fix login", ["QA"]),
        ("[ spaced ] title", ["spaced"]),
        ("[] [B] empty dropped", ["B"]),
        ("[A] title [B] later", ["A"]),
        ("no tags here", []),
        ("mid [X] tag", []),
        (" [A] leading space", []),
        ("", []),
    ],
)
def test_extract_tags(title: str, expected: list[str]) -> None:
    assert extract_tags(title) == expected


def test_idempotent() -> None:
    title = "[Web] [Auth] Session expires early"
    assert extract_tags(title) == extract_tags(title)
