"""Tests for threadsync.identifiers."""

import pytest

from threadsync.errors import ParseError
from threadsync.identifiers import extract, join, split


class TestExtract:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Fix login [1SW-42] bug", "1SW-42"),
            ("ENG-7: crash on start", "ENG-7"),
            ("see ENG-1 and ENG-2", "ENG-1"),
            ("✅ New issue created: 1SW-99 Fix it", "1SW-99"),
            ("(ABC-12)", "ABC-12"),
        ],
    )
    def test_finds_first_identifier(self, text: str, expected: str) -> None:
        assert extract(text) == expected

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "no identifier here",
            "lowercase eng-12 is not a key",
            "pre-ENG-12 glued to another token",
            "ENG-12-rc trailing hyphen token",
            "xENG-12 touching a letter",
            "ENG- 12 broken",
        ],
    )
    def test_no_match(self, text: str) -> None:
        assert extract(text) is None

    def test_none_text(self) -> None:
        assert extract(None) is None


class TestSplit:
    def test_splits_on_last_hyphen(self) -> None:
        assert split("1SW-42") == ("1SW", 42)

    def test_team_key_keeps_inner_hyphens(self) -> None:
        assert split("A-B-3") == ("A-B", 3)

    @pytest.mark.parametrize("identifier", ["ENG-", "ENG-x1", "ENG", "-12", "ENG-1.5"])
    def test_malformed_raises(self, identifier: str) -> None:
        with pytest.raises(ParseError):
            split(identifier)

    def test_parse_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            split("nope")

    @pytest.mark.parametrize("identifier", ["1SW-42", "ENG-1", "ABC123-9000"])
    def test_join_reverses_split(self, identifier: str) -> None:
        assert join(*split(identifier)) == identifier
