"""Tests for threadsync.listing."""

import pytest

from threadsync.listing import (
    UNTAGGED,
    ListingEngine,
    ListRequest,
    build_rows,
    group_by_state,
    group_by_tags,
    parse_list_args,
    render,
    sort_group_keys,
)
from threadsync.models import Issue


def _issue(n: int, title: str, state: str = "Todo", assignee: str | None = "Jane Doe") -> Issue:
    return Issue(
        id=f"id{n}",
        identifier=f"1SW-{n}",
        title=title,
        url=f"https://linear.app/t/1SW-{n}",
        state=state,
        assignee=assignee,
        assignee_id="U1" if assignee else None,
    )


def _keys(groups: dict) -> dict[str, list[str]]:
    return {key: [row.issue.identifier for row in rows] for key, rows in groups.items()}


class TestParseListArgs:
    def test_empty(self) -> None:
        assert parse_list_args("") == ListRequest()

    def test_handles_comma_split(self) -> None:
        assert parse_list_args("@jane,@bob").handle_tokens == ("@jane", "@bob")

    def test_mentions_and_spaces(self) -> None:
        assert parse_list_args("<@U1> @bob").handle_tokens == ("<@U1>", "@bob")

    def test_tag_mode_with_filter(self) -> None:
        req = parse_list_args("@jane tag QA")
        assert req == ListRequest(handle_tokens=("@jane",), by_tag=True, tag_filter="QA")

    def test_korean_tag_token(self) -> None:
        req = parse_list_args("태그 [Web]")
        assert req.by_tag is True
        assert req.tag_filter == "Web"

    def test_tag_without_filter(self) -> None:
        assert parse_list_args("tag").tag_filter is None

    def test_mention_after_tag_is_not_a_filter(self) -> None:
        req = parse_list_args("tag @jane")
        assert req == ListRequest(handle_tokens=("@jane",), by_tag=True, tag_filter=None)

    def test_unknown_tokens_ignored(self) -> None:
        assert parse_list_args("please show") == ListRequest()


class TestBuildRows:
    def test_derives_tags_and_names(self) -> None:
        rows = build_rows([_issue(1, "[QA] [Web] Fix", state="In Progress", assignee=None)])
        assert rows[0].tags == ("QA", "Web")
        assert rows[0].assignee_name == "Unassigned"
        assert rows[0].state_name == "In Progress"


class TestGroupByState:
    def test_one_group_per_row(self) -> None:
        rows = build_rows([_issue(1, "a", "Todo"), _issue(2, "b", "In Progress"), _issue(3, "c", "Todo")])
        assert _keys(group_by_state(rows)) == {"Todo": ["1SW-1", "1SW-3"], "In Progress": ["1SW-2"]}


class TestGroupByTags:
    def test_row_in_every_tag_group(self) -> None:
        rows = build_rows([_issue(1, "[X] [Y] both"), _issue(2, "plain")])
        assert _keys(group_by_tags(rows)) == {"X": ["1SW-1"], "Y": ["1SW-1"], UNTAGGED: ["1SW-2"]}

    def test_filter_keeps_matching_group_only(self) -> None:
        rows = build_rows([_issue(1, "[X] [Y] both"), _issue(2, "[Y] one"), _issue(3, "plain")])
        assert _keys(group_by_tags(rows, "y")) == {"Y": ["1SW-1", "1SW-2"]}

    def test_filter_excludes_untagged(self) -> None:
        rows = build_rows([_issue(1, "plain")])
        assert group_by_tags(rows, "X") == {}

    def test_untagged_filter(self) -> None:
        rows = build_rows([_issue(1, "plain"), _issue(2, "[X] tagged")])
        assert _keys(group_by_tags(rows, UNTAGGED)) == {UNTAGGED: ["1SW-1"]}

    def test_case_variants_stay_distinct(self) -> None:
        rows = build_rows([_issue(1, "[QA] a"), _issue(2, "[qa] b")])
        assert _keys(group_by_tags(rows)) == {"QA": ["1SW-1"], "qa": ["1SW-2"]}

    def test_repeated_tag_counts_once(self) -> None:
        rows = build_rows([_issue(1, "[QA][QA] twice")])
        assert _keys(group_by_tags(rows)) == {"QA": ["1SW-1"]}


class TestSortGroupKeys:
    def test_size_descending(self) -> None:
        assert sort_group_keys({"A": [1, 2, 3], "B": [1, 2]}) == ["A", "B"]
        assert sort_group_keys({"B": [1, 2, 3], "A": [1]}) == ["B", "A"]

    def test_tie_broken_lexicographically(self) -> None:
        assert sort_group_keys({"B": [1], "A": [1]}) == ["A", "B"]

    def test_reproducible(self) -> None:
        groups = {"b": [1], "a": [1], "c": [1, 2]}
        assert sort_group_keys(groups) == sort_group_keys(dict(reversed(list(groups.items())))) == ["c", "a", "b"]


class TestRender:
    def test_detail_follows_sorted_order(self) -> None:
        rows = build_rows([_issue(1, "[B] one"), _issue(2, "[A] two"), _issue(3, "[B] three")])
        listing = render(group_by_tags(rows), ["Jane Doe"], by_tag=True)

        texts = [b["text"]["text"] for b in listing.detail_blocks if b["type"] == "section"]
        assert texts[0].startswith("*B* (2)")
        assert texts[1].startswith("*A* (1)")
        assert "3 open issue(s) for Jane Doe" in listing.summary_text

    def test_duplicated_rows_counted_once_in_summary(self) -> None:
        rows = build_rows([_issue(1, "[X] [Y] both")])
        listing = render(group_by_tags(rows), ["Jane Doe"], by_tag=True)
        assert "1 open issue(s)" in listing.summary_text

    def test_titles_are_escaped(self) -> None:
        rows = build_rows([_issue(1, "a < b & c")])
        listing = render(group_by_state(rows), ["Jane Doe"])
        assert "a &lt; b &amp; c" in listing.detail_blocks[0]["text"]["text"]

    def test_empty_listing(self) -> None:
        listing = render({}, ["Jane Doe"])
        assert "0 open issue(s)" in listing.summary_text
        assert listing.detail_blocks[0]["text"]["text"] == "_Nothing to show._"

    def test_long_group_split_into_sections(self) -> None:
        rows = build_rows([_issue(n, "x" * 200) for n in range(40)])
        listing = render(group_by_state(rows), ["Jane Doe"])
        assert len(listing.detail_blocks) > 1
        assert all(len(b["text"]["text"]) <= 3000 for b in listing.detail_blocks)


@pytest.mark.asyncio
async def test_engine_fetches_and_groups(tracker) -> None:
    tracker.issues = {"1SW-1": _issue(1, "[QA] a"), "1SW-2": _issue(2, "b", state="In Progress")}
    listing = await ListingEngine(tracker).build_listing(["U1"], ["Jane Doe"])
    assert tracker.list_calls == [["U1"]]
    assert "2 open issue(s)" in listing.summary_text
    assert "grouped by state" in listing.summary_text
