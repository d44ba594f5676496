"""Open-issue listings grouped by workflow state or by title tag."""

from pydantic import BaseModel, ConfigDict

from threadsync.models import Issue, ListingMessage, Row
from threadsync.providers.base import TicketProvider
from threadsync.tags import extract_tags
from threadsync.users import is_handle_token

UNTAGGED = "untagged"
TAG_TOKENS = frozenset({"tag", "태그"})

# Slack limits: 3000 chars per section text, 50 blocks per message.
_SECTION_LIMIT = 2900
_MAX_BLOCKS = 50


class ListRequest(BaseModel):
    """Parsed arguments of the list command."""

    model_config = ConfigDict(frozen=True)

    handle_tokens: tuple[str, ...] = ()
    by_tag: bool = False
    tag_filter: str | None = None


def parse_list_args(text: str) -> ListRequest:
    """Parse "[@a,@b] [tag [name]]" into a ListRequest. Unknown tokens are ignored."""
    tokens = text.split()
    handles: list[str] = []
    by_tag = False
    tag_filter: str | None = None

    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.lower() in TAG_TOKENS:
            by_tag = True
            following = tokens[i + 1] if i + 1 < len(tokens) else None
            if following and not is_handle_token(following) and following.lower() not in TAG_TOKENS:
                tag_filter = following.strip("[]").strip() or None
                i += 2
                continue
        else:
            handles.extend(part.strip() for part in token.split(",") if is_handle_token(part.strip()))
        i += 1

    return ListRequest(handle_tokens=tuple(handles), by_tag=by_tag, tag_filter=tag_filter)


def build_rows(issues: list[Issue]) -> list[Row]:
    return [
        Row(
            issue=issue,
            assignee_name=issue.assignee or "Unassigned",
            tags=tuple(extract_tags(issue.title)),
            state_name=issue.state,
        )
        for issue in issues
    ]


def group_by_state(rows: list[Row]) -> dict[str, list[Row]]:
    groups: dict[str, list[Row]] = {}
    for row in rows:
        groups.setdefault(row.state_name, []).append(row)
    return groups


def group_by_tags(rows: list[Row], filter_tag: str | None = None) -> dict[str, list[Row]]:
    """Group rows under every tag they carry; tagless rows go to UNTAGGED.

    With filter_tag set, only groups whose key matches it case-insensitively
    are kept (UNTAGGED included only when it is the filter). Tags that differ
    only by case remain distinct groups.
    """
    wanted = filter_tag.lower() if filter_tag else None
    groups: dict[str, list[Row]] = {}
    for row in rows:
        keys = row.tags or (UNTAGGED,)
        for key in dict.fromkeys(keys):
            if wanted is not None and key.lower() != wanted:
                continue
            groups.setdefault(key, []).append(row)
    return groups


def sort_group_keys(groups: dict[str, list]) -> list[str]:
    """Largest group first; ties by ascending key."""
    return sorted(groups, key=lambda key: (-len(groups[key]), key))


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _row_line(row: Row) -> str:
    issue = row.issue
    return f"• <{issue.url}|{issue.identifier}> {_escape(issue.title)} · {row.assignee_name} · {row.state_name}"


def _group_sections(key: str, rows: list[Row]) -> list[dict]:
    header = f"*{_escape(key)}* ({len(rows)})"
    chunks: list[str] = []
    current = header
    for line in (_row_line(r) for r in rows):
        if len(current) + 1 + len(line) > _SECTION_LIMIT:
            chunks.append(current)
            current = line
        else:
            current = f"{current}\n{line}"
    chunks.append(current)
    return [{"type": "section", "text": {"type": "mrkdwn", "text": chunk}} for chunk in chunks]


def render(
    groups: dict[str, list[Row]],
    owners: list[str],
    by_tag: bool = False,
    tag_filter: str | None = None,
) -> ListingMessage:
    """Summary post (counts per group) and detail post (rows per group), both in sort_group_keys order."""
    keys = sort_group_keys(groups)
    distinct = len({row.issue.id for rows in groups.values() for row in rows})
    owner_label = ", ".join(owners) or "you"
    mode = f"tag `{tag_filter}`" if tag_filter else ("tag" if by_tag else "state")

    summary_text = f"📋 {distinct} open issue(s) for {owner_label}, grouped by {mode}"
    if keys:
        counts = "\n".join(f"• *{_escape(key)}*: {len(groups[key])}" for key in keys)
    else:
        counts = "_No open issues._"
    summary_blocks = [
        {"type": "section", "block_id": "summary", "text": {"type": "mrkdwn", "text": summary_text}},
        {"type": "section", "block_id": "counts", "text": {"type": "mrkdwn", "text": counts}},
    ]

    detail_blocks: list[dict] = []
    for key in keys:
        detail_blocks.extend(_group_sections(key, groups[key]))
        detail_blocks.append({"type": "divider"})
    if detail_blocks and detail_blocks[-1]["type"] == "divider":
        detail_blocks.pop()
    if len(detail_blocks) > _MAX_BLOCKS:
        detail_blocks = detail_blocks[: _MAX_BLOCKS - 1]
        detail_blocks.append(
            {"type": "context", "elements": [{"type": "mrkdwn", "text": "_Remaining groups omitted._"}]}
        )
    if not detail_blocks:
        detail_blocks = [{"type": "section", "text": {"type": "mrkdwn", "text": "_Nothing to show._"}}]

    return ListingMessage(
        summary_text=summary_text,
        summary_blocks=summary_blocks,
        detail_text=f"Issue details for {owner_label}",
        detail_blocks=detail_blocks,
    )


class ListingEngine:
    def __init__(self, tracker: TicketProvider) -> None:
        self._tracker = tracker

    async def build_listing(
        self,
        assignee_ids: list[str],
        owners: list[str],
        by_tag: bool = False,
        tag_filter: str | None = None,
    ) -> ListingMessage:
        issues = await self._tracker.list_open_issues(assignee_ids)
        rows = build_rows(issues)
        groups = group_by_tags(rows, tag_filter) if by_tag else group_by_state(rows)
        return render(groups, owners, by_tag=by_tag, tag_filter=tag_filter)
