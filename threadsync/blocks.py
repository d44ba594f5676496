"""Block Kit rendering of the issue card and slot-addressed patching.

Each mutable field of the card is its own block with a stable ``block_id``,
so later updates address a field by name instead of by position.
"""

import copy
import json

from threadsync.errors import ParseError
from threadsync.models import CreatedIssue, TrackerUser

SLOT_PREFIX = "slot:"

ACTION_VIEW = "view_issue"
ACTION_ASSIGN_SELF = "assign_to_self"
ACTION_ASSIGN_USER = "assign_to_user"
ACTION_MARK_DONE = "mark_done"

_SLOT_LABELS = {
    "title": "Title",
    "assignee": "Assignee",
    "build": "Build",
    "state": "State",
}

MAX_SELECT_OPTIONS = 100  # Slack static_select limit


def slot_text(slot: str, value: str) -> str:
    return f"*{_SLOT_LABELS[slot]}:*\n{value}"


def _slot_block(slot: str, value: str) -> dict:
    return {
        "type": "section",
        "block_id": f"{SLOT_PREFIX}{slot}",
        "text": {"type": "mrkdwn", "text": slot_text(slot, value)},
    }


def _plain(text: str) -> dict:
    return {"type": "plain_text", "text": text, "emoji": True}


def encode_assignment(issue_id: str, user_id: str) -> str:
    return json.dumps({"issueId": issue_id, "userId": user_id})


def decode_assignment(value: str) -> tuple[str, str]:
    """Inverse of encode_assignment; raises ParseError on anything malformed."""
    try:
        payload = json.loads(value)
        return str(payload["issueId"]), str(payload["userId"])
    except (TypeError, ValueError, KeyError) as exc:
        raise ParseError(f"Malformed assignment payload: {value!r}") from exc


def issue_card(
    issue: CreatedIssue,
    assignee: str,
    build: str,
    state: str,
    users: list[TrackerUser],
) -> list[dict]:
    """Root message of a freshly created issue with its controls."""
    options = [
        {"text": {"type": "plain_text", "text": u.name[:75]}, "value": encode_assignment(issue.id, u.id)}
        for u in users
        if u.active
    ][:MAX_SELECT_OPTIONS]

    blocks: list[dict] = [
        {
            "type": "section",
            "block_id": "header",
            "text": {"type": "mrkdwn", "text": f"✅ *New issue created: {issue.identifier}*"},
        },
        _slot_block("title", issue.title),
        _slot_block("assignee", assignee),
        _slot_block("build", build),
        _slot_block("state", state),
        {
            "type": "actions",
            "block_id": "controls",
            "elements": [
                {
                    "type": "button",
                    "text": _plain("Open in Linear 🚀"),
                    "url": issue.url,
                    "action_id": ACTION_VIEW,
                    "style": "primary",
                },
                {
                    "type": "button",
                    "text": _plain("Assign to me"),
                    "action_id": ACTION_ASSIGN_SELF,
                    "value": issue.id,
                },
                {
                    "type": "button",
                    "text": _plain("Mark done ✅"),
                    "action_id": ACTION_MARK_DONE,
                    "value": issue.id,
                },
            ],
        },
    ]
    if options:
        blocks.append(
            {
                "type": "section",
                "block_id": "assign",
                "text": {"type": "mrkdwn", "text": "*Who should handle this issue?*"},
                "accessory": {
                    "type": "static_select",
                    "placeholder": _plain("Pick a teammate..."),
                    "options": options,
                    "action_id": ACTION_ASSIGN_USER,
                },
            }
        )
    return blocks


def thread_notice(identifier: str) -> list[dict]:
    return [
        {
            "type": "context",
            "block_id": "sync_notice",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": f"Replies in this thread are posted to {identifier} as comments, "
                    "and Linear updates show up here.",
                }
            ],
        }
    ]


def patch_slot(blocks: list[dict], slot: str, value: str) -> list[dict]:
    """Return a copy of blocks with the named slot's text replaced. Unknown slots are a no-op."""
    patched = copy.deepcopy(blocks)
    for block in patched:
        if block.get("block_id") == f"{SLOT_PREFIX}{slot}":
            block["text"] = {"type": "mrkdwn", "text": slot_text(slot, value)}
    return patched


def remove_action(blocks: list[dict], action_id: str) -> list[dict]:
    """Return a copy of blocks without the element carrying action_id; empty action rows are dropped."""
    patched: list[dict] = []
    for block in copy.deepcopy(blocks):
        if block.get("type") == "actions":
            block["elements"] = [e for e in block.get("elements", []) if e.get("action_id") != action_id]
            if not block["elements"]:
                continue
        elif (block.get("accessory") or {}).get("action_id") == action_id:
            del block["accessory"]
        patched.append(block)
    return patched
