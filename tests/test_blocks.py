"""Tests for threadsync.blocks."""

import json

import pytest

from threadsync.blocks import (
    ACTION_ASSIGN_SELF,
    ACTION_ASSIGN_USER,
    ACTION_MARK_DONE,
    MAX_SELECT_OPTIONS,
    decode_assignment,
    encode_assignment,
    issue_card,
    patch_slot,
    remove_action,
)
from threadsync.errors import ParseError
from threadsync.models import CreatedIssue, TrackerUser

CREATED = CreatedIssue(id="iss1", identifier="1SW-99", title="Fix it", url="https://linear.app/t/1SW-99")


def _card(users: list[TrackerUser] | None = None) -> list[dict]:
    return issue_card(CREATED, assignee="Jane Doe", build="V.1.0.7", state="Todo", users=users or [])


def _block(blocks: list[dict], block_id: str) -> dict:
    return next(b for b in blocks if b.get("block_id") == block_id)


def test_card_has_named_slots() -> None:
    blocks = _card()
    assert _block(blocks, "slot:assignee")["text"]["text"] == "*Assignee:*\nJane Doe"
    assert _block(blocks, "slot:build")["text"]["text"] == "*Build:*\nV.1.0.7"
    assert _block(blocks, "slot:state")["text"]["text"] == "*State:*\nTodo"
    action_ids = [e["action_id"] for e in _block(blocks, "controls")["elements"]]
    assert ACTION_ASSIGN_SELF in action_ids and ACTION_MARK_DONE in action_ids


def test_selector_lists_active_users_only() -> None:
    users = [TrackerUser(id="u1", name="Jane"), TrackerUser(id="u2", name="Gone", active=False)]
    select = _block(_card(users), "assign")["accessory"]
    assert select["action_id"] == ACTION_ASSIGN_USER
    assert [o["text"]["text"] for o in select["options"]] == ["Jane"]
    assert json.loads(select["options"][0]["value"]) == {"issueId": "iss1", "userId": "u1"}


def test_selector_capped() -> None:
    users = [TrackerUser(id=f"u{i}", name=f"User {i}") for i in range(150)]
    assert len(_block(_card(users), "assign")["accessory"]["options"]) == MAX_SELECT_OPTIONS


def test_no_selector_without_users() -> None:
    assert all(b.get("block_id") != "assign" for b in _card())


def test_patch_slot_by_name_leaves_original_untouched() -> None:
    blocks = _card()
    patched = patch_slot(blocks, "state", "Done")
    assert _block(patched, "slot:state")["text"]["text"] == "*State:*\nDone"
    assert _block(blocks, "slot:state")["text"]["text"] == "*State:*\nTodo"
    assert _block(patched, "slot:assignee") == _block(blocks, "slot:assignee")


def test_patch_slot_survives_reordering() -> None:
    blocks = list(reversed(_card()))
    patched = patch_slot(blocks, "assignee", "Kim")
    assert _block(patched, "slot:assignee")["text"]["text"] == "*Assignee:*\nKim"


def test_remove_action() -> None:
    patched = remove_action(_card(), ACTION_MARK_DONE)
    action_ids = [e["action_id"] for e in _block(patched, "controls")["elements"]]
    assert ACTION_MARK_DONE not in action_ids
    assert ACTION_ASSIGN_SELF in action_ids


def test_assignment_payload_roundtrip() -> None:
    assert decode_assignment(encode_assignment("iss1", "u1")) == ("iss1", "u1")


@pytest.mark.parametrize("value", ["not json", "{}", '{"issueId": "x"}', "null", "[]"])
def test_malformed_assignment_payload(value: str) -> None:
    with pytest.raises(ParseError):
        decode_assignment(value)
