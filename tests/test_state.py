"""Tests for core.state models."""

import pytest

from core.state import WorkItem, RunRequest, SessionState, Classification, VerificationOutcome


def test_work_item_label_defaults_to_index():
    item = WorkItem(index=3, text="finding")
    assert item.label == "Item 3"


def test_work_item_label_uses_rule_name():
    item = WorkItem(index=1, text="finding", rule_name="transferPreservesSupply")
    assert item.label == "transferPreservesSupply"


def test_work_item_from_string():
    item = WorkItem.from_payload("just text", 2)
    assert item.text == "just text"
    assert item.rule_name == ""
    assert item.label == "Item 2"


def test_work_item_from_alternate_field_names():
    item = WorkItem.from_payload({"analysis": "body", "name": "ruleA"}, 1)
    assert item.text == "body"
    assert item.rule_name == "ruleA"

    item = WorkItem.from_payload({"text": "t", "rule": "ruleB"}, 1)
    assert item.rule_name == "ruleB"


def test_work_item_is_immutable():
    item = WorkItem(index=1, text="x")
    with pytest.raises(Exception):
        item.text = "y"


def test_run_request_from_payload():
    req = RunRequest.from_payload({
        "basePrompt": "Fix it",
        "items": [{"text": "a", "ruleName": "r1"}, "b"],
        "projectPath": "  /tmp/project  ",
        "confPath": "   ",
    })
    assert req.base_prompt == "Fix it"
    assert [i.label for i in req.items] == ["r1", "Item 2"]
    assert req.project_path == "/tmp/project"
    assert req.conf_path is None


def test_run_request_accepts_analyses_key():
    req = RunRequest.from_payload({"analyses": ["a"]})
    assert len(req.items) == 1
    assert req.base_prompt == ""


@pytest.mark.parametrize("payload", [None, {}, {"items": []}, {"items": "abc"}, []])
def test_run_request_rejects_missing_items(payload):
    with pytest.raises(ValueError):
        RunRequest.from_payload(payload)


def test_run_request_constructor_rejects_empty_items():
    with pytest.raises(ValueError, match="items"):
        RunRequest(base_prompt="", items=())


def test_session_defaults():
    session = SessionState()
    assert session.phase == "idle"
    assert session.is_running is False
    assert session.abort_requested is False
    assert session.current_process is None


def test_begin_run_resets_abort_flag():
    session = SessionState()
    session.request_abort()
    assert session.begin_run() is True
    assert session.abort_requested is False
    assert session.phase == "running"


def test_begin_run_rejects_second_run():
    session = SessionState()
    assert session.begin_run() is True
    assert session.begin_run() is False
    session.finish_run("completed")
    assert session.phase == "completed"
    assert session.begin_run() is True


def test_release_only_clears_matching_process():
    session = SessionState()
    old, new = object(), object()
    session.attach(old)
    session.attach(new)
    assert session.release(old) is False
    assert session.current_process is new
    assert session.release(new) is True
    assert session.current_process is None
    # Clearing twice is harmless
    assert session.release(new) is False


def test_is_current():
    session = SessionState()
    proc = object()
    assert session.is_current(proc) is False
    session.attach(proc)
    assert session.is_current(proc) is True
    assert session.is_current(None) is False


def test_value_types():
    assert Classification(kind="success", url="u").url == "u"
    outcome = VerificationOutcome(status="skipped")
    assert outcome.url == ""
    assert outcome.attempts == 0
