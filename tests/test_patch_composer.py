"""Tests for agents.patch_composer and the prompt templates."""

import pytest

from agents.analyzer import build_analysis_prompt
from agents.patch_composer import PatchComposer
from utils.template_engine import load_template, render_prompt


def test_compose_formats_each_item():
    prompt = PatchComposer().compose([
        {"text": "Add requireInvariant solvency.", "ruleName": "withdraw"},
        {"analysis": "Filter out the harness method."},
    ])
    assert prompt.startswith("Implement fixes for the items below")
    assert "Analysis Conclusion 1 · Rule: withdraw" in prompt
    assert "Add requireInvariant solvency." in prompt
    assert "Analysis Conclusion 2 End" in prompt
    assert "Filter out the harness method." in prompt
    assert "$work_items" not in prompt


def test_compose_rejects_empty():
    with pytest.raises(ValueError):
        PatchComposer().compose([])
    with pytest.raises(ValueError):
        PatchComposer().compose(None)


def test_render_leaves_dollar_signs_in_values():
    prompt = render_prompt("syntax_fix.txt", {"log_tail": "error near $ghost"})
    assert "error near $ghost" in prompt


def test_analysis_prompts_by_type():
    assert "SANITY_FAILED" in build_analysis_prompt("out", "sanity_failed")
    assert "rule violation" in build_analysis_prompt("out", "VIOLATED")
    with pytest.raises(ValueError):
        build_analysis_prompt("out", "VERIFIED")


def test_load_template_rejects_escape():
    with pytest.raises(ValueError, match="escapes"):
        load_template("../../config/defaults.py")
    with pytest.raises(ValueError, match="escapes"):
        load_template(".")


def test_load_template_is_parsed_once():
    assert load_template("syntax_fix.txt") is load_template("syntax_fix.txt")
    assert "$log_tail" in load_template("syntax_fix.txt").template


def test_unknown_placeholders_are_kept():
    assert "$work_items" in render_prompt("fix_items.txt", {})
