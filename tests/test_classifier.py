"""Tests for manager.classifier: verifier output classification."""

from manager.classifier import classify, find_result_url, has_syntax_error
from core.state import SUCCESS, SYNTAX_ERROR, OTHER_FAILURE

URL_A = "https://prover.certora.com/output/111/aaa?anonymousKey=k1"
URL_B = "https://prover.certora.com/output/222/bbb?anonymousKey=k2"


def test_success_with_url():
    result = classify(f"Job submitted\nReport: {URL_A}\n")
    assert result.kind == SUCCESS
    assert result.url == URL_A


def test_url_wins_over_syntax_error():
    text = f"Report: {URL_A}\nCVL syntax error: unexpected token"
    result = classify(text)
    assert result.kind == SUCCESS
    assert result.url.endswith("anonymousKey=k1")


def test_last_url_wins():
    result = classify(f"first {URL_A}\nretrying...\nsecond {URL_B}\n")
    assert result.url == URL_B


def test_url_match_is_case_insensitive():
    result = classify("HTTPS://PROVER.CERTORA.COM/output/1/abc")
    assert result.kind == SUCCESS


def test_syntax_error():
    assert classify("Error: Syntax error in spec file").kind == SYNTAX_ERROR


def test_parse_and_compilation_errors():
    assert classify("PARSE ERROR at line 3").kind == SYNTAX_ERROR
    assert classify("solc: Compilation Error").kind == SYNTAX_ERROR


def test_other_failure():
    result = classify("Error: timeout while waiting for cloud job")
    assert result.kind == OTHER_FAILURE
    assert result.url == ""


def test_empty_output_is_other_failure():
    assert classify("").kind == OTHER_FAILURE
    assert classify(None).kind == OTHER_FAILURE


def test_custom_markers_and_pattern():
    assert has_syntax_error("unexpected token", markers=["unexpected token"])
    assert not has_syntax_error("unexpected token")
    url = find_result_url("see https://prover.example.com/output/abc123 now",
                          url_pattern=r"https://prover\.example\.com/output/\S+")
    assert url.endswith("abc123")
