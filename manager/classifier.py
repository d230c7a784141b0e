"""Verifier output classifier: result URL, syntax error, or anything else."""

import re

from config.defaults import DEFAULTS
from core.state import Classification, SUCCESS, SYNTAX_ERROR, OTHER_FAILURE


def find_result_url(text, url_pattern=None):
    """Return the last result URL in ``text``, or "" if there is none.

    Later output supersedes earlier output (the verifier may print a URL per
    internal retry), so the last match is authoritative.
    """
    pattern = url_pattern or DEFAULTS["result_url_pattern"]
    matches = re.findall(pattern, text or "", re.IGNORECASE)
    return matches[-1] if matches else ""


def has_syntax_error(text, markers=None):
    lower = (text or "").lower()
    markers = DEFAULTS["syntax_error_markers"] if markers is None else markers
    return any(marker.lower() in lower for marker in markers)


def classify(text, url_pattern=None, markers=None):
    """Classify the combined stdout+stderr of one verifier invocation.

    A result URL wins over any error marker printed alongside it.

    Returns a Classification with kind success, syntax_error or other_failure.
    """
    url = find_result_url(text, url_pattern)
    if url:
        return Classification(kind=SUCCESS, url=url)
    if has_syntax_error(text, markers):
        return Classification(kind=SYNTAX_ERROR)
    return Classification(kind=OTHER_FAILURE)
