"""Best-effort extraction of the agent's final answer from its CLI transcript.

The transcript format is not a contract, so these are heuristics: callers get
the whole transcript back when nothing better is found.
"""

import re

_TIMESTAMP_RE = re.compile(r"^\[[\d\-T:.Z]+\]")
_TOKENS_RE = re.compile(r"tokens used:", re.IGNORECASE)
_FINAL_ANSWER_RE = re.compile(r"^final answer\s*:", re.IGNORECASE)
_META_RES = [
    _TIMESTAMP_RE,
    re.compile(r"\] (exec|bash -lc|codex|thinking)\b", re.IGNORECASE),
    re.compile(r"workdir:|model:|provider:|approval:|sandbox:|reasoning", re.IGNORECASE),
    re.compile(r"OpenAI Codex", re.IGNORECASE),
]


def is_meta_line(line):
    """True for transcript bookkeeping: timestamps, tool calls, session headers."""
    return any(r.search(line) for r in _META_RES)


def _last_token_block(lines):
    # Walk back from each "tokens used:" marker to the preceding timestamp line.
    token_idxs = [i for i, line in enumerate(lines) if _TOKENS_RE.search(line)]
    for t in reversed(token_idxs):
        start = -1
        for i in range(t - 1, -1, -1):
            if _TIMESTAMP_RE.search(lines[i]):
                start = i
                break
        block = "\n".join(l for l in lines[start + 1:t] if not is_meta_line(l)).strip()
        if block:
            return block
    return ""


def extract_final_answer(transcript):
    """Return the agent's final answer from a full transcript."""
    lines = transcript.split("\n")

    answer = _last_token_block(lines)
    if answer:
        return answer

    for i, line in enumerate(lines):
        if _FINAL_ANSWER_RE.search(line):
            return "\n".join(lines[i + 1:]).strip()

    start = 0
    for i in range(len(lines) - 1, -1, -1):
        if "User instructions:" in lines[i]:
            start = i + 1
            break
    candidate = "\n".join(
        l for l in lines[start:] if not is_meta_line(l) and not _TOKENS_RE.search(l)
    ).strip()
    return candidate or transcript

