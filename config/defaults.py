"""Default fix-loop settings."""

DEFAULTS = {
    "agent_command": "codex",
    "agent_fix_args": [
        "exec",
        "--sandbox", "workspace-write",
        "-c", "approval_policy=never",
        "-c", "model_reasoning_effort=high",
        "-c", "model_reasoning_summary=detailed",
    ],
    "agent_analyze_args": [
        "exec",
        "--sandbox", "read-only",
        "-c", "approval_policy=never",
        "-c", "model_reasoning_effort=high",
        "-c", "model_reasoning_summary=detailed",
    ],
    "verifier_command": "certoraRun",
    "result_url_pattern": r"https://prover\.certora\.com/output/[^\s]+",
    "syntax_error_markers": ["syntax error", "parse error", "compilation error"],
    "syntax_fix_tail_chars": 9000,     # log tail embedded in a syntax-fix prompt
    "failure_tail_chars": 2000,        # log tail shown for a non-syntax failure
    "kill_grace_seconds": 1.5,         # SIGTERM -> SIGKILL window for the fix loop
    "analyze_kill_grace_seconds": 1.2,
    "failed_rule_statuses": ["VIOLATED", "SANITY_FAILED"],
    "port": 3002,
    "max_request_bytes": 100 * 1024 * 1024,
}
