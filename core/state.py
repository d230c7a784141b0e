"""Fix-loop state models shared across all stages."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass(frozen=True)
class WorkItem:
    index: int          # 1-based position in the submitted list
    text: str           # analysis / finding the agent acts on
    rule_name: str = ""

    @property
    def label(self) -> str:
        return self.rule_name or f"Item {self.index}"

    @classmethod
    def from_payload(cls, raw, index: int) -> "WorkItem":
        """Normalize a client-submitted entry.

        Accepts a bare string or a mapping using any of the field names the
        front-end has sent over time (text/analysis, ruleName/name/rule).
        """
        if isinstance(raw, dict):
            text = raw.get("text")
            if text is None:
                text = raw.get("analysis")
            rule_name = raw.get("ruleName")
            if rule_name is None:
                rule_name = raw.get("name")
            if rule_name is None:
                rule_name = raw.get("rule")
            return cls(index=index, text=str(text or ""), rule_name=str(rule_name or ""))
        return cls(index=index, text=str(raw or ""))


def _clean_path(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class RunRequest:
    base_prompt: str
    items: tuple[WorkItem, ...]
    project_path: str | None = None
    conf_path: str | None = None    # None skips the verification phase

    def __post_init__(self):
        if not self.items:
            raise ValueError("Missing analysis results (items)")

    @classmethod
    def from_payload(cls, data) -> "RunRequest":
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object")
        raw_items = data.get("items")
        if raw_items is None:
            raw_items = data.get("analyses")
        if not isinstance(raw_items, list) or not raw_items:
            raise ValueError("Missing analysis results (items)")
        items = tuple(WorkItem.from_payload(raw, i) for i, raw in enumerate(raw_items, 1))
        return cls(
            base_prompt=str(data.get("basePrompt") or ""),
            items=items,
            project_path=_clean_path(data.get("projectPath")),
            conf_path=_clean_path(data.get("confPath")),
        )


# Classification kinds
SUCCESS = "success"
SYNTAX_ERROR = "syntax_error"
OTHER_FAILURE = "other_failure"


@dataclass(frozen=True)
class Classification:
    kind: str           # success|syntax_error|other_failure
    url: str = ""


@dataclass
class VerificationOutcome:
    status: str         # succeeded|skipped|aborted|failed
    url: str = ""
    attempts: int = 0


@dataclass
class SessionState:
    """Single-instance state for the active workflow.

    All transitions go through the lock so the abort endpoint, the exit
    handlers and the kill timer can touch the current-process slot from
    different threads.
    """

    abort_requested: bool = False
    is_running: bool = False
    current_process: object | None = None     # ManagedProcess
    phase: str = "idle"                       # idle|running|completed|aborted|errored
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def begin_run(self) -> bool:
        """Mark a new run as started. Returns False if one is already running."""
        with self._lock:
            if self.is_running:
                return False
            self.abort_requested = False
            self.is_running = True
            self.current_process = None
            self.phase = "running"
            return True

    def finish_run(self, phase: str):
        with self._lock:
            self.is_running = False
            self.phase = phase

    def request_abort(self):
        with self._lock:
            self.abort_requested = True

    def attach(self, process):
        with self._lock:
            self.current_process = process

    def release(self, process) -> bool:
        """Clear the current slot only if it still holds ``process``."""
        with self._lock:
            if self.current_process is process:
                self.current_process = None
                return True
            return False

    def is_current(self, process) -> bool:
        with self._lock:
            return process is not None and self.current_process is process
