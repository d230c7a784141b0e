"""Fix-loop orchestrator: one workflow at a time: fix every item, then verify."""

import logging
import threading
import traceback

from agents.fixer import FixerAgent
from agents.verifier import VerifierAgent
from config.defaults import DEFAULTS
from core.events import EventChannel, INFO, OUTPUT, ERROR, SUCCESS, STATUS
from core.state import SessionState, VerificationOutcome
from core.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

_TERMINAL_MESSAGES = {
    "aborted": "Sequential fix aborted by user",
    "succeeded": "Sequential fix completed, verification URL: {url}",
    "skipped": "Sequential fix completed without verification",
    "failed": "Sequential fix completed with a non-syntax verification failure",
}


class Orchestrator:
    """Runs fixer → verifier for one RunRequest and streams progress.

    State machine: idle → running → completed|aborted|errored, and back to
    running on the next start. Only an explicit abort stops a run; a client
    going away merely kills the in-flight process and the run carries on.
    """

    def __init__(self, session=None, grace_period=None, agent_command=None, verifier_command=None):
        self.session = session or SessionState()
        self.grace_period = DEFAULTS["kill_grace_seconds"] if grace_period is None else grace_period
        self.agent_command = agent_command
        self.verifier_command = verifier_command
        self.supervisor = ProcessSupervisor(self.session, EventChannel(), self.grace_period)
        self.last_outcome = None

    def start_run(self, run_request, channel):
        """Start a run on a background thread. Returns the thread, or None if busy."""
        if not self.session.begin_run():
            return None
        self.supervisor = ProcessSupervisor(self.session, channel, self.grace_period)
        thread = threading.Thread(
            target=self._run,
            args=(run_request, channel),
            name="fix-session",
            daemon=True,
        )
        thread.start()
        return thread

    def run(self, run_request, channel):
        """Run to completion on the calling thread. Returns the outcome, or None if busy."""
        if not self.session.begin_run():
            return None
        self.supervisor = ProcessSupervisor(self.session, channel, self.grace_period)
        return self._run(run_request, channel)

    def _run(self, run_request, channel):
        fixer = FixerAgent(self.supervisor, command=self.agent_command)
        verifier = VerifierAgent(self.supervisor, fixer, command=self.verifier_command)
        items = run_request.items
        outcome = None
        phase = "errored"
        try:
            channel.send(f"Starting sequential fix, {len(items)} items total", INFO)
            channel.send("List of items to fix:", INFO)
            for item in items:
                channel.send(f"  {item.index}. {item.label}", INFO)

            fixer.run_items(items, run_request.base_prompt, run_request.project_path)

            if self.session.abort_requested:
                outcome = VerificationOutcome(status="aborted")
            else:
                outcome = verifier.run(run_request.conf_path, run_request.project_path)

            phase = "aborted" if outcome.status == "aborted" else "completed"
            message = _TERMINAL_MESSAGES[outcome.status].format(url=outcome.url)
            channel.send(message, STATUS)
            if outcome.status != "aborted":
                channel.send("Sequential fix flow completed", SUCCESS)
            logger.info("Run finished: %s", outcome.status)
        except Exception as e:
            logger.exception("Sequential fix error")
            channel.send(f"Sequential fix error: {e}", ERROR)
            channel.send(traceback.format_exc(), OUTPUT)
        finally:
            self.last_outcome = outcome
            self.session.finish_run(phase)
            channel.complete(outcome.status if outcome else "errored")
        return outcome

    def request_abort(self):
        """Flag the run as aborted and kill whatever is running. Never blocks."""
        self.session.request_abort()
        return self.supervisor.kill_current()

    def client_disconnected(self):
        """The stream reader went away: stop the current process, keep the run."""
        logger.info("Client disconnected; killing current process, run continues")
        return self.supervisor.kill_current()

    def snapshot(self):
        """JSON-safe view of the session for the status endpoint."""
        current = self.session.current_process
        outcome = self.last_outcome
        return {
            "phase": self.session.phase,
            "active": self.session.is_running,
            "abort_requested": self.session.abort_requested,
            "current_process": {"label": current.label, "pid": current.pid} if current else None,
            "last_outcome": (
                {"status": outcome.status, "url": outcome.url, "attempts": outcome.attempts}
                if outcome else None
            ),
        }
