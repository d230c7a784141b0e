"""Verifier agent: reruns the prover until it succeeds, fails for real, or is aborted."""

from config.defaults import DEFAULTS
from core.events import INFO, OUTPUT, ERROR, SUCCESS, URL
from core.state import VerificationOutcome, SUCCESS as CLASS_SUCCESS, SYNTAX_ERROR
from manager.classifier import classify
from utils.template_engine import render_prompt


def _tail(text, limit):
    return text[-limit:] if limit > 0 else ""


def build_syntax_fix_prompt(output, tail_chars=None):
    tail_chars = DEFAULTS["syntax_fix_tail_chars"] if tail_chars is None else tail_chars
    return render_prompt("syntax_fix.txt", {"log_tail": _tail(output, tail_chars)})


class VerifierAgent:
    """Runs the verifier and routes syntax errors back to the fixer.

    Syntax-class failures are mechanically fixable, so they loop until the
    verifier reports a result URL or the user aborts. Any other failure stops
    the loop: retrying without new information cannot converge.
    """

    name = "verifier"
    description = "Runs the prover and retries after syntax fixes"

    def __init__(self, supervisor, fixer, command=None, tail_chars=None, failure_tail_chars=None):
        self.supervisor = supervisor
        self.session = supervisor.session
        self.fixer = fixer
        self.command = command or DEFAULTS["verifier_command"]
        self.tail_chars = DEFAULTS["syntax_fix_tail_chars"] if tail_chars is None else tail_chars
        self.failure_tail_chars = (
            DEFAULTS["failure_tail_chars"] if failure_tail_chars is None else failure_tail_chars
        )

    def send(self, message, type=INFO):
        self.supervisor.channel.send(message, type)

    def run_once(self, conf_path, project_path=None):
        """One verifier invocation. Returns (classification, combined output)."""
        args = [self.command, conf_path]
        self.send(f"Running: {' '.join(args)}", INFO)
        result = self.supervisor.spawn(
            args,
            cwd=project_path,
            label=self.command,
            stderr_type=OUTPUT,
        )
        output = result.output
        verdict = classify(output)
        if verdict.kind == CLASS_SUCCESS:
            self.send(verdict.url, URL)
            self.send(f"{self.command} successful, verification URL obtained", SUCCESS)
        else:
            self.send(f"{self.command} did not return a verification URL, considered a failure", ERROR)
        return verdict, output

    def run(self, conf_path, project_path=None) -> VerificationOutcome:
        if not conf_path:
            self.send("No conf path provided; skipping verification", INFO)
            return VerificationOutcome(status="skipped")

        self.send(f"All fixes completed, running {self.command} for syntax check...", INFO)
        attempt = 0
        while not self.session.abort_requested:
            attempt += 1
            self.send(f"{self.command} attempt {attempt}", INFO)
            self.send(f"{self.command} attempt {attempt}\n", OUTPUT)

            verdict, output = self.run_once(conf_path, project_path)

            if verdict.kind == CLASS_SUCCESS:
                self.send(f"{self.command} succeeded: {verdict.url}", SUCCESS)
                return VerificationOutcome(status="succeeded", url=verdict.url, attempts=attempt)

            if verdict.kind == SYNTAX_ERROR:
                self.send(f"{self.command} detected syntax errors; sending to agent to fix...", ERROR)
                prompt = build_syntax_fix_prompt(output, self.tail_chars)
                if self.fixer.fix_one(prompt, "Syntax Error Fix", project_path):
                    self.send("Agent attempted to fix syntax errors", SUCCESS)
                elif not self.session.abort_requested:
                    self.send(f"Agent failed to fix syntax errors; will retry {self.command}", ERROR)
                # Only a fresh verifier run can confirm the fix.
                continue

            self.send(f"{self.command} failed (non-syntax). See logs for details", ERROR)
            self.send(_tail(output, self.failure_tail_chars), OUTPUT)
            return VerificationOutcome(status="failed", attempts=attempt)

        self.send("Abort signal detected, stopping verification", INFO)
        return VerificationOutcome(status="aborted", attempts=attempt)
