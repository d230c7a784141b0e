"""Fixer agent: runs the external agent once per work item, in order."""

from agents.base import BaseAgent
from core.events import INFO, OUTPUT, ERROR, SUCCESS


def build_item_prompt(base_prompt, item):
    return f"{base_prompt or ''}\nRule: {item.label}\nDetails:\n{item.text}"


class FixerAgent(BaseAgent):
    """Applies spec/conf fixes with the agent in workspace-write mode.

    Items run strictly one after another: the agent edits the same working
    tree every time, so there is never more than one agent process alive.
    A failed item is reported and skipped; only an abort stops the batch.
    """

    name = "fixer"
    description = "Applies fixes for failed rules"
    mode_args_key = "agent_fix_args"

    def fix_one(self, prompt, label="Fix Task", project_path=None) -> bool:
        """Run the agent once. Returns True iff it exited with code 0."""
        if self.session.abort_requested:
            self.send("Abort requested before spawning agent", INFO)
            return False
        if project_path:
            self.send(f"Set working directory: {project_path}", INFO)
        self.send(f"Starting fix: {label}", INFO)
        result = self.supervisor.spawn(
            self.build_command(prompt, project_path),
            label=self.command,
        )
        return result.ok

    def run_items(self, items, base_prompt, project_path=None) -> list[bool]:
        """Fix every item in order; returns one success flag per attempted item."""
        total = len(items)
        results = []
        for i, item in enumerate(items, 1):
            if self.session.abort_requested:
                self.send("Abort signal detected, stopping fix", INFO)
                break

            self.send(f"Start {i}/{total}: {item.label}", INFO)
            self.send(f"\n===== [Start {i}/{total}] {item.label} =====\n", OUTPUT)
            self.send(f"Invoking agent to fix item {i}...", INFO)

            ok = self.fix_one(build_item_prompt(base_prompt, item), item.label, project_path)
            results.append(ok)

            verdict = "Success" if ok else "Failure"
            self.send(f"Result {i}: {verdict}", INFO)
            self.send(f"===== [Done {i}/{total}] {verdict} =====\n", OUTPUT)

            if ok:
                self.send(f"Fix {i} completed", SUCCESS)
            elif self.session.abort_requested:
                self.send("Abort signal detected during fix", INFO)
                break
            else:
                self.send(f"Fix {i} failed, continue to next", ERROR)

            if i < total:
                self.send(f"Next {i + 1}/{total}", INFO)
                self.send(f"Next {i + 1}/{total}\n", OUTPUT)

        self.send(f"Fix loop finished, processed {len(results)}/{total} items", INFO)
        return results
