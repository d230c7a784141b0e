"""Analyzer agent: read-only analysis of a single failed rule."""

from agents.base import BaseAgent
from core.events import INFO, ERROR, SUCCESS, FINAL
from utils.answer import extract_final_answer
from utils.template_engine import render_prompt

ANALYSIS_TEMPLATES = {
    "VIOLATED": "analyze_violated.txt",
    "SANITY_FAILED": "analyze_sanity_failed.txt",
}


def build_analysis_prompt(content, rule_type):
    """Render the analysis prompt for a rule status. Raises ValueError for unknown types."""
    template = ANALYSIS_TEMPLATES.get(str(rule_type or "").upper())
    if not template:
        raise ValueError(f"Unsupported rule type: {rule_type}")
    return render_prompt(template, {"content": content})


class AnalyzerAgent(BaseAgent):
    """Runs the agent in a read-only sandbox and reports its final answer."""

    name = "analyzer"
    description = "Classifies a failed rule and suggests sound fixes"
    mode_args_key = "agent_analyze_args"

    def run(self, content, rule_type, project_path=None):
        """Analyze one rule. Returns the extracted answer, or None on failure."""
        prompt = build_analysis_prompt(content, rule_type)
        self.send("Starting analysis...", INFO)
        if project_path:
            self.send(f"Set working directory: {project_path}", INFO)

        result = self.supervisor.spawn(
            self.build_command(prompt, project_path),
            label=self.command,
        )
        if not result.ok:
            self.send(f"Process exited abnormally, code: {result.returncode}", ERROR)
            return None

        answer = extract_final_answer(result.stdout)
        self.send(answer, FINAL)
        self.send("Analysis complete", SUCCESS)
        return answer
