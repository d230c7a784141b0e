"""Patch composer: turns per-rule analyses into the base fix instruction. Zero agent calls."""

from core.state import WorkItem
from utils.template_engine import render_prompt

_BOX_WIDTH = 83


def _format_item(item: WorkItem) -> str:
    title = f"Analysis Conclusion {item.index}"
    if item.rule_name:
        title += f" · Rule: {item.rule_name}"
    footer = f"Analysis Conclusion {item.index} End".center(_BOX_WIDTH)
    return (
        f"╔{'═' * _BOX_WIDTH}╗\n"
        f"║ {title}\n\n\n"
        f"{item.text}\n\n"
        f"║{footer}║\n"
        f"╚{'═' * _BOX_WIDTH}╝"
    )


class PatchComposer:
    """Collects analyses from the UI and formats the shared fix prompt."""

    name = "patch_composer"

    def compose(self, analyses) -> str:
        """Accepts raw client entries (strings or {text, ruleName} objects)."""
        if not isinstance(analyses, list) or not analyses:
            raise ValueError("Missing analysis results")
        items = [WorkItem.from_payload(raw, i) for i, raw in enumerate(analyses, 1)]
        work_items = "\n\n".join(_format_item(item) for item in items)
        return render_prompt("fix_items.txt", {"work_items": work_items})
