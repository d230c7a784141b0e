"""Agent prompts stored under templates/prompts, rendered with string.Template."""

import os
from functools import lru_cache
from string import Template

PROMPTS_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "templates", "prompts",
)


@lru_cache(maxsize=None)
def load_template(name):
    """Parse one prompt file. The name may not point outside the prompts directory."""
    root = os.path.realpath(PROMPTS_DIR)
    path = os.path.realpath(os.path.join(root, name))
    if os.path.commonpath([root, path]) != root or path == root:
        raise ValueError(f"Template path escapes prompts directory: {name}")
    with open(path, "r", encoding="utf-8") as f:
        return Template(f.read())


def render_prompt(name, variables):
    """Fill a prompt's ``$placeholders``.

    safe_substitute only looks placeholders up in the template, so ``$``
    characters inside substituted log text or analyses are left alone, and
    unknown placeholders stay as written.
    """
    return load_template(name).safe_substitute(variables)
