"""Base class for agents that drive an external CLI through the supervisor."""

from config.defaults import DEFAULTS


class BaseAgent:
    """Shared plumbing: the supervisor, its session, and the event channel."""

    name = "base"
    description = "Base agent"
    mode_args_key = "agent_fix_args"    # which DEFAULTS entry holds the CLI mode flags

    def __init__(self, supervisor, command=None):
        self.supervisor = supervisor
        self.session = supervisor.session
        self.command = command or DEFAULTS["agent_command"]

    def send(self, message, type="info"):
        self.supervisor.channel.send(message, type)

    def build_command(self, prompt, project_path=None):
        """Return the argv for one agent invocation.

        The agent takes its working directory as ``-C``; the prompt is the
        final positional argument with NUL bytes stripped.
        """
        args = [self.command, *DEFAULTS[self.mode_args_key]]
        if project_path:
            args.extend(["-C", project_path])
        args.append(str(prompt or "").replace("\0", ""))
        return args
