#!/usr/bin/env python3
"""Prover fix loop - fix failed rules with an agent, then rerun the prover.

Usage:
    python main.py fix --analyses analyses.json --conf certora/conf/Token.conf --project .
    python main.py fix --analyses analyses.json --prompt-file base.txt      # skip verification
    python main.py prompt --analyses analyses.json                          # print the fix prompt
    python main.py failed-rules --url https://prover.certora.com/output/... --progress progress.json
    python main.py serve --port 3002
"""

import argparse
import json
import logging
import sys

from agents.patch_composer import PatchComposer
from core.events import EventChannel, OUTPUT, COMPLETE
from core.orchestrator import Orchestrator
from core.state import RunRequest
from utils.report import find_failed_rules

_MARKERS = {
    "info": "INFO",
    "error": "ERROR",
    "success": "OK",
    "url": "URL",
    "status": "STATUS",
}


def _load_json(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _print_event(event):
    if event.type == OUTPUT:
        sys.stdout.write(event.message)
        sys.stdout.flush()
    elif event.type != COMPLETE:
        print(f"[{_MARKERS.get(event.type, event.type.upper())}] {event.message}")


def drain_events(channel, on_interrupt):
    """Yield the channel's events up to ``complete``.

    Ctrl-C calls on_interrupt and keeps reading, so the abort's own status
    and complete events still come through.
    """
    events = iter(channel)
    while True:
        try:
            event = next(events)
        except StopIteration:
            return
        except KeyboardInterrupt:
            on_interrupt()
            # The interrupted generator is finished; the queue still holds the rest.
            events = iter(channel)
            continue
        yield event


def cmd_fix(args):
    """Run the sequential fix + verify loop in the terminal. Ctrl-C aborts."""
    analyses = _load_json(args.analyses)
    if args.prompt_file:
        with open(args.prompt_file, "r", encoding="utf-8") as f:
            base_prompt = f.read()
    else:
        base_prompt = PatchComposer().compose(analyses)

    try:
        run_request = RunRequest.from_payload({
            "basePrompt": base_prompt,
            "items": analyses,
            "projectPath": args.project,
            "confPath": args.conf,
        })
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    orchestrator = Orchestrator(agent_command=args.agent, verifier_command=args.verifier)
    channel = EventChannel()
    thread = orchestrator.start_run(run_request, channel)

    def abort():
        print("\nAbort requested, stopping current process...")
        orchestrator.request_abort()

    for event in drain_events(channel, abort):
        _print_event(event)
    thread.join()

    outcome = orchestrator.last_outcome
    status = outcome.status if outcome else "errored"
    print(f"\nStatus: {status}")
    if outcome and outcome.url:
        print(f"URL:    {outcome.url}")
    return 0 if status in ("succeeded", "skipped") else 1


def cmd_prompt(args):
    print(PatchComposer().compose(_load_json(args.analyses)))
    return 0


def cmd_failed_rules(args):
    run_info, rules = find_failed_rules(_load_json(args.progress), args.url)
    print(f"Run:    {run_info.run_id}/{run_info.output_id}")
    for rule in rules:
        print(f"  [{rule.status}] {rule.rule_name}")
        print(f"           {rule.url}")
    print(f"\nFound {len(rules)} unique failed rule output file(s)")
    return 0


def cmd_serve(args):
    from server import serve
    serve(port=args.port)
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog="proverfix",
        description="Agent-driven fix loop for formal verification failures",
    )
    parser.add_argument("--verbose", action="store_true", help="Log supervisor activity")
    subparsers = parser.add_subparsers(dest="command")

    fix_parser = subparsers.add_parser("fix", help="Fix failed rules, then rerun the prover")
    fix_parser.add_argument("--analyses", required=True,
                            help="JSON file: list of analyses (strings or {text, ruleName})")
    fix_parser.add_argument("--prompt-file", help="Base fix prompt (default: composed from analyses)")
    fix_parser.add_argument("--project", help="Project working directory")
    fix_parser.add_argument("--conf", help="Prover .conf file; omit to skip verification")
    fix_parser.add_argument("--agent", help="Agent CLI command (default: codex)")
    fix_parser.add_argument("--verifier", help="Verifier command (default: certoraRun)")

    prompt_parser = subparsers.add_parser("prompt", help="Print the composed fix prompt")
    prompt_parser.add_argument("--analyses", required=True, help="JSON file of analyses")

    rules_parser = subparsers.add_parser("failed-rules", help="List failed rules from a progress JSON")
    rules_parser.add_argument("--url", required=True, help="Verification report URL")
    rules_parser.add_argument("--progress", required=True, help="Saved progress JSON file")

    serve_parser = subparsers.add_parser("serve", help="Start the streaming web server")
    serve_parser.add_argument("--port", type=int, help="Port (default: $PORT or 3002)")

    args = parser.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    commands = {
        "fix": cmd_fix,
        "prompt": cmd_prompt,
        "failed-rules": cmd_failed_rules,
        "serve": cmd_serve,
    }
    if args.command not in commands:
        parser.print_help()
        sys.exit(1)
    sys.exit(commands[args.command](args))


if __name__ == "__main__":
    main()
