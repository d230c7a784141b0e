#!/usr/bin/env python3
"""Prover fix loop - streaming web server for the fix/verify workflow."""

import logging
import os
import threading

from flask import Flask, Response, jsonify, request, stream_with_context

from agents.analyzer import AnalyzerAgent, build_analysis_prompt
from agents.patch_composer import PatchComposer
from config.defaults import DEFAULTS
from core.events import EventChannel, ERROR
from core.orchestrator import Orchestrator
from core.state import RunRequest, SessionState
from core.supervisor import ProcessSupervisor
from utils.report import find_failed_rules, run_info_dict

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = DEFAULTS["max_request_bytes"]
orchestrator = Orchestrator()
patch_composer = PatchComposer()

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


@app.after_request
def _allow_cors(resp):
    resp.headers["Access-Control-Allow-Origin"] = "*"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type, Cache-Control"
    return resp


def _event_stream(channel, on_disconnect):
    """Yield SSE frames until ``complete``; call on_disconnect if the client leaves first."""
    finished = False
    try:
        for event in channel:
            yield event.to_sse()
        finished = True
    finally:
        if not finished:
            channel.detach()
            on_disconnect()


def _sse_response(channel, on_disconnect):
    return Response(
        stream_with_context(_event_stream(channel, on_disconnect)),
        mimetype="text/event-stream",
        headers=_SSE_HEADERS,
    )


@app.route("/api/fix-sequential-stream", methods=["POST"])
def api_fix_sequential_stream():
    """Fix every submitted item in order, then rerun the verifier until it settles.

    The run lives on its own thread: if the client disconnects, only the
    current process is killed and the workflow still finishes server-side.
    """
    data = request.get_json(silent=True)
    try:
        run_request = RunRequest.from_payload(data)
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    channel = EventChannel()
    if orchestrator.start_run(run_request, channel) is None:
        return jsonify({"success": False, "error": "A fix run is already in progress"}), 409

    app.logger.info("Sequential fix started with %d items", len(run_request.items))
    return _sse_response(channel, orchestrator.client_disconnected)


@app.route("/api/kill-processes", methods=["POST"])
def api_kill_processes():
    """Abort the active run. Returns without waiting for the process to die."""
    app.logger.info("Received manual process termination request")
    signalled = orchestrator.request_abort()
    if not signalled:
        app.logger.info("No current child process to terminate")
    return jsonify({
        "success": True,
        "message": "Requested stop of current fix process",
        "active": orchestrator.session.is_running,
    })


@app.route("/api/status")
def api_status():
    return jsonify(orchestrator.snapshot())


def _run_analysis(agent, channel, content, rule_type, project_path):
    try:
        agent.run(content, rule_type, project_path)
    except Exception as e:
        app.logger.exception("Analysis error")
        channel.send(f"Analysis error: {e}", ERROR)
    finally:
        channel.complete()


@app.route("/api/analyze-rule-stream", methods=["POST"])
def api_analyze_rule_stream():
    """Stream a read-only agent analysis of one failed rule."""
    data = request.get_json(silent=True) or {}
    content = data.get("content")
    rule_type = data.get("type")
    if not content or not rule_type:
        return jsonify({"success": False, "error": "Missing required parameters: content and type"}), 400
    try:
        build_analysis_prompt(content, rule_type)
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    project_path = str(data.get("projectPath") or "").strip() or None
    channel = EventChannel()
    # Own session: an analysis never occupies the fix loop's process slot.
    supervisor = ProcessSupervisor(
        SessionState(), channel, DEFAULTS["analyze_kill_grace_seconds"],
    )
    agent = AnalyzerAgent(supervisor)
    threading.Thread(
        target=_run_analysis,
        args=(agent, channel, content, rule_type, project_path),
        name="analyze-rule",
        daemon=True,
    ).start()
    return _sse_response(channel, supervisor.kill_current)


@app.route("/api/fix-prompt", methods=["POST"])
def api_fix_prompt():
    data = request.get_json(silent=True) or {}
    try:
        prompt = patch_composer.compose(data.get("analyses"))
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    return jsonify({"success": True, "prompt": prompt})


@app.route("/api/failed-rules", methods=["POST"])
def api_failed_rules():
    """List failed rules from an already-fetched verification-progress document."""
    data = request.get_json(silent=True) or {}
    url = str(data.get("url") or "").strip()
    if not url:
        return jsonify({"success": False, "error": "Please provide URL"}), 400
    progress = data.get("progress")
    if not progress:
        return jsonify({"success": False, "error": "Progress data not found"}), 404

    run_info, rules = find_failed_rules(progress, url)
    return jsonify({
        "success": True,
        "url": url,
        "runInfo": run_info_dict(run_info),
        "totalRules": len(rules),
        "rules": [r.to_dict() for r in rules],
    })


def serve(port=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = port or int(os.environ.get("PORT", DEFAULTS["port"]))
    print(f"Prover fix loop running at http://localhost:{port}")
    app.run(debug=False, port=port, threaded=True)


if __name__ == "__main__":
    serve()
