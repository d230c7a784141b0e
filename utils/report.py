"""Walk a verification-progress tree and list the failed rules' output files."""

import json
import re
from dataclasses import dataclass, asdict
from urllib.parse import urlencode, urlsplit, parse_qs

from config.defaults import DEFAULTS

_RULE_OUTPUT_RE = re.compile(r"^rule_output_\d+\.json$")


@dataclass
class RunInfo:
    origin: str
    run_id: str | None
    output_id: str | None
    anonymous_key: str = ""


@dataclass
class FailedRule:
    rule_name: str      # path from the root, joined with " > "
    status: str
    output_file: str
    url: str

    def to_dict(self):
        return {
            "ruleName": self.rule_name,
            "status": self.status,
            "outputFile": self.output_file,
            "url": self.url,
        }


def parse_run_info(url):
    """Extract run and output ids from a report URL.

    Handles both /output/<run>/<output> and /<run>/outputs/output/<output>.
    """
    parts = urlsplit(url)
    segments = [s for s in parts.path.split("/") if s]
    run_id = output_id = None
    for i, seg in enumerate(segments):
        if seg != "output":
            continue
        prev = segments[i - 1] if i > 0 else None
        if prev != "outputs":
            run_id = segments[i + 1] if i + 1 < len(segments) else None
            output_id = segments[i + 2] if i + 2 < len(segments) else None
        else:
            run_id = segments[i - 2] if i >= 2 else None
            output_id = segments[i + 1] if i + 1 < len(segments) else None
        break
    anonymous_key = parse_qs(parts.query).get("anonymousKey", [""])[0]
    return RunInfo(
        origin=f"{parts.scheme}://{parts.netloc}",
        run_id=run_id,
        output_id=output_id,
        anonymous_key=anonymous_key,
    )


def _maybe_json(value):
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _as_list(value):
    return value if isinstance(value, list) else [value]


def get_progress_roots(progress):
    """Return the top-level rule nodes of a progress document.

    The document (or its ``verificationProgress`` field) may be JSON text,
    a list of nodes, or an object with ``rules`` or ``children``.
    """
    if not progress:
        return []
    doc = _maybe_json(progress)
    if isinstance(doc, dict) and doc.get("verificationProgress") is not None:
        vp = _maybe_json(doc["verificationProgress"])
        if isinstance(vp, list):
            return vp
        if isinstance(vp, dict):
            if vp.get("rules"):
                return _as_list(vp["rules"])
            if vp.get("children"):
                return _as_list(vp["children"])
    if isinstance(doc, list):
        return doc
    if isinstance(doc, dict):
        if doc.get("rules"):
            return _as_list(doc["rules"])
        if doc.get("children"):
            return _as_list(doc["children"])
    return []


def rule_output_url(run_info, output_file):
    base = f"{run_info.origin}/result/{run_info.run_id}/{run_info.output_id}"
    params = {}
    if run_info.anonymous_key:
        params["anonymousKey"] = run_info.anonymous_key
    params["output"] = output_file
    return f"{base}?{urlencode(params)}"


def collect_failed_rules(node, run_info, results=None, path=None, statuses=None):
    """Depth-first walk collecting rule_output_<n>.json files of failed rules."""
    results = [] if results is None else results
    if not isinstance(node, dict):
        return results
    path = path or []
    statuses = statuses or DEFAULTS["failed_rule_statuses"]

    name = node.get("name") or ""
    status = str(node.get("status") or "").upper()
    outputs = node.get("output") if isinstance(node.get("output"), list) else []
    children = node.get("children") if isinstance(node.get("children"), list) else []
    next_path = path + [name]

    if status in statuses:
        for output_file in outputs:
            if isinstance(output_file, str) and _RULE_OUTPUT_RE.match(output_file):
                results.append(FailedRule(
                    rule_name=" > ".join(next_path),
                    status=status,
                    output_file=output_file,
                    url=rule_output_url(run_info, output_file),
                ))

    for child in children:
        collect_failed_rules(child, run_info, results, next_path, statuses)
    return results


def _output_number(rule):
    match = re.search(r"\d+", rule.output_file)
    return int(match.group()) if match else 0


def find_failed_rules(progress, url):
    """All failed rules in a progress document, one per output file, in file order."""
    run_info = parse_run_info(url)
    found = []
    for root in get_progress_roots(progress):
        collect_failed_rules(root, run_info, found)

    unique = {}
    for rule in found:
        unique.setdefault(rule.output_file, rule)
    rules = sorted(unique.values(), key=_output_number)
    return run_info, rules


def run_info_dict(run_info):
    data = asdict(run_info)
    return {
        "origin": data["origin"],
        "runId": data["run_id"],
        "outputId": data["output_id"],
        "anonymousKey": data["anonymous_key"],
    }
