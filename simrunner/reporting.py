# simrunner/reporting.py
from __future__ import annotations
import time, html, logging, re
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Iterable

from simrunner.commands import PASSED, Outcome
from simrunner.config import RunConfig

log = logging.getLogger(__name__)


def _safe_name(s: str) -> str:
    s = re.sub(r"[^a-zA-Z0-9_.-]+", "_", s or "")
    s = s.strip("_")
    return s[:120] if s else "scenario"


def _status_badge(s: str) -> str:
    color = {"passed":"#16a34a","failed":"#dc2626","skipped":"#6b7280","resolved":"#16a34a",
             "timed-out":"#f59e0b","errored":"#dc2626"}.get(s, "#2563eb")
    return f'<span style="background:{color};color:#fff;border-radius:8px;padding:2px 8px;font-size:12px">{html.escape(s)}</span>'


class ResultReporter:
    """
    Collects one Outcome per scenario and turns them into the run's exit status
    and summary files. Outcomes are only ever appended.
    """

    def __init__(self, config: RunConfig, echo=print):
        self.config = config
        self.echo = echo
        self.outcomes: List[Outcome] = []
        self.started = time.time()

    # ---------- artifacts ----------

    def capture_screenshot(self, scenario_id: str, page_context) -> Optional[str]:
        """Best effort: a failed capture is logged and never raised."""
        shot = self.config.reports_path / "screenshots" / f"{_safe_name(scenario_id)} (failed).png"
        try:
            shot.parent.mkdir(parents=True, exist_ok=True)
            page_context.screenshot(str(shot))
        except Exception as e:
            log.warning("screenshot for %s failed: %s", scenario_id, e)
            return None
        return str(shot)

    def attach_failure_artifacts(self, outcome: Outcome, page_context) -> Outcome:
        """Called while the scenario's page is still open."""
        if outcome.passed or not self.config.screenshot_on_failure or page_context is None:
            return outcome
        shot = self.capture_screenshot(outcome.scenario_id, page_context)
        if not shot:
            return outcome
        return replace(outcome, artifacts=outcome.artifacts + (("screenshot", shot),))

    # ---------- aggregation ----------

    def record(self, outcome: Outcome, video_path: Optional[str] = None) -> Outcome:
        if video_path:
            outcome = replace(outcome, artifacts=outcome.artifacts + (("video", video_path),))
        self.outcomes.append(outcome)
        self.echo(self._line(outcome))
        return outcome

    def merge(self, outcomes: Iterable[Outcome]) -> None:
        """Append outcomes already reported by a worker process."""
        self.outcomes.extend(outcomes)

    def exit_code(self) -> int:
        return 0 if all(o.status == PASSED for o in self.outcomes) else 1

    def _line(self, o: Outcome) -> str:
        mark = "✅" if o.passed else "❌"
        line = f"{mark} {o.scenario_id}  ({o.elapsed_ms / 1000:.2f}s)"
        if not o.passed:
            line += f"\n     {o.reason}: {o.message}"
            shot = o.artifact("screenshot")
            if shot:
                line += f"\n     screenshot: {shot}"
        return line

    def summary_lines(self) -> List[str]:
        passed = sum(1 for o in self.outcomes if o.passed)
        failed = len(self.outcomes) - passed
        lines = [
            f"Base URL: {self.config.base_url}",
            f"Browser: {self.config.browser} | Headful: {self.config.headful}",
            f"Scenarios: {len(self.outcomes)} | Passed: {passed} | Failed: {failed}",
            f"Duration: {time.time() - self.started:.2f}s",
            "",
        ]
        for o in self.outcomes:
            lines.append(f"[{o.status}] {o.scenario_id}  ({o.elapsed_ms / 1000:.2f}s)")
            if not o.passed:
                lines.append(f"       reason: {o.reason}")
                lines.append(f"       error : {o.message}")
            for c in o.commands:
                lines.append(f"    [{c.index}] {c.description}  ({c.elapsed_ms / 1000:.2f}s)  -> {c.state}")
            for kind, path in o.artifacts:
                lines.append(f"    {kind}: {path}")
        return lines

    def finalize(self) -> Path:
        reports_dir = self.config.reports_path
        reports_dir.mkdir(parents=True, exist_ok=True)
        lines = self.summary_lines()

        self.echo("\n" + "\n".join(lines[:4]) + "\n")

        txt_path = reports_dir / "report_summary.txt"
        txt_path.write_text("\n".join(lines), encoding="utf-8")
        (reports_dir / "report_summary.html").write_text(self._html(lines[:4]), encoding="utf-8")
        return txt_path

    def _html(self, meta: List[str]) -> str:
        sections = []
        for o in self.outcomes:
            rows = []
            for c in o.commands:
                rows.append(
                    "<tr>"
                    f"<td>{c.index}</td>"
                    f"<td><code>{html.escape(c.description)}</code></td>"
                    f"<td>{c.elapsed_ms / 1000:.2f}s</td>"
                    f"<td>{_status_badge(c.state)}</td>"
                    f"<td>{html.escape(c.error or '')}</td>"
                    "</tr>"
                )
            arts = []
            for kind, path in o.artifacts:
                p = html.escape(path)
                thumb = ""
                if p.lower().endswith((".png", ".jpg", ".jpeg")):
                    thumb = f'<div><img src="{p}" style="max-width:320px;border:1px solid #ddd;margin-top:4px"/></div>'
                arts.append(f'<div><b>{html.escape(kind)}:</b> <a href="{p}" target="_blank">{p}</a>{thumb}</div>')
            sections.append(f"""
<h3>{html.escape(o.scenario_id)} {_status_badge(o.status)}</h3>
<div><b>Reason:</b> {html.escape(o.reason or '-')}</div>
<div><b>Error:</b> <code>{html.escape(o.message or '-')}</code></div>
<table>
  <thead><tr><th>#</th><th>Command</th><th>Time</th><th>State</th><th>Error</th></tr></thead>
  <tbody>{''.join(rows)}</tbody>
</table>
{''.join(arts)}""")

        meta_html = "".join(f"<div>{html.escape(m)}</div>" for m in meta)
        return f"""<!doctype html>
<html lang="en"><head>
<meta charset="utf-8"/>
<title>E2E Report</title>
<style>
 body{{font-family:Arial,Helvetica,sans-serif;margin:24px}}
 table{{border-collapse:collapse;width:100%;margin-bottom:8px}}
 th,td{{border:1px solid #e5e7eb;padding:8px;text-align:left}}
 th{{background:#f3f4f6}}
 code{{background:#f3f4f6;padding:1px 4px;border-radius:4px}}
 .meta div{{margin-bottom:4px}}
</style>
</head><body>
<h2>E2E Report</h2>
<div class="meta">{meta_html}</div>
{''.join(sections) if sections else '<p>No scenarios ran</p>'}
</body></html>"""
