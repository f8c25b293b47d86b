"""
audit/reporter.py - Console rendering and the append-only audit log.

Console output is streamed with rich as results arrive. The audit log is a
plain logging FileHandler in append mode; execute() writes one line per
check, the reporter adds run start/end lines.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from audit.checks import ALERT, SUCCESS, CheckResult, CheckStatus
from audit.summary import RunSummary, Verdict, VerdictTiers

log = logging.getLogger("audit")

LOG_FORMAT = "%(asctime)s - %(levelname)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
RULE = "=" * 47

STATUS_STYLES = {
    CheckStatus.PASS: ("green", "SUCCESS"),
    CheckStatus.WARNING: ("yellow", "WARNING"),
    CheckStatus.ALERT: ("bold red", "🚨 ALERT"),
    CheckStatus.FAIL: ("red", "ERROR"),
}
VERDICT_STYLES = {
    Verdict.EXCELLENT: "green",
    Verdict.GOOD: "green",
    Verdict.NEEDS_ATTENTION: "yellow",
    Verdict.CRITICAL: "red",
}


def configure_audit_log(path: str | Path) -> logging.Handler:
    """Attach an append-mode file handler to the audit logger."""
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    log.addHandler(handler)
    log.setLevel(logging.INFO)
    return handler


class Reporter:
    def __init__(self, console: Console | None = None, tiers: VerdictTiers | None = None):
        self.console = console or Console(highlight=False)
        self.tiers = tiers or VerdictTiers()

    @staticmethod
    def _stamp() -> str:
        return datetime.now().strftime(LOG_DATEFMT)

    def info(self, message: str) -> None:
        self.console.print(f"[blue]\\[{self._stamp()}] INFO:[/blue] {escape(message)}")
        log.info(message)

    def error(self, message: str) -> None:
        self.console.print(f"[red]\\[{self._stamp()}] ERROR:[/red] {escape(message)}")
        log.error(message)

    def section(self, label: str) -> None:
        self.console.print()
        self.console.print(f"[cyan]=== {escape(label.upper())} ===[/cyan]")

    def record(self, result: CheckResult) -> None:
        style, tag = STATUS_STYLES[result.status]
        stamp = result.timestamp.strftime(LOG_DATEFMT)
        text = escape(f"{result.name}: {result.message}")
        if result.status is CheckStatus.ALERT:
            self.console.print(f"[{style}]{tag}: {text}[/{style}]")
        else:
            self.console.print(f"[{style}]\\[{stamp}] {tag}:[/{style}] {text}")
        if result.detail and not result.passed:
            for line in result.detail.splitlines():
                self.console.print(f"    {escape(line)}", style="dim")

    def finish(self, summary: RunSummary) -> None:
        self.console.print()
        self.console.print(RULE)
        self.console.print("[blue]COMPREHENSIVE MONITORING SUMMARY[/blue]")
        self.console.print(RULE)
        self.console.print(f"Total checks performed: [blue]{summary.total}[/blue]")
        self.console.print(f"Passed: [green]{summary.passed}[/green]")
        self.console.print(
            f"Warnings: [yellow]{summary.warned}[/yellow] (alerts: {summary.alerts})"
        )
        self.console.print(f"Failures: [red]{summary.failed}[/red]")
        self.console.print(f"Success rate: {int(summary.success_rate)}%")

        verdict = summary.verdict(self.tiers)
        if verdict is not None:
            style = VERDICT_STYLES[verdict]
            self.console.print()
            self.console.print(
                f"Overall status: [{style}]{verdict.value}[/{style}] "
                f"({int(summary.success_rate)}%)"
            )
        self.console.print(RULE)

        if summary.failed > 0:
            log.error("Audit completed with FAILURES (%d failed)", summary.failed)
        elif summary.warned > 0:
            log.warning("Audit completed with warnings (%d warned)", summary.warned)
        else:
            log.log(SUCCESS, "Audit completed successfully")
        if summary.alerts > 0:
            log.log(ALERT, "%d alert(s) need operator attention", summary.alerts)
