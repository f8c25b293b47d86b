"""
audit/executor.py - Run every registered group in order and tally results.

Usage:
    from audit.executor import run_audit
    summary = run_audit(cfg)
    sys.exit(summary.exit_code)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from audit.checks import AuditContext, CheckResult, CheckStatus
from audit.checks.primitives import execute
from audit.expectations import ExpectationsManifest, parse_expectations
from audit.host import Host
from audit.registry import REGISTRY, CheckGroup
from audit.reporter import Reporter
from audit.summary import RunSummary
from config.settings import Settings

log = logging.getLogger("audit")


def run_audit(
    cfg: Settings,
    host: Host | None = None,
    reporter: Reporter | None = None,
    registry: Iterable[CheckGroup] = REGISTRY,
    expectations: ExpectationsManifest | None = None,
    now: datetime | None = None,
) -> RunSummary:
    """Execute each group's checks once, streaming results to the reporter.

    A group whose checks cannot be enumerated contributes a single FAIL and
    the run moves on to the next group.
    """
    if host is None:
        host = Host(cfg.COMMAND_TIMEOUT_SECONDS, cfg.HTTP_TIMEOUT_SECONDS)
    if expectations is None:
        expectations = parse_expectations(cfg.EXPECTATIONS_FILE)
    ctx = AuditContext(cfg, host, expectations, now or datetime.now())
    summary = RunSummary()

    for group in registry:
        if reporter is not None:
            reporter.section(group.label)
        try:
            definitions = group.build(ctx)
        except Exception as exc:  # noqa: BLE001
            result = CheckResult(
                group.key,
                f"{group.label} checks",
                CheckStatus.FAIL,
                f"could not enumerate checks: {exc}",
            )
            log.error("%s: %s", result.name, result.message)
            _emit(summary, reporter, result)
            continue
        for definition in definitions:
            _emit(summary, reporter, execute(definition))

    return summary


def _emit(summary: RunSummary, reporter: Reporter | None, result: CheckResult) -> None:
    summary.record(result)
    if reporter is not None:
        reporter.record(result)
