"""
audit/checks/resources.py - CPU, memory, load and disk pressure.

Resource pressure is observational: a metric above its threshold is an
ALERT, never a FAIL.
"""

from __future__ import annotations

from functools import partial

from audit.checks import AuditContext, CheckDefinition, CheckStatus, Outcome
from audit.checks.primitives import check_threshold
from audit.host import Host

CATEGORY = "resources"


def build_checks(ctx: AuditContext) -> list[CheckDefinition]:
    cfg, host = ctx.settings, ctx.host
    checks = [
        CheckDefinition(
            CATEGORY,
            "CPU usage",
            partial(_metric, "CPU usage", host.cpu_percent, cfg.CPU_THRESHOLD),
        ),
        CheckDefinition(
            CATEGORY,
            "Memory usage",
            partial(_metric, "memory usage", host.memory_percent, cfg.MEMORY_THRESHOLD),
        ),
        CheckDefinition(
            CATEGORY,
            "Load average (1min)",
            partial(_load, host, cfg.LOAD_THRESHOLD),
        ),
    ]
    for mount in cfg.disk_mounts:
        if host.mounted(mount):
            checks.append(
                CheckDefinition(
                    CATEGORY,
                    f"Disk usage {mount}",
                    partial(
                        _metric,
                        f"disk usage on {mount}",
                        partial(host.disk_percent, mount),
                        cfg.DISK_THRESHOLD,
                    ),
                )
            )
    return checks


def _metric(label: str, read, limit: float) -> Outcome:  # noqa: ANN001
    return check_threshold(label, read(), limit)


def _load(host: Host, limit: float) -> Outcome:
    outcome = check_threshold("system load", host.load_average(), limit, unit="")
    if outcome.status is CheckStatus.PASS:
        return outcome._replace(message=f"{outcome.message}, {host.process_count()} processes")
    return outcome
