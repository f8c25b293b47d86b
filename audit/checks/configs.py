"""
audit/checks/configs.py - Deployed configuration versus expected templates.

Driven by the expectations manifest. Template entries look for leftover
%%TOKEN%% placeholders, command entries must exit 0, diff entries compare
line by line and path entries must exist. Drift is reported as a WARNING,
never a FAIL.
"""

from __future__ import annotations

from functools import partial
from pathlib import Path

from audit.checks import AuditContext, CheckDefinition, Outcome
from audit.checks.primitives import (
    check_command,
    check_config_drift,
    check_exists,
    check_permissions,
    check_template_filled,
)
from audit.expectations import CommandExpectation
from audit.host import Host

CATEGORY = "configs"


def build_checks(ctx: AuditContext) -> list[CheckDefinition]:
    cfg = ctx.settings
    manifest = ctx.expectations.resolve({"php_version": cfg.PHP_VERSION})
    base_dir = Path(cfg.CONFIG_BASE_DIR)
    pattern = cfg.placeholder_re
    checks: list[CheckDefinition] = []

    for entry in manifest.templates:
        checks.append(
            CheckDefinition(
                CATEGORY,
                f"{entry.description} (template)",
                partial(
                    check_template_filled,
                    base_dir / entry.template,
                    cfg.target_path(entry.deployed),
                    pattern,
                ),
            )
        )

    for command in manifest.commands:
        checks.append(
            CheckDefinition(CATEGORY, command.description, partial(run_command, ctx.host, command))
        )

    for entry in manifest.diffs:
        for description, expected, deployed in entry.expand(base_dir):
            if not entry.required and not expected.is_file():
                continue
            checks.append(
                CheckDefinition(
                    CATEGORY,
                    description,
                    partial(check_config_drift, expected, cfg.target_path(deployed)),
                )
            )
            if entry.permissions:
                checks.append(
                    CheckDefinition(
                        CATEGORY,
                        f"{description} permissions",
                        partial(
                            check_permissions,
                            cfg.target_path(deployed),
                            entry.permissions.owner,
                            entry.permissions.mode,
                        ),
                    )
                )

    for entry in manifest.paths:
        checks.append(
            CheckDefinition(
                CATEGORY,
                entry.description,
                partial(
                    check_exists, cfg.target_path(entry.path), entry.required, entry.path
                ),
            )
        )
    return checks


def run_command(host: Host, command: CommandExpectation) -> Outcome:
    return check_command(host.run(command.command))
