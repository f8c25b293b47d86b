"""
audit/checks/primitives.py - Check execution boundary and result policies.

execute() is the only place a check's run() is called. It never raises:
tool, parse, timeout and unexpected errors all become a classified
CheckResult, and one audit-log line is written per result.

The policy functions below decide PASS / WARNING / ALERT / FAIL for one kind
of assertion and are shared by all check groups.
"""

from __future__ import annotations

import difflib
import grp
import logging
import os
import pwd
import re
import stat
import subprocess
from pathlib import Path
from typing import Callable

from audit.checks import CheckDefinition, CheckResult, CheckStatus, Outcome
from audit.checks.parsers import ParseError
from audit.host import CommandResult, Host, ToolUnavailable

log = logging.getLogger("audit")

DIFF_PREVIEW_LINES = 10
PLACEHOLDER_PREVIEW = 3


def execute(definition: CheckDefinition) -> CheckResult:
    try:
        outcome = definition.run()
    except ToolUnavailable as exc:
        outcome = Outcome(CheckStatus.WARNING, f"{exc.tool} not installed, check skipped")
    except ParseError as exc:
        outcome = Outcome(CheckStatus.FAIL, "malformed output", detail=str(exc))
    except subprocess.TimeoutExpired as exc:
        outcome = Outcome(definition.on_error, f"timed out ({exc.timeout}s)")
    except Exception as exc:  # noqa: BLE001
        outcome = Outcome(definition.on_error, f"error: {exc}")

    result = CheckResult(
        category=definition.category,
        name=definition.name,
        status=outcome.status,
        message=outcome.message,
        detail=outcome.detail,
    )
    log.log(result.status.log_level, "%s: %s", result.name, result.message)
    return result


# -----------------------------------------------------------------------------
# Filesystem policies
# -----------------------------------------------------------------------------


def check_exists(path: Path, required: bool = True, label: str | None = None) -> Outcome:
    label = label or str(path)
    if path.exists():
        return Outcome(CheckStatus.PASS, f"present ({label})")
    status = CheckStatus.FAIL if required else CheckStatus.WARNING
    return Outcome(status, f"not found: {label}")


def find_placeholders(text: str, pattern: re.Pattern[str]) -> list[str]:
    return pattern.findall(text)


def check_template_filled(
    template: Path, deployed: Path, pattern: re.Pattern[str]
) -> Outcome:
    if not template.is_file():
        return Outcome(CheckStatus.FAIL, f"Template file not found: {template}")
    if not deployed.is_file():
        return Outcome(CheckStatus.FAIL, f"Actual config file not found: {deployed}")

    remaining = find_placeholders(deployed.read_text(encoding="utf-8", errors="replace"), pattern)
    if remaining:
        unique = list(dict.fromkeys(remaining))
        return Outcome(
            CheckStatus.WARNING,
            "Contains unreplaced template placeholders",
            detail="Unreplaced variables: " + ", ".join(unique[:PLACEHOLDER_PREVIEW]),
        )
    return Outcome(CheckStatus.PASS, "Template properly processed")


def check_config_drift(expected: Path, deployed: Path) -> Outcome:
    if not expected.is_file():
        return Outcome(CheckStatus.FAIL, f"Expected config file not found: {expected}")
    if not deployed.is_file():
        return Outcome(CheckStatus.FAIL, f"Actual config file not found: {deployed}")

    expected_lines = expected.read_text(encoding="utf-8", errors="replace").splitlines()
    deployed_lines = deployed.read_text(encoding="utf-8", errors="replace").splitlines()
    if expected_lines == deployed_lines:
        return Outcome(CheckStatus.PASS, "MATCH")

    diff = list(
        difflib.unified_diff(
            expected_lines,
            deployed_lines,
            fromfile=str(expected),
            tofile=str(deployed),
            lineterm="",
        )
    )
    preview = diff[:DIFF_PREVIEW_LINES]
    preview.append(f"(Full diff: diff -u {expected} {deployed})")
    return Outcome(CheckStatus.WARNING, "DIFFERENCES FOUND", detail="\n".join(preview))


def _owner_of(st: os.stat_result) -> str:
    try:
        user = pwd.getpwuid(st.st_uid).pw_name
    except KeyError:
        user = str(st.st_uid)
    try:
        group = grp.getgrgid(st.st_gid).gr_name
    except KeyError:
        group = str(st.st_gid)
    return f"{user}:{group}"


def check_permissions(path: Path, owner: str, mode: str) -> Outcome:
    if not path.exists():
        return Outcome(CheckStatus.FAIL, f"File/directory not found: {path}")

    st = path.stat()
    actual_owner = _owner_of(st)
    actual_mode = format(stat.S_IMODE(st.st_mode), "o")
    if actual_owner == owner and int(actual_mode, 8) == int(mode, 8):
        return Outcome(
            CheckStatus.PASS,
            f"Correct permissions ({actual_mode}) and ownership ({actual_owner})",
        )
    return Outcome(
        CheckStatus.WARNING,
        "Permissions/ownership mismatch",
        detail=f"Expected: {mode} {owner}\nActual:   {actual_mode} {actual_owner}",
    )


# -----------------------------------------------------------------------------
# Runtime policies
# -----------------------------------------------------------------------------

SmokeTest = Callable[[], tuple[bool, str]]


def check_service(
    host: Host,
    unit: str,
    smoke: SmokeTest,
    alternates: tuple[str, ...] = (),
) -> Outcome:
    """Unit state first; the smoke test runs only for an active unit."""
    if not host.service_active(unit):
        for alt in alternates:
            if host.service_active(alt):
                _, message = _run_smoke(smoke)
                return Outcome(
                    CheckStatus.WARNING,
                    f"Service is running as '{alt}' ({message})",
                )
        return Outcome(CheckStatus.FAIL, "NOT RUNNING")

    ok, message = _run_smoke(smoke)
    return Outcome(CheckStatus.PASS if ok else CheckStatus.WARNING, message)


def _run_smoke(smoke: SmokeTest) -> tuple[bool, str]:
    try:
        return smoke()
    except ToolUnavailable as exc:
        return False, f"Running but smoke test unavailable ({exc.tool} not installed)"
    except subprocess.TimeoutExpired as exc:
        return False, f"Running but smoke test failed: timed out ({exc.timeout:g}s)"
    except ParseError as exc:
        return False, f"Running but smoke test failed: malformed output ({exc})"
    except Exception as exc:
        return False, f"Running but smoke test failed: {exc}"


def check_threshold(label: str, value: float, limit: float, unit: str = "%") -> Outcome:
    shown = f"{value:.1f}{unit}"
    if value > limit:
        return Outcome(CheckStatus.ALERT, f"High {label}: {shown} (limit {limit:g}{unit})")
    return Outcome(CheckStatus.PASS, f"{shown} (limit {limit:g}{unit})")


def check_expiry(days_left: int, alert_days: int = 7, warning_days: int = 30) -> Outcome:
    if days_left < 0:
        return Outcome(CheckStatus.ALERT, f"Certificate expired {-days_left} days ago!")
    if days_left < alert_days:
        return Outcome(CheckStatus.ALERT, f"Certificate expires in {days_left} days!")
    if days_left < warning_days:
        return Outcome(CheckStatus.WARNING, f"Certificate expires in {days_left} days")
    return Outcome(CheckStatus.PASS, f"Valid ({days_left} days left)")


def check_command(
    result: CommandResult, ok_message: str = "VALID", bad_message: str = "INVALID"
) -> Outcome:
    if result.ok:
        return Outcome(CheckStatus.PASS, ok_message)
    head = "\n".join(result.output.splitlines()[:3]) or f"exit code {result.returncode}"
    return Outcome(CheckStatus.FAIL, bad_message, detail=head)
