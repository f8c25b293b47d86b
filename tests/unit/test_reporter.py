"""Unit tests for audit.reporter console output and audit log."""

from __future__ import annotations

import io
import logging

import pytest
from rich.console import Console

from audit.checks import CheckResult, CheckStatus
from audit.reporter import Reporter, configure_audit_log, log
from audit.summary import RunSummary


def _reporter():
    buffer = io.StringIO()
    console = Console(file=buffer, no_color=True, width=200, highlight=False)
    return Reporter(console), buffer


@pytest.fixture
def audit_log(tmp_path):
    path = tmp_path / "server-monitor.log"
    handler = configure_audit_log(path)
    yield path
    log.removeHandler(handler)
    handler.close()


def test_section_header():
    reporter, buffer = _reporter()
    reporter.section("Service Health")
    assert "=== SERVICE HEALTH ===" in buffer.getvalue()


def test_record_tags_and_detail():
    reporter, buffer = _reporter()
    reporter.record(CheckResult("services", "nginx", CheckStatus.PASS, "Running and responsive"))
    reporter.record(
        CheckResult("configs", "Fail2ban jail config", CheckStatus.WARNING, "DIFFERENCES FOUND",
                    detail="--- a\n+++ b")
    )
    reporter.record(CheckResult("ssl", "SSL for example.com", CheckStatus.ALERT, "expires!"))
    reporter.record(CheckResult("services", "fail2ban", CheckStatus.FAIL, "NOT RUNNING"))
    out = buffer.getvalue()
    assert "SUCCESS: nginx: Running and responsive" in out
    assert "WARNING: Fail2ban jail config: DIFFERENCES FOUND" in out
    assert "    --- a" in out
    assert "ALERT: SSL for example.com: expires!" in out
    assert "ERROR: fail2ban: NOT RUNNING" in out


def test_markup_in_messages_is_escaped():
    reporter, buffer = _reporter()
    reporter.record(CheckResult("configs", "x", CheckStatus.FAIL, "bad [mysqld] section"))
    assert "bad [mysqld] section" in buffer.getvalue()


def test_finish_prints_totals_and_verdict(audit_log):
    reporter, buffer = _reporter()
    summary = RunSummary()
    for status in [CheckStatus.PASS] * 3 + [CheckStatus.WARNING]:
        summary.record(CheckResult("services", "s", status, "m"))
    reporter.finish(summary)
    out = buffer.getvalue()
    assert "Total checks performed: 4" in out
    assert "Passed: 3" in out
    assert "Warnings: 1" in out
    assert "Failures: 0" in out
    assert "Overall status: GOOD (75%)" in out
    assert "Audit completed with warnings" in audit_log.read_text()


def test_success_rate_is_floored_like_the_verdict():
    reporter, buffer = _reporter()
    summary = RunSummary()
    for status in [CheckStatus.PASS] * 26 + [CheckStatus.WARNING] * 3:
        summary.record(CheckResult("services", "s", status, "m"))
    reporter.finish(summary)
    out = buffer.getvalue()
    assert "Success rate: 89%" in out
    assert "Overall status: GOOD (89%)" in out


def test_finish_without_checks_has_no_verdict():
    reporter, buffer = _reporter()
    reporter.finish(RunSummary())
    out = buffer.getvalue()
    assert "Success rate: 0%" in out
    assert "Overall status" not in out


def test_audit_log_format_and_append(audit_log):
    log.log(CheckStatus.PASS.log_level, "%s: %s", "nginx", "Running and responsive")
    log.log(CheckStatus.ALERT.log_level, "%s: %s", "CPU usage", "High CPU usage")
    lines = audit_log.read_text().splitlines()
    assert len(lines) == 2
    assert lines[0].endswith(" - SUCCESS: nginx: Running and responsive")
    assert lines[1].endswith(" - ALERT: CPU usage: High CPU usage")
    handler = configure_audit_log(audit_log)
    try:
        logging.getLogger("audit").error("second run")
    finally:
        log.removeHandler(handler)
        handler.close()
    assert len(audit_log.read_text().splitlines()) >= 3
