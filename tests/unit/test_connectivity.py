"""Unit tests for audit.checks.connectivity and audit.checks.resources."""

from __future__ import annotations

from audit.checks import AuditContext, CheckStatus
from audit.checks import connectivity, resources
from audit.checks.primitives import execute
from audit.host import CommandResult
from tests.fixtures.fake_host import FakeHost

SS_WEB = CommandResult(
    0,
    "Netid State  Recv-Q Send-Q Local Address:Port Peer Address:Port\n"
    "tcp   LISTEN 0      511    0.0.0.0:80         0.0.0.0:*\n"
    "tcp   LISTEN 0      511    0.0.0.0:443        0.0.0.0:*\n",
    "",
)


def _results(module, cfg, host, manifest):
    ctx = AuditContext(cfg, host, manifest)
    return {d.name: execute(d) for d in module.build_checks(ctx)}


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


def test_domain_from_settings_wins(make_settings, tmp_path):
    creds = tmp_path / "wordpress-credentials.txt"
    creds.write_text("DOMAIN_NAME=from-file.example\n")
    cfg = make_settings(DOMAIN_NAME="example.com", CREDENTIALS_FILE=str(creds))
    assert connectivity.resolve_domain(cfg) == "example.com"


def test_domain_from_credentials_file(make_settings, tmp_path):
    creds = tmp_path / "wordpress-credentials.txt"
    creds.write_text("DOMAIN_NAME=from-file.example\nDB_PASSWORD=x\n")
    cfg = make_settings(CREDENTIALS_FILE=str(creds))
    assert connectivity.resolve_domain(cfg) == "from-file.example"


def test_no_domain_skips_public_check(make_settings, empty_manifest):
    results = _results(connectivity, make_settings(), FakeHost(), empty_manifest)
    assert list(results) == ["Local HTTP/HTTPS", "Listening ports"]


def test_public_https(make_settings, empty_manifest):
    host = FakeHost(
        http={"https://example.com": 200, "http://localhost": 301},
        commands={("ss", "-tuln"): SS_WEB},
    )
    results = _results(
        connectivity, make_settings(DOMAIN_NAME="example.com"), host, empty_manifest
    )
    assert results["Website accessibility"].message == "HTTPS response received (200)"
    assert results["Local HTTP/HTTPS"].message == "Local HTTP responsive (301)"
    assert results["Listening ports"].message == "Listening on :80, :443"
    assert all(r.status is CheckStatus.PASS for r in results.values())


def test_public_https_unreachable_warns():
    outcome = connectivity.check_public_https(FakeHost(), "example.com")
    assert outcome.status is CheckStatus.WARNING
    assert "no answer" in outcome.message


def test_local_web_https_fallback():
    host = FakeHost(http={"https://localhost": 200})
    assert connectivity.check_local_web(host).message == "Local HTTPS responsive (200)"


def test_local_web_down():
    outcome = connectivity.check_local_web(FakeHost(http={"http://localhost": 500}))
    assert outcome.status is CheckStatus.WARNING
    assert outcome.message == "Not responding (HTTP: 500, HTTPS: 000)"


def test_no_web_listener_warns():
    ss = CommandResult(0, "Netid State Recv-Q Send-Q Local:Port Peer:Port\n", "")
    outcome = connectivity.check_listening_ports(FakeHost(commands={("ss", "-tuln"): ss}))
    assert outcome.status is CheckStatus.WARNING


def test_listening_ports_without_ss_warns(make_settings, empty_manifest):
    results = _results(connectivity, make_settings(), FakeHost(missing={"ss"}), empty_manifest)
    assert results["Listening ports"].status is CheckStatus.WARNING
    assert results["Listening ports"].message == "ss not installed, check skipped"


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


def test_resources_within_limits(make_settings, empty_manifest):
    host = FakeHost(cpu=12, memory=40, load=0.7, disks={"/": 55.0})
    results = _results(resources, make_settings(), host, empty_manifest)
    assert list(results) == ["CPU usage", "Memory usage", "Load average (1min)", "Disk usage /"]
    assert all(r.status is CheckStatus.PASS for r in results.values())
    assert results["Load average (1min)"].message == "0.7 (limit 4), 120 processes"


def test_resources_over_limits_alert(make_settings, empty_manifest):
    host = FakeHost(cpu=93, memory=90, load=6.0, disks={"/": 97.0})
    results = _results(resources, make_settings(), host, empty_manifest)
    assert all(r.status is CheckStatus.ALERT for r in results.values())
    assert results["CPU usage"].message == "High CPU usage: 93.0% (limit 80%)"


def test_unmounted_disks_are_skipped(make_settings, empty_manifest):
    host = FakeHost(disks={"/": 10.0})
    results = _results(resources, make_settings(DISK_MOUNTS="/,/var,/tmp"), host, empty_manifest)
    assert [n for n in results if n.startswith("Disk")] == ["Disk usage /"]
