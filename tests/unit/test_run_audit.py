"""Unit tests for audit.executor and the audit.run_audit CLI."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from audit import run_audit as cli
from audit.checks import CheckDefinition, CheckStatus, Outcome
from audit.executor import run_audit
from audit.host import CommandResult
from audit.registry import REGISTRY, CheckGroup
from audit.reporter import Reporter
from audit.summary import EXIT_FAILURES, EXIT_WARNINGS
from tests.fixtures.fake_host import FakeHost

JAILS = CommandResult(0, "`- Jail list:\tsshd\n", "")


def _host(active):
    return FakeHost(
        active=active,
        http={"http://localhost": 200},
        commands={
            ("fail2ban-client", "status"): JAILS,
            ("mysqladmin", "ping"): CommandResult(0, "mysqld is alive\n", ""),
        },
    )


def _find(summary, name):
    return next(r for r in summary.results if r.name == name)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


def test_groups_run_in_registry_order(make_settings):
    summary = run_audit(make_settings(), host=_host(set()))
    order = []
    for result in summary.results:
        if result.category not in order:
            order.append(result.category)
    assert order == [g.key for g in REGISTRY]
    assert summary.total == summary.passed + summary.warned + summary.failed


def test_nginx_up_fail2ban_down(make_settings, empty_manifest):
    cfg = make_settings()
    degraded = run_audit(
        cfg, host=_host({"nginx", "mariadb", "php8.3-fpm"}), expectations=empty_manifest
    )
    healthy = run_audit(
        cfg,
        host=_host({"nginx", "mariadb", "php8.3-fpm", "fail2ban"}),
        expectations=empty_manifest,
    )

    nginx = _find(degraded, "nginx")
    assert nginx.status is CheckStatus.PASS
    assert nginx.message == "Running and responsive"
    fail2ban = _find(degraded, "fail2ban")
    assert fail2ban.status is CheckStatus.FAIL
    assert fail2ban.message == "NOT RUNNING"
    assert _find(degraded, "Fail2ban bans").status is CheckStatus.FAIL

    assert _find(healthy, "fail2ban").status is CheckStatus.PASS
    assert degraded.success_rate < healthy.success_rate
    assert degraded.exit_code == EXIT_FAILURES


def test_group_build_error_is_one_failure(make_settings, empty_manifest):
    def broken(ctx):
        raise OSError("permission denied: /etc/letsencrypt/live")

    def fine(ctx):
        return [CheckDefinition("ok", "fine", lambda: Outcome(CheckStatus.PASS, "ok"))]

    registry = (CheckGroup("ssl", "SSL Certificates", broken), CheckGroup("ok", "OK", fine))
    summary = run_audit(
        make_settings(), host=FakeHost(), registry=registry, expectations=empty_manifest
    )
    assert summary.total == 2
    failed = summary.results[0]
    assert failed.name == "SSL Certificates checks"
    assert failed.status is CheckStatus.FAIL
    assert failed.message == "could not enumerate checks: permission denied: /etc/letsencrypt/live"
    assert summary.results[1].passed


def test_each_definition_runs_once(make_settings, empty_manifest):
    calls = []

    def run():
        calls.append(1)
        return Outcome(CheckStatus.WARNING, "meh")

    registry = (CheckGroup("x", "X", lambda ctx: [CheckDefinition("x", "x", run)]),)
    summary = run_audit(
        make_settings(), host=FakeHost(), registry=registry, expectations=empty_manifest
    )
    assert calls == [1]
    assert summary.exit_code == EXIT_WARNINGS


def test_results_stream_to_reporter(make_settings, empty_manifest):
    buffer = io.StringIO()
    reporter = Reporter(Console(file=buffer, no_color=True, width=200))
    run_audit(
        make_settings(), host=_host({"nginx"}), reporter=reporter, expectations=empty_manifest
    )
    out = buffer.getvalue()
    assert "=== SYSTEM RESOURCES ===" in out
    assert "=== WEB CONNECTIVITY ===" in out
    assert "nginx: Running and responsive" in out


# ---------------------------------------------------------------------------
# CLI preconditions and exit codes
# ---------------------------------------------------------------------------


@pytest.fixture
def env_file(tmp_path, server_tree):
    path = tmp_path / "audit.env"
    path.write_text(
        "\n".join(
            [
                f"CONFIG_BASE_DIR={server_tree['configs']}",
                f"TARGET_ROOT={server_tree['target']}",
                f"WP_PATH={server_tree['wp']}",
                f"LETSENCRYPT_LIVE_DIR={server_tree['live']}",
                f"FAIL2BAN_LOG={server_tree['logs'] / 'fail2ban.log'}",
                f"AUTH_LOG={server_tree['logs'] / 'auth.log'}",
                f"NGINX_ACCESS_LOG={server_tree['logs'] / 'access.log'}",
                f"CREDENTIALS_FILE={tmp_path / 'creds.txt'}",
                f"AUDIT_LOG_FILE={tmp_path / 'server-monitor.log'}",
                "DISK_MOUNTS=/",
            ]
        )
        + "\n"
    )
    return path


@pytest.fixture
def as_root(monkeypatch):
    monkeypatch.setattr(cli.os, "geteuid", lambda: 0)


def test_non_root_exits_one(monkeypatch, env_file, capsys):
    monkeypatch.setattr(cli.os, "geteuid", lambda: 1000)
    assert cli.main(["--env-file", str(env_file), "--no-color"], host=FakeHost()) == 1
    assert "must be run as root" in capsys.readouterr().out


def test_missing_config_dir_exits_one(as_root, env_file, tmp_path, capsys):
    code = cli.main(
        ["--env-file", str(env_file), "--config-dir", str(tmp_path / "nope"), "--no-color"],
        host=FakeHost(),
    )
    assert code == 1
    assert "Config directory not found" in capsys.readouterr().out


def test_invalid_settings_exit_one(as_root, tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("CPU_THRESHOLD", raising=False)
    bad = tmp_path / "bad.env"
    bad.write_text("CPU_THRESHOLD=150\n")
    assert cli.main(["--env-file", str(bad), "--no-color"], host=FakeHost()) == 1
    assert "Invalid settings" in capsys.readouterr().out


def test_invalid_manifest_exits_one(as_root, env_file, tmp_path):
    manifest = tmp_path / "broken.yml"
    manifest.write_text("manifest_version: 9\n")
    code = cli.main(
        ["--env-file", str(env_file), "--expectations", str(manifest), "--no-color"],
        host=FakeHost(),
    )
    assert code == 1


def test_unparseable_manifest_exits_one(as_root, env_file, tmp_path, capsys):
    manifest = tmp_path / "broken.yml"
    manifest.write_text("manifest_version: 1\ntemplates: [unclosed\n")
    code = cli.main(
        ["--env-file", str(env_file), "--expectations", str(manifest), "--no-color"],
        host=FakeHost(),
    )
    assert code == 1
    assert "not valid YAML" in capsys.readouterr().out


def test_unwritable_log_file_exits_one_before_checks(as_root, env_file, tmp_path, capsys):
    host = FakeHost()
    code = cli.main(
        [
            "--env-file",
            str(env_file),
            "--log-file",
            str(tmp_path / "nodir" / "x.log"),
            "--no-color",
        ],
        host=host,
    )
    assert code == 1
    assert "cannot open audit log" in capsys.readouterr().out
    assert host.calls == []


def test_full_run_writes_log_and_returns_exit_code(as_root, env_file, tmp_path, capsys):
    code = cli.main(
        ["--env-file", str(env_file), "--no-color"],
        host=_host({"nginx", "mariadb", "php8.3-fpm"}),
    )
    assert code == EXIT_FAILURES
    out = capsys.readouterr().out
    assert "COMPREHENSIVE MONITORING SUMMARY" in out
    log_text = (tmp_path / "server-monitor.log").read_text()
    assert "SUCCESS: nginx: Running and responsive" in log_text
    assert "ERROR: fail2ban: NOT RUNNING" in log_text
    assert "Audit completed with FAILURES" in log_text


def test_log_file_flag_overrides_settings(as_root, env_file, tmp_path):
    custom = tmp_path / "custom.log"
    cli.main(
        ["--env-file", str(env_file), "--log-file", str(custom), "--no-color"],
        host=_host(set()),
    )
    assert "Starting audit" in custom.read_text()
