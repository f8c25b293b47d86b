"""
audit/checks/services.py - Unit state plus a per-service smoke test.

A unit that systemd reports inactive is a FAIL and its smoke test is never
run. An active unit whose smoke test fails is a WARNING.
"""

from __future__ import annotations

from functools import partial
from pathlib import Path

from audit.checks import AuditContext, CheckDefinition
from audit.checks.parsers import parse_fail2ban_jails
from audit.checks.primitives import check_service
from audit.checks.wordpress import mysql_query, read_credentials
from audit.host import Host, ToolUnavailable

CATEGORY = "services"

HTTP_OK_CODES = {200, 301, 302, 303, 307, 308}
HTTPS_OK_CODES = {200, 301, 302}


def build_checks(ctx: AuditContext) -> list[CheckDefinition]:
    cfg, host = ctx.settings, ctx.host
    wp_config = Path(cfg.WP_PATH) / "wp-config.php"
    php_fpm = cfg.php_fpm_service
    return [
        CheckDefinition(
            CATEGORY, "nginx", partial(check_service, host, "nginx", partial(smoke_nginx, host))
        ),
        CheckDefinition(
            CATEGORY,
            "mariadb",
            partial(
                check_service,
                host,
                "mariadb",
                partial(smoke_mariadb, host, wp_config),
                alternates=("mysql",),
            ),
        ),
        CheckDefinition(
            CATEGORY, php_fpm, partial(check_service, host, php_fpm, partial(smoke_php_fpm, host))
        ),
        CheckDefinition(
            CATEGORY,
            "fail2ban",
            partial(check_service, host, "fail2ban", partial(smoke_fail2ban, host)),
        ),
    ]


def smoke_nginx(host: Host) -> tuple[bool, str]:
    if host.http_status("http://localhost") in HTTP_OK_CODES:
        return True, "Running and responsive"
    if host.http_status("https://localhost", verify=False) in HTTPS_OK_CODES:
        return True, "Running and responsive (HTTPS only)"
    return False, "Running but not responding to HTTP/HTTPS requests"


def smoke_mariadb(host: Host, wp_config: Path) -> tuple[bool, str]:
    creds = read_credentials(wp_config)
    if creds and creds.user and creds.password:
        try:
            if mysql_query(host, creds, "SELECT 1;").ok:
                return True, "Running and responsive (using WP credentials)"
        except ToolUnavailable:
            pass

    try:
        ping = host.run(["mysqladmin", "ping", "-h", "localhost"])
        if "alive" in ping.stdout:
            return True, "Running and responsive"
    except ToolUnavailable:
        pass

    if host.run(["mysql", "-e", "SELECT 1;"]).ok:
        return True, "Running and responsive"
    return False, "Running but not accepting connections"


def smoke_php_fpm(host: Host) -> tuple[bool, str]:
    workers = host.process_count("php-fpm")
    if workers > 0:
        return True, f"Running with {workers} worker processes"
    return False, "Running but no worker processes found"


def smoke_fail2ban(host: Host) -> tuple[bool, str]:
    status = host.run(["fail2ban-client", "status"])
    if not status.ok:
        return False, "Running but not responsive"
    jails = parse_fail2ban_jails(status.stdout)
    return True, f"Running with {len(jails)} active jails"
