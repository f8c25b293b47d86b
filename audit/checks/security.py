"""
audit/checks/security.py - fail2ban activity, SSH brute force, firewall.
"""

from __future__ import annotations

from datetime import date
from functools import partial

from audit.checks import AuditContext, CheckDefinition, CheckStatus, Outcome
from audit.checks.parsers import count_log_lines, parse_ufw_status, syslog_day_prefixes
from audit.host import Host

CATEGORY = "security"

BAN_PATTERN = r"NOTICE.*\bBan "
JAIL_ERROR_PATTERNS = (r"\bERROR\b", r"\bCRITICAL\b")
# Mail-action failures are noise, not jail failures
JAIL_ERROR_NOISE = (
    r"sendmail",
    r"mail",
    r"smtp",
    r"printf",
    r"exec:",
    r"returned 127",
    r"fail2ban\.actions",
    r"fail2ban\.utils",
)
SSH_FAILURE_PATTERNS = (r"Failed password", r"Invalid user")
REQUIRED_FIREWALL_PORTS = (22, 80, 443)


def build_checks(ctx: AuditContext) -> list[CheckDefinition]:
    cfg, host = ctx.settings, ctx.host
    today = ctx.now.date()
    return [
        CheckDefinition(
            CATEGORY, "Fail2ban bans", partial(check_bans, host, cfg.FAIL2BAN_LOG, today)
        ),
        CheckDefinition(
            CATEGORY, "Fail2ban jail errors", partial(check_jail_errors, cfg.FAIL2BAN_LOG, today)
        ),
        CheckDefinition(
            CATEGORY,
            "Failed SSH attempts",
            partial(
                check_ssh_attempts,
                cfg.AUTH_LOG,
                cfg.FAIL2BAN_LOG,
                today,
                cfg.SSH_FAILED_ATTEMPTS_THRESHOLD,
            ),
        ),
        CheckDefinition(CATEGORY, "UFW", partial(check_ufw, host)),
    ]


def bans_today(fail2ban_log: str, today: date) -> int:
    return count_log_lines(fail2ban_log, contains=[today.isoformat()], include=[BAN_PATTERN])


def check_bans(host: Host, fail2ban_log: str, today: date) -> Outcome:
    if not host.service_active("fail2ban"):
        return Outcome(CheckStatus.FAIL, "NOT RUNNING")
    bans = bans_today(fail2ban_log, today)
    if bans > 0:
        return Outcome(CheckStatus.PASS, f"{bans} IPs banned today (protection working)")
    return Outcome(CheckStatus.PASS, "No IPs banned today (normal for new installations)")


def check_jail_errors(fail2ban_log: str, today: date) -> Outcome:
    errors = count_log_lines(
        fail2ban_log,
        contains=[today.isoformat()],
        include=JAIL_ERROR_PATTERNS,
        exclude=JAIL_ERROR_NOISE,
    )
    if errors > 0:
        return Outcome(CheckStatus.WARNING, f"Fail2ban jail errors detected: {errors}")
    return Outcome(CheckStatus.PASS, "No jail errors today")


def check_ssh_attempts(
    auth_log: str, fail2ban_log: str, today: date, threshold: int
) -> Outcome:
    failed = count_log_lines(
        auth_log,
        contains=syslog_day_prefixes(today),
        include=SSH_FAILURE_PATTERNS,
        case_sensitive=False,
    )
    if failed > threshold:
        if bans_today(fail2ban_log, today) > 0:
            return Outcome(
                CheckStatus.PASS, f"High SSH attempts ({failed}) but fail2ban is blocking them"
            )
        return Outcome(
            CheckStatus.WARNING,
            f"High failed SSH attempts today: {failed} (consider checking fail2ban)",
        )
    if failed == 0:
        return Outcome(CheckStatus.PASS, "No failed SSH attempts (typical for new servers)")
    return Outcome(CheckStatus.PASS, f"{failed} failed SSH attempts today")


def check_ufw(host: Host) -> Outcome:
    if host.which("ufw") is None:
        return Outcome(CheckStatus.WARNING, "NOT INSTALLED")
    active, ports = parse_ufw_status(host.run(["ufw", "status"]).stdout)
    if not active:
        return Outcome(CheckStatus.FAIL, "INACTIVE")
    missing = [p for p in REQUIRED_FIREWALL_PORTS if p not in ports]
    if missing:
        return Outcome(
            CheckStatus.WARNING,
            "ACTIVE, standard ports not found in rules: " + ", ".join(map(str, missing)),
        )
    return Outcome(CheckStatus.PASS, "ACTIVE, standard ports configured")
