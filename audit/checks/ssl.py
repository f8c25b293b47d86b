"""
audit/checks/ssl.py - Let's Encrypt certificate inventory and expiry.

One check for the inventory, then one expiry check per live domain.
"""

from __future__ import annotations

from datetime import datetime
from functools import partial
from pathlib import Path

from audit.checks import AuditContext, CheckDefinition, CheckStatus, Outcome
from audit.checks.parsers import days_until, parse_openssl_enddate
from audit.checks.primitives import check_expiry
from audit.host import Host

CATEGORY = "ssl"


def build_checks(ctx: AuditContext) -> list[CheckDefinition]:
    cfg = ctx.settings
    live_dir = Path(cfg.LETSENCRYPT_LIVE_DIR)
    certs = find_certificates(live_dir)
    checks = [
        CheckDefinition(CATEGORY, "SSL certificates", partial(check_inventory, live_dir, certs))
    ]
    for domain, cert in certs:
        checks.append(
            CheckDefinition(
                CATEGORY,
                f"SSL for {domain}",
                partial(
                    check_certificate,
                    ctx.host,
                    cert,
                    ctx.now,
                    cfg.CERT_ALERT_DAYS,
                    cfg.CERT_WARNING_DAYS,
                ),
            )
        )
    return checks


def find_certificates(live_dir: Path) -> list[tuple[str, Path]]:
    if not live_dir.is_dir():
        return []
    return [
        (entry.name, entry / "cert.pem")
        for entry in sorted(live_dir.iterdir())
        if entry.is_dir() and (entry / "cert.pem").is_file()
    ]


def check_inventory(live_dir: Path, certs: list[tuple[str, Path]]) -> Outcome:
    if not live_dir.is_dir():
        return Outcome(CheckStatus.WARNING, f"Let's Encrypt directory NOT FOUND ({live_dir})")
    if not certs:
        return Outcome(CheckStatus.WARNING, "NONE FOUND")
    return Outcome(CheckStatus.PASS, f"{len(certs)} found")


def read_expiry(host: Host, cert: Path) -> datetime:
    result = host.run(["openssl", "x509", "-in", str(cert), "-noout", "-enddate"])
    if not result.ok:
        raise RuntimeError(result.output or f"openssl exited {result.returncode}")
    return parse_openssl_enddate(result.stdout)


def check_certificate(
    host: Host, cert: Path, now: datetime, alert_days: int, warning_days: int
) -> Outcome:
    expires = read_expiry(host, cert)
    outcome = check_expiry(days_until(expires, now), alert_days, warning_days)
    if outcome.status is CheckStatus.PASS:
        return outcome._replace(message=f"{outcome.message}, expires {expires:%Y-%m-%d}")
    return outcome
