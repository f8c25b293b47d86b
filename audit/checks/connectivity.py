"""
audit/checks/connectivity.py - Public and local reachability of the web tier.
"""

from __future__ import annotations

from functools import partial

from audit.checks import AuditContext, CheckDefinition, CheckStatus, Outcome
from audit.checks.parsers import parse_listening_ports
from audit.checks.services import HTTP_OK_CODES, HTTPS_OK_CODES
from audit.host import Host
from config.settings import Settings, read_env_file

CATEGORY = "connectivity"

WEB_PORTS = (80, 443)


def build_checks(ctx: AuditContext) -> list[CheckDefinition]:
    host = ctx.host
    checks = []
    domain = resolve_domain(ctx.settings)
    if domain:
        checks.append(
            CheckDefinition(
                CATEGORY, "Website accessibility", partial(check_public_https, host, domain)
            )
        )
    checks += [
        CheckDefinition(CATEGORY, "Local HTTP/HTTPS", partial(check_local_web, host)),
        CheckDefinition(CATEGORY, "Listening ports", partial(check_listening_ports, host)),
    ]
    return checks


def resolve_domain(cfg: Settings) -> str | None:
    """DOMAIN_NAME from settings, else from the provisioning credentials file."""
    if cfg.DOMAIN_NAME:
        return cfg.DOMAIN_NAME
    return read_env_file(cfg.CREDENTIALS_FILE).get("DOMAIN_NAME") or None


def check_public_https(host: Host, domain: str) -> Outcome:
    code = host.http_status(f"https://{domain}")
    if code in HTTPS_OK_CODES:
        return Outcome(CheckStatus.PASS, f"HTTPS response received ({code})")
    return Outcome(
        CheckStatus.WARNING, f"No valid HTTPS response from {domain} ({code or 'no answer'})"
    )


def check_local_web(host: Host) -> Outcome:
    http_code = host.http_status("http://localhost")
    if http_code in HTTP_OK_CODES:
        return Outcome(CheckStatus.PASS, f"Local HTTP responsive ({http_code})")
    https_code = host.http_status("https://localhost", verify=False)
    if https_code in HTTPS_OK_CODES:
        return Outcome(CheckStatus.PASS, f"Local HTTPS responsive ({https_code})")
    return Outcome(
        CheckStatus.WARNING,
        f"Not responding (HTTP: {http_code or '000'}, HTTPS: {https_code or '000'})",
    )


def check_listening_ports(host: Host) -> Outcome:
    ports = parse_listening_ports(host.run(["ss", "-tuln"]).stdout)
    listening = [p for p in WEB_PORTS if p in ports]
    if listening:
        return Outcome(CheckStatus.PASS, "Listening on " + ", ".join(f":{p}" for p in listening))
    return Outcome(CheckStatus.WARNING, "No listener on :80 or :443")
