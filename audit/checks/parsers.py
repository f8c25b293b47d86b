"""
audit/checks/parsers.py - Adapters for command output and config file text.

Each function accepts one documented input format and returns a typed value.
Malformed input raises ParseError, which the executor classifies as a FAIL
for the check that hit it and nothing else.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Iterable


class ParseError(ValueError):
    """Command output or file content did not match the expected format."""


_OPENSSL_DATE_FORMAT = "%b %d %H:%M:%S %Y %Z"


def parse_openssl_enddate(output: str) -> datetime:
    """`openssl x509 -noout -enddate` -> aware UTC datetime.

    Input:  ``notAfter=Jan  1 00:00:00 2027 GMT``
    """
    line = output.strip()
    key, sep, value = line.partition("=")
    if not sep or key.strip() != "notAfter":
        raise ParseError(f"expected 'notAfter=<date>', got {line[:80]!r}")
    value = " ".join(value.split())
    try:
        moment = datetime.strptime(value, _OPENSSL_DATE_FORMAT)
    except ValueError as exc:
        raise ParseError(f"unrecognised certificate date {value!r}") from exc
    return moment.replace(tzinfo=UTC)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days from now until moment, floored (negative once past)."""
    if now.tzinfo is None:
        now = now.astimezone(UTC)
    return int((moment - now).total_seconds() // 86400)


def parse_fail2ban_jails(output: str) -> list[str]:
    """`fail2ban-client status` -> jail names.

    Input contains a line like ``   `- Jail list:   sshd, nginx-http-auth``
    """
    for line in output.splitlines():
        if "Jail list" in line:
            _, _, jails = line.partition(":")
            return [j.strip() for j in jails.split(",") if j.strip()]
    raise ParseError("no 'Jail list' line in fail2ban-client status output")


def parse_ufw_status(output: str) -> tuple[bool, set[int]]:
    """`ufw status` -> (active, ports mentioned in rules).

    Input starts with ``Status: active`` or ``Status: inactive``; rule lines
    look like ``22/tcp   ALLOW   Anywhere`` or ``Nginx Full  ALLOW  Anywhere``.
    """
    match = re.search(r"^Status:\s*(\w+)", output, re.MULTILINE)
    if not match:
        raise ParseError("no 'Status:' line in ufw output")
    active = match.group(1).lower() == "active"
    ports: set[int] = set()
    for line in output.splitlines():
        if "ALLOW" not in line and "LIMIT" not in line:
            continue
        target = re.split(r"\s(?:ALLOW|LIMIT)\b", re.sub(r"^\[\s*\d+\]", "", line))[0]
        for port in re.findall(r"(?<![\w.])(\d{1,5})(?:/(?:tcp|udp))?\b", target):
            ports.add(int(port))
        if "Nginx Full" in line or "WWW Full" in line:
            ports.update({80, 443})
        if "OpenSSH" in line:
            ports.add(22)
    return active, ports


def parse_listening_ports(output: str) -> set[int]:
    """`ss -tuln` -> local listening ports.

    Input columns: ``Netid State Recv-Q Send-Q Local-Address:Port Peer...``
    """
    ports: set[int] = set()
    lines = output.strip().splitlines()
    if not lines:
        return ports
    if not lines[0].lstrip().startswith("Netid"):
        raise ParseError("ss output has no header line")
    for line in lines[1:]:
        fields = line.split()
        if len(fields) < 5:
            continue
        _, _, port = fields[4].rpartition(":")
        if port.isdigit():
            ports.add(int(port))
    return ports


_DEFINE_RE = re.compile(
    r"""define\(\s*['"](?P<key>\w+)['"]\s*,\s*(?P<q>['"])(?P<value>.*?)(?P=q)\s*\)"""
)


def parse_php_defines(source: str) -> dict[str, str]:
    """wp-config.php text -> {constant: string value} for define('X', 'v')."""
    return {m.group("key"): m.group("value") for m in _DEFINE_RE.finditer(source)}


def parse_php_assignment(source: str, variable: str) -> str | None:
    """``$wp_version = '6.4.2';`` -> ``6.4.2``."""
    match = re.search(
        rf"""\${re.escape(variable)}\s*=\s*(['"])(.*?)\1\s*;""",
        source,
    )
    return match.group(2) if match else None


def parse_ini_value(source: str, key: str) -> str | None:
    """php.ini or FPM pool text -> value of key.

    Matches ``key = value`` and ``php_admin_value[key] = value`` /
    ``php_value[key] = value``; commented lines are ignored and the last
    occurrence wins, as PHP applies them.
    """
    pattern = re.compile(
        rf"^\s*(?:php_(?:admin_)?value\[{re.escape(key)}\]|{re.escape(key)})\s*=\s*(.*?)\s*$"
    )
    value = None
    for line in source.splitlines():
        if line.lstrip().startswith((";", "#")):
            continue
        match = pattern.match(line)
        if match:
            value = match.group(1).strip("\"'")
    return value


def parse_tab_row(output: str, width: int) -> list[str]:
    """mysql ``-N -s`` single-row output -> list of width columns."""
    lines = [ln for ln in output.splitlines() if ln.strip()]
    if not lines:
        raise ParseError("empty query output")
    columns = lines[-1].split("\t")
    if len(columns) != width:
        raise ParseError(f"expected {width} columns, got {len(columns)}: {lines[-1][:80]!r}")
    return columns


def syslog_day_prefixes(day: date) -> tuple[str, ...]:
    """Line prefixes that mark a syslog entry as written on day.

    Classic syslog pads single-digit days (``Oct  8``); rsyslog's high
    precision format starts with the ISO date.
    """
    return (f"{day:%b} {day.day:>2} ", day.isoformat())


def count_log_lines(
    path: str | Path,
    contains: Iterable[str] = (),
    include: Iterable[str] = (),
    exclude: Iterable[str] = (),
    case_sensitive: bool = True,
) -> int:
    """Count lines of a log file matching every filter.

    contains: line must contain at least one of these (usually date prefixes)
    include:  line must match at least one of these regexes (if any given)
    exclude:  line must match none of these regexes
    A missing file counts as zero lines.
    """
    flags = 0 if case_sensitive else re.IGNORECASE
    contains = tuple(contains)
    include_res = [re.compile(p, flags) for p in include]
    exclude_res = [re.compile(p, flags) for p in exclude]
    count = 0
    try:
        with open(path, encoding="utf-8", errors="replace") as fh:
            for line in fh:
                if contains and not any(c in line for c in contains):
                    continue
                if include_res and not any(r.search(line) for r in include_res):
                    continue
                if any(r.search(line) for r in exclude_res):
                    continue
                count += 1
    except FileNotFoundError:
        return 0
    return count
