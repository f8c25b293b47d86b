"""
audit/checks/wordpress.py - Shared WordPress lookups.

Credentials come from wp-config.php; the database password is handed to the
mysql client through MYSQL_PWD so it never appears in the process list.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from audit.checks.parsers import parse_php_assignment, parse_php_defines
from audit.host import CommandResult, Host

DEFAULT_TABLE_PREFIX = "wp_"


@dataclass(frozen=True)
class DbCredentials:
    name: str | None
    user: str | None
    password: str | None
    host: str = "localhost"
    table_prefix: str = DEFAULT_TABLE_PREFIX

    @property
    def complete(self) -> bool:
        return bool(self.name and self.user and self.password)


def read_credentials(wp_config: Path) -> DbCredentials | None:
    """Parse DB_* constants from wp-config.php; None if the file is absent."""
    if not wp_config.is_file():
        return None
    source = wp_config.read_text(encoding="utf-8", errors="replace")
    defines = parse_php_defines(source)
    return DbCredentials(
        name=defines.get("DB_NAME") or None,
        user=defines.get("DB_USER") or None,
        password=defines.get("DB_PASSWORD") or None,
        host=defines.get("DB_HOST") or "localhost",
        table_prefix=parse_php_assignment(source, "table_prefix") or DEFAULT_TABLE_PREFIX,
    )


def mysql_query(
    host: Host,
    creds: DbCredentials,
    sql: str,
    database: str | None = None,
) -> CommandResult:
    args = ["mysql", f"-h{creds.host}", f"-u{creds.user}", "-N", "-s", "-e", sql]
    if database:
        args.append(database)
    return host.run(args, env={"MYSQL_PWD": creds.password or ""})
