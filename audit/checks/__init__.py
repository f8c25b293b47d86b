"""
audit/checks - Composable check groups for the server audit.

Each group module exposes a build_checks(ctx) function that returns an
ordered list of CheckDefinition objects. The executor runs them and turns
each into exactly one CheckResult.

Usage:
    from audit.checks import CheckResult, CheckStatus
    from audit.checks.services import build_checks as service_checks
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Callable, NamedTuple

if TYPE_CHECKING:
    from config.settings import Settings

    from audit.expectations import ExpectationsManifest
    from audit.host import Host

SUCCESS = 25
ALERT = 35
logging.addLevelName(SUCCESS, "SUCCESS")
logging.addLevelName(ALERT, "ALERT")


class CheckStatus(str, Enum):
    PASS = "pass"
    WARNING = "warning"
    ALERT = "alert"
    FAIL = "fail"

    @property
    def log_level(self) -> int:
        return {
            CheckStatus.PASS: SUCCESS,
            CheckStatus.WARNING: logging.WARNING,
            CheckStatus.ALERT: ALERT,
            CheckStatus.FAIL: logging.ERROR,
        }[self]


class Outcome(NamedTuple):
    status: CheckStatus
    message: str
    detail: str | None = None


@dataclass(frozen=True)
class CheckResult:
    category: str
    name: str
    status: CheckStatus
    message: str
    detail: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def passed(self) -> bool:
        return self.status is CheckStatus.PASS

    def __str__(self) -> str:
        line = f"  [{self.status.name}] {self.name}: {self.message}"
        if self.detail and not self.passed:
            line += "\n         " + self.detail.replace("\n", "\n         ")
        return line


@dataclass(frozen=True)
class CheckDefinition:
    category: str
    name: str
    run: Callable[[], Outcome]
    # Status for unexpected errors raised by run()
    on_error: CheckStatus = CheckStatus.FAIL


@dataclass
class AuditContext:
    """Everything a group needs to build its checks."""

    settings: Settings
    host: Host
    expectations: ExpectationsManifest
    now: datetime = field(default_factory=datetime.now)
