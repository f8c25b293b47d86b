"""
audit/summary.py - Run totals, success rate, verdict and exit code.

A RunSummary only ever grows by record(); counters are updated as each
result arrives so total == passed + warned + failed holds after every call.
ALERT results count as warned and are tallied again under alerts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from audit.checks import CheckResult, CheckStatus

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_WARNINGS = 2


class Verdict(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    NEEDS_ATTENTION = "NEEDS ATTENTION"
    CRITICAL = "CRITICAL ISSUES"


@dataclass(frozen=True)
class VerdictTiers:
    excellent: float = 90
    good: float = 75
    attention: float = 50

    def classify(self, success_rate: float) -> Verdict:
        if success_rate >= self.excellent:
            return Verdict.EXCELLENT
        if success_rate >= self.good:
            return Verdict.GOOD
        if success_rate >= self.attention:
            return Verdict.NEEDS_ATTENTION
        return Verdict.CRITICAL


@dataclass
class RunSummary:
    results: list[CheckResult] = field(default_factory=list)
    passed: int = 0
    warned: int = 0
    failed: int = 0
    alerts: int = 0

    def record(self, result: CheckResult) -> None:
        self.results.append(result)
        if result.status is CheckStatus.PASS:
            self.passed += 1
        elif result.status is CheckStatus.FAIL:
            self.failed += 1
        else:
            self.warned += 1
            if result.status is CheckStatus.ALERT:
                self.alerts += 1

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.passed / self.total * 100

    def verdict(self, tiers: VerdictTiers | None = None) -> Verdict | None:
        """None when no checks ran; there is nothing to grade."""
        if self.total == 0:
            return None
        return (tiers or VerdictTiers()).classify(self.success_rate)

    @property
    def exit_code(self) -> int:
        if self.failed > 0:
            return EXIT_FAILURES
        if self.warned > 0:
            return EXIT_WARNINGS
        return EXIT_OK

    def by_category(self, category: str) -> list[CheckResult]:
        return [r for r in self.results if r.category == category]
