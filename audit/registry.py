"""
audit/registry.py - The ordered checklist every audit run executes.

Groups always run in this order and never short-circuit: a failure in one
group does not stop the groups after it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from audit.checks import AuditContext, CheckDefinition
from audit.checks import application, configs, connectivity, resources, security, services, ssl


@dataclass(frozen=True)
class CheckGroup:
    key: str
    label: str
    build: Callable[[AuditContext], list[CheckDefinition]]


REGISTRY: tuple[CheckGroup, ...] = (
    CheckGroup(resources.CATEGORY, "System Resources", resources.build_checks),
    CheckGroup(services.CATEGORY, "Service Health", services.build_checks),
    CheckGroup(security.CATEGORY, "Security Status", security.build_checks),
    CheckGroup(ssl.CATEGORY, "SSL Certificates", ssl.build_checks),
    CheckGroup(configs.CATEGORY, "Configuration Validation", configs.build_checks),
    CheckGroup(application.CATEGORY, "Application", application.build_checks),
    CheckGroup(connectivity.CATEGORY, "Web Connectivity", connectivity.build_checks),
)
