#!/usr/bin/env python3
"""
audit/run_audit.py - Command-line entry point for the server audit.

Runs the full checklist against the local machine, prints a colored report,
appends to the audit log and exits with:
  0  every check passed
  1  at least one check failed (or a precondition was not met)
  2  no failures, at least one warning or alert

Usage:
    sudo python3 -m audit.run_audit
    sudo python3 -m audit.run_audit --env-file /etc/server-audit.env
    sudo server-audit --config-dir ./configs --no-color
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from audit.executor import run_audit
from audit.expectations import parse_expectations
from audit.host import Host
from audit.reporter import Reporter, configure_audit_log, log
from audit.summary import EXIT_FAILURES, VerdictTiers
from config.settings import Settings, load_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="server-audit",
        description="Audit a provisioned web server against its expected configuration.",
    )
    parser.add_argument("--env-file", default=".env", help="settings file (default: .env)")
    parser.add_argument("--config-dir", help="directory holding expected configs and templates")
    parser.add_argument("--expectations", help="expectations manifest (YAML)")
    parser.add_argument("--log-file", help="audit log, appended to on every run")
    parser.add_argument(
        "--target-root",
        help="prefix for deployed paths, for auditing a mounted image (default: /)",
    )
    parser.add_argument("--no-color", action="store_true", help="disable colored output")
    return parser


def _apply_overrides(cfg: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "CONFIG_BASE_DIR": args.config_dir,
        "EXPECTATIONS_FILE": args.expectations,
        "AUDIT_LOG_FILE": args.log_file,
        "TARGET_ROOT": args.target_root,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if not overrides:
        return cfg
    return Settings(**{**cfg.model_dump(), **overrides})


def main(argv: list[str] | None = None, host: Host | None = None) -> int:
    args = build_parser().parse_args(argv)
    console = Console(no_color=args.no_color, highlight=False)

    if os.geteuid() != 0:
        console.print("[red]ERROR:[/red] This audit must be run as root")
        return EXIT_FAILURES

    try:
        cfg = _apply_overrides(load_settings(args.env_file), args)
    except (ValidationError, ValueError) as exc:
        console.print(f"[red]ERROR:[/red] Invalid settings:\n{escape(str(exc))}")
        return EXIT_FAILURES

    config_dir = Path(cfg.CONFIG_BASE_DIR)
    if not config_dir.is_dir():
        console.print(f"[red]ERROR:[/red] Config directory not found: {config_dir}")
        return EXIT_FAILURES

    try:
        expectations = parse_expectations(cfg.EXPECTATIONS_FILE)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]ERROR:[/red] {escape(str(exc))}")
        return EXIT_FAILURES

    try:
        handler = configure_audit_log(cfg.AUDIT_LOG_FILE)
    except OSError as exc:
        console.print(f"[red]ERROR:[/red] cannot open audit log: {escape(str(exc))}")
        return EXIT_FAILURES
    tiers = VerdictTiers(cfg.VERDICT_EXCELLENT, cfg.VERDICT_GOOD, cfg.VERDICT_ATTENTION)
    reporter = Reporter(console, tiers)
    console.print("[blue]=== COMPREHENSIVE SERVER MONITORING ===[/blue]")
    reporter.info(f"Starting audit (config: {config_dir}, target: {cfg.TARGET_ROOT})")

    try:
        summary = run_audit(cfg, host=host, reporter=reporter, expectations=expectations)
        reporter.finish(summary)
    finally:
        log.removeHandler(handler)
        handler.close()
    return summary.exit_code


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
