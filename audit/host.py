"""
audit/host.py - Access to the audited machine.

Every check talks to the system through a Host: external commands, unit
state, HTTP probes and resource metrics. Tests substitute a fake Host so
check policies can be exercised without systemd, curl or a live web server.
"""

from __future__ import annotations

import os
import shutil
import ssl
import subprocess
import urllib.error
import urllib.request
from dataclasses import dataclass

import psutil


class ToolUnavailable(Exception):
    """Raised when a required external command is not installed."""

    def __init__(self, tool: str):
        super().__init__(f"{tool} not installed")
        self.tool = tool


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return (self.stdout + "\n" + self.stderr).strip()


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    # Redirects are a valid answer from the web server; report the 3xx code.
    def redirect_request(self, req, fp, code, msg, headers, newurl):  # noqa: ANN001
        return None


class Host:
    def __init__(self, command_timeout: int = 15, http_timeout: int = 5):
        self.command_timeout = command_timeout
        self.http_timeout = http_timeout

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def which(self, tool: str) -> str | None:
        return shutil.which(tool)

    def run(
        self,
        args: list[str],
        timeout: int | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run a command and capture its output.

        Raises:
            ToolUnavailable: if args[0] is not on PATH.
            subprocess.TimeoutExpired: if the command outlives the timeout.
        """
        if self.which(args[0]) is None:
            raise ToolUnavailable(args[0])
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout or self.command_timeout,
            env={**os.environ, **env} if env else None,
        )
        return CommandResult(result.returncode, result.stdout, result.stderr)

    def service_active(self, unit: str) -> bool:
        return self.run(["systemctl", "is-active", "--quiet", unit]).ok

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def http_status(self, url: str, verify: bool = True) -> int | None:
        """Return the HTTP status code for url, or None if unreachable."""
        handlers: list[urllib.request.BaseHandler] = [_NoRedirect()]
        if not verify:
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            handlers.append(urllib.request.HTTPSHandler(context=context))
        opener = urllib.request.build_opener(*handlers)
        try:
            with opener.open(url, timeout=self.http_timeout) as resp:
                return resp.status
        except urllib.error.HTTPError as e:
            return e.code
        except (urllib.error.URLError, OSError):
            return None

    # -------------------------------------------------------------------------
    # Resources
    # -------------------------------------------------------------------------

    def cpu_percent(self) -> float:
        return psutil.cpu_percent(interval=1)

    def memory_percent(self) -> float:
        return psutil.virtual_memory().percent

    def load_average(self) -> float:
        return psutil.getloadavg()[0]

    def mounted(self, mountpoint: str) -> bool:
        return any(p.mountpoint == mountpoint for p in psutil.disk_partitions(all=False))

    def disk_percent(self, mountpoint: str) -> float:
        return psutil.disk_usage(mountpoint).percent

    def process_count(self, pattern: str | None = None) -> int:
        """Count processes, optionally those whose command line contains pattern."""
        count = 0
        for proc in psutil.process_iter(["cmdline", "name"]):
            if pattern is None:
                count += 1
                continue
            cmdline = " ".join(proc.info.get("cmdline") or []) or (proc.info.get("name") or "")
            if pattern in cmdline:
                count += 1
        return count
