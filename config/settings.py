"""
config/settings.py - Canonical configuration contract for the server audit.

Uses pydantic-settings to load, validate, and type-check every tunable the
audit consumes: resource thresholds, certificate expiry windows, verdict
tiers, filesystem locations and subprocess timeouts.

Two usage modes:
  Production / CLI:
      cfg = load_settings()                     # reads .env + os.environ
      cfg = load_settings("/etc/audit.env")     # override env file path

  Tests (isolated, no env file, no os.environ bleed):
      cfg = Settings(WP_PATH=str(tmp_path / "html"), ...)
"""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

REPO_ROOT = Path(__file__).parent.parent
DEFAULT_EXPECTATIONS_FILE = Path(__file__).parent / "expectations.yml"


class Settings(BaseSettings):
    # Settings() reads purely from kwargs. load_settings() is the explicit
    # production entry point that merges the env file and os.environ.
    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)

    # -------------------------------------------------------------------------
    # Resource thresholds (percent, except load average)
    # -------------------------------------------------------------------------
    CPU_THRESHOLD: float = 80
    MEMORY_THRESHOLD: float = 85
    DISK_THRESHOLD: float = 85
    LOAD_THRESHOLD: float = 4.0
    DISK_MOUNTS: str = "/,/var,/tmp"

    # -------------------------------------------------------------------------
    # Certificate expiry windows (days)
    # -------------------------------------------------------------------------
    CERT_ALERT_DAYS: int = 7
    CERT_WARNING_DAYS: int = 30

    # -------------------------------------------------------------------------
    # Verdict tiers (success rate, percent)
    # -------------------------------------------------------------------------
    VERDICT_EXCELLENT: float = 90
    VERDICT_GOOD: float = 75
    VERDICT_ATTENTION: float = 50

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------
    SSH_FAILED_ATTEMPTS_THRESHOLD: int = 10
    FAIL2BAN_LOG: str = "/var/log/fail2ban.log"
    AUTH_LOG: str = "/var/log/auth.log"
    NGINX_ACCESS_LOG: str = "/var/log/nginx/access.log"

    # -------------------------------------------------------------------------
    # Locations
    # -------------------------------------------------------------------------
    CONFIG_BASE_DIR: str = str(REPO_ROOT / "configs")
    EXPECTATIONS_FILE: str = str(DEFAULT_EXPECTATIONS_FILE)
    AUDIT_LOG_FILE: str = "./server-monitor.log"
    TARGET_ROOT: str = "/"
    WP_PATH: str = "/var/www/html"
    LETSENCRYPT_LIVE_DIR: str = "/etc/letsencrypt/live"
    CREDENTIALS_FILE: str = "/root/wordpress-credentials.txt"
    THEME_NAME: str = "bandfront"
    THEME_SOURCE_DIR: Optional[str] = None

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    PHP_VERSION: str = "8.3"
    EXPECTED_UPLOAD_MAX_FILESIZE: str = "2G"
    WEB_OWNER: str = "www-data:www-data"
    WEB_DIR_MODE: str = "755"

    # Provisioning scripts replace %%TOKEN%% with literal values
    PLACEHOLDER_PATTERN: str = r"%%[A-Za-z0-9_]+%%"

    # -------------------------------------------------------------------------
    # Timeouts
    # -------------------------------------------------------------------------
    COMMAND_TIMEOUT_SECONDS: int = 15
    HTTP_TIMEOUT_SECONDS: int = 5

    # -------------------------------------------------------------------------
    # Identity (shared with the provisioning scripts)
    # -------------------------------------------------------------------------
    DOMAIN_NAME: Optional[str] = None
    ADMIN_EMAIL: Optional[str] = None

    # -------------------------------------------------------------------------
    # Convenience properties
    # -------------------------------------------------------------------------

    @property
    def disk_mounts(self) -> list[str]:
        return [m.strip() for m in self.DISK_MOUNTS.split(",") if m.strip()]

    @property
    def php_fpm_service(self) -> str:
        return f"php{self.PHP_VERSION}-fpm"

    @property
    def theme_source_path(self) -> Path:
        if self.THEME_SOURCE_DIR:
            return Path(self.THEME_SOURCE_DIR)
        return Path(self.CONFIG_BASE_DIR).parent / "themes" / self.THEME_NAME

    @property
    def placeholder_re(self) -> re.Pattern[str]:
        return re.compile(self.PLACEHOLDER_PATTERN)

    def target_path(self, deployed: str) -> Path:
        """Resolve an absolute deployed path under TARGET_ROOT."""
        return Path(self.TARGET_ROOT) / deployed.lstrip("/")

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator("CPU_THRESHOLD", "MEMORY_THRESHOLD", "DISK_THRESHOLD")
    @classmethod
    def percent_range(cls, v: float) -> float:
        if not 0 < v <= 100:
            raise ValueError("percent thresholds must be in (0, 100]")
        return v

    @field_validator("LOAD_THRESHOLD")
    @classmethod
    def positive_load(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("LOAD_THRESHOLD must be > 0")
        return v

    @field_validator("COMMAND_TIMEOUT_SECONDS", "HTTP_TIMEOUT_SECONDS", "CERT_ALERT_DAYS")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("WEB_DIR_MODE")
    @classmethod
    def octal_mode(cls, v: str) -> str:
        v = v.strip()
        if not re.fullmatch(r"[0-7]{3,4}", v):
            raise ValueError(f"WEB_DIR_MODE must be an octal mode like 755, got '{v}'")
        return v

    @field_validator("PLACEHOLDER_PATTERN")
    @classmethod
    def compilable_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"PLACEHOLDER_PATTERN is not a valid regex: {exc}") from exc
        return v

    @field_validator("DOMAIN_NAME", "ADMIN_EMAIL", "THEME_SOURCE_DIR", mode="before")
    @classmethod
    def blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def validate_windows_and_tiers(self) -> Settings:
        if self.CERT_ALERT_DAYS >= self.CERT_WARNING_DAYS:
            raise ValueError(
                f"CERT_ALERT_DAYS ({self.CERT_ALERT_DAYS}) must be less than "
                f"CERT_WARNING_DAYS ({self.CERT_WARNING_DAYS})"
            )
        tiers = (self.VERDICT_EXCELLENT, self.VERDICT_GOOD, self.VERDICT_ATTENTION)
        if not all(0 <= t <= 100 for t in tiers):
            raise ValueError("VERDICT_* tiers must be within 0..100")
        if not tiers[0] > tiers[1] > tiers[2]:
            raise ValueError(
                "VERDICT_EXCELLENT > VERDICT_GOOD > VERDICT_ATTENTION is required, "
                f"got {tiers[0]} / {tiers[1]} / {tiers[2]}"
            )
        return self


def read_env_file(path: str | Path) -> dict[str, str]:
    """Parse a KEY=value file. Missing files yield an empty dict.

    Blank lines and full-line comments are skipped, inline ``  # comments``
    are stripped, a leading ``export`` is tolerated and matching surrounding
    quotes are removed, so shell-sourced credential files parse too.
    """
    values: dict[str, str] = {}
    try:
        with open(path, encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export "):]
                k, _, v = line.partition("=")
                k = k.strip()
                v = re.sub(r"\s+#.*$", "", v.strip())
                if len(v) >= 2 and v[0] == v[-1] and v[0] in "'\"":
                    v = v[1:-1]
                if k:
                    values[k] = v
    except FileNotFoundError:
        pass
    return values


def load_settings(env_file: str = ".env") -> Settings:
    """Load and validate settings from an env file + os.environ.

    os.environ takes precedence over env file values. Only known Settings
    fields are passed through.

    Raises:
        ValidationError: if a value is invalid or the tiers/windows conflict.
    """
    merged = {**read_env_file(env_file), **os.environ}  # os.environ wins
    known = {k: v for k, v in merged.items() if k in Settings.model_fields}
    return Settings(**known)
