"""
tests/conftest.py - Shared fixtures and path setup for all tests.

Adds the project root to sys.path so unit tests can import:
    from config.settings import Settings
    from audit.checks import CheckStatus
    from tests.fixtures.fake_host import FakeHost
"""
import pathlib
import sys

import pytest

# Make project root importable without installing as a package
PROJECT_ROOT = pathlib.Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from audit.expectations import ExpectationsManifest  # noqa: E402
from config.settings import Settings  # noqa: E402


@pytest.fixture
def server_tree(tmp_path):
    """Empty stand-ins for the config repo, web root, logs and deployed /etc."""
    tree = {
        "configs": tmp_path / "configs",
        "target": tmp_path / "target",
        "wp": tmp_path / "html",
        "logs": tmp_path / "logs",
        "live": tmp_path / "letsencrypt" / "live",
    }
    for path in tree.values():
        path.mkdir(parents=True)
    return tree


@pytest.fixture
def make_settings(server_tree, tmp_path):
    """Settings confined to tmp_path; keyword overrides win."""

    def _make(**overrides):
        base = dict(
            CONFIG_BASE_DIR=str(server_tree["configs"]),
            TARGET_ROOT=str(server_tree["target"]),
            WP_PATH=str(server_tree["wp"]),
            LETSENCRYPT_LIVE_DIR=str(server_tree["live"]),
            FAIL2BAN_LOG=str(server_tree["logs"] / "fail2ban.log"),
            AUTH_LOG=str(server_tree["logs"] / "auth.log"),
            NGINX_ACCESS_LOG=str(server_tree["logs"] / "access.log"),
            CREDENTIALS_FILE=str(tmp_path / "wordpress-credentials.txt"),
            AUDIT_LOG_FILE=str(tmp_path / "server-monitor.log"),
            DISK_MOUNTS="/",
        )
        base.update(overrides)
        return Settings(**base)

    return _make


@pytest.fixture
def empty_manifest():
    return ExpectationsManifest(manifest_version=1)
