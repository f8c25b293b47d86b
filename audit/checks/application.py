"""
audit/checks/application.py - WordPress / WooCommerce application checks.

Covers the config file, the debug log, database reachability, PHP upload
limits, the uploads tree, WooCommerce download protection and the theme
deployment. All reads are passive: nothing is written into the web root.
"""

from __future__ import annotations

import os
import re
from datetime import datetime, timedelta, timezone
from functools import partial
from pathlib import Path

from audit.checks import AuditContext, CheckDefinition, CheckStatus, Outcome
from audit.checks.parsers import (
    count_log_lines,
    parse_ini_value,
    parse_php_assignment,
    parse_tab_row,
)
from audit.checks.primitives import check_permissions
from audit.checks.wordpress import DEFAULT_TABLE_PREFIX, mysql_query, read_credentials
from audit.host import Host

CATEGORY = "application"

LARGE_FILE_BYTES = 100 * 1024 * 1024


def build_checks(ctx: AuditContext) -> list[CheckDefinition]:
    cfg, host, now = ctx.settings, ctx.host, ctx.now
    wp_path = Path(cfg.WP_PATH)
    wp_config = wp_path / "wp-config.php"
    debug_log = wp_path / "wp-content" / "debug.log"
    upload_dir = wp_path / "wp-content" / "uploads"
    woo_plugin = wp_path / "wp-content" / "plugins" / "woocommerce"
    woo_dir = upload_dir / "woocommerce_uploads"
    pool_conf = Path(f"/etc/php/{cfg.PHP_VERSION}/fpm/pool.d/www.conf")
    theme_installed = wp_path / "wp-content" / "themes" / cfg.THEME_NAME

    checks = [
        CheckDefinition(
            CATEGORY, "WordPress configuration", partial(check_wp_config, host, wp_path)
        ),
    ]
    if debug_log.is_file():
        checks.append(
            CheckDefinition(
                CATEGORY, "WordPress errors", partial(check_debug_log, debug_log, now)
            )
        )
    checks += [
        CheckDefinition(
            CATEGORY, "WordPress database", partial(check_wp_database, host, wp_config)
        ),
        CheckDefinition(
            CATEGORY,
            "PHP-FPM upload_max_filesize",
            partial(
                check_upload_limit,
                cfg.target_path(str(pool_conf)),
                cfg.EXPECTED_UPLOAD_MAX_FILESIZE,
            ),
        ),
        CheckDefinition(CATEGORY, "Upload directory", partial(check_upload_dir, upload_dir, now)),
        CheckDefinition(
            CATEGORY,
            "WooCommerce",
            partial(check_woocommerce, host, woo_plugin, wp_config, cfg.NGINX_ACCESS_LOG, now),
        ),
    ]
    if woo_plugin.is_dir():
        checks.append(
            CheckDefinition(
                CATEGORY, "WooCommerce downloads", partial(check_downloads_protected, woo_dir)
            )
        )
        if woo_dir.is_dir():
            checks.append(
                CheckDefinition(
                    CATEGORY,
                    "WooCommerce uploads directory permissions",
                    partial(check_permissions, woo_dir, cfg.WEB_OWNER, cfg.WEB_DIR_MODE),
                )
            )

    theme_label = f"{cfg.THEME_NAME.capitalize()} theme"
    checks.append(
        CheckDefinition(
            CATEGORY,
            theme_label,
            partial(check_theme, cfg.theme_source_path, theme_installed),
        )
    )
    if cfg.theme_source_path.is_dir() and theme_installed.is_dir():
        checks.append(
            CheckDefinition(
                CATEGORY,
                "Theme directory permissions",
                partial(check_permissions, theme_installed, cfg.WEB_OWNER, cfg.WEB_DIR_MODE),
            )
        )
    return checks


def check_wp_config(host: Host, wp_path: Path) -> Outcome:
    wp_config = wp_path / "wp-config.php"
    if not wp_config.is_file():
        return Outcome(CheckStatus.FAIL, "File not found")

    lint = host.run(["php", "-l", str(wp_config)])
    if not lint.ok:
        return Outcome(CheckStatus.FAIL, "PHP syntax error", detail=lint.output[:300])

    facts = []
    version_file = wp_path / "wp-includes" / "version.php"
    if version_file.is_file():
        version = parse_php_assignment(
            version_file.read_text(encoding="utf-8", errors="replace"), "wp_version"
        )
        facts.append(f"WordPress {version or 'Unknown'}")
    plugins_dir = wp_path / "wp-content" / "plugins"
    if plugins_dir.is_dir():
        facts.append(f"{sum(1 for p in plugins_dir.iterdir() if p.is_dir())} plugins installed")
    suffix = f" ({', '.join(facts)})" if facts else ""
    return Outcome(CheckStatus.PASS, f"Syntax valid{suffix}")


def check_debug_log(debug_log: Path, now: datetime) -> Outcome:
    # WordPress writes "[18-Oct-2026 14:03:11 UTC] PHP Warning: ..." in UTC
    # regardless of the host timezone; a naive `now` is local time.
    hour = now.astimezone(timezone.utc)
    errors = count_log_lines(debug_log, contains=[f"[{hour:%d-%b-%Y %H}:"])
    if errors > 0:
        return Outcome(CheckStatus.WARNING, f"Recent WP errors: {errors} in the current hour")
    return Outcome(CheckStatus.PASS, "No recent WordPress errors")


def safe_table_prefix(prefix: str) -> str:
    return prefix if re.fullmatch(r"\w+", prefix) else DEFAULT_TABLE_PREFIX


def _stats_sql(prefix: str) -> str:
    posts = f"{prefix}posts"
    return (
        "SELECT "
        f"(SELECT COUNT(*) FROM {posts} WHERE post_status='publish' AND post_type='post'), "
        f"(SELECT COUNT(*) FROM {posts} WHERE post_status='publish' AND post_type='page'), "
        f"(SELECT COUNT(*) FROM {posts} WHERE post_status='publish' AND post_type='product'), "
        f"(SELECT COUNT(*) FROM {prefix}users), "
        f"(SELECT COUNT(*) FROM {posts} WHERE post_type='shop_order'), "
        "(SELECT ROUND(SUM(data_length + index_length) / 1024 / 1024, 1) "
        "FROM information_schema.tables WHERE table_schema=DATABASE());"
    )


def check_wp_database(host: Host, wp_config: Path) -> Outcome:
    creds = read_credentials(wp_config)
    if creds is None or not creds.complete:
        return Outcome(CheckStatus.FAIL, "Credentials not found")
    if not mysql_query(host, creds, "SELECT 1;", database=creds.name).ok:
        return Outcome(CheckStatus.FAIL, "Connection failed")

    prefix = safe_table_prefix(creds.table_prefix)
    stats = mysql_query(host, creds, _stats_sql(prefix), database=creds.name)
    if not stats.ok:
        return Outcome(CheckStatus.PASS, "Accessible (statistics unavailable)")
    posts, pages, products, users, orders, size_mb = parse_tab_row(stats.stdout, 6)
    return Outcome(
        CheckStatus.PASS,
        f"Accessible (posts={posts}, pages={pages}, products={products}, "
        f"users={users}, orders={orders}, size={size_mb} MB)",
    )


def check_upload_limit(pool_conf: Path, expected: str) -> Outcome:
    if not pool_conf.is_file():
        return Outcome(CheckStatus.FAIL, f"PHP-FPM pool config not found at {pool_conf}")
    source = pool_conf.read_text(encoding="utf-8", errors="replace")
    value = parse_ini_value(source, "upload_max_filesize")
    if value is not None and value.upper() == expected.upper():
        return Outcome(CheckStatus.PASS, f"Correctly set to {expected}")
    return Outcome(CheckStatus.FAIL, f"Not set to {expected} (found: {value or 'not set'})")


def check_upload_dir(upload_dir: Path, now: datetime) -> Outcome:
    if not upload_dir.is_dir():
        return Outcome(CheckStatus.FAIL, f"Upload directory not found: {upload_dir}")

    hour_ago = (now - timedelta(hours=1)).timestamp()
    day_ago = (now - timedelta(days=1)).timestamp()
    total_bytes = recent = large = 0
    temp_files: list[str] = []
    for root, _, files in os.walk(upload_dir):
        for name in files:
            path = os.path.join(root, name)
            try:
                st = os.stat(path)
            except OSError:
                continue
            total_bytes += st.st_size
            if st.st_mtime >= hour_ago:
                recent += 1
            if st.st_size > LARGE_FILE_BYTES:
                large += 1
            if name.endswith(".tmp") and st.st_mtime >= day_ago:
                temp_files.append(path)

    facts = (
        f"{total_bytes / 1024 / 1024:.1f} MB, {recent} files in the last hour, "
        f"{large} files >100MB"
    )
    if temp_files:
        return Outcome(
            CheckStatus.WARNING,
            f"Recent temp files (failed uploads): {len(temp_files)} ({facts})",
            detail="\n".join(sorted(temp_files)[:3]),
        )
    return Outcome(CheckStatus.PASS, f"No recent failed uploads detected ({facts})")


def check_woocommerce(
    host: Host, plugin_dir: Path, wp_config: Path, access_log: str, now: datetime
) -> Outcome:
    if not plugin_dir.is_dir():
        return Outcome(CheckStatus.WARNING, "Not installed")

    downloads = count_log_lines(
        access_log,
        contains=[now.strftime("%d/%b/%Y")],
        include=[r"download"],
        case_sensitive=False,
    )
    facts = [f"{downloads} download requests today"]
    creds = read_credentials(wp_config)
    if creds is not None and creds.complete and host.which("mysql"):
        prefix = safe_table_prefix(creds.table_prefix)
        orders = mysql_query(
            host,
            creds,
            f"SELECT COUNT(*) FROM {prefix}posts WHERE post_type='shop_order' "
            "AND post_date > DATE_SUB(NOW(), INTERVAL 24 HOUR);",
            database=creds.name,
        )
        if orders.ok:
            facts.insert(0, f"{parse_tab_row(orders.stdout, 1)[0]} orders in 24h")
    return Outcome(CheckStatus.PASS, f"Installed ({', '.join(facts)})")


def check_downloads_protected(woo_dir: Path) -> Outcome:
    if (woo_dir / ".htaccess").is_file():
        return Outcome(CheckStatus.PASS, "Downloads protected")
    return Outcome(CheckStatus.WARNING, "Downloads not protected")


def check_theme(source: Path, installed: Path) -> Outcome:
    if not source.is_dir():
        return Outcome(
            CheckStatus.WARNING, "Theme source NOT FOUND (submodule not initialized?)"
        )
    if installed.is_dir():
        return Outcome(CheckStatus.PASS, "INSTALLED")
    return Outcome(CheckStatus.FAIL, "NOT INSTALLED in WordPress")
