#!/usr/bin/env python3
"""
Warm the protected static cache from the command line.

This helper mirrors the admin "Preload All" action but can be executed from
a cron job or deploy hook. It loads the gated resource catalog and requests
every resource's public URL so the request path populates the cache. Only
resources the fetching agent can unlock (see --cookie) end up cached.
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Optional
import sys

from shared.config import get_config
from service_protected_cache.app.admin.catalog import FileResourceCatalog
from service_protected_cache.app.admin.operations import AdminOperations
from service_protected_cache.app.admin.preloader import Preloader
from service_protected_cache.app.audit.log import AuditLog
from service_protected_cache.app.store.cache_store import CacheStore


async def preload(
    *,
    cache_dir: Path,
    resources_file: Path,
    base_url: str,
    cookie: Optional[str],
    timeout: Optional[float],
    clear_first: bool,
    dry_run: bool,
) -> dict:
    """Execute the preload and return the summary."""
    config = get_config()
    store = CacheStore(cache_dir, config.access_deny_filename)
    audit_log = AuditLog(cache_dir / config.log_filename)
    catalog = FileResourceCatalog(resources_file)
    preloader = Preloader(
        base_url,
        config.resource_path_template,
        timeout=timeout,
        cookie=cookie,
    )
    admin = AdminOperations(store, audit_log, catalog, preloader)

    resources = await catalog.list_gated_resources()
    summary = {
        "resources": len(resources),
        "urls": [preloader.url_for(resource) for resource in resources],
    }
    if dry_run:
        return summary

    if clear_first:
        summary["cleared"] = admin.clear_all().count

    result = await admin.preload_all()
    summary["result"] = result.model_dump(mode="json")
    summary["coverage"] = [row.model_dump(mode="json") for row in await admin.list_coverage()]
    return summary


def _parse_args() -> argparse.Namespace:
    config = get_config()
    parser = argparse.ArgumentParser(description="Preload the protected static cache.")
    parser.add_argument("--cache-dir", type=Path, default=config.cache_dir, help="Cache directory")
    parser.add_argument("--resources-file", type=Path, default=config.resources_file, required=config.resources_file is None, help="JSON catalog of gated resources")
    parser.add_argument("--base-url", default=config.public_base_url, help="Public base URL of the site")
    parser.add_argument("--cookie", default=config.preload_cookie, help="Cookie header carrying the shared unlock credential")
    parser.add_argument("--timeout", type=float, default=config.preload_timeout_seconds, help="Per-request timeout in seconds")
    parser.add_argument("--clear-first", action="store_true", help="Clear every cache entry before preloading")
    parser.add_argument("--dry-run", action="store_true", help="Only print the URLs that would be fetched")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    try:
        summary = asyncio.run(
            preload(
                cache_dir=args.cache_dir,
                resources_file=args.resources_file,
                base_url=args.base_url,
                cookie=args.cookie,
                timeout=args.timeout,
                clear_first=args.clear_first,
                dry_run=args.dry_run,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[cache-preload] failed: {exc}", file=sys.stderr)
        return 1

    if args.dry_run:
        print("[cache-preload] DRY RUN - no requests issued")

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
