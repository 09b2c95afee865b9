"""Entry point: scan one token's holders and print the holder map as JSON.

Usage:
    python -m src.main 0xTokenContract [--force] [--no-cache] [--out scan.json]
"""

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path

from loguru import logger

from config.settings import settings
from src.db.redis import close_redis, create_redis
from src.holders.exceptions import HolderScanError
from src.holders.scan_cache import RedisScanCache
from src.holders.scanner import HolderScanner, ScanOutcome
from src.parsers.dexscreener.client import DexScreenerClient
from src.parsers.exceptions import SourceUnavailable
from src.parsers.explorer.client import ExplorerClient
from src.parsers.fetch_queue import PacedFetchQueue
from src.utils.logger import scan_context, setup_logger


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Token holder bubble map scan")
    parser.add_argument("contract", help="token contract address")
    parser.add_argument("--creator", help="override creator address (default: first mint recipient)")
    parser.add_argument("--force", action="store_true", help="ignore a fresh cached scan")
    parser.add_argument("--no-cache", action="store_true", help="don't read or write the scan cache")
    parser.add_argument("--out", type=Path, help="write the full scan JSON to this file")
    parser.add_argument("--json-logs", action="store_true", help="structured log output")
    return parser.parse_args(argv)


async def run_scan(args: argparse.Namespace) -> ScanOutcome:
    queue = PacedFetchQueue(
        min_interval_sec=settings.fetch_min_interval_ms / 1000,
        task_timeout_sec=settings.fetch_task_timeout_sec,
    )
    explorer = ExplorerClient(
        settings.explorer_api_key,
        settings.explorer_api_url,
        queue=queue,
        page_size=settings.explorer_page_size,
        max_pages=settings.explorer_max_pages,
    )
    dexscreener = DexScreenerClient() if settings.enable_lp_discovery else None
    redis = None
    cache = None
    if settings.enable_scan_cache and not args.no_cache:
        redis = create_redis()
        cache = RedisScanCache(redis, ttl_sec=settings.scan_cache_ttl_sec)

    scanner = HolderScanner.from_settings(
        settings, explorer, dexscreener=dexscreener, cache=cache
    )
    try:
        with scan_context(args.contract):
            return await scanner.scan(args.contract, force=args.force, creator=args.creator)
    finally:
        await explorer.close()
        if dexscreener is not None:
            await dexscreener.close()
        await close_redis(redis)


async def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_logger(json_logs=args.json_logs, level="INFO")
    logger.info(f"Scanning holders of {args.contract}...")

    loop = asyncio.get_running_loop()
    scan_task = asyncio.create_task(run_scan(args))
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, scan_task.cancel)

    try:
        outcome = await scan_task
    except asyncio.CancelledError:
        logger.info("Scan cancelled")
        return 130
    except SourceUnavailable as e:
        logger.error(f"Data source unavailable: {e}")
        return 2
    except HolderScanError as e:
        logger.error(f"Scan failed: {e}")
        return 1

    data = outcome.data
    if args.out:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(json.dumps(data, indent=2))
        logger.info(f"Saved scan to {args.out}")

    report = {
        "contract": data["contract"],
        "fromCache": outcome.from_cache,
        "empty": data["empty"],
        "summary": data["summary"],
        "groups": len(data["groups"]),
        "proxies": sorted(data["proxies"]),
        "warnings": data["warnings"],
    }
    print(json.dumps(report, indent=2))
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
