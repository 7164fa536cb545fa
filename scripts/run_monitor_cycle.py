#!/usr/bin/env python3
"""
Run one managed-position monitoring cycle.

Meant to be fired by an external scheduler (cron, systemd timer, task queue).
Requires MONGODB_URL: each run is a new process, so positions must outlive it.

Exit codes:
    0  cycle ran without errors
    1  cycle ran, some positions failed
    2  no persistent store configured

Usage:
    python scripts/run_monitor_cycle.py
    python scripts/run_monitor_cycle.py --list
"""

import argparse
import asyncio
import sys

from stopguard.core.logger import get_logger, setup_logging_from_settings
from stopguard.services.factory import create_services

logger = get_logger("stopguard.scripts.run_monitor_cycle")


async def run(list_only: bool) -> int:
    """Run a cycle (or list open positions) and print the outcome."""
    try:
        services = await create_services()
    except RuntimeError as e:
        logger.error(f"Cannot start monitoring: {e}")
        return 2

    try:
        if list_only:
            positions = await services.manager.get_active_managed_positions()
            print(f"Active managed positions: {len(positions)}")
            for p in positions:
                print(
                    f"  {p.id} {p.symbol} {p.side.value} status={p.status.value} "
                    f"price={p.current_price} sl={p.stop_loss_price} tp={p.take_profit_price}"
                )
            return 0

        result = await services.monitor.run_cycle()
        print(
            f"Monitored {result.total} positions, "
            f"{result.triggered} triggered, {result.errors} errors"
        )
        return 0 if result.errors == 0 else 1
    finally:
        await services.aclose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run one managed-position monitoring cycle")
    parser.add_argument("--list", action="store_true", help="List active positions instead of monitoring")
    args = parser.parse_args(argv)

    setup_logging_from_settings()
    return asyncio.run(run(args.list))


if __name__ == "__main__":
    sys.exit(main())
