#!/usr/bin/env python3
"""
释放到期的冻结收益
一次性执行或按固定间隔循环执行，供定时任务调用
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dispatch_ledger.core.config import get_settings
from dispatch_ledger.domain.unlocks import UnlockSweeper
from dispatch_ledger.infrastructure.database.session import init_db


async def run_once(sweeper: UnlockSweeper, batch_size: int | None, max_batches: int | None) -> int:
    result = await sweeper.release_due_holds(batch_size=batch_size, max_batches=max_batches)
    print(f"released={result.released} failed={result.failed} batches={result.batches}")
    if result.failed_hold_ids:
        print("failed holds: " + ", ".join(result.failed_hold_ids))
    return result.failed


async def run(args: argparse.Namespace) -> int:
    await init_db()
    sweeper = UnlockSweeper()
    if not args.loop:
        return await run_once(sweeper, args.batch_size, args.max_batches)

    interval = args.interval or get_settings().sweeper.interval_seconds
    while True:
        await run_once(sweeper, args.batch_size, args.max_batches)
        await asyncio.sleep(interval)


def main() -> None:
    parser = argparse.ArgumentParser(description="Release wallet holds whose unlock time has passed")
    parser.add_argument("--batch-size", type=int, default=None, help="Holds selected per batch")
    parser.add_argument("--max-batches", type=int, default=None, help="Upper bound of batches per sweep")
    parser.add_argument("--loop", action="store_true", help="Keep sweeping at a fixed interval")
    parser.add_argument("--interval", type=int, default=None, help="Seconds between sweeps in loop mode")
    args = parser.parse_args()

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    failed = asyncio.run(run(args))
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit("aborted by user")
