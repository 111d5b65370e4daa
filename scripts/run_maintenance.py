#!/usr/bin/env python3
"""
Run the workspace maintenance pass from the command line.

Mirrors the service's ``POST /maintenance`` endpoint for cron jobs or a
developer workstation: optionally warms the listed ranges, archives delivered
orders, then purges expired cache entries and appends a summary row to the
performance log range.
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import List, Optional
import sys
import os

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from shared.config import get_config  # noqa: E402
from shared.logging import configure_logging, set_actor  # noqa: E402
from service_workspace.app.main import SERVICE_NAME, SERVICE_PORT, build_workspace  # noqa: E402


async def run(
    *,
    warm_ranges: List[str],
    archive_delivered: bool,
    orders_range: Optional[str],
) -> dict:
    """Execute maintenance and return the summary."""
    config = get_config(SERVICE_NAME, SERVICE_PORT)
    configure_logging(SERVICE_NAME, config.log_level)
    set_actor("maintenance-cli")
    workspace = build_workspace(config)

    summary = {}
    if warm_ranges:
        warmed = await workspace.warm_cache(warm_ranges)
        summary["warm_cache"] = warmed.model_dump(mode="json")
    if archive_delivered:
        archived = await workspace.archive_completed_orders(orders_range)
        summary["archive_completed_orders"] = archived.model_dump(mode="json")

    maintenance = await workspace.run_maintenance()
    summary["maintenance"] = maintenance.model_dump(mode="json")
    summary["stats"] = workspace.stats()
    return summary


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the workspace cache and log maintenance pass.")
    parser.add_argument("--warm", action="append", default=[], metavar="RANGE", help="Range to pre-load (repeatable)")
    parser.add_argument("--archive-delivered", action="store_true", help="Archive folders of delivered orders first")
    parser.add_argument("--orders-range", default=os.getenv("WORKSPACE_ORDERS_RANGE"), help="Orders range override")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    try:
        summary = asyncio.run(
            run(
                warm_ranges=args.warm,
                archive_delivered=args.archive_delivered,
                orders_range=args.orders_range,
            )
        )
    except KeyboardInterrupt:
        return 130

    print(json.dumps(summary, indent=2, default=str))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2, default=str))

    status = summary["maintenance"]["status"]
    return 0 if status == "success" else 1


if __name__ == "__main__":
    raise SystemExit(main())
