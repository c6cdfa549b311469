#!/usr/bin/env python3
"""Print the live copy-trading feed, or one trader's stats, from the terminal.

Uses the same assembly path as the web service, so it doubles as a quick
check that upstream data still normalizes cleanly.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Dict, List

import config
from feed import load_feed
from forecaster import get_forecaster_stats
from formatting import (
    format_address,
    format_feed_line,
    format_percent,
    format_pnl,
    format_relative_time,
    format_usd,
    get_market_url,
    get_profile_url,
    trade_value,
)
from polymarket_client import PolymarketAPIError, PolymarketClient


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--limit",
        type=int,
        default=config.DEFAULT_FEED_LIMIT,
        help=f"Number of trades to fetch (default: {config.DEFAULT_FEED_LIMIT}).",
    )
    parser.add_argument(
        "--min-amount",
        type=float,
        default=config.DEFAULT_MIN_AMOUNT,
        help=f"Minimum trade size in USD (default: {config.DEFAULT_MIN_AMOUNT:g}).",
    )
    parser.add_argument(
        "--address",
        action="append",
        default=None,
        help="Only show trades by this wallet. May be repeated.",
    )
    parser.add_argument(
        "--forecaster",
        metavar="ADDRESS",
        help="Print heuristic stats for one trader instead of the feed.",
    )
    parser.add_argument(
        "--format",
        choices={"table", "lines", "json"},
        default="table",
        help="Output format: table, one summary line per trade, or json.",
    )
    return parser.parse_args()


def format_table(items: List[Dict]) -> str:
    headers = ["when", "trader", "side", "outcome", "price", "value", "market"]
    rows = []
    for item in items:
        market = item.get("market") or {}
        rows.append(
            [
                format_relative_time(item.get("timestamp", "")),
                item.get("traderName") or format_address(item.get("trader", "")),
                item.get("side", ""),
                item.get("outcome", ""),
                format_percent(item.get("price", 0)),
                format_usd(trade_value(item)),
                (market.get("question") or "")[:60],
            ]
        )

    if not rows:
        return "No trades."

    widths = [max(len(h), *(len(row[idx]) for row in rows)) for idx, h in enumerate(headers)]
    lines = [
        " ".join(h.ljust(widths[idx]) for idx, h in enumerate(headers)),
        "-" * (sum(widths) + len(widths) - 1),
    ]
    for row in rows:
        lines.append(" ".join(cell.ljust(widths[idx]) for idx, cell in enumerate(row)))
    return "\n".join(lines)


def format_stats(stats: Dict) -> str:
    rows = [
        ("trader", stats["address"]),
        ("profile", get_profile_url(stats["address"])),
        ("trades", str(stats["totalTrades"])),
        ("volume", format_usd(stats["totalVolume"])),
        ("win rate (est)", format_percent(stats["winRate"])),
        ("pnl (est)", format_pnl(stats["pnl"])),
    ]
    return "\n".join(f"{label.ljust(16)}{value}" for label, value in rows)


async def run(args: argparse.Namespace) -> int:
    client = PolymarketClient()
    try:
        if args.forecaster:
            stats = await get_forecaster_stats(client, args.forecaster)
            print(json.dumps(stats, indent=2) if args.format == "json" else format_stats(stats))
            return 0

        items = await load_feed(client, min_amount=args.min_amount, limit=args.limit, addresses=args.address)
    except PolymarketAPIError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1
    finally:
        await client.close()

    if args.format == "json":
        print(json.dumps(items, indent=2))
    elif args.format == "lines":
        for item in items:
            print(format_feed_line(item))
    else:
        print(format_table(items))
        for item in items[:5]:
            print(get_market_url(item))
    return 0


def main() -> int:
    args = parse_args()
    if args.limit <= 0:
        print("--limit must be positive", file=sys.stderr)
        return 1
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
