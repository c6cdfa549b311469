"""Utilities for deriving canonical identifiers for Polymarket trades."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional


def js_string(value: Any) -> str:
    """Render a scalar the way the feed's JSON consumers expect (10.0 -> '10')."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def get_transaction_hash(trade: Dict[str, Any]) -> Optional[str]:
    """Return the trade's transaction hash from either API shape, if any."""
    tx_hash = trade.get('transactionHash') or trade.get('transaction_hash')
    return str(tx_hash) if tx_hash else None


def build_feed_item_id(trade: Dict[str, Any], index: int, now_ms: Optional[int] = None) -> str:
    """Pick the feed item id: transactionHash, transaction_hash, id, then a synthesized one.

    The synthesized form embeds the wall clock and is not stable across calls.
    """
    tx_hash = get_transaction_hash(trade)
    if tx_hash:
        return tx_hash
    trade_id = trade.get('id')
    if trade_id:
        return js_string(trade_id)
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"trade-{index}-{now_ms}"


def coerce_unix_seconds(value: Any) -> Optional[float]:
    """Return a usable Unix-seconds timestamp, or None for absent/zero/garbage values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        try:
            seconds = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if seconds != seconds or not seconds:
        return None
    return seconds


def build_trade_id(trade: Dict[str, Any]) -> Optional[str]:
    """The id used in Polymarket's tid URL parameter: trade id, else timestamp in ms."""
    trade_id = trade.get('id')
    if trade_id:
        return js_string(trade_id)
    seconds = coerce_unix_seconds(trade.get('timestamp'))
    if seconds is None:
        return None
    return js_string(seconds * 1000)


def get_trader(trade: Dict[str, Any]) -> str:
    return trade.get('proxyWallet') or trade.get('maker_address') or trade.get('taker_address') or 'Unknown'


def get_trader_name(trade: Dict[str, Any]) -> Optional[str]:
    return trade.get('name') or trade.get('pseudonym') or None
