"""
Trader ("forecaster") profile stats.

These are estimates, not a P&L engine: no resolved-market outcomes are
consulted. A BUY below 0.5 or a SELL above 0.5 is counted as a likely win.
"""
from typing import Any, Dict, List

import config


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:
        return 0.0
    return number


def calculate_trade_value(trade: Dict[str, Any]) -> float:
    return _to_float(trade.get('size')) * _to_float(trade.get('price'))


def is_estimated_win(trade: Dict[str, Any]) -> bool:
    price = _to_float(trade.get('price'))
    side = trade.get('side')
    if side == 'BUY' and price < 0.5:
        return True
    if side == 'SELL' and price > 0.5:
        return True
    return False


def compute_forecaster_stats(address: str, trades: List[Dict[str, Any]]) -> Dict[str, Any]:
    total_trades = len(trades)
    total_volume = sum(calculate_trade_value(t) for t in trades)
    estimated_wins = sum(1 for t in trades if is_estimated_win(t))
    win_rate = estimated_wins / total_trades if total_trades > 0 else 0.5
    pnl = total_volume * (win_rate - 0.5) * 0.5

    return {
        'address': address,
        'totalTrades': total_trades,
        'totalVolume': total_volume,
        'winRate': win_rate,
        'pnl': pnl,
        'recentTrades': trades[:config.RECENT_TRADES_LIMIT],
    }


async def get_forecaster_stats(client, address: str) -> Dict[str, Any]:
    trades = await client.get_wallet_trades(address, limit=config.FORECASTER_TRADE_LIMIT)
    print(f"[FORECASTER] {address[:10]}... has {len(trades)} recent trades", flush=True)
    return compute_forecaster_stats(address, trades)
