from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

POLYMARKET_URL = "https://polymarket.com"


def format_pnl(pnl: float) -> str:
    """Format PnL with proper sign placement: -$54 instead of $-54"""
    if pnl >= 0:
        return f"+${pnl:,.0f}"
    else:
        return f"-${abs(pnl):,.0f}"


def format_address(address: str) -> str:
    """0x1234567890abcdef... -> 0x1234...5678"""
    if not address or len(address) <= 10:
        return address or ''
    return f"{address[:6]}...{address[-4:]}"


def _to_float(value: Union[float, int, str]) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def format_usd(amount: Union[float, int, str]) -> str:
    number = _to_float(amount)
    if number < 0:
        return f"-${abs(number):,.0f}"
    return f"${number:,.0f}"


def format_percent(value: Union[float, int, str]) -> str:
    """0.425 -> 42.5%"""
    return f"{_to_float(value) * 100:.1f}%"


def format_relative_time(timestamp: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    try:
        then = datetime.fromisoformat(timestamp.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        return timestamp or ''
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)

    diff_seconds = (now - then).total_seconds()
    diff_mins = int(diff_seconds // 60)
    diff_hours = int(diff_seconds // 3600)
    diff_days = int(diff_seconds // 86400)

    if diff_mins < 1:
        return "just now"
    if diff_mins < 60:
        return f"{diff_mins}m ago"
    if diff_hours < 24:
        return f"{diff_hours}h ago"
    if diff_days < 7:
        return f"{diff_days}d ago"
    return then.strftime("%Y-%m-%d")


def get_market_url(feed_item: Dict[str, Any]) -> str:
    """Link to the market page, pinned to the trade when a trade id is known."""
    market = feed_item.get('market') or {}
    slug = market.get('eventSlug') or market.get('marketSlug')
    if slug:
        url = f"{POLYMARKET_URL}/event/{slug.split('?')[0].strip('/')}"
    elif market.get('conditionId'):
        url = f"{POLYMARKET_URL}/market/{market['conditionId']}"
    else:
        return POLYMARKET_URL

    trade_id = feed_item.get('tradeId')
    if trade_id:
        url = f"{url}?tid={trade_id}"
    return url


def get_profile_url(wallet_address: str) -> str:
    return f"{POLYMARKET_URL}/profile/{wallet_address}"


def trade_value(feed_item: Dict[str, Any]) -> float:
    return _to_float(feed_item.get('size')) * _to_float(feed_item.get('price'))


def format_feed_line(feed_item: Dict[str, Any]) -> str:
    market = feed_item.get('market') or {}
    trader = feed_item.get('traderName') or format_address(feed_item.get('trader', ''))
    return (
        f"{trader} {feed_item.get('side', 'BUY')} {feed_item.get('outcome', 'Yes')} "
        f"@ {format_percent(feed_item.get('price', 0))} "
        f"({format_usd(trade_value(feed_item))}) on {market.get('question', 'Unknown')[:80]}"
    )
