"""
Market boards built from Gamma data.

The top-markets board feeds the headline generator: one yes/no percentage
per market, limited to markets that are still genuinely uncertain. The
active-markets board is the dashboard list of simplified market rows.
"""
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from feed import parse_json_list

MIN_INTERESTING_PRICE = 5
MAX_INTERESTING_PRICE = 95


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_price(value: Any) -> int:
    """Return a yes-price as a whole percentage.

    Probabilities in [0, 1] are scaled to percent; anything above 1 is
    assumed to be a percentage already.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value if value > 1 else _round_half_up(value * 100)
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return 0
        if parsed != parsed:
            return 0
        return _round_half_up(parsed) if parsed > 1 else _round_half_up(parsed * 100)
    return 0


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def yes_price_of(market: Dict[str, Any]) -> int:
    prices = market.get('outcomePrices')
    if not prices:
        return 0
    parsed = parse_json_list(prices)
    if parsed:
        return parse_price(parsed[0])
    if isinstance(prices, str):
        return parse_price(prices)
    return 0


def build_top_markets(events: List[Dict[str, Any]], limit: int, category: Optional[str] = None) -> List[Dict[str, Any]]:
    markets = []
    for event in events:
        if not isinstance(event, dict):
            continue
        for market in event.get('markets') or []:
            if not isinstance(market, dict):
                continue
            if not market.get('active') or market.get('closed'):
                continue

            yes_price = yes_price_of(market)
            if not MIN_INTERESTING_PRICE <= yes_price <= MAX_INTERESTING_PRICE:
                continue

            entry = {
                'id': market.get('id'),
                'question': market.get('question') or event.get('title'),
                'yesPrice': yes_price,
                'noPrice': 100 - yes_price,
                'volume': _to_number(market.get('volume')) or 0,
                'image': market.get('image') or event.get('image'),
            }
            if category:
                entry['category'] = category
            markets.append(entry)

    markets.sort(key=lambda m: m['volume'], reverse=True)
    return markets[:limit]


def simplify_market(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    question = raw.get('question')
    if not isinstance(question, str) or not question:
        return None

    prices = []
    for p in parse_json_list(raw.get('outcomePrices')):
        number = _to_number(p)
        prices.append(number if number is not None else 0)

    end_date = raw.get('endDate')
    if not isinstance(end_date, str):
        end_date = raw.get('endDateIso') if isinstance(raw.get('endDateIso'), str) else None

    market_id = raw.get('id') or raw.get('conditionId') or str(uuid.uuid4())
    description = raw.get('description')
    slug = raw.get('slug')

    return {
        'id': str(market_id),
        'question': question,
        'description': description if isinstance(description, str) else None,
        'outcomes': parse_json_list(raw.get('outcomes')),
        'prices': prices,
        'bestBid': _to_number(raw.get('bestBid')),
        'bestAsk': _to_number(raw.get('bestAsk')),
        'volume24hr': _to_number(raw.get('volume24hr')),
        'volumeNum': _to_number(raw.get('volumeNum')),
        'liquidityNum': _to_number(raw.get('liquidityNum')),
        'endDate': end_date,
        'slug': slug if isinstance(slug, str) else None,
    }


def _parse_end_date(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_active_board(raw_markets: List[Dict[str, Any]], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Simplified markets that have not ended yet, busiest first.

    Markets whose end date is missing or unparseable are kept.
    """
    now = now or datetime.now(timezone.utc)
    board = []
    for raw in raw_markets:
        if not isinstance(raw, dict):
            continue
        market = simplify_market(raw)
        if market is None:
            continue
        if market['endDate']:
            end = _parse_end_date(market['endDate'])
            if end is not None and end <= now:
                continue
        board.append(market)

    board.sort(key=lambda m: m['volume24hr'] or 0, reverse=True)
    return board


async def get_top_markets(client, limit: int, category: Optional[str] = None) -> List[Dict[str, Any]]:
    events = await client.get_events(limit=50 if category else limit, tag_slug=category)
    markets = build_top_markets(events, limit, category)
    print(f"[MARKETS] {len(markets)} top markets from {len(events)} events", flush=True)
    return markets


async def get_active_markets(client, limit: int) -> List[Dict[str, Any]]:
    raw_markets = await client.get_markets(limit=limit, active=True, closed=False)
    return build_active_board(raw_markets)
