"""
Feed assembly: turn raw Data API trades and Gamma markets into canonical feed items.

Trades arrive in two historical shapes (current Data API fields and legacy
CLOB fields). Every logical field is resolved through an ordered fallback
chain on whichever raw fields are present; nothing branches on API version.
"""
import asyncio
import json
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol

import config
from polymarket_client import PolymarketAPIError
from trade_ids import (
    build_feed_item_id,
    build_trade_id,
    coerce_unix_seconds,
    get_trader,
    get_trader_name,
    get_transaction_hash,
    js_string,
)


VOLUME_FALLBACK_FIELDS = ('volume24h', 'volumeUsd', 'volumeUSD', 'totalVolume', 'volume24')
TRADE_MARKET_KEYS = ('conditionId', 'asset', 'asset_id', 'market')
VALID_SIDES = ('BUY', 'SELL')

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class MarketFetcher(Protocol):
    async def fetch_market(self, market_id: str) -> Optional[Dict[str, Any]]:
        ...


def _is_missing_volume(value: Any) -> bool:
    """Absent, empty and numerically-zero volumes all count as missing."""
    if value is None or value == '' or value is False:
        return True
    try:
        return float(value) == 0
    except (TypeError, ValueError):
        return False


def normalize_volume(market: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``market`` whose ``volume`` is filled from the fallback fields.

    The caller's dict is never mutated. Reapplying is a no-op.
    """
    normalized = dict(market)
    if not _is_missing_volume(normalized.get('volume')):
        return normalized

    for field in VOLUME_FALLBACK_FIELDS:
        value = normalized.get(field)
        if not _is_missing_volume(value):
            normalized['volume'] = value
            return normalized

    normalized['volume'] = "0"
    return normalized


def parse_json_list(value: Any) -> List[Any]:
    """Gamma sometimes ships arrays as JSON-encoded strings."""
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value:
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        if isinstance(parsed, list):
            return parsed
    return []


class MarketIndex:
    """Identifier -> market lookup table. Empty identifiers never match."""

    def __init__(self):
        self._markets: Dict[str, Dict[str, Any]] = {}

    def add(self, key: Any, market: Dict[str, Any]) -> None:
        if key is None or key == '':
            return
        self._markets[str(key)] = market

    def get(self, key: Any) -> Optional[Dict[str, Any]]:
        if key is None or key == '':
            return None
        return self._markets.get(str(key))

    def __contains__(self, key: Any) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._markets)


def build_market_index(markets: Iterable[Dict[str, Any]]) -> MarketIndex:
    """Index each market under every token id, its condition id and its market id.

    Later markets overwrite earlier ones on key collisions.
    """
    index = MarketIndex()
    for raw_market in markets:
        if not isinstance(raw_market, dict):
            continue
        market = normalize_volume(raw_market)
        for token_id in parse_json_list(market.get('clobTokenIds')):
            index.add(token_id, market)
        index.add(market.get('conditionId'), market)
        index.add(market.get('id'), market)
    return index


def lookup_market(trade: Dict[str, Any], index: MarketIndex) -> Optional[Dict[str, Any]]:
    for key in TRADE_MARKET_KEYS:
        market = index.get(trade.get(key))
        if market is not None:
            return market
    return None


def secondary_lookup_id(trade: Dict[str, Any]) -> Optional[str]:
    for key in TRADE_MARKET_KEYS:
        value = trade.get(key)
        if value and value != 'unknown':
            return str(value)
    return None


async def resolve_market(
    trade: Dict[str, Any],
    index: MarketIndex,
    fetcher: Optional[MarketFetcher],
) -> Optional[Dict[str, Any]]:
    """Find the market for a trade, refetching it when the index has nothing useful.

    A failed refetch is logged and the (possibly incomplete) index hit is kept.
    """
    market = lookup_market(trade, index)
    if market is not None and not _is_missing_volume(market.get('volume')):
        return market

    lookup_id = secondary_lookup_id(trade)
    if fetcher is None or not lookup_id:
        return market

    try:
        fetched = await fetcher.fetch_market(lookup_id)
    except Exception as e:
        print(f"[FEED] Secondary market lookup failed for {lookup_id[:20]}: {type(e).__name__}: {e}", flush=True)
        return market

    if fetched:
        return normalize_volume(fetched)
    return market


def format_iso(dt: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2023-11-14T22:13:20.000Z."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime('%Y-%m-%dT%H:%M:%S.') + f"{dt.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    return format_iso(datetime.now(timezone.utc))


def unix_seconds_iso(seconds: float) -> Optional[str]:
    """ISO string for a Unix-seconds value, or None when it is outside the datetime range."""
    try:
        return format_iso(_EPOCH + timedelta(milliseconds=round(seconds * 1000)))
    except OverflowError:
        return None


def trade_timestamp_iso(trade: Dict[str, Any]) -> str:
    """Trade time as ISO-8601.

    An out-of-range Unix value (e.g. milliseconds sent as seconds) falls back
    to ``match_time``/``created_at`` and otherwise is passed through raw, so an
    old trade is never stamped with the current time.
    """
    raw = trade.get('timestamp')
    seconds = coerce_unix_seconds(raw)
    if seconds is not None:
        iso = unix_seconds_iso(seconds)
        if iso is not None:
            return iso
        print(f"[FEED] Timestamp out of range: {raw!r}", flush=True)
        return trade.get('match_time') or trade.get('created_at') or js_string(raw)
    return trade.get('match_time') or trade.get('created_at') or utc_now_iso()


def normalize_side(value: Any) -> str:
    if isinstance(value, str) and value.upper() in VALID_SIDES:
        return value.upper()
    return 'BUY'


def build_market_snapshot(trade: Dict[str, Any], market: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    market = normalize_volume(market) if market else {}
    condition_or_asset = trade.get('conditionId') or trade.get('asset_id') or ''
    active = market.get('active')
    closed = market.get('closed')

    return {
        'id': js_string(market.get('id') or trade.get('conditionId') or trade.get('asset_id') or 'unknown'),
        'question': trade.get('title') or market.get('question') or f"Market {str(condition_or_asset)[:10]}...",
        'description': market.get('description') or '',
        'outcomes': parse_json_list(market.get('outcomes')) or ['Yes', 'No'],
        'outcomePrices': parse_json_list(market.get('outcomePrices')) or ['0.5', '0.5'],
        'volume': js_string(market.get('volume') or '0'),
        'liquidity': js_string(market.get('liquidity') or '0'),
        'endDate': market.get('endDate') or '',
        'image': market.get('image') or trade.get('icon') or '',
        'icon': trade.get('icon') or market.get('icon') or '',
        'active': True if active is None else bool(active),
        'closed': False if closed is None else bool(closed),
        'marketSlug': trade.get('slug') or market.get('slug') or market.get('marketSlug') or '',
        'eventSlug': trade.get('eventSlug') or market.get('eventSlug') or '',
        'conditionId': (
            trade.get('conditionId') or market.get('conditionId')
            or trade.get('market') or trade.get('asset_id') or ''
        ),
    }


def assemble_feed_item(
    trade: Dict[str, Any],
    market: Optional[Dict[str, Any]],
    index: int = 0,
) -> Dict[str, Any]:
    """Build one canonical feed item. No I/O; only the fallback id/timestamp read the clock."""
    size = trade.get('size')
    price = trade.get('price')
    item = {
        'id': build_feed_item_id(trade, index),
        'type': 'trade',
        'trader': get_trader(trade),
        'market': build_market_snapshot(trade, market),
        'outcome': trade.get('outcome') or 'Yes',
        'side': normalize_side(trade.get('side')),
        'size': js_string('0' if size is None else size),
        'price': js_string('0.5' if price is None else price),
        'timestamp': trade_timestamp_iso(trade),
    }

    trader_name = get_trader_name(trade)
    if trader_name:
        item['traderName'] = trader_name
    tx_hash = get_transaction_hash(trade)
    if tx_hash:
        item['transactionHash'] = tx_hash
    trade_id = build_trade_id(trade)
    if trade_id:
        item['tradeId'] = trade_id
    return item


async def build_feed(
    trades: List[Dict[str, Any]],
    markets: Iterable[Dict[str, Any]],
    fetcher: Optional[MarketFetcher] = None,
) -> List[Dict[str, Any]]:
    """Index the markets, then resolve and assemble every trade concurrently."""
    if not trades:
        return []

    index = build_market_index(markets)
    trades = [t for t in trades if isinstance(t, dict)]
    resolved = await asyncio.gather(*(resolve_market(trade, index, fetcher) for trade in trades))
    return [assemble_feed_item(trade, market, i) for i, (trade, market) in enumerate(zip(trades, resolved))]


def filter_trades_by_addresses(trades: List[Dict[str, Any]], addresses: Iterable[str]) -> List[Dict[str, Any]]:
    """Keep trades where the proxy wallet, maker or taker is one of ``addresses`` (case-insensitive)."""
    watched = {a.lower() for a in addresses if a}
    filtered = []
    for trade in trades:
        wallets = (trade.get('proxyWallet'), trade.get('maker_address'), trade.get('taker_address'))
        if any(w and str(w).lower() in watched for w in wallets):
            filtered.append(trade)
    return filtered


async def load_feed(
    client,
    min_amount: float = config.DEFAULT_MIN_AMOUNT,
    limit: int = config.DEFAULT_FEED_LIMIT,
    addresses: Optional[List[str]] = None,
) -> List[Dict[str, Any]]:
    """Fetch trades and markets for one request and assemble the feed.

    A failed trades fetch propagates. A failed markets fetch only degrades the
    index; trades then resolve through per-trade lookups.
    """
    print(f"[FEED] Fetching recent trades (min: ${min_amount:g}, limit: {limit})", flush=True)
    trades = await client.get_recent_trades(limit=limit, min_amount=min_amount)
    print(f"[FEED] Fetched {len(trades)} trades", flush=True)

    if addresses is not None:
        trades = filter_trades_by_addresses(trades, addresses)
        print(f"[FEED] {len(trades)} trades match {len(addresses)} addresses", flush=True)

    if not trades:
        return []

    try:
        markets = await client.get_markets(limit=config.MARKET_INDEX_LIMIT, active=True)
    except PolymarketAPIError as e:
        print(f"[FEED] Market list unavailable, continuing without index: {e}", flush=True)
        markets = []
    print(f"[FEED] Fetched {len(markets)} markets", flush=True)

    return await build_feed(trades, markets, client)


def _tape_number(value: Any) -> Optional[float]:
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


def build_tape_row(trade: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Flat trade-tape row, or None when price or size is not numeric."""
    price = _tape_number(trade.get('price'))
    size = _tape_number(trade.get('size'))
    if price is None or size is None:
        return None

    trade_id = trade.get('transactionHash')
    if trade_id is None:
        trade_id = trade.get('id')
    if trade_id is None:
        trade_id = uuid.uuid4()
    market_id = trade.get('conditionId')
    if market_id is None:
        market_id = trade.get('asset')
    side = trade.get('side')

    raw_ts = trade.get('timestamp')
    if isinstance(raw_ts, (int, float)) and not isinstance(raw_ts, bool):
        timestamp = unix_seconds_iso(raw_ts) or js_string(raw_ts)
    else:
        timestamp = utc_now_iso()

    row = {
        'id': js_string(trade_id),
        'marketId': js_string('unknown' if market_id is None else market_id),
        'outcome': trade['outcome'] if isinstance(trade.get('outcome'), str) else 'N/A',
        'price': price,
        'size': size,
        'notional': round(price * size, 2),
        'takerSide': 'sell' if isinstance(side, str) and side.upper() == 'SELL' else 'buy',
        'timestamp': timestamp,
        'odds': price,
    }
    for key, field in (('marketQuestion', 'title'), ('marketSlug', 'slug'), ('trader', 'proxyWallet')):
        if isinstance(trade.get(field), str):
            row[key] = trade[field]
    return row


def build_trade_tape(
    trades: List[Dict[str, Any]],
    min_notional: float = 0.0,
    market_filter: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Rows at or above ``min_notional`` whose market id or slug contains ``market_filter``."""
    needle = (market_filter or '').lower()
    tape = []
    for trade in trades:
        if not isinstance(trade, dict):
            continue
        row = build_tape_row(trade)
        if row is None or row['notional'] < min_notional:
            continue
        if needle and needle not in row['marketId'].lower() and needle not in row.get('marketSlug', '').lower():
            continue
        tape.append(row)
    return tape


async def load_trade_tape(
    client,
    limit: int = config.TRADE_TAPE_LIMIT,
    min_notional: float = 0.0,
    market_filter: Optional[str] = None,
) -> List[Dict[str, Any]]:
    trades = await client.get_recent_trades(limit=limit)
    tape = build_trade_tape(trades, min_notional, market_filter)
    print(f"[FEED] Trade tape: {len(tape)} of {len(trades)} trades", flush=True)
    return tape
