import asyncio
import math
import time
from typing import Any, Dict, List, Optional

from aiohttp import web

import config
import database
from feed import load_feed, load_trade_tape
from forecaster import get_forecaster_stats
from markets import get_active_markets, get_top_markets
from polymarket_client import PolymarketAPIError, polymarket_client

CLIENT_KEY = web.AppKey('polymarket_client', object)
STATS_KEY = web.AppKey('stats', dict)


class RequestValidationError(Exception):
    """Bad query parameters or request body; rejected before any upstream call."""


def json_error(message: str, status: int, details: Optional[str] = None) -> web.Response:
    body = {'error': message}
    if details:
        body['details'] = details
    return web.json_response(body, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except RequestValidationError as e:
        return json_error(str(e), 400)
    except PolymarketAPIError as e:
        print(f"[HTTP] {request.method} {request.path} upstream error: {e}", flush=True)
        return json_error(str(e), 502)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        return json_error(e.reason, e.status)
    except Exception as e:
        print(f"[HTTP] {request.method} {request.path} failed: {type(e).__name__}: {e}", flush=True)
        return json_error("Failed to fetch from Polymarket", 500, details=str(e))


def parse_amount(request: web.Request, name: str, default: float) -> float:
    """Finite, non-negative float query parameter."""
    raw = request.query.get(name)
    if raw is None or raw == '':
        return default
    try:
        amount = float(raw)
    except ValueError:
        raise RequestValidationError(f"Invalid {name}: {raw}")
    if not math.isfinite(amount) or amount < 0:
        raise RequestValidationError(f"Invalid {name}: {raw}")
    return amount


def parse_min_amount(request: web.Request) -> float:
    return parse_amount(request, 'minAmount', config.DEFAULT_MIN_AMOUNT)


def parse_limit(request: web.Request, default: int) -> int:
    raw = request.query.get('limit')
    if raw is None or raw == '':
        return default
    try:
        limit = int(raw)
    except ValueError:
        raise RequestValidationError(f"Invalid limit: {raw}")
    if limit <= 0:
        raise RequestValidationError(f"Invalid limit: {raw}")
    return min(limit, config.MAX_LIMIT)


async def read_json_body(request: web.Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise RequestValidationError("Invalid request body")
    if not isinstance(body, dict):
        raise RequestValidationError("Invalid request body")
    return body


def parse_addresses(body: Dict[str, Any]) -> List[str]:
    addresses = body.get('addresses')
    if not isinstance(addresses, list) or len(addresses) == 0:
        raise RequestValidationError("No addresses provided")
    if not all(isinstance(a, str) and a.strip() for a in addresses):
        raise RequestValidationError("Addresses must be non-empty strings")
    return [a.strip() for a in addresses]


async def feed_handler(request: web.Request) -> web.Response:
    min_amount = parse_min_amount(request)
    limit = parse_limit(request, config.DEFAULT_FEED_LIMIT)
    request.app[STATS_KEY]['feed_requests'] += 1
    items = await load_feed(request.app[CLIENT_KEY], min_amount=min_amount, limit=limit)
    return web.json_response(items)


async def address_feed_handler(request: web.Request) -> web.Response:
    min_amount = parse_min_amount(request)
    limit = parse_limit(request, config.WATCHLIST_FEED_LIMIT)
    addresses = parse_addresses(await read_json_body(request))
    request.app[STATS_KEY]['feed_requests'] += 1
    items = await load_feed(request.app[CLIENT_KEY], min_amount=min_amount, limit=limit, addresses=addresses)
    return web.json_response(items)


async def forecaster_handler(request: web.Request) -> web.Response:
    address = request.match_info['address']
    if not database.normalize_address(address):
        raise RequestValidationError(f"Invalid wallet address: {address}")
    stats = await get_forecaster_stats(request.app[CLIENT_KEY], address)
    stats['watched'] = database.is_watched(address)
    return web.json_response(stats)


async def trades_handler(request: web.Request) -> web.Response:
    limit = parse_limit(request, config.TRADE_TAPE_LIMIT)
    min_notional = parse_amount(request, 'minNotional', 0.0)
    market_filter = request.query.get('marketId') or None
    trades = await load_trade_tape(request.app[CLIENT_KEY], limit, min_notional, market_filter)
    return web.json_response({'trades': trades})


async def watchlist_handler(request: web.Request) -> web.Response:
    return web.json_response({'wallets': database.list_watchlist()})


async def watchlist_add_handler(request: web.Request) -> web.Response:
    body = await read_json_body(request)
    address = body.get('address')
    if not database.normalize_address(address):
        raise RequestValidationError("Invalid wallet address")
    label = body.get('label')
    description = body.get('description')
    if label is not None and not isinstance(label, str):
        raise RequestValidationError("label must be a string")
    if description is not None and not isinstance(description, str):
        raise RequestValidationError("description must be a string")

    added = database.add_to_watchlist(address, label=label, description=description)
    return web.json_response({'wallets': database.list_watchlist()}, status=201 if added else 200)


async def watchlist_remove_handler(request: web.Request) -> web.Response:
    address = request.match_info['address']
    if not database.normalize_address(address):
        raise RequestValidationError(f"Invalid wallet address: {address}")
    database.remove_from_watchlist(address)
    return web.json_response({'wallets': database.list_watchlist()})


async def watchlist_feed_handler(request: web.Request) -> web.Response:
    min_amount = parse_min_amount(request)
    addresses = database.watched_addresses()
    if not addresses:
        return web.json_response([])
    request.app[STATS_KEY]['feed_requests'] += 1
    items = await load_feed(
        request.app[CLIENT_KEY],
        min_amount=min_amount,
        limit=config.WATCHLIST_FEED_LIMIT,
        addresses=addresses,
    )
    return web.json_response(items)


async def top_markets_handler(request: web.Request) -> web.Response:
    limit = parse_limit(request, config.TOP_MARKETS_LIMIT)
    category = request.query.get('category') or None
    markets = await get_top_markets(request.app[CLIENT_KEY], limit, category)
    return web.json_response({'markets': markets})


async def active_markets_handler(request: web.Request) -> web.Response:
    limit = parse_limit(request, config.ACTIVE_MARKETS_LIMIT)
    markets = await get_active_markets(request.app[CLIENT_KEY], limit)
    return web.json_response({'markets': markets})


async def health_handler(request):
    """Liveness check; never touches upstream APIs or the database."""
    return web.Response(text="OK", status=200)


async def metrics_handler(request):
    """Metrics endpoint"""
    stats = request.app[STATS_KEY]
    uptime = time.time() - stats['started_at']
    return web.Response(
        text=f"uptime_seconds {uptime}\nfeed_requests_total {stats['feed_requests']}\n",
        status=200
    )


def create_app(client=None, init_database: bool = True) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    app[CLIENT_KEY] = client or polymarket_client
    app[STATS_KEY] = {'started_at': time.time(), 'feed_requests': 0}

    app.router.add_get('/', health_handler)
    app.router.add_get('/health', health_handler)
    app.router.add_get('/metrics', metrics_handler)
    app.router.add_get('/api/feed', feed_handler)
    app.router.add_post('/api/feed', address_feed_handler)
    app.router.add_get('/api/forecaster/{address}', forecaster_handler)
    app.router.add_get('/api/trades', trades_handler)
    app.router.add_get('/api/watchlist', watchlist_handler)
    app.router.add_post('/api/watchlist', watchlist_add_handler)
    app.router.add_get('/api/watchlist/feed', watchlist_feed_handler)
    app.router.add_delete('/api/watchlist/{address}', watchlist_remove_handler)
    app.router.add_get('/api/markets/top', top_markets_handler)
    app.router.add_get('/api/markets/active', active_markets_handler)

    async def on_startup(app):
        if init_database:
            database.init_db()

    async def on_cleanup(app):
        await app[CLIENT_KEY].close()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


async def run_server(app: web.Application, stop_event: asyncio.Event):
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.HOST, config.PORT)
    await site.start()

    print(f"[HTTP] Forecast feed listening on {config.HOST}:{config.PORT}", flush=True)

    try:
        await stop_event.wait()
    finally:
        await runner.cleanup()
        print("[HTTP] Server stopped", flush=True)


def main():
    import signal
    import traceback
    import sys

    print("Starting forecast feed service...", flush=True)

    async def run_all():
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def request_stop(sig_name):
            print(f"[SIGNAL] Received {sig_name}, shutting down", flush=True)
            stop_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, request_stop, sig.name)
            except NotImplementedError:
                pass

        await run_server(create_app(), stop_event)

    try:
        asyncio.run(run_all())
    except KeyboardInterrupt:
        print("[MAIN] Received keyboard interrupt", flush=True)
    except Exception as e:
        print(f"[FATAL] Server crashed with exception: {type(e).__name__}: {e}", flush=True)
        traceback.print_exc()
        sys.stdout.flush()
        raise


if __name__ == "__main__":
    main()
