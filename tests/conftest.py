import os

# Must be set before database/config are imported anywhere
os.environ['DATABASE_URL'] = 'sqlite://'

import pytest

import database


class FakePolymarketClient:
    """In-memory stand-in for PolymarketClient that records every call."""

    def __init__(self, trades=None, markets=None, single_markets=None, events=None):
        self.trades = trades or []
        self.markets = markets or []
        self.single_markets = single_markets or {}
        self.events = events or []
        self.trades_error = None
        self.markets_error = None
        self.calls = []
        self.closed = False

    async def get_recent_trades(self, limit=30, min_amount=0.0, user=None):
        self.calls.append(('trades', {'limit': limit, 'min_amount': min_amount, 'user': user}))
        if self.trades_error:
            raise self.trades_error
        return list(self.trades)

    async def get_wallet_trades(self, wallet_address, limit=100):
        return await self.get_recent_trades(limit=limit, user=wallet_address)

    async def get_markets(self, limit=100, active=True, closed=None):
        self.calls.append(('markets', {'limit': limit, 'active': active, 'closed': closed}))
        if self.markets_error:
            raise self.markets_error
        return [dict(m) for m in self.markets]

    async def get_events(self, limit=50, tag_slug=None):
        self.calls.append(('events', {'limit': limit, 'tag_slug': tag_slug}))
        return list(self.events)

    async def fetch_market(self, market_id):
        self.calls.append(('market', market_id))
        result = self.single_markets.get(market_id)
        if isinstance(result, Exception):
            raise result
        return dict(result) if result else None

    async def close(self):
        self.closed = True

    def call_names(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def fake_client():
    return FakePolymarketClient()


@pytest.fixture
def fresh_db():
    """Empty, freshly seeded watchlist database for each test."""
    database.Base.metadata.drop_all(bind=database.engine)
    database.init_db()
    yield
    database.Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def sample_trade():
    return {
        'proxyWallet': '0xAbCdEf1234567890aBcDeF1234567890AbCdEf12',
        'side': 'BUY',
        'asset': '1234567890',
        'conditionId': '0xcond1',
        'size': 250,
        'price': 0.42,
        'timestamp': 1700000000,
        'title': 'Will it rain tomorrow?',
        'slug': 'will-it-rain-tomorrow',
        'icon': 'https://example.com/rain.png',
        'eventSlug': 'weather',
        'outcome': 'Yes',
        'outcomeIndex': 0,
        'name': 'rainmaker',
        'transactionHash': '0xtx1',
    }


@pytest.fixture
def sample_market():
    return {
        'id': '501',
        'conditionId': '0xcond1',
        'clobTokenIds': ['1234567890', '9876543210'],
        'question': 'Will it rain tomorrow?',
        'description': 'Resolves Yes if it rains.',
        'outcomes': ['Yes', 'No'],
        'outcomePrices': ['0.42', '0.58'],
        'volume': '15000',
        'liquidity': '3000',
        'endDate': '2030-01-01T00:00:00Z',
        'image': 'https://example.com/market.png',
        'slug': 'will-it-rain-tomorrow',
        'active': True,
        'closed': False,
    }
