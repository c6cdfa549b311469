"""
Unit tests for the top-markets and active-markets boards.
"""

from datetime import datetime, timezone

import pytest

from markets import build_active_board, build_top_markets, get_top_markets, parse_price, simplify_market


class TestParsePrice:

    def test_probability_becomes_percent(self):
        assert parse_price(0.42) == 42
        assert parse_price('0.125') == 13

    def test_percentage_passthrough(self):
        assert parse_price('73') == 73
        assert parse_price(88) == 88

    def test_garbage(self):
        assert parse_price('n/a') == 0
        assert parse_price(None) == 0
        assert parse_price(True) == 0


def _event(title, markets, image='event.png'):
    return {'title': title, 'image': image, 'markets': markets}


class TestTopMarkets:

    def test_filters_and_sorts(self):
        events = [
            _event('Rates', [
                {'id': '1', 'question': 'Cut in March?', 'outcomePrices': '["0.35", "0.65"]',
                 'volume': '1000', 'active': True, 'closed': False},
                {'id': '2', 'question': 'Cut in April?', 'outcomePrices': '["0.99", "0.01"]',
                 'volume': '9999', 'active': True, 'closed': False},
            ]),
            _event('BTC', [
                {'id': '3', 'outcomePrices': ['0.5', '0.5'], 'volume': '5000', 'active': True, 'closed': False},
                {'id': '4', 'outcomePrices': ['0.5', '0.5'], 'volume': '8000', 'active': True, 'closed': True},
            ]),
        ]

        markets = build_top_markets(events, limit=10)

        assert [m['id'] for m in markets] == ['3', '1']
        assert markets[0]['question'] == 'BTC'
        assert markets[0]['yesPrice'] == 50
        assert markets[0]['noPrice'] == 50
        assert markets[0]['image'] == 'event.png'
        assert markets[1]['yesPrice'] == 35
        assert markets[1]['volume'] == 1000.0

    def test_limit_and_category(self):
        events = [_event('E', [
            {'id': str(i), 'question': 'q', 'outcomePrices': ['0.5'], 'volume': str(i), 'active': True}
            for i in range(5)
        ])]
        markets = build_top_markets(events, limit=2, category='crypto')
        assert [m['id'] for m in markets] == ['4', '3']
        assert all(m['category'] == 'crypto' for m in markets)

    def test_missing_prices_excluded(self):
        events = [_event('E', [{'id': '1', 'question': 'q', 'active': True}])]
        assert build_top_markets(events, limit=5) == []

    @pytest.mark.asyncio
    async def test_fetches_events(self, fake_client):
        fake_client.events = [_event('E', [
            {'id': '1', 'question': 'q', 'outcomePrices': ['0.4'], 'volume': '1', 'active': True},
        ])]
        markets = await get_top_markets(fake_client, 12)
        assert [m['id'] for m in markets] == ['1']
        assert fake_client.calls == [('events', {'limit': 12, 'tag_slug': None})]


class TestActiveBoard:

    def test_simplify_market(self):
        market = simplify_market({
            'id': 42,
            'question': 'Will it snow?',
            'outcomes': '["Yes", "No"]',
            'outcomePrices': '["0.1", "0.9"]',
            'bestBid': '0.09',
            'volume24hr': 1200,
            'endDateIso': '2030-01-01',
            'slug': 'will-it-snow',
        })
        assert market['id'] == '42'
        assert market['outcomes'] == ['Yes', 'No']
        assert market['prices'] == [0.1, 0.9]
        assert market['bestBid'] == 0.09
        assert market['bestAsk'] is None
        assert market['volume24hr'] == 1200
        assert market['endDate'] == '2030-01-01'
        assert market['description'] is None

    def test_markets_without_question_dropped(self):
        assert simplify_market({'id': '1'}) is None

    def test_expired_markets_dropped_and_sorted(self):
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)
        raw = [
            {'id': 'old', 'question': 'q', 'endDate': '2025-01-01T00:00:00Z', 'volume24hr': 999},
            {'id': 'quiet', 'question': 'q', 'endDate': '2026-01-01T00:00:00Z', 'volume24hr': 1},
            {'id': 'busy', 'question': 'q', 'volume24hr': '500'},
            {'id': 'odd-date', 'question': 'q', 'endDate': 'someday'},
        ]
        board = build_active_board(raw, now=now)
        assert [m['id'] for m in board] == ['busy', 'quiet', 'odd-date']
