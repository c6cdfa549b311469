"""
Unit tests for the heuristic forecaster stats.
"""

import pytest

from forecaster import calculate_trade_value, compute_forecaster_stats, get_forecaster_stats, is_estimated_win

ADDRESS = '0x566b19c0cfc6f8dcd7411ea8dfb81c01d25a6c48'


def test_no_trades():
    stats = compute_forecaster_stats(ADDRESS, [])
    assert stats == {
        'address': ADDRESS,
        'totalTrades': 0,
        'totalVolume': 0,
        'winRate': 0.5,
        'pnl': 0.0,
        'recentTrades': [],
    }


def test_volume_sums_size_times_price():
    trades = [
        {'side': 'BUY', 'size': 100, 'price': 0.5},
        {'side': 'SELL', 'size': '20', 'price': '0.25'},
    ]
    assert compute_forecaster_stats(ADDRESS, trades)['totalVolume'] == pytest.approx(55.0)


def test_unparseable_values_count_as_zero():
    assert calculate_trade_value({'size': 'lots', 'price': 0.5}) == 0.0
    assert calculate_trade_value({'price': 0.5}) == 0.0


def test_win_rate_heuristic():
    trades = [
        {'side': 'BUY', 'size': 10, 'price': 0.3},   # win
        {'side': 'SELL', 'size': 10, 'price': 0.4},  # loss
    ]
    stats = compute_forecaster_stats(ADDRESS, trades)
    assert stats['winRate'] == 0.5
    assert stats['pnl'] == 0.0


def test_pnl_estimate():
    trades = [
        {'side': 'BUY', 'size': 100, 'price': 0.2},
        {'side': 'SELL', 'size': 100, 'price': 0.8},
    ]
    stats = compute_forecaster_stats(ADDRESS, trades)
    assert stats['winRate'] == 1.0
    assert stats['totalVolume'] == pytest.approx(100.0)
    assert stats['pnl'] == pytest.approx(25.0)


def test_boundary_price_is_not_a_win():
    assert not is_estimated_win({'side': 'BUY', 'price': 0.5})
    assert not is_estimated_win({'side': 'SELL', 'price': 0.5})
    assert is_estimated_win({'side': 'SELL', 'price': '0.51'})


def test_recent_trades_truncated():
    trades = [{'side': 'BUY', 'size': 1, 'price': 0.1, 'n': i} for i in range(30)]
    stats = compute_forecaster_stats(ADDRESS, trades)
    assert stats['totalTrades'] == 30
    assert len(stats['recentTrades']) == 20
    assert stats['recentTrades'][0]['n'] == 0


@pytest.mark.asyncio
async def test_fetches_wallet_trades(fake_client):
    fake_client.trades = [{'side': 'BUY', 'size': 10, 'price': 0.4}]
    stats = await get_forecaster_stats(fake_client, ADDRESS)
    assert stats['totalTrades'] == 1
    assert fake_client.calls[0] == ('trades', {'limit': 100, 'min_amount': 0.0, 'user': ADDRESS})
