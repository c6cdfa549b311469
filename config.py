"""
Runtime settings for the forecast feed service.

Everything here can be overridden through environment variables so the same
build runs locally, in tests and on Railway.
"""
import os

# Upstream APIs
DATA_API_BASE_URL = os.environ.get('POLYMARKET_DATA_API', 'https://data-api.polymarket.com')
GAMMA_BASE_URL = os.environ.get('POLYMARKET_GAMMA_API', 'https://gamma-api.polymarket.com')
USER_AGENT = os.environ.get('FEED_USER_AGENT', 'ForecastFeed/1.0')

# Storage
DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///forecast_feed.db')

# HTTP server
HOST = os.environ.get('HOST', '0.0.0.0')
PORT = int(os.environ.get('PORT', 8080))

# Feed defaults
DEFAULT_MIN_AMOUNT = 10.0
DEFAULT_FEED_LIMIT = 30
WATCHLIST_FEED_LIMIT = 100
MARKET_INDEX_LIMIT = 100
MAX_LIMIT = 500
TRADE_TAPE_LIMIT = 120

# Forecaster stats
FORECASTER_TRADE_LIMIT = 100
RECENT_TRADES_LIMIT = 20

# Market boards
TOP_MARKETS_LIMIT = 12
ACTIVE_MARKETS_LIMIT = 80
