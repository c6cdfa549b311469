import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, inspect, Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base, sessionmaker

import config

ADDRESS_PATTERN = re.compile(r'^0x[0-9a-f]{40}$')

DATABASE_URL = config.DATABASE_URL
if DATABASE_URL.startswith('sqlite'):
    engine = create_engine(DATABASE_URL)
else:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=5,
        max_overflow=10
    )
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Well-known high-volume traders followed out of the box
DEFAULT_WATCHED_WALLETS = [
    {
        'address': '0x566b19c0cfc6f8dcd7411ea8dfb81c01d25a6c48',
        'label': 'Theo',
        'description': 'High volume political markets',
    },
    {
        'address': '0x6813eb9362372eef6200f3b1dbc3f819671cba69',
        'label': 'Whale',
        'description': 'Large positions, election markets',
    },
    {
        'address': '0x2b5ad5c4795c026514f8317c7a215e218dccd6cf',
        'label': 'Oracle',
        'description': 'Consistent across categories',
    },
    {
        'address': '0x1cbd3b2770909d4e10f157cabc84c7264073c9ec',
        'label': 'Sharp',
        'description': 'Quick on breaking news',
    },
]


class WatchedWallet(Base):
    __tablename__ = 'watched_wallets'

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(42), nullable=False, unique=True)
    label = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    added_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'address': self.wallet_address,
            'label': self.label or '',
            'description': self.description or '',
            'addedAt': self.added_at.isoformat() if self.added_at else None,
        }


def normalize_address(address: Any) -> Optional[str]:
    """Lower-case and validate a wallet address; None when it is not 0x + 40 hex chars."""
    if not isinstance(address, str):
        return None
    address = address.strip().lower()
    if not ADDRESS_PATTERN.match(address):
        return None
    return address


def init_db(seed: bool = True):
    """Create tables. Default wallets are seeded only when the table is first created."""
    is_new = not inspect(engine).has_table(WatchedWallet.__tablename__)
    Base.metadata.create_all(bind=engine)
    if is_new and seed:
        session = get_session()
        try:
            for wallet in DEFAULT_WATCHED_WALLETS:
                session.add(WatchedWallet(
                    wallet_address=wallet['address'],
                    label=wallet['label'],
                    description=wallet['description'],
                ))
            session.commit()
            print(f"[DB] Seeded {len(DEFAULT_WATCHED_WALLETS)} default watched wallets", flush=True)
        finally:
            session.close()


def get_session():
    return SessionLocal()


def list_watchlist() -> List[Dict[str, Any]]:
    session = get_session()
    try:
        wallets = session.query(WatchedWallet).order_by(WatchedWallet.id).all()
        return [w.to_dict() for w in wallets]
    finally:
        session.close()


def watched_addresses() -> List[str]:
    session = get_session()
    try:
        return [row.wallet_address for row in session.query(WatchedWallet.wallet_address).all()]
    finally:
        session.close()


def is_watched(address: str) -> bool:
    address = normalize_address(address)
    if not address:
        return False
    session = get_session()
    try:
        return session.query(WatchedWallet).filter_by(wallet_address=address).first() is not None
    finally:
        session.close()


def add_to_watchlist(address: str, label: Optional[str] = None, description: Optional[str] = None) -> bool:
    """Follow a wallet. Returns False when it was already on the watchlist."""
    normalized = normalize_address(address)
    if not normalized:
        raise ValueError(f"Invalid wallet address: {address!r}")

    session = get_session()
    try:
        existing = session.query(WatchedWallet).filter_by(wallet_address=normalized).first()
        if existing:
            return False
        session.add(WatchedWallet(wallet_address=normalized, label=label, description=description))
        session.commit()
        print(f"[DB] Now watching {normalized[:6]}...{normalized[-4:]}", flush=True)
        return True
    finally:
        session.close()


def remove_from_watchlist(address: str) -> bool:
    """Unfollow a wallet. Returns False when it was not on the watchlist."""
    normalized = normalize_address(address)
    if not normalized:
        return False

    session = get_session()
    try:
        deleted = session.query(WatchedWallet).filter_by(wallet_address=normalized).delete()
        session.commit()
        return deleted > 0
    finally:
        session.close()
