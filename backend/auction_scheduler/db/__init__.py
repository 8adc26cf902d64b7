from auction_scheduler.db.base import Base
from auction_scheduler.db.session import get_db, engine, SessionLocal
from auction_scheduler.db.tables import ALL_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES"]
