"""One scheduled auction occurrence (slot) for a day. Partition key for all daily operations: scheduled_date.

status: UPCOMING -> LIVE -> COMPLETED (CANCELLED is terminal and never produced by the scheduler).
auction_number: ordinal within scheduled_date, unique per day; next slot gets max + 1.
auction_id: public UUID, never reused across days.
round_config: JSON list of {"round_number", "duration_seconds"} (JSONB on PostgreSQL).
"""
from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from auction_scheduler.db.base import Base


class DailyAuction(Base):
    __tablename__ = "daily_auctions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    master_id = Column(String(64), nullable=False, index=True)
    auction_number = Column(Integer, nullable=False)
    auction_id = Column(String(36), nullable=False, unique=True)
    time_slot = Column(String(5), nullable=False)  # "HH:MM"
    auction_name = Column(String(128), nullable=False)
    image_url = Column(Text, nullable=True)
    prize_value = Column(Integer, nullable=False)
    max_discount = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False)

    entry_fee_type = Column(String(16), nullable=False)  # RANDOM | FIXED
    min_entry_fee = Column(Integer, nullable=True)
    max_entry_fee = Column(Integer, nullable=True)
    fee_split_box_a = Column(Integer, nullable=True)
    fee_split_box_b = Column(Integer, nullable=True)

    round_count = Column(Integer, nullable=False)
    round_config = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)

    scheduled_date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        # One ordinal per day; also makes a racing second initialization fail instead of duplicating the day
        UniqueConstraint("scheduled_date", "auction_number", name="uq_daily_auctions_date_number"),
        Index("ix_daily_auctions_date_status", "scheduled_date", "status"),
    )

    def __repr__(self) -> str:
        return f"<DailyAuction {self.scheduled_date} #{self.auction_number} {self.time_slot} {self.status}>"
