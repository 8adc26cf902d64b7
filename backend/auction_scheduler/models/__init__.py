from auction_scheduler.models.daily_auction import DailyAuction

__all__ = [
    "DailyAuction",
]
