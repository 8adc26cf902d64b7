"""
Tests for the DB-bound scheduler operations (SQLite in-memory).

Verifies initialization guard, rotation shape, all-or-nothing failures, daily reset,
read projections and reconcile.
"""
import threading
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import DAY, MASTER_ID, NOW, PREVIOUS_DAY
from auction_scheduler.core.errors import (
    AlreadyInitializedError,
    MissingMasterIdError,
    NoLiveAuctionError,
    NoUpcomingAuctionError,
)
from auction_scheduler.db.base import Base
from auction_scheduler.models.daily_auction import DailyAuction
from auction_scheduler.services.auctions import service
from auction_scheduler.services.auctions.service import (
    auction_to_dict,
    auction_today,
    day_lock,
    day_status,
    initialize_day,
    list_day,
    progress_round,
    reconcile_day,
    reset_day,
)


def _snapshot(db, day=DAY):
    db.expire_all()
    return [(r.auction_number, r.status, r.time_slot) for r in list_day(db, day)]


def _live(db, day=DAY):
    return [r for r in list_day(db, day) if r.status == "LIVE"]


class TestInitializeDay:

    def test_creates_three_slots_one_live(self, db):
        rows = initialize_day(db, MASTER_ID, DAY, now=NOW)

        assert len(rows) == 3
        assert _snapshot(db) == [
            (1, "LIVE", "09:00"),
            (2, "UPCOMING", "10:00"),
            (3, "UPCOMING", "11:00"),
        ]
        assert {r.master_id for r in rows} == {MASTER_ID}
        assert all(r.created_at is not None and r.updated_at is not None for r in rows)

    def test_second_call_rejected_without_new_rows(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)

        with pytest.raises(AlreadyInitializedError) as exc:
            initialize_day(db, MASTER_ID, DAY, now=NOW)

        assert exc.value.code == "ALREADY_INITIALIZED"
        assert len(list_day(db, DAY)) == 3

    def test_already_initialized_after_progress(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        progress_round(db, DAY, now=NOW)

        with pytest.raises(AlreadyInitializedError):
            initialize_day(db, "other-master", DAY, now=NOW)

    def test_missing_master_id_no_mutation(self, db):
        with pytest.raises(MissingMasterIdError):
            initialize_day(db, "", DAY, now=NOW)

        assert list_day(db, DAY) == []

    def test_days_are_independent(self, db):
        initialize_day(db, MASTER_ID, PREVIOUS_DAY, now=NOW)
        rows = initialize_day(db, MASTER_ID, DAY, now=NOW)

        assert len(rows) == 3
        assert len(list_day(db, PREVIOUS_DAY)) == 3

    def test_accepts_iso_string_date(self, db):
        initialize_day(db, MASTER_ID, "2026-03-14", now=NOW)
        assert len(list_day(db, DAY)) == 3


class TestProgressRound:

    def test_morning_example(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)

        result = progress_round(db, DAY, now=NOW)

        assert result["completed"].auction_number == 1
        assert result["live"].auction_number == 2
        assert result["new_upcoming"].auction_number == 4
        assert result["new_upcoming"].time_slot == "13:00"
        assert _snapshot(db) == [
            (1, "COMPLETED", "09:00"),
            (2, "LIVE", "10:00"),
            (3, "UPCOMING", "11:00"),
            (4, "UPCOMING", "13:00"),
        ]

    def test_repeated_rotations_keep_day_shape(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        created_numbers = []

        for n in range(1, 6):
            result = progress_round(db, DAY, now=NOW)
            created_numbers.append(result["new_upcoming"].auction_number)
            statuses = [s for _, s, _ in _snapshot(db)]
            assert statuses.count("LIVE") == 1
            assert statuses.count("COMPLETED") == n
            assert statuses.count("UPCOMING") == 2

        assert created_numbers == sorted(created_numbers)
        assert len(set(created_numbers)) == len(created_numbers)
        assert created_numbers == [4, 5, 6, 7, 8]

    def test_new_slot_time_follows_promoted_slot(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        times = []
        for _ in range(3):
            result = progress_round(db, DAY, now=NOW)
            times.append((result["live"].time_slot, result["new_upcoming"].time_slot))

        assert times == [("10:00", "13:00"), ("11:00", "14:00"), ("13:00", "16:00")]

    def test_carries_configuration_forward(self, db):
        rows = initialize_day(db, MASTER_ID, DAY, now=NOW)
        live = rows[0]
        live.auction_name = "Gold Rush"
        live.prize_value = 5000
        live.image_url = "https://cdn.example/gold.png"
        live.min_entry_fee = None
        live.round_count = 2
        live.round_config = [
            {"round_number": 1, "duration_seconds": 60},
            {"round_number": 2, "duration_seconds": 90},
        ]
        db.commit()

        new = progress_round(db, DAY, now=NOW)["new_upcoming"]

        assert new.master_id == MASTER_ID
        assert new.auction_name == "Gold Rush"
        assert new.prize_value == 5000
        assert new.image_url == "https://cdn.example/gold.png"
        assert new.min_entry_fee == 10
        assert new.round_count == 2
        assert [r["duration_seconds"] for r in new.round_config] == [60, 90]
        assert new.auction_id not in {r.auction_id for r in rows}

    def test_updated_at_set_on_transition(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        later = datetime(2026, 3, 14, 10, 0, tzinfo=timezone.utc)

        result = progress_round(db, DAY, now=later)

        assert result["completed"].updated_at.replace(tzinfo=None) == later.replace(tzinfo=None)
        assert result["live"].updated_at.replace(tzinfo=None) == later.replace(tzinfo=None)

    def test_no_live_fails_without_mutation(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        live = _live(db)[0]
        live.status = "COMPLETED"
        db.commit()
        before = _snapshot(db)

        with pytest.raises(NoLiveAuctionError) as exc:
            progress_round(db, DAY, now=NOW)

        assert exc.value.code == "NO_LIVE_AUCTION"
        assert _snapshot(db) == before

    def test_empty_day_has_no_live(self, db):
        with pytest.raises(NoLiveAuctionError):
            progress_round(db, DAY, now=NOW)
        assert list_day(db, DAY) == []

    def test_no_upcoming_leaves_live_in_place(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        for row in list_day(db, DAY):
            if row.status == "UPCOMING":
                row.status = "CANCELLED"
        db.commit()
        before = _snapshot(db)

        with pytest.raises(NoUpcomingAuctionError):
            progress_round(db, DAY, now=NOW)

        assert _snapshot(db) == before
        assert [r.auction_number for r in _live(db)] == [1]

    def test_only_touches_given_day(self, db):
        initialize_day(db, MASTER_ID, PREVIOUS_DAY, now=NOW)
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        before = _snapshot(db, PREVIOUS_DAY)

        progress_round(db, DAY, now=NOW)

        assert _snapshot(db, PREVIOUS_DAY) == before

    def test_failure_after_status_flip_rolls_back(self, db, monkeypatch):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        before = _snapshot(db)

        def broken_id():
            raise RuntimeError("id generator down")

        monkeypatch.setattr(service, "new_auction_id", broken_id)

        with pytest.raises(RuntimeError):
            progress_round(db, DAY, now=NOW)

        assert _snapshot(db) == before
        assert [r.auction_number for r in _live(db)] == [1]

    def test_commit_failure_rolls_back(self, db, monkeypatch):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        before = _snapshot(db)
        monkeypatch.setattr(db, "commit", MagicMock(side_effect=RuntimeError("disk full")))

        with pytest.raises(RuntimeError):
            progress_round(db, DAY, now=NOW)

        assert _snapshot(db) == before

    def test_concurrent_rotations_keep_single_live(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'auctions.db'}",
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(engine)
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        setup = factory()
        initialize_day(setup, MASTER_ID, DAY, now=NOW)
        setup.close()

        workers = 8
        barrier = threading.Barrier(workers)
        errors = []

        def rotate():
            session = factory()
            try:
                barrier.wait()
                progress_round(session, DAY)
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=rotate) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        check = factory()
        try:
            rows = list_day(check, DAY)
            statuses = [r.status for r in rows]

            assert errors == []
            assert statuses.count("LIVE") == 1
            assert statuses.count("COMPLETED") == workers
            assert statuses.count("UPCOMING") == 2
            assert [r.auction_number for r in rows] == list(range(1, workers + 4))
        finally:
            check.close()
            engine.dispose()


class TestResetDay:

    def test_completes_stale_and_clears_today(self, db):
        initialize_day(db, MASTER_ID, PREVIOUS_DAY, now=NOW)
        stale = list_day(db, PREVIOUS_DAY)
        stale[2].status = "CANCELLED"
        db.commit()
        initialize_day(db, MASTER_ID, DAY, now=NOW)

        counts = reset_day(db, DAY, now=NOW)

        assert counts == {"updated_count": 2, "deleted_count": 3}
        assert [s for _, s, _ in _snapshot(db, PREVIOUS_DAY)] == ["COMPLETED", "COMPLETED", "CANCELLED"]
        assert list_day(db, DAY) == []

    def test_initialize_succeeds_after_reset(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        progress_round(db, DAY, now=NOW)

        reset_day(db, DAY, now=NOW)
        rows = initialize_day(db, MASTER_ID, DAY, now=NOW)

        assert [r.auction_number for r in rows] == [1, 2, 3]

    def test_empty_store(self, db):
        assert reset_day(db, DAY, now=NOW) == {"updated_count": 0, "deleted_count": 0}

    def test_future_days_untouched(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)

        counts = reset_day(db, PREVIOUS_DAY, now=NOW)

        assert counts == {"updated_count": 0, "deleted_count": 0}
        assert len(list_day(db, DAY)) == 3


class TestReadProjections:

    def test_list_day_empty(self, db):
        assert list_day(db, DAY) == []

    def test_list_day_ordered_by_number(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        progress_round(db, DAY, now=NOW)

        assert [r.auction_number for r in list_day(db, DAY)] == [1, 2, 3, 4]

    def test_auction_to_dict(self, db):
        row = initialize_day(db, MASTER_ID, DAY, now=NOW)[0]
        d = auction_to_dict(row)

        assert d["auction_number"] == 1
        assert d["status"] == "LIVE"
        assert d["scheduled_date"] == "2026-03-14"
        assert d["round_config"][0] == {"round_number": 1, "duration_seconds": 300}
        assert isinstance(d["created_at"], str)
        assert auction_to_dict(None) is None

    def test_day_status(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        progress_round(db, DAY, now=NOW)

        view = day_status(db, DAY)

        assert view["today_stats"] == {"upcoming": 2, "live": 1, "completed": 1, "cancelled": 0, "total": 4}
        assert view["current_live_auction"]["auction_number"] == 2
        assert view["next_auction_time"] == "11:00"
        assert view["master_id_in_use"] == MASTER_ID

    def test_day_status_late_live_has_no_next_time(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        live = _live(db)[0]
        live.time_slot = "23:30"
        db.commit()

        assert day_status(db, DAY)["next_auction_time"] is None

    def test_day_status_empty(self, db):
        view = day_status(db, DAY)

        assert view["today_stats"]["total"] == 0
        assert view["current_live_auction"] is None
        assert view["next_auction_time"] is None
        assert view["master_id_in_use"] is None


class TestReconcileDay:

    def test_promotes_when_no_live(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        _live(db)[0].status = "COMPLETED"
        db.commit()

        result = reconcile_day(db, DAY, now=NOW)

        assert result["promoted"].auction_number == 2
        assert [r.auction_number for r in _live(db)] == [2]

    def test_keeps_latest_of_several_live(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        list_day(db, DAY)[1].status = "LIVE"
        db.commit()

        result = reconcile_day(db, DAY, now=NOW)

        assert [r.auction_number for r in result["completed"]] == [1]
        assert [r.auction_number for r in _live(db)] == [2]

    def test_healthy_day_unchanged(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        before = _snapshot(db)

        assert reconcile_day(db, DAY, now=NOW) == {"completed": [], "promoted": None}
        assert _snapshot(db) == before

    def test_progress_works_after_reconcile(self, db):
        initialize_day(db, MASTER_ID, DAY, now=NOW)
        _live(db)[0].status = "COMPLETED"
        db.commit()
        reconcile_day(db, DAY, now=NOW)

        result = progress_round(db, DAY, now=NOW)

        assert result["completed"].auction_number == 2
        assert result["live"].auction_number == 3


class TestToday:

    def test_utc_date(self):
        assert auction_today(datetime(2026, 3, 14, 23, 30, tzinfo=timezone.utc)).isoformat() == "2026-03-14"

    def test_naive_treated_as_utc(self):
        assert auction_today(datetime(2026, 3, 14, 0, 5)).isoformat() == "2026-03-14"


class TestDayLock:

    def _mock_db(self, dialect: str):
        db = MagicMock()
        db.get_bind.return_value.dialect.name = dialect
        return db

    def test_postgres_takes_advisory_lock(self):
        db = self._mock_db("postgresql")
        with day_lock(db, "2026-03-14"):
            pass
        sql = str(db.execute.call_args[0][0])
        assert "pg_advisory_xact_lock" in sql

    def test_sqlite_skips_advisory_lock(self):
        db = self._mock_db("sqlite")
        with day_lock(db, "2026-03-14"):
            pass
        db.execute.assert_not_called()

    def test_same_day_is_serialized(self):
        events = []

        def worker(name):
            with day_lock(self._mock_db("sqlite"), "2026-03-14"):
                events.append(f"{name}-in")
                time.sleep(0.05)
                events.append(f"{name}-out")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # No interleaving: every "in" is immediately followed by its own "out"
        assert events[0][0] == events[1][0]
        assert events[2][0] == events[3][0]

    def test_same_date_always_gets_same_lock(self):
        assert service._day_lock_for("2026-03-14") is service._day_lock_for("2026-03-14")

    def test_lock_pool_is_fixed(self):
        db = self._mock_db("sqlite")
        for day in range(1, 29):
            with day_lock(db, f"2026-02-{day:02d}"):
                pass

        assert len(service._day_locks) == service.DAY_LOCK_STRIPES
