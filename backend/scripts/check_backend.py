#!/usr/bin/env python3
"""
Quick checks so the backend can start. Run from repo root or backend/:
  python scripts/check_backend.py
"""
import os
import sys
from pathlib import Path

# Run from backend/
backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def main():
    errors = []

    # 1) .env
    env_file = backend_dir / ".env"
    if not env_file.exists():
        errors.append("backend/.env missing. Copy from backend/.env.example and set DATABASE_URL, DEFAULT_MASTER_ID.")
    else:
        print("OK  .env exists")

    # 2) DB connection and daily_auctions table (alembic upgrade head)
    try:
        from sqlalchemy import inspect, text
        from auction_scheduler.db.session import engine
        from auction_scheduler.db.tables import ALL_TABLE_NAMES
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("OK  Database connection (DATABASE_URL)")
        missing = [t for t in ALL_TABLE_NAMES if t not in inspect(engine).get_table_names()]
        if missing:
            errors.append(f"Tables missing: {', '.join(missing)}. Run: alembic upgrade head")
            print("FAIL Tables missing:", ", ".join(missing))
        else:
            print("OK  Tables present")
    except Exception as e:
        errors.append(f"Database: {e}")
        print("FAIL Database:", e)

    # 3) Scheduler config
    from auction_scheduler.config import settings
    from auction_scheduler.core.scheduler_config import get_scheduler_config
    cfg = get_scheduler_config()
    print(f"OK  Scheduler config: tz={cfg.timezone} init={cfg.init_hour}:00 progress={cfg.progress_hours} reset={cfg.reset_hour}:00")
    if settings.scheduler_enabled and not settings.default_master_id:
        print("WARN DEFAULT_MASTER_ID not set; the daily initialization job will skip")

    # 4) App import (catches missing deps, bad imports)
    try:
        from auction_scheduler.main import app  # noqa: F401
        print("OK  App import (auction_scheduler.main)")
    except Exception as e:
        errors.append(f"App import: {e}")
        print("FAIL App import:", e)

    # 5) Port 8000
    try:
        import socket
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 8000))
        print("OK  Port 8000 is free")
    except OSError:
        errors.append("Port 8000 is in use. Stop the other process or use another port (e.g. --port 8001).")
        print("FAIL Port 8000 is in use")

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        return 1

    print("\nAll checks passed. Start with: uvicorn auction_scheduler.main:app --host 0.0.0.0 --port 8000")
    return 0


if __name__ == "__main__":
    sys.exit(main())
