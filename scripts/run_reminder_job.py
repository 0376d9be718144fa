"""
Run the reminder job once (same as the 9:00 cron), optionally as of another day.

Usage:
  python scripts/run_reminder_job.py [YYYY-MM-DD]
"""
import logging
import os
import sys
from datetime import datetime, timezone

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.database import SessionLocal  # noqa: E402
from app.models.property import Property  # noqa: E402
from app.services.reminder_job import process_notifications  # noqa: E402


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    now = datetime.now(timezone.utc)
    if len(sys.argv) > 1:
        now = datetime.fromisoformat(sys.argv[1]).replace(tzinfo=timezone.utc)
    db = SessionLocal()
    try:
        result = process_notifications(db, db.query(Property).all(), now)
    finally:
        db.close()
    print(f"As of {now.date()}: {result}")


if __name__ == "__main__":
    main()
