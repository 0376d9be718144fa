"""Create DB tables and seed municipal deadline rules.

Run from project root:
  python scripts/seed_deadline_rules.py
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.database import engine, SessionLocal, Base  # noqa: E402
from app import models  # noqa: F401,E402
from app.seed import seed_deadline_rules, DEADLINE_RULES_BY_MUNICIPALITY  # noqa: E402

if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        added = seed_deadline_rules(db)
        print(f"Deadline rules added: {added} ({', '.join(DEADLINE_RULES_BY_MUNICIPALITY)}).")
    finally:
        db.close()
