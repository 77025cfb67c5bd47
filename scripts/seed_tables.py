"""
seed_tables.py — Load roster files into the shared tables

Reads faculty / students / courses / enrollments from ROSTER_DIR
(`<kind>.xlsx` or `<kind>.csv`) and inserts them through the normal
account and registration workflows, so every cross-table invariant holds
afterwards. Rows whose id or course code already exists are skipped.

Usage:
    python scripts/seed_tables.py [roster_dir]
"""

import os
import sys

# Make project root importable (so `import app` works when running from /scripts)
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import create_app
from extensions import store
from utils.roster_import import ROSTER_KINDS, import_roster


def seed_tables(roster_dir: str) -> None:
    store.ensure_tables()
    summary = import_roster(store, roster_dir)

    for kind in ROSTER_KINDS:
        print(f"{kind}: {summary.inserted[kind]} inserted, {summary.skipped[kind]} skipped")
    for err in summary.errors:
        print(" !", err)
    print("Roster seed complete")


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        seed_tables(sys.argv[1] if len(sys.argv) > 1 else app.config["ROSTER_DIR"])
