"""
repair_tables.py — Finish interrupted commits and check the shared tables

What it does:
- Takes the three table locks (courses -> faculty -> students), which rolls
  forward any pending journal entry and deletes orphaned temp files
- Recomputes each course's `enrolled` count from its student list
- Prints every remaining cross-table problem (dangling or one-sided
  references) for a human to fix

Safety notes:
- Safe to run while the gateway and clients are up: it waits for the locks
  like any other writer.
- Asymmetric references are only reported, never guessed at.

Usage:
    python scripts/repair_tables.py            # repair + report
    python scripts/repair_tables.py --check    # report only
"""

import os
import sys

# Make project root importable (so `import app` works when running from /scripts)
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import create_app
from extensions import store
from services.integrity import check_tables, repair_tables


def run(check_only: bool = False) -> int:
    """Returns the number of problems left after the (optional) repair."""
    if not check_only:
        result = repair_tables(store)
        print(
            f"repair done. journal entries replayed: {result['journal_replayed']}, "
            f"abandoned: {result['journal_abandoned']}, "
            f"enrolled counts fixed: {result['enrolled_fixed']}"
        )

    problems = check_tables(store)
    if not problems:
        print("tables consistent.")
    for p in problems:
        print(" -", p)
    return len(problems)


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        sys.exit(1 if run(check_only="--check" in sys.argv[1:]) else 0)
