"""
01 — A request with a deadline

A handler gets 0.5 seconds. The database adapter adds a MAX_EXECUTION_TIME
hint sized to what is left, and a checkpoint inside a slow loop stops the
work once the deadline passes.

Run: python examples/01_request.py
"""

from __future__ import annotations

import logging
import os
import sqlite3
import sys
import time

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import timebox
from timebox.integrations import TimeboxConnection, timeboxed

logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

conn = TimeboxConnection(sqlite3.connect(":memory:"))
cursor = conn.cursor()
cursor.execute("CREATE TABLE users (name TEXT)")
cursor.executemany("INSERT INTO users (name) VALUES (?)", [("ada",), ("bob",), ("cy",)])


@timeboxed(0.5)
def list_users() -> list[str]:
    cursor.execute("SELECT name FROM users ORDER BY name")
    names = [row[0] for row in cursor.fetchall()]

    enriched = []
    for name in names:
        timebox.checkpoint("enrich")
        time.sleep(0.2)  # pretend to call a slow service
        enriched.append(name.title())
    return enriched


if __name__ == "__main__":
    try:
        print(list_users())
    except timebox.BudgetExceeded as exc:
        print(f"gave up: {exc}")
    print(f"{len(timebox.all_records())} exceeded checkpoint(s) recorded")
