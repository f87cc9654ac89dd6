import os

import pytest

from core.db.base import get_conn
from core.db.schema import init_db


_TABLES = [
    "sync_locks",
    "source_sessions",
    "synced_items",
    "accounts",
]


def _truncate_all():
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "TRUNCATE " + ", ".join(_TABLES) + " RESTART IDENTITY CASCADE"
    )
    conn.commit()
    conn.close()


@pytest.fixture(autouse=True)
def _clean_db():
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL must be set for Postgres-only tests.")
    init_db()
    _truncate_all()
    yield
    _truncate_all()
