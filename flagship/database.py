import os
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, MetaData, String, Table, Text, create_engine, delete, insert, select, update
from sqlalchemy.engine import Engine

DATABASE_URL = os.getenv("FLAGSHIP_DATABASE_URL", "sqlite:///flagship_cache.db")

metadata = MetaData()

snapshots = Table(
    "feature_flag_snapshots",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("json_data", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SqlSnapshotCache:
    """SnapshotCache backed by a SQL table, SQLite unless configured otherwise."""

    def __init__(self, engine: Optional[Engine] = None, url: str = DATABASE_URL):
        self._engine = engine if engine is not None else create_engine(url, pool_pre_ping=True, future=True)
        metadata.create_all(self._engine)

    def load(self, api_key: str) -> Optional[str]:
        with self._engine.connect() as conn:
            row = conn.execute(select(snapshots.c.json_data).where(snapshots.c.key == api_key)).fetchone()
        return row[0] if row else None

    def save(self, api_key: str, payload: str) -> None:
        now = _now()
        with self._engine.begin() as conn:
            existing = conn.execute(select(snapshots.c.key).where(snapshots.c.key == api_key)).fetchone()
            if existing:
                conn.execute(
                    update(snapshots).where(snapshots.c.key == api_key).values(json_data=payload, updated_at=now)
                )
            else:
                conn.execute(insert(snapshots).values(key=api_key, json_data=payload, created_at=now, updated_at=now))

    def clear(self, api_key: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(delete(snapshots).where(snapshots.c.key == api_key))
