"""Small durable key-value map for ephemeral flags and metric counters."""

from __future__ import annotations

import json
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import delete, or_
from sqlmodel import Session, select

from skillcat.storage.catalog import upsert
from skillcat.storage.db import KvEntryRow
from skillcat.utils.time import utc_now

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.engine import Engine


class KeyValueStore(Protocol):
    """get / put-with-TTL / list-by-prefix / delete contract."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    def list(self, prefix: str, limit: int = 1000) -> list[str]: ...

    def delete(self, key: str) -> None: ...

    def purge_expired(self) -> int: ...


class SqlKeyValueStore:
    """Key-value map stored in ``kv_entries``; expired rows read as missing until ``purge_expired`` deletes them."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _live(self):  # noqa: ANN202
        now = utc_now()
        return or_(KvEntryRow.expires_at.is_(None), KvEntryRow.expires_at > now)  # type: ignore[union-attr,operator]

    def get(self, key: str) -> str | None:
        with Session(self.engine) as session:
            row = session.exec(select(KvEntryRow).where(KvEntryRow.key == key).where(self._live())).first()
            return row.value if row else None

    def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = utc_now() + timedelta(seconds=ttl_seconds) if ttl_seconds else None
        statement = upsert(
            self.engine,
            KvEntryRow,
            {"key": key, "value": value, "expires_at": expires_at},
            index_elements=["key"],
            update_fields=["value", "expires_at"],
        )
        with self.engine.begin() as conn:
            conn.execute(statement)

    def list(self, prefix: str, limit: int = 1000) -> list[str]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(KvEntryRow.key)
                .where(KvEntryRow.key.startswith(prefix))  # type: ignore[attr-defined]
                .where(self._live())
                .order_by(KvEntryRow.key)
                .limit(limit)
            ).all()
            return list(rows)

    def delete(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(KvEntryRow).where(KvEntryRow.key == key))  # type: ignore[arg-type]

    def purge_expired(self) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(delete(KvEntryRow).where(KvEntryRow.expires_at <= utc_now()))  # type: ignore[arg-type,operator]
            return result.rowcount or 0


def get_json(kv: KeyValueStore, key: str) -> Any | None:
    raw = kv.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def put_json(kv: KeyValueStore, key: str, payload: Any, ttl_seconds: int | None = None) -> None:
    kv.put(key, json.dumps(payload, default=str), ttl_seconds=ttl_seconds)


def increment_counters(
    kv: KeyValueStore, key: str, increments: Mapping[str, int], ttl_seconds: int | None = None
) -> dict[str, int]:
    """Read-modify-write a JSON object of counters. Not atomic; concurrent writers may lose increments."""

    current = get_json(kv, key)
    counters: dict[str, int] = dict(current) if isinstance(current, dict) else {}
    for name, amount in increments.items():
        counters[name] = int(counters.get(name, 0)) + amount
    put_json(kv, key, counters, ttl_seconds=ttl_seconds)
    return counters
