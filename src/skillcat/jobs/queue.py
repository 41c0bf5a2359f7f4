"""Durable at-least-once message queue on the relational store.

``receive`` leases messages for ``visibility_timeout`` seconds; a consumer
that crashes without acking simply lets the lease lapse. Backoff between
attempts and dead-lettering belong to the queue, never to handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import delete, func, insert, update
from sqlmodel import Session, select

from skillcat.storage.db import QueueMessageRow
from skillcat.utils.time import utc_now

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from skillcat.settings import Settings

INGESTION_QUEUE = "indexing"
CLASSIFICATION_QUEUE = "classification"


@dataclass(frozen=True)
class QueueMessage:
    id: int
    queue: str
    body: dict[str, Any]
    attempts: int


class SqlMessageQueue:
    """One named queue backed by the ``queue_messages`` table."""

    def __init__(self, engine: Engine, name: str, settings: Settings) -> None:
        self.engine = engine
        self.name = name
        self.visibility_timeout = settings.queue_visibility_timeout
        self.backoff_base = settings.queue_backoff_base_seconds
        self.backoff_max = settings.queue_backoff_max_seconds
        self.max_attempts = settings.queue_max_attempts

    def send(self, body: BaseModel | dict[str, Any], *, delay_seconds: float = 0.0) -> None:
        payload = body.model_dump(mode="json", by_alias=True, exclude_none=True) if isinstance(body, BaseModel) else body
        now = utc_now()
        with self.engine.begin() as conn:
            conn.execute(
                insert(QueueMessageRow).values(
                    queue=self.name,
                    body=payload,
                    attempts=0,
                    status="pending",
                    visible_at=now + timedelta(seconds=delay_seconds),
                    created_at=now,
                )
            )

    def receive(self, limit: int = 10) -> list[QueueMessage]:
        """Lease up to ``limit`` visible messages. Each lease counts as one delivery attempt."""

        now = utc_now()
        with Session(self.engine) as session:
            rows = session.exec(
                select(QueueMessageRow)
                .where(QueueMessageRow.queue == self.name)
                .where(QueueMessageRow.status == "pending")
                .where(QueueMessageRow.visible_at <= now)
                .order_by(QueueMessageRow.visible_at, QueueMessageRow.id)
                .limit(limit)
            ).all()
            candidates = [(row.id, row.visible_at, row.attempts, dict(row.body)) for row in rows]

        leased: list[QueueMessage] = []
        lease_until = now + timedelta(seconds=self.visibility_timeout)
        for message_id, visible_at, attempts, body in candidates:
            with self.engine.begin() as conn:
                # Conditional update: a concurrent consumer that leased first wins.
                result = conn.execute(
                    update(QueueMessageRow)
                    .where(QueueMessageRow.id == message_id)  # type: ignore[arg-type]
                    .where(QueueMessageRow.visible_at == visible_at)  # type: ignore[arg-type]
                    .values(visible_at=lease_until, attempts=attempts + 1)
                )
            if result.rowcount == 1:
                leased.append(QueueMessage(id=message_id, queue=self.name, body=body, attempts=attempts + 1))  # type: ignore[arg-type]
        return leased

    def ack(self, message: QueueMessage) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(QueueMessageRow).where(QueueMessageRow.id == message.id))  # type: ignore[arg-type]

    def backoff_seconds(self, attempts: int) -> float:
        return min(self.backoff_max, self.backoff_base * (2 ** max(0, attempts - 1)))

    def retry(self, message: QueueMessage, error: str | None = None) -> None:
        """Make the message visible again after backoff, or dead-letter it after ``max_attempts``."""

        values: dict[str, Any] = {"last_error": (error or "")[:2000] or None}
        if message.attempts >= self.max_attempts:
            values["status"] = "dead"
            logger.error("Message {} on {} dead-lettered after {} attempts", message.id, self.name, message.attempts)
        else:
            values["visible_at"] = utc_now() + timedelta(seconds=self.backoff_seconds(message.attempts))
        with self.engine.begin() as conn:
            conn.execute(update(QueueMessageRow).where(QueueMessageRow.id == message.id).values(**values))  # type: ignore[arg-type]

    def depth(self) -> int:
        with Session(self.engine) as session:
            count = session.exec(
                select(func.count())
                .select_from(QueueMessageRow)
                .where(QueueMessageRow.queue == self.name)
                .where(QueueMessageRow.status == "pending")
            ).one()
            return int(count)
