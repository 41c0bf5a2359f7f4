"""Tests for the durable message queue."""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import update

from skillcat.jobs.queue import INGESTION_QUEUE, SqlMessageQueue
from skillcat.models.messages import IngestionMessage
from skillcat.settings import Settings
from skillcat.storage.db import QueueMessageRow
from skillcat.utils.time import utc_now


def _queue(engine, tmp_path, **overrides) -> SqlMessageQueue:
    settings = Settings(_env_file=None, output_dir=tmp_path, **overrides)
    return SqlMessageQueue(engine, INGESTION_QUEUE, settings)


def _make_visible(engine) -> None:
    with engine.begin() as conn:
        conn.execute(update(QueueMessageRow).values(visible_at=utc_now() - timedelta(seconds=1)))


def test_send_serializes_wire_names(engine, tmp_path) -> None:
    queue = _queue(engine, tmp_path)
    queue.send(IngestionMessage(repo_owner="acme", repo_name="tools"))
    [message] = queue.receive()
    assert message.body == {"repoOwner": "acme", "repoName": "tools", "forceReindex": False}
    assert message.attempts == 1


def test_receive_leases_messages(engine, tmp_path) -> None:
    queue = _queue(engine, tmp_path)
    queue.send({"n": 1})
    queue.send({"n": 2})
    assert [m.body["n"] for m in queue.receive(limit=1)] == [1]
    assert [m.body["n"] for m in queue.receive(limit=10)] == [2]
    assert queue.receive() == []
    assert queue.depth() == 2


def test_queues_are_isolated(engine, tmp_path) -> None:
    settings = Settings(_env_file=None, output_dir=tmp_path)
    SqlMessageQueue(engine, "classification", settings).send({"x": 1})
    assert SqlMessageQueue(engine, INGESTION_QUEUE, settings).receive() == []


def test_ack_removes_message(engine, tmp_path) -> None:
    queue = _queue(engine, tmp_path)
    queue.send({"n": 1})
    [message] = queue.receive()
    queue.ack(message)
    assert queue.depth() == 0


def test_delayed_send_is_invisible(engine, tmp_path) -> None:
    queue = _queue(engine, tmp_path)
    queue.send({"n": 1}, delay_seconds=60)
    assert queue.receive() == []
    _make_visible(engine)
    assert len(queue.receive()) == 1


def test_retry_backs_off_then_dead_letters(engine, tmp_path) -> None:
    queue = _queue(engine, tmp_path, queue_max_attempts=2, queue_backoff_base_seconds=10)
    queue.send({"n": 1})

    [first] = queue.receive()
    queue.retry(first, "boom")
    assert queue.receive() == []
    assert queue.depth() == 1

    _make_visible(engine)
    [second] = queue.receive()
    assert second.attempts == 2
    queue.retry(second, "boom again")
    _make_visible(engine)
    assert queue.receive() == []
    assert queue.depth() == 0


def test_backoff_is_exponential_and_capped(engine, tmp_path) -> None:
    queue = _queue(engine, tmp_path, queue_backoff_base_seconds=30, queue_backoff_max_seconds=100)
    assert [queue.backoff_seconds(n) for n in (1, 2, 3, 4)] == [30, 60, 100, 100]
