"""Unit tests covering BatchScheduler control flow."""

from __future__ import annotations

import json
import logging
from typing import List, Optional, Tuple

import pytest

from executor_metrics.reporting.batch import BatchScheduler
from executor_metrics.reporting.metrics import ReporterMetrics


class RecordingSink:
    def __init__(self, *, fail_open: bool = False, fail_emit: bool = False) -> None:
        self.fail_open = fail_open
        self.fail_emit = fail_emit
        self.opened: Optional[Tuple[str, str]] = None
        self.records: List[str] = []
        self.events: List[str] = []
        self.sync_calls = 0
        self.closed = False

    def open(self, application_id: str, executor_id: str) -> None:
        if self.fail_open:
            raise OSError("permission denied")
        self.opened = (application_id, executor_id)

    def emit(self, record: str) -> None:
        if self.fail_emit:
            raise OSError("disk full")
        self.records.append(record)
        self.events.append("emit")

    def sync(self) -> None:
        self.sync_calls += 1
        self.events.append("sync")

    def close(self) -> None:
        self.closed = True
        self.events.append("close")


class SinkFactory:
    def __init__(self, *sinks: RecordingSink) -> None:
        self._sinks = list(sinks)
        self.created: List[RecordingSink] = []

    def __call__(self) -> RecordingSink:
        sink = self._sinks.pop(0) if self._sinks else RecordingSink()
        self.created.append(sink)
        return sink


def make_scheduler(*sinks: RecordingSink, sync_every: int = 20) -> Tuple[BatchScheduler, SinkFactory]:
    factory = SinkFactory(*sinks)
    scheduler = BatchScheduler(
        factory,
        "worker1",
        sync_every=sync_every,
        metrics=ReporterMetrics(log_interval_s=3600),
    )
    return scheduler, factory


def test_same_timestamp_samples_coalesce_into_one_record():
    scheduler, factory = make_scheduler()

    scheduler.offer("app-001.3.jvm.memory.used", 12345, 100)
    scheduler.offer("app-001.3.jvm.memory.max", 99999, 100)
    scheduler.offer("app-001.3.jvm.threads.count", 7, 101)

    sink = factory.created[0]
    assert sink.opened == ("app-001", "3")
    assert sink.records == [
        '{"timestamp":100,"values":{"jvm":{"memory":{"used":12345,"max":99999}}},"host":"worker1_3"}'
    ]
    assert scheduler.previous_timestamp == 101
    assert scheduler.open_batch.record.to_plain() == {"jvm": {"threads": {"count": 7}}}


def test_record_for_previous_timestamp_is_emitted_before_next_batch_opens():
    scheduler, factory = make_scheduler()

    scheduler.offer("app-001.3.gauge.a", 1, 100)
    scheduler.offer("app-001.3.gauge.b", 2, 100)
    scheduler.offer("app-001.3.gauge.a", 3, 200)

    sink = factory.created[0]
    assert len(sink.records) == 1
    first = json.loads(sink.records[0])
    assert first == {"timestamp": 100, "values": {"a": 1, "b": 2}, "host": "worker1_3"}
    assert scheduler.open_batch.timestamp == 200
    assert scheduler.open_batch.record.to_plain() == {"a": 3}


def test_stop_flushes_batch_without_timestamp_transition():
    scheduler, factory = make_scheduler()

    scheduler.offer("app-001.3.gauge.a", 1, 100)
    scheduler.offer("app-001.3.gauge.b", 2, 100)
    scheduler.stop()

    sink = factory.created[0]
    assert [json.loads(r) for r in sink.records] == [
        {"timestamp": 100, "values": {"a": 1, "b": 2}, "host": "worker1_3"}
    ]
    assert sink.events == ["emit", "close"]
    assert scheduler.metrics.get("final_flushes") == 1


def test_unroutable_names_never_open_a_sink_and_stop_is_noop():
    scheduler, factory = make_scheduler()

    scheduler.offer("notapp.3.x.y", 1, 100)
    scheduler.offer("app-001.driver.x.y", 1, 100)
    scheduler.stop()

    assert factory.created == []
    assert scheduler.previous_timestamp == 0
    assert scheduler.open_batch is None
    assert scheduler.metrics.get("unroutable_samples") == 2


def test_sync_every_twentieth_emitted_record():
    scheduler, factory = make_scheduler()

    # 40 distintos timestamps cierran 39 lotes
    for ts in range(1, 41):
        scheduler.offer("app-001.3.gauge.value", ts, ts)

    sink = factory.created[0]
    assert len(sink.records) == 39
    assert sink.sync_calls == 1
    assert sink.events.index("sync") == 20

    scheduler.stop()
    assert len(sink.records) == 40
    assert sink.sync_calls == 1
    assert scheduler.rows_emitted == 39
    assert sink.closed is True


def test_stop_flush_does_not_count_towards_sync_modulus():
    scheduler, factory = make_scheduler(sync_every=2)

    scheduler.offer("app-001.3.gauge.value", 1, 1)
    scheduler.offer("app-001.3.gauge.value", 2, 2)
    scheduler.stop()

    sink = factory.created[0]
    assert sink.events == ["emit", "emit", "close"]


def test_sink_initialisation_failure_drops_cycle_and_retries_next_timestamp(caplog):
    scheduler, factory = make_scheduler(RecordingSink(fail_open=True), RecordingSink())

    with caplog.at_level(logging.ERROR, logger="executor_metrics.reporting.batch"):
        scheduler.offer("app-001.3.gauge.a", 1, 100)
        scheduler.offer("app-001.3.gauge.b", 2, 100)

    assert len(factory.created) == 1
    assert scheduler.previous_timestamp == 0
    assert scheduler.open_batch is None
    assert scheduler.metrics.get("sink_init_failures") == 1
    assert any("open sink" in rec.message for rec in caplog.records)

    scheduler.offer("app-001.3.gauge.a", 3, 101)
    assert len(factory.created) == 2
    assert factory.created[1].opened == ("app-001", "3")
    assert scheduler.open_batch.record.to_plain() == {"a": 3}


def test_emit_failure_is_logged_and_processing_continues(caplog):
    failing = RecordingSink()
    scheduler, factory = make_scheduler(failing)

    scheduler.offer("app-001.3.gauge.a", 1, 100)
    failing.fail_emit = True
    with caplog.at_level(logging.WARNING, logger="executor_metrics.reporting.batch"):
        scheduler.offer("app-001.3.gauge.a", 2, 101)

    assert any("app-001.3.gauge.a" in rec.getMessage() for rec in caplog.records)
    assert scheduler.metrics.get("emit_failures") == 1
    assert scheduler.rows_emitted == 0

    failing.fail_emit = False
    scheduler.offer("app-001.3.gauge.a", 3, 102)
    assert [json.loads(r)["timestamp"] for r in failing.records] == [101]


def test_structural_conflict_is_counted_and_does_not_corrupt_batch():
    scheduler, _ = make_scheduler()

    scheduler.offer("app-001.3.gauge.a.b", 1, 100)
    scheduler.offer("app-001.3.gauge.a.b.c", 2, 100)
    scheduler.offer("app-001.3.gauge.a.d", 3, 100)

    assert scheduler.open_batch.record.to_plain() == {"a": {"b": 1, "d": 3}}
    assert scheduler.metrics.get("merge_conflicts") == 1


def test_samples_from_another_executor_are_not_mixed():
    scheduler, factory = make_scheduler()

    scheduler.offer("app-001.3.gauge.a", 1, 100)
    scheduler.offer("app-001.4.gauge.b", 2, 100)
    scheduler.offer("app-002.3.gauge.c", 3, 100)

    assert len(factory.created) == 1
    assert scheduler.open_batch.record.to_plain() == {"a": 1}
    assert scheduler.metrics.get("foreign_samples") == 2


def test_final_flush_failure_is_logged_and_sink_still_closed(caplog):
    sink = RecordingSink()
    scheduler, _ = make_scheduler(sink)
    scheduler.offer("app-001.3.gauge.a", 1, 100)
    sink.fail_emit = True

    with caplog.at_level(logging.ERROR, logger="executor_metrics.reporting.batch"):
        scheduler.stop()

    assert sink.closed is True
    assert any(rec.levelno == logging.ERROR for rec in caplog.records)

    # una segunda parada no vuelve a emitir ni cerrar
    sink.closed = False
    scheduler.stop()
    assert sink.closed is False


def test_sync_every_must_be_positive():
    with pytest.raises(ValueError, match="sync_every"):
        BatchScheduler(SinkFactory(), "worker1", sync_every=0)


def _reject_constant(token):
    raise ValueError(f"token no JSON: {token}")


def test_non_finite_values_are_written_as_null():
    scheduler, factory = make_scheduler()

    scheduler.offer("app-001.3.jvm.heap.usage", float("nan"), 100)
    scheduler.offer("app-001.3.jvm.heap.used", 1, 100)
    scheduler.offer("app-001.3.timer.latency", {"count": 2, "max": float("inf"), "min": float("-inf")}, 100)
    scheduler.offer("app-001.3.jvm.heap.used", 2, 101)

    sink = factory.created[0]
    assert len(sink.records) == 1
    record = json.loads(sink.records[0], parse_constant=_reject_constant)
    assert record["values"] == {
        "heap": {"usage": None, "used": 1},
        "latency": {"count": 2, "max": None, "min": None},
    }
    assert scheduler.metrics.get("emit_failures") == 0
