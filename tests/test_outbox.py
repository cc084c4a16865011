import time

import pytest

from linechat.constants import OUTBOX_DISCONNECT, OUTBOX_DROP
from linechat.outbox import Outbox


def test_delivers_in_fifo_order(make_transport) -> None:
    t = make_transport()
    box = Outbox(t)
    box.start()
    lines = [f"line {i}" for i in range(200)]
    for line in lines:
        assert box.enqueue(line) is True

    assert t.wait_for(lambda got: len(got) == len(lines))
    assert t.snapshot() == lines
    box.stop()
    assert box.join(2.0)
    assert box.delivered == len(lines)


def test_enqueue_does_not_block_on_stalled_writer(make_transport) -> None:
    t = make_transport()
    t.write_gate.clear()
    box = Outbox(t)
    box.start()

    started = time.monotonic()
    for i in range(1000):
        assert box.enqueue(f"m{i}")
    assert time.monotonic() - started < 1.0

    t.write_gate.set()
    assert t.wait_for(lambda got: len(got) == 1000, timeout=5.0)
    box.stop()
    assert box.join(2.0)


def test_stop_drains_queued_lines(make_transport) -> None:
    t = make_transport()
    box = Outbox(t)
    for line in ("a", "b", "c"):
        box.enqueue(line)
    box.stop()
    box.start()
    assert box.join(2.0)
    assert t.snapshot() == ["a", "b", "c"]
    assert box.running is False


def test_stop_without_drain_discards(make_transport) -> None:
    t = make_transport()
    box = Outbox(t)
    for line in ("a", "b", "c"):
        box.enqueue(line)
    box.stop(drain=False)
    box.start()
    assert box.join(2.0)
    assert t.snapshot() == []


def test_stop_is_idempotent_and_rejects_new_lines(make_transport) -> None:
    t = make_transport()
    box = Outbox(t)
    box.start()
    box.stop()
    box.stop()
    assert box.join(2.0)
    assert box.enqueue("late") is False


def test_write_failure_ends_delivery(make_transport) -> None:
    t = make_transport(fail_writes=True)
    box = Outbox(t)
    box.start()
    box.enqueue("doomed")
    assert box.join(2.0)
    assert box.running is False
    assert box.enqueue("after") is False
    assert t.snapshot() == []


def test_bounded_drop_policy(make_transport) -> None:
    t = make_transport()
    box = Outbox(t, maxsize=2, full_policy=OUTBOX_DROP)
    assert box.enqueue("a")
    assert box.enqueue("b")
    assert box.enqueue("c") is False
    assert box.dropped == 1
    assert len(box) == 2

    box.stop()
    box.start()
    assert box.join(2.0)
    assert t.snapshot() == ["a", "b"]


def test_bounded_disconnect_policy_calls_back_once(make_transport) -> None:
    calls = []
    t = make_transport()
    box = Outbox(t, maxsize=1, full_policy=OUTBOX_DISCONNECT, on_overflow=lambda: calls.append(1))
    assert box.enqueue("a")
    assert box.enqueue("b") is False
    assert box.enqueue("c") is False
    assert calls == [1]
    assert box.dropped == 2


def test_unknown_policy_is_rejected(make_transport) -> None:
    with pytest.raises(ValueError):
        Outbox(make_transport(), maxsize=1, full_policy="block")
