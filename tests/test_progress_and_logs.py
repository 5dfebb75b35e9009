# tests/test_progress_and_logs.py
import asyncio
import os

from listingsync.config import settings
from listingsync.domain.types import LogLevel
from listingsync.service_layer.progress import BroadcastRegistry, ProgressTracker, broadcast_progress
from listingsync.service_layer.run_log import RunLogger, log_file_path, read_log_lines


async def test_registry_fans_out_to_every_subscriber():
    reg = BroadcastRegistry("progress")
    q1 = reg.subscribe()
    q2 = reg.subscribe()
    assert reg.subscriber_count == 2

    assert reg.publish({"step": 1}) == 2
    assert q1.get_nowait() == {"step": 1}
    assert q2.get_nowait() == {"step": 1}

    reg.unsubscribe(q1)
    reg.unsubscribe(q1)
    assert reg.subscriber_count == 1
    assert reg.publish({"step": 2}) == 1
    assert q1.empty()


async def test_full_queue_drops_only_for_that_listener():
    reg = BroadcastRegistry("logs", maxsize=1)
    slow = reg.subscribe()
    fast = reg.subscribe()

    reg.publish("a")
    fast.get_nowait()
    delivered = reg.publish("b")

    assert delivered == 1
    assert slow.get_nowait() == "a"
    assert fast.get_nowait() == "b"


async def test_publish_from_another_thread_lands_on_subscriber_loop():
    reg = BroadcastRegistry("progress")
    q = reg.subscribe()

    await asyncio.to_thread(reg.publish, {"from": "thread"})
    assert await asyncio.wait_for(q.get(), timeout=1) == {"from": "thread"}


async def test_tracker_publishes_steps_through_registry():
    reg = BroadcastRegistry("progress")
    q = reg.subscribe()
    tracker = ProgressTracker(broadcast_progress(reg, "domain"))

    tracker.advance("Fetching listings")
    tracker.advance("Fetching performance data")

    assert q.get_nowait() == {"source": "domain", "step": 1, "total": 5, "message": "Fetching listings"}
    assert q.get_nowait()["step"] == 2
    assert [e.step for e in tracker.events] == [1, 2]


async def test_run_logger_persists_and_broadcasts():
    reg = BroadcastRegistry("logs")
    q = reg.subscribe()
    run_log = RunLogger("realestate", broadcast=reg)

    run_log(LogLevel.info, "Fetched 2 listings")
    run_log(LogLevel.error, "Error upserting ListingID 9")

    path = log_file_path()
    assert path.startswith(settings.LOG_DIR)
    assert os.path.exists(path)

    lines = read_log_lines()
    assert len(lines) == 2
    assert lines[0].endswith("[realestate] INFO: Fetched 2 listings")
    assert "ERROR: Error upserting ListingID 9" in lines[1]

    msg = q.get_nowait()
    assert msg["level"] == "info"
    assert msg["source"] == "realestate"


def test_read_log_lines_dedupes_and_limits():
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    with open(log_file_path(), "w", encoding="utf-8") as f:
        f.write("one\ntwo\none\n\nthree\n")

    assert read_log_lines() == ["one", "two", "three"]
    assert read_log_lines(limit=2) == ["two", "three"]


def test_read_log_lines_without_file():
    assert read_log_lines() == []
