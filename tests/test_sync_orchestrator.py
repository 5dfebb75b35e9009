# tests/test_sync_orchestrator.py
import json

import pytest

from listingsync.adapters.stores.memory import InMemoryStore
from listingsync.domain.errors import AuthExpired, StoreRejected, SyncFailed, UpstreamRejected, UpstreamUnavailable
from listingsync.domain.types import JoinMode, RunStatus
from listingsync.service_layer.ledger import FailedRecordsLedger
from listingsync.service_layer.use_cases.sync import SyncOrchestrator

from fakes import FakeAdapter, FlakyStore, always_fail, domain_listing, domain_performance, domain_pipeline


def _orchestrator(adapter, store, fake_sleep, **kw):
    kw.setdefault("join_mode", JoinMode.require_match)
    kw.setdefault("fetch_backoff_s", 0.5)
    return SyncOrchestrator(domain_pipeline(adapter, store), sleep=fake_sleep, **kw)


async def test_all_listings_synced_with_five_progress_events(fake_sleep):
    ids = ["1", "2", "3"]
    adapter = FakeAdapter([[domain_listing(i) for i in ids]], {i: domain_performance(i) for i in ids})
    store = InMemoryStore()
    events = []

    result = await _orchestrator(adapter, store, fake_sleep).run(events.append)

    assert result.status == RunStatus.completed
    assert result.ok
    assert result.summary.as_dict() == {"successCount": 3, "failedCount": 0, "failedRecords": []}
    assert [e.step for e in events] == [1, 2, 3, 4, 5]
    assert {e.total for e in events} == {5}
    assert adapter.performance_calls == ids
    assert store.by_key()["2"]["Total Listing Views"] == 10


async def test_listing_without_performance_never_reaches_store(fake_sleep):
    adapter = FakeAdapter(
        [[domain_listing("1"), domain_listing("2"), domain_listing("3")]],
        {"1": domain_performance("1"), "3": domain_performance("3")},
    )
    store = InMemoryStore()
    logs = []

    result = await _orchestrator(adapter, store, fake_sleep, on_log=lambda lvl, m: logs.append(m)).run()

    assert result.summary.success_count == 2
    assert sorted(store.by_key()) == ["1", "3"]
    assert "No performance data for ListingID 2" in logs


async def test_left_join_mode_pushes_unmatched_listings(fake_sleep):
    adapter = FakeAdapter([[domain_listing("1"), domain_listing("2")]], {"1": domain_performance("1")})
    store = InMemoryStore()

    result = await _orchestrator(adapter, store, fake_sleep, join_mode="left-join-with-defaults").run()

    assert result.summary.success_count == 2
    assert store.by_key()["2"]["Total Listing Views"] == 0


async def test_empty_listing_collection_is_fatal(fake_sleep):
    adapter = FakeAdapter([[]])
    store = InMemoryStore()
    events = []

    with pytest.raises(SyncFailed) as ei:
        await _orchestrator(adapter, store, fake_sleep).run(events.append)

    assert "No listings" in ei.value.reason
    assert [e.step for e in events] == [1]
    assert store.calls == []


async def test_nothing_to_push_is_fatal(fake_sleep):
    adapter = FakeAdapter([[domain_listing("1")]], {})
    store = InMemoryStore()
    events = []

    with pytest.raises(SyncFailed):
        await _orchestrator(adapter, store, fake_sleep).run(events.append)

    assert [e.step for e in events] == [1, 2, 3]
    assert store.calls == []


async def test_partial_failure_is_reported_not_raised(tmp_path, fake_sleep):
    adapter = FakeAdapter(
        [[domain_listing("1"), domain_listing("2")]],
        {"1": domain_performance("1"), "2": domain_performance("2")},
    )
    store = FlakyStore({"1": [StoreRejected("transient")], "2": always_fail()})
    ledger_dir = tmp_path / "ledger"

    result = await _orchestrator(
        adapter, store, fake_sleep, ledger=FailedRecordsLedger(str(ledger_dir))
    ).run()

    assert result.status == RunStatus.partially_failed
    assert not result.ok
    summary = result.summary.as_dict()
    assert summary["successCount"] == 1
    assert summary["failedCount"] == 1
    assert summary["failedRecords"] == [{"listingId": "2", "error": "INVALID_VALUE_FOR_COLUMN"}]

    files = list(ledger_dir.iterdir())
    assert len(files) == 1
    assert str(files[0]) == result.ledger_path
    entries = json.loads(files[0].read_text(encoding="utf-8"))
    assert len(entries) == 1
    assert entries[0]["listingId"] == "2"


async def test_auth_expired_refreshes_credential_and_retries(fake_sleep, sleeps):
    adapter = FakeAdapter(
        [AuthExpired("401"), [domain_listing("1")]],
        {"1": domain_performance("1")},
    )

    result = await _orchestrator(adapter, InMemoryStore(), fake_sleep).run()

    assert result.status == RunStatus.completed
    assert adapter.credentials.invalidated == 1
    assert adapter.listing_calls == 2
    assert sleeps == []


async def test_unavailable_upstream_backs_off_then_gives_up(fake_sleep, sleeps):
    adapter = FakeAdapter([UpstreamUnavailable("dns")])

    with pytest.raises(SyncFailed) as ei:
        await _orchestrator(adapter, InMemoryStore(), fake_sleep, fetch_attempts=3).run()

    assert adapter.listing_calls == 3
    assert sleeps == [0.5, 1.0]
    assert "after 3 attempts" in ei.value.reason


async def test_server_error_is_retried(fake_sleep):
    adapter = FakeAdapter([UpstreamRejected(503, "busy"), [domain_listing("1")]], {"1": domain_performance("1")})
    result = await _orchestrator(adapter, InMemoryStore(), fake_sleep).run()
    assert result.status == RunStatus.completed


async def test_client_error_is_fatal_immediately(fake_sleep):
    adapter = FakeAdapter([UpstreamRejected(400, "bad request")])
    with pytest.raises(SyncFailed):
        await _orchestrator(adapter, InMemoryStore(), fake_sleep, fetch_attempts=5).run()
    assert adapter.listing_calls == 1


async def test_concurrent_performance_fetch_keeps_listing_order(fake_sleep):
    ids = [str(i) for i in range(8)]
    adapter = FakeAdapter([[domain_listing(i) for i in ids]], {i: domain_performance(i) for i in ids})
    store = FlakyStore()

    result = await _orchestrator(adapter, store, fake_sleep, performance_concurrency=4).run()

    assert result.summary.success_count == 8
    assert store.timeline == ids


async def test_progress_callback_errors_are_contained(fake_sleep):
    adapter = FakeAdapter([[domain_listing("1")]], {"1": domain_performance("1")})

    def _explode(event):
        raise RuntimeError("listener gone")

    result = await _orchestrator(adapter, InMemoryStore(), fake_sleep).run(_explode)
    assert result.status == RunStatus.completed
