# tests/test_reconcile.py
import json

import httpx

from listingsync.adapters.stores.airtable import AirtableStore
from listingsync.adapters.stores.memory import InMemoryStore
from listingsync.domain.errors import RateLimited, StoreRejected
from listingsync.domain.types import LogLevel, UpsertOutcome
from listingsync.service_layer.ledger import FailedRecordsLedger
from listingsync.service_layer.reconcile import Reconciler

from fakes import FlakyStore, always_fail


def _records(*ids):
    return [{"ListingID": i, "Price": 1.0} for i in ids]


async def test_creates_then_updates_without_duplicates(fake_sleep):
    store = InMemoryStore()
    rec = Reconciler(store, sleep=fake_sleep)

    first = await rec.upsert_batch(_records("a", "b", "c"))
    second = await rec.upsert_batch(_records("a", "b", "c"))

    assert first.success_count == 3
    assert [o.outcome for o in first.outcomes] == [UpsertOutcome.created] * 3
    assert [o.outcome for o in second.outcomes] == [UpsertOutcome.updated] * 3
    assert len(store.records) == 3
    assert sorted(store.by_key()) == ["a", "b", "c"]


async def test_one_bad_record_does_not_affect_the_others(fake_sleep):
    store = FlakyStore({"b": always_fail()})
    summary = await Reconciler(store, sleep=fake_sleep).upsert_batch(_records("a", "b", "c"))

    assert summary.success_count == 2
    assert summary.failed_count == 1
    assert [fr.listing_id for fr in summary.failed_records] == ["b"]
    assert sorted(store.by_key()) == ["a", "c"]
    # pass 1 in order, then the single retry of b
    assert store.timeline == ["a", "b", "c", "b"]


async def test_record_that_succeeds_on_retry_counts_as_success(fake_sleep):
    store = FlakyStore({"a": [StoreRejected("boom")]})
    summary = await Reconciler(store, sleep=fake_sleep).upsert_batch(_records("a", "b"))

    assert summary.success_count == 2
    assert summary.failed_count == 0
    assert summary.failed_records == []
    assert summary.outcomes[0].outcome == UpsertOutcome.created


async def test_rate_limit_pauses_before_next_record(sleeps):
    store = FlakyStore({"a": [RateLimited(2)]})
    order = []

    async def _sleep(seconds):
        order.append(("sleep", seconds))
        sleeps.append(seconds)

    orig_find = store.find

    async def _find(key):
        order.append(("find", key))
        return await orig_find(key)

    store.find = _find

    summary = await Reconciler(store, sleep=_sleep).upsert_batch(_records("a", "b"))

    assert summary.success_count == 2
    assert order[:3] == [("find", "a"), ("sleep", 2.0), ("find", "b")]


async def test_rate_limit_pause_is_at_least_one_second(sleeps, fake_sleep):
    store = FlakyStore({"a": [RateLimited(0)]})
    await Reconciler(store, sleep=fake_sleep).upsert_batch(_records("a"))
    assert sleeps == [1.0]


async def test_missing_listing_id_fails_without_store_call(fake_sleep):
    store = InMemoryStore()
    summary = await Reconciler(store, sleep=fake_sleep).upsert_batch([{"Price": 1.0}, {"ListingID": "z"}])

    assert summary.failed_count == 1
    assert summary.success_count == 1
    assert store.calls == [("find", "z"), ("create", "z")]


async def test_permanent_failures_go_to_ledger(tmp_path, fake_sleep):
    store = FlakyStore({"b": always_fail()})
    ledger = FailedRecordsLedger(str(tmp_path / "ledger"))
    logged = []

    summary = await Reconciler(
        store,
        source="domain",
        ledger=ledger,
        sleep=fake_sleep,
        on_log=lambda level, msg: logged.append((level, msg)),
    ).upsert_batch(_records("a", "b"))

    assert summary.ledger_path is not None
    assert summary.ledger_path.startswith(str(tmp_path / "ledger"))
    assert "domain_failed_" in summary.ledger_path

    with open(summary.ledger_path, encoding="utf-8") as f:
        entries = json.load(f)
    assert entries == [
        {"listingId": "b", "fields": {"ListingID": "b", "Price": 1.0}, "error": "INVALID_VALUE_FOR_COLUMN"}
    ]
    assert any(level == LogLevel.error and "b" in msg for level, msg in logged)


async def test_no_ledger_when_everything_succeeds(tmp_path, fake_sleep):
    ledger_dir = tmp_path / "ledger"
    summary = await Reconciler(
        InMemoryStore(), ledger=FailedRecordsLedger(str(ledger_dir)), sleep=fake_sleep
    ).upsert_batch(_records("a"))

    assert summary.ledger_path is None
    assert not ledger_dir.exists()


async def test_broken_log_sink_does_not_break_upserts(fake_sleep):
    def _explode(level, msg):
        raise RuntimeError("sink down")

    summary = await Reconciler(InMemoryStore(), on_log=_explode, sleep=fake_sleep).upsert_batch(_records("a"))
    assert summary.success_count == 1


async def test_unexpected_store_error_stays_with_its_record(fake_sleep):
    store = FlakyStore({"b": [RuntimeError("store bug"), RuntimeError("store bug")]})
    logged = []

    summary = await Reconciler(
        store, sleep=fake_sleep, on_log=lambda level, msg: logged.append((level, msg))
    ).upsert_batch(_records("a", "b", "c"))

    assert store.timeline == ["a", "b", "c", "b"]
    assert summary.success_count == 2
    assert [fr.listing_id for fr in summary.failed_records] == ["b"]
    assert "store bug" in summary.failed_records[0].error
    assert any(level == LogLevel.error and "ListingID b" in msg for level, msg in logged)


async def test_non_json_store_reply_fails_one_record_only(fake_sleep):
    posted = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"records": []})
        key = json.loads(request.content)["records"][0]["fields"]["ListingID"]
        posted.append(key)
        if key == "b":
            return httpx.Response(200, text="<html>gateway</html>")
        return httpx.Response(200, json={"records": [{"id": f"rec{key}"}]})

    store = AirtableStore(api_key="k", base_id="app", table="t", transport=httpx.MockTransport(handler))
    summary = await Reconciler(store, sleep=fake_sleep).upsert_batch(_records("a", "b", "c"))

    assert posted == ["a", "b", "c", "b"]
    assert summary.success_count == 2
    assert summary.failed_count == 1
    assert "non-JSON" in summary.failed_records[0].error
