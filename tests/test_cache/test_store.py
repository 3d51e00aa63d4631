"""Tests for CacheStore: merge-on-write, freshness, key isolation."""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from autodata.cache import CacheEntry, CacheStore, MemoryBackend
from autodata.engine.merger import SourceMerger
from autodata.errors import CacheUnavailable
from autodata.record import FieldValue, VehicleRecord

TRUST = {"dvla": 3, "mot_history": 3, "vehicle_specs": 2, "valuation": 2, "history_check": 2}

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class BrokenBackend:
    async def get(self, key: str) -> dict[str, Any] | None:
        raise OSError("disk on fire")

    async def put(self, key: str, payload: dict[str, Any]) -> None:
        raise OSError("disk on fire")

    async def keys(self) -> list[str]:
        return []


class SlowBackend(MemoryBackend):
    """Yields control inside get/put so concurrent writers interleave."""

    async def get(self, key):
        await asyncio.sleep(0.01)
        return await super().get(key)

    async def put(self, key, payload):
        await asyncio.sleep(0.01)
        await super().put(key, payload)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> CacheStore:
    return CacheStore(MemoryBackend(), merger=SourceMerger(TRUST), clock=clock)


def _rec(**fields: tuple[Any, str]) -> VehicleRecord:
    return VehicleRecord({
        path.replace("__", "."): FieldValue(*value) for path, value in fields.items()
    })


class TestReadWrite:
    @pytest.mark.asyncio
    async def test_missing_key_returns_none(self, store):
        assert await store.read("AB12CDE") is None

    @pytest.mark.asyncio
    async def test_write_then_read(self, store):
        await store.write("AB12CDE", _rec(identification__make=("FORD", "dvla")), ["dvla"])

        entry = await store.read("AB12CDE")

        assert entry.key == "AB12CDE"
        assert entry.record.get("identification.make") == FieldValue("FORD", "dvla")
        assert entry.providers_consulted == frozenset({"dvla"})
        assert entry.last_refreshed_at == NOW

    @pytest.mark.asyncio
    async def test_keys_normalized(self, store):
        await store.write("ab12 cde", _rec(identification__make=("FORD", "dvla")), "dvla")

        assert await store.read("AB12CDE") is not None
        assert await store.read(" Ab12Cde ") is not None
        assert await store.backend.keys() == ["AB12CDE"]


class TestMergeOnWrite:
    """Writes never erase what they do not mention."""

    @pytest.mark.asyncio
    async def test_partial_write_keeps_existing_fields(self, store):
        await store.write("AB12CDE", _rec(
            identification__make=("FORD", "dvla"),
            history__previous_owners=(3, "history_check"),
        ), ["dvla", "history_check"])

        await store.write("AB12CDE", _rec(
            running_costs__combined_mpg=(55.4, "vehicle_specs"),
        ), ["vehicle_specs"])

        entry = await store.read("AB12CDE")
        assert entry.record.value("identification.make") == "FORD"
        assert entry.record.value("history.previous_owners") == 3
        assert entry.record.value("running_costs.combined_mpg") == 55.4
        assert entry.providers_consulted == {"dvla", "history_check", "vehicle_specs"}

    @pytest.mark.asyncio
    async def test_lower_tier_never_clobbers_higher(self, store):
        await store.write("AB12CDE", _rec(identification__colour=("Silver", "dvla")), "dvla")
        await store.write(
            "AB12CDE", _rec(identification__colour=("Grey", "vehicle_specs")), "vehicle_specs"
        )

        entry = await store.read("AB12CDE")
        assert entry.record.get("identification.colour") == FieldValue("Silver", "dvla")

    @pytest.mark.asyncio
    async def test_same_tier_refreshes_value(self, store):
        await store.write("AB12CDE", _rec(valuation__private_price=(5000, "valuation")), "valuation")
        await store.write("AB12CDE", _rec(valuation__private_price=(4800, "valuation")), "valuation")

        entry = await store.read("AB12CDE")
        assert entry.record.value("valuation.private_price") == 4800

    @pytest.mark.asyncio
    async def test_write_stamps_refresh_time(self, store, clock):
        await store.write("AB12CDE", _rec(identification__make=("FORD", "dvla")), "dvla")
        clock.now = NOW + timedelta(days=3)

        entry = await store.write("AB12CDE", _rec(identification__model=("FOCUS", "vehicle_specs")), "vehicle_specs")

        assert entry.last_refreshed_at == NOW + timedelta(days=3)

    @pytest.mark.asyncio
    async def test_write_over_cold_entry_replaces_it(self, store, clock):
        await store.write("AB12CDE", _rec(
            valuation__private_price=(5000, "valuation"),
        ), "valuation")
        clock.now = NOW + timedelta(days=31)

        entry = await store.write("AB12CDE", _rec(
            identification__make=("FORD", "dvla"),
        ), "dvla")

        assert "valuation.private_price" not in entry.record
        assert entry.record.value("identification.make") == "FORD"
        assert entry.providers_consulted == {"dvla"}
        assert store.is_fresh(entry)

    @pytest.mark.asyncio
    async def test_concurrent_writes_same_key_both_survive(self, clock):
        store = CacheStore(SlowBackend(), merger=SourceMerger(TRUST), clock=clock)

        await asyncio.gather(
            store.write("AB12CDE", _rec(identification__make=("FORD", "dvla")), "dvla"),
            store.write("AB12CDE", _rec(history__previous_owners=(2, "history_check")), "history_check"),
            store.write("AB12CDE", _rec(running_costs__combined_mpg=(50.1, "vehicle_specs")), "vehicle_specs"),
        )

        entry = await store.read("AB12CDE")
        assert len(entry.record) == 3
        assert entry.providers_consulted == {"dvla", "history_check", "vehicle_specs"}

    @pytest.mark.asyncio
    async def test_concurrent_writes_different_keys_isolated(self, clock):
        store = CacheStore(SlowBackend(), merger=SourceMerger(TRUST), clock=clock)

        await asyncio.gather(
            store.write("AB12CDE", _rec(identification__make=("FORD", "dvla")), "dvla"),
            store.write("BG22UCP", _rec(identification__make=("BMW", "dvla")), "dvla"),
        )

        assert (await store.read("AB12CDE")).record.value("identification.make") == "FORD"
        assert (await store.read("BG22UCP")).record.value("identification.make") == "BMW"


class TestFreshness:
    @pytest.mark.asyncio
    async def test_fresh_within_ttl(self, store, clock):
        entry = await store.write("AB12CDE", _rec(identification__make=("FORD", "dvla")), "dvla")

        clock.now = NOW + timedelta(days=30)
        assert store.is_fresh(entry)

        clock.now = NOW + timedelta(days=30, seconds=1)
        assert not store.is_fresh(entry)

    def test_entry_age(self):
        entry = CacheEntry("AB12CDE", VehicleRecord(), NOW, frozenset())
        assert entry.age(NOW + timedelta(hours=5)) == timedelta(hours=5)
        assert entry.is_fresh(NOW + timedelta(days=1), ttl=timedelta(days=2))

    def test_payload_round_trip(self):
        entry = CacheEntry(
            "AB12CDE",
            _rec(identification__make=("FORD", "dvla"), history__is_stolen=(False, "history_check")),
            NOW,
            frozenset({"dvla", "history_check"}),
        )
        assert CacheEntry.from_payload(entry.to_payload()) == entry


class TestDegradedBackend:
    @pytest.mark.asyncio
    async def test_read_failure_wrapped(self):
        store = CacheStore(BrokenBackend())
        with pytest.raises(CacheUnavailable, match="read failed"):
            await store.read("AB12CDE")

    @pytest.mark.asyncio
    async def test_write_failure_wrapped(self):
        store = CacheStore(BrokenBackend())
        with pytest.raises(CacheUnavailable):
            await store.write("AB12CDE", _rec(identification__make=("FORD", "dvla")), "dvla")
