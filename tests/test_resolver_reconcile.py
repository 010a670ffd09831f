"""Tests for the bounded reconcile loop."""

from __future__ import annotations

import asyncio

import pytest

from etag_concurrency import (
    ConflictResolver,
    ReconcileDecision,
    RecordNotFoundError,
    SaveAttempt,
    SaveStatus,
    ValidationError,
    VersionedRecord,
    abort_on_fields,
    always_abort,
    always_overwrite,
)
from etag_concurrency.stores import InMemoryDocumentStore

from .conftest import ADDRESS, DRIVER, counting_etags


class ContendedStore(InMemoryDocumentStore):
    """Lets a competing writer commit right before each conditional write."""

    def __init__(self, *args, competing_writes: int = 0, **kwargs):
        super().__init__(*args, **kwargs)
        self.competing_writes = competing_writes
        self.conditional_writes = 0
        self.reads = 0

    async def conditional_write(
        self, collection, key, values, expected_etag, partition_key=None
    ):
        if expected_etag is not None:
            self.conditional_writes += 1
            if self.competing_writes > 0:
                self.competing_writes -= 1
                current = await super().read(collection, key, partition_key)
                await super().conditional_write(
                    collection,
                    key,
                    {**current.values, "Street": f"rival {self.competing_writes}"},
                    current.etag,
                    partition_key,
                )
        return await super().conditional_write(
            collection, key, values, expected_etag, partition_key
        )

    async def read(self, collection, key, partition_key=None):
        self.reads += 1
        return await super().read(collection, key, partition_key)


async def _seed(store):
    doc = await store.create(
        "Address",
        "Address-1",
        {"City": "Salt Lake City", "Street": "Course Road"},
        partition_key="Utah",
    )
    return VersionedRecord.from_document("Address", doc)


class TestReconcile:
    @pytest.mark.asyncio
    async def test_commits_without_conflict(self, resolver, address):
        attempt = SaveAttempt.of(address.with_values(Street="Mine St"))

        outcome = await resolver.reconcile(attempt, always_abort, max_attempts=3)

        assert outcome.is_committed
        assert outcome.attempts == 1

    @pytest.mark.asyncio
    async def test_abort_returns_conflict_and_leaves_store_alone(
        self, resolver, store, address
    ):
        await resolver.save(address.with_values(Street="A St"))
        before = await store.read("Address", "Address-1", partition_key="Utah")

        mine = address.with_values(Street="B St")
        outcome = await resolver.reconcile(
            SaveAttempt.of(mine), always_abort, max_attempts=5
        )

        assert outcome.status is SaveStatus.CONFLICTED
        assert outcome.attempts_exhausted is False
        assert outcome.attempts == 1
        after = await store.read("Address", "Address-1", partition_key="Utah")
        assert after == before
        # the caller's copy keeps the proposed values
        assert mine.values["Street"] == "B St"

    @pytest.mark.asyncio
    async def test_overwrite_restamps_and_writes_proposed_values(
        self, resolver, store, address
    ):
        await resolver.save(address.with_values(Street="A St", City="Provo"))

        outcome = await resolver.reconcile(
            SaveAttempt.of(address.with_values(Street="B St")),
            always_overwrite,
            max_attempts=2,
        )

        assert outcome.is_committed
        assert outcome.attempts == 2
        stored = await store.read("Address", "Address-1", partition_key="Utah")
        assert stored.values["Street"] == "B St"
        # proposed values win, the stored City is not merged in
        assert stored.values["City"] == "Salt Lake City"
        assert stored.etag == outcome.etag

    @pytest.mark.asyncio
    async def test_single_attempt_conflict_is_exhausted(self):
        store = ContendedStore(
            [ADDRESS, DRIVER], etag_factory=counting_etags(), competing_writes=1
        )
        record = await _seed(store)
        calls = []

        def policy(report):
            calls.append(report)
            return ReconcileDecision.OVERWRITE_WITH_MINE

        outcome = await ConflictResolver(store).reconcile(
            SaveAttempt.of(record.with_values(Street="Mine")), policy, max_attempts=1
        )

        assert outcome.is_conflicted
        assert outcome.attempts_exhausted is True
        assert store.conditional_writes == 1
        assert store.reads == 1
        assert calls == []

    @pytest.mark.parametrize("max_attempts", [2, 3, 5])
    @pytest.mark.asyncio
    async def test_bounded_contention_terminates_committed(self, max_attempts):
        store = ContendedStore(
            [ADDRESS, DRIVER],
            etag_factory=counting_etags(),
            competing_writes=max_attempts - 1,
        )
        record = await _seed(store)

        outcome = await ConflictResolver(store).reconcile(
            SaveAttempt.of(record.with_values(Street="Mine")),
            always_overwrite,
            max_attempts=max_attempts,
        )

        assert outcome.is_committed
        assert outcome.attempts == max_attempts
        assert store.conditional_writes == max_attempts
        stored = await store.read("Address", "Address-1", partition_key="Utah")
        assert stored.values["Street"] == "Mine"

    @pytest.mark.asyncio
    async def test_contention_beyond_budget_is_exhausted(self):
        store = ContendedStore(
            [ADDRESS, DRIVER], etag_factory=counting_etags(), competing_writes=3
        )
        record = await _seed(store)

        outcome = await ConflictResolver(store).reconcile(
            SaveAttempt.of(record.with_values(Street="Mine")),
            always_overwrite,
            max_attempts=3,
        )

        assert outcome.is_conflicted
        assert outcome.attempts_exhausted is True
        assert outcome.attempts == 3
        assert outcome.report.get("Street").proposed == "Mine"

    @pytest.mark.asyncio
    async def test_async_policy_is_awaited(self, resolver, address):
        await resolver.save(address.with_values(Street="A St"))

        async def policy(report):
            await asyncio.sleep(0)
            return ReconcileDecision.OVERWRITE_WITH_MINE

        outcome = await resolver.reconcile(
            SaveAttempt.of(address.with_values(Street="B St")), policy, max_attempts=2
        )

        assert outcome.is_committed

    @pytest.mark.asyncio
    async def test_field_guard_policy(self, resolver, address):
        await resolver.save(address.with_values(HouseNumber="99"))
        guard = abort_on_fields("HouseNumber")

        outcome = await resolver.reconcile(
            SaveAttempt.of(address.with_values(Street="B St")), guard, max_attempts=3
        )

        assert outcome.is_conflicted
        assert outcome.attempts_exhausted is False
        assert "HouseNumber" in outcome.report

    @pytest.mark.asyncio
    async def test_deadline_mid_loop_returns_aborted(self, address):
        class StallingStore(InMemoryDocumentStore):
            stall = False

            async def conditional_write(self, *args, **kwargs):
                if self.stall:
                    await asyncio.sleep(1)
                return await super().conditional_write(*args, **kwargs)

        store = StallingStore([ADDRESS, DRIVER], etag_factory=counting_etags())
        record = await _seed(store)
        resolver = ConflictResolver(store, call_timeout=0.05)
        await resolver.save(record.with_values(Street="A St"))

        def policy(report):
            store.stall = True
            return ReconcileDecision.OVERWRITE_WITH_MINE

        outcome = await resolver.reconcile(
            SaveAttempt.of(record.with_values(Street="B St")), policy, max_attempts=3
        )

        assert outcome.status is SaveStatus.ABORTED
        assert outcome.attempts == 2
        assert outcome.report.get("Street").current == "A St"

    @pytest.mark.asyncio
    async def test_deleted_record_raises_not_found(self, resolver, store, address):
        await store.delete("Address", "Address-1", partition_key="Utah")

        with pytest.raises(RecordNotFoundError):
            await resolver.reconcile(
                SaveAttempt.of(address), always_overwrite, max_attempts=3
            )

    @pytest.mark.asyncio
    async def test_invalid_max_attempts_rejected(self, resolver, address):
        with pytest.raises(ValidationError, match="max_attempts"):
            await resolver.reconcile(SaveAttempt.of(address), always_abort, 0)

    @pytest.mark.asyncio
    async def test_policy_returning_garbage_raises(self, resolver, address):
        await resolver.save(address.with_values(Street="A St"))

        with pytest.raises(ValueError):
            await resolver.reconcile(
                SaveAttempt.of(address.with_values(Street="B St")),
                lambda report: "MAYBE",
                max_attempts=2,
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("etag", ["", "   "])
    async def test_blank_original_etag_rejected(self, resolver, store, address, etag):
        attempt = SaveAttempt(record=address, original_etag=etag)

        with pytest.raises(ValidationError, match="original_etag"):
            await resolver.reconcile(attempt, always_overwrite, 3)

        assert (await store.read("Address", "Address-1", "Utah")).etag == "v1"

    @pytest.mark.asyncio
    async def test_partition_guard_does_not_fire_on_unchanged_partition(
        self, resolver, address
    ):
        await resolver.save(address.with_values(Street="A St"))
        values = {k: v for k, v in address.values.items() if k != "State"}
        attempt = SaveAttempt.of(
            address.model_copy(update={"values": {**values, "Street": "B St"}})
        )

        outcome = await resolver.reconcile(attempt, abort_on_fields("State"), 2)

        assert outcome.is_committed
        assert outcome.attempts == 2
