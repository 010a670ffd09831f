"""
Two writers racing on the same document.

Both read ``Address-1`` with the same ETag. The first save commits and
changes the ETag; the second save is rejected and gets back a conflict
report describing which fields disagree. The second writer then reconciles
with a policy that overwrites unless the house number is contested.

Every store call is logged as a JSON line through ``LoggingHook``.
"""

import asyncio
import logging

from etag_concurrency import (
    CollectionConfig,
    ConflictResolver,
    HookRegistry,
    SaveAttempt,
    VersionedRecord,
    abort_on_fields,
)
from etag_concurrency.stores import (
    InMemoryDocumentStore,
    InstrumentedDocumentStore,
    LoggingHook,
)

ADDRESS = CollectionConfig(
    name="Address", etag_field="CustomETag", partition_key_field="State"
)

# ── Set up the store ─────────────────────────────────────────────────


async def seed(store: InMemoryDocumentStore) -> VersionedRecord:
    doc = await store.create(
        "Address",
        "Address-1",
        {"City": "Salt Lake City", "Street": "Course Road", "HouseNumber": "1234"},
        partition_key="Utah",
    )
    return VersionedRecord.from_document("Address", doc)


# ── Run the race ─────────────────────────────────────────────────────


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(name)s %(message)s")

    inner = InMemoryDocumentStore([ADDRESS])
    registry = HookRegistry()
    registry.register(LoggingHook(), operations=["docstore.*"])
    store = InstrumentedDocumentStore(inner, registry)
    resolver = ConflictResolver(store)

    original = await seed(inner)
    print(f"Read Address-1 with ETag {original.etag}")

    first = await resolver.save(original.with_values(Street="A St"))
    print(f"Writer 1: {first.status.value} (new ETag {first.etag})")

    second = await resolver.save(original.with_values(Street="B St"))
    print(f"Writer 2: {second.status.value}")
    assert second.report is not None
    for conflict in second.report.conflicts:
        print(
            f"  {conflict.field}: stored={conflict.current!r} "
            f"mine={conflict.proposed!r}"
        )

    outcome = await resolver.reconcile(
        SaveAttempt.of(original.with_values(Street="B St")),
        abort_on_fields("HouseNumber"),
        max_attempts=3,
    )
    print(
        f"Reconcile: {outcome.status.value} after {outcome.attempts} attempt(s)"
    )

    final = await inner.read("Address", "Address-1", "Utah")
    print(f"Stored Street is now {final.values['Street']!r}")


if __name__ == "__main__":
    asyncio.run(main())
