"""Shared fixtures: an address/driver document store and a resolver over it."""

from __future__ import annotations

import itertools

import pytest

from etag_concurrency import (
    CollectionConfig,
    ConflictResolver,
    VersionedRecord,
)
from etag_concurrency.stores import InMemoryDocumentStore

ADDRESS = CollectionConfig(
    name="Address", etag_field="CustomETag", partition_key_field="State"
)
DRIVER = CollectionConfig(name="Driver")


def counting_etags(prefix: str = "v"):
    """ETag factory yielding v1, v2, v3, ... in issue order."""
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


@pytest.fixture
def store():
    return InMemoryDocumentStore([ADDRESS, DRIVER], etag_factory=counting_etags())


@pytest.fixture
def resolver(store):
    return ConflictResolver(store)


@pytest.fixture
async def address(store):
    """Address-1 stored with ETag ``v1``, read back as a record."""
    doc = await store.create(
        "Address",
        "Address-1",
        {
            "City": "Salt Lake City",
            "Street": "Course Road",
            "HouseNumber": "1234",
        },
        partition_key="Utah",
    )
    return VersionedRecord.from_document("Address", doc)


@pytest.fixture
def mongo_connection():
    """A connection manager wired to an in-process mongomock client."""
    from mongomock_motor import AsyncMongoMockClient

    from etag_concurrency.connection import MongoConnectionManager

    return MongoConnectionManager(
        "mongodb://mock:27017/test_db", client=AsyncMongoMockClient()
    )


@pytest.fixture
def mongo_store(mongo_connection):
    from etag_concurrency.stores.mongo import MongoDocumentStore

    return MongoDocumentStore(
        mongo_connection, [ADDRESS, DRIVER], etag_factory=counting_etags()
    )
