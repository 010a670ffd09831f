from pytest_archon import archrule


def test_resolver_core_is_store_agnostic() -> None:
    """
    The resolver and its value types only talk to the IDocumentStore port.
    They must not reach into concrete stores or the Mongo driver.
    """
    for module in (
        "etag_concurrency.resolver",
        "etag_concurrency.records",
        "etag_concurrency.outcomes",
        "etag_concurrency.diff",
        "etag_concurrency.policies",
        "etag_concurrency.ports",
    ):
        (
            archrule(f"{module}_is_store_agnostic")
            .match(module)
            .should_not_import("etag_concurrency.stores*")
            .should_not_import("etag_concurrency.connection")
            .should_not_import("motor*")
            .should_not_import("pymongo*")
            .check("etag_concurrency")
        )


def test_memory_store_has_no_driver_dependency() -> None:
    (
        archrule("memory_store_independence")
        .match("etag_concurrency.stores.memory")
        .should_not_import("motor*")
        .should_not_import("pymongo*")
        .check("etag_concurrency")
    )


def test_stores_do_not_depend_on_resolver() -> None:
    """
    Stores sit below the resolver; the dependency only points one way.
    """
    (
        archrule("stores_below_resolver")
        .match("etag_concurrency.stores*")
        .should_not_import("etag_concurrency.resolver")
        .should_not_import("etag_concurrency.policies")
        .check("etag_concurrency", only_direct_imports=True)
    )
