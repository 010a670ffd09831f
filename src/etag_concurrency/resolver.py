"""ConflictResolver — ETag-conditioned saves with a bounded reconcile loop."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import replace
from typing import TYPE_CHECKING, Any, TypeVar

from .diff import compute_conflict_report
from .exceptions import DeadlineExceededError, EtagMismatchError, ValidationError
from .outcomes import SaveOutcome, SaveStatus
from .policies import ReconcileDecision

if TYPE_CHECKING:
    from collections.abc import Awaitable, Iterable

    from .outcomes import ConflictReport
    from .policies import ReconciliationPolicy
    from .ports import IDocumentStore
    from .records import SaveAttempt, VersionedRecord
    from .settings import ReconcileSettings

R = TypeVar("R")


class ConflictResolver:
    """
    Persist a record only if nobody else wrote it since it was read.

    The resolver holds no locks and no per-record state; concurrency is
    coordinated entirely through the store's conditional write.  It does
    not log: everything a caller needs to log or audit is on the returned
    :class:`SaveOutcome`.

    Usage:
        ```python
        resolver = ConflictResolver(store)

        outcome = await resolver.save(record.with_values(Street="A St"))
        if outcome.is_conflicted:
            for conflict in outcome.report.conflicts:
                ...

        outcome = await resolver.reconcile(
            SaveAttempt.of(record), always_overwrite, max_attempts=5
        )
        ```
    """

    def __init__(
        self,
        store: IDocumentStore,
        *,
        ignored_fields: Iterable[str] = (),
        call_timeout: float | None = None,
    ) -> None:
        """
        Args:
            store: Document store client performing the actual I/O.
            ignored_fields: Fields never reported as conflicting
                (e.g. server-maintained timestamps).
            call_timeout: Deadline in seconds for each individual store call.
        """
        if call_timeout is not None and call_timeout <= 0:
            raise ValueError("call_timeout must be > 0")
        self._store = store
        self._ignored_fields = frozenset(ignored_fields)
        self._call_timeout = call_timeout

    @classmethod
    def from_settings(
        cls, store: IDocumentStore, settings: ReconcileSettings
    ) -> ConflictResolver:
        return cls(
            store,
            ignored_fields=settings.ignored_fields,
            call_timeout=settings.call_timeout,
        )

    async def save(
        self, record: VersionedRecord, original_etag: str | None = None
    ) -> SaveOutcome:
        """Issue one conditional write of ``record.values``.

        The write only applies if the stored ETag still equals
        ``original_etag`` (defaults to ``record.etag``).

        Returns:
            ``COMMITTED`` with the new ETag, or ``CONFLICTED`` carrying the
            conflict report and the currently stored values and ETag.

        Raises:
            ValidationError: Empty key or no ETag to condition on.
            RecordNotFoundError: The key does not exist.
            StoreTransportError: The store is unreachable.
            DeadlineExceededError: A store call ran past ``call_timeout``.
        """
        self._validate(record)
        expected = original_etag if original_etag is not None else record.etag
        return await self._attempt(record, self._require_etag(expected), attempt=1)

    async def reconcile(
        self,
        attempt: SaveAttempt,
        policy: ReconciliationPolicy,
        max_attempts: int,
    ) -> SaveOutcome:
        """Save, consulting ``policy`` on every conflict, up to ``max_attempts``.

        ``ABORT`` returns the conflict as-is.  ``OVERWRITE_WITH_MINE`` moves
        the attempt's baseline to the stored ETag and writes the caller's
        proposed values again.  When the last permitted attempt conflicts
        the outcome has ``attempts_exhausted=True``.  A store call exceeding
        its deadline ends the loop with an ``ABORTED`` outcome.
        """
        if max_attempts < 1:
            raise ValidationError({"max_attempts": ["must be >= 1"]})
        self._validate(attempt.record)
        self._require_etag(attempt.original_etag)

        last: SaveOutcome | None = None
        for number in range(1, max_attempts + 1):
            try:
                outcome = await self._attempt(
                    attempt.record, attempt.original_etag, attempt=number
                )
            except DeadlineExceededError:
                return self._aborted(last, number)

            if outcome.is_committed:
                return outcome

            last = outcome
            if number == max_attempts:
                return replace(outcome, attempts_exhausted=True)

            report, current_etag = outcome.report, outcome.current_etag
            if report is None or current_etag is None:
                return outcome
            decision = await self._decide(policy, report)
            if decision is ReconcileDecision.ABORT:
                return outcome

            attempt = attempt.restamp(current_etag)

        raise AssertionError("unreachable")  # pragma: no cover

    async def force_overwrite(self, record: VersionedRecord) -> SaveOutcome:
        """Write ``record.values`` with no ETag check.

        Bypasses conflict detection entirely; whatever another writer
        committed in the meantime is replaced.
        """
        self._validate(record)
        new_etag = await self._call(
            "conditional_write",
            self._store.conditional_write(
                record.collection,
                record.key,
                record.values,
                None,
                partition_key=record.partition_key,
            ),
        )
        return SaveOutcome.committed(new_etag)

    # ── internals ────────────────────────────────────────────────

    async def _attempt(
        self, record: VersionedRecord, expected_etag: str, *, attempt: int
    ) -> SaveOutcome:
        try:
            new_etag = await self._call(
                "conditional_write",
                self._store.conditional_write(
                    record.collection,
                    record.key,
                    record.values,
                    expected_etag,
                    partition_key=record.partition_key,
                ),
            )
        except EtagMismatchError:
            return await self._conflict(record, attempt)
        return SaveOutcome.committed(new_etag, attempts=attempt)

    async def _conflict(self, record: VersionedRecord, attempt: int) -> SaveOutcome:
        current = await self._call(
            "read",
            self._store.read(
                record.collection, record.key, partition_key=record.partition_key
            ),
        )
        config = self._store.collection_config(record.collection)
        # Stores write the partition key into the document alongside the values
        proposed = dict(record.values)
        if config.partition_key_field and record.partition_key is not None:
            proposed[config.partition_key_field] = record.partition_key
        report = compute_conflict_report(
            record.key,
            proposed,
            current.values,
            etag_field=config.etag_field,
            ignored_fields=self._ignored_fields,
        )
        return SaveOutcome.conflicted(
            report, current.etag, current.values, attempts=attempt
        )

    async def _call(self, operation: str, awaitable: Awaitable[R]) -> R:
        if self._call_timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, self._call_timeout)
        except asyncio.TimeoutError as exc:
            raise DeadlineExceededError(operation, self._call_timeout) from exc

    @staticmethod
    async def _decide(
        policy: ReconciliationPolicy, report: ConflictReport
    ) -> ReconcileDecision:
        decision: Any = policy(report)
        if inspect.isawaitable(decision):
            decision = await decision
        return ReconcileDecision(decision)

    @staticmethod
    def _aborted(last: SaveOutcome | None, attempt: int) -> SaveOutcome:
        if last is None:
            return SaveOutcome(status=SaveStatus.ABORTED, attempts=attempt)
        return replace(last, status=SaveStatus.ABORTED, attempts=attempt)

    @staticmethod
    def _require_etag(etag: str | None) -> str:
        if not etag or not etag.strip():
            raise ValidationError(
                {"original_etag": ["an ETag is required for a conditional save"]}
            )
        return etag

    @staticmethod
    def _validate(record: VersionedRecord) -> None:
        errors: dict[str, list[str]] = {}
        if not record.key or not record.key.strip():
            errors["key"] = ["must not be empty"]
        if not record.collection:
            errors["collection"] = ["must not be empty"]
        if errors:
            raise ValidationError(errors)
