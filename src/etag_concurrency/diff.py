"""Field-by-field comparison of proposed and stored values."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .outcomes import MISSING, ConflictReport, FieldConflict

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


def compute_conflict_report(
    key: str,
    proposed: Mapping[str, Any],
    current: Mapping[str, Any],
    *,
    etag_field: str | None = None,
    ignored_fields: Iterable[str] = (),
) -> ConflictReport:
    """Build a :class:`ConflictReport` listing every field that differs.

    Fields are visited in proposal order, then any fields only present in
    the stored document.  Equal values, ``etag_field`` and
    ``ignored_fields`` never appear in the report.  A field present on one
    side only is reported with :data:`MISSING` on the other.
    """
    skip = set(ignored_fields)
    if etag_field:
        skip.add(etag_field)

    names = list(proposed)
    names.extend(name for name in current if name not in proposed)

    conflicts = []
    for name in names:
        if name in skip:
            continue
        proposed_value = proposed.get(name, MISSING)
        current_value = current.get(name, MISSING)
        if proposed_value is MISSING and current_value is MISSING:
            continue
        if proposed_value is not MISSING and current_value is not MISSING:
            if proposed_value == current_value:
                continue
        conflicts.append(
            FieldConflict(field=name, current=current_value, proposed=proposed_value)
        )

    return ConflictReport(key=key, conflicts=tuple(conflicts))
