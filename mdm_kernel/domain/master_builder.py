"""
Master record construction from a duplicate group.

Pure functions used by both build and resubmission: resolve the
field-selection map into concrete values, assemble the provenance snapshot,
and derive a display name for contacts supplied without one.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from mdm_kernel.domain.dtos import ContactInput
from mdm_kernel.domain.fields import TRACKED_FIELDS, is_manual_id


def construct_master_fields(
    selected_fields: Mapping[str, str],
    records_by_id: Mapping[str, Mapping[str, Any]],
    *,
    manual_fields: Mapping[str, Any] | None = None,
    master_data: Mapping[str, Any] | None = None,
    manual_entry: str = "MANUAL_ENTRY",
    manual_prefix: str = "MANUAL_",
) -> dict[str, Any]:
    """
    Resolve the values of a new (or resubmitted) master record.

    Explicit ``master_data`` wins when it names a company.  Otherwise each
    selected field takes the manual value for the ``manual_entry`` sentinel,
    or the value held by the named source record.  Placeholder ids and ids
    outside the group contribute nothing.  Only tracked company fields are
    ever returned.
    """
    manual_fields = manual_fields or {}

    if master_data and master_data.get("first_name"):
        return {name: master_data[name] for name in TRACKED_FIELDS if name in master_data}

    values: dict[str, Any] = {}
    for name, source in selected_fields.items():
        if name not in TRACKED_FIELDS or not source:
            continue
        if source == manual_entry:
            values[name] = manual_fields.get(name, "")
        elif not is_manual_id(source, manual_prefix):
            record = records_by_id.get(source)
            if record is not None:
                values[name] = record.get(name)
    return values


def build_provenance(
    records: Iterable[Mapping[str, Any]],
    duplicate_ids: Iterable[str],
    quarantine_ids: Iterable[str],
    *,
    from_quarantine: bool = False,
    override: Mapping[str, Any] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """
    Snapshot of everything a master was built from.

    ``records`` are the group snapshots; only those linked or quarantined
    are kept.  A caller-supplied ``override`` replaces them (the builder UI
    may send its own view of the group).
    """
    true_duplicates = list(duplicate_ids)
    quarantine_records = list(quarantine_ids)
    contributing = {*true_duplicates, *quarantine_records}
    snapshots = list(override["records"]) if override and "records" in override else [
        dict(r) for r in records if r["id"] in contributing
    ]
    provenance = {
        "true_duplicates": true_duplicates,
        "quarantine_records": quarantine_records,
        "total_processed": len(true_duplicates) + len(quarantine_records),
        "from_quarantine": from_quarantine,
        "records": snapshots,
    }
    provenance.update(extra)
    return provenance


def contact_display_name(contact: ContactInput, index: int) -> str:
    """Name to store for a contact; falls back to email, job title, position."""
    if contact.name:
        return contact.name
    if contact.email:
        local_part = contact.email.split("@")[0]
        if local_part:
            return local_part
    if contact.job_title:
        return f"{contact.job_title} Contact"
    return f"Contact {index + 1}"
