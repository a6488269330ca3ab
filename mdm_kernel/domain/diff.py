"""
Field, contact and document change detection.

Produces the ``ChangeEntry`` lists stored in CREATE and UPDATE payloads and
read back by the lineage view.  Contact reconciliation is planned here once
and applied by the workflow service; nothing downstream re-infers whether a
contact was inserted, updated or deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from mdm_kernel.domain.dtos import ContactInput, ContactOp, DocumentInput
from mdm_kernel.domain.events import ChangeEntry, ChangeKind
from mdm_kernel.domain.fields import (
    CONTACT_CHANGE_PREFIX,
    CONTACT_FIELDS,
    DOCUMENT_CHANGE_PREFIX,
    TRACKED_FIELDS,
    display_name,
)
from mdm_kernel.exceptions import InvalidCommandError, UnknownContactError


def _norm(value: Any) -> Any:
    return None if value == "" else value


def diff_fields(
    before: Mapping[str, Any] | None,
    after: Mapping[str, Any],
    *,
    only_supplied: bool = True,
    tracked: Iterable[str] = TRACKED_FIELDS,
) -> list[ChangeEntry]:
    """
    Field-level diff over the tracked fields.

    With ``only_supplied`` a field absent from ``after`` is not a change
    (partial update); otherwise absence means "cleared".  Empty string and
    None compare equal.
    """
    before = before or {}
    changes = []
    for name in tracked:
        if only_supplied and name not in after:
            continue
        old, new = _norm(before.get(name)), _norm(after.get(name))
        if old != new:
            changes.append(
                ChangeEntry(
                    field=name,
                    old_value=old,
                    new_value=new,
                    kind=ChangeKind.FIELD,
                    field_name=display_name(name),
                )
            )
    return changes


def contact_string(contact: Mapping[str, Any]) -> str:
    """All contact fields joined with `` | ``; empty fields stay as blanks."""
    return " | ".join(str(contact.get(name) or "") for name in CONTACT_FIELDS)


def document_change(document: DocumentInput) -> ChangeEntry:
    return ChangeEntry(
        field=f"{DOCUMENT_CHANGE_PREFIX}{document.name}",
        old_value=None,
        new_value=document.name,
        kind=ChangeKind.DOCUMENT,
    )


@dataclass(frozen=True)
class ContactPlanStep:
    """One resolved contact operation."""

    op: ContactOp
    contact_id: str | None
    before: Mapping[str, Any] | None
    after: Mapping[str, Any] | None
    source_input: ContactInput | None = None

    def change(self) -> ChangeEntry | None:
        """Lineage entry for this step, or None when an update changed nothing."""
        old = contact_string(self.before) if self.before is not None else None
        new = contact_string(self.after) if self.after is not None else None
        if self.op is ContactOp.UPDATE and old == new:
            return None
        label = (self.after or self.before or {}).get("name") or "Unnamed"
        return ChangeEntry(
            field=f"{CONTACT_CHANGE_PREFIX}{label}",
            old_value=old,
            new_value=new,
            kind=ChangeKind.CONTACT,
        )


def plan_contact_changes(
    request_id: str,
    existing: Sequence[Mapping[str, Any]],
    incoming: Sequence[ContactInput],
) -> list[ContactPlanStep]:
    """
    Reconcile a supplied contact list against the stored contacts.

    ``existing`` rows are snapshots with an ``id`` key.  Explicit ops are
    honoured as given; untagged inputs become updates when their id is owned
    by the request and inserts otherwise.  Stored contacts the list does not
    mention are deleted.
    """
    by_id = {str(row["id"]): row for row in existing}
    touched: set[str] = set()
    steps: list[ContactPlanStep] = []

    for item in incoming:
        op = item.op
        if op is None:
            op = ContactOp.UPDATE if item.id in by_id else ContactOp.INSERT

        if op is ContactOp.INSERT:
            steps.append(ContactPlanStep(op, None, None, item.values(), item))
            continue

        if item.id is None:
            raise InvalidCommandError("update", f"contact {op.value} requires an id")
        if item.id not in by_id:
            raise UnknownContactError(request_id, item.id)

        touched.add(item.id)
        before = by_id[item.id]
        if op is ContactOp.UPDATE:
            steps.append(ContactPlanStep(op, item.id, before, item.values(), item))
        else:
            steps.append(ContactPlanStep(op, item.id, before, None, item))

    for contact_id, row in by_id.items():
        if contact_id not in touched:
            steps.append(ContactPlanStep(ContactOp.DELETE, contact_id, row, None))

    return steps
