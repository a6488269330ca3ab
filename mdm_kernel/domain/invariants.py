"""
Per-record data model invariants.

Services call ``enforce_request_invariants`` on every record they mutate,
just before flushing.  A violation raises ``InvariantViolationError`` and the
whole unit of work rolls back.  The checks read plain attributes, so they
work on ORM rows and test doubles alike.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from mdm_kernel.domain.values import CompanyStatus, RequestStatus
from mdm_kernel.exceptions import InvariantViolationError


class RequestInvariant(str, Enum):
    MASTER_UNLINKED = "master_unlinked"
    GOLDEN_CODED = "golden_coded"
    GOLDEN_LIVE = "golden_live"
    MERGE_TARGETED = "merge_targeted"
    MERGED_STATUS = "merged_status"
    TYPE_ORIGIN = "type_origin"


_LIVE_GOLDEN = {CompanyStatus.ACTIVE.value, CompanyStatus.BLOCKED.value}


def check_request_invariants(record: Any) -> list[tuple[RequestInvariant, str]]:
    """Return every violated invariant with a short detail; empty when sound."""
    violations: list[tuple[RequestInvariant, str]] = []

    if record.is_master and record.master_id is not None:
        violations.append(
            (RequestInvariant.MASTER_UNLINKED, f"master is linked to {record.master_id}")
        )

    if record.is_golden:
        if not record.golden_record_code:
            violations.append((RequestInvariant.GOLDEN_CODED, "golden record has no code"))
        if record.company_status not in _LIVE_GOLDEN:
            violations.append(
                (RequestInvariant.GOLDEN_LIVE, f"golden record is {record.company_status}")
            )

    if bool(record.is_merged) != (record.merged_into_id is not None):
        violations.append(
            (
                RequestInvariant.MERGE_TARGETED,
                f"is_merged={bool(record.is_merged)} merged_into_id={record.merged_into_id}",
            )
        )

    if record.is_merged and record.status != RequestStatus.MERGED.value:
        violations.append(
            (RequestInvariant.MERGED_STATUS, f"merged record has status {record.status}")
        )

    if not record.original_request_type:
        violations.append((RequestInvariant.TYPE_ORIGIN, "original request type is unset"))

    return violations


def enforce_request_invariants(record: Any) -> None:
    violations = check_request_invariants(record)
    if violations:
        invariant, detail = violations[0]
        raise InvariantViolationError(record.id, invariant.value, detail)
