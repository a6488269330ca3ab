"""
Request enumerations and the acting-party value object.

Pure value types shared by models, services and selectors.  Enum values are
the literal strings stored in the database and shown to users.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    QUARANTINE = "Quarantine"
    DUPLICATE = "Duplicate"
    NEW = "New"
    DRAFT = "Draft"
    LINKED = "Linked"
    MERGED = "Merged"


class ComplianceStatus(str, Enum):
    APPROVED = "Approved"
    UNDER_REVIEW = "Under Review"
    SUPERSEDED = "Superseded"


class CompanyStatus(str, Enum):
    ACTIVE = "Active"
    BLOCKED = "Blocked"
    SUPERSEDED = "Superseded"


class RequestType(str, Enum):
    NEW = "new"
    DUPLICATE = "duplicate"
    QUARANTINE = "quarantine"
    GOLDEN = "golden"


class Origin(str, Enum):
    DATA_ENTRY = "dataEntry"
    GOLDEN_EDIT = "goldenEdit"
    QUARANTINE = "quarantine"
    MASTER_BUILDER = "masterBuilder"


TERMINAL_STATUSES: frozenset[RequestStatus] = frozenset({RequestStatus.MERGED})

# Statuses a record may sit in while it is still a duplicate candidate.
DUPLICATE_CANDIDATE_STATUSES: frozenset[RequestStatus] = frozenset(
    {RequestStatus.DUPLICATE, RequestStatus.NEW, RequestStatus.DRAFT}
)


@dataclass(frozen=True)
class Actor:
    """Who performed a command: a user name and the role they acted in."""

    name: str
    role: str

    def __str__(self) -> str:
        return f"{self.name} ({self.role})"
