"""
Typed Exception Hierarchy for the Master Data Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an HTTP layer, a batch job, a test) must react to a failure by
its category, never by parsing its message:

    try:
        commands.complete_quarantine(request_id, actor)
    except NotFoundError as e:          # 404-style answer
        respond(status=404, code=e.code)
    except InvalidStateError as e:      # conflict-style answer
        respond(status=409, code=e.code, detail=str(e))

Every exception carries:
  1. A class-level CODE (machine-readable, API-safe)
  2. A KIND shared by its whole category (see ``ErrorKind``)
  3. Structured attributes (request ids, statuses, field names)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MdmKernelError (base)
    |
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- MasterRecordNotFoundError
    |   +-- DuplicateGroupNotFoundError
    |
    +-- InvalidStateError
    |   +-- InvalidTransitionError
    |   +-- NotInQuarantineError
    |   +-- NotGoldenRecordError
    |   +-- AlreadyGoldenError
    |   +-- GoldenRecordSupersededError
    |   +-- InvariantViolationError
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- InvalidCommandError
    |   +-- UnknownContactError
    |
    +-- StorageFailureError
    |   +-- GoldenCodeGenerationError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind            | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
not_found       | REQUEST_NOT_FOUND           | Request id does not exist
                | MASTER_RECORD_NOT_FOUND     | Merge/group target missing or not a master
                | DUPLICATE_GROUP_NOT_FOUND   | No non-merged records share the tax number
----------------|-----------------------------|-----------------------------------------
invalid_state   | INVALID_TRANSITION          | Workflow forbids the action from this status
                | NOT_IN_QUARANTINE           | Completing a record that is not quarantined
                | NOT_GOLDEN_RECORD           | Golden edit of a non-golden source
                | ALREADY_GOLDEN              | Second compliance decision on a golden record
                | GOLDEN_RECORD_SUPERSEDED    | Predecessor no longer golden at decision time
                | INVARIANT_VIOLATION         | Record left in an inconsistent shape
----------------|-----------------------------|-----------------------------------------
validation      | MISSING_FIELD               | Required command input absent
                | INVALID_COMMAND             | Command input malformed
                | UNKNOWN_CONTACT             | Contact id not owned by the request
----------------|-----------------------------|-----------------------------------------
storage_failure | STORAGE_FAILURE             | Underlying database error
                | GOLDEN_CODE_GENERATION      | No free golden code within the retry bound
----------------|-----------------------------|-----------------------------------------
concurrency     | CONCURRENT_MODIFICATION     | Row changed by another transaction
----------------|-----------------------------|-----------------------------------------
(immutability)  | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of a workflow event row
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Coarse failure categories callers branch on."""

    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    VALIDATION = "validation"
    STORAGE_FAILURE = "storage_failure"
    CONCURRENCY = "concurrency"
    IMMUTABILITY = "immutability"


class MdmKernelError(Exception):
    """Base exception for all master data kernel errors."""

    code: str = "MDM_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.INVALID_STATE


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(MdmKernelError):
    """Base for lookups that resolved to nothing."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class RequestNotFoundError(NotFoundError):
    """Request id does not exist."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


class MasterRecordNotFoundError(NotFoundError):
    """Target id does not exist or is not flagged as a master."""

    code: str = "MASTER_RECORD_NOT_FOUND"

    def __init__(self, master_id: str):
        self.master_id = master_id
        super().__init__(f"Master record not found: {master_id}")


class DuplicateGroupNotFoundError(NotFoundError):
    """No non-merged records share the tax number."""

    code: str = "DUPLICATE_GROUP_NOT_FOUND"

    def __init__(self, tax_number: str):
        self.tax_number = tax_number
        super().__init__(f"No records found for tax number: {tax_number}")


# =============================================================================
# Invalid state
# =============================================================================


class InvalidStateError(MdmKernelError):
    """Base for operations illegal in the record's current state."""

    code: str = "INVALID_STATE"
    kind: ErrorKind = ErrorKind.INVALID_STATE


class InvalidTransitionError(InvalidStateError):
    """The request workflow has no transition for this action and status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, request_id: str, from_status: str, action: str):
        self.request_id = request_id
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Cannot {action} request {request_id} from status {from_status}"
        )


class NotInQuarantineError(InvalidStateError):
    """Quarantine completion attempted on a record outside Quarantine."""

    code: str = "NOT_IN_QUARANTINE"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Request {request_id} is not in quarantine (status: {status})"
        )


class NotGoldenRecordError(InvalidStateError):
    """A golden edit referenced a record that is not golden."""

    code: str = "NOT_GOLDEN_RECORD"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request {request_id} is not a golden record")


class AlreadyGoldenError(InvalidStateError):
    """Compliance decision on a record that already carries a golden code."""

    code: str = "ALREADY_GOLDEN"

    def __init__(self, request_id: str, golden_record_code: str | None):
        self.request_id = request_id
        self.golden_record_code = golden_record_code
        super().__init__(
            f"Request {request_id} is already golden ({golden_record_code})"
        )


class GoldenRecordSupersededError(InvalidStateError):
    """The predecessor golden record was superseded before this decision."""

    code: str = "GOLDEN_RECORD_SUPERSEDED"

    def __init__(self, predecessor_id: str, request_id: str):
        self.predecessor_id = predecessor_id
        self.request_id = request_id
        super().__init__(
            f"Golden record {predecessor_id} is no longer golden; "
            f"request {request_id} cannot supersede it"
        )


class InvariantViolationError(InvalidStateError):
    """A mutation left a request in a shape the data model forbids."""

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, request_id: str, invariant: str, detail: str):
        self.request_id = request_id
        self.invariant = invariant
        self.detail = detail
        super().__init__(
            f"Invariant {invariant} violated on request {request_id}: {detail}"
        )


# =============================================================================
# Validation
# =============================================================================


class ValidationError(MdmKernelError):
    """Base for malformed command input. Raised before any store access."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


class MissingFieldError(ValidationError):
    """A required command field is absent or empty."""

    code: str = "MISSING_FIELD"

    def __init__(self, operation: str, field_name: str):
        self.operation = operation
        self.field_name = field_name
        super().__init__(f"{operation} requires {field_name}")


class InvalidCommandError(ValidationError):
    """Command input is present but unusable."""

    code: str = "INVALID_COMMAND"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Invalid {operation} command: {reason}")


class UnknownContactError(ValidationError):
    """A contact update/delete referenced an id the request does not own."""

    code: str = "UNKNOWN_CONTACT"

    def __init__(self, request_id: str, contact_id: str):
        self.request_id = request_id
        self.contact_id = contact_id
        super().__init__(
            f"Contact {contact_id} does not belong to request {request_id}"
        )


# =============================================================================
# Storage
# =============================================================================


class StorageFailureError(MdmKernelError):
    """The store rejected or failed a write; the unit of work was rolled back."""

    code: str = "STORAGE_FAILURE"
    kind: ErrorKind = ErrorKind.STORAGE_FAILURE

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


class GoldenCodeGenerationError(StorageFailureError):
    """Every generated golden code within the retry bound was already taken."""

    code: str = "GOLDEN_CODE_GENERATION"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            "golden_code_generation",
            f"no unused golden record code after {attempts} attempts",
        )


# =============================================================================
# Concurrency
# =============================================================================


class ConcurrencyError(MdmKernelError):
    """Base for conflicting concurrent writes."""

    code: str = "CONCURRENCY_ERROR"
    kind: ErrorKind = ErrorKind.CONCURRENCY


class ConcurrentModificationError(ConcurrencyError):
    """Optimistic version check failed on flush."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"Concurrent modification during {operation}: {detail}"
        )


# =============================================================================
# Immutability
# =============================================================================


class ImmutabilityViolationError(MdmKernelError):
    """Attempted to modify or delete an append-only workflow event."""

    code: str = "IMMUTABILITY_VIOLATION"
    kind: ErrorKind = ErrorKind.IMMUTABILITY

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )
