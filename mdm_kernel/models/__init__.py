from mdm_kernel.models.request import CompanyRequest, Contact, Document, Issue
from mdm_kernel.models.workflow_event import WorkflowEvent

__all__ = [
    "CompanyRequest",
    "Contact",
    "Document",
    "Issue",
    "WorkflowEvent",
]
