"""Services for the master data kernel (write side)."""

from mdm_kernel.services.admin_service import AdminService, ClearDataType
from mdm_kernel.services.audit_log import AuditLogService
from mdm_kernel.services.duplicate_service import DuplicateResolutionService
from mdm_kernel.services.golden_record_service import GoldenRecordService
from mdm_kernel.services.workflow_service import WorkflowService

__all__ = [
    "AdminService",
    "AuditLogService",
    "ClearDataType",
    "DuplicateResolutionService",
    "GoldenRecordService",
    "WorkflowService",
]
