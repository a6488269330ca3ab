"""
Workflow policy: the tunable constants the kernel services apply.

The kernel never reads configuration; ``mdm_config.bridges`` translates the
loaded settings into a ``WorkflowPolicy`` and the orchestrator injects it.
The defaults here are the production values, so tests may construct
services without any configuration at all.
"""

from __future__ import annotations

from dataclasses import dataclass

from mdm_kernel.domain.values import Actor


@dataclass(frozen=True)
class WorkflowPolicy:
    data_entry_role: str = "data_entry"
    reviewer_role: str = "reviewer"
    compliance_role: str = "compliance"
    admin_role: str = "admin"
    system_identities: frozenset[str] = frozenset({"system", "system_import"})

    golden_code_prefix: str = "GR-"
    golden_code_length: int = 6
    golden_code_max_attempts: int = 5

    builder_source_system: str = "Master Builder"
    builder_confidence: float = 0.95
    build_strategy: str = "manual"
    manual_entry_sentinel: str = "MANUAL_ENTRY"
    manual_id_prefix: str = "MANUAL_"
    default_contact_language: str = "EN"

    default_origin: str = "dataEntry"
    default_source_system: str = "Data Steward"
    default_reject_reason: str = "Rejected by reviewer"

    def default_actor(self, role: str) -> Actor:
        """Actor used when a caller does not identify itself: the role acting as itself."""
        return Actor(name=role, role=role)

    def is_system_identity(self, name: str | None) -> bool:
        return not name or name in self.system_identities


DEFAULT_POLICY = WorkflowPolicy()
