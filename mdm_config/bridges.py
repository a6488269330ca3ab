"""
Bridges from loaded settings to kernel-facing inputs.

The kernel never imports ``mdm_config``; these functions translate
``MdmSettings`` into the plain value objects kernel services accept.
"""

from __future__ import annotations

from mdm_config.schema import MdmSettings
from mdm_kernel.domain.ids import RandomGoldenCodeGenerator
from mdm_kernel.domain.policy import WorkflowPolicy


def build_workflow_policy(settings: MdmSettings) -> WorkflowPolicy:
    roles = settings.roles
    builder = settings.master_builder
    golden = settings.golden_code
    defaults = settings.defaults
    return WorkflowPolicy(
        data_entry_role=roles.data_entry,
        reviewer_role=roles.reviewer,
        compliance_role=roles.compliance,
        admin_role=roles.admin,
        system_identities=settings.system_identities,
        golden_code_prefix=golden.prefix,
        golden_code_length=golden.length,
        golden_code_max_attempts=golden.max_attempts,
        builder_source_system=builder.source_system,
        builder_confidence=builder.confidence,
        build_strategy=builder.build_strategy,
        manual_entry_sentinel=builder.manual_entry_sentinel,
        manual_id_prefix=builder.manual_id_prefix,
        default_contact_language=builder.default_contact_language,
        default_origin=defaults.origin,
        default_source_system=defaults.source_system,
        default_reject_reason=defaults.reject_reason,
    )


def build_golden_code_generator(settings: MdmSettings) -> RandomGoldenCodeGenerator:
    return RandomGoldenCodeGenerator(
        prefix=settings.golden_code.prefix,
        length=settings.golden_code.length,
    )
