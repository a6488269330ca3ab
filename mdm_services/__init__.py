"""
mdm_services -- Package init and public API.

Responsibility:
    Composition and transaction ownership over the kernel:
    ``MasterDataOrchestrator`` wires every kernel service onto one session,
    ``MasterDataCommands`` runs each command as one atomic unit of work.

Architecture position:
    Services.  Dependency direction:
        mdm_services/ -> mdm_kernel/, mdm_config/  (allowed)
        mdm_kernel/   -> mdm_services/             (FORBIDDEN)
"""

from mdm_services.commands import MasterDataCommands
from mdm_services.orchestrator import MasterDataOrchestrator

__all__ = [
    "MasterDataCommands",
    "MasterDataOrchestrator",
]
