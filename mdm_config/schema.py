"""
Typed settings for the master data kernel (``mdm_config.schema``).

Every section of ``defaults.yaml`` parses into one frozen dataclass; services
receive the assembled ``MdmSettings`` by injection and never read files or
environment variables themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite+pysqlite:///mdm.db"
    echo: bool = False


@dataclass(frozen=True)
class RoleSettings:
    data_entry: str = "data_entry"
    reviewer: str = "reviewer"
    compliance: str = "compliance"
    admin: str = "admin"


@dataclass(frozen=True)
class GoldenCodeSettings:
    prefix: str = "GR-"
    length: int = 6
    max_attempts: int = 5


@dataclass(frozen=True)
class MasterBuilderSettings:
    source_system: str = "Master Builder"
    confidence: float = 0.95
    build_strategy: str = "manual"
    manual_entry_sentinel: str = "MANUAL_ENTRY"
    manual_id_prefix: str = "MANUAL_"
    default_contact_language: str = "EN"


@dataclass(frozen=True)
class RequestDefaults:
    origin: str = "dataEntry"
    source_system: str = "Data Steward"
    reject_reason: str = "Rejected by reviewer"


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class MdmSettings:
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    roles: RoleSettings = field(default_factory=RoleSettings)
    system_identities: frozenset[str] = frozenset({"system", "system_import"})
    golden_code: GoldenCodeSettings = field(default_factory=GoldenCodeSettings)
    master_builder: MasterBuilderSettings = field(default_factory=MasterBuilderSettings)
    defaults: RequestDefaults = field(default_factory=RequestDefaults)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
