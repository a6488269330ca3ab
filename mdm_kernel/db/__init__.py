from mdm_kernel.db.base import Base, UUIDKeyed, UUIDString
from mdm_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)

__all__ = [
    "Base",
    "UUIDKeyed",
    "UUIDString",
    "build_engine",
    "create_tables",
    "drop_tables",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
]
