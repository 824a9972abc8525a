"""
Sandboxed SQL execution for the SQL studio backend.
"""
from .studio import Studio
from .config import StudioConfig, SandboxConfig, DatabaseConfig, CatalogConfig, ModelConfig
from .safety import QueryValidator, is_select_query
from .sandbox.executor import SandboxExecutor
from .db.connector import SandboxPool
from .db.catalog import AssignmentCatalog, Catalog, InMemoryCatalog
from .hints.generator import HintGenerator, fallback_hint
from .schemas import ErrorKind, ExecutionOutcome, FieldInfo, ValidationVerdict

__all__ = [
    "Studio", "StudioConfig", "SandboxConfig", "DatabaseConfig",
    "CatalogConfig", "ModelConfig",
    "QueryValidator", "is_select_query",
    "SandboxExecutor", "SandboxPool",
    "AssignmentCatalog", "Catalog", "InMemoryCatalog",
    "HintGenerator", "fallback_hint",
    "ErrorKind", "ExecutionOutcome", "FieldInfo", "ValidationVerdict",
]
