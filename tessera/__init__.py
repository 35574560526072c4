"""
Tessera - Active Record ORM for relational databases

Complete integration of:
- Config: dict / YAML / JSON / .env / environment driven connection settings
- DB: driver adapters, fluent query builder, connections and transactions
- Schema: blueprints, per-dialect DDL and migrations
- Models: Active Record models, relations, eager loading and observers
- Faults: Structured error handling with fault domains
"""

__version__ = "0.2.0"

# ============================================================================
# Configuration
# ============================================================================

from .config import ConfigLoader, ConnectionConfig, DatabaseConfig

# ============================================================================
# Database
# ============================================================================

from .db import Connection, DatabaseManager, QueryBuilder, QueryLogEntry, Raw, raw

# ============================================================================
# Schema
# ============================================================================

from .schema import Blueprint, Migration, Schema

# ============================================================================
# Models
# ============================================================================

from .models import (
    Model,
    ModelQuery,
    ModelRegistry,
    accessor,
    mutator,
    relation,
    scope,
)

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ConfigurationFault,
    DatabaseConnectionFault,
    QueryFault,
    TransactionFault,
    ModelNotFoundFault,
    ModelNotRegisteredFault,
    RelationFault,
    SchemaFault,
)

__all__ = [
    "__version__",
    # Configuration
    "ConfigLoader",
    "ConnectionConfig",
    "DatabaseConfig",
    # Database
    "Connection",
    "DatabaseManager",
    "QueryBuilder",
    "QueryLogEntry",
    "Raw",
    "raw",
    # Schema
    "Blueprint",
    "Migration",
    "Schema",
    # Models
    "Model",
    "ModelQuery",
    "ModelRegistry",
    "accessor",
    "mutator",
    "relation",
    "scope",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigurationFault",
    "DatabaseConnectionFault",
    "QueryFault",
    "TransactionFault",
    "ModelNotFoundFault",
    "ModelNotRegisteredFault",
    "RelationFault",
    "SchemaFault",
]
