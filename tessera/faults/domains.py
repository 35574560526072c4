"""
Tessera faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults (connections, drivers, model registration)
- DATABASE faults (connect, query, transaction)
- MODEL faults (lookups, relationships)
- SCHEMA faults (DDL)
"""

from typing import Any, Optional, Sequence

from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigurationFault(Fault):
    """Base class for configuration faults. Fatal and never retried."""

    def __init__(
        self,
        code: str = "CONFIG_INVALID",
        message: str = "Invalid configuration",
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=Severity.FATAL,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class UnknownConnectionFault(ConfigurationFault):
    """Requested connection name is not configured."""

    def __init__(self, name: str, **kwargs):
        super().__init__(
            code="CONNECTION_NOT_CONFIGURED",
            message=f"Database connection [{name}] not configured",
            metadata={"connection": name, **kwargs.get("metadata", {})},
        )
        self.connection_name = name


class UnsupportedDriverFault(ConfigurationFault):
    """Configured driver has no adapter factory."""

    def __init__(self, driver: str, **kwargs):
        super().__init__(
            code="DRIVER_UNSUPPORTED",
            message=f"Unsupported database driver [{driver}]",
            metadata={"driver": driver, **kwargs.get("metadata", {})},
        )
        self.driver = driver


class ModelNotRegisteredFault(ConfigurationFault):
    """A model was used before being registered with a ModelRegistry."""

    def __init__(self, model_name: str, **kwargs):
        super().__init__(
            code="MODEL_NOT_REGISTERED",
            message=f"Model '{model_name}' is not registered with a ModelRegistry",
            metadata={"model": model_name, **kwargs.get("metadata", {})},
        )


# ============================================================================
# DATABASE Faults
# ============================================================================

class DatabaseFault(Fault):
    """Base class for connection, query and transaction faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        retryable: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.DATABASE,
            severity=severity,
            retryable=retryable,
            public=False,
            metadata=metadata,
        )


class DatabaseConnectionFault(DatabaseFault):
    """Database connection failed or driver is not installed."""

    def __init__(self, driver: str, reason: str, **kwargs):
        super().__init__(
            code="DB_CONNECTION_FAILED",
            message=f"Database connection failed ({driver}): {reason}",
            severity=Severity.FATAL,
            retryable=True,
            metadata={"driver": driver, "reason": reason, **kwargs.get("metadata", {})},
        )
        self.driver = driver
        self.reason = reason


class QueryFault(DatabaseFault):
    """
    Statement preparation or execution failed.

    Carries the SQL text, its bindings and the driver message so callers
    can report the exact statement that failed.
    """

    def __init__(
        self,
        reason: str,
        *,
        sql: Optional[str] = None,
        bindings: Optional[Sequence[Any]] = None,
        operation: str = "query",
        **kwargs,
    ):
        detail = f" (SQL: {sql})" if sql else ""
        super().__init__(
            code="QUERY_FAILED",
            message=f"Query {operation} failed: {reason}{detail}",
            metadata={
                "operation": operation,
                "reason": reason,
                "sql": sql,
                "bindings": list(bindings or []),
                **kwargs.get("metadata", {}),
            },
        )
        self.sql = sql
        self.bindings = list(bindings or [])
        self.driver_message = reason
        self.operation = operation


class TransactionFault(DatabaseFault):
    """Transaction control was used out of order."""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            code="TRANSACTION_FAULT",
            message=f"Transaction error: {reason}",
            metadata={"reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# MODEL Faults
# ============================================================================

class ModelFault(Fault):
    """Base class for model faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.MODEL,
            severity=severity,
            retryable=False,
            public=public,
            metadata=metadata,
        )


class ModelNotFoundFault(ModelFault):
    """No row matched a lookup that requires one."""

    def __init__(self, model_name: str, ids: Any = None, **kwargs):
        suffix = f" {ids!r}" if ids is not None else ""
        super().__init__(
            code="MODEL_NOT_FOUND",
            message=f"No query results for model [{model_name}]{suffix}",
            public=True,
            metadata={"model": model_name, "ids": ids, **kwargs.get("metadata", {})},
        )
        self.model_name = model_name
        self.ids = ids


class RelationFault(ModelFault):
    """Unknown relationship name or unresolvable polymorphic type."""

    def __init__(self, model_name: str, reason: str, **kwargs):
        super().__init__(
            code="RELATION_FAULT",
            message=f"Relationship error on '{model_name}': {reason}",
            metadata={"model": model_name, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# SCHEMA Faults
# ============================================================================

class SchemaFault(Fault):
    """Schema compilation or execution failed."""

    def __init__(self, table: str, reason: str, **kwargs):
        super().__init__(
            code="SCHEMA_FAULT",
            message=f"Schema error for table '{table}': {reason}",
            domain=FaultDomain.SCHEMA,
            severity=Severity.FATAL,
            retryable=False,
            metadata={"table": table, "reason": reason, **kwargs.get("metadata", {})},
        )
        self.table = table


__all__ = [
    "ConfigurationFault",
    "UnknownConnectionFault",
    "UnsupportedDriverFault",
    "ModelNotRegisteredFault",
    "DatabaseFault",
    "DatabaseConnectionFault",
    "QueryFault",
    "TransactionFault",
    "ModelFault",
    "ModelNotFoundFault",
    "RelationFault",
    "SchemaFault",
]
