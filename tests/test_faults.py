"""
Tests for Tessera faults.

Tests:
- Fault base class rendering and serialisation
- Domain defaults (severity, retryable)
- Concrete fault codes and metadata
"""

import logging

import pytest

from tessera.faults import (
    ConfigurationFault,
    DatabaseConnectionFault,
    Fault,
    FaultDomain,
    ModelFault,
    ModelNotFoundFault,
    ModelNotRegisteredFault,
    QueryFault,
    RelationFault,
    SchemaFault,
    Severity,
    TransactionFault,
    UnknownConnectionFault,
    UnsupportedDriverFault,
)
from tessera.faults.core import DOMAIN_DEFAULTS


class TestFaultBase:
    """Test the Fault base class."""

    def test_str_includes_code(self):
        fault = Fault(code="WIDGET_MISSING", message="Widget 12 not found", domain=FaultDomain.MODEL)
        assert str(fault) == "[WIDGET_MISSING] Widget 12 not found"

    def test_missing_code_rejected(self):
        with pytest.raises(TypeError):
            Fault(message="no code", domain=FaultDomain.MODEL)

    def test_domain_defaults_applied(self):
        fault = Fault(code="X", message="x", domain=FaultDomain.DATABASE)
        assert fault.severity == Severity.ERROR
        assert fault.retryable is False
        assert fault.metadata == {}

    def test_to_dict(self):
        fault = Fault(code="X", message="x", domain=FaultDomain.SCHEMA, metadata={"table": "t"})
        data = fault.to_dict()
        assert data["code"] == "X"
        assert data["domain"] == "schema"
        assert data["severity"] == "fatal"
        assert data["metadata"] == {"table": "t"}

    def test_is_exception(self):
        with pytest.raises(Fault):
            raise Fault(code="X", message="x", domain=FaultDomain.CONFIG)

    def test_subclass_class_attributes(self):
        class WidgetFault(Fault):
            code = "WIDGET_BROKEN"
            message = "Widget is broken"
            domain = FaultDomain.MODEL

        fault = WidgetFault(metadata={"id": 3})
        assert str(fault) == "[WIDGET_BROKEN] Widget is broken"
        assert fault.metadata == {"id": 3}

    def test_explicit_severity_overrides_default(self):
        fault = Fault(code="X", message="x", domain=FaultDomain.CONFIG, severity=Severity.WARN, retryable=True)
        assert fault.severity == Severity.WARN
        assert fault.retryable is True

    def test_severity_log_levels(self):
        assert Severity.INFO.log_level == logging.INFO
        assert Severity.WARN.log_level == logging.WARNING
        assert Severity.FATAL.log_level == logging.CRITICAL


class TestFaultDomains:
    """Test the domain taxonomy."""

    def test_standard_domains(self):
        assert FaultDomain.CONFIG.name == "config"
        assert FaultDomain.DATABASE.name == "database"
        assert FaultDomain.MODEL.name == "model"
        assert FaultDomain.SCHEMA.name == "schema"

    def test_domain_equality_by_name(self):
        assert FaultDomain("model") == FaultDomain.MODEL
        assert FaultDomain.MODEL == "model"

    def test_every_domain_has_defaults(self):
        for domain in (FaultDomain.CONFIG, FaultDomain.DATABASE, FaultDomain.MODEL, FaultDomain.SCHEMA):
            assert domain in DOMAIN_DEFAULTS


class TestConfigFaults:
    """Test configuration faults."""

    def test_configuration_fault_is_fatal(self):
        fault = ConfigurationFault(message="bad")
        assert fault.code == "CONFIG_INVALID"
        assert fault.severity == Severity.FATAL
        assert fault.domain == FaultDomain.CONFIG

    def test_unknown_connection(self):
        fault = UnknownConnectionFault("reports")
        assert fault.code == "CONNECTION_NOT_CONFIGURED"
        assert fault.metadata["connection"] == "reports"
        assert "reports" in str(fault)

    def test_unsupported_driver(self):
        fault = UnsupportedDriverFault("oracle")
        assert fault.code == "DRIVER_UNSUPPORTED"
        assert fault.metadata["driver"] == "oracle"

    def test_model_not_registered(self):
        fault = ModelNotRegisteredFault("Widget")
        assert fault.code == "MODEL_NOT_REGISTERED"
        assert isinstance(fault, ConfigurationFault)


class TestDatabaseFaults:
    """Test connection, query and transaction faults."""

    def test_connection_fault(self):
        fault = DatabaseConnectionFault("mysql", "refused")
        assert fault.code == "DB_CONNECTION_FAILED"
        assert fault.metadata["driver"] == "mysql"

    def test_query_fault_carries_sql(self):
        fault = QueryFault("no such table: nope", sql="SELECT * FROM nope", bindings=[1])
        assert fault.code == "QUERY_FAILED"
        assert fault.sql == "SELECT * FROM nope"
        assert fault.bindings == [1]
        assert fault.driver_message == "no such table: nope"
        assert "SELECT * FROM nope" in str(fault)

    def test_transaction_fault(self):
        fault = TransactionFault("commit() called with no open transaction")
        assert fault.code == "TRANSACTION_FAULT"
        assert fault.domain == FaultDomain.DATABASE


class TestModelFaults:
    """Test model faults."""

    def test_model_fault(self):
        fault = ModelFault(code="TEST", message="test fault")
        assert fault.domain == FaultDomain.MODEL
        assert fault.code == "TEST"

    def test_not_found(self):
        fault = ModelNotFoundFault("Widget", [3, 4])
        assert fault.code == "MODEL_NOT_FOUND"
        assert fault.ids == [3, 4]
        assert fault.public is True
        assert "Widget" in fault.message

    def test_relation_fault(self):
        fault = RelationFault("Post", "Call to undefined relationship 'nope'")
        assert fault.code == "RELATION_FAULT"
        assert fault.metadata["model"] == "Post"

    def test_schema_fault(self):
        fault = SchemaFault("widgets", "bad column")
        assert fault.code == "SCHEMA_FAULT"
        assert fault.table == "widgets"
        assert fault.domain == FaultDomain.SCHEMA
