"""
Tessera faults - typed fault signals for the data layer.

Every fault raised by tessera derives from ``Fault`` and carries a stable
``code``, a ``domain`` and a ``metadata`` dict.
"""

from .core import Fault, FaultDomain, Severity
from .domains import (
    ConfigurationFault,
    UnknownConnectionFault,
    UnsupportedDriverFault,
    ModelNotRegisteredFault,
    DatabaseFault,
    DatabaseConnectionFault,
    QueryFault,
    TransactionFault,
    ModelFault,
    ModelNotFoundFault,
    RelationFault,
    SchemaFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
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
