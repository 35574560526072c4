"""
Tessera faults - base fault type, domains and severities.

Every error tessera raises on purpose is a ``Fault``. A fault is an
ordinary exception that also carries a stable ``code`` for programs and
a ``domain`` telling which layer (config, database, model, schema) gave up.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional


class Severity(str, Enum):
    """How loudly a fault should be reported."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def log_level(self) -> int:
        return _LOG_LEVELS[self]


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}


class FaultDomain:
    """
    Layer of tessera a fault belongs to.

    Domains compare by name, so ``FaultDomain("model") == FaultDomain.MODEL``
    and a domain also compares equal to its plain string name.
    """

    CONFIG: "FaultDomain"
    DATABASE: "FaultDomain"
    MODEL: "FaultDomain"
    SCHEMA: "FaultDomain"

    __slots__ = ("name", "description")

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description

    @property
    def value(self) -> str:
        return self.name

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return other.name == self.name
        if isinstance(other, str):
            return other == self.name
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<FaultDomain {self.name}>"


FaultDomain.CONFIG = FaultDomain("config", "Connection config could not be read or is invalid")
FaultDomain.DATABASE = FaultDomain("database", "Driver, statement and transaction failures")
FaultDomain.MODEL = FaultDomain("model", "Missing records, unregistered models and bad relations")
FaultDomain.SCHEMA = FaultDomain("schema", "DDL that cannot be compiled or applied")


class DomainDefaults(NamedTuple):
    severity: Severity
    retryable: bool


# Config and schema faults mean the program itself is wrong; the rest are per-call.
DOMAIN_DEFAULTS: Dict[FaultDomain, DomainDefaults] = {
    FaultDomain.CONFIG: DomainDefaults(Severity.FATAL, False),
    FaultDomain.DATABASE: DomainDefaults(Severity.ERROR, False),
    FaultDomain.MODEL: DomainDefaults(Severity.ERROR, False),
    FaultDomain.SCHEMA: DomainDefaults(Severity.FATAL, False),
}

_FALLBACK = DomainDefaults(Severity.ERROR, False)


class Fault(Exception):
    """
    Base class of every tessera error.

    ``code``, ``message`` and ``domain`` are required, either as arguments or
    as class attributes on a subclass. Severity and ``retryable`` fall back to
    the domain's entry in ``DOMAIN_DEFAULTS``; ``retryable`` is a hint for the
    caller, tessera never retries on its own.

    Example::

        raise Fault(
            code="WIDGET_MISSING",
            message="Widget 12 not found",
            domain=FaultDomain.MODEL,
            metadata={"id": 12},
        )
    """

    code: Optional[str] = None
    message: Optional[str] = None
    domain: Optional[FaultDomain] = None

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        *,
        domain: Optional[FaultDomain] = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        public: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        if code is not None:
            self.code = code
        if message is not None:
            self.message = message
        if domain is not None:
            self.domain = domain

        missing = [attr for attr in ("code", "message", "domain") if getattr(self, attr) is None]
        if missing:
            raise TypeError(f"{type(self).__name__} requires {', '.join(missing)}")

        super().__init__(self.message)

        defaults = DOMAIN_DEFAULTS.get(self.domain, _FALLBACK)
        self.severity = defaults.severity if severity is None else severity
        self.retryable = defaults.retryable if retryable is None else retryable
        self.public = public
        self.metadata = dict(metadata) if metadata else {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code} domain={self.domain} severity={self.severity.value}>"

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form for structured logs."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": str(self.domain),
            "severity": self.severity.value,
            "retryable": self.retryable,
            "public": self.public,
            "metadata": self.metadata,
        }


__all__ = ["Severity", "FaultDomain", "DomainDefaults", "DOMAIN_DEFAULTS", "Fault"]
