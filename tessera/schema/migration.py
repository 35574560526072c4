"""
Tessera Schema — Migration base class.

A migration is an ordered pair of schema operations: ``up()`` applies a
change and ``down()`` reverses it. Keeping the two symmetric is the
author's job. Recording which migrations have run is left to the runner
that instantiates them.

Usage:
    class CreateWidgetsTable(Migration):
        def up(self):
            def widgets(table):
                table.id()
                table.string("name")
                table.timestamps()
            self.schema.create("widgets", widgets)

        def down(self):
            self.schema.drop_if_exists("widgets")
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..db.connection import Connection
    from .builder import Schema

logger = logging.getLogger("tessera.schema.migration")

__all__ = ["Migration"]


class Migration(ABC):
    """Base class for schema migrations."""

    #: Run ``up``/``down`` inside a transaction where the dialect allows DDL in one.
    within_transaction = False

    def __init__(self, connection: "Connection"):
        self.connection = connection
        self.schema: "Schema" = connection.schema()

    @property
    def name(self) -> str:
        """Snake-case class name, e.g. ``create_widgets_table``."""
        return re.sub(r"(?<!^)(?=[A-Z])", "_", type(self).__name__).lower()

    @abstractmethod
    def up(self) -> None:
        """Apply the schema change."""

    @abstractmethod
    def down(self) -> None:
        """Reverse what ``up()`` did."""

    def apply(self) -> None:
        """Run ``up()``."""
        logger.info(f"Migrating: {self.name}")
        self._run(self.up)

    def revert(self) -> None:
        """Run ``down()``."""
        logger.info(f"Rolling back: {self.name}")
        self._run(self.down)

    def _run(self, step) -> None:
        if self.within_transaction:
            with self.connection.transaction():
                step()
        else:
            step()
