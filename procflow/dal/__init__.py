"""Data Access Layer for procflow.

SQLAlchemy adapters for the engine's persistence, definition loading and
identifier ports.
"""

from procflow.dal.definitions import DatabaseDefinitionLoader, DefinitionRepository
from procflow.dal.instances import SqlInstanceRepository, SqlWorkflowStore
from procflow.dal.sequences import TableIdGenerator

__all__ = [
    # Instances
    "SqlInstanceRepository",
    "SqlWorkflowStore",
    # Definitions
    "DatabaseDefinitionLoader",
    "DefinitionRepository",
    # Identifiers
    "TableIdGenerator",
]
