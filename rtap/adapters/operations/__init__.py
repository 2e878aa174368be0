"""Operation storage adapters.

Only an in-memory store ships here; a relational adapter would translate
``rtap.services.predicates`` trees into its own query language.
"""

from rtap.adapters.operations.base import AbstractOperationRepository
from rtap.adapters.operations.in_memory import InMemoryOperationRepository

__all__ = ["AbstractOperationRepository", "InMemoryOperationRepository"]
