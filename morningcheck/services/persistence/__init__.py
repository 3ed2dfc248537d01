"""
Persistence Service

Named remote procedures and icon storage behind an abstract interface.
"""

from morningcheck.services.persistence.base import PersistenceService
from morningcheck.services.persistence.rpc_client import RpcPersistenceClient, classify_error

__all__ = [
    "PersistenceService",
    "RpcPersistenceClient",
    "classify_error",
]
