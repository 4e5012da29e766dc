"""
tasknode/namespace/

Capability interfaces onto the host task node and their implementations.
"""

from .base import StateProvider, LedgerClient, IdentityProvider
from .client import NamespaceClient, NamespaceError
from .memory import InMemoryNamespace, TaskFixture

__all__ = [
    "StateProvider",
    "LedgerClient",
    "IdentityProvider",
    "NamespaceClient",
    "NamespaceError",
    "InMemoryNamespace",
    "TaskFixture",
]
