"""
Shared fixtures for tasknode tests.

Every test gets its own TaskFixture, so ledger state never leaks between
tests.
"""

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from tasknode.namespace.memory import InMemoryNamespace, TaskFixture
from tasknode.signing import identity_of


@pytest.fixture
def fixture() -> TaskFixture:
    """Empty task world owned by local-node."""
    return TaskFixture(local_identity="local-node")


@pytest.fixture
def namespace(fixture: TaskFixture) -> InMemoryNamespace:
    return InMemoryNamespace(fixture)


@pytest.fixture
def private_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


@pytest.fixture
def node_identity(private_key: Ed25519PrivateKey) -> str:
    """Base58 identity matching private_key."""
    return identity_of(private_key)
