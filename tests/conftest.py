# tests/conftest.py
"""Shared fixtures."""

import tempfile
from pathlib import Path

import pytest

from artledger import Identity, IdentityStore, LedgerConfig


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_dir):
    """Default settings rooted in the temporary directory."""
    return LedgerConfig(state_dir=temp_dir / "state")


@pytest.fixture(scope="session")
def keypairs():
    """Identities with private keys, generated once (RSA keygen is slow)."""
    return {name: Identity.create(name) for name in ("alice", "bob", "carol", "dave", "mallory")}


@pytest.fixture
def identities(temp_dir, keypairs):
    """Identity store holding the public half of every test identity."""
    store = IdentityStore(temp_dir / "identities")
    for name, identity in keypairs.items():
        store.register(name, identity.public_key)
    return store
