"""
Shared fixtures: a fresh host per test with three funded accounts and a
ledger deployed by `owner`.
"""

import pytest

from guardledger import ExecutionHost
from guardledger.core.models import to_base_units


ONE_COIN = to_base_units("1")


@pytest.fixture
def host():
    return ExecutionHost()


@pytest.fixture
def owner(host):
    return host.create_account(balance=10 * ONE_COIN, label="owner")


@pytest.fixture
def alice(host):
    return host.create_account(balance=5 * ONE_COIN, label="alice")


@pytest.fixture
def bob(host):
    return host.create_account(balance=5 * ONE_COIN, label="bob")


@pytest.fixture
def ledger(host, owner):
    """Address of a freshly deployed ledger owned by `owner`."""
    return host.deploy(owner).raise_for_error().result
