"""
Shared fixtures.

Every component is exercised against ``FakeChain`` (see ``fake_node``);
the client fixtures use a fast polling configuration so confirmation
tests finish in milliseconds.
"""

import pytest

from ethlite import Client, LifecycleConfig, NetworkDescriptor, Signer

from tests.fake_node import CHAIN_ID, PRIVATE_KEY, FakeChain

# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def fast_config() -> LifecycleConfig:
    return LifecycleConfig(
        poll_interval_seconds=0.01,
        max_poll_interval_seconds=0.02,
        timeout_seconds=0.5,
    )


@pytest.fixture
def network() -> NetworkDescriptor:
    return NetworkDescriptor(chain_id=CHAIN_ID, name="base-sepolia", endpoint="http://fake-node")


@pytest.fixture
def signer(chain: FakeChain) -> Signer:
    return Signer(PRIVATE_KEY, chain)


@pytest.fixture
def client(
    chain: FakeChain,
    network: NetworkDescriptor,
    signer: Signer,
    fast_config: LifecycleConfig,
) -> Client:
    return Client(network, chain, signer, lifecycle_config=fast_config)


@pytest.fixture
def read_client(chain: FakeChain, network: NetworkDescriptor) -> Client:
    return Client(network, chain)
