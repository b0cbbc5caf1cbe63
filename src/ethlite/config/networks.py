"""Built-in network registry."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Union

from ethlite.errors import ValidationError

__all__ = ["Network", "NetworkDescriptor", "NETWORKS", "get_network", "infura_endpoint"]

_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


class Network(str, Enum):
    MAINNET = "mainnet"
    SEPOLIA = "sepolia"
    BASE_SEPOLIA = "base-sepolia"
    BASE = "base"


@dataclass(frozen=True)
class NetworkDescriptor:
    """Chain identity plus the endpoint a client session talks to."""

    chain_id: int
    name: str
    endpoint: str

    def with_endpoint(self, endpoint: str) -> "NetworkDescriptor":
        return replace(self, endpoint=endpoint)


NETWORKS: Dict[Network, NetworkDescriptor] = {
    Network.MAINNET: NetworkDescriptor(
        chain_id=1,
        name=Network.MAINNET.value,
        endpoint="https://ethereum-rpc.publicnode.com",
    ),
    Network.SEPOLIA: NetworkDescriptor(
        chain_id=11155111,
        name=Network.SEPOLIA.value,
        endpoint="https://ethereum-sepolia-rpc.publicnode.com",
    ),
    Network.BASE_SEPOLIA: NetworkDescriptor(
        chain_id=84532,
        name=Network.BASE_SEPOLIA.value,
        endpoint="https://sepolia.base.org",
    ),
    Network.BASE: NetworkDescriptor(
        chain_id=8453,
        name=Network.BASE.value,
        endpoint="https://mainnet.base.org",
    ),
}

_INFURA_HOSTS: Dict[Network, str] = {
    Network.MAINNET: "mainnet",
    Network.SEPOLIA: "sepolia",
    Network.BASE_SEPOLIA: "base-sepolia",
    Network.BASE: "base-mainnet",
}


def _resolve(network: Union[Network, str]) -> Network:
    try:
        return Network(network)
    except ValueError as exc:
        known = ", ".join(n.value for n in Network)
        raise ValidationError(
            f"Unknown network {network!r}; expected one of: {known}",
            field="network",
        ) from exc


def get_network(
    network: Union[Network, str],
    endpoint: Optional[str] = None,
) -> NetworkDescriptor:
    """
    Look up a built-in network, optionally overriding its endpoint.

    Raises:
        ValidationError: If the name is not a known network
    """
    descriptor = NETWORKS[_resolve(network)]
    if endpoint:
        return descriptor.with_endpoint(endpoint)
    return descriptor


def infura_endpoint(network: Union[Network, str], api_key: str) -> str:
    """
    Build the Infura URL for a network.

    A full ``http(s)://`` URL passed as ``network`` is returned unchanged,
    so callers can point at a custom RPC with the same setting.
    """
    if isinstance(network, str) and _URL_RE.match(network):
        return network
    if not api_key:
        raise ValidationError("Infura API key is required", field="api_key")
    return f"https://{_INFURA_HOSTS[_resolve(network)]}.infura.io/v3/{api_key}"
