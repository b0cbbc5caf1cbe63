"""
Network descriptors and component settings.
"""

from ethlite.config.networks import (
    NETWORKS,
    Network,
    NetworkDescriptor,
    get_network,
    infura_endpoint,
)
from ethlite.config.settings import LifecycleConfig, LogQueryConfig

__all__ = [
    "Network",
    "NetworkDescriptor",
    "NETWORKS",
    "get_network",
    "infura_endpoint",
    "LifecycleConfig",
    "LogQueryConfig",
]
