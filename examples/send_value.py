#!/usr/bin/env python3
"""
Example: Sending ETH

Transfers 0.001 ETH to RECIPIENT_ADDRESS and waits for the receipt.

Configuration is read from the environment (or a .env file):
    INFURA_API_KEY     Infura project key (or set RPC_URL instead)
    NETWORK            Network name (default: sepolia)
    PRIVATE_KEY        Signing key (required)
    RECIPIENT_ADDRESS  Receiver (required)
    CONFIRMATIONS      Blocks to wait for (default: 1)

Run this example:
    python examples/send_value.py
"""

import asyncio
import os
import sys

from dotenv import load_dotenv

from ethlite import Client, LifecycleConfig, configure_logging, get_network, infura_endpoint, to_wei
from ethlite.errors import EthLiteError

load_dotenv()


async def main() -> None:
    private_key = os.getenv("PRIVATE_KEY", "")
    recipient = os.getenv("RECIPIENT_ADDRESS", "")
    if not private_key or not recipient:
        print("Set PRIVATE_KEY and RECIPIENT_ADDRESS", file=sys.stderr)
        sys.exit(2)

    network = os.getenv("NETWORK", "sepolia")
    endpoint = os.getenv("RPC_URL") or infura_endpoint(network, os.getenv("INFURA_API_KEY", ""))
    config = LifecycleConfig(confirmations=int(os.getenv("CONFIRMATIONS", "1")))

    async with await Client.connect(get_network(network, endpoint), private_key, lifecycle_config=config) as client:
        print(f"[SEND] {client.address} -> {recipient}: 0.001 ETH")
        sub = await client.send_value(recipient, to_wei("0.001"))

        print(f"[SEND] tx={sub.tx_hash} state={sub.state.value}")
        for state in sub.history:
            print(f"  - {state.value}")
        sub.raise_for_error()
        print(f"[SEND] Mined in block {sub.receipt.block_number}, gas used {sub.receipt.gas_used}")


if __name__ == "__main__":
    configure_logging("INFO")
    try:
        asyncio.run(main())
    except EthLiteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
