#!/usr/bin/env python3
"""
Example: Writing to an ERC-20 contract

This demonstrates the write path:
- Simulating approve/transfer without sending
- Estimating gas and populating transactions
- Optionally running approve through the transaction lifecycle
- Filtering Transfer events by recipient

Nothing is broadcast unless SEND_TX=true.

Configuration is read from the environment (or a .env file):
    INFURA_API_KEY   Infura project key (or set RPC_URL instead)
    NETWORK          mainnet | sepolia | base-sepolia | base (default: sepolia)
    PRIVATE_KEY      Signing key; without it only reads run
    SEND_TX          true to actually send the approve transaction
    TOKEN_ADDRESS    ERC-20 contract on that network
    SPENDER_ADDRESS  Approve/transfer target (defaults to the signer)

Run this example:
    python examples/interact_contract.py
"""

import asyncio
import os
import sys

from dotenv import load_dotenv

from ethlite import Client, configure_logging, from_wei, get_network, infura_endpoint
from ethlite.errors import EthLiteError, ExecutionReverted, GasEstimationFailed
from ethlite.utils.validation import is_valid_address

load_dotenv()

NETWORK = os.getenv("NETWORK", "sepolia")
PRIVATE_KEY = os.getenv("PRIVATE_KEY", "")
SEND_TX = os.getenv("SEND_TX", "").lower() == "true"
TOKEN_ADDRESS = os.getenv("TOKEN_ADDRESS", "")
SPENDER_ADDRESS = os.getenv("SPENDER_ADDRESS", "")

DEMO_AMOUNT = "0.001"


async def main() -> None:
    print("=" * 60)
    print("ethlite - Contract interaction")
    print("=" * 60)
    print()

    endpoint = os.getenv("RPC_URL") or infura_endpoint(NETWORK, os.getenv("INFURA_API_KEY", ""))

    async with await Client.connect(get_network(NETWORK, endpoint), PRIVATE_KEY or None) as client:
        block_number = await client.block_number()
        print(f"[NETWORK] {client.network.name} (chain id {client.network.chain_id}), block {block_number}")

        if client.address is None:
            print("[SIGNER] No PRIVATE_KEY; running read-only")
        else:
            balance = await client.get_balance(client.address)
            print(f"[SIGNER] {client.address}: {from_wei(balance)} ETH")
        print()

        if not is_valid_address(TOKEN_ADDRESS):
            print("[TOKEN] Set TOKEN_ADDRESS to an ERC-20 on this network")
            return

        token = client.erc20(TOKEN_ADDRESS)
        meta = await token.metadata()
        print(f"[TOKEN] {meta.name} ({meta.symbol}), decimals={meta.decimals}")

        if client.address is None:
            return
        spender = SPENDER_ADDRESS if is_valid_address(SPENDER_ADDRESS) else client.address
        amount = meta.parse(DEMO_AMOUNT)
        contract = token.contract

        # ======================================================================
        # SIMULATE / ESTIMATE / POPULATE
        # ======================================================================

        for name in ("approve", "transfer"):
            call = contract.build_call(name, [spender, amount])
            try:
                result = await contract.simulate(call, client.address)
                print(f"[{name.upper()}] Simulation ok: {result}")
            except ExecutionReverted as exc:
                print(f"[{name.upper()}] Simulation reverted: {exc.reason or exc.selector}")
            try:
                gas = await contract.estimate_gas(call, client.address)
                print(f"[{name.upper()}] Estimated gas: {gas}")
            except GasEstimationFailed as exc:
                print(f"[{name.upper()}] Gas estimation failed: {exc.reason}")
            tx = contract.populate_transaction(call, client.address)
            print(f"[{name.upper()}] Populated: to={tx.to} data=0x{tx.data.hex()} chain_id={tx.chain_id}")
        print()

        # ======================================================================
        # SEND (opt-in)
        # ======================================================================

        if SEND_TX:
            print(f"[SEND] approve({spender}, {DEMO_AMOUNT} {meta.symbol})")
            sub = await token.approve(spender, amount)
            print(f"[SEND] tx={sub.tx_hash} nonce={sub.nonce} state={sub.state.value}")
            if sub.ok and sub.receipt is not None:
                print(f"[SEND] status={sub.receipt.status.name} gas_used={sub.receipt.gas_used}")
            else:
                print(f"[SEND] Failed: {sub.error}")
        else:
            print("[SEND] SEND_TX is not true; nothing broadcast")
        print()

        # ======================================================================
        # EVENTS
        # ======================================================================

        from_block = max(0, block_number - 5000)
        received = await token.transfers(from_block, block_number, recipient=client.address)
        print(f"[EVENTS] Transfers to {client.address} in the last 5000 blocks: {len(received)}")
        if received:
            first = received[0]
            print(f"[EVENTS] First: block={first.log.block_number} tx={first.log.transaction_hash}")


if __name__ == "__main__":
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    try:
        asyncio.run(main())
    except EthLiteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
