#!/usr/bin/env python3
"""
Example: Reading chain and ERC-20 state

This demonstrates the read-only API:
- Connecting with chain id verification
- Block, fee and balance reads
- ERC-20 metadata, balances and allowances
- Transfer history over the last 5000 blocks
- Optional transaction and receipt lookup

Configuration is read from the environment (or a .env file):
    INFURA_API_KEY   Infura project key (or set RPC_URL instead)
    NETWORK          mainnet | sepolia | base-sepolia | base (default: base-sepolia)
    TOKEN_ADDRESS    ERC-20 contract to inspect
    HOLDER_ADDRESS   Address whose balances are read
    SPENDER_ADDRESS  Spender for the allowance read
    TX_HASH          Optional transaction to look up

Run this example:
    python examples/read_contract.py
"""

import asyncio
import os
import sys

from dotenv import load_dotenv

from ethlite import Client, configure_logging, format_units, from_wei, get_network, infura_endpoint
from ethlite.errors import EthLiteError
from ethlite.utils.validation import is_valid_address

load_dotenv()

NETWORK = os.getenv("NETWORK", "base-sepolia")
TOKEN_ADDRESS = os.getenv("TOKEN_ADDRESS", "0xD4Bb0504bB80b143125BD74eC41d8aBE5fdaB810")
HOLDER_ADDRESS = os.getenv("HOLDER_ADDRESS", "0x365a8b3f57A650DE13f145263E3a5B40c43d3bCd")
SPENDER_ADDRESS = os.getenv("SPENDER_ADDRESS", HOLDER_ADDRESS)
TX_HASH = os.getenv("TX_HASH", "")

HISTORY_BLOCKS = 5000


async def main() -> None:
    print("=" * 60)
    print("ethlite - Reading chain and contract state")
    print("=" * 60)
    print()

    endpoint = os.getenv("RPC_URL") or infura_endpoint(NETWORK, os.getenv("INFURA_API_KEY", ""))

    async with await Client.connect(get_network(NETWORK, endpoint)) as client:
        # ======================================================================
        # NETWORK
        # ======================================================================

        block_number = await client.block_number()
        block = await client.get_block(block_number)
        fees = await client.get_fee_estimate()

        print(f"[NETWORK] Connected to {client.network.name} (chain id {client.network.chain_id})")
        print(f"[NETWORK] Latest block: {block_number}")
        if block is not None:
            print(f"[NETWORK] Block timestamp: {block.timestamp}")
        if fees.is_eip1559:
            print(f"[NETWORK] Suggested max fee: {from_wei(fees.max_fee_per_gas, 'gwei')} gwei")
        else:
            print(f"[NETWORK] Suggested gas price: {from_wei(fees.gas_price, 'gwei')} gwei")
        print()

        if is_valid_address(HOLDER_ADDRESS):
            balance = await client.get_balance(HOLDER_ADDRESS)
            print(f"[BALANCE] {HOLDER_ADDRESS}: {from_wei(balance)} ETH")
            print()

        # ======================================================================
        # ERC-20
        # ======================================================================

        if not is_valid_address(TOKEN_ADDRESS):
            print("[TOKEN] TOKEN_ADDRESS is not a valid address; skipping token reads")
            return
        code = await client.get_code(TOKEN_ADDRESS)
        if not code:
            print(f"[TOKEN] No contract code at {TOKEN_ADDRESS}")
            return

        token = client.erc20(TOKEN_ADDRESS)
        meta = await token.metadata()
        supply = await token.total_supply()
        print(f"[TOKEN] {meta.name} ({meta.symbol}), decimals={meta.decimals}")
        print(f"[TOKEN] Total supply: {meta.format(supply)} {meta.symbol}")
        print(f"[TOKEN] Code size: {len(code)} bytes")

        if is_valid_address(HOLDER_ADDRESS):
            balance = await token.balance_of(HOLDER_ADDRESS)
            print(f"[TOKEN] Balance of {HOLDER_ADDRESS}: {meta.format(balance)} {meta.symbol}")
            if is_valid_address(SPENDER_ADDRESS):
                allowance = await token.allowance(HOLDER_ADDRESS, SPENDER_ADDRESS)
                print(f"[TOKEN] Allowance to {SPENDER_ADDRESS}: {meta.format(allowance)} {meta.symbol}")
        print()

        # ======================================================================
        # EVENTS
        # ======================================================================

        from_block = max(0, block_number - HISTORY_BLOCKS)
        transfers = await token.transfers(from_block, block_number)
        print(f"[EVENTS] Transfers in the last {block_number - from_block + 1} blocks: {len(transfers)}")
        for event in transfers[:5]:
            print(
                f"[EVENTS] block={event.log.block_number} tx={event.log.transaction_hash} "
                f"{event['from']} -> {event['to']}: {format_units(event['value'], meta.decimals)} {meta.symbol}"
            )
        if is_valid_address(HOLDER_ADDRESS):
            holder = HOLDER_ADDRESS.lower()
            related = [e for e in transfers if holder in (e["from"].lower(), e["to"].lower())]
            print(f"[EVENTS] Involving {HOLDER_ADDRESS}: {len(related)}")
        stats = client.logs.last_stats
        print(f"[EVENTS] eth_getLogs requests: {stats.requests}, range splits: {stats.splits}")
        print()

        # ======================================================================
        # TRANSACTION (optional)
        # ======================================================================

        if TX_HASH:
            tx = await client.get_transaction(TX_HASH)
            if tx is None:
                print(f"[TX] {TX_HASH} not found")
                return
            print(f"[TX] nonce={tx.nonce} gas={tx.gas} block={tx.block_number}")
            receipt = await client.get_transaction_receipt(TX_HASH)
            if receipt is not None:
                print(
                    f"[TX] status={receipt.status.name} gas_used={receipt.gas_used} "
                    f"logs={len(receipt.logs)}"
                )


if __name__ == "__main__":
    configure_logging(os.getenv("LOG_LEVEL", "WARNING"))
    try:
        asyncio.run(main())
    except EthLiteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
