#!/usr/bin/env python3
"""
Example: install an ERC20 token and read it back.
"""
import asyncio
import logging
import os
import sys

from wasmdeploy_sdk import DeployManager, Erc20Client, Erc20Params, KeyStore, NetworkConfig, get_transport

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


async def run(config: NetworkConfig, key_store: KeyStore, wasm_path: str) -> int:
    """
    Demonstrate basic usage of the DeployManager.

    This example shows how to:
    1. Install the FerrumX token and wait for finalization
    2. Read the token's named keys
    3. Read the installer's balance
    """
    params = Erc20Params(
        name="FerrumX",
        symbol="FRMX",
        decimals=11,
        total_supply=1_000_000_000_000_000,
        payment_amount=200_000_000_000,
        wasm_path=wasm_path,
    )

    with get_transport(config) as transport, DeployManager(config, key_store, transport) as manager:
        client = Erc20Client(manager)
        result = await client.install(params, timeout=300)
        if not result.ok:
            print(f"Deploy {result.deploy_hash} failed: {result.error}")
            return 1

        print(f"Token installed at {client.contract_hash}")
        print(f"Name: {await client.name()}")
        print(f"Symbol: {await client.symbol()}")
        print(f"Decimals: {await client.decimals()}")
        print(f"Total supply: {await client.total_supply()}")
        print(f"Installer balance: {await client.balance_of(key_store.account_hash)}")
    return 0


def main():
    # Read configuration from environment
    wasm_path = os.environ.get("ERC20_WASM_PATH", "erc20_token.wasm")
    try:
        config = NetworkConfig.from_env()
    except ValueError as e:
        print(f"ERROR: {e}")
        print("Set WASMDEPLOY_RPC_URL, WASMDEPLOY_EVENTS_URL and WASMDEPLOY_CHAIN_NAME")
        return 2

    with KeyStore.from_env() as key_store:
        return asyncio.run(run(config, key_store, wasm_path))


if __name__ == "__main__":
    sys.exit(main())
