#!/usr/bin/env python3
"""
wasmdeploy - install an ERC20 token or a staking contract, or watch a deploy
from the command line.

Examples:
    wasmdeploy install-erc20 FerrumX FRMX 11 1000000000000000 200000000000 erc20_token.wasm \\
        --secret-key ~/.casper/keys/secret_key.pem --rpc http://localhost:11101/rpc \\
        --events http://localhost:18101/events/main --chain-name casper-net-1

    wasmdeploy install-staking FerrumX <token_address> 1700000000000 1700000600000 \\
        1700000600000 1700001200000 500000000000000000000 contract-<hex> 200000000000 staking_contract.wasm

    wasmdeploy watch <deploy_hash> --rpc http://localhost:11101/rpc
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from wasmdeploy_sdk import __version__
from wasmdeploy_sdk.config import NetworkConfig
from wasmdeploy_sdk.deploy_manager import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, DeployManager, InstallResult
from wasmdeploy_sdk.erc20 import Erc20Params
from wasmdeploy_sdk.exceptions import DeployError, ErrorKind
from wasmdeploy_sdk.identity.key_store import KeyStore
from wasmdeploy_sdk.rpc.events import EventStreamClient
from wasmdeploy_sdk.rpc.transport import get_transport
from wasmdeploy_sdk.staking import StakingParams

logger = logging.getLogger("wasmdeploy")

# Endpoints used by --dry-run when none are configured
DRY_RUN_RPC = "http://localhost:7777/rpc"
DRY_RUN_EVENTS = "http://localhost:9999/events/main"
DRY_RUN_CHAIN = "casper-net-1"

EXIT_OK = 0
EXIT_CONFIG = 2

EXIT_CODES = {
    ErrorKind.INVALID_PARAMETERS: 2,
    ErrorKind.INVALID_KEY_FORMAT: 3,
    ErrorKind.SIGNING_ERROR: 4,
    ErrorKind.NETWORK_ERROR: 5,
    ErrorKind.RPC_REJECTED: 6,
    ErrorKind.TIMED_OUT: 7,
    ErrorKind.EXECUTION_ERROR: 8,
    ErrorKind.EXPIRED: 9,
}


def exit_code_for(error: DeployError) -> int:
    return EXIT_CODES.get(error.kind, 1)


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return number


def _add_network_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--rpc",
        help="JSON-RPC endpoint URL (default: $WASMDEPLOY_RPC_URL)"
    )
    parser.add_argument(
        "--events",
        help="Event stream URL (default: $WASMDEPLOY_EVENTS_URL)"
    )
    parser.add_argument(
        "--chain-name",
        help="Chain name deploys are signed for (default: $WASMDEPLOY_CHAIN_NAME)"
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=DEFAULT_TIMEOUT,
        help=f"Seconds to wait for finalization (default: {DEFAULT_TIMEOUT:g})"
    )
    parser.add_argument(
        "--poll-interval",
        type=_positive_float,
        default=DEFAULT_POLL_INTERVAL,
        help=f"Seconds between status polls (default: {DEFAULT_POLL_INTERVAL:g})"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )


def _add_install_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--secret-key",
        help="PEM secret key file (default: $WASMDEPLOY_SECRET_KEY_PATH)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use an in-memory node instead of the network"
    )
    _add_network_arguments(parser)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="wasmdeploy",
        description="Install contracts and track deploys to finalization."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser("install-erc20", help="Install an ERC20 token contract")
    install.add_argument("name", help="Token name")
    install.add_argument("symbol", help="Token symbol")
    install.add_argument("decimals", type=int, help="Decimal places (0-255)")
    install.add_argument("total_supply", type=int, help="Total supply in the smallest unit")
    install.add_argument("payment_amount", type=int, help="Payment for the deploy in motes")
    install.add_argument("wasm_path", help="Path to the compiled token contract")
    _add_install_arguments(install)

    staking = subparsers.add_parser("install-staking", help="Install a staking contract for an ERC20 token")
    staking.add_argument("name", help="Staking contract name")
    staking.add_argument("address", help="Address of the staked token")
    staking.add_argument("staking_starts", type=int, help="Block time staking opens")
    staking.add_argument("staking_ends", type=int, help="Block time staking closes")
    staking.add_argument("withdraw_starts", type=int, help="Block time withdrawals open (equal to staking_ends)")
    staking.add_argument("withdraw_ends", type=int, help="Block time withdrawals close")
    staking.add_argument("staking_total", type=int, help="Maximum total stake")
    staking.add_argument("erc20_contract_hash", help="Hash of the staked token contract")
    staking.add_argument("payment_amount", type=int, help="Payment for the deploy in motes")
    staking.add_argument("wasm_path", help="Path to the compiled staking contract")
    _add_install_arguments(staking)

    watch = subparsers.add_parser("watch", help="Wait for a submitted deploy to finalize")
    watch.add_argument("deploy_hash", help="Hex deploy hash")
    watch.add_argument(
        "--use-events",
        action="store_true",
        help="Wait on the event stream instead of polling"
    )
    _add_network_arguments(watch)
    return parser


def _load_config(args: argparse.Namespace) -> NetworkConfig:
    overrides = {
        "rpc_endpoint": args.rpc,
        "event_stream_endpoint": args.events,
        "chain_name": args.chain_name,
    }
    if getattr(args, "dry_run", False):
        try:
            return NetworkConfig.from_env(**overrides)
        except ValueError:
            return NetworkConfig(
                rpc_endpoint=args.rpc or DRY_RUN_RPC,
                event_stream_endpoint=args.events or DRY_RUN_EVENTS,
                chain_name=args.chain_name or DRY_RUN_CHAIN,
            )
    return NetworkConfig.from_env(**overrides)


def _load_key_store(args: argparse.Namespace) -> KeyStore:
    if args.secret_key:
        return KeyStore.load(args.secret_key)
    if args.dry_run:
        try:
            return KeyStore.from_env()
        except DeployError:
            logger.info("No secret key found; using a throwaway key for the dry run")
            return KeyStore.generate()
    return KeyStore.from_env()


def _report(result: InstallResult, success_label: str) -> int:
    if result.ok:
        print(f"{success_label}: {result.contract_address or result.deploy_hash}")
        return EXIT_OK
    suffix = f" (deploy {result.deploy_hash})" if result.deploy_hash else ""
    print(f"Error: {result.error}{suffix}", file=sys.stderr)
    return exit_code_for(result.error)


async def _install_erc20(args: argparse.Namespace, config: NetworkConfig) -> int:
    params = Erc20Params(
        name=args.name,
        symbol=args.symbol,
        decimals=args.decimals,
        total_supply=args.total_supply,
        payment_amount=args.payment_amount,
        wasm_path=args.wasm_path,
    )
    return await _install(args, config, params)


async def _install_staking(args: argparse.Namespace, config: NetworkConfig) -> int:
    params = StakingParams(
        name=args.name,
        address=args.address,
        staking_starts=args.staking_starts,
        staking_ends=args.staking_ends,
        withdraw_starts=args.withdraw_starts,
        withdraw_ends=args.withdraw_ends,
        staking_total=args.staking_total,
        erc20_contract_hash=args.erc20_contract_hash,
        payment_amount=args.payment_amount,
        wasm_path=args.wasm_path,
    )
    return await _install(args, config, params)


async def _install(args: argparse.Namespace, config: NetworkConfig, params) -> int:
    with _load_key_store(args) as key_store:
        transport = get_transport(config, dry_run=args.dry_run)
        with transport:
            with DeployManager(config, key_store, transport, poll_interval=args.poll_interval) as manager:
                result = await manager.install(params, timeout=args.timeout)
    return _report(result, "Contract installed")


async def _watch(args: argparse.Namespace, config: NetworkConfig) -> int:
    if args.use_events:
        events = EventStreamClient(config)
        try:
            status = await asyncio.to_thread(events.wait_for_deploy, args.deploy_hash, args.timeout)
        finally:
            events.close()
        if status.success:
            print(f"Deploy executed: {status.contract_address or args.deploy_hash}")
            return EXIT_OK
        print(f"Error: deploy {args.deploy_hash} failed: {status.message}", file=sys.stderr)
        return EXIT_CODES[ErrorKind.EXECUTION_ERROR]

    with get_transport(config) as transport:
        with DeployManager(config, None, transport, poll_interval=args.poll_interval) as manager:
            result = await manager.wait_for_finalization(args.deploy_hash, args.timeout)
    return _report(result, "Deploy executed")


COMMANDS = {
    "install-erc20": _install_erc20,
    "install-staking": _install_staking,
    "watch": _watch,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return its exit code."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        config = _load_config(args)
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG

    command = COMMANDS[args.command]
    try:
        return asyncio.run(command(args, config))
    except DeployError as e:
        print(f"Error: {e}", file=sys.stderr)
        return exit_code_for(e)
    except KeyboardInterrupt:
        print("Cancelled; a submitted deploy stays on the network", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
