"""
DeployManager - builds, signs, submits and tracks deploys.
"""
import asyncio
import functools
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from pydantic import ValidationError

from .config import NetworkConfig
from .exceptions import (
    DeployError, DeployExpired, DeployTimeout, ExecutionError,
    InvalidParameters, NetworkError, SigningError, SubmissionUncertain,
)
from .identity.key_store import KeyStore
from .models import (
    DEFAULT_TTL_MS, ContractParams, DeployArg, DeployRequest,
    DeployStatus, SignedDeploy, StatusKind,
)
from .rpc._rate_limited_log import rate_limited_log
from .rpc.transport import RpcTransport, get_transport
from .serialization import body_hash, deploy_hash, encode_u64, parse_hash

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_TIMEOUT = 300.0


class DeployState(str, Enum):
    """Where a deployment is in its lifecycle."""
    BUILDING = "Building"
    SIGNED = "Signed"
    SUBMITTED = "Submitted"
    FINALIZED = "Finalized"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


@dataclass
class InstallResult:
    """
    Terminal outcome of ``install`` or ``call``.

    Exactly one of ``contract_address`` (for a finalized install) and
    ``error`` (for a failed or timed-out deploy) is meaningful.
    """
    state: DeployState
    deploy_hash: Optional[str] = None
    contract_address: Optional[str] = None
    error: Optional[DeployError] = None
    status: Optional[DeployStatus] = None

    @property
    def ok(self) -> bool:
        return self.state == DeployState.FINALIZED

    def unwrap(self) -> Optional[str]:
        """
        Return the contract address or raise the deploy's error.
        """
        if self.error is not None:
            raise self.error
        return self.contract_address


def _as_contract_params(params: Any) -> ContractParams:
    if isinstance(params, ContractParams):
        return params
    to_contract_params = getattr(params, "to_contract_params", None)
    if callable(to_contract_params):
        return to_contract_params()
    raise InvalidParameters(f"Unsupported contract parameters: {type(params).__name__}")


class DeployManager:
    """
    Orchestrates one deployment at a time.

    The pipeline is Building -> Signed -> Submitted -> Finalized / Failed /
    TimedOut. Blocking transport calls run on the manager's own worker threads
    and the wait between status polls is an ``asyncio.sleep``, so the event
    loop stays free for other work. Cancelling ``install`` stops local waiting
    only; a deploy that was already submitted is left to the network.

    ``close()`` (or leaving a ``with`` block) releases the worker threads
    without waiting for a status query that outlived its deadline.
    """

    def __init__(
        self,
        config: NetworkConfig,
        key_store: Optional[KeyStore],
        transport: Optional[RpcTransport] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        ttl_ms: int = DEFAULT_TTL_MS,
        gas_price: int = 1,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the DeployManager

        Args:
            config: Network configuration (endpoints and chain name)
            key_store: Key store holding the sender's signing key; only
                needed to build and sign deploys
            transport: Transport to the node (defaults to JSON-RPC over HTTP)
            poll_interval: Seconds between status polls
            ttl_ms: Time-to-live of built deploys in milliseconds
            gas_price: Gas price of built deploys
            clock: Source of the deploy timestamp, seconds since the epoch
            logger: Optional logger instance to use for debug/info logging
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.config = config
        self.key_store = key_store
        self.transport = transport or get_transport(config)
        self.poll_interval = poll_interval
        self.ttl_ms = ttl_ms
        self.gas_price = gas_price
        self._clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self.state: Optional[DeployState] = None
        self.poll_attempts = 0
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="wasmdeploy")

    async def run_blocking(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking call, such as a transport query, off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args, **kwargs))

    def close(self) -> None:
        """Stop the worker threads; queries still running are abandoned."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "DeployManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _transition(self, state: DeployState) -> None:
        self.logger.debug(f"Deploy state: {self.state.value if self.state else None} -> {state.value}")
        self.state = state

    def build_install_request(self, params: ContractParams) -> DeployRequest:
        """
        Assemble the request that installs a contract binary.

        Raises:
            InvalidParameters: If the binary is empty, a required argument is
                missing or the payment amount is not positive
        """
        self._transition(DeployState.BUILDING)
        if not params.session_wasm:
            raise InvalidParameters("Contract binary is empty")
        return self._build_request(
            params.args, params.payment_amount, params.required_args,
            session_wasm=params.session_wasm
        )

    def build_call_request(
        self,
        contract_hash: str,
        entry_point: str,
        args: Sequence[DeployArg],
        payment_amount: int
    ) -> DeployRequest:
        """
        Assemble the request that calls an entry point of an installed contract.

        Raises:
            InvalidParameters: If the contract hash, entry point or payment is invalid
        """
        self._transition(DeployState.BUILDING)
        try:
            parse_hash(contract_hash)
        except ValueError as e:
            raise InvalidParameters(f"Invalid contract hash: {e}")
        if not entry_point:
            raise InvalidParameters("entry_point is required")
        return self._build_request(
            args, payment_amount, contract_hash=contract_hash, entry_point=entry_point
        )

    def _build_request(
        self,
        args: Sequence[DeployArg],
        payment_amount: int,
        required_args: Sequence[str] = (),
        **session
    ) -> DeployRequest:
        if isinstance(payment_amount, bool) or not isinstance(payment_amount, int) or payment_amount <= 0:
            raise InvalidParameters(f"payment_amount must be a positive integer, got {payment_amount!r}")
        try:
            encode_u64(payment_amount)
        except ValueError as e:
            raise InvalidParameters(f"payment_amount out of range: {e}")

        names = [arg.name for arg in args]
        missing = [name for name in required_args if name not in names]
        if missing:
            raise InvalidParameters(f"Missing required arguments: {', '.join(missing)}")
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise InvalidParameters(f"Duplicate arguments: {', '.join(duplicates)}")
        if self.key_store is None:
            raise SigningError("No key store configured")

        try:
            return DeployRequest(
                sender=self.key_store.public_key,
                chain_name=self.config.chain_name,
                payment_amount=payment_amount,
                timestamp_ms=int(self._clock() * 1000),
                args=tuple(args),
                ttl_ms=self.ttl_ms,
                gas_price=self.gas_price,
                **session
            )
        except ValidationError as e:
            raise InvalidParameters(f"Invalid deploy request: {e}")

    def sign(self, request: DeployRequest) -> SignedDeploy:
        """
        Hash and sign a request.

        Raises:
            SigningError: If the key store cannot sign
        """
        if self.key_store is None:
            raise SigningError("No key store configured")
        digest = deploy_hash(request)
        signature = self.key_store.sign(digest)
        signed = SignedDeploy(
            request=request,
            deploy_hash=digest.hex(),
            body_hash=body_hash(request).hex(),
            signature=signature
        )
        self._transition(DeployState.SIGNED)
        return signed

    async def install(self, params: Any, timeout: float = DEFAULT_TIMEOUT) -> InstallResult:
        """
        Install a contract and wait for it to be finalized.

        Args:
            params: ContractParams, or an object with ``to_contract_params()``
                such as ``Erc20Params``
            timeout: Seconds to wait for finalization once submitted

        Returns:
            InstallResult; ``contract_address`` is set when finalized
        """
        return await self._execute(
            lambda: self.build_install_request(_as_contract_params(params)), timeout
        )

    async def call(
        self,
        contract_hash: str,
        entry_point: str,
        args: Sequence[DeployArg],
        payment_amount: int,
        timeout: float = DEFAULT_TIMEOUT
    ) -> InstallResult:
        """
        Call an entry point of an installed contract and wait for execution.
        """
        return await self._execute(
            lambda: self.build_call_request(contract_hash, entry_point, args, payment_amount), timeout
        )

    async def _execute(self, build: Callable[[], DeployRequest], timeout: float) -> InstallResult:
        submitted_hash = None
        try:
            if timeout <= 0:
                raise InvalidParameters(f"timeout must be positive, got {timeout!r}")
            signed = self.sign(build())
            submitted_hash = signed.deploy_hash
            self.logger.info(f"Submitting deploy {signed.deploy_hash} to {self.config.chain_name}")
            submitted_hash = await self.run_blocking(self.transport.submit, signed)
        except SubmissionUncertain as e:
            self.logger.warning(f"{e.message}; polling for deploy {e.deploy_hash} instead of resubmitting")
            submitted_hash = e.deploy_hash
        except DeployError as e:
            return self._fail(e, submitted_hash)

        self._transition(DeployState.SUBMITTED)
        return await self.wait_for_finalization(submitted_hash, timeout)

    async def wait_for_finalization(self, deploy_hash: str, timeout: float) -> InstallResult:
        """
        Poll a submitted deploy until it reaches a terminal status or the
        deadline passes.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        self.poll_attempts = 0

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                status = None
                try:
                    self.poll_attempts += 1
                    status = await asyncio.wait_for(
                        self.run_blocking(self.transport.poll_status, deploy_hash, timeout=remaining),
                        timeout=remaining
                    )
                except asyncio.TimeoutError:
                    break
                except NetworkError as e:
                    rate_limited_log(
                        f"Status query for deploy {deploy_hash} failed: {e.message}",
                        level="warning",
                        interval=60,
                        logger_instance=self.logger
                    )

                if status is not None and status.is_terminal:
                    return self._finish(deploy_hash, status)

                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                await asyncio.sleep(min(self.poll_interval, remaining))
        except asyncio.CancelledError:
            self.logger.info(f"Stopped waiting for deploy {deploy_hash}; the submitted deploy stays on the network")
            raise

        self._transition(DeployState.TIMED_OUT)
        error = DeployTimeout(f"Deploy {deploy_hash} was not finalized within {timeout}s")
        self.logger.warning(error.message)
        return InstallResult(state=DeployState.TIMED_OUT, deploy_hash=deploy_hash, error=error)

    def _finish(self, deploy_hash: str, status: DeployStatus) -> InstallResult:
        if status.kind == StatusKind.EXECUTED and status.success:
            self._transition(DeployState.FINALIZED)
            self.logger.info(f"Deploy {deploy_hash} finalized (contract: {status.contract_address})")
            return InstallResult(
                state=DeployState.FINALIZED,
                deploy_hash=deploy_hash,
                contract_address=status.contract_address,
                status=status
            )

        if status.kind == StatusKind.EXPIRED:
            error = DeployExpired(f"Deploy {deploy_hash} expired before execution")
        else:
            error = ExecutionError(status.message or f"Deploy {deploy_hash} failed")
        return self._fail(error, deploy_hash, status)

    def _fail(
        self,
        error: DeployError,
        deploy_hash: Optional[str],
        status: Optional[DeployStatus] = None
    ) -> InstallResult:
        self._transition(DeployState.FAILED)
        self.logger.error(f"Deploy failed: {error}")
        return InstallResult(state=DeployState.FAILED, deploy_hash=deploy_hash, error=error, status=status)
