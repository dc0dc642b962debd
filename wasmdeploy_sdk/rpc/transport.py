"""
Transport layer for talking to a node.

This module defines the interface every transport implements (JSON-RPC over
HTTP, or the in-memory stub) and the behavior they share: bounded retries with
exponential backoff for transient network errors, and a cache of terminal
deploy statuses so polling never goes backwards.
"""
import logging
import random
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Sequence, TypeVar

from cachetools import LRUCache

from ..config import NetworkConfig
from ..exceptions import NetworkError, SubmissionUncertain
from ..models import DeployStatus, SignedDeploy, StatusKind

# Configure logger
logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_BASE = 0.5
DEFAULT_BACKOFF_CAP = 8.0
BACKOFF_JITTER = 0.1


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.001)


def backoff_delay(
    attempt: int,
    base: float = DEFAULT_BACKOFF_BASE,
    cap: float = DEFAULT_BACKOFF_CAP,
    jitter: float = BACKOFF_JITTER
) -> float:
    """
    Delay before retry number ``attempt`` (1-based).

    Doubles from ``base`` with up to ``jitter`` extra to avoid thundering herd,
    never exceeding ``cap``.
    """
    delay = base * (2 ** (max(attempt, 1) - 1))
    delay += delay * random.uniform(0, jitter)
    return min(delay, cap)


class RpcTransport(ABC):
    """
    Abstract base class for node transports.

    Subclasses implement the single-attempt operations (``_send_deploy``,
    ``_fetch_status``, ``_query_state``, ``_query_dictionary``) and raise
    ``NetworkError`` for anything transient. The public methods add retries
    and status bookkeeping.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        backoff_cap: float = DEFAULT_BACKOFF_CAP,
        clock: Callable[[], float] = time.time,
        cache_size: int = 1024
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._clock = clock
        self._terminal: LRUCache = LRUCache(maxsize=cache_size)
        self._expiry_ms: LRUCache = LRUCache(maxsize=cache_size)
        self._status_lock = threading.Lock()

    def submit(self, signed: SignedDeploy) -> str:
        """
        Send a signed deploy to the node.

        Returns:
            The deploy hash acknowledged by the node

        Raises:
            NetworkError: If the node stays unreachable for every attempt
            SubmissionUncertain: If the deploy was sent but no answer arrived
            RpcRejected: If the node refuses the deploy
        """
        with self._status_lock:
            self._expiry_ms[signed.deploy_hash] = signed.request.expires_at_ms
        deploy_hash = self._with_retries(
            lambda: self._send_deploy(signed), f"submit of deploy {signed.deploy_hash}"
        )
        logger.info(f"Deploy {deploy_hash} accepted by node")
        return deploy_hash

    def poll_status(self, deploy_hash: str, timeout: Optional[float] = None) -> DeployStatus:
        """
        Query the finalization state of a deploy.

        Once a terminal status has been seen for a deploy hash it is returned
        for every later poll.

        Args:
            deploy_hash: Hex deploy hash
            timeout: Seconds the query may take including retries (None for
                the full retry schedule)

        Raises:
            NetworkError: If the node stays unreachable for every attempt or
                until the timeout passes
        """
        with self._status_lock:
            cached = self._terminal.get(deploy_hash)
        if cached is not None:
            return cached

        deadline = None if timeout is None else time.monotonic() + timeout
        status = self._with_retries(
            lambda: self._fetch_status(deploy_hash, timeout=_remaining(deadline)),
            f"status query for deploy {deploy_hash}",
            deadline=deadline
        )

        with self._status_lock:
            if status.kind == StatusKind.PENDING:
                expires_at = self._expiry_ms.get(deploy_hash)
                if expires_at is not None and self._clock() * 1000 > expires_at:
                    logger.warning(f"Deploy {deploy_hash} expired before execution")
                    status = DeployStatus.expired()
            if status.is_terminal:
                status = self._terminal.setdefault(deploy_hash, status)
        return status

    def query_state(self, key: str, path: Sequence[str] = ()) -> Any:
        """
        Read a stored value from global state.

        Args:
            key: Base key, e.g. a contract hash ``hash-...``
            path: Named keys to follow from the base key

        Returns:
            The parsed stored value
        """
        return self._with_retries(
            lambda: self._query_state(key, list(path)), f"state query for {key}"
        )

    def query_dictionary(self, contract_hash: str, dictionary_name: str, item_key: str) -> Any:
        """Read an item from a dictionary stored under a contract's named key."""
        return self._with_retries(
            lambda: self._query_dictionary(contract_hash, dictionary_name, item_key),
            f"dictionary query for {dictionary_name}/{item_key}"
        )

    def close(self) -> None:
        """Close any open connections or resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _with_retries(
        self,
        operation: Callable[[], T],
        description: str,
        deadline: Optional[float] = None
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return operation()
            except SubmissionUncertain:
                raise
            except NetworkError as e:
                if attempt >= self.max_attempts:
                    logger.error(f"{description} failed after {attempt} attempts: {e.message}")
                    raise NetworkError(
                        f"{description} failed after {attempt} attempts: {e.message}",
                        attempts=attempt
                    ) from e
                delay = backoff_delay(attempt, self.backoff_base, self.backoff_cap)
                if deadline is not None and time.monotonic() + delay >= deadline:
                    raise NetworkError(
                        f"{description} failed after {attempt} attempts and ran out of time: {e.message}",
                        attempts=attempt
                    ) from e
                logger.info(
                    f"Retrying {description} (attempt {attempt + 1}/{self.max_attempts}) in {delay:.2f}s"
                )
                time.sleep(delay)

    @abstractmethod
    def _send_deploy(self, signed: SignedDeploy) -> str:
        """Send the deploy once and return the acknowledged deploy hash."""

    @abstractmethod
    def _fetch_status(self, deploy_hash: str, timeout: Optional[float] = None) -> DeployStatus:
        """Query the deploy status once, within ``timeout`` seconds if given."""

    @abstractmethod
    def _query_state(self, key: str, path: Sequence[str]) -> Any:
        """Query global state once."""

    @abstractmethod
    def _query_dictionary(self, contract_hash: str, dictionary_name: str, item_key: str) -> Any:
        """Query a dictionary item once."""


def get_transport(config: NetworkConfig, dry_run: bool = False, **kwargs) -> RpcTransport:
    """
    Get a transport for the given network.

    Args:
        config: Network configuration
        dry_run: Use the in-memory stub node instead of the real endpoint
        **kwargs: Passed to the transport constructor

    Returns:
        Transport implementation
    """
    if dry_run:
        from .stub_transport import StubTransport
        logger.info("Using in-memory stub transport (dry run)")
        return StubTransport(chain_name=config.chain_name, **kwargs)

    from .http_transport import HttpTransport
    logger.info(f"Using JSON-RPC transport for {config.rpc_endpoint}")
    return HttpTransport(config, **kwargs)
