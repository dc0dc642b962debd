"""
Stub-based transport implementation.

This module provides an in-memory node used for dry runs and tests. It checks
deploys the way a node does (chain name, deploy hash, approval signature) and
can be scripted to fail transiently, reject, stay pending or fail execution.
"""
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from ..exceptions import NetworkError, RpcRejected
from ..identity.crypto import verify_signature
from ..models import DeployStatus, SignedDeploy
from ..serialization import deploy_hash as compute_deploy_hash
from .http_transport import VALUE_NOT_FOUND
from .transport import RpcTransport

# Configure logger
logger = logging.getLogger(__name__)

# JSON-RPC error code for a deploy the node refuses
INVALID_DEPLOY = -32008

DEFAULT_CONTRACT_ADDRESS = "hash-" + "11" * 32


class StubTransport(RpcTransport):
    """
    A simple in-memory implementation of the node transport.

    Attributes:
        submitted: Accepted deploys by deploy hash
        submit_attempts: Number of single submit attempts, including failed ones
        poll_count: Number of status queries that reached the stub
        state: Named keys per base key, e.g. ``{"hash-..": {"name": "FerrumX"}}``
        dictionaries: Dictionary items by (contract hash, dictionary, item key)
    """

    def __init__(
        self,
        chain_name: Optional[str] = None,
        contract_address: str = DEFAULT_CONTRACT_ADDRESS,
        pending_polls: int = 0,
        never_finalize: bool = False,
        reject_with: Optional[str] = None,
        execution_error: Optional[str] = None,
        transient_failures: int = 0,
        state: Optional[Dict[str, Dict[str, Any]]] = None,
        dictionaries: Optional[Dict[Tuple[str, str, str], Any]] = None,
        **kwargs
    ):
        """
        Initialize the stub transport.

        Args:
            chain_name: Reject deploys for any other chain (None accepts all)
            contract_address: Address reported for successful installs
            pending_polls: Status queries answered Pending before the outcome
            never_finalize: Answer Pending forever
            reject_with: Reject every deploy with this message
            execution_error: Report execution failure with this message
            transient_failures: Submit attempts that fail with NetworkError first
            state: Initial named-key values
            dictionaries: Initial dictionary items
            **kwargs: Retry settings passed to RpcTransport
        """
        super().__init__(**kwargs)
        self.chain_name = chain_name
        self.contract_address = contract_address
        self.pending_polls = pending_polls
        self.never_finalize = never_finalize
        self.reject_with = reject_with
        self.execution_error = execution_error
        self.transient_failures = transient_failures
        self.state: Dict[str, Dict[str, Any]] = dict(state or {})
        self.dictionaries: Dict[Tuple[str, str, str], Any] = dict(dictionaries or {})

        self.submitted: Dict[str, SignedDeploy] = {}
        self.submit_attempts = 0
        self.poll_count = 0
        self._polls_by_hash: Dict[str, int] = {}

    def _send_deploy(self, signed: SignedDeploy) -> str:
        self.submit_attempts += 1
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise NetworkError("Simulated connection failure")

        if self.reject_with:
            logger.warning(f"Simulating rejected deploy: {self.reject_with}")
            raise RpcRejected(self.reject_with, code=INVALID_DEPLOY)

        request = signed.request
        if self.chain_name is not None and request.chain_name != self.chain_name:
            raise RpcRejected(
                f"Invalid deploy: chain name {request.chain_name!r} does not match {self.chain_name!r}",
                code=INVALID_DEPLOY
            )
        if compute_deploy_hash(request).hex() != signed.deploy_hash:
            raise RpcRejected("Invalid deploy: deploy hash does not match contents", code=INVALID_DEPLOY)
        if not verify_signature(request.sender, bytes.fromhex(signed.deploy_hash), signed.signature):
            raise RpcRejected("Invalid deploy: approval signature does not verify", code=INVALID_DEPLOY)

        self.submitted[signed.deploy_hash] = signed
        self._polls_by_hash.setdefault(signed.deploy_hash, 0)
        logger.debug(f"StubTransport accepted deploy {signed.deploy_hash}")
        return signed.deploy_hash

    def _fetch_status(self, deploy_hash: str, timeout: Optional[float] = None) -> DeployStatus:
        self.poll_count += 1
        signed = self.submitted.get(deploy_hash)
        if signed is None:
            return DeployStatus.pending()

        self._polls_by_hash[deploy_hash] += 1
        if self.never_finalize or self._polls_by_hash[deploy_hash] <= self.pending_polls:
            return DeployStatus.pending()

        if self.execution_error:
            return DeployStatus.executed(False, message=self.execution_error, cost=signed.request.payment_amount)

        address = self.contract_address if signed.request.is_install else None
        return DeployStatus.executed(True, contract_address=address, cost=signed.request.payment_amount)

    def _query_state(self, key: str, path: Sequence[str]) -> Any:
        value: Any = self.state.get(key)
        for name in path:
            if not isinstance(value, dict) or name not in value:
                value = None
                break
            value = value[name]
        if value is None:
            raise RpcRejected(f"Value not found: {key}/{'/'.join(path)}", code=VALUE_NOT_FOUND)
        return value

    def _query_dictionary(self, contract_hash: str, dictionary_name: str, item_key: str) -> Any:
        try:
            return self.dictionaries[(contract_hash, dictionary_name, item_key)]
        except KeyError:
            raise RpcRejected(f"Dictionary item not found: {dictionary_name}/{item_key}", code=VALUE_NOT_FOUND)
