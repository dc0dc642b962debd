"""
JSON-RPC over HTTP transport.

Talks to a node's JSON-RPC 2.0 endpoint with ``requests``:

- ``account_put_deploy`` to submit
- ``info_get_deploy`` to poll execution results
- ``chain_get_state_root_hash``, ``query_global_state`` and
  ``state_get_dictionary_item`` to read contract state
"""
import itertools
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..config import NetworkConfig
from ..exceptions import NetworkError, RpcRejected, SubmissionUncertain
from ..models import DeployStatus, SignedDeploy
from .transport import RpcTransport

# Configure logger
logger = logging.getLogger(__name__)

# HTTP statuses returned by proxies and overloaded nodes before the request is handled
RETRYABLE_STATUS_CODES = (429, 502, 503, 504)

# JSON-RPC error code for a deploy the node has not seen (yet)
NO_SUCH_DEPLOY = -32000

# JSON-RPC error code for a missing global state value or dictionary item
VALUE_NOT_FOUND = -32003


def find_contract_address(effect: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Find the key of the contract written by a deploy's execution effect.

    Returns:
        The ``hash-...`` key of the first ``WriteContract`` transform, or None
    """
    for entry in (effect or {}).get("transforms", []):
        transform = entry.get("transform")
        if transform == "WriteContract" or (isinstance(transform, dict) and "WriteContract" in transform):
            return entry.get("key")
    return None


def _parse_cost(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def parse_execution_result(result: Dict[str, Any]) -> DeployStatus:
    """
    Convert one execution result (``{"Success": ...}`` or ``{"Failure": ...}``)
    into a DeployStatus.
    """
    if "Success" in result:
        success = result["Success"] or {}
        return DeployStatus.executed(
            True,
            contract_address=find_contract_address(success.get("effect")),
            cost=_parse_cost(success.get("cost")),
        )
    if "Failure" in result:
        failure = result["Failure"] or {}
        return DeployStatus.executed(
            False,
            message=failure.get("error_message") or "Deploy execution failed",
            cost=_parse_cost(failure.get("cost")),
        )
    return DeployStatus.error(f"Unrecognized execution result: {sorted(result)}")


def parse_execution_results(results: List[Dict[str, Any]]) -> DeployStatus:
    """A deploy without execution results has not been executed yet."""
    if not results:
        return DeployStatus.pending()
    return parse_execution_result(results[0].get("result") or {})


def _stored_cl_value(result: Dict[str, Any]) -> Any:
    stored_value = (result or {}).get("stored_value") or {}
    if "CLValue" not in stored_value:
        raise RpcRejected(f"Stored value is not a CLValue: {sorted(stored_value)}")
    return stored_value["CLValue"].get("parsed")


class HttpTransport(RpcTransport):
    """
    Transport that sends JSON-RPC requests to the configured endpoint.
    """

    def __init__(
        self,
        config: NetworkConfig,
        session: Optional[requests.Session] = None,
        **kwargs
    ):
        """
        Initialize the HTTP transport.

        Args:
            config: Network configuration; ``rpc_endpoint`` is the full
                JSON-RPC URL (e.g. ``http://node:7777/rpc``)
            session: Optional requests session to reuse
            **kwargs: Retry settings passed to RpcTransport
        """
        super().__init__(**kwargs)
        self.config = config
        self.rpc_url = config.rpc_endpoint
        self.timeout = config.request_timeout
        self.session = session or requests.Session()
        self._request_ids = itertools.count(1)

    def _call(
        self,
        method: str,
        params: Optional[Any] = None,
        uncertain_hash: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> Any:
        """
        Make one JSON-RPC call.

        Args:
            method: JSON-RPC method name
            params: Method parameters
            uncertain_hash: Deploy hash to report if the request may have been
                delivered without an answer (read timeout or server error)
            timeout: Upper bound for this request, below the configured timeout

        Raises:
            NetworkError: For connection failures, server errors, rate limiting
                and garbled responses
            SubmissionUncertain: For a read timeout or server error when
                ``uncertain_hash`` is set
            RpcRejected: For JSON-RPC errors and HTTP 4xx responses
        """
        payload = {"jsonrpc": "2.0", "id": next(self._request_ids), "method": method}
        if params is not None:
            payload["params"] = params
        request_timeout = self.timeout if timeout is None else min(self.timeout, timeout)

        try:
            response = self.session.post(self.rpc_url, json=payload, timeout=request_timeout)
        except requests.ConnectionError as e:
            # Includes ConnectTimeout: nothing reached the node
            raise NetworkError(f"Cannot reach node at {self.rpc_url}: {e}")
        except requests.Timeout as e:
            if uncertain_hash is not None:
                raise SubmissionUncertain(
                    f"No response to {method} within {request_timeout}s; the node may have accepted it",
                    deploy_hash=uncertain_hash
                )
            raise NetworkError(f"{method} timed out: {e}")
        except requests.RequestException as e:
            raise NetworkError(f"{method} request failed: {e}")

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise NetworkError(f"{method} failed with HTTP {response.status_code}")
        if response.status_code >= 500:
            message = f"{method} failed with HTTP {response.status_code}: {response.text[:200]}"
            if uncertain_hash is not None:
                raise SubmissionUncertain(
                    f"{message}; the node may have accepted it",
                    deploy_hash=uncertain_hash
                )
            raise NetworkError(message)
        if response.status_code >= 400:
            raise RpcRejected(
                f"{method} failed with HTTP {response.status_code}: {response.text[:200]}",
                code=response.status_code,
                http_status=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise NetworkError(f"Invalid JSON response to {method}: {e}")

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            logger.debug(f"{method} returned error: {error}")
            raise RpcRejected(
                f"{method} rejected: {error.get('message', 'unknown error')}",
                code=error.get("code"),
                data=error.get("data")
            )
        if not isinstance(body, dict) or "result" not in body:
            raise NetworkError(f"Malformed JSON-RPC response to {method}")
        return body["result"]

    def _send_deploy(self, signed: SignedDeploy) -> str:
        result = self._call(
            "account_put_deploy",
            {"deploy": signed.to_json()},
            uncertain_hash=signed.deploy_hash
        )
        acknowledged = result.get("deploy_hash") if isinstance(result, dict) else None
        if acknowledged and acknowledged != signed.deploy_hash:
            raise RpcRejected(
                f"Node acknowledged deploy {acknowledged}, expected {signed.deploy_hash}"
            )
        return acknowledged or signed.deploy_hash

    def _fetch_status(self, deploy_hash: str, timeout: Optional[float] = None) -> DeployStatus:
        try:
            result = self._call("info_get_deploy", {"deploy_hash": deploy_hash}, timeout=timeout)
        except RpcRejected as e:
            if e.http_status is not None:
                # Says nothing about the deploy itself
                raise NetworkError(e.message)
            if e.code == NO_SUCH_DEPLOY:
                logger.debug(f"Deploy {deploy_hash} not known to node yet")
                return DeployStatus.pending()
            return DeployStatus.error(e.message)
        return parse_execution_results((result or {}).get("execution_results") or [])

    def _state_root_hash(self) -> str:
        result = self._call("chain_get_state_root_hash")
        root = (result or {}).get("state_root_hash")
        if not root:
            raise NetworkError("Node returned no state root hash")
        return root

    def _query_state(self, key: str, path: Sequence[str]) -> Any:
        result = self._call("query_global_state", {
            "state_identifier": {"StateRootHash": self._state_root_hash()},
            "key": key,
            "path": list(path),
        })
        return _stored_cl_value(result)

    def _query_dictionary(self, contract_hash: str, dictionary_name: str, item_key: str) -> Any:
        result = self._call("state_get_dictionary_item", {
            "state_root_hash": self._state_root_hash(),
            "dictionary_identifier": {
                "ContractNamedKey": {
                    "key": contract_hash,
                    "dictionary_name": dictionary_name,
                    "dictionary_item_key": item_key,
                }
            },
        })
        return _stored_cl_value(result)

    def close(self) -> None:
        self.session.close()
