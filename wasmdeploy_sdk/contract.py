"""
Shared plumbing for clients bound to one installed contract.
"""
import logging
from pathlib import Path
from typing import Any, List, Optional

from .deploy_manager import DEFAULT_TIMEOUT, DeployManager, DeployState, InstallResult
from .exceptions import InvalidParameters, RpcRejected
from .models import DeployArg
from .rpc.http_transport import VALUE_NOT_FOUND
from .serialization import parse_hash

# Configure logger
logger = logging.getLogger(__name__)

# Payment for entry-point calls when none is given, in motes
DEFAULT_CALL_PAYMENT = 1_000_000_000


def read_wasm(wasm: Optional[bytes], wasm_path: Optional[str]) -> bytes:
    """
    Return the contract binary given inline or read it from a file.

    Raises:
        InvalidParameters: If no binary is given or the file cannot be read
    """
    if wasm:
        return wasm
    if wasm_path:
        try:
            return Path(wasm_path).expanduser().read_bytes()
        except OSError as e:
            raise InvalidParameters(f"Cannot read contract binary {wasm_path}: {e}")
    raise InvalidParameters("Either wasm or wasm_path is required")


def require_positive(name: str, amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidParameters(f"{name} must be a positive integer, got {amount!r}")


class ContractClient:
    """
    Base class for clients of one installed contract.

    Subclasses add typed entry-point calls on top of ``_call`` and reads on
    top of ``_named_key``, ``_named_amount`` and ``_dictionary_amount``.
    """

    def __init__(self, manager: DeployManager, contract_hash: Optional[str] = None):
        self.manager = manager
        self._contract_hash: Optional[str] = None
        if contract_hash is not None:
            self.set_contract_hash(contract_hash)

    @property
    def contract_hash(self) -> Optional[str]:
        return self._contract_hash

    def set_contract_hash(self, contract_hash: str) -> None:
        """
        Raises:
            InvalidParameters: If the value is not a 32-byte contract hash
        """
        try:
            raw = parse_hash(contract_hash)
        except ValueError as e:
            raise InvalidParameters(f"Invalid contract hash: {e}")
        self._contract_hash = "hash-" + raw.hex()

    def _require_contract(self) -> str:
        if self._contract_hash is None:
            raise InvalidParameters("No contract; install one or pass contract_hash")
        return self._contract_hash

    async def install(self, params: Any, timeout: float = DEFAULT_TIMEOUT) -> InstallResult:
        """Install the contract and remember its hash when finalized."""
        result = await self.manager.install(params, timeout)
        if result.ok and result.contract_address:
            self.set_contract_hash(result.contract_address)
            logger.debug(f"{type(self).__name__} bound to {self._contract_hash}")
        return result

    async def _call(self, entry_point: str, raw_args: List[tuple], payment_amount: int,
                    timeout: float) -> InstallResult:
        try:
            contract_hash = self._require_contract()
            args = [DeployArg.of(name, cl_type, value) for name, cl_type, value in raw_args]
        except InvalidParameters as e:
            logger.error(f"Cannot call {entry_point}: {e}")
            return InstallResult(state=DeployState.FAILED, error=e)
        return await self.manager.call(contract_hash, entry_point, args, payment_amount, timeout)

    async def _named_key(self, name: str) -> Any:
        contract_hash = self._require_contract()
        return await self.manager.run_blocking(self.manager.transport.query_state, contract_hash, [name])

    async def _named_amount(self, name: str) -> int:
        """Read a numeric named key; keys the contract has not written yet read as 0."""
        try:
            return int(await self._named_key(name))
        except RpcRejected as e:
            if e.code == VALUE_NOT_FOUND:
                return 0
            raise

    async def _dictionary_amount(self, dictionary_name: str, item_key: str) -> int:
        contract_hash = self._require_contract()
        try:
            value = await self.manager.run_blocking(
                self.manager.transport.query_dictionary, contract_hash, dictionary_name, item_key
            )
        except RpcRejected as e:
            # Accounts without an entry hold nothing
            if e.code == VALUE_NOT_FOUND:
                return 0
            raise
        return int(value)
