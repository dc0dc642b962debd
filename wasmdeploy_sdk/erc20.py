"""
ERC20 token support.

``Erc20Params`` describes a token installation and ``Erc20Client`` installs,
calls and reads an installed token contract.
"""
import base64
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .contract import DEFAULT_CALL_PAYMENT, ContractClient, read_wasm
from .deploy_manager import DEFAULT_TIMEOUT, InstallResult
from .exceptions import InvalidParameters
from .models import ContractParams, DeployArg
from .serialization import CLType, blake2b256, encode_key

# Configure logger
logger = logging.getLogger(__name__)

INSTALL_ARGS = ("name", "symbol", "decimals", "total_supply")

BALANCES_DICTIONARY = "balances"
ALLOWANCES_DICTIONARY = "allowances"


class Erc20Params(BaseModel):
    """
    Parameters of an ERC20 token installation.

    The contract binary is given inline as ``wasm`` or read from ``wasm_path``.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str
    decimals: int
    total_supply: int
    payment_amount: int
    wasm: Optional[bytes] = None
    wasm_path: Optional[str] = None

    def load_wasm(self) -> bytes:
        """
        Raises:
            InvalidParameters: If no binary is given or the file cannot be read
        """
        return read_wasm(self.wasm, self.wasm_path)

    def to_contract_params(self) -> ContractParams:
        """
        Convert to generic installation parameters.

        Raises:
            InvalidParameters: If a field is empty or out of range
        """
        if not self.name.strip():
            raise InvalidParameters("Token name must not be empty")
        if not self.symbol.strip():
            raise InvalidParameters("Token symbol must not be empty")

        args = (
            DeployArg.of("name", CLType.STRING, self.name),
            DeployArg.of("symbol", CLType.STRING, self.symbol),
            DeployArg.of("decimals", CLType.U8, self.decimals),
            DeployArg.of("total_supply", CLType.U256, self.total_supply),
        )
        return ContractParams(
            session_wasm=self.load_wasm(),
            payment_amount=self.payment_amount,
            args=args,
            required_args=INSTALL_ARGS,
        )


def balance_item_key(owner: str) -> str:
    """Dictionary item key of an owner's balance: base64 of the serialized key."""
    return base64.b64encode(encode_key(owner)).decode("ascii")


def allowance_item_key(owner: str, spender: str) -> str:
    """Dictionary item key of an allowance: hex BLAKE2b-256 of both serialized keys."""
    return blake2b256(encode_key(owner) + encode_key(spender)).hex()


class Erc20Client(ContractClient):
    """
    Client for one ERC20 token contract.

    Write operations (``transfer``, ``approve``, ``transfer_from``) are
    deploys and return an ``InstallResult``; reads query global state.
    """

    async def install(self, params: Erc20Params, timeout: float = DEFAULT_TIMEOUT) -> InstallResult:
        """Install the token and remember its contract hash when finalized."""
        result = await super().install(params, timeout)
        if result.ok:
            logger.info(f"Token {params.symbol} installed at {self.contract_hash}")
        return result

    async def transfer(self, recipient: str, amount: int, payment_amount: int = DEFAULT_CALL_PAYMENT,
                       timeout: float = DEFAULT_TIMEOUT) -> InstallResult:
        return await self._call(
            "transfer",
            [("recipient", CLType.KEY, recipient), ("amount", CLType.U256, amount)],
            payment_amount, timeout
        )

    async def approve(self, spender: str, amount: int, payment_amount: int = DEFAULT_CALL_PAYMENT,
                      timeout: float = DEFAULT_TIMEOUT) -> InstallResult:
        return await self._call(
            "approve",
            [("spender", CLType.KEY, spender), ("amount", CLType.U256, amount)],
            payment_amount, timeout
        )

    async def transfer_from(self, owner: str, recipient: str, amount: int,
                            payment_amount: int = DEFAULT_CALL_PAYMENT,
                            timeout: float = DEFAULT_TIMEOUT) -> InstallResult:
        return await self._call(
            "transfer_from",
            [
                ("owner", CLType.KEY, owner),
                ("recipient", CLType.KEY, recipient),
                ("amount", CLType.U256, amount),
            ],
            payment_amount, timeout
        )

    async def name(self) -> str:
        return str(await self._named_key("name"))

    async def symbol(self) -> str:
        return str(await self._named_key("symbol"))

    async def decimals(self) -> int:
        return int(await self._named_key("decimals"))

    async def total_supply(self) -> int:
        return int(await self._named_key("total_supply"))

    async def balance_of(self, owner: str) -> int:
        """
        Token balance of an account or contract key (``account-hash-...`` / ``hash-...``).
        """
        try:
            item_key = balance_item_key(owner)
        except ValueError as e:
            raise InvalidParameters(f"Invalid owner key: {e}")
        return await self._dictionary_amount(BALANCES_DICTIONARY, item_key)

    async def allowance(self, owner: str, spender: str) -> int:
        """Amount ``spender`` may still transfer on behalf of ``owner``."""
        try:
            item_key = allowance_item_key(owner, spender)
        except ValueError as e:
            raise InvalidParameters(f"Invalid key: {e}")
        return await self._dictionary_amount(ALLOWANCES_DICTIONARY, item_key)
