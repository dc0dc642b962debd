"""
Staking contract support.

The staking contract locks ERC20 tokens between ``staking_starts`` and
``staking_ends`` and pays them back with a share of the rewards from
``withdraw_starts``. Times are u64 block times as the contract compares them.
"""
import logging
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .contract import DEFAULT_CALL_PAYMENT, ContractClient, read_wasm, require_positive
from .deploy_manager import DEFAULT_TIMEOUT, DeployState, InstallResult
from .exceptions import ExecutionError, InvalidParameters
from .models import ContractParams, DeployArg
from .serialization import CLType, encode_key, parse_hash

# Configure logger
logger = logging.getLogger(__name__)

INSTALL_ARGS = (
    "name",
    "address",
    "staking_starts",
    "staking_ends",
    "withdraw_starts",
    "withdraw_ends",
    "staking_total",
    "erc20_contract_hash",
)

STAKED_AMOUNTS_DICTIONARY = "amount_staked_by_addresses_dict"

# User error codes the contract reverts with
STAKING_ERRORS = {
    1: "PermissionDenied",
    2: "WrongArguments",
    3: "NotRequiredStake",
    4: "AfterBadTiming",
    5: "BeforeBadTiming",
    6: "InvalidContext",
    7: "NegativeReward",
    8: "NegativeWithdrawableReward",
    9: "NegativeAmount",
    10: "MissingContractPackageHash",
    11: "InvalidContractPackageHash",
    12: "InvalidContractHash",
    13: "WithdrawCheckErrorEarly",
    14: "WithdrawCheckError",
    15: "NeitherAccountHashNorNeitherContractPackageHash",
    16: "NotAStaker",
    17: "ImmediateCallerAddressFail",
    18: "NotStakingContractPackageHash",
    19: "StakingEndsBeforeStakingStarts",
    20: "WithdrawStartsStakingEnds",
    21: "WithdrawEndsWithdrawStarts",
    22: "StakingStartsNow",
    23: "CheckedSub",
    24: "GapBetweenStakingEndsWithdrawStarts",
}

_USER_ERROR = re.compile(r"User error: (\d+)")


def staking_error_name(message: Optional[str]) -> Optional[str]:
    """Name of the staking error in a node-reported ``User error: <code>`` message."""
    match = _USER_ERROR.search(message or "")
    if match is None:
        return None
    return STAKING_ERRORS.get(int(match.group(1)))


class StakingParams(BaseModel):
    """
    Parameters of a staking contract installation.

    ``address`` is the staked token's address as the contract records it and
    ``erc20_contract_hash`` the token contract it pays in and out of.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    staking_starts: int
    staking_ends: int
    withdraw_starts: int
    withdraw_ends: int
    staking_total: int
    erc20_contract_hash: str
    payment_amount: int
    wasm: Optional[bytes] = None
    wasm_path: Optional[str] = None

    def load_wasm(self) -> bytes:
        return read_wasm(self.wasm, self.wasm_path)

    def _check_schedule(self) -> None:
        if self.staking_ends < self.staking_starts:
            raise InvalidParameters("staking_ends is before staking_starts")
        if self.withdraw_starts != self.staking_ends:
            raise InvalidParameters("withdraw_starts must equal staking_ends")
        if self.withdraw_ends < self.withdraw_starts:
            raise InvalidParameters("withdraw_ends is before withdraw_starts")

    def to_contract_params(self) -> ContractParams:
        """
        Convert to generic installation parameters.

        The schedule rules are the ones the contract's constructor enforces,
        checked here so a bad schedule never costs a payment.

        Raises:
            InvalidParameters: If a field is empty, out of range or the
                schedule is inconsistent
        """
        if not self.name.strip():
            raise InvalidParameters("Staking contract name must not be empty")
        if not self.address.strip():
            raise InvalidParameters("Token address must not be empty")
        try:
            erc20_hash = "contract-" + parse_hash(self.erc20_contract_hash).hex()
        except ValueError as e:
            raise InvalidParameters(f"Invalid ERC20 contract hash: {e}")

        args = (
            DeployArg.of("name", CLType.STRING, self.name),
            DeployArg.of("address", CLType.STRING, self.address),
            DeployArg.of("staking_starts", CLType.U64, self.staking_starts),
            DeployArg.of("staking_ends", CLType.U64, self.staking_ends),
            DeployArg.of("withdraw_starts", CLType.U64, self.withdraw_starts),
            DeployArg.of("withdraw_ends", CLType.U64, self.withdraw_ends),
            DeployArg.of("staking_total", CLType.U256, self.staking_total),
            DeployArg.of("erc20_contract_hash", CLType.STRING, erc20_hash),
        )
        self._check_schedule()
        return ContractParams(
            session_wasm=self.load_wasm(),
            payment_amount=self.payment_amount,
            args=args,
            required_args=INSTALL_ARGS,
        )


def staker_item_key(staker: str) -> str:
    """Dictionary item key of a staker's amount: hex of the account or contract hash."""
    return encode_key(staker)[1:].hex()


class StakingClient(ContractClient):
    """
    Client for one staking contract.

    ``stake``, ``withdraw`` and ``add_reward`` are deploys and return an
    ``InstallResult``; a contract revert carries the staking error name in
    its message. Reads query global state.
    """

    async def _staking_call(self, entry_point: str, raw_args, payment_amount: int,
                            timeout: float) -> InstallResult:
        try:
            for name, _, value in raw_args:
                if name != "withdrawable_amount":
                    require_positive(name, value)
        except InvalidParameters as e:
            logger.error(f"Cannot call {entry_point}: {e}")
            return InstallResult(state=DeployState.FAILED, error=e)

        result = await self._call(entry_point, raw_args, payment_amount, timeout)
        if isinstance(result.error, ExecutionError):
            name = staking_error_name(result.error.message)
            if name:
                result.error = ExecutionError(f"{result.error.message} ({name})")
        return result

    async def stake(self, amount: int, payment_amount: int = DEFAULT_CALL_PAYMENT,
                    timeout: float = DEFAULT_TIMEOUT) -> InstallResult:
        """Stake ``amount`` tokens from the caller; the token must be approved first."""
        return await self._staking_call("stake", [("amount", CLType.U256, amount)], payment_amount, timeout)

    async def withdraw(self, amount: int, payment_amount: int = DEFAULT_CALL_PAYMENT,
                       timeout: float = DEFAULT_TIMEOUT) -> InstallResult:
        return await self._staking_call("withdraw", [("amount", CLType.U256, amount)], payment_amount, timeout)

    async def add_reward(self, reward_amount: int, withdrawable_amount: int,
                         payment_amount: int = DEFAULT_CALL_PAYMENT,
                         timeout: float = DEFAULT_TIMEOUT) -> InstallResult:
        """
        Fund the reward pool with ``reward_amount``, of which
        ``withdrawable_amount`` is paid out on early withdrawal.

        A non-positive reward or an early share larger than the reward gives
        a FAILED result without submitting anything.
        """
        if isinstance(withdrawable_amount, bool) or not isinstance(withdrawable_amount, int) \
                or not isinstance(reward_amount, int) or not 0 <= withdrawable_amount <= reward_amount:
            error = InvalidParameters(
                f"withdrawable_amount must be between 0 and reward_amount, got {withdrawable_amount!r}"
            )
            logger.error(f"Cannot call add_reward: {error}")
            return InstallResult(state=DeployState.FAILED, error=error)
        return await self._staking_call(
            "add_reward",
            [
                ("reward_amount", CLType.U256, reward_amount),
                ("withdrawable_amount", CLType.U256, withdrawable_amount),
            ],
            payment_amount, timeout
        )

    async def name(self) -> str:
        return str(await self._named_key("name"))

    async def address(self) -> str:
        return str(await self._named_key("address"))

    async def staking_starts(self) -> int:
        return int(await self._named_key("staking_starts"))

    async def staking_ends(self) -> int:
        return int(await self._named_key("staking_ends"))

    async def withdraw_starts(self) -> int:
        return int(await self._named_key("withdraw_starts"))

    async def withdraw_ends(self) -> int:
        return int(await self._named_key("withdraw_ends"))

    async def staking_total(self) -> int:
        return int(await self._named_key("staking_total"))

    async def staked_total(self) -> int:
        return await self._named_amount("staked_total")

    async def staked_balance(self) -> int:
        return await self._named_amount("staked_balance")

    async def reward_balance(self) -> int:
        return await self._named_amount("reward_balance")

    async def total_reward(self) -> int:
        return await self._named_amount("total_reward")

    async def early_withdraw_reward(self) -> int:
        return await self._named_amount("early_withdraw_reward")

    async def amount_staked(self, staker: str) -> int:
        """Tokens currently staked by an account or contract key."""
        try:
            item_key = staker_item_key(staker)
        except ValueError as e:
            raise InvalidParameters(f"Invalid staker key: {e}")
        return await self._dictionary_amount(STAKED_AMOUNTS_DICTIONARY, item_key)
