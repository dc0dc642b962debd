"""
Data models for the wasmdeploy SDK.
"""
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

from .exceptions import InvalidParameters
from .serialization import BIG_UINT_BITS, CLType, deploy_to_json, encode_value

# Time-to-live the node accepts by default for a deploy
DEFAULT_TTL_MS = 30 * 60 * 1000


class DeployArg(BaseModel):
    """A named, typed runtime argument with its canonical encoding"""
    model_config = ConfigDict(frozen=True)

    name: str
    cl_type: CLType
    value: bytes
    parsed: Any = None

    @classmethod
    def of(cls, name: str, cl_type: CLType, value: Any) -> "DeployArg":
        """
        Build an argument from a Python value.

        Raises:
            InvalidParameters: If the value does not fit the type
        """
        try:
            encoded = encode_value(cl_type, value)
        except (ValueError, TypeError, OverflowError) as e:
            raise InvalidParameters(f"Argument '{name}' is not a valid {cl_type.value}: {e}")

        if cl_type in BIG_UINT_BITS:
            parsed = str(value)
        elif cl_type == CLType.PUBLIC_KEY:
            parsed = encoded.hex()
        else:
            parsed = value
        return cls(name=name, cl_type=cl_type, value=encoded, parsed=parsed)


class DeployRequest(BaseModel):
    """
    Everything a deploy commits to, before signing.

    A request installs ``session_wasm`` or, for a contract call, invokes
    ``entry_point`` on the stored contract at ``contract_hash``.
    """
    model_config = ConfigDict(frozen=True)

    sender: bytes
    chain_name: str
    payment_amount: int
    timestamp_ms: int
    args: Tuple[DeployArg, ...] = ()
    session_wasm: bytes = b""
    contract_hash: Optional[str] = None
    entry_point: Optional[str] = None
    ttl_ms: int = DEFAULT_TTL_MS
    gas_price: int = 1

    @model_validator(mode="after")
    def _check_session(self) -> "DeployRequest":
        if self.contract_hash is None and not self.session_wasm:
            raise ValueError("either session_wasm or contract_hash is required")
        if self.contract_hash is not None:
            if self.session_wasm:
                raise ValueError("session_wasm and contract_hash are mutually exclusive")
            if not self.entry_point:
                raise ValueError("entry_point is required with contract_hash")
        return self

    @property
    def is_install(self) -> bool:
        return self.contract_hash is None

    @property
    def expires_at_ms(self) -> int:
        return self.timestamp_ms + self.ttl_ms

    def arg(self, name: str) -> Optional[DeployArg]:
        for candidate in self.args:
            if candidate.name == name:
                return candidate
        return None


class SignedDeploy(BaseModel):
    """A deploy request with its hashes and the sender's approval"""
    model_config = ConfigDict(frozen=True)

    request: DeployRequest
    deploy_hash: str
    body_hash: str
    signature: bytes

    def to_json(self) -> Dict[str, Any]:
        return deploy_to_json(self)


class StatusKind(str, Enum):
    PENDING = "Pending"
    EXECUTED = "Executed"
    EXPIRED = "Expired"
    ERROR = "Error"


class DeployStatus(BaseModel):
    """
    Finalization state of a submitted deploy.

    ``success``, ``contract_address`` and ``cost`` are only meaningful for
    ``EXECUTED``; ``message`` holds the node-reported error for a failed
    execution or an ``ERROR`` status.
    """
    model_config = ConfigDict(frozen=True)

    kind: StatusKind
    success: Optional[bool] = None
    contract_address: Optional[str] = None
    message: Optional[str] = None
    cost: Optional[int] = None

    @classmethod
    def pending(cls) -> "DeployStatus":
        return cls(kind=StatusKind.PENDING)

    @classmethod
    def executed(
        cls,
        success: bool,
        contract_address: Optional[str] = None,
        message: Optional[str] = None,
        cost: Optional[int] = None,
    ) -> "DeployStatus":
        return cls(
            kind=StatusKind.EXECUTED,
            success=success,
            contract_address=contract_address,
            message=message,
            cost=cost,
        )

    @classmethod
    def expired(cls) -> "DeployStatus":
        return cls(kind=StatusKind.EXPIRED)

    @classmethod
    def error(cls, message: str) -> "DeployStatus":
        return cls(kind=StatusKind.ERROR, message=message)

    @property
    def is_terminal(self) -> bool:
        return self.kind != StatusKind.PENDING


class ContractParams(BaseModel):
    """Caller-supplied parameters of a contract installation"""
    model_config = ConfigDict(frozen=True)

    session_wasm: bytes
    payment_amount: int
    args: Tuple[DeployArg, ...] = ()
    required_args: Tuple[str, ...] = ()
