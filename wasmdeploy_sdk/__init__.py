"""
wasmdeploy SDK - build, sign and submit contract deploys and track them to
finalization.
"""
from .config import NetworkConfig
from .contract import ContractClient
from .deploy_manager import DeployManager, DeployState, InstallResult
from .erc20 import Erc20Client, Erc20Params
from .exceptions import (
    DeployError, DeployExpired, DeployTimeout, ErrorKind, ExecutionError,
    InvalidKeyFormat, InvalidParameters, NetworkError, RpcRejected,
    SigningError, SubmissionUncertain,
)
from .identity import KeyStore, verify
from .models import ContractParams, DeployArg, DeployRequest, DeployStatus, SignedDeploy, StatusKind
from .rpc import EventStreamClient, HttpTransport, RpcTransport, StubTransport, get_transport
from .serialization import CLType, canonical_serialize, deploy_hash
from .staking import StakingClient, StakingParams
from .version import __version__

__all__ = [
    "NetworkConfig",
    "DeployManager",
    "DeployState",
    "InstallResult",
    "Erc20Client",
    "Erc20Params",
    "ContractClient",
    "StakingClient",
    "StakingParams",
    "DeployError",
    "DeployExpired",
    "DeployTimeout",
    "ErrorKind",
    "ExecutionError",
    "InvalidKeyFormat",
    "InvalidParameters",
    "NetworkError",
    "RpcRejected",
    "SigningError",
    "SubmissionUncertain",
    "KeyStore",
    "verify",
    "ContractParams",
    "DeployArg",
    "DeployRequest",
    "DeployStatus",
    "SignedDeploy",
    "StatusKind",
    "EventStreamClient",
    "HttpTransport",
    "RpcTransport",
    "StubTransport",
    "get_transport",
    "CLType",
    "canonical_serialize",
    "deploy_hash",
    "__version__",
]
