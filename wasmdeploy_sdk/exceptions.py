"""
Exceptions for the wasmdeploy SDK.
"""
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """
    Error kinds reported by a deployment.

    The string values are what the CLI prints and what callers can match on
    without importing the exception classes.
    """
    INVALID_KEY_FORMAT = "InvalidKeyFormat"
    INVALID_PARAMETERS = "InvalidParameters"
    SIGNING_ERROR = "SigningError"
    NETWORK_ERROR = "NetworkError"
    RPC_REJECTED = "RpcRejected"
    TIMED_OUT = "TimedOut"
    EXECUTION_ERROR = "Error"
    EXPIRED = "Expired"


class DeployError(Exception):
    """Base exception for deployment errors."""

    kind: ErrorKind = ErrorKind.EXECUTION_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class InvalidKeyFormat(DeployError):
    """Raised when key material cannot be decoded into a supported keypair."""
    kind = ErrorKind.INVALID_KEY_FORMAT


class InvalidParameters(DeployError):
    """Raised when contract parameters are missing or out of range."""
    kind = ErrorKind.INVALID_PARAMETERS


class SigningError(DeployError):
    """Raised when a deploy cannot be signed."""
    kind = ErrorKind.SIGNING_ERROR


class NetworkError(DeployError):
    """Raised when the node cannot be reached after all retries."""
    kind = ErrorKind.NETWORK_ERROR

    def __init__(self, message: str, attempts: int = 1):
        self.attempts = attempts
        super().__init__(message)


class SubmissionUncertain(NetworkError):
    """
    Raised when a deploy was sent but no answer came back.

    The node may or may not have accepted it, so the submission must not be
    repeated. The deploy hash is content-addressed and known locally, which
    lets the caller poll for it instead.
    """

    def __init__(self, message: str, deploy_hash: str):
        self.deploy_hash = deploy_hash
        super().__init__(message)


class RpcRejected(DeployError):
    """
    Raised when the node refuses a request.

    ``code`` is the JSON-RPC error code, or the HTTP status when the refusal
    came from the HTTP layer, in which case ``http_status`` is set too.
    """
    kind = ErrorKind.RPC_REJECTED

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Optional[Any] = None,
        http_status: Optional[int] = None
    ):
        self.code = code
        self.data = data
        self.http_status = http_status
        super().__init__(message)


class DeployTimeout(DeployError):
    """Raised when a deploy does not finalize before the deadline."""
    kind = ErrorKind.TIMED_OUT


class ExecutionError(DeployError):
    """Raised when the node reports that the deploy failed to execute."""
    kind = ErrorKind.EXECUTION_ERROR


class DeployExpired(DeployError):
    """Raised when the deploy's time-to-live passed before it was executed."""
    kind = ErrorKind.EXPIRED
