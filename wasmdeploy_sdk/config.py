"""
Network configuration for the wasmdeploy SDK.
"""
import os
import urllib.parse
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


def _insecure_allowed() -> bool:
    return os.environ.get("WASMDEPLOY_INSECURE_RPC") == "1"


class NetworkConfig(BaseModel):
    """
    Where and on which chain deploys are sent.

    Endpoints must use https:// unless the host is local or
    WASMDEPLOY_INSECURE_RPC=1 is set.
    """
    model_config = ConfigDict(frozen=True)

    rpc_endpoint: str
    event_stream_endpoint: str
    chain_name: str
    request_timeout: float = 30.0

    @field_validator("rpc_endpoint", "event_stream_endpoint")
    @classmethod
    def _check_url(cls, url: str, info) -> str:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"{info.field_name} must be an http(s) URL (got: {url!r})")
        is_local = parsed.hostname in LOCAL_HOSTS
        if parsed.scheme != "https" and not is_local and not _insecure_allowed():
            raise ValueError(
                f"{info.field_name} must use https:// for security (got: {parsed.scheme}://). "
                "Set WASMDEPLOY_INSECURE_RPC=1 to allow HTTP for development."
            )
        return url

    @field_validator("chain_name")
    @classmethod
    def _check_chain_name(cls, chain_name: str) -> str:
        if not chain_name.strip():
            raise ValueError("chain_name must not be empty")
        return chain_name

    @field_validator("request_timeout")
    @classmethod
    def _check_timeout(cls, timeout: float) -> float:
        if timeout <= 0:
            raise ValueError("request_timeout must be positive")
        return timeout

    @classmethod
    def from_env(cls, **overrides: Optional[Any]) -> "NetworkConfig":
        """
        Build a configuration from environment variables.

        Reads WASMDEPLOY_RPC_URL, WASMDEPLOY_EVENTS_URL, WASMDEPLOY_CHAIN_NAME
        and WASMDEPLOY_HTTP_TIMEOUT. Keyword arguments that are not None take
        precedence over the environment.

        Raises:
            ValueError: If a required setting is missing or invalid
        """
        values = {
            "rpc_endpoint": os.environ.get("WASMDEPLOY_RPC_URL"),
            "event_stream_endpoint": os.environ.get("WASMDEPLOY_EVENTS_URL"),
            "chain_name": os.environ.get("WASMDEPLOY_CHAIN_NAME"),
            "request_timeout": os.environ.get("WASMDEPLOY_HTTP_TIMEOUT"),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})

        missing = [key for key in ("rpc_endpoint", "event_stream_endpoint", "chain_name") if not values.get(key)]
        if missing:
            raise ValueError(f"Missing network configuration: {', '.join(missing)}")
        if values["request_timeout"] is None:
            del values["request_timeout"]
        return cls(**values)
