"""
Tests for network configuration.
"""
import pytest
from pydantic import ValidationError

from wasmdeploy_sdk.config import NetworkConfig

ENV_VARS = (
    "WASMDEPLOY_RPC_URL", "WASMDEPLOY_EVENTS_URL", "WASMDEPLOY_CHAIN_NAME",
    "WASMDEPLOY_HTTP_TIMEOUT", "WASMDEPLOY_INSECURE_RPC",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _config(**overrides):
    fields = dict(
        rpc_endpoint="https://rpc.testnet.example/rpc",
        event_stream_endpoint="https://events.testnet.example/events/main",
        chain_name="casper-test",
    )
    fields.update(overrides)
    return NetworkConfig(**fields)


class TestNetworkConfig:
    """Tests for NetworkConfig validation."""

    def test_valid(self):
        config = _config()
        assert config.chain_name == "casper-test"
        assert config.request_timeout == 30.0

    @pytest.mark.parametrize("url", [
        "http://localhost:11101/rpc",
        "http://127.0.0.1:7777/rpc",
        "http://[::1]:7777/rpc",
    ])
    def test_http_allowed_for_local_hosts(self, url):
        assert _config(rpc_endpoint=url).rpc_endpoint == url

    def test_http_rejected_for_remote_hosts(self):
        with pytest.raises(ValidationError, match="https"):
            _config(rpc_endpoint="http://rpc.testnet.example/rpc")

    def test_insecure_override(self, monkeypatch):
        monkeypatch.setenv("WASMDEPLOY_INSECURE_RPC", "1")
        assert _config(event_stream_endpoint="http://node.example:9999/events").event_stream_endpoint

    @pytest.mark.parametrize("url", ["ftp://node.example/rpc", "node.example:7777", "https://"])
    def test_invalid_urls(self, url):
        with pytest.raises(ValidationError):
            _config(rpc_endpoint=url)

    def test_empty_chain_name(self):
        with pytest.raises(ValidationError):
            _config(chain_name="  ")

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_non_positive_timeout(self, timeout):
        with pytest.raises(ValidationError):
            _config(request_timeout=timeout)

    def test_frozen(self):
        config = _config()
        with pytest.raises(ValidationError):
            config.chain_name = "other"


class TestFromEnv:
    """Tests for reading configuration from the environment."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("WASMDEPLOY_RPC_URL", "https://rpc.example/rpc")
        monkeypatch.setenv("WASMDEPLOY_EVENTS_URL", "https://rpc.example/events/main")
        monkeypatch.setenv("WASMDEPLOY_CHAIN_NAME", "casper")
        monkeypatch.setenv("WASMDEPLOY_HTTP_TIMEOUT", "12.5")
        config = NetworkConfig.from_env()
        assert config.rpc_endpoint == "https://rpc.example/rpc"
        assert config.chain_name == "casper"
        assert config.request_timeout == 12.5

    def test_overrides_take_precedence(self, monkeypatch):
        monkeypatch.setenv("WASMDEPLOY_RPC_URL", "https://rpc.example/rpc")
        monkeypatch.setenv("WASMDEPLOY_EVENTS_URL", "https://rpc.example/events/main")
        monkeypatch.setenv("WASMDEPLOY_CHAIN_NAME", "casper")
        config = NetworkConfig.from_env(chain_name="casper-test", rpc_endpoint=None)
        assert config.chain_name == "casper-test"
        assert config.rpc_endpoint == "https://rpc.example/rpc"
        assert config.request_timeout == 30.0

    def test_missing_settings_are_named(self, monkeypatch):
        monkeypatch.setenv("WASMDEPLOY_RPC_URL", "https://rpc.example/rpc")
        with pytest.raises(ValueError) as exc_info:
            NetworkConfig.from_env()
        assert "event_stream_endpoint" in str(exc_info.value)
        assert "chain_name" in str(exc_info.value)
        assert "rpc_endpoint" not in str(exc_info.value)
