"""
Pytest fixtures for the wasmdeploy SDK tests.
"""
import time

import pytest

from wasmdeploy_sdk.config import NetworkConfig
from wasmdeploy_sdk.deploy_manager import DeployManager
from wasmdeploy_sdk.erc20 import Erc20Params
from wasmdeploy_sdk.identity.key_store import KeyStore
from wasmdeploy_sdk.rpc._rate_limited_log import reset_rate_limits
from wasmdeploy_sdk.rpc.stub_transport import StubTransport

TEST_CHAIN_NAME = "casper-net-1"
TEST_RPC_URL = "http://localhost:11101/rpc"
TEST_EVENTS_URL = "http://localhost:18101/events/main"

# Minimal module: the wasm magic number and version
TEST_WASM = b"\x00asm\x01\x00\x00\x00"

# Fixed clock for deterministic deploy timestamps (2024-01-01T00:00:00Z)
TEST_TIMESTAMP = 1704067200.0


# Make time.sleep instantaneous so retry back-off doesn't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def config():
    return NetworkConfig(
        rpc_endpoint=TEST_RPC_URL,
        event_stream_endpoint=TEST_EVENTS_URL,
        chain_name=TEST_CHAIN_NAME,
        request_timeout=5.0,
    )


@pytest.fixture
def key_store():
    store = KeyStore.generate("ed25519")
    yield store
    store.close()


@pytest.fixture
def secp_key_store():
    store = KeyStore.generate("secp256k1")
    yield store
    store.close()


@pytest.fixture
def stub():
    return StubTransport(chain_name=TEST_CHAIN_NAME)


@pytest.fixture
def make_manager(config, key_store):
    """Factory for managers with fast polling."""

    def _make(transport, **kwargs):
        kwargs.setdefault("poll_interval", 0.01)
        return DeployManager(config, key_store, transport, **kwargs)

    return _make


@pytest.fixture
def ferrumx_params():
    return Erc20Params(
        name="FerrumX",
        symbol="FRMX",
        decimals=11,
        total_supply=1_000_000_000_000_000,
        payment_amount=200_000_000_000,
        wasm=TEST_WASM,
    )


@pytest.fixture
def sign_install(config, key_store):
    """Factory for signed install deploys built the way DeployManager builds them."""

    def _sign(params=None, **kwargs):
        manager = DeployManager(config, key_store, StubTransport(), **kwargs)
        params = params or Erc20Params(
            name="FerrumX", symbol="FRMX", decimals=11, total_supply=10 ** 15,
            payment_amount=200_000_000_000, wasm=TEST_WASM,
        )
        return manager.sign(manager.build_install_request(params.to_contract_params()))

    return _sign
