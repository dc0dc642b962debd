"""
Tests for the example scripts.
"""
import asyncio
import importlib.util
from pathlib import Path
from unittest.mock import patch

import pytest

from wasmdeploy_sdk.rpc.stub_transport import DEFAULT_CONTRACT_ADDRESS, StubTransport

from conftest import TEST_WASM

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"


@pytest.fixture
def deploy_erc20():
    spec = importlib.util.spec_from_file_location("deploy_erc20", EXAMPLES_DIR / "deploy_erc20.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class RecordingStub(StubTransport):
    """Stub that remembers whether it was closed."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_deploy_erc20_installs_ferrumx(deploy_erc20, config, key_store, tmp_path, capsys):
    wasm = tmp_path / "erc20_token.wasm"
    wasm.write_bytes(TEST_WASM)
    stub = RecordingStub(state={DEFAULT_CONTRACT_ADDRESS: {
        "name": "FerrumX", "symbol": "FRMX", "decimals": 11, "total_supply": "1000000000000000",
    }})

    with patch.object(deploy_erc20, "get_transport", return_value=stub):
        assert asyncio.run(deploy_erc20.run(config, key_store, str(wasm))) == 0

    (signed,) = stub.submitted.values()
    assert signed.request.arg("symbol").parsed == "FRMX"
    assert signed.request.payment_amount == 200_000_000_000
    assert stub.closed
    out = capsys.readouterr().out
    assert f"Token installed at {DEFAULT_CONTRACT_ADDRESS}" in out
    assert "Installer balance: 0" in out


def test_deploy_erc20_closes_transport_on_failure(deploy_erc20, config, key_store, tmp_path):
    wasm = tmp_path / "erc20_token.wasm"
    wasm.write_bytes(TEST_WASM)
    stub = RecordingStub(reject_with="Invalid deploy: insufficient balance")

    with patch.object(deploy_erc20, "get_transport", return_value=stub):
        assert asyncio.run(deploy_erc20.run(config, key_store, str(wasm))) == 1
    assert stub.closed
