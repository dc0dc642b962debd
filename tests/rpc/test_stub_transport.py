"""
Tests for the in-memory stub node.
"""
import pytest

from wasmdeploy_sdk.exceptions import RpcRejected
from wasmdeploy_sdk.models import SignedDeploy, StatusKind
from wasmdeploy_sdk.rpc.stub_transport import DEFAULT_CONTRACT_ADDRESS, INVALID_DEPLOY, StubTransport
from wasmdeploy_sdk.rpc.http_transport import VALUE_NOT_FOUND


class TestStubTransport:
    """Tests for the stub transport implementation."""

    def test_accepts_valid_deploy(self, sign_install):
        signed = sign_install()
        transport = StubTransport(chain_name="casper-net-1")
        assert transport.submit(signed) == signed.deploy_hash
        assert transport.submitted[signed.deploy_hash] == signed

    def test_rejects_wrong_chain(self, sign_install):
        transport = StubTransport(chain_name="casper")
        with pytest.raises(RpcRejected, match="chain name") as exc_info:
            transport.submit(sign_install())
        assert exc_info.value.code == INVALID_DEPLOY

    def test_rejects_hash_mismatch(self, sign_install):
        signed = sign_install()
        forged = SignedDeploy(
            request=signed.request,
            deploy_hash="00" * 32,
            body_hash=signed.body_hash,
            signature=signed.signature,
        )
        with pytest.raises(RpcRejected, match="deploy hash"):
            StubTransport().submit(forged)

    def test_rejects_bad_signature(self, sign_install):
        signed = sign_install()
        forged = SignedDeploy(
            request=signed.request,
            deploy_hash=signed.deploy_hash,
            body_hash=signed.body_hash,
            signature=signed.signature[:-1] + bytes([signed.signature[-1] ^ 1]),
        )
        with pytest.raises(RpcRejected, match="signature"):
            StubTransport().submit(forged)

    def test_scripted_rejection(self, sign_install):
        transport = StubTransport(reject_with="Insufficient balance")
        with pytest.raises(RpcRejected, match="Insufficient balance"):
            transport.submit(sign_install())
        assert transport.submitted == {}

    def test_pending_polls_then_executed(self, sign_install):
        signed = sign_install()
        transport = StubTransport(pending_polls=2)
        transport.submit(signed)
        kinds = [transport.poll_status(signed.deploy_hash).kind for _ in range(3)]
        assert kinds == [StatusKind.PENDING, StatusKind.PENDING, StatusKind.EXECUTED]
        assert transport.poll_status(signed.deploy_hash).contract_address == DEFAULT_CONTRACT_ADDRESS
        # The fourth poll is served from the terminal cache
        assert transport.poll_count == 3

    def test_execution_error(self, sign_install):
        signed = sign_install()
        transport = StubTransport(execution_error="User error: 65534")
        transport.submit(signed)
        status = transport.poll_status(signed.deploy_hash)
        assert status.success is False
        assert status.message == "User error: 65534"
        assert status.cost == signed.request.payment_amount

    def test_unknown_deploy_is_pending(self):
        assert StubTransport().poll_status("ab" * 32).kind == StatusKind.PENDING

    def test_state_queries(self):
        contract = "hash-" + "11" * 32
        transport = StubTransport(
            state={contract: {"name": "FerrumX", "decimals": 11}},
            dictionaries={(contract, "balances", "item"): "5"},
        )
        assert transport.query_state(contract, ["name"]) == "FerrumX"
        assert transport.query_dictionary(contract, "balances", "item") == "5"

        with pytest.raises(RpcRejected) as exc_info:
            transport.query_state(contract, ["symbol"])
        assert exc_info.value.code == VALUE_NOT_FOUND
        with pytest.raises(RpcRejected):
            transport.query_dictionary(contract, "balances", "other")
