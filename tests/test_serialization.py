"""
Tests for canonical deploy serialization and hashing.
"""
import pytest

from wasmdeploy_sdk.exceptions import InvalidParameters
from wasmdeploy_sdk.models import DeployArg, DeployRequest, SignedDeploy
from wasmdeploy_sdk.serialization import (
    CLType, blake2b256, body_hash, canonical_serialize, deploy_hash, encode_big_uint,
    encode_bool, encode_cl_value, encode_header, encode_key, encode_payment,
    encode_session, encode_string, encode_u32, encode_u64, encode_u8,
    format_timestamp, format_ttl, parse_hash,
)

from conftest import TEST_CHAIN_NAME, TEST_WASM

SENDER = b"\x01" + bytes(range(32))
CONTRACT = "hash-" + "ab" * 32


def _request(**overrides):
    fields = dict(
        sender=SENDER,
        chain_name=TEST_CHAIN_NAME,
        payment_amount=50_000_000_000,
        timestamp_ms=1_704_067_200_000,
        args=(
            DeployArg.of("name", CLType.STRING, "FerrumX"),
            DeployArg.of("symbol", CLType.STRING, "FRX"),
            DeployArg.of("decimals", CLType.U8, 11),
            DeployArg.of("total_supply", CLType.U256, 10 ** 15),
        ),
        session_wasm=TEST_WASM,
    )
    fields.update(overrides)
    return DeployRequest(**fields)


class TestPrimitives:
    """Tests for the little-endian primitive encoders."""

    def test_fixed_width_integers(self):
        assert encode_u8(7) == b"\x07"
        assert encode_u32(1) == b"\x01\x00\x00\x00"
        assert encode_u64(0x0102) == b"\x02\x01" + b"\x00" * 6

    @pytest.mark.parametrize("encoder,value", [
        (encode_u8, 256),
        (encode_u32, 2 ** 32),
        (encode_u64, 2 ** 64),
        (encode_u64, -1),
    ])
    def test_fixed_width_overflow(self, encoder, value):
        with pytest.raises(ValueError):
            encoder(value)

    def test_big_uint_minimal_encoding(self):
        assert encode_big_uint(0, 256) == b"\x00"
        assert encode_big_uint(1_000_000, 512) == b"\x03\x40\x42\x0f"
        assert encode_big_uint(2 ** 256 - 1, 256) == b"\x20" + b"\xff" * 32

    def test_big_uint_range(self):
        with pytest.raises(ValueError):
            encode_big_uint(2 ** 256, 256)
        with pytest.raises(ValueError):
            encode_big_uint(-1, 128)
        with pytest.raises(TypeError):
            encode_big_uint(True, 128)

    def test_string_is_length_prefixed_utf8(self):
        assert encode_string("abc") == b"\x03\x00\x00\x00abc"
        assert encode_string("é") == b"\x02\x00\x00\x00\xc3\xa9"

    def test_bool(self):
        assert encode_bool(True) == b"\x01"
        assert encode_bool(False) == b"\x00"
        with pytest.raises(TypeError):
            encode_bool(1)

    def test_cl_value_layout(self):
        # u32 length, value bytes, type tag (String = 10)
        assert encode_cl_value(CLType.STRING, encode_string("a")) == (
            b"\x05\x00\x00\x00" + b"\x01\x00\x00\x00a" + b"\x0a"
        )

    def test_keys(self):
        assert encode_key("account-hash-" + "00" * 32) == b"\x00" + b"\x00" * 32
        assert encode_key("hash-" + "ff" * 32) == b"\x01" + b"\xff" * 32
        with pytest.raises(ValueError):
            encode_key("uref-" + "00" * 32)

    def test_parse_hash(self):
        assert parse_hash("ab" * 32) == b"\xab" * 32
        assert parse_hash("hash-" + "ab" * 32) == b"\xab" * 32
        assert parse_hash("contract-" + "ab" * 32) == b"\xab" * 32
        with pytest.raises(ValueError):
            parse_hash("hash-abc")

    def test_blake2b256_length(self):
        assert len(blake2b256(b"")) == 32


class TestDeployArg:
    """Tests for building typed runtime arguments."""

    def test_big_uint_parsed_as_string(self):
        arg = DeployArg.of("total_supply", CLType.U256, 10 ** 30)
        assert arg.parsed == str(10 ** 30)

    def test_public_key_parsed_as_hex(self):
        arg = DeployArg.of("owner", CLType.PUBLIC_KEY, SENDER)
        assert arg.value == SENDER
        assert arg.parsed == SENDER.hex()

    @pytest.mark.parametrize("cl_type,value", [
        (CLType.U8, 256),
        (CLType.U8, -1),
        (CLType.U8, "11"),
        (CLType.U256, 2 ** 256),
        (CLType.STRING, 42),
        (CLType.KEY, "not-a-key"),
        (CLType.PUBLIC_KEY, b"\x05" + b"\x00" * 32),
    ])
    def test_invalid_values(self, cl_type, value):
        with pytest.raises(InvalidParameters):
            DeployArg.of("arg", cl_type, value)


class TestDeployHash:
    """Tests for canonical serialization and the deploy hash."""

    def test_deterministic(self):
        assert canonical_serialize(_request()) == canonical_serialize(_request())
        assert deploy_hash(_request()) == deploy_hash(_request())

    def test_layout_is_header_payment_session(self):
        request = _request()
        expected = (
            encode_header(request, body_hash(request))
            + encode_payment(request.payment_amount)
            + encode_session(request)
        )
        assert canonical_serialize(request) == expected

    def test_deploy_hash_is_hash_of_header(self):
        request = _request()
        assert deploy_hash(request) == blake2b256(encode_header(request, body_hash(request)))
        assert body_hash(request) == blake2b256(encode_payment(request.payment_amount) + encode_session(request))

    def test_header_starts_with_sender_and_ends_with_chain_name(self):
        request = _request()
        header = encode_header(request, body_hash(request))
        assert header.startswith(SENDER)
        assert header.endswith(encode_u32(0) + encode_string(TEST_CHAIN_NAME))

    @pytest.mark.parametrize("overrides", [
        {"chain_name": "casper-test"},
        {"payment_amount": 50_000_000_001},
        {"timestamp_ms": 1_704_067_200_001},
        {"session_wasm": TEST_WASM + b"\x00"},
        {"args": (DeployArg.of("name", CLType.STRING, "FerrumY"),)},
        {"ttl_ms": 60_000},
        {"gas_price": 2},
    ])
    def test_every_field_changes_the_hash(self, overrides):
        assert deploy_hash(_request(**overrides)) != deploy_hash(_request())

    def test_argument_order_matters(self):
        args = _request().args
        assert deploy_hash(_request(args=tuple(reversed(args)))) != deploy_hash(_request())

    def test_stored_contract_session(self):
        request = _request(session_wasm=b"", contract_hash=CONTRACT, entry_point="transfer", args=())
        session = encode_session(request)
        assert session[0] == 1
        assert session[1:33] == b"\xab" * 32
        assert session[33:] == encode_string("transfer") + encode_u32(0)

    def test_session_forms_are_exclusive(self):
        with pytest.raises(ValueError):
            _request(contract_hash=CONTRACT, entry_point="transfer")
        with pytest.raises(ValueError):
            _request(session_wasm=b"")
        with pytest.raises(ValueError):
            _request(session_wasm=b"", contract_hash=CONTRACT)


class TestJsonForm:
    """Tests for the JSON rendering sent to the node."""

    def _signed(self, request):
        return SignedDeploy(
            request=request,
            deploy_hash=deploy_hash(request).hex(),
            body_hash=body_hash(request).hex(),
            signature=b"\x01" + b"\x00" * 64,
        )

    def test_install_json(self):
        request = _request()
        document = self._signed(request).to_json()
        assert document["hash"] == deploy_hash(request).hex()
        header = document["header"]
        assert header["account"] == SENDER.hex()
        assert header["timestamp"] == "2024-01-01T00:00:00.000Z"
        assert header["ttl"] == "30m"
        assert header["chain_name"] == TEST_CHAIN_NAME
        assert header["body_hash"] == body_hash(request).hex()
        assert header["dependencies"] == []

        module = document["session"]["ModuleBytes"]
        assert module["module_bytes"] == TEST_WASM.hex()
        names = [name for name, _ in module["args"]]
        assert names == ["name", "symbol", "decimals", "total_supply"]
        decimals = dict(module["args"])["decimals"]
        assert decimals == {"cl_type": "U8", "bytes": "0b", "parsed": 11}

        payment = document["payment"]["ModuleBytes"]
        assert payment["module_bytes"] == ""
        assert payment["args"][0][0] == "amount"
        assert payment["args"][0][1]["cl_type"] == "U512"
        assert payment["args"][0][1]["parsed"] == "50000000000"

        assert document["approvals"] == [{"signer": SENDER.hex(), "signature": "01" + "00" * 64}]

    def test_call_json(self):
        request = _request(session_wasm=b"", contract_hash=CONTRACT, entry_point="transfer", args=())
        session = self._signed(request).to_json()["session"]
        assert session == {
            "StoredContractByHash": {"hash": "ab" * 32, "entry_point": "transfer", "args": []}
        }

    @pytest.mark.parametrize("ttl_ms,expected", [
        (1_800_000, "30m"),
        (5_400_000, "1h 30m"),
        (86_400_000, "1day"),
        (2 * 86_400_000, "2days"),
        (1_500, "1s 500ms"),
        (0, "0s"),
    ])
    def test_format_ttl(self, ttl_ms, expected):
        assert format_ttl(ttl_ms) == expected

    def test_format_timestamp_keeps_milliseconds(self):
        assert format_timestamp(1_704_067_200_123) == "2024-01-01T00:00:00.123Z"
