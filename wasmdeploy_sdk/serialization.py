"""
Canonical byte encoding of deploys.

Deploys are hashed over a deterministic binary form:

- fixed-width integers are little-endian
- strings, byte strings and lists carry a ``u32`` length prefix
- U128/U256/U512 are one length byte followed by the minimal little-endian bytes
- a typed value (CLValue) is ``u32 len || value bytes || type tag``

The body hash is BLAKE2b-256 over the payment item followed by the session
item. The deploy hash is BLAKE2b-256 over the header, and the header embeds the
body hash, so the deploy hash commits to the whole request.
"""
import hashlib
import re
import struct
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Sequence, Tuple

if TYPE_CHECKING:
    from .models import DeployArg, DeployRequest, SignedDeploy

HASH_LENGTH = 32

# Tags of the executable items carried in a deploy
MODULE_BYTES_TAG = 0
STORED_CONTRACT_BY_HASH_TAG = 1

# Key variants
ACCOUNT_KEY_TAG = 0
HASH_KEY_TAG = 1

# Public key algorithm tags and raw key lengths
ED25519_TAG = 0x01
SECP256K1_TAG = 0x02
PUBLIC_KEY_LENGTHS = {ED25519_TAG: 32, SECP256K1_TAG: 33}

_HEX_32 = re.compile(r"^[0-9a-fA-F]{64}$")


class CLType(str, Enum):
    """Types a runtime argument can carry."""
    BOOL = "Bool"
    U8 = "U8"
    U32 = "U32"
    U64 = "U64"
    U128 = "U128"
    U256 = "U256"
    U512 = "U512"
    STRING = "String"
    KEY = "Key"
    PUBLIC_KEY = "PublicKey"


CL_TYPE_TAGS = {
    CLType.BOOL: 0,
    CLType.U8: 3,
    CLType.U32: 4,
    CLType.U64: 5,
    CLType.U128: 6,
    CLType.U256: 7,
    CLType.U512: 8,
    CLType.STRING: 10,
    CLType.KEY: 11,
    CLType.PUBLIC_KEY: 22,
}

BIG_UINT_BITS = {CLType.U128: 128, CLType.U256: 256, CLType.U512: 512}


def blake2b256(data: bytes) -> bytes:
    """BLAKE2b with a 32-byte digest."""
    return hashlib.blake2b(data, digest_size=HASH_LENGTH).digest()


def encode_u8(value: int) -> bytes:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{value} does not fit in u8")
    return struct.pack("<B", value)


def encode_u32(value: int) -> bytes:
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError(f"{value} does not fit in u32")
    return struct.pack("<I", value)


def encode_u64(value: int) -> bytes:
    if not 0 <= value <= 0xFFFFFFFFFFFFFFFF:
        raise ValueError(f"{value} does not fit in u64")
    return struct.pack("<Q", value)


def encode_big_uint(value: int, bits: int) -> bytes:
    """Encode an unsigned integer as length byte plus minimal little-endian bytes."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected int, got {type(value).__name__}")
    if value < 0 or value >= 1 << bits:
        raise ValueError(f"{value} does not fit in U{bits}")
    raw = value.to_bytes((value.bit_length() + 7) // 8, "little")
    return encode_u8(len(raw)) + raw


def encode_bytes(data: bytes) -> bytes:
    return encode_u32(len(data)) + bytes(data)


def encode_string(value: str) -> bytes:
    return encode_bytes(value.encode("utf-8"))


def encode_bool(value: bool) -> bytes:
    if not isinstance(value, bool):
        raise TypeError(f"expected bool, got {type(value).__name__}")
    return b"\x01" if value else b"\x00"


def parse_hash(value: str, prefixes: Sequence[str] = ("hash-", "contract-")) -> bytes:
    """
    Parse a 32-byte hash given as hex, optionally with a formatted-string prefix.

    Raises:
        ValueError: If the value is not 64 hex characters after the prefix
    """
    for prefix in prefixes:
        if value.startswith(prefix):
            value = value[len(prefix):]
            break
    if not _HEX_32.match(value):
        raise ValueError(f"expected 32-byte hex hash, got {value!r}")
    return bytes.fromhex(value)


def encode_key(value: str) -> bytes:
    """
    Encode a global state key given as ``account-hash-<hex>`` or ``hash-<hex>``.
    """
    if value.startswith("account-hash-"):
        return encode_u8(ACCOUNT_KEY_TAG) + parse_hash(value, ("account-hash-",))
    if value.startswith("hash-"):
        return encode_u8(HASH_KEY_TAG) + parse_hash(value, ("hash-",))
    raise ValueError(f"unsupported key format: {value!r}")


def parse_public_key(value) -> bytes:
    """
    Normalize a tagged public key given as bytes or hex to bytes.

    Raises:
        ValueError: If the tag is unknown or the length does not match it
    """
    if isinstance(value, str):
        value = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    value = bytes(value)
    if not value:
        raise ValueError("empty public key")
    expected = PUBLIC_KEY_LENGTHS.get(value[0])
    if expected is None:
        raise ValueError(f"unknown public key tag {value[0]:#04x}")
    if len(value) != expected + 1:
        raise ValueError(f"public key with tag {value[0]:#04x} must be {expected} bytes")
    return value


def encode_value(cl_type: CLType, value: Any) -> bytes:
    """
    Encode a Python value as the given type.

    Raises:
        ValueError, TypeError: If the value does not fit the type
    """
    if cl_type == CLType.BOOL:
        return encode_bool(value)
    if cl_type == CLType.STRING:
        if not isinstance(value, str):
            raise TypeError(f"expected str, got {type(value).__name__}")
        return encode_string(value)
    if cl_type in (CLType.U8, CLType.U32, CLType.U64):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"expected int, got {type(value).__name__}")
        return {CLType.U8: encode_u8, CLType.U32: encode_u32, CLType.U64: encode_u64}[cl_type](value)
    if cl_type in BIG_UINT_BITS:
        return encode_big_uint(value, BIG_UINT_BITS[cl_type])
    if cl_type == CLType.KEY:
        return encode_key(value)
    if cl_type == CLType.PUBLIC_KEY:
        return parse_public_key(value)
    raise ValueError(f"unsupported type {cl_type}")


def encode_cl_value(cl_type: CLType, value_bytes: bytes) -> bytes:
    return encode_bytes(value_bytes) + encode_u8(CL_TYPE_TAGS[cl_type])


def encode_runtime_args(args: Sequence[Tuple[str, CLType, bytes]]) -> bytes:
    out = bytearray(encode_u32(len(args)))
    for name, cl_type, value in args:
        out += encode_string(name)
        out += encode_cl_value(cl_type, value)
    return bytes(out)


def _arg_triples(args: Sequence["DeployArg"]) -> List[Tuple[str, CLType, bytes]]:
    return [(arg.name, arg.cl_type, arg.value) for arg in args]


def payment_args(amount: int) -> List[Tuple[str, CLType, bytes]]:
    return [("amount", CLType.U512, encode_big_uint(amount, 512))]


def encode_payment(amount: int) -> bytes:
    """Standard payment: empty module bytes with an ``amount`` argument."""
    return encode_u8(MODULE_BYTES_TAG) + encode_bytes(b"") + encode_runtime_args(payment_args(amount))


def encode_session(request: "DeployRequest") -> bytes:
    args = encode_runtime_args(_arg_triples(request.args))
    if request.contract_hash is not None:
        return (
            encode_u8(STORED_CONTRACT_BY_HASH_TAG)
            + parse_hash(request.contract_hash)
            + encode_string(request.entry_point)
            + args
        )
    return encode_u8(MODULE_BYTES_TAG) + encode_bytes(request.session_wasm) + args


def body_hash(request: "DeployRequest") -> bytes:
    return blake2b256(encode_payment(request.payment_amount) + encode_session(request))


def encode_header(request: "DeployRequest", body: bytes) -> bytes:
    return (
        parse_public_key(request.sender)
        + encode_u64(request.timestamp_ms)
        + encode_u64(request.ttl_ms)
        + encode_u64(request.gas_price)
        + body
        + encode_u32(0)  # dependencies
        + encode_string(request.chain_name)
    )


def canonical_serialize(request: "DeployRequest") -> bytes:
    """
    Serialize a request as header || payment || session.
    """
    return (
        encode_header(request, body_hash(request))
        + encode_payment(request.payment_amount)
        + encode_session(request)
    )


def deploy_hash(request: "DeployRequest") -> bytes:
    return blake2b256(encode_header(request, body_hash(request)))


def format_timestamp(timestamp_ms: int) -> str:
    """Format milliseconds since the epoch as RFC 3339 with millisecond precision."""
    moment = datetime.fromtimestamp(timestamp_ms // 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{timestamp_ms % 1000:03d}Z"


def format_ttl(ttl_ms: int) -> str:
    """Format a duration the way the node prints it, e.g. ``1h 30m``."""
    parts = []
    remaining = ttl_ms
    for unit, size in (("day", 86_400_000), ("h", 3_600_000), ("m", 60_000), ("s", 1000), ("ms", 1)):
        count, remaining = divmod(remaining, size)
        if count:
            suffix = "days" if unit == "day" and count > 1 else unit
            parts.append(f"{count}{suffix}")
    return " ".join(parts) or "0s"


def _cl_value_json(cl_type: CLType, value: bytes, parsed: Any) -> Dict[str, Any]:
    return {"cl_type": cl_type.value, "bytes": value.hex(), "parsed": parsed}


def deploy_to_json(signed: "SignedDeploy") -> Dict[str, Any]:
    """
    Render a signed deploy in the node's JSON form (``account_put_deploy`` param).
    """
    request = signed.request
    session_args = [
        [arg.name, _cl_value_json(arg.cl_type, arg.value, arg.parsed)] for arg in request.args
    ]
    if request.contract_hash is not None:
        session = {
            "StoredContractByHash": {
                "hash": parse_hash(request.contract_hash).hex(),
                "entry_point": request.entry_point,
                "args": session_args,
            }
        }
    else:
        session = {"ModuleBytes": {"module_bytes": request.session_wasm.hex(), "args": session_args}}

    payment = {
        "ModuleBytes": {
            "module_bytes": "",
            "args": [
                [name, _cl_value_json(cl_type, value, str(request.payment_amount))]
                for name, cl_type, value in payment_args(request.payment_amount)
            ],
        }
    }

    return {
        "hash": signed.deploy_hash,
        "header": {
            "account": request.sender.hex(),
            "timestamp": format_timestamp(request.timestamp_ms),
            "ttl": format_ttl(request.ttl_ms),
            "gas_price": request.gas_price,
            "body_hash": signed.body_hash,
            "dependencies": [],
            "chain_name": request.chain_name,
        },
        "payment": payment,
        "session": session,
        "approvals": [{"signer": request.sender.hex(), "signature": signed.signature.hex()}],
    }
