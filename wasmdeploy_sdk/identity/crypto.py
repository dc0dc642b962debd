"""
Cryptographic operations for the identity module.

Keys are Ed25519 or secp256k1. Public keys and signatures travel in tagged
form: one algorithm byte (0x01 Ed25519, 0x02 secp256k1) followed by the raw
key or the 64-byte signature.
"""
import base64
import binascii
import logging
from typing import Optional, Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature, encode_dss_signature
from cryptography.hazmat.primitives.serialization import (
    Encoding, PrivateFormat, PublicFormat, NoEncryption,
    load_der_private_key, load_pem_private_key,
)

from ..serialization import ED25519_TAG, SECP256K1_TAG, blake2b256, parse_public_key
from .ec_constants import SECP256K1_HALF_N, SECP256K1_N, SECP256K1_SCALAR_LENGTH

logger = logging.getLogger(__name__)

ALGORITHM_NAMES = {ED25519_TAG: "ed25519", SECP256K1_TAG: "secp256k1"}
ALGORITHM_TAGS = {name: tag for tag, name in ALGORITHM_NAMES.items()}

SIGNATURE_LENGTH = 64

# PKCS#8 header of an Ed25519 private key; the 32-byte seed follows it
_ED25519_PKCS8_PREFIX = bytes.fromhex("302e020100300506032b657004220420")

PrivateKey = Union[Ed25519PrivateKey, ec.EllipticCurvePrivateKey]


def generate_ed25519_keypair() -> Tuple[Ed25519PrivateKey, bytes]:
    """
    Generate an Ed25519 keypair.

    Returns:
        Tuple of (private_key, tagged_public_key_bytes)
    """
    private_key = Ed25519PrivateKey.generate()
    public_key_bytes = private_key.public_key().public_bytes(
        Encoding.Raw, PublicFormat.Raw
    )
    return private_key, bytes([ED25519_TAG]) + public_key_bytes


def decode_private_key(data: bytes, password: Optional[bytes] = None) -> PrivateKey:
    """
    Decode private key material.

    Accepts PEM (PKCS#8 or SEC1), DER, or the base64 blob written by the
    JavaScript tooling, which is a PKCS#8 Ed25519 key with the public key
    appended.

    Raises:
        ValueError: If the data is not a key in any of these encodings
        TypeError: If a password is missing for an encrypted key or given for
            an unencrypted one
    """
    stripped = data.strip()
    if stripped.startswith(b"-----BEGIN"):
        return load_pem_private_key(stripped, password)

    try:
        return load_der_private_key(stripped, password)
    except ValueError:
        pass

    try:
        raw = base64.b64decode(b"".join(stripped.split()), validate=True)
    except binascii.Error:
        raise ValueError("Key data is neither PEM, DER nor base64")

    if raw.startswith(_ED25519_PKCS8_PREFIX) and len(raw) >= len(_ED25519_PKCS8_PREFIX) + 32:
        seed = raw[len(_ED25519_PKCS8_PREFIX):len(_ED25519_PKCS8_PREFIX) + 32]
        return Ed25519PrivateKey.from_private_bytes(seed)
    return load_der_private_key(raw, password)


def private_key_material(key: PrivateKey) -> Tuple[int, bytearray, bytes]:
    """
    Extract the algorithm tag, raw secret and tagged public key from a key object.

    The secret is returned in a ``bytearray`` so the owner can zero it.

    Raises:
        ValueError: If the key is not Ed25519 or secp256k1
    """
    if isinstance(key, Ed25519PrivateKey):
        secret = bytearray(key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption()))
        public = key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        return ED25519_TAG, secret, bytes([ED25519_TAG]) + public

    if isinstance(key, ec.EllipticCurvePrivateKey) and isinstance(key.curve, ec.SECP256K1):
        scalar = key.private_numbers().private_value
        secret = bytearray(scalar.to_bytes(SECP256K1_SCALAR_LENGTH, "big"))
        public = key.public_key().public_bytes(Encoding.X962, PublicFormat.CompressedPoint)
        return SECP256K1_TAG, secret, bytes([SECP256K1_TAG]) + public

    raise ValueError(f"Unsupported key type: {type(key).__name__}")


def sign_with_secret(algorithm_tag: int, secret: bytearray, message: bytes) -> bytes:
    """
    Sign a message with a raw secret and return the tagged signature.

    secp256k1 signatures are ECDSA over SHA-256, encoded as ``r || s`` with
    ``s`` in low-S form.
    """
    if algorithm_tag == ED25519_TAG:
        signature = Ed25519PrivateKey.from_private_bytes(bytes(secret)).sign(message)
    elif algorithm_tag == SECP256K1_TAG:
        key = ec.derive_private_key(int.from_bytes(secret, "big"), ec.SECP256K1())
        r, s = decode_dss_signature(key.sign(message, ec.ECDSA(hashes.SHA256())))
        if s > SECP256K1_HALF_N:
            s = SECP256K1_N - s
        signature = r.to_bytes(SECP256K1_SCALAR_LENGTH, "big") + s.to_bytes(SECP256K1_SCALAR_LENGTH, "big")
    else:
        raise ValueError(f"Unknown algorithm tag {algorithm_tag:#04x}")
    return bytes([algorithm_tag]) + signature


def verify_signature(public_key: Union[bytes, str], message: bytes, signature: bytes) -> bool:
    """
    Check a tagged signature against a tagged public key.

    Returns:
        True if the signature is valid for the message, False otherwise
    """
    try:
        public_key = parse_public_key(public_key)
    except ValueError:
        return False
    if len(signature) != SIGNATURE_LENGTH + 1 or signature[0] != public_key[0]:
        return False

    raw_signature = bytes(signature[1:])
    try:
        if public_key[0] == ED25519_TAG:
            Ed25519PublicKey.from_public_bytes(public_key[1:]).verify(raw_signature, message)
        else:
            r = int.from_bytes(raw_signature[:SECP256K1_SCALAR_LENGTH], "big")
            s = int.from_bytes(raw_signature[SECP256K1_SCALAR_LENGTH:], "big")
            if s > SECP256K1_HALF_N:
                return False
            point = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), public_key[1:])
            point.verify(encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256()))
    except (InvalidSignature, ValueError):
        return False
    return True


def account_hash(public_key: Union[bytes, str]) -> str:
    """
    Derive the account hash of a tagged public key.

    Returns:
        ``account-hash-`` followed by the hex BLAKE2b-256 digest of
        ``algorithm_name || 0x00 || raw_public_key``
    """
    public_key = parse_public_key(public_key)
    name = ALGORITHM_NAMES[public_key[0]].encode("ascii")
    digest = blake2b256(name + b"\x00" + public_key[1:])
    return "account-hash-" + digest.hex()
