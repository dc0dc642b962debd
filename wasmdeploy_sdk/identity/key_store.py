"""
Scoped key storage for signing deploys.
"""
import os
import logging
import threading
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from ..exceptions import InvalidKeyFormat, SigningError
from .crypto import (
    ALGORITHM_NAMES, account_hash, decode_private_key,
    private_key_material, sign_with_secret,
)

logger = logging.getLogger(__name__)

KeySource = Union[str, os.PathLike, bytes, bytearray]

DEFAULT_SECRET_KEY_PATH = "~/.casper/keys/secret_key.pem"


class Keypair:
    """
    A signing keypair.

    The secret scalar lives in a ``bytearray`` that ``close()`` overwrites
    with zeros. The keypair is a context manager and closes itself on exit.
    """

    def __init__(self, algorithm_tag: int, secret: bytearray, public_key: bytes):
        self._algorithm_tag = algorithm_tag
        self._secret = secret
        self._public_key = public_key
        self._closed = False

    @property
    def algorithm(self) -> str:
        return ALGORITHM_NAMES[self._algorithm_tag]

    @property
    def public_key(self) -> bytes:
        """Tagged public key bytes"""
        return self._public_key

    @property
    def public_key_hex(self) -> str:
        return self._public_key.hex()

    @property
    def account_hash(self) -> str:
        return account_hash(self._public_key)

    @property
    def closed(self) -> bool:
        return self._closed

    def sign(self, message: bytes) -> bytes:
        """
        Sign a message.

        Returns:
            Tagged signature bytes

        Raises:
            SigningError: If the keypair was closed or signing fails
        """
        if self._closed:
            raise SigningError("Keypair has been released")
        try:
            return sign_with_secret(self._algorithm_tag, self._secret, bytes(message))
        except (ValueError, TypeError) as e:
            raise SigningError(f"Failed to sign: {e}")

    def close(self) -> None:
        """Zero the secret and refuse further signing."""
        if not self._closed:
            self._secret[:] = bytes(len(self._secret))
            self._closed = True

    def __enter__(self) -> "Keypair":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        if hasattr(self, "_secret"):
            self.close()

    def __repr__(self) -> str:
        return f"Keypair(algorithm={self.algorithm!r}, public_key={self.public_key_hex!r})"


def load_keypair(source: KeySource, password: Optional[bytes] = None) -> Keypair:
    """
    Load a keypair from a file path or raw key bytes.

    Args:
        source: Path to a key file, PEM text, or PEM/DER/base64 key bytes
        password: Password for an encrypted PEM key

    Returns:
        Keypair

    Raises:
        InvalidKeyFormat: If the source cannot be read or is not a supported key
    """
    if isinstance(source, str) and source.lstrip().startswith("-----BEGIN"):
        data = source.encode("ascii")
    elif isinstance(source, (str, os.PathLike)):
        path = Path(source).expanduser()
        try:
            data = path.read_bytes()
        except OSError as e:
            raise InvalidKeyFormat(f"Cannot read key file {path}: {e.strerror}")
    elif isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    else:
        raise InvalidKeyFormat(f"Unsupported key source type: {type(source).__name__}")

    try:
        key = decode_private_key(data, password)
        algorithm_tag, secret, public_key = private_key_material(key)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyFormat(f"Unsupported or malformed private key: {e}")

    logger.debug("Loaded %s keypair for %s", ALGORITHM_NAMES[algorithm_tag], public_key.hex())
    return Keypair(algorithm_tag, secret, public_key)


class KeyStore:
    """
    Holds one keypair and signs with it.

    Signing is serialized with a lock so one store can be shared by
    concurrent deployments. Closing the store zeroes the key.
    """

    def __init__(self, keypair: Keypair):
        self._keypair = keypair
        self._lock = threading.Lock()

    @classmethod
    def load(cls, source: KeySource, password: Optional[bytes] = None) -> "KeyStore":
        """Create a key store from a path or key bytes (see ``load_keypair``)."""
        return cls(load_keypair(source, password))

    @classmethod
    def from_env(cls, password: Optional[bytes] = None) -> "KeyStore":
        """
        Create a key store from the file named by WASMDEPLOY_SECRET_KEY_PATH.

        Falls back to ~/.casper/keys/secret_key.pem.
        """
        path = os.environ.get("WASMDEPLOY_SECRET_KEY_PATH", DEFAULT_SECRET_KEY_PATH)
        return cls.load(os.path.expanduser(path), password)

    @classmethod
    def generate(cls, algorithm: str = "ed25519") -> "KeyStore":
        """Create a key store around a freshly generated key."""
        if algorithm == "ed25519":
            key = Ed25519PrivateKey.generate()
        elif algorithm == "secp256k1":
            key = ec.generate_private_key(ec.SECP256K1())
        else:
            raise ValueError(f"Unsupported algorithm: {algorithm}")
        return cls(Keypair(*private_key_material(key)))

    @property
    def public_key(self) -> bytes:
        return self._keypair.public_key

    @property
    def public_key_hex(self) -> str:
        return self._keypair.public_key_hex

    @property
    def account_hash(self) -> str:
        return self._keypair.account_hash

    @property
    def closed(self) -> bool:
        return self._keypair.closed

    def sign(self, message: bytes) -> bytes:
        """
        Sign a message with the held key.

        Raises:
            SigningError: If the store was closed or signing fails
        """
        with self._lock:
            return self._keypair.sign(message)

    def close(self) -> None:
        with self._lock:
            self._keypair.close()

    def __enter__(self) -> "KeyStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
