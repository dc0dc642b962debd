"""
Identity module for the wasmdeploy SDK.

This module handles loading signing keys, producing deploy approvals and
verifying them.
"""
from wasmdeploy_sdk.identity.crypto import (
    account_hash, generate_ed25519_keypair, verify_signature,
)
from wasmdeploy_sdk.identity.key_store import Keypair, KeyStore, load_keypair

# Short alias matching the signing call: verify(public_key, message, signature)
verify = verify_signature

__all__ = [
    'Keypair',
    'KeyStore',
    'load_keypair',
    'verify',
    'verify_signature',
    'account_hash',
    'generate_ed25519_keypair',
]
