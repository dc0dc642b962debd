"""
Constants for elliptic curve cryptography.
"""

# SECP256K1 constants
# Order of the SECP256K1 elliptic curve (N value)
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# Signatures are normalized to low-S form: s <= N // 2
SECP256K1_HALF_N = SECP256K1_N // 2

# Length in bytes of a SECP256K1 scalar and of each of r and s
SECP256K1_SCALAR_LENGTH = 32
