"""
Cryptographic primitives for the auction engine.

This module provides:
- Keccak-256 hashing (EVM-compatible)
- Key generation on secp256k1
- Address derivation and formatting helpers

Design Notes:
-------------
Identities are 20-byte Ethereum-style addresses: the last 20 bytes of
keccak256(public_key). Contract addresses are derived from the deployer
address and a per-deployer nonce, so a simulated chain hands out stable,
collision-free identities without a global registry.

Keccak is also used to chain the auction event log.
"""

import secrets
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order (number of points on the curve)
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ADDRESS_SIZE = 20

# The null identity; never a valid bidder, owner or collaborator
ZERO_ADDRESS = bytes(ADDRESS_SIZE)


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: address derivation, event log chaining.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key (integer in [1, order-1])
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes  # 32 bytes
    public_key: bytes   # 64 bytes (uncompressed, no 0x04 prefix)

    @property
    def address(self) -> bytes:
        """20-byte address derived from the public key."""
        return address_from_public_key(self.public_key)


def generate_keypair() -> KeyPair:
    """
    Generate a new random keypair.

    Uses cryptographically secure random number generator.
    """
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")

    # P = k * G
    public_key_point = secp256k1.privtopub(private_key)
    x_bytes = public_key_point[0].to_bytes(32, byteorder="big")
    y_bytes = public_key_point[1].to_bytes(32, byteorder="big")

    return KeyPair(private_key=private_key, public_key=x_bytes + y_bytes)


# =============================================================================
# Addresses
# =============================================================================


def address_from_public_key(public_key: bytes) -> bytes:
    """
    Derive address from public key (Ethereum-style).

    address = keccak256(public_key)[-20:]

    Args:
        public_key: 64-byte public key

    Returns:
        20-byte address
    """
    if len(public_key) != 64:
        raise ValueError(f"Public key must be 64 bytes, got {len(public_key)}")
    return keccak256(public_key)[-ADDRESS_SIZE:]


def contract_address(deployer: bytes, nonce: int) -> bytes:
    """
    Derive the address of a contract deployed by `deployer`.

    address = keccak256(deployer || nonce)[-20:]
    """
    return keccak256(deployer + nonce.to_bytes(8, byteorder="big"))[-ADDRESS_SIZE:]


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def short_address(address: bytes) -> str:
    """Abbreviated hex form for log lines."""
    return bytes_to_hex(address)[:10]

__all__ = [
    "SECP256K1_ORDER",
    "ADDRESS_SIZE",
    "ZERO_ADDRESS",
    "keccak256",
    "KeyPair",
    "generate_keypair",
    "address_from_public_key",
    "contract_address",
    "bytes_to_hex",
    "short_address",
]
