"""
NDN-Opp Node Identity

Every node is addressed by a stable identifier that peers see in
service discovery and that packets carry as sender/recipient.

The identifier is derived from an Ed25519 public key:
    node_id = hex(BLAKE2b-128(public_key))

Storing the key across restarts is left to the caller.
"""

import hashlib
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from . import NODE_ID_LENGTH


class IdentityError(Exception):
    """Exception raised for identity-related errors."""
    pass


@dataclass
class NodeIdentity:
    """
    Node identity key pair and derived identifier.
    """

    _private_key: Ed25519PrivateKey
    public_key: Ed25519PublicKey
    node_id: str

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self.public_key = private_key.public_key()
        self.node_id = derive_node_id(self.public_key)

    def public_bytes(self) -> bytes:
        """Get raw 32-byte public key."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def private_bytes(self) -> bytes:
        """Get raw 32-byte private key seed."""
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def __repr__(self) -> str:
        return f"NodeIdentity({self.node_id})"


def derive_node_id(public_key: Ed25519PublicKey) -> str:
    """
    Derive node ID from Ed25519 public key.

    Args:
        public_key: Ed25519 public key

    Returns:
        str: 32 hex characters
    """
    public_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return hashlib.blake2b(
        public_bytes,
        digest_size=NODE_ID_LENGTH,
        person=b"ndnopp-nodeid",
    ).hexdigest()


def generate_identity() -> NodeIdentity:
    """Generate a new node identity."""
    return NodeIdentity(Ed25519PrivateKey.generate())


def identity_from_private_bytes(seed: bytes) -> NodeIdentity:
    """
    Rebuild an identity from a raw private key.

    Args:
        seed: 32-byte Ed25519 private key

    Raises:
        IdentityError: If the seed is not a valid key
    """
    if len(seed) != 32:
        raise IdentityError(f"Invalid private key length: {len(seed)}")
    try:
        return NodeIdentity(Ed25519PrivateKey.from_private_bytes(seed))
    except ValueError as e:
        raise IdentityError(f"Invalid private key: {e}")
