"""
Ephemeral keys for user decryption.

The relayer seals every cleartext to the grant's X25519 public key:
ECDH with a per-value sender key, HKDF-SHA256, then AES-256-GCM with the
handle bytes as associated data so a sealed value only opens for the handle
it was produced for.
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

HKDF_INFO = b"tokenspectrum-user-decrypt"
NONCE_BYTES = 12
CLEARTEXT_BYTES = 32


def generate_ephemeral_keypair() -> tuple[X25519PrivateKey, bytes]:
    """Generate a fresh keypair; returns (private key, raw 32-byte public key)."""
    private_key = X25519PrivateKey.generate()
    public_key = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return private_key, public_key


def derive_key(shared_secret: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=HKDF_INFO,
    ).derive(shared_secret)


def seal_cleartext(recipient_public_key: bytes, handle: str, value: int) -> dict:
    """Encrypt a cleartext for the holder of the matching ephemeral private key."""
    sender_key = X25519PrivateKey.generate()
    shared_secret = sender_key.exchange(X25519PublicKey.from_public_bytes(recipient_public_key))
    nonce = os.urandom(NONCE_BYTES)
    ciphertext = AESGCM(derive_key(shared_secret)).encrypt(
        nonce, value.to_bytes(CLEARTEXT_BYTES, "big"), bytes.fromhex(handle[2:])
    )
    sender_public = sender_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return {
        "ephemPublicKey": sender_public.hex(),
        "nonce": nonce.hex(),
        "ciphertext": ciphertext.hex(),
    }


def unseal_cleartext(private_key: X25519PrivateKey, handle: str, sealed: dict) -> int:
    """
    Open a sealed cleartext.

    Raises ValueError if the payload is malformed or was not sealed for this
    key and handle.
    """
    try:
        sender_public = X25519PublicKey.from_public_bytes(bytes.fromhex(sealed["ephemPublicKey"]))
        nonce = bytes.fromhex(sealed["nonce"])
        ciphertext = bytes.fromhex(sealed["ciphertext"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed sealed value: {e}")

    shared_secret = private_key.exchange(sender_public)
    try:
        plaintext = AESGCM(derive_key(shared_secret)).decrypt(
            nonce, ciphertext, bytes.fromhex(handle[2:])
        )
    except InvalidTag:
        raise ValueError("Sealed value does not open for this key and handle")
    return int.from_bytes(plaintext, "big")
