"""
guardledger/core/crypto.py

Ed25519 keys. Accounts sign transactions with them; the host signs events.

An account's address is a function of its public key:

    address = "0x" + sha256(raw_public_key)[-20:].hex()

so the host never has to trust a claimed sender. It derives the caller
from the key that produced a valid signature.

Signatures travel as base64url without "=" padding.
"""

import base64
import hashlib
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)


PUBLIC_KEY_HEX_LENGTH = 64
SIGNATURE_BYTES       = 64
_ADDRESS_BYTES        = 20


def address_from_public_key(public_key_hex: str) -> str:
    """
    Account address for a hex-encoded Ed25519 public key.
    Raises ValueError unless given 32 bytes of hex.
    """
    if not isinstance(public_key_hex, str) or len(public_key_hex) != PUBLIC_KEY_HEX_LENGTH:
        raise ValueError(f"expected {PUBLIC_KEY_HEX_LENGTH} hex chars, got {public_key_hex!r}")
    digest = hashlib.sha256(bytes.fromhex(public_key_hex)).digest()
    return "0x" + digest[-_ADDRESS_BYTES:].hex()


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class Ed25519KeyManager:
    """
    Holds one Ed25519 private key.

        Ed25519KeyManager.generate()
        Ed25519KeyManager.from_file(path)          PEM, PKCS8, unencrypted
        Ed25519KeyManager.from_private_bytes(seed) 32-byte seed

    public_key_hex and address are computed once.
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        raw_public = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self._public_key_hex = raw_public.hex()
        self._address = address_from_public_key(self._public_key_hex)

    @classmethod
    def generate(cls) -> "Ed25519KeyManager":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_file(cls, path: Path) -> "Ed25519KeyManager":
        """
        Load a PEM private key.
        Raises FileNotFoundError if missing, ValueError if not an Ed25519 key.
        """
        pem = Path(path).read_bytes()
        try:
            key = load_pem_private_key(pem, password=None)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"{path} is not a readable PEM private key: {exc}") from exc
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError(f"{path} holds a {type(key).__name__}, not an Ed25519 key")
        return cls(key)

    @classmethod
    def from_private_bytes(cls, seed: bytes) -> "Ed25519KeyManager":
        if len(seed) != 32:
            raise ValueError(f"Ed25519 seed must be 32 bytes, got {len(seed)}")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @property
    def public_key_hex(self) -> str:
        return self._public_key_hex

    @property
    def address(self) -> str:
        return self._address

    def sign(self, data: bytes) -> str:
        """Sign already-canonical bytes."""
        return _b64url_encode(self._private_key.sign(data))

    def verify(self, data: bytes, signature: str) -> bool:
        return self.verify_detached(data, signature, self._public_key_hex)

    @staticmethod
    def verify_detached(data: bytes, signature: str, public_key_hex: str) -> bool:
        """
        True iff signature is valid for data under public_key_hex.
        Any malformed input yields False; this never raises.
        """
        try:
            if len(public_key_hex) != PUBLIC_KEY_HEX_LENGTH:
                return False
            public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
            raw_signature = _b64url_decode(signature)
            if len(raw_signature) != SIGNATURE_BYTES:
                return False
            public_key.verify(raw_signature, data)
        except (InvalidSignature, ValueError, TypeError):
            return False
        return True

    def save(self, path: Path) -> None:
        """Write the private key as unencrypted PKCS8 PEM, creating parent dirs."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(
            self._private_key.private_bytes(
                encoding=             Encoding.PEM,
                format=               PrivateFormat.PKCS8,
                encryption_algorithm= NoEncryption(),
            )
        )

    def __repr__(self) -> str:
        return f"Ed25519KeyManager(address={self._address})"
