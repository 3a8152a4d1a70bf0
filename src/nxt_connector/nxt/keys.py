"""NXT account keys — secret phrases, Curve25519 public keys, RS addresses.

Implements local account derivation so secret phrases never leave the
process when creating addresses:
- Secret phrase generation (12-word mnemonic)
- Public key: Curve25519 base-point multiplication of SHA-256(phrase)
- Account id: first 8 bytes of SHA-256(public key), little-endian
- Reed-Solomon ``NXT-XXXX-XXXX-XXXX-XXXXX`` address encoding
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from mnemonic import Mnemonic

from nxt_connector.utils.crypto import sha256

ADDRESS_PREFIX = "NXT-"

# ---------------------------------------------------------------------------
# Reed-Solomon over GF(32)
# ---------------------------------------------------------------------------

_RS_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
_GEXP = (
    1, 2, 4, 8, 16, 5, 10, 20, 13, 26, 17, 7, 14, 28, 29, 31,
    27, 19, 3, 6, 12, 24, 21, 15, 30, 25, 23, 11, 22, 9, 18, 1,
)
_GLOG = (
    0, 0, 1, 18, 2, 5, 19, 11, 3, 29, 6, 27, 20, 8, 12, 23,
    4, 10, 30, 17, 7, 22, 28, 26, 21, 25, 9, 16, 13, 14, 24, 15,
)
_CODEWORD_MAP = (3, 2, 1, 0, 7, 6, 5, 4, 13, 14, 15, 16, 12, 8, 9, 10, 11)
_BASE_32_LENGTH = 13
_CODEWORD_LENGTH = 17


def _gmult(a: int, b: int) -> int:
    if a == 0 or b == 0:
        return 0
    return _GEXP[(_GLOG[a] + _GLOG[b]) % 31]


def rs_encode(account_id: int) -> str:
    """Encode an unsigned 64-bit account id as ``XXXX-XXXX-XXXX-XXXXX``.

    Raises:
        ValueError: If *account_id* is outside the unsigned 64-bit range.
    """
    if not 0 <= account_id < 2**64:
        msg = f"account id out of range: {account_id}"
        raise ValueError(msg)

    digits = [int(c) for c in str(account_id)]
    length = len(digits)
    codeword = [0] * _CODEWORD_LENGTH
    codeword_length = 0

    # Base 10 -> base 32, least significant digit first
    while True:
        new_length = 0
        digit_32 = 0
        for i in range(length):
            digit_32 = digit_32 * 10 + digits[i]
            if digit_32 >= 32:
                digits[new_length] = digit_32 >> 5
                digit_32 &= 31
                new_length += 1
            elif new_length > 0:
                digits[new_length] = 0
                new_length += 1
        length = new_length
        codeword[codeword_length] = digit_32
        codeword_length += 1
        if length <= 0:
            break

    p = [0, 0, 0, 0]
    for i in range(_BASE_32_LENGTH - 1, -1, -1):
        fb = codeword[i] ^ p[3]
        p[3] = p[2] ^ _gmult(30, fb)
        p[2] = p[1] ^ _gmult(6, fb)
        p[1] = p[0] ^ _gmult(9, fb)
        p[0] = _gmult(17, fb)
    codeword[_BASE_32_LENGTH:] = p

    out: list[str] = []
    for i in range(_CODEWORD_LENGTH):
        out.append(_RS_ALPHABET[codeword[_CODEWORD_MAP[i]]])
        if (i & 3) == 3 and i < 13:
            out.append("-")
    return "".join(out)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------


def private_key_from_secret(secret_phrase: str) -> bytes:
    """SHA-256 of the UTF-8 secret phrase, the unclamped Curve25519 scalar."""
    return sha256(secret_phrase.encode("utf-8"))


def public_key_from_private_key(private_key: bytes) -> bytes:
    """Multiply the Curve25519 base point by the clamped *private_key*."""
    private = X25519PrivateKey.from_private_bytes(private_key)
    return private.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


def public_key_from_secret(secret_phrase: str) -> bytes:
    """Derive the 32-byte Curve25519 public key for a secret phrase."""
    return public_key_from_private_key(private_key_from_secret(secret_phrase))


def account_id_from_public_key(public_key: bytes) -> int:
    """Numeric NXT account id of a public key."""
    return int.from_bytes(sha256(public_key)[:8], "little")


def address_from_secret(secret_phrase: str) -> str:
    """Reed-Solomon address (``NXT-...``) controlled by a secret phrase."""
    account_id = account_id_from_public_key(public_key_from_secret(secret_phrase))
    return ADDRESS_PREFIX + rs_encode(account_id)


def generate_secret_phrase() -> str:
    """Generate a fresh 12-word secret phrase."""
    return Mnemonic("english").generate(strength=128)


@dataclass(frozen=True)
class AccountKey:
    """A secret phrase and the address it controls.

    Only lives between generation and the store write; the secret is kept
    out of ``repr`` so it never ends up in logs.
    """

    address: str
    secret: str = field(repr=False)

    @classmethod
    def from_secret(cls, secret_phrase: str) -> AccountKey:
        return cls(address=address_from_secret(secret_phrase), secret=secret_phrase)


def generate_account() -> AccountKey:
    """Create a new account key pair."""
    return AccountKey.from_secret(generate_secret_phrase())
