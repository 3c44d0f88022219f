"""
Note Encryption
Hash-based counter-mode stream cipher for exit notes at rest.

Key schedule:
  counter   → 64-bit random, public, stored with the ciphertext
  nonce     = H("voile_nonce" || key || counter_le64)
  keystream = H(key || nonce || 0_le64) || H(key || nonce || 1_le64) || ...
  ciphertext = plaintext XOR keystream[:len(plaintext)]

Known limitations (kept for wire compatibility):
  - No authentication tag. Decrypting with the wrong key returns garbage,
    it never raises. ExitNote.decrypt only notices when the garbage fails
    to parse as a note.
  - Counters are 64-bit random values. Past roughly 2^32 encryptions
    under one key a counter collision, and with it keystream reuse,
    becomes likely. Rotate keys well before that.
"""

import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from voile.errors import DecryptionError, EncryptionError, InvalidKey
from voile.hashing import HASH_SIZE, keccak256, u64_le


KEY_SIZE = 32
COUNTER_SIZE = 8
U64_MAX = 2**64 - 1

# Passphrase derivation parameters
PBKDF2_ITERATIONS = 600_000  # OWASP recommended minimum
MIN_SALT_SIZE = 16

_NONCE_LABEL = b"voile_nonce"


class EncryptionKey:
    """
    32-byte symmetric key for exit-note encryption.

    Generated and held client-side. Never serialized on-chain.
    """

    __slots__ = ("_key",)

    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray, memoryview)):
            raise InvalidKey(f"Expected bytes, got {type(key).__name__}")
        if len(key) != KEY_SIZE:
            raise InvalidKey(f"Expected {KEY_SIZE} bytes, got {len(key)}")
        self._key = bytes(key)

    @classmethod
    def generate(cls) -> "EncryptionKey":
        """Generate a new random key."""
        return cls(os.urandom(KEY_SIZE))

    @classmethod
    def from_bytes(cls, data: bytes) -> "EncryptionKey":
        return cls(data)

    @classmethod
    def derive(cls, passphrase: str, salt: bytes) -> "EncryptionKey":
        """
        Derive a note key from a passphrase using PBKDF2-HMAC-SHA256.

        Lets a wallet rebuild the same key on another device from the
        passphrase and a stored salt, instead of persisting raw key bytes.

        Args:
            passphrase: The user's passphrase.
            salt: At least 16 random bytes, stored alongside the notes.
        """
        if not isinstance(passphrase, str):
            raise InvalidKey(f"Passphrase must be str, got {type(passphrase).__name__}")
        if not isinstance(salt, (bytes, bytearray, memoryview)):
            raise InvalidKey(f"Salt must be bytes, got {type(salt).__name__}")
        if len(salt) < MIN_SALT_SIZE:
            raise InvalidKey(f"Salt must be at least {MIN_SALT_SIZE} bytes, got {len(salt)}")
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=bytes(salt),
            iterations=PBKDF2_ITERATIONS,
        )
        return cls(kdf.derive(passphrase.encode("utf-8")))

    def as_bytes(self) -> bytes:
        return self._key

    def derive_nonce(self, counter: int) -> bytes:
        """Derive the per-message nonce for a counter value."""
        return keccak256(_NONCE_LABEL, self._key, u64_le(counter))

    def derive_keystream(self, nonce: bytes, length: int) -> bytes:
        """Expand (key, nonce) into ``length`` keystream bytes."""
        blocks = []
        for block_index in range((length + HASH_SIZE - 1) // HASH_SIZE):
            blocks.append(keccak256(self._key, nonce, u64_le(block_index)))
        return b"".join(blocks)[:length]

    def __eq__(self, other) -> bool:
        if not isinstance(other, EncryptionKey):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __repr__(self) -> str:
        return "EncryptionKey(<redacted>)"


def _xor(data: bytes, keystream: bytes) -> bytes:
    return bytes(a ^ b for a, b in zip(data, keystream))


def _require_key(key) -> EncryptionKey:
    if not isinstance(key, EncryptionKey):
        raise InvalidKey(f"Expected EncryptionKey, got {type(key).__name__}")
    return key


class EncryptedNote:
    """
    Ciphertext plus the public counter needed to decrypt it.

    Wire format: counter_le64 || ciphertext
    """

    __slots__ = ("_ciphertext", "_counter")

    def __init__(self, ciphertext: bytes, counter: int):
        if not isinstance(ciphertext, (bytes, bytearray, memoryview)):
            raise DecryptionError(f"Ciphertext must be bytes, got {type(ciphertext).__name__}")
        if isinstance(counter, bool) or not isinstance(counter, int) or not 0 <= counter <= U64_MAX:
            raise DecryptionError(f"Counter must be a 64-bit unsigned integer, got {counter!r}")
        self._ciphertext = bytes(ciphertext)
        self._counter = counter

    @classmethod
    def encrypt(cls, key: EncryptionKey, plaintext: bytes) -> "EncryptedNote":
        """
        Encrypt plaintext under a fresh random counter.

        Args:
            key: The note encryption key.
            plaintext: Bytes to encrypt (any length, including empty).

        Returns:
            EncryptedNote holding ciphertext and counter.
        """
        key = _require_key(key)
        if not isinstance(plaintext, (bytes, bytearray, memoryview)):
            raise EncryptionError(f"Plaintext must be bytes, got {type(plaintext).__name__}")
        plaintext = bytes(plaintext)
        counter = int.from_bytes(os.urandom(COUNTER_SIZE), "little")
        nonce = key.derive_nonce(counter)
        keystream = key.derive_keystream(nonce, len(plaintext))
        return cls(_xor(plaintext, keystream), counter)

    def decrypt(self, key: EncryptionKey) -> bytes:
        """
        Decrypt with the given key.

        Always returns bytes. A wrong key yields garbage, not an error.
        """
        key = _require_key(key)
        nonce = key.derive_nonce(self._counter)
        keystream = key.derive_keystream(nonce, len(self._ciphertext))
        return _xor(self._ciphertext, keystream)

    @property
    def ciphertext(self) -> bytes:
        return self._ciphertext

    @property
    def counter(self) -> int:
        return self._counter

    def to_bytes(self) -> bytes:
        return u64_le(self._counter) + self._ciphertext

    @classmethod
    def from_bytes(cls, data: bytes) -> "EncryptedNote":
        """Parse ``counter_le64 || ciphertext``."""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise DecryptionError(f"Expected bytes, got {type(data).__name__}")
        data = bytes(data)
        if len(data) < COUNTER_SIZE:
            raise DecryptionError("Encrypted note too short")
        counter = int.from_bytes(data[:COUNTER_SIZE], "little")
        return cls(data[COUNTER_SIZE:], counter)

    def __eq__(self, other) -> bool:
        if not isinstance(other, EncryptedNote):
            return NotImplemented
        return self._counter == other._counter and self._ciphertext == other._ciphertext

    def __repr__(self) -> str:
        return f"EncryptedNote(counter={self._counter}, ciphertext={len(self._ciphertext)} bytes)"
