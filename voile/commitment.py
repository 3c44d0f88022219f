"""
Commitment Scheme
Binding, hiding 32-byte commitments to arbitrary bytes.

    commitment = H(value || blinding_factor)

Binding rests on second-preimage resistance of Keccak-256. Hiding rests
on the blinding factor being uniformly random and never reused across
commitments to different values. An exit note's commitment is the only
trace of it that ever appears on-chain.
"""

import hmac

from voile.errors import InvalidCommitment
from voile.hashing import HASH_SIZE, keccak256, require_bytes32


class Commitment:
    """
    A 32-byte commitment to a hidden value.

    Immutable once built. Compares and hashes by value so commitments can
    be used as dict keys or set members.
    """

    __slots__ = ("_hash",)

    def __init__(self, digest: bytes):
        self._hash = require_bytes32(digest, "Commitment", InvalidCommitment)

    @classmethod
    def new(cls, value: bytes, blinding_factor: bytes) -> "Commitment":
        """
        Commit to a value under a blinding factor.

        Args:
            value: The bytes to commit to (any length).
            blinding_factor: 32 random bytes hiding the value.

        Returns:
            The commitment ``H(value || blinding_factor)``.
        """
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise InvalidCommitment(f"Value must be bytes, got {type(value).__name__}")
        blinding_factor = require_bytes32(blinding_factor, "Blinding factor", InvalidCommitment)
        return cls(keccak256(bytes(value), blinding_factor))

    def verify(self, value: bytes, blinding_factor: bytes) -> bool:
        """Check that ``value`` and ``blinding_factor`` open this commitment."""
        try:
            expected = Commitment.new(value, blinding_factor)
        except InvalidCommitment:
            return False
        return hmac.compare_digest(self._hash, expected._hash)

    def as_bytes(self) -> bytes:
        return self._hash

    to_bytes = as_bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "Commitment":
        """Rebuild a commitment from exactly 32 raw bytes."""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise InvalidCommitment(f"Expected bytes, got {type(data).__name__}")
        if len(data) != HASH_SIZE:
            raise InvalidCommitment(f"Expected {HASH_SIZE} bytes, got {len(data)}")
        return cls(bytes(data))

    def to_hex(self) -> str:
        return self._hash.hex()

    @classmethod
    def from_hex(cls, hex_str: str) -> "Commitment":
        try:
            data = bytes.fromhex(hex_str)
        except (ValueError, TypeError) as e:
            raise InvalidCommitment(f"Invalid hex: {e}") from e
        return cls.from_bytes(data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Commitment):
            return NotImplemented
        return self._hash == other._hash

    def __hash__(self) -> int:
        return hash(self._hash)

    def __repr__(self) -> str:
        return f"Commitment({self.to_hex()})"

    def __str__(self) -> str:
        return self.to_hex()
