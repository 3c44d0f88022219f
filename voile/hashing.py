"""
Hashing
Keccak-256 over concatenated byte strings. The single primitive every
Voile construction (commitment, keystream, nullifier, proof transcript)
is built from.

This is the original Ethereum Keccak, not NIST SHA3-256. The two differ
in padding and produce different digests; swapping them breaks wire
compatibility with every commitment and proof already published.
"""

from eth_utils import keccak

HASH_SIZE = 32
ZERO_HASH = bytes(HASH_SIZE)


def keccak256(*parts: bytes) -> bytes:
    """Hash the concatenation of ``parts`` with Keccak-256."""
    return keccak(b"".join(parts))


def require_bytes32(value, what: str, error_cls: type[Exception]) -> bytes:
    """
    Validate a 32-byte input at a public boundary.

    Args:
        value: Candidate bytes-like value.
        what: Name used in the error message.
        error_cls: Typed error to raise on failure.

    Returns:
        The value as immutable ``bytes``.
    """
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise error_cls(f"{what} must be bytes, got {type(value).__name__}")
    value = bytes(value)
    if len(value) != HASH_SIZE:
        raise error_cls(f"{what} must be {HASH_SIZE} bytes, got {len(value)}")
    return value


def u64_le(value: int) -> bytes:
    """Encode an unsigned 64-bit integer little-endian."""
    return value.to_bytes(8, "little")
