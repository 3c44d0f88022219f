"""
Exit Note
The private record of a pending unstake and the terms the user wants.

The note is created on the user's device, encrypted for storage, and only
its commitment is ever published. The plaintext never crosses the trust
boundary: once a proof is produced the note itself can be discarded.

Binary layout (little-endian):
  note_id[32] || amount[8] || owner[32] || created_at[8] ||
  blinding_factor[32] || terms_len[2] || terms[terms_len]

The first 114 bytes are fixed. Terms are a tag byte plus payload:
  0 Immediate  (no payload)
  1 Standard   (no payload)
  2 Delayed    blocks: u64
  3 Custom     min_rate_bps: u16, max_slippage_bps: u16
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import ClassVar

from voile.commitment import Commitment
from voile.encryption import EncryptedNote, EncryptionKey
from voile.errors import InvalidExitNote
from voile.hashing import HASH_SIZE, require_bytes32, u64_le

logger = logging.getLogger(__name__)

HEADER_SIZE = 114
U64_MAX = 2**64 - 1
U16_MAX = 2**16 - 1


def _check_uint(value, limit: int, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidExitNote(f"{what} must be an integer, got {type(value).__name__}")
    if not 0 <= value <= limit:
        raise InvalidExitNote(f"{what} out of range: {value}")
    return value


# ---------------------------------------------------------------------------
# Exit terms
# ---------------------------------------------------------------------------

class ExitTerms:
    """
    Base of the closed set of exit-term variants.

    Only Immediate, Standard, Delayed and Custom exist. Decoding an unknown
    tag is an error, never a fallback.
    """

    TAG: ClassVar[int]
    name: ClassVar[str]

    def to_bytes(self) -> bytes:
        return bytes([self.TAG]) + self._payload()

    def _payload(self) -> bytes:
        return b""

    @staticmethod
    def from_bytes(data: bytes) -> "ExitTerms":
        """
        Decode terms from their tag + payload encoding.

        Raises:
            InvalidExitNote: Empty input, unknown tag, or truncated payload.
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise InvalidExitNote(f"Expected bytes, got {type(data).__name__}")
        data = bytes(data)
        if not data:
            raise InvalidExitNote("Empty terms data")

        tag = data[0]
        if tag == Immediate.TAG:
            return Immediate()
        if tag == Standard.TAG:
            return Standard()
        if tag == Delayed.TAG:
            if len(data) < 9:
                raise InvalidExitNote("Delayed terms missing blocks")
            return Delayed(blocks=int.from_bytes(data[1:9], "little"))
        if tag == Custom.TAG:
            if len(data) < 5:
                raise InvalidExitNote("Custom terms missing parameters")
            return Custom(
                min_rate_bps=int.from_bytes(data[1:3], "little"),
                max_slippage_bps=int.from_bytes(data[3:5], "little"),
            )
        raise InvalidExitNote(f"Unknown terms type: {tag}")


@dataclass(frozen=True)
class Immediate(ExitTerms):
    """Exit now, accepting any early-exit penalty."""
    TAG: ClassVar[int] = 0
    name: ClassVar[str] = "immediate"


@dataclass(frozen=True)
class Standard(ExitTerms):
    """Exit after the normal unstaking period."""
    TAG: ClassVar[int] = 1
    name: ClassVar[str] = "standard"


@dataclass(frozen=True)
class Delayed(ExitTerms):
    """Wait a number of blocks in exchange for a better rate."""
    TAG: ClassVar[int] = 2
    name: ClassVar[str] = "delayed"

    blocks: int

    def __post_init__(self):
        _check_uint(self.blocks, U64_MAX, "blocks")

    def _payload(self) -> bytes:
        return u64_le(self.blocks)


@dataclass(frozen=True)
class Custom(ExitTerms):
    """Explicit rate floor and slippage ceiling, both in basis points."""
    TAG: ClassVar[int] = 3
    name: ClassVar[str] = "custom"

    min_rate_bps: int
    max_slippage_bps: int

    def __post_init__(self):
        _check_uint(self.min_rate_bps, U16_MAX, "min_rate_bps")
        _check_uint(self.max_slippage_bps, U16_MAX, "max_slippage_bps")

    def _payload(self) -> bytes:
        return (
            self.min_rate_bps.to_bytes(2, "little")
            + self.max_slippage_bps.to_bytes(2, "little")
        )


# ---------------------------------------------------------------------------
# Exit note
# ---------------------------------------------------------------------------

class ExitNote:
    """
    A private exit note.

    Use ExitNote.new() to create one; it draws a fresh note id and blinding
    factor, so two notes with identical amount, owner and terms still have
    unrelated commitments.

    Args:
        note_id: 32-byte unique identifier.
        amount: Amount to unstake, in base units (u64).
        owner: 32-byte owner public key or address.
        terms: One of the ExitTerms variants.
        created_at: Unix timestamp in seconds (u64).
        blinding_factor: 32 random bytes hiding the commitment.
    """

    __slots__ = ("_note_id", "_amount", "_owner", "_terms", "_created_at", "_blinding_factor")

    def __init__(
        self,
        note_id: bytes,
        amount: int,
        owner: bytes,
        terms: ExitTerms,
        created_at: int,
        blinding_factor: bytes,
    ):
        if not isinstance(terms, ExitTerms) or type(terms) is ExitTerms:
            raise InvalidExitNote(f"terms must be an ExitTerms variant, got {type(terms).__name__}")
        self._note_id = require_bytes32(note_id, "note_id", InvalidExitNote)
        self._amount = _check_uint(amount, U64_MAX, "amount")
        self._owner = require_bytes32(owner, "owner", InvalidExitNote)
        self._terms = terms
        self._created_at = _check_uint(created_at, U64_MAX, "created_at")
        self._blinding_factor = require_bytes32(blinding_factor, "blinding_factor", InvalidExitNote)

    @classmethod
    def new(cls, amount: int, owner: bytes, terms: ExitTerms) -> "ExitNote":
        """Create a fresh note with random id and blinding factor, stamped now."""
        return cls(
            note_id=os.urandom(HASH_SIZE),
            amount=amount,
            owner=owner,
            terms=terms,
            created_at=int(time.time()),
            blinding_factor=os.urandom(HASH_SIZE),
        )

    @property
    def note_id(self) -> bytes:
        return self._note_id

    @property
    def amount(self) -> int:
        return self._amount

    @property
    def owner(self) -> bytes:
        return self._owner

    @property
    def terms(self) -> ExitTerms:
        return self._terms

    @property
    def created_at(self) -> int:
        return self._created_at

    @property
    def blinding_factor(self) -> bytes:
        return self._blinding_factor

    def to_bytes(self) -> bytes:
        terms_bytes = self._terms.to_bytes()
        return b"".join([
            self._note_id,
            u64_le(self._amount),
            self._owner,
            u64_le(self._created_at),
            self._blinding_factor,
            len(terms_bytes).to_bytes(2, "little"),
            terms_bytes,
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> "ExitNote":
        """
        Parse a serialized note.

        Raises:
            InvalidExitNote: Buffer shorter than the 114-byte header, declared
                terms length past the end of the buffer, or bad terms.
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise InvalidExitNote(f"Expected bytes, got {type(data).__name__}")
        data = bytes(data)
        if len(data) < HEADER_SIZE:
            raise InvalidExitNote(f"Exit note too short: {len(data)} bytes")

        terms_len = int.from_bytes(data[112:114], "little")
        if len(data) < HEADER_SIZE + terms_len:
            raise InvalidExitNote("Exit note truncated")

        return cls(
            note_id=data[0:32],
            amount=int.from_bytes(data[32:40], "little"),
            owner=data[40:72],
            created_at=int.from_bytes(data[72:80], "little"),
            blinding_factor=data[80:112],
            terms=ExitTerms.from_bytes(data[HEADER_SIZE:HEADER_SIZE + terms_len]),
        )

    def commitment(self) -> Commitment:
        """
        The publishable commitment to this note.

        The serialized note already embeds the blinding factor; it is hashed
        in a second time as the commitment's blinding input.
        """
        return Commitment.new(self.to_bytes(), self._blinding_factor)

    def verify_commitment(self, commitment: Commitment) -> bool:
        """Check that this note opens ``commitment``."""
        return self.commitment() == commitment

    def encrypt(self, key: EncryptionKey) -> EncryptedNote:
        """Encrypt the serialized note for private storage."""
        return EncryptedNote.encrypt(key, self.to_bytes())

    @classmethod
    def decrypt(cls, encrypted: EncryptedNote, key: EncryptionKey) -> "ExitNote":
        """
        Decrypt and parse a stored note.

        A wrong key is only detected when the recovered bytes fail to parse;
        in that case InvalidExitNote is raised.
        """
        plaintext = encrypted.decrypt(key)
        try:
            return cls.from_bytes(plaintext)
        except InvalidExitNote:
            logger.debug("Decrypted note failed to parse (wrong key or corrupted ciphertext)")
            raise

    def __eq__(self, other) -> bool:
        if not isinstance(other, ExitNote):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __repr__(self) -> str:
        # Amount, owner and terms are private; only the id prefix is shown.
        return f"ExitNote(note_id={self._note_id.hex()[:16]}...)"
