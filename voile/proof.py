"""
Exit Proofs
Fiat-Shamir proof of knowledge over an exit note, with a nullifier that
authorizes exactly one spend.

All hashes are prefixed with a domain hash derived from an application
tag (e.g. a chain id), so a proof made for one deployment never verifies
under another:

  d            = H("voile_proof_domain" || domain)
  nullifier    = H("voile_nullifier" || d || note_id || owner_secret)
  announcement = H("voile_announcement" || d || k)          k: fresh random
  challenge    = H("voile_challenge" || d || commitment || nullifier || announcement)
  response     = H("voile_response" || d || k || challenge || owner_secret)
  tag          = H("voile_verification_tag" || d || response || challenge ||
                   announcement || commitment || nullifier)

Proof wire format (160 bytes):
  commitment || announcement || response || verification_tag || nullifier

The verifier recomputes the challenge and tag from public values only. It
never re-derives the response from the owner secret, so the tag chain does
not itself bind the response to possession of the secret. This is the
published protocol; changing it changes the wire format.

Nullifier lifecycle: Unused → Used, one-way, applied by
mark_nullifier_used() after a successful verify() once the spend is
durably committed. Concurrent verifiers must use verify_and_mark(), which
checks and sets under one lock.
"""

import hmac
import logging
import os
import threading
from dataclasses import dataclass

from voile.commitment import Commitment
from voile.errors import ProofGenerationError, ProofVerificationFailed
from voile.exit_note import ExitNote
from voile.hashing import HASH_SIZE, ZERO_HASH, keccak256, require_bytes32
from voile.nullifiers import InMemoryNullifierStore, NullifierStore

logger = logging.getLogger(__name__)

PROOF_SIZE = 5 * HASH_SIZE
DEFAULT_DOMAIN = b"voile_mainnet"

_DOMAIN_LABEL = b"voile_proof_domain"
_NULLIFIER_LABEL = b"voile_nullifier"
_ANNOUNCEMENT_LABEL = b"voile_announcement"
_CHALLENGE_LABEL = b"voile_challenge"
_RESPONSE_LABEL = b"voile_response"
_TAG_LABEL = b"voile_verification_tag"


def derive_domain(domain: bytes | str) -> bytes:
    """Hash an application domain tag into the 32-byte domain separator."""
    if isinstance(domain, str):
        domain = domain.encode("utf-8")
    elif not isinstance(domain, (bytes, bytearray, memoryview)):
        raise TypeError(f"domain must be bytes or str, got {type(domain).__name__}")
    return keccak256(_DOMAIN_LABEL, bytes(domain))


def _short(value: bytes) -> str:
    return value.hex()[:16]


@dataclass(frozen=True)
class ExitProof:
    """
    A proof that the holder of an owner secret committed to a valid exit note.

    The only artifact that ever leaves the user's device.
    """
    commitment: Commitment
    announcement: bytes
    response: bytes
    verification_tag: bytes
    nullifier: bytes

    def __post_init__(self):
        if not isinstance(self.commitment, Commitment):
            raise ProofVerificationFailed("commitment must be a Commitment")
        for name in ("announcement", "response", "verification_tag", "nullifier"):
            value = require_bytes32(getattr(self, name), name, ProofVerificationFailed)
            object.__setattr__(self, name, value)

    def to_bytes(self) -> bytes:
        return b"".join([
            self.commitment.as_bytes(),
            self.announcement,
            self.response,
            self.verification_tag,
            self.nullifier,
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> "ExitProof":
        """Parse a 160-byte serialized proof."""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise ProofVerificationFailed(f"Expected bytes, got {type(data).__name__}")
        data = bytes(data)
        if len(data) != PROOF_SIZE:
            raise ProofVerificationFailed(
                f"Invalid proof size: expected {PROOF_SIZE}, got {len(data)}"
            )
        fields = [data[i:i + HASH_SIZE] for i in range(0, PROOF_SIZE, HASH_SIZE)]
        return cls(
            commitment=Commitment.from_bytes(fields[0]),
            announcement=fields[1],
            response=fields[2],
            verification_tag=fields[3],
            nullifier=fields[4],
        )

    def to_hex(self) -> str:
        """Lowercase hex (320 chars) for submission to a ledger."""
        return self.to_bytes().hex()

    @classmethod
    def from_hex(cls, hex_str: str) -> "ExitProof":
        try:
            data = bytes.fromhex(hex_str)
        except (ValueError, TypeError) as e:
            raise ProofVerificationFailed(f"Invalid hex: {e}") from e
        return cls.from_bytes(data)


class _DomainBound:
    """Shared transcript hashing for generator and verifier."""

    def __init__(self, domain: bytes | str = DEFAULT_DOMAIN):
        self.domain = derive_domain(domain)

    def _challenge(self, commitment: Commitment, nullifier: bytes, announcement: bytes) -> bytes:
        return keccak256(
            _CHALLENGE_LABEL, self.domain, commitment.as_bytes(), nullifier, announcement,
        )

    def _verification_tag(
        self,
        response: bytes,
        challenge: bytes,
        announcement: bytes,
        commitment: Commitment,
        nullifier: bytes,
    ) -> bytes:
        return keccak256(
            _TAG_LABEL, self.domain, response, challenge, announcement,
            commitment.as_bytes(), nullifier,
        )


class ProofGenerator(_DomainBound):
    """
    Produces exit proofs on the user's device.

    Args:
        domain: Application domain tag (e.g. chain id). Must match the
            verifier's.
    """

    def compute_nullifier(self, note_id: bytes, owner_secret: bytes) -> bytes:
        """
        The note's nullifier under this domain.

        Deterministic in (domain, note_id, owner_secret): every proof for the
        same note and secret carries the same nullifier.
        """
        note_id = require_bytes32(note_id, "note_id", ProofGenerationError)
        owner_secret = require_bytes32(owner_secret, "owner_secret", ProofGenerationError)
        return keccak256(_NULLIFIER_LABEL, self.domain, note_id, owner_secret)

    def generate(self, note: ExitNote, owner_secret: bytes) -> ExitProof:
        """
        Prove knowledge of ``note`` and authority over it.

        Args:
            note: The private exit note.
            owner_secret: The owner's 32-byte secret.

        Returns:
            ExitProof ready for submission.

        Raises:
            ProofGenerationError: If the note or secret are malformed.
        """
        if not isinstance(note, ExitNote):
            raise ProofGenerationError(f"Expected ExitNote, got {type(note).__name__}")
        owner_secret = require_bytes32(owner_secret, "owner_secret", ProofGenerationError)

        commitment = note.commitment()
        nullifier = self.compute_nullifier(note.note_id, owner_secret)

        # k must be fresh per proof: two responses under one k leak the secret.
        k = os.urandom(HASH_SIZE)
        announcement = keccak256(_ANNOUNCEMENT_LABEL, self.domain, k)
        challenge = self._challenge(commitment, nullifier, announcement)
        response = keccak256(_RESPONSE_LABEL, self.domain, k, challenge, owner_secret)
        verification_tag = self._verification_tag(
            response, challenge, announcement, commitment, nullifier,
        )

        return ExitProof(
            commitment=commitment,
            announcement=announcement,
            response=response,
            verification_tag=verification_tag,
            nullifier=nullifier,
        )


class ProofVerifier(_DomainBound):
    """
    Checks exit proofs and tracks spent nullifiers.

    Args:
        domain: Application domain tag. Must match the generator's.
        store: Used-nullifier set. Defaults to a fresh in-memory store.
    """

    def __init__(self, domain: bytes | str = DEFAULT_DOMAIN, store: NullifierStore | None = None):
        super().__init__(domain)
        self.store = store if store is not None else InMemoryNullifierStore()
        self._lock = threading.Lock()

    def verify(self, proof: ExitProof) -> None:
        """
        Verify a proof's validity and freshness.

        Does not mark the nullifier used; call mark_nullifier_used() once
        the spend is committed, or use verify_and_mark().

        Raises:
            ProofVerificationFailed: Nullifier already used, zero-valued
                field, or verification tag mismatch.
        """
        if not isinstance(proof, ExitProof):
            raise ProofVerificationFailed(f"Expected ExitProof, got {type(proof).__name__}")

        if self.store.contains(proof.nullifier):
            logger.debug(f"Rejected proof: nullifier {_short(proof.nullifier)} already used")
            raise ProofVerificationFailed("Nullifier already used")

        for name in ("response", "announcement", "nullifier", "verification_tag"):
            if getattr(proof, name) == ZERO_HASH:
                logger.debug(f"Rejected proof: zero {name}")
                raise ProofVerificationFailed(f"Zero-valued {name}")

        challenge = self._challenge(proof.commitment, proof.nullifier, proof.announcement)
        expected = self._verification_tag(
            proof.response, challenge, proof.announcement, proof.commitment, proof.nullifier,
        )
        if not hmac.compare_digest(expected, proof.verification_tag):
            logger.debug(f"Rejected proof for commitment {_short(proof.commitment.as_bytes())}: tag mismatch")
            raise ProofVerificationFailed("Verification tag mismatch")

    def verify_and_mark(self, proof: ExitProof) -> None:
        """
        Verify and consume the proof's nullifier as one atomic step.

        Two concurrent calls with the same nullifier cannot both succeed.
        """
        with self._lock:
            self.verify(proof)
            self.store.insert(proof.nullifier)
        logger.info(f"Accepted exit for commitment {_short(proof.commitment.as_bytes())}")

    def mark_nullifier_used(self, nullifier: bytes) -> None:
        """Record a nullifier as spent (Unused → Used, one-way)."""
        nullifier = require_bytes32(nullifier, "nullifier", ProofVerificationFailed)
        with self._lock:
            self.store.insert(nullifier)
        logger.info(f"Nullifier {_short(nullifier)} marked used")

    def is_nullifier_used(self, nullifier: bytes) -> bool:
        nullifier = require_bytes32(nullifier, "nullifier", ProofVerificationFailed)
        return self.store.contains(nullifier)
