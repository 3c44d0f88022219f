"""
Voile — Private Exit Notes
Commit to a pending unstake, keep its details on your device, and prove
ownership to a ledger without revealing amount, timing or terms.

Components (leaves first):
1. Commitment — binding, hiding 32-byte hash of a note
2. EncryptionKey / EncryptedNote — hash-based stream cipher for notes at rest
3. ExitNote / ExitTerms — the private record and its fixed binary layout
4. ProofGenerator / ProofVerifier — Fiat-Shamir proof plus one-time nullifier

Only the commitment and the proof ever leave the device.

Usage:
    from voile import ExitNote, Standard, ProofGenerator, ProofVerifier
    note = ExitNote.new(1000, owner, Standard())
    proof = ProofGenerator("voile_mainnet").generate(note, owner_secret)
    ProofVerifier("voile_mainnet").verify_and_mark(proof)
"""

from voile.errors import (
    VoileError,
    InvalidCommitment,
    EncryptionError,
    DecryptionError,
    InvalidExitNote,
    ProofGenerationError,
    ProofVerificationFailed,
    InvalidKey,
)
from voile.commitment import Commitment
from voile.encryption import EncryptionKey, EncryptedNote
from voile.exit_note import ExitNote, ExitTerms, Immediate, Standard, Delayed, Custom
from voile.nullifiers import NullifierStore, InMemoryNullifierStore
from voile.proof import ExitProof, ProofGenerator, ProofVerifier, DEFAULT_DOMAIN
from voile.config import VoileConfig

__version__ = "0.1.0"
__all__ = [
    "VoileError",
    "InvalidCommitment",
    "EncryptionError",
    "DecryptionError",
    "InvalidExitNote",
    "ProofGenerationError",
    "ProofVerificationFailed",
    "InvalidKey",
    "Commitment",
    "EncryptionKey",
    "EncryptedNote",
    "ExitNote",
    "ExitTerms",
    "Immediate",
    "Standard",
    "Delayed",
    "Custom",
    "NullifierStore",
    "InMemoryNullifierStore",
    "ExitProof",
    "ProofGenerator",
    "ProofVerifier",
    "DEFAULT_DOMAIN",
    "VoileConfig",
]
