"""
Voile Errors
Typed failure kinds for every fallible operation in the protocol.

Every malformed input — short buffers, unknown tags, bad hex, forged or
replayed proofs — surfaces as one of these. Nothing in the library crashes
on attacker-supplied bytes with an untyped exception.
"""


class VoileError(ValueError):
    """Base class for all Voile protocol errors."""

    prefix = "Voile error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"{self.prefix}: {message}")


class InvalidCommitment(VoileError):
    """Commitment bytes or hex are malformed."""
    prefix = "Invalid commitment"


class EncryptionError(VoileError):
    """Encryption could not be performed."""
    prefix = "Encryption error"


class DecryptionError(VoileError):
    """Encrypted-note envelope is malformed (e.g. truncated counter)."""
    prefix = "Decryption error"


class InvalidExitNote(VoileError):
    """Exit note or exit terms bytes are malformed."""
    prefix = "Invalid exit note"


class ProofGenerationError(VoileError):
    """The prover was given inputs it cannot prove over."""
    prefix = "Proof generation error"


class ProofVerificationFailed(VoileError):
    """A proof is malformed, forged, from another domain, or already spent."""
    prefix = "Proof verification failed"


class InvalidKey(VoileError):
    """Key material has the wrong length or type."""
    prefix = "Invalid key"
