"""
Voile — Basic Usage Example

Walks an exit note from the user's device to a verifier:
build the note, publish only its commitment, keep an encrypted copy,
prove ownership, and spend it exactly once.
"""

import os
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from voile import (
    EncryptionKey, EncryptedNote, ExitNote, ExitProof, Delayed,
    ProofVerificationFailed, VoileConfig,
)


def main():
    config = VoileConfig.from_env()
    config.configure_logging()

    # Held by the user's key custodian, never published
    owner = os.urandom(32)
    owner_secret = os.urandom(32)
    key = EncryptionKey.generate()

    print("=" * 50)
    print("  Voile — Private Exit Note")
    print(f"  Domain: {config.domain}")
    print("=" * 50)

    # On the user's device
    note = ExitNote.new(amount=2_500_000, owner=owner, terms=Delayed(blocks=7200))
    commitment = note.commitment()
    stored = note.encrypt(key).to_bytes()

    print(f"\nCommitment (public):  {commitment.to_hex()}")
    print(f"Encrypted note (private storage): {len(stored)} bytes")

    # Later, reload and prove
    restored = ExitNote.decrypt(EncryptedNote.from_bytes(stored), key)
    proof = config.generator().generate(restored, owner_secret)
    proof_hex = proof.to_hex()
    print(f"Proof (public): {proof_hex[:64]}... ({len(proof_hex)} hex chars)")

    # On the verifier
    verifier = config.verifier()
    received = ExitProof.from_hex(proof_hex)
    verifier.verify_and_mark(received)
    print("\n  [PASS] Proof verified, nullifier consumed")

    print("\nReplaying the same proof...")
    try:
        verifier.verify(received)
        print("  ERROR: Should have failed!")
    except ProofVerificationFailed as e:
        print(f"  Correctly rejected — {e}")


if __name__ == "__main__":
    main()
