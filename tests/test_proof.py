"""
Tests for exit proofs: generation, verification, domains and nullifiers.
"""

import os
import sys
import threading
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from voile.commitment import Commitment
from voile.errors import ProofGenerationError, ProofVerificationFailed
from voile.exit_note import ExitNote, Standard
from voile.hashing import keccak256
from voile.nullifiers import InMemoryNullifierStore, NullifierStore
from voile.proof import (
    ExitProof, ProofGenerator, ProofVerifier, DEFAULT_DOMAIN, PROOF_SIZE, derive_domain,
)


OWNER = bytes([42] * 32)
SECRET = bytes([123] * 32)


def create_test_note() -> ExitNote:
    return ExitNote.new(1000, OWNER, Standard())


def expect_rejected(verifier: ProofVerifier, proof: ExitProof, fragment: str = ""):
    try:
        verifier.verify(proof)
    except ProofVerificationFailed as e:
        assert fragment in str(e), f"{fragment!r} not in {str(e)!r}"
        return
    raise AssertionError("proof should have been rejected")


def test_end_to_end():
    """Test generate → verify on the mainnet domain."""
    print("Testing end-to-end proof...", end=" ")
    note = create_test_note()
    generator = ProofGenerator("voile_mainnet")
    proof = generator.generate(note, SECRET)

    verifier = ProofVerifier("voile_mainnet")
    assert verifier.verify(proof) is None
    assert len(proof.to_hex()) == 320
    assert proof.commitment == note.commitment()
    print("PASS")


def test_transcript_formulas():
    """Test challenge, tag and nullifier follow the published hash chain."""
    print("Testing transcript formulas...", end=" ")
    note = create_test_note()
    proof = ProofGenerator(DEFAULT_DOMAIN).generate(note, SECRET)

    d = keccak256(b"voile_proof_domain", b"voile_mainnet")
    assert derive_domain("voile_mainnet") == d

    nullifier = keccak256(b"voile_nullifier", d, note.note_id, SECRET)
    assert proof.nullifier == nullifier

    challenge = keccak256(
        b"voile_challenge", d, proof.commitment.as_bytes(), nullifier, proof.announcement,
    )
    tag = keccak256(
        b"voile_verification_tag", d, proof.response, challenge,
        proof.announcement, proof.commitment.as_bytes(), nullifier,
    )
    assert proof.verification_tag == tag
    print("PASS")


def test_default_domain_is_mainnet():
    """Test default generator/verifier use the mainnet domain."""
    print("Testing default domain...", end=" ")
    proof = ProofGenerator().generate(create_test_note(), SECRET)
    ProofVerifier(b"voile_mainnet").verify(proof)
    ProofVerifier().verify(proof)
    print("PASS")


def test_proof_serialization():
    """Test 160-byte and hex round-trips."""
    print("Testing proof serialization...", end=" ")
    proof = ProofGenerator().generate(create_test_note(), bytes([99] * 32))

    data = proof.to_bytes()
    assert len(data) == PROOF_SIZE == 160
    assert data[0:32] == proof.commitment.as_bytes()
    assert data[32:64] == proof.announcement
    assert data[64:96] == proof.response
    assert data[96:128] == proof.verification_tag
    assert data[128:160] == proof.nullifier

    assert ExitProof.from_bytes(data) == proof
    hex_str = proof.to_hex()
    assert hex_str == hex_str.lower()
    assert ExitProof.from_hex(hex_str) == proof
    ProofVerifier().verify(ExitProof.from_hex(hex_str))
    print("PASS")


def test_proof_from_bytes_wrong_size():
    """Test wrong-size and bad-hex proofs raise ProofVerificationFailed."""
    print("Testing proof size checks...", end=" ")
    for size in (0, 128, 159, 161):
        try:
            ExitProof.from_bytes(bytes(size))
            raise AssertionError(f"should have rejected {size} bytes")
        except ProofVerificationFailed as e:
            assert f"expected 160, got {size}" in str(e)
    for bad in ("xyz", "00" * 159, "g" * 320):
        try:
            ExitProof.from_hex(bad)
            raise AssertionError(f"should have rejected {bad!r}")
        except ProofVerificationFailed:
            pass
    print("PASS")


def test_nullifier_deterministic():
    """Test the same note + secret always yields the same nullifier."""
    print("Testing nullifier determinism...", end=" ")
    note = create_test_note()
    generator = ProofGenerator()
    proof1 = generator.generate(note, SECRET)
    proof2 = generator.generate(note, SECRET)
    assert proof1.nullifier == proof2.nullifier
    # Fresh k: everything else differs
    assert proof1.announcement != proof2.announcement
    assert proof1.response != proof2.response
    assert generator.compute_nullifier(note.note_id, SECRET) == proof1.nullifier
    print("PASS")


def test_nullifier_depends_on_secret_and_domain():
    """Test changing secret or domain changes the nullifier."""
    print("Testing nullifier inputs...", end=" ")
    note = create_test_note()
    base = ProofGenerator().generate(note, bytes([1] * 32))
    other_secret = ProofGenerator().generate(note, bytes([2] * 32))
    other_domain = ProofGenerator("chain_2").generate(note, bytes([1] * 32))
    assert base.nullifier != other_secret.nullifier
    assert base.nullifier != other_domain.nullifier
    print("PASS")


def test_cross_domain_rejected():
    """Test a chain_1 proof fails under a chain_2 verifier."""
    print("Testing cross-domain rejection...", end=" ")
    proof = ProofGenerator("chain_1").generate(create_test_note(), bytes([55] * 32))
    ProofVerifier("chain_1").verify(proof)
    expect_rejected(ProofVerifier("chain_2"), proof, "Verification tag mismatch")
    print("PASS")


def test_double_spend_rejected():
    """Test a consumed nullifier cannot be spent again."""
    print("Testing double-spend...", end=" ")
    note = create_test_note()
    generator = ProofGenerator()
    verifier = ProofVerifier()

    proof = generator.generate(note, SECRET)
    verifier.verify(proof)
    assert not verifier.is_nullifier_used(proof.nullifier)
    verifier.mark_nullifier_used(proof.nullifier)
    assert verifier.is_nullifier_used(proof.nullifier)

    expect_rejected(verifier, proof, "Nullifier already used")
    # A fresh proof for the same note and secret shares the nullifier
    expect_rejected(verifier, generator.generate(note, SECRET), "Nullifier already used")
    # Marking twice is harmless
    verifier.mark_nullifier_used(proof.nullifier)
    assert len(verifier.store) == 1
    print("PASS")


def test_verify_and_mark():
    """Test the atomic verify + consume path."""
    print("Testing verify_and_mark...", end=" ")
    verifier = ProofVerifier()
    proof = ProofGenerator().generate(create_test_note(), SECRET)
    verifier.verify_and_mark(proof)
    assert verifier.is_nullifier_used(proof.nullifier)
    try:
        verifier.verify_and_mark(proof)
        raise AssertionError("second spend should fail")
    except ProofVerificationFailed as e:
        assert "already used" in str(e)
    print("PASS")


def test_concurrent_spends_single_winner():
    """Test that racing verifiers let exactly one spend through."""
    print("Testing concurrent spends...", end=" ")
    verifier = ProofVerifier()
    proof = ProofGenerator().generate(create_test_note(), SECRET)

    results = []
    results_lock = threading.Lock()
    barrier = threading.Barrier(16)

    def spend():
        barrier.wait()
        try:
            verifier.verify_and_mark(proof)
            outcome = "ok"
        except ProofVerificationFailed:
            outcome = "rejected"
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=spend) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert results.count("rejected") == 15
    print("PASS")


def test_tampered_response_rejected():
    """Test flipping a byte inside response breaks the tag."""
    print("Testing tampered response...", end=" ")
    proof = ProofGenerator().generate(create_test_note(), SECRET)
    data = bytearray(proof.to_bytes())
    data[64 + 7] ^= 0x01
    tampered = ExitProof.from_bytes(bytes(data))
    expect_rejected(ProofVerifier(), tampered, "Verification tag mismatch")
    print("PASS")


def test_any_single_byte_flip_rejected():
    """Test no single-byte change to a serialized proof still verifies."""
    print("Testing single-byte tampering...", end=" ")
    proof = ProofGenerator().generate(create_test_note(), SECRET)
    original = proof.to_bytes()
    verifier = ProofVerifier()
    for i in range(PROOF_SIZE):
        data = bytearray(original)
        data[i] ^= 0xFF
        expect_rejected(verifier, ExitProof.from_bytes(bytes(data)))
    verifier.verify(proof)
    print("PASS")


def test_zero_fields_rejected():
    """Test the all-zero structural check on each public field."""
    print("Testing zero fields...", end=" ")
    proof = ProofGenerator().generate(create_test_note(), SECRET)
    verifier = ProofVerifier()
    for name in ("response", "announcement", "nullifier", "verification_tag"):
        fields = {
            "commitment": proof.commitment,
            "announcement": proof.announcement,
            "response": proof.response,
            "verification_tag": proof.verification_tag,
            "nullifier": proof.nullifier,
        }
        fields[name] = bytes(32)
        expect_rejected(verifier, ExitProof(**fields), f"Zero-valued {name}")
    print("PASS")


def test_forged_proof_rejected():
    """Test a proof made of random values is rejected."""
    print("Testing forged proof...", end=" ")
    forged = ExitProof(
        commitment=Commitment.from_bytes(os.urandom(32)),
        announcement=os.urandom(32),
        response=os.urandom(32),
        verification_tag=os.urandom(32),
        nullifier=os.urandom(32),
    )
    expect_rejected(ProofVerifier(), forged, "Verification tag mismatch")
    print("PASS")


def test_generation_input_checks():
    """Test generator rejects malformed secrets and notes."""
    print("Testing generation input checks...", end=" ")
    generator = ProofGenerator()
    note = create_test_note()
    for bad_secret in (b"", bytes(31), bytes(33), "secret"):
        try:
            generator.generate(note, bad_secret)
            raise AssertionError("should have rejected secret")
        except ProofGenerationError:
            pass
    try:
        generator.generate(note.to_bytes(), SECRET)
        raise AssertionError("should have rejected non-note")
    except ProofGenerationError:
        pass
    print("PASS")


def test_verifier_input_checks():
    """Test verifier rejects malformed proofs and nullifiers."""
    print("Testing verifier input checks...", end=" ")
    verifier = ProofVerifier()
    try:
        verifier.verify(b"\x00" * 160)
        raise AssertionError("should have rejected raw bytes")
    except ProofVerificationFailed:
        pass
    for bad in (bytes(16), "nullifier"):
        try:
            verifier.mark_nullifier_used(bad)
            raise AssertionError("should have rejected nullifier")
        except ProofVerificationFailed:
            pass
    try:
        ExitProof(
            commitment=Commitment.from_bytes(os.urandom(32)),
            announcement=os.urandom(31),
            response=os.urandom(32),
            verification_tag=os.urandom(32),
            nullifier=os.urandom(32),
        )
        raise AssertionError("should have rejected short announcement")
    except ProofVerificationFailed:
        pass
    print("PASS")


class RecordingStore(NullifierStore):
    """Store that records calls, standing in for a durable backend."""

    def __init__(self):
        self.spent = set()
        self.calls = []

    def contains(self, nullifier):
        self.calls.append(("contains", nullifier))
        return nullifier in self.spent

    def insert(self, nullifier):
        self.calls.append(("insert", nullifier))
        self.spent.add(nullifier)

    def __len__(self):
        return len(self.spent)


def test_injected_store():
    """Test the verifier only talks to its store through contains/insert."""
    print("Testing injected store...", end=" ")
    store = RecordingStore()
    verifier = ProofVerifier(store=store)
    proof = ProofGenerator().generate(create_test_note(), SECRET)

    verifier.verify_and_mark(proof)
    assert store.calls == [("contains", proof.nullifier), ("insert", proof.nullifier)]

    # A second verifier sharing the store sees the spend
    expect_rejected(ProofVerifier(store=store), proof, "already used")
    print("PASS")


def test_in_memory_store_seeded():
    """Test seeding the in-memory store from a previous snapshot."""
    print("Testing seeded store...", end=" ")
    proof = ProofGenerator().generate(create_test_note(), SECRET)
    first = InMemoryNullifierStore()
    first.insert(proof.nullifier)

    restored = InMemoryNullifierStore(first.snapshot())
    assert proof.nullifier in restored
    assert len(restored) == 1
    expect_rejected(ProofVerifier(store=restored), proof, "already used")
    print("PASS")


def main():
    print("=" * 50)
    print("  Exit Proof Tests")
    print("=" * 50)
    print()

    tests = [
        test_end_to_end,
        test_transcript_formulas,
        test_default_domain_is_mainnet,
        test_proof_serialization,
        test_proof_from_bytes_wrong_size,
        test_nullifier_deterministic,
        test_nullifier_depends_on_secret_and_domain,
        test_cross_domain_rejected,
        test_double_spend_rejected,
        test_verify_and_mark,
        test_concurrent_spends_single_winner,
        test_tampered_response_rejected,
        test_any_single_byte_flip_rejected,
        test_zero_fields_rejected,
        test_forged_proof_rejected,
        test_generation_input_checks,
        test_verifier_input_checks,
        test_injected_store,
        test_in_memory_store_seeded,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"FAIL: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print()
    print(f"Results: {passed} passed, {failed} failed")
    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
