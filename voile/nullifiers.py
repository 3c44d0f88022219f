"""
Nullifier Stores
Where a verifier records which nullifiers have already been spent.

Every real deployment needs storage that survives restarts and is
consistent across verifier replicas. That storage is an external
collaborator: it implements NullifierStore, and the verifier only ever
calls contains() and insert().

The in-memory store here is the in-process cache used by default and in
tests.
"""

import threading
from abc import ABC, abstractmethod


class NullifierStore(ABC):
    """Abstract base class for used-nullifier sets."""

    @abstractmethod
    def contains(self, nullifier: bytes) -> bool:
        """Return True if the nullifier has already been spent."""

    @abstractmethod
    def insert(self, nullifier: bytes) -> None:
        """
        Record a nullifier as spent.

        Must be idempotent: inserting an already-spent nullifier is a no-op.
        """

    @abstractmethod
    def __len__(self) -> int:
        """Number of spent nullifiers recorded."""

    def __contains__(self, nullifier: bytes) -> bool:
        return self.contains(nullifier)


class InMemoryNullifierStore(NullifierStore):
    """
    Process-local nullifier set.

    Thread-safe for individual calls. Check-and-set atomicity across
    contains() + insert() is provided by ProofVerifier.verify_and_mark,
    not by the store.

    Args:
        initial: Nullifiers already known to be spent (e.g. replayed from
            a durable log at startup).
    """

    def __init__(self, initial=None):
        self._lock = threading.Lock()
        self._used: set[bytes] = {bytes(n) for n in (initial or ())}

    def contains(self, nullifier: bytes) -> bool:
        with self._lock:
            return bytes(nullifier) in self._used

    def insert(self, nullifier: bytes) -> None:
        with self._lock:
            self._used.add(bytes(nullifier))

    def __len__(self) -> int:
        with self._lock:
            return len(self._used)

    def snapshot(self) -> frozenset[bytes]:
        """Copy of the spent set, for persisting to a durable store."""
        with self._lock:
            return frozenset(self._used)
