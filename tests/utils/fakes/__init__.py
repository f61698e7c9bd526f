"""In-memory doubles for Firestore, the identity provider and notifications."""

from .firestore import FakeFirestoreClient, FakeTransactionRunner, ReadAfterWriteError
from .identity import FakeIdentityProvider, RecordingNotifier

__all__ = [
    "FakeFirestoreClient",
    "FakeIdentityProvider",
    "FakeTransactionRunner",
    "ReadAfterWriteError",
    "RecordingNotifier",
]
