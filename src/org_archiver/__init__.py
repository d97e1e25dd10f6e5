"""Organization Archiver - moves an organization's Firestore documents into an archive project."""

__version__ = "0.1.0"

__all__ = [
    "Archiver",
    "BatchPartitioner",
    "DualSinkCommitCoordinator",
    "FirestoreManager",
    "PreflightProber",
]
