"""
Error taxonomy for quotesync.

Adapters raise these; the sync scheduler turns them into notifications
instead of letting them escape a cycle.
"""


class QuoteSyncError(Exception):
    """Base class for all quotesync errors."""


class ValidationError(QuoteSyncError):
    """Bad user input (empty text or category)."""


class StorageError(QuoteSyncError):
    """The durable store rejected a read or write."""


class NetworkError(QuoteSyncError):
    """The remote was unreachable or returned a bad response."""


class ParseError(QuoteSyncError):
    """An import file or durable snapshot could not be parsed."""


class StaleSnapshotError(QuoteSyncError):
    """The collection changed after a sync cycle took its snapshot."""
