"""
Duplicate Account Cleanup - Error Taxonomy

Every failure raised by the cleanup run derives from CleanupError so the CLI
can map it to a non-zero exit code.
"""

from typing import Iterable, Optional


class CleanupError(Exception):
    """Base exception for cleanup run errors"""
    pass


class ConfigurationError(CleanupError):
    """Raised when connection settings are missing or invalid"""
    pass


class StoreConnectionError(CleanupError):
    """Raised when a store session cannot be opened"""

    def __init__(self, store: str, message: str):
        self.store = store
        super().__init__(f"[{store}] {message}")


class QueryError(CleanupError):
    """Raised when a read against a store fails"""

    def __init__(self, store: str, message: str):
        self.store = store
        super().__init__(f"[{store}] {message}")


class DeleteError(CleanupError):
    """Raised when a delete statement fails"""

    def __init__(self, store: str, table: str, key: object, message: str):
        self.store = store
        self.table = table
        self.key = key
        super().__init__(f"[{store}] delete from {table} ({key}) failed: {message}")


class DataIntegrityError(CleanupError):
    """Raised when the canonical profile references no identity of its group"""
    pass


class CommitError(CleanupError):
    """
    Raised when a commit fails after all deletes succeeded.

    The stores are not coordinated by a transaction manager, so a store named
    in committed_stores has already made its deletions permanent.
    """

    def __init__(self, store: str, message: str, committed_stores: Optional[Iterable[str]] = None):
        self.store = store
        self.committed_stores = list(committed_stores or [])
        committed = ", ".join(self.committed_stores) or "none"
        super().__init__(
            f"[{store}] commit failed: {message} (already committed: {committed})"
        )


class RollbackError(CleanupError):
    """Raised when a rollback fails; logged and never allowed to mask the original error"""

    def __init__(self, store: str, message: str):
        self.store = store
        super().__init__(f"[{store}] rollback failed: {message}")
