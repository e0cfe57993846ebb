"""
Duplicate Account Cleanup Module

Merges identities that share an email address across the identity store
and the profile store.

Features:
- Duplicate email detection in the identity store
- Cross-store resolution of identity keys to profiles
- Canonical profile selection (lowest profile id)
- Ordered cascade deletion of assignments, profiles and identities
- Saga-style commit/rollback of both store transactions
"""

from .errors import (
    CleanupError,
    ConfigurationError,
    StoreConnectionError,
    QueryError,
    DeleteError,
    DataIntegrityError,
    CommitError,
    RollbackError,
)
from .models import (
    RunState,
    DependentKind,
    DuplicateGroup,
    ProfileMatch,
    ResolutionPlan,
    CleanupTotals,
    CleanupResult,
)
from .audit import AuditSink, LoggingAuditSink, MemoryAuditSink
from .finder import DuplicateFinder, group_duplicate_emails
from .resolver import CrossStoreResolver
from .planner import plan_merge, select_canonical
from .cascade import CascadeExecutor
from .coordinator import CleanupCoordinator

__all__ = [
    # Errors
    'CleanupError', 'ConfigurationError', 'StoreConnectionError', 'QueryError',
    'DeleteError', 'DataIntegrityError', 'CommitError', 'RollbackError',
    # Run data
    'RunState', 'DependentKind', 'DuplicateGroup', 'ProfileMatch',
    'ResolutionPlan', 'CleanupTotals', 'CleanupResult',
    # Components
    'AuditSink', 'LoggingAuditSink', 'MemoryAuditSink',
    'DuplicateFinder', 'group_duplicate_emails',
    'CrossStoreResolver',
    'plan_merge', 'select_canonical',
    'CascadeExecutor',
    'CleanupCoordinator',
]
