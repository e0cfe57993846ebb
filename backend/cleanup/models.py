"""
Duplicate Account Cleanup - Run Data Types

Transient values that exist only for the duration of a cleanup run.
"""

import uuid
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Tuple


class RunState(str, Enum):
    """Coordinator lifecycle states"""
    IDLE = "idle"
    CONNECTED = "connected"
    TRANSACTIONS_OPEN = "transactions_open"
    PROCESSING = "processing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    DONE = "done"


class DependentKind(str, Enum):
    """Profile-scoped assignment tables, deleted before their profile"""
    AGENCY = "agency_assignments"
    DIVISION = "division_assignments"
    SECTION = "section_assignments"


@dataclass(frozen=True)
class DuplicateGroup:
    """Identity keys sharing one email, in ascending key order."""
    email: str
    identity_keys: Tuple[uuid.UUID, ...]

    @property
    def size(self) -> int:
        return len(self.identity_keys)


@dataclass(frozen=True)
class ProfileMatch:
    """A profile row paired with the identity key it references."""
    profile_id: int
    subject_ref: uuid.UUID


@dataclass(frozen=True)
class ResolutionPlan:
    """What survives and what is removed for one duplicate group."""
    group: DuplicateGroup
    canonical: ProfileMatch
    profiles_to_delete: Tuple[ProfileMatch, ...]
    identities_to_delete: Tuple[uuid.UUID, ...]

    @property
    def kept_identity(self) -> uuid.UUID:
        return self.canonical.subject_ref


@dataclass(frozen=True)
class CleanupTotals:
    """
    Immutable run counters.

    The cascade step returns one of these per group and the coordinator folds
    them with ``+``.
    """
    groups_processed: int = 0
    agency_assignments_deleted: int = 0
    division_assignments_deleted: int = 0
    section_assignments_deleted: int = 0
    profiles_deleted: int = 0
    identities_deleted: int = 0
    identities_kept: int = 0

    def __add__(self, other: "CleanupTotals") -> "CleanupTotals":
        if not isinstance(other, CleanupTotals):
            return NotImplemented
        return CleanupTotals(**{
            f.name: getattr(self, f.name) + getattr(other, f.name)
            for f in fields(self)
        })

    @property
    def dependents_deleted(self) -> int:
        return (
            self.agency_assignments_deleted
            + self.division_assignments_deleted
            + self.section_assignments_deleted
        )

    @property
    def has_deletions(self) -> bool:
        return (self.dependents_deleted + self.profiles_deleted + self.identities_deleted) > 0

    @classmethod
    def for_dependent(cls, kind: DependentKind, count: int) -> "CleanupTotals":
        if kind is DependentKind.AGENCY:
            return cls(agency_assignments_deleted=count)
        if kind is DependentKind.DIVISION:
            return cls(division_assignments_deleted=count)
        return cls(section_assignments_deleted=count)

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class CleanupResult:
    """Outcome of a completed run"""
    run_id: str
    outcome: RunState
    totals: CleanupTotals
    groups_found: int = 0
    groups_skipped: int = 0
    dry_run: bool = False
    skipped_emails: List[str] = field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.outcome is RunState.COMMITTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "outcome": self.outcome.value,
            "totals": self.totals.to_dict(),
            "groups_found": self.groups_found,
            "groups_skipped": self.groups_skipped,
            "dry_run": self.dry_run,
            "skipped_emails": self.skipped_emails,
        }
