"""
Cascade Executor

Carries out a ResolutionPlan against both stores in dependency order:

1. Assignment rows (agency, division, section) of every non-canonical profile
2. The non-canonical profile rows
3. The surplus identity rows

Each statement deletes by exact key equality. Nothing is committed here;
the coordinator owns both transactions.
"""

import logging
from typing import Dict, Type

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from database.connection import StoreAccessor
from database.models import (
    AgencyAssignmentDB,
    DivisionAssignmentDB,
    IdentityDB,
    ProfileDB,
    ProfileBase,
    SectionAssignmentDB,
)

from .audit import AuditSink
from .errors import DeleteError
from .models import CleanupTotals, DependentKind, ResolutionPlan

logger = logging.getLogger(__name__)

DEPENDENT_MODELS: Dict[DependentKind, Type[ProfileBase]] = {
    DependentKind.AGENCY: AgencyAssignmentDB,
    DependentKind.DIVISION: DivisionAssignmentDB,
    DependentKind.SECTION: SectionAssignmentDB,
}

# Deletion order for dependents of one profile
DEPENDENT_ORDER = (DependentKind.AGENCY, DependentKind.DIVISION, DependentKind.SECTION)


class CascadeExecutor:
    """Deletes the non-canonical records of one duplicate group."""

    def __init__(
        self,
        identity_store: StoreAccessor,
        profile_store: StoreAccessor,
        audit: AuditSink
    ):
        self.identity_store = identity_store
        self.profile_store = profile_store
        self.audit = audit

    async def execute(self, plan: ResolutionPlan) -> CleanupTotals:
        """
        Apply a plan and return the counts for this group.

        Raises:
            DeleteError: If any delete fails; the caller must roll back
        """
        totals = CleanupTotals()

        for profile in plan.profiles_to_delete:
            for kind in DEPENDENT_ORDER:
                self.audit.emit(f"Deleting {kind.value} records for user_id={profile.profile_id}")
                count = await self.delete_dependents(kind, profile.profile_id)
                totals = totals + CleanupTotals.for_dependent(kind, count)

        for profile in plan.profiles_to_delete:
            self.audit.emit(
                f"Deleting profile record: id={profile.profile_id}, subject_ref={profile.subject_ref}"
            )
            count = await self.delete_profile(profile.profile_id)
            totals = totals + CleanupTotals(profiles_deleted=count)

        for identity_key in plan.identities_to_delete:
            self.audit.emit(f"Deleting identity record: id={identity_key}")
            count = await self.delete_identity(identity_key)
            totals = totals + CleanupTotals(identities_deleted=count)

        self.audit.emit(f"Kept identity record: id={plan.kept_identity}")
        return totals + CleanupTotals(groups_processed=1, identities_kept=1)

    async def delete_dependents(self, kind: DependentKind, profile_id: int) -> int:
        model = DEPENDENT_MODELS[kind]
        count = await self._delete(
            self.profile_store,
            kind.value,
            profile_id,
            delete(model).where(model.user_id == profile_id)
        )
        self.audit.emit(f"Deleted {count} {kind.value} record(s) for user_id={profile_id}")
        return count

    async def delete_profile(self, profile_id: int) -> int:
        count = await self._delete(
            self.profile_store,
            ProfileDB.__tablename__,
            profile_id,
            delete(ProfileDB).where(ProfileDB.id == profile_id)
        )
        self.audit.emit(f"Deleted {count} profile record(s) with id={profile_id}")
        return count

    async def delete_identity(self, identity_key) -> int:
        count = await self._delete(
            self.identity_store,
            IdentityDB.__tablename__,
            identity_key,
            delete(IdentityDB).where(IdentityDB.id == identity_key)
        )
        self.audit.emit(f"Deleted {count} identity record(s) with id={identity_key}")
        return count

    async def _delete(self, store: StoreAccessor, table: str, key, statement) -> int:
        try:
            return await store.execute(statement)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Delete from {table} failed for {key}: {e}")
            raise DeleteError(store.name, table, key, str(e)) from e
