"""
Cleanup Coordinator

Drives a full duplicate-account cleanup across the identity store and the
profile store.

The two stores are independent databases with no shared transaction
manager, so the run is a saga: one transaction per store, every delete
issued inside those transactions, and a commit of both only after every
group succeeded. Any failure before the commit rolls both back. A failure
during the commit itself cannot be undone for a store that already
committed; that case raises CommitError naming the committed stores.

Commit order is profile store first. If the identity commit then fails the
surplus identities are left without profiles, and a re-run removes them.
The opposite order would strand profiles whose identities no longer exist.

Lifecycle:
    IDLE -> CONNECTED -> TRANSACTIONS_OPEN -> PROCESSING
         -> COMMITTED | ROLLED_BACK -> DONE
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from database.connection import StoreAccessor

from .audit import AuditSink, LoggingAuditSink
from .cascade import CascadeExecutor
from .errors import CommitError, RollbackError, StoreConnectionError
from .finder import DuplicateFinder
from .models import (
    CleanupResult,
    CleanupTotals,
    DependentKind,
    DuplicateGroup,
    RunState,
)
from .planner import plan_merge
from .resolver import CrossStoreResolver

logger = logging.getLogger(__name__)


class CleanupCoordinator:
    """
    Orchestrates one cleanup run.

    Each store accessor is owned exclusively by the coordinator for the
    duration of run() and is released when the run ends, whatever the outcome.
    """

    def __init__(
        self,
        identity_store: StoreAccessor,
        profile_store: StoreAccessor,
        audit: Optional[AuditSink] = None,
        dry_run: bool = False,
        run_id: Optional[str] = None
    ):
        self.identity_store = identity_store
        self.profile_store = profile_store
        self.audit = audit or LoggingAuditSink()
        self.dry_run = dry_run
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.state = RunState.IDLE

        self.finder = DuplicateFinder(identity_store, self.audit)
        self.resolver = CrossStoreResolver(profile_store)
        self.executor = CascadeExecutor(identity_store, profile_store, self.audit)

    @property
    def commit_order(self) -> List[StoreAccessor]:
        return [self.profile_store, self.identity_store]

    # ==================== RUN ====================

    async def run(self) -> CleanupResult:
        """
        Execute the cleanup.

        Returns:
            CleanupResult with the outcome and totals

        Raises:
            CleanupError: On any fatal failure, after both transactions were
                rolled back (except for stores named by a CommitError)
        """
        self.audit.emit("=== Duplicate Account Cleanup Started ===")
        self.audit.emit(f"Run: {self.run_id}")
        self.audit.emit(f"Timestamp: {datetime.now(timezone.utc).isoformat()}")
        if self.dry_run:
            self.audit.emit("Dry run: every change will be rolled back at the end")

        try:
            await self._connect()
            await self._begin()
            result = await self._process()
        except Exception as e:
            self.audit.emit(f"FATAL ERROR: {e}")
            raise
        finally:
            await self._release()
            self.state = RunState.DONE

        self.audit.emit("=== Duplicate Account Cleanup Completed Successfully ===")
        return result

    # ==================== LIFECYCLE STEPS ====================

    async def _connect(self) -> None:
        for store in (self.identity_store, self.profile_store):
            try:
                await store.open()
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Could not connect to {store.name} store: {e}")
                raise StoreConnectionError(store.name, f"cannot open session: {e}") from e
        self.state = RunState.CONNECTED
        self.audit.emit("Database connections established")

    async def _begin(self) -> None:
        begun: List[StoreAccessor] = []
        for store in (self.identity_store, self.profile_store):
            try:
                await store.begin()
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Could not begin transaction on {store.name} store: {e}")
                await self._rollback(begun)
                raise StoreConnectionError(store.name, f"cannot begin transaction: {e}") from e
            begun.append(store)
        self.state = RunState.TRANSACTIONS_OPEN
        self.audit.emit("Transactions started")

    async def _process(self) -> CleanupResult:
        self.state = RunState.PROCESSING
        totals = CleanupTotals()
        skipped: List[str] = []

        try:
            groups = await self.finder.find()
            if not groups:
                self.audit.emit("No duplicate emails found. Nothing to clean up.")

            for email in sorted(groups):
                group_totals = await self._process_group(groups[email])
                if group_totals is None:
                    skipped.append(email)
                    continue
                totals = totals + group_totals
        except Exception as e:
            logger.error(f"Cleanup run {self.run_id} failed while processing: {e}")
            self.audit.emit(f"Error during processing: {e}")
            await self._rollback(self.commit_order)
            raise

        self._report_summary(totals, skipped)

        if self.dry_run:
            self.audit.emit("Dry run complete, discarding changes")
            await self._rollback(self.commit_order)
        else:
            await self._commit()

        return CleanupResult(
            run_id=self.run_id,
            outcome=self.state,
            totals=totals,
            groups_found=len(groups),
            groups_skipped=len(skipped),
            dry_run=self.dry_run,
            skipped_emails=skipped,
        )

    async def _process_group(self, group: DuplicateGroup) -> Optional[CleanupTotals]:
        self.audit.emit(f"--- Processing email: {group.email} ---")
        self.audit.emit(
            f"Found {group.size} identity records with this email: "
            f"{', '.join(str(key) for key in group.identity_keys)}"
        )

        matches = await self.resolver.resolve(group.identity_keys)
        self.audit.emit(f"Found {len(matches)} corresponding profile records")
        if not matches:
            self.audit.emit(f"{group.email}: no profile records found, skipping")
            return None

        plan = plan_merge(group, matches)
        self.audit.emit(
            f"Keeping profile record: id={plan.canonical.profile_id}, "
            f"subject_ref={plan.canonical.subject_ref}"
        )
        return await self.executor.execute(plan)

    async def _commit(self) -> None:
        committed: List[str] = []
        for store in self.commit_order:
            try:
                await store.commit()
            except (SQLAlchemyError, OSError) as e:
                error = CommitError(store.name, str(e), committed)
                logger.critical(
                    f"Cleanup run {self.run_id}: {error}. "
                    f"The stores may now be inconsistent with each other."
                )
                self.audit.emit(f"COMMIT FAILED: {error}")
                await self._rollback(s for s in self.commit_order if s.name not in committed)
                raise error from e
            committed.append(store.name)
            self.audit.emit(f"Committed {store.name} store transaction")

        self.state = RunState.COMMITTED
        self.audit.emit("Transactions committed successfully")

    async def _rollback(self, stores: Iterable[StoreAccessor]) -> None:
        """
        Roll back each store independently.

        Rollback failures are logged and suppressed so that the error which
        triggered the rollback is the one that reaches the caller.
        """
        self.audit.emit("Rolling back transactions...")
        clean = True
        for store in stores:
            try:
                await store.rollback()
            except Exception as e:
                clean = False
                error = RollbackError(store.name, str(e))
                logger.error(str(error))
                self.audit.emit(f"Error during rollback: {error}")
        self.state = RunState.ROLLED_BACK
        if clean:
            self.audit.emit("Transactions rolled back successfully")

    async def _release(self) -> None:
        for store in (self.identity_store, self.profile_store):
            try:
                await store.close()
            except Exception as e:
                logger.warning(f"Failed to release {store.name} store session: {e}")

    # ==================== REPORTING ====================

    def _report_summary(self, totals: CleanupTotals, skipped: List[str]) -> None:
        self.audit.emit("=== SUMMARY ===")
        self.audit.emit(f"Total email groups processed: {totals.groups_processed}")
        self.audit.emit(f"Total email groups skipped (no profile records): {len(skipped)}")
        for kind in DependentKind:
            count = getattr(totals, f"{kind.value}_deleted")
            self.audit.emit(f"Total {kind.value} records deleted: {count}")
        self.audit.emit(f"Total profile records deleted: {totals.profiles_deleted}")
        self.audit.emit(f"Total identity records deleted: {totals.identities_deleted}")
        self.audit.emit(f"Total identity records kept: {totals.identities_kept}")
