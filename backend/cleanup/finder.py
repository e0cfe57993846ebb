"""
Duplicate Finder

Scans the identity store for identities that share an email address.
"""

import logging
import uuid
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from database.connection import StoreAccessor
from database.models import IdentityDB

from .audit import AuditSink
from .errors import QueryError
from .models import DuplicateGroup

logger = logging.getLogger(__name__)


def build_duplicate_query():
    """
    Identity rows whose email occurs more than once.

    Null and blank emails never take part in grouping.
    """
    usable_email = (IdentityDB.email.isnot(None), IdentityDB.email != "")
    duplicated = (
        select(IdentityDB.email)
        .where(*usable_email)
        .group_by(IdentityDB.email)
        .having(func.count(IdentityDB.id) > 1)
    )
    return (
        select(IdentityDB.id, IdentityDB.email)
        .where(*usable_email)
        .where(IdentityDB.email.in_(duplicated))
        .order_by(IdentityDB.email, IdentityDB.id)
    )


def group_duplicate_emails(
    rows: Iterable[Tuple[uuid.UUID, Optional[str]]]
) -> Dict[str, DuplicateGroup]:
    """
    Group (identity key, email) rows by exact email.

    Returns only emails with two or more identities, keyed and ordered by
    email, each group's keys in ascending order.
    """
    by_email: Dict[str, List[uuid.UUID]] = defaultdict(list)
    for key, email in rows:
        if email is None or email == "":
            continue
        by_email[email].append(key)

    return {
        email: DuplicateGroup(email=email, identity_keys=tuple(sorted(keys)))
        for email, keys in sorted(by_email.items())
        if len(keys) > 1
    }


class DuplicateFinder:
    """Finds duplicate-email groups within the identity store session."""

    def __init__(self, store: StoreAccessor, audit: AuditSink):
        self.store = store
        self.audit = audit

    async def find(self) -> Dict[str, DuplicateGroup]:
        try:
            rows = await self.store.fetch_all(build_duplicate_query())
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Duplicate email scan failed: {e}")
            raise QueryError(self.store.name, f"duplicate email scan failed: {e}") from e

        groups = group_duplicate_emails((row[0], row[1]) for row in rows)
        for group in groups.values():
            self.audit.emit(f"Duplicate email '{group.email}': {group.size} records")
        self.audit.emit(f"Found {len(groups)} emails with duplicates")
        return groups
