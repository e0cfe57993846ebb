"""
Cross-Store Resolver

Maps identity keys from the identity store onto profile rows in the
profile store.
"""

import logging
import uuid
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from database.connection import StoreAccessor
from database.models import ProfileDB

from .errors import QueryError
from .models import ProfileMatch

logger = logging.getLogger(__name__)


class CrossStoreResolver:
    """Looks up the profiles referencing a set of identity keys."""

    def __init__(self, store: StoreAccessor):
        self.store = store

    async def resolve(self, identity_keys: Iterable[uuid.UUID]) -> List[ProfileMatch]:
        """
        Return every profile whose subject_ref is one of identity_keys,
        ordered by ascending profile id.

        An empty result means the group has no profile-side records.
        """
        keys = list(dict.fromkeys(identity_keys))
        if not keys:
            return []

        # in_() renders one bound parameter per key
        statement = (
            select(ProfileDB.id, ProfileDB.subject_ref)
            .where(ProfileDB.subject_ref.in_(keys))
            .order_by(ProfileDB.id)
        )
        try:
            rows = await self.store.fetch_all(statement)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Profile lookup failed for {len(keys)} identity keys: {e}")
            raise QueryError(self.store.name, f"profile lookup failed: {e}") from e

        matches = [ProfileMatch(profile_id=int(row[0]), subject_ref=row[1]) for row in rows]
        matches.sort(key=lambda m: m.profile_id)
        return matches
