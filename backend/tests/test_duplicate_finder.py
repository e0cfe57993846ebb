"""
Unit Tests for the Duplicate Finder

Tests:
- Grouping identity rows by email
- Exclusion of null/blank emails and singletons
- Deterministic ordering of groups and keys
- Audit lines and QueryError on read failure

Run with: pytest tests/test_duplicate_finder.py -v
"""

import uuid
import pytest
from unittest.mock import AsyncMock

from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from cleanup import DuplicateFinder, MemoryAuditSink, QueryError, group_duplicate_emails
from cleanup.finder import build_duplicate_query


def key(n: int) -> uuid.UUID:
    return uuid.UUID(int=n)


class TestGroupDuplicateEmails:
    """Test the pure grouping step."""

    def test_groups_only_shared_emails(self):
        rows = [
            (key(1), "a@example.com"),
            (key(2), "a@example.com"),
            (key(3), "solo@example.com"),
        ]

        groups = group_duplicate_emails(rows)

        assert list(groups) == ["a@example.com"]
        assert groups["a@example.com"].identity_keys == (key(1), key(2))

    def test_null_and_blank_emails_never_group(self):
        rows = [
            (key(1), None),
            (key(2), None),
            (key(3), ""),
            (key(4), ""),
            (key(5), "real@example.com"),
            (key(6), "real@example.com"),
        ]

        groups = group_duplicate_emails(rows)

        assert list(groups) == ["real@example.com"]
        for email, group in groups.items():
            assert email
            assert group.size >= 2

    def test_keys_sorted_ascending_within_group(self):
        rows = [
            (key(30), "dup@example.com"),
            (key(10), "dup@example.com"),
            (key(20), "dup@example.com"),
        ]

        groups = group_duplicate_emails(rows)

        assert groups["dup@example.com"].identity_keys == (key(10), key(20), key(30))

    def test_groups_ordered_by_email(self):
        rows = [
            (key(1), "zed@example.com"),
            (key(2), "zed@example.com"),
            (key(3), "amy@example.com"),
            (key(4), "amy@example.com"),
            (key(5), "mia@example.com"),
            (key(6), "mia@example.com"),
        ]

        groups = group_duplicate_emails(rows)

        assert list(groups) == ["amy@example.com", "mia@example.com", "zed@example.com"]

    def test_email_match_is_exact(self):
        rows = [
            (key(1), "Case@example.com"),
            (key(2), "case@example.com"),
        ]

        assert group_duplicate_emails(rows) == {}

    def test_empty_input(self):
        assert group_duplicate_emails([]) == {}


class TestDuplicateQuery:
    """Test the SQL built for the identity scan."""

    def test_query_groups_and_filters(self):
        sql = str(build_duplicate_query().compile(dialect=postgresql.dialect()))

        assert "FROM identities" in sql
        assert "GROUP BY identities.email" in sql
        assert "HAVING count(identities.id) >" in sql
        assert "identities.email IS NOT NULL" in sql
        assert "ORDER BY identities.email, identities.id" in sql


class TestDuplicateFinder:
    """Test DuplicateFinder against a mocked store session."""

    @pytest.fixture
    def mock_store(self):
        store = AsyncMock()
        store.name = "identity"
        store.fetch_all = AsyncMock()
        return store

    @pytest.mark.asyncio
    async def test_find_returns_groups_and_audits(self, mock_store):
        mock_store.fetch_all.return_value = [
            (key(2), "x@x.com"),
            (key(1), "x@x.com"),
            (key(3), "y@y.com"),
            (key(4), "y@y.com"),
            (key(5), "y@y.com"),
        ]
        audit = MemoryAuditSink()

        groups = await DuplicateFinder(mock_store, audit).find()

        assert groups["x@x.com"].identity_keys == (key(1), key(2))
        assert groups["y@y.com"].size == 3
        assert "Duplicate email 'x@x.com': 2 records" in audit.lines
        assert "Duplicate email 'y@y.com': 3 records" in audit.lines
        assert "Found 2 emails with duplicates" in audit.lines
        mock_store.fetch_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_find_nothing(self, mock_store):
        mock_store.fetch_all.return_value = []
        audit = MemoryAuditSink()

        groups = await DuplicateFinder(mock_store, audit).find()

        assert groups == {}
        assert audit.lines == ["Found 0 emails with duplicates"]

    @pytest.mark.asyncio
    async def test_read_failure_raises_query_error(self, mock_store):
        mock_store.fetch_all.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))

        with pytest.raises(QueryError) as exc_info:
            await DuplicateFinder(mock_store, MemoryAuditSink()).find()

        assert exc_info.value.store == "identity"
        assert "connection lost" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_dropped_connection_raises_query_error(self, mock_store):
        mock_store.fetch_all.side_effect = ConnectionResetError("connection reset by peer")

        with pytest.raises(QueryError) as exc_info:
            await DuplicateFinder(mock_store, MemoryAuditSink()).find()

        assert exc_info.value.store == "identity"
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)
