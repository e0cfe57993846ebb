"""
Shared fixtures for cleanup tests.

FakeStore stands in for database.connection.StoreAccessor: it keeps
committed rows and a transaction working copy in memory and interprets the
SQLAlchemy statements the cleanup components build.
"""

import copy
import uuid
from typing import Any, Dict, List, Optional, Tuple

import pytest
from sqlalchemy.exc import InvalidRequestError, OperationalError

from cleanup import MemoryAuditSink


def db_error(message: str = "boom") -> OperationalError:
    return OperationalError("statement", {}, Exception(message))


class FakeStore:
    """In-memory store with one transaction and injectable failures."""

    def __init__(self, name: str, tables: Dict[str, List[Dict[str, Any]]], op_log: Optional[List] = None):
        self.name = name
        self.committed = copy.deepcopy(tables)
        self.working: Optional[Dict[str, List[Dict[str, Any]]]] = None
        self.op_log = op_log if op_log is not None else []
        self.is_open = False
        self.closed = False

        self.fail_open = False
        self.fail_begin = False
        self.fail_select = False
        self.fail_commit = False
        self.fail_rollback = False
        self.fail_delete_on: Optional[Tuple[str, Any]] = None

        self.commits = 0
        self.rollbacks = 0

    @property
    def in_transaction(self) -> bool:
        return self.working is not None

    async def open(self) -> None:
        if self.fail_open:
            raise db_error(f"{self.name} unreachable")
        self.is_open = True

    async def begin(self) -> None:
        if self.fail_begin:
            raise db_error(f"{self.name} cannot begin")
        self.working = copy.deepcopy(self.committed)
        self.op_log.append(("begin", self.name))

    async def commit(self) -> None:
        if self.working is None:
            raise InvalidRequestError("no active transaction")
        if self.fail_commit:
            raise db_error(f"{self.name} commit failed")
        self.committed = self.working
        self.working = None
        self.commits += 1
        self.op_log.append(("commit", self.name))

    async def rollback(self) -> None:
        if self.fail_rollback:
            raise db_error(f"{self.name} rollback failed")
        self.working = None
        self.rollbacks += 1
        self.op_log.append(("rollback", self.name))

    async def close(self) -> None:
        self.working = None
        self.is_open = False
        self.closed = True

    async def fetch_all(self, statement) -> List[Tuple]:
        if self.fail_select:
            raise db_error(f"{self.name} select failed")
        table = statement.get_final_froms()[0].name
        rows = self._rows(table)
        self.op_log.append(("select", table))

        if table == "identities":
            return [(row["id"], row["email"]) for row in rows]

        keys = statement.whereclause.right.value
        return [
            (row["id"], row["subject_ref"])
            for row in sorted(rows, key=lambda r: r["id"])
            if row["subject_ref"] in keys
        ]

    async def execute(self, statement) -> int:
        table = statement.table.name
        column = statement.whereclause.left.name
        value = statement.whereclause.right.value
        if self.fail_delete_on == (table, value):
            raise db_error(f"delete from {table} failed")

        rows = self._rows(table)
        kept = [row for row in rows if row[column] != value]
        self.working[table] = kept
        self.op_log.append(("delete", table, value))
        return len(rows) - len(kept)

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        source = self.working if self.working is not None else self.committed
        return source.setdefault(table, [])

    def keys(self, table: str) -> List[Any]:
        """Committed primary keys of a table"""
        return sorted(
            (row["id"] for row in self.committed.get(table, [])),
            key=str
        )

    def count(self, table: str) -> int:
        return len(self.committed.get(table, []))


def make_key(n: int) -> uuid.UUID:
    """Deterministic identity key; ordering follows n."""
    return uuid.UUID(int=n)


@pytest.fixture
def audit():
    return MemoryAuditSink()


@pytest.fixture
def op_log():
    return []


@pytest.fixture
def example_keys():
    """Identity keys A, B, C of the reference scenario"""
    return {"A": make_key(1), "B": make_key(2), "C": make_key(3)}


@pytest.fixture
def identity_store(example_keys, op_log):
    """x@x.com is shared by A and B; C is unique."""
    return FakeStore("identity", {
        "identities": [
            {"id": example_keys["A"], "email": "x@x.com"},
            {"id": example_keys["B"], "email": "x@x.com"},
            {"id": example_keys["C"], "email": "y@y.com"},
        ]
    }, op_log)


@pytest.fixture
def profile_store(example_keys, op_log):
    """Profiles 5 -> A, 2 -> B, 9 -> C; profile 5 has two agency assignments."""
    return FakeStore("profile", {
        "profiles": [
            {"id": 5, "subject_ref": example_keys["A"]},
            {"id": 2, "subject_ref": example_keys["B"]},
            {"id": 9, "subject_ref": example_keys["C"]},
        ],
        "agency_assignments": [
            {"id": 1, "user_id": 5},
            {"id": 2, "user_id": 5},
            {"id": 3, "user_id": 2},
        ],
        "division_assignments": [
            {"id": 1, "user_id": 9},
        ],
        "section_assignments": [],
    }, op_log)
