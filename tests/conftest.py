"""
Shared fixtures: an in-memory stand-in for the Supabase PostgREST client and
a TestClient wired to it with a pinned clock and a fresh SSE broker.
"""

import copy
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from app.core.clock import FixedClock, get_clock
from app.core.dependencies import get_current_user_id, get_optional_user
from app.core.exceptions import Unauthorized
from app.database.supabase_client import get_supabase
from app.main import app
from app.modules.realtime.broker import SseBroker, get_broker

NOW = datetime(2024, 6, 15, 12, 0, 30, tzinfo=timezone.utc)


def _coerce(value: Any) -> Any:
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "in":
        return left in right
    left, right = _coerce(left), _coerce(right)
    if op == "eq":
        return left == right
    if op == "neq":
        return left != right
    if left is None or right is None:
        return False
    if type(left) != type(right) and not (isinstance(left, (int, float)) and isinstance(right, (int, float))):
        left, right = str(left), str(right)
    return {
        "gt": left > right,
        "gte": left >= right,
        "lt": left < right,
        "lte": left <= right,
    }[op]


class FakeResponse:
    def __init__(self, data: List[dict]):
        self.data = data
        self.count = len(data)


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self._op = "select"
        self._columns = "*"
        self._payload: Any = None
        self._filters: List[tuple] = []
        self._orders: List[tuple] = []
        self._limit: Optional[int] = None
        self._range: Optional[tuple] = None

    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self._columns = columns
        return self

    def insert(self, payload) -> "FakeQuery":
        self._op, self._payload = "insert", payload
        return self

    def update(self, payload: dict) -> "FakeQuery":
        self._op, self._payload = "update", payload
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    def _filter(self, op: str, column: str, value: Any) -> "FakeQuery":
        self._filters.append((op, column, value))
        return self

    def eq(self, column, value):
        return self._filter("eq", column, value)

    def neq(self, column, value):
        return self._filter("neq", column, value)

    def gt(self, column, value):
        return self._filter("gt", column, value)

    def gte(self, column, value):
        return self._filter("gte", column, value)

    def lt(self, column, value):
        return self._filter("lt", column, value)

    def lte(self, column, value):
        return self._filter("lte", column, value)

    def in_(self, column, values):
        return self._filter("in", column, list(values))

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._orders.append((column, desc))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self._range = (start, end)
        return self

    def _matches(self, row: dict) -> bool:
        return all(_compare(op, row.get(column), value) for op, column, value in self._filters)

    def _project(self, row: dict) -> dict:
        if self._columns.strip() == "*":
            return copy.deepcopy(row)
        columns = [c.strip() for c in self._columns.split(",")]
        return {c: copy.deepcopy(row.get(c)) for c in columns}

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table_name, self._op, list(self._filters)))
        if self.db.fail_tables and self.table_name in self.db.fail_tables:
            raise RuntimeError(f"store unavailable: {self.table_name}")
        rows = self.db.tables.setdefault(self.table_name, [])

        if self._op == "insert":
            payloads = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = []
            for payload in payloads:
                row = copy.deepcopy(payload)
                row.setdefault("id", self.db.next_id(self.table_name))
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResponse(inserted)

        matched = [row for row in rows if self._matches(row)]
        if self._op == "update":
            for row in matched:
                row.update(copy.deepcopy(self._payload))
            return FakeResponse([copy.deepcopy(row) for row in matched])
        if self._op == "delete":
            self.db.tables[self.table_name] = [row for row in rows if row not in matched]
            return FakeResponse([copy.deepcopy(row) for row in matched])

        for column, desc in reversed(self._orders):
            matched.sort(key=lambda r: (r.get(column) is None, _coerce(r.get(column))), reverse=desc)
        if self._range is not None:
            matched = matched[self._range[0]:self._range[1] + 1]
        if self._limit is not None:
            matched = matched[:self._limit]
        return FakeResponse([self._project(row) for row in matched])


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.calls: List[tuple] = []
        self.fail_tables: set = set()
        self._ids = itertools.count(1)

    def next_id(self, table: str):
        value = next(self._ids)
        return value if table in ("locations", "hidden_areas") else f"{table[:-1]}-{value}"

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    # Seed helpers

    def add_user(self, user_id: str, username: str, **fields) -> dict:
        row = {
            "id": user_id,
            "username": username,
            "display_name": username.title(),
            "is_timeline_public": False,
            "public_timeline_time_threshold": None,
            "location_time_threshold_minutes": None,
            "time_zone": "UTC",
        }
        row.update(fields)
        self.tables.setdefault("user_profiles", []).append(row)
        return row

    def add_location(self, user_id: str, local_timestamp: datetime, latitude: float = 50.0,
                     longitude: float = 20.0, **fields) -> dict:
        row = {
            "id": next(self._ids),
            "user_id": user_id,
            "timestamp": local_timestamp.isoformat(),
            "local_timestamp": local_timestamp.isoformat(),
            "time_zone_id": "UTC",
            "latitude": latitude,
            "longitude": longitude,
        }
        row.update(fields)
        self.tables.setdefault("locations", []).append(row)
        return row

    def add_group(self, group_id: str, owner_id: str, name: str = "Team", group_type: Optional[str] = None,
                  members: tuple = (), **fields) -> dict:
        row = {
            "id": group_id,
            "name": name,
            "description": None,
            "owner_user_id": owner_id,
            "group_type": group_type,
            "is_archived": False,
            "created_at": (NOW - timedelta(days=30)).isoformat(),
            "updated_at": None,
        }
        row.update(fields)
        self.tables.setdefault("groups", []).append(row)
        self.add_member(group_id, owner_id, role="Owner")
        for member_id in members:
            self.add_member(group_id, member_id)
        return row

    def add_member(self, group_id: str, user_id: str, role: str = "Member", status: str = "Active",
                   disabled: bool = False) -> dict:
        row = {
            "id": f"member-{group_id}-{user_id}",
            "group_id": group_id,
            "user_id": user_id,
            "role": role,
            "status": status,
            "joined_at": (NOW - timedelta(days=10)).isoformat(),
            "left_at": None,
            "org_peer_visibility_access_disabled": disabled,
        }
        self.tables.setdefault("group_members", []).append(row)
        return row

    def rows(self, table: str, **criteria) -> List[dict]:
        return [
            row for row in self.tables.get(table, [])
            if all(row.get(k) == v for k, v in criteria.items())
        ]


@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def broker() -> SseBroker:
    return SseBroker(queue_size=10)


def _user_from_header(request: Request) -> dict:
    user_id = request.headers.get("x-user-id")
    if not user_id:
        raise Unauthorized("Not authenticated")
    return {"id": user_id}


def _optional_user_from_header(request: Request) -> Optional[dict]:
    user_id = request.headers.get("x-user-id")
    return {"id": user_id} if user_id else None


@pytest.fixture
def client(db, clock, broker):
    """TestClient acting as whichever user the x-user-id header names"""
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_broker] = lambda: broker
    app.dependency_overrides[get_current_user_id] = _user_from_header
    app.dependency_overrides[get_optional_user] = _optional_user_from_header
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def as_user(user_id: str) -> dict:
    return {"x-user-id": user_id}
