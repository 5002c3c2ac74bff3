"""Shared fixtures for the planner test suite."""

import datetime
from types import SimpleNamespace

import pytest

from planner_core import FileStorage, PlannerState

# 2026-10-19 is a Monday
MONDAY = datetime.date(2026, 10, 19)
TUESDAY = MONDAY + datetime.timedelta(days=1)


def at(day: datetime.date, hh: int, mm: int = 0) -> datetime.datetime:
    return datetime.datetime(day.year, day.month, day.day, hh, mm)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "db.json"


@pytest.fixture
def state(db_path):
    """A loaded, empty planner backed by a temp file, pinned to MONDAY."""
    s = PlannerState(FileStorage(str(db_path)), today=MONDAY)
    s.load(today=MONDAY)
    return s


class _Query:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.filters = {}
        self.payload = None

    def select(self, columns):
        return self

    def eq(self, column, value):
        self.filters[column] = value
        return self

    def upsert(self, payload, on_conflict=None):
        self.payload = payload
        return self

    def execute(self):
        if self.client.fail_with is not None:
            raise self.client.fail_with
        if self.payload is not None:
            self.client.upserts.append((self.table, self.payload))
            self.client.rows[self.payload["user_id"]] = {"data": self.payload["data"]}
            return SimpleNamespace(data=[self.payload])
        row = self.client.rows.get(self.filters.get("user_id"))
        return SimpleNamespace(data=[row] if row else [])


class _Auth:
    def __init__(self, client):
        self.client = client
        self.signed_out = False

    def sign_in_with_password(self, credentials):
        if credentials["password"] != "secret":
            raise RuntimeError("Invalid login credentials")
        user = SimpleNamespace(
            id="user-1",
            email=credentials["email"],
            user_metadata={"full_name": "Sam Student", "avatar_url": "https://example.com/a.png"},
        )
        session = SimpleNamespace(access_token="at", refresh_token="rt", user=user)
        return SimpleNamespace(user=user, session=session)

    def sign_up(self, credentials):
        self.client.signups.append(credentials["email"])

    def sign_out(self):
        self.signed_out = True


class FakeSupabase:
    """Just enough of the supabase client for the sync bridge."""

    def __init__(self):
        self.rows = {}
        self.upserts = []
        self.signups = []
        self.fail_with = None
        self.auth = _Auth(self)

    def table(self, name):
        return _Query(self, name)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()
