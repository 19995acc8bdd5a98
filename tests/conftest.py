import os
import tempfile

# keep the rotating log out of the source tree while tests import the app
os.environ.setdefault("DATA_ROOT", tempfile.mkdtemp(prefix="maintenance-hub-tests-"))

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from maintenance_hub.database import Base
from maintenance_hub.errors import SourceError, DuplicateRoleAssignmentError, CustomRoleNotFoundError
from maintenance_hub.models import RoleMembership, CustomRoleOut
from maintenance_hub import db_models  # noqa: F401  (register tables on Base.metadata)


class FakeSource:
    """In-memory RowSource. Serves rows[start:end+1] and the table size."""

    def __init__(self, tables: Dict[str, List[dict]], report_count: bool = True, fail_on: Optional[str] = None):
        self.tables = tables
        self.report_count = report_count
        self.fail_on = fail_on
        self.calls = []

    async def fetch_page(self, table, columns, start, end):
        self.calls.append((table, start, end))
        if table == self.fail_on:
            raise SourceError(table, "connection reset")
        rows = self.tables.get(table, [])
        page = [dict(r) for r in rows[start:end + 1]]
        return page, (len(rows) if self.report_count else None)


class FakeRoleStore:
    def __init__(self, memberships=(), custom_roles=(), fail: bool = False):
        self.rows: List[RoleMembership] = list(memberships)
        self.custom_roles: Dict[str, CustomRoleOut] = {cr.id: cr for cr in custom_roles}
        self.fail = fail
        self.list_calls = 0
        self.commits = 0

    async def commit(self):
        self.commits += 1

    async def list_memberships(self, user_id):
        self.list_calls += 1
        if self.fail:
            raise ConnectionError("role store unavailable")
        return [r for r in self.rows if r.user_id == user_id]

    async def insert_role(self, user_id, role):
        if any(r.user_id == user_id and r.role == role.value for r in self.rows):
            raise DuplicateRoleAssignmentError("duplicate key value violates unique constraint")
        self.rows.append(RoleMembership(user_id=user_id, role=role.value))

    async def delete_role(self, user_id, role):
        before = len(self.rows)
        self.rows = [r for r in self.rows if not (r.user_id == user_id and r.role == role.value)]
        return before - len(self.rows)

    async def insert_custom_role(self, user_id, custom_role_id):
        cr = self.custom_roles.get(custom_role_id)
        if cr is None:
            raise CustomRoleNotFoundError(f"Custom role '{custom_role_id}' not found")
        if any(r.user_id == user_id and r.custom_role_id == custom_role_id for r in self.rows):
            raise DuplicateRoleAssignmentError("duplicate key value violates unique constraint")
        self.rows.append(RoleMembership(user_id=user_id, custom_role_id=cr.id, custom_role_name=cr.name))

    async def delete_custom_role(self, user_id, custom_role_id):
        before = len(self.rows)
        self.rows = [r for r in self.rows if not (r.user_id == user_id and r.custom_role_id == custom_role_id)]
        return before - len(self.rows)

    async def list_custom_roles(self):
        return sorted(self.custom_roles.values(), key=lambda cr: cr.label)


def membership(user_id: str, role: Optional[str] = None, custom: Optional[str] = None) -> RoleMembership:
    return RoleMembership(
        user_id=user_id,
        role=role,
        custom_role_id=f"cr-{custom}" if custom else None,
        custom_role_name=custom,
    )


async def with_sqlite(fn):
    """Run `fn(session)` against a fresh in-memory schema."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
        async with factory() as session:
            return await fn(session)
    finally:
        await engine.dispose()


@pytest.fixture
def fake_source():
    return FakeSource


@pytest.fixture
def fake_role_store():
    return FakeRoleStore


@pytest.fixture
def make_membership():
    return membership


@pytest.fixture
def sqlite_run():
    return with_sqlite


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No Supabase credentials in the environment, cwd without dotenv files."""
    for name in ("SUPABASE_URL", "VITE_SUPABASE_URL", "SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY", "CHECK_SOURCE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()
