"""
Shared fixtures.

Every test gets a fresh SQLite database file. Service tests work on one
session (``db``); API tests go through the ASGI app with ``get_db``
pointed at the same database. A test should not hold an open ``db``
transaction while calling the API: SQLite takes the write lock at BEGIN.
"""
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import httpx
import pytest

from gstbook.core.permissions import Actor
from gstbook.database import build_engine, build_session_factory, get_db, init_db
from gstbook.main import app
from gstbook.models.team import Customer, Supplier, Team, TeamMember, TeamRole


@dataclass
class Seed:
    team_id: uuid.UUID
    other_team_id: uuid.UUID
    owner_id: uuid.UUID
    admin_id: uuid.UUID
    member_id: uuid.UUID
    customer_id: uuid.UUID
    other_customer_id: uuid.UUID
    supplier_id: uuid.UUID
    foreign_customer_id: uuid.UUID

    def actor(self, role: TeamRole = TeamRole.MEMBER) -> Actor:
        user_id = {
            TeamRole.OWNER: self.owner_id,
            TeamRole.ADMIN: self.admin_id,
            TeamRole.MEMBER: self.member_id,
        }[role]
        return Actor(team_id=self.team_id, user_id=user_id, role=role.value)

    def headers(self, role: TeamRole = TeamRole.MEMBER) -> dict:
        actor = self.actor(role)
        return {"X-Team-ID": str(actor.team_id), "X-User-ID": str(actor.user_id)}


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'gstbook_test.db'}")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def seed(session_factory) -> Seed:
    ids = Seed(*(uuid.uuid4() for _ in range(9)))
    async with session_factory() as session:
        session.add_all([
            Team(id=ids.team_id, name="Druk Traders", invoice_prefix="INV", default_currency="INR"),
            Team(id=ids.other_team_id, name="Other Team", default_currency="INR"),
        ])
        await session.flush()
        session.add_all([
            TeamMember(team_id=ids.team_id, user_id=ids.owner_id, role=TeamRole.OWNER.value),
            TeamMember(team_id=ids.team_id, user_id=ids.admin_id, role=TeamRole.ADMIN.value),
            TeamMember(team_id=ids.team_id, user_id=ids.member_id, role=TeamRole.MEMBER.value),
            Customer(id=ids.customer_id, team_id=ids.team_id, name="Acme Retail", email="accounts@acme.test"),
            Customer(id=ids.other_customer_id, team_id=ids.team_id, name="Bhutan Foods"),
            Supplier(id=ids.supplier_id, team_id=ids.team_id, name="Paro Wholesale"),
            Customer(id=ids.foreign_customer_id, team_id=ids.other_team_id, name="Not Ours"),
        ])
        await session.commit()
    return ids


@pytest.fixture
async def db(session_factory, seed):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def member(seed) -> Actor:
    return seed.actor(TeamRole.MEMBER)


@pytest.fixture
def admin(seed) -> Actor:
    return seed.actor(TeamRole.ADMIN)


@pytest.fixture
def owner(seed) -> Actor:
    return seed.actor(TeamRole.OWNER)


@pytest.fixture
async def client(session_factory, seed):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test", headers=seed.headers()) as client:
        yield client
    app.dependency_overrides.clear()


def line(quantity="1", unit_price="100.00", tax_rate="5", **extra) -> dict:
    """Line item input as the services receive it."""
    item = {
        "description": extra.pop("description", "Item"),
        "quantity": Decimal(quantity),
        "unit_price": Decimal(unit_price),
        "tax_rate": Decimal(tax_rate),
    }
    item.update(extra)
    return item


def invoice_data(seed: Seed, items=None, invoice_date=date(2025, 1, 15), **extra) -> dict:
    data = {
        "customer_id": seed.customer_id,
        "invoice_date": invoice_date,
        "items": items or [line()],
    }
    data.update(extra)
    return data


def bill_data(seed: Seed, items=None, bill_date=date(2025, 1, 20), **extra) -> dict:
    data = {
        "supplier_id": seed.supplier_id,
        "bill_date": bill_date,
        "items": items or [line()],
    }
    data.update(extra)
    return data
