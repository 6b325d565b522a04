import asyncio
from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from skillvault.database import engine_options
from skillvault.models import User, Certification


def test_engine_options_per_backend():
    assert engine_options("sqlite+aiosqlite:///./skillvault.db") == {}

    options = engine_options("postgresql+asyncpg://user:pw@db/skillvault")
    assert options["connect_args"]["statement_cache_size"] == 0
    assert options["pool_pre_ping"] is True


def test_sqlite_enforces_foreign_keys(session_maker):
    async def insert_orphan():
        async with session_maker() as db:
            db.add(Certification(
                user_id=999, title="Orphan", issuer="Nobody", issue_date=date(2024, 1, 1)
            ))
            await db.commit()

    with pytest.raises(IntegrityError):
        asyncio.run(insert_orphan())


def test_deleting_user_removes_certifications(session_maker):
    async def scenario():
        async with session_maker() as db:
            user = User(
                email="a@example.com", hashed_password="x", name="A", profile_url="a"
            )
            db.add(user)
            await db.flush()
            db.add(Certification(
                user_id=user.id, title="Cert", issuer="Issuer", issue_date=date(2024, 1, 1)
            ))
            await db.commit()

            await db.delete(user)
            await db.commit()

            result = await db.execute(select(Certification))
            return result.scalars().all()

    assert asyncio.run(scenario()) == []
