import pytest
from sqlalchemy import func, select

from shared.persistence import atomic
from services.catalog_service.models import Vendor


class Boom(Exception):
    pass


@pytest.mark.asyncio
async def test_atomic_commits_on_success(session_factory):
    async with session_factory() as session:
        async with atomic(session, "test_commit"):
            session.add(Vendor(id="v-1", owner_user_id="owner", name="V1"))

    async with session_factory() as session:
        count = await session.scalar(select(func.count(Vendor.id)))
    assert count == 1


@pytest.mark.asyncio
async def test_atomic_rolls_back_every_write_and_reraises(session_factory):
    async with session_factory() as session:
        with pytest.raises(Boom):
            async with atomic(session, "test_rollback"):
                session.add(Vendor(id="v-1", owner_user_id="owner", name="V1"))
                await session.flush()
                session.add(Vendor(id="v-2", owner_user_id="owner", name="V2"))
                await session.flush()
                raise Boom()

    async with session_factory() as session:
        count = await session.scalar(select(func.count(Vendor.id)))
    assert count == 0
