from __future__ import annotations
from typing import Optional

from sqlalchemy import BigInteger, Column, Integer, String, UniqueConstraint, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import Base

class VerifiedAccount(Base):
    """A ckey that has been linked to a Discord account."""
    __tablename__ = "verified_accounts"
    id = Column(Integer, primary_key=True)
    discord_id = Column(BigInteger, index=True, unique=True, nullable=False)
    ckey = Column(String(32), index=True, unique=True, nullable=False)

    @staticmethod
    async def upsert(s: AsyncSession, *, discord_id: int, ckey: str) -> "VerifiedAccount":
        res = await s.execute(select(VerifiedAccount).where(VerifiedAccount.discord_id == discord_id))
        row = res.scalar_one_or_none()
        if row:
            row.ckey = ckey
        else:
            row = VerifiedAccount(discord_id=discord_id, ckey=ckey)
            s.add(row)
        await s.commit()
        return row

    @staticmethod
    async def delete_by_discord(s: AsyncSession, discord_id: int):
        await s.execute(delete(VerifiedAccount).where(VerifiedAccount.discord_id == discord_id))
        await s.commit()

    @staticmethod
    async def fetch_by_ckey(s: AsyncSession, ckey: str) -> Optional["VerifiedAccount"]:
        res = await s.execute(select(VerifiedAccount).where(VerifiedAccount.ckey == ckey))
        return res.scalar_one_or_none()

    @staticmethod
    async def fetch_by_discord(s: AsyncSession, discord_id: int) -> Optional["VerifiedAccount"]:
        res = await s.execute(select(VerifiedAccount).where(VerifiedAccount.discord_id == discord_id))
        return res.scalar_one_or_none()

    @staticmethod
    async def fetch_all(s: AsyncSession) -> list["VerifiedAccount"]:
        res = await s.execute(select(VerifiedAccount))
        return list(res.scalars())

class BadwordWarning(Base):
    """Per (scope, ckey, category) count of blacklisted phrase warnings."""
    __tablename__ = "badword_warnings"
    __table_args__ = (UniqueConstraint("scope", "ckey", "category"),)
    id = Column(Integer, primary_key=True)
    scope = Column(String(8), nullable=False)  # ooc / ic
    ckey = Column(String(32), index=True, nullable=False)
    category = Column(String(64), nullable=False)
    count = Column(Integer, default=0, nullable=False)

    @staticmethod
    async def increment(s: AsyncSession, *, scope: str, ckey: str, category: str) -> int:
        q = select(BadwordWarning).where(
            BadwordWarning.scope == scope,
            BadwordWarning.ckey == ckey,
            BadwordWarning.category == category,
        )
        row = (await s.execute(q)).scalar_one_or_none()
        if row:
            row.count = row.count + 1
        else:
            row = BadwordWarning(scope=scope, ckey=ckey, category=category, count=1)
            s.add(row)
        await s.commit()
        return row.count

    @staticmethod
    async def fetch_count(s: AsyncSession, *, scope: str, ckey: str, category: str) -> int:
        q = select(BadwordWarning.count).where(
            BadwordWarning.scope == scope,
            BadwordWarning.ckey == ckey,
            BadwordWarning.category == category,
        )
        return (await s.execute(q)).scalar_one_or_none() or 0
