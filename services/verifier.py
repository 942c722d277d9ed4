# services/verifier.py
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.accounts import VerifiedAccount
from utils.text import sanitize_input

log = logging.getLogger(__name__)


class IdentityDirectory:
    """Verified ckey <-> Discord id links, backed by the `verified_accounts` table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def ckey_for(self, discord_id: int | str) -> str | None:
        try:
            discord_id = int(discord_id)
        except (TypeError, ValueError):
            return None
        async with self.session_maker() as s:
            row = await VerifiedAccount.fetch_by_discord(s, discord_id)
        return row.ckey if row else None

    async def discord_for(self, ckey: str) -> int | None:
        async with self.session_maker() as s:
            row = await VerifiedAccount.fetch_by_ckey(s, sanitize_input(ckey))
        return row.discord_id if row else None

    async def is_verified(self, ckey: str) -> bool:
        return await self.discord_for(ckey) is not None

    async def link(self, discord_id: int, ckey: str) -> str:
        ckey = sanitize_input(ckey)
        if not ckey:
            return ""
        async with self.session_maker() as s:
            await VerifiedAccount.upsert(s, discord_id=discord_id, ckey=ckey)
        log.info("[verifier] linked %s <-> %s", ckey, discord_id)
        return ckey

    async def unlink(self, discord_id: int) -> None:
        async with self.session_maker() as s:
            await VerifiedAccount.delete_by_discord(s, discord_id)

    async def all(self) -> dict[int, str]:
        async with self.session_maker() as s:
            rows = await VerifiedAccount.fetch_all(s)
        return {row.discord_id: row.ckey for row in rows}
