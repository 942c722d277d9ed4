# services/context.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import discord

from exceptions import ConfigError
from models.config import BadWordRule
from models.records import BanRequest
from services.content_moderator import WarningStore
from services.scheduler import RelayScheduler
from utils.config import Settings
from utils.liveness import LivenessProbe, TcpLivenessProbe

if TYPE_CHECKING:
    from services.content_moderator import ContentModerator
    from services.gameserver import GameServerSession
    from services.lookups import AgeLookup, GeoLookup
    from services.scrutiny import ScrutinyEngine
    from services.verifier import IdentityDirectory

log = logging.getLogger(__name__)

MAX_GAMESERVERS = 5
MAX_MSG = 2000


@dataclass
class AppContext:
    """Process-wide state shared by every component.

    Only mutated from the event loop thread; nothing here is locked.
    """

    settings: Settings
    bot: Any
    verifier: "IdentityDirectory | None" = None
    badwords: list[BadWordRule] = field(default_factory=list)
    geo: "GeoLookup | None" = None
    ages: "AgeLookup | None" = None
    probe: LivenessProbe = field(default_factory=TcpLivenessProbe)
    scheduler: RelayScheduler = field(default_factory=RelayScheduler)
    gameservers: dict[str, "GameServerSession"] = field(default_factory=dict)
    seen_players: set[str] = field(default_factory=set)
    panic_bans: set[str] = field(default_factory=set)
    age_cache: dict[str, str] = field(default_factory=dict)
    permitted: set[str] = field(default_factory=set)
    panic_bunker: bool = False
    ooc_warnings: WarningStore = field(default_factory=lambda: WarningStore("ooc"))
    ic_warnings: WarningStore = field(default_factory=lambda: WarningStore("ic"))
    scrutiny: "ScrutinyEngine | None" = None
    moderator: "ContentModerator | None" = None

    # ---- registry -----------------------------------------------------

    def add_gameserver(self, gameserver: "GameServerSession") -> None:
        if gameserver.key in self.gameservers:
            raise ConfigError(f"Duplicate gameserver key: {gameserver.key}")
        if len(self.gameservers) >= MAX_GAMESERVERS:
            log.warning("Configuring more than %d gameservers is not supported and you will likely experience issues.", MAX_GAMESERVERS)
        self.gameservers[gameserver.key] = gameserver
        log.info("Added %s game server: %s (%s)", "enabled" if gameserver.enabled else "disabled", gameserver.name, gameserver.key)

    def enabled_gameservers(self) -> list["GameServerSession"]:
        return [gs for gs in self.gameservers.values() if gs.enabled]

    # ---- discord helpers ---------------------------------------------

    @property
    def bot_name(self) -> str:
        user = getattr(self.bot, "user", None)
        return getattr(user, "name", None) or "Civ13"

    def guild(self):
        return self.bot.get_guild(self.settings.DISCORD_GUILD_ID)

    def role_id(self, name: str) -> int | None:
        return self.settings.DISCORD_ROLE_IDS.get(name)

    def has_roles(self, names) -> bool:
        missing = [n for n in names if n not in self.settings.DISCORD_ROLE_IDS]
        if missing:
            log.warning("Missing role ids for: %s", ", ".join(missing))
            return False
        return True

    async def send(self, channel_id: int | None, text: str) -> bool:
        if not channel_id or not text:
            return False
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            log.warning("Channel %s doesn't exist!", channel_id)
            return False
        try:
            await channel.send(text[:MAX_MSG])
        except discord.HTTPException as e:
            log.warning("Discord send to %s failed: %s", channel_id, e)
            return False
        return True

    async def staff_notice(self, text: str) -> bool:
        # no staff channel configured -> skip silently
        if not self.settings.DISCORD_STAFF_CHANNEL_ID:
            return False
        return await self.send(self.settings.DISCORD_STAFF_CHANNEL_ID, text)

    async def verified_member(self, ckey: str):
        if self.verifier is None:
            return None
        guild = self.guild()
        if guild is None:
            return None
        discord_id = await self.verifier.discord_for(ckey)
        if discord_id is None:
            return None
        return guild.get_member(discord_id)

    def is_staff(self, member) -> bool:
        role_ids = {r.id for r in getattr(member, "roles", [])}
        return bool(role_ids & self.settings.staff_role_ids)

    async def is_staff_ckey(self, ckey: str) -> bool:
        member = await self.verified_member(ckey)
        return member is not None and self.is_staff(member)

    # ---- cross-server actions -----------------------------------------

    async def ban_everywhere(self, request: BanRequest) -> str:
        results = []
        for gs in self.enabled_gameservers():
            one = BanRequest(request.ckey, request.duration, request.reason, request.actor, request.permanent)
            results.append(await gs.ban_store.ban(one))
        return "".join(results)
