# services/gameserver.py
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

import discord

from models.config import GameServerConfig
from models.records import RoleFileKind, StatusSnapshot, WhitelistSyncRequest
from services.ban_store import BanStore, append_line
from services.ranking import RankingEngine
from services.role_files import sync_role_file
from services.status_parser import StatusFileParser, parse_ckey_list, server_embed, status_embed
from utils.text import sanitize_input

if TYPE_CHECKING:
    from services.content_moderator import Verdict
    from services.context import AppContext

log = logging.getLogger(__name__)

# file locations relative to a server's basedir
SERVERDATA = "/serverdata.txt"
OOC_LOG = "/ooc.log"
ADMIN_LOG = "/admin.log"
DISCORD2OOC = "/SQL/discord2ooc.txt"
DISCORD2ADMIN = "/SQL/discord2admin.txt"
DISCORD2DM = "/SQL/discord2dm.txt"
DISCORD2BAN = "/SQL/discord2ban.txt"
DISCORD2UNBAN = "/SQL/discord2unban.txt"
BANS = "/SQL/bans.txt"
ADMINS = "/SQL/admins.txt"
WHITELIST = "/SQL/whitelist.txt"
FACTIONLIST = "/SQL/factionlist.txt"
AWARDS = "/SQL/awards.txt"
PLAYERLOGS = "/SQL/playerlogs.txt"
RANKING = "/ranking.txt"

RELAY_INTERVAL = 10
SERVERINFO_INTERVAL = 180
PLAYERCOUNT_INTERVAL = 60
PLAYERCOUNT_EVERY = 10  # rename the channel on every Nth player count tick

CHAT_LINE = re.compile(r"^(?P<ckey>[^:]+):\s?(?P<msg>.*)$")


class GameServerSession:
    """One configured game server: its files, caches and timers."""

    def __init__(self, ctx: "AppContext", config: GameServerConfig):
        self.ctx = ctx
        self.config = config
        self.key = config.key
        self.name = config.name
        self.ip = config.ip
        self.port = config.port
        self.host = config.host
        self.basedir = config.basedir
        self.enabled = config.enabled
        self.legacy = config.legacy
        self.moderate = config.moderate
        self.panic_bunker = config.panic_bunker
        self.relay_method = config.relay_method
        self.local = config.local

        for missing in config.missing_channels():
            log.warning("Gameserver %s missing optional property: %s", self.key, missing)

        self.players: list[str] = []
        self.serverinfo: dict = {}
        self.snapshot = StatusSnapshot.offline()
        self._playercount_ticker = 0

        self.parser = StatusFileParser(ctx.probe)
        self.ban_store = BanStore(ctx, self.name, self.path(BANS), self.path(DISCORD2BAN), self.path(DISCORD2UNBAN), self.legacy)
        self.ranking = RankingEngine(self.path(AWARDS), self.path(RANKING))
        ctx.add_gameserver(self)

    def __str__(self) -> str:
        return self.key

    def path(self, suffix: str) -> Path:
        return Path(self.basedir + suffix)

    # ---- lifecycle -----------------------------------------------------

    def timer_name(self, timer: str) -> str:
        return f"{self.key}:{timer}"

    def start(self) -> None:
        """Start the periodic timers; disabled servers get none. Safe to call repeatedly."""
        if not self.enabled:
            return
        scheduler = self.ctx.scheduler
        log.info("Getting player count for Gameserver %s", self.name)
        self.poll_status()
        scheduler.start_recurring(self.timer_name("playercount"), PLAYERCOUNT_INTERVAL, self.playercount_tick, run_immediately=True)
        scheduler.start_recurring(self.timer_name("serverinfo"), SERVERINFO_INTERVAL, self.serverinfo_tick)
        scheduler.start_recurring(self.timer_name("relay"), RELAY_INTERVAL, self.relay_tick)

    async def stop(self) -> None:
        await self.ctx.scheduler.cancel_all(prefix=f"{self.key}:")

    # ---- status --------------------------------------------------------

    def poll_status(self) -> StatusSnapshot:
        if not self.enabled:
            return StatusSnapshot.offline()
        if not self.local:
            return self.snapshot
        self.snapshot = self.parser.read(self.path(SERVERDATA), self.port)
        self.players = list(self.snapshot.ckeys) if self.snapshot.online else []
        return self.snapshot

    async def serverinfo_tick(self) -> None:
        snapshot = self.poll_status()
        if not snapshot.online or not self.players:
            return  # no data available
        if self.ctx.scrutiny is None:
            return
        for ckey in self.players:
            await self.ctx.scrutiny.scrutinize(ckey, self)

    async def playercount_tick(self) -> None:
        due = self._playercount_ticker % PLAYERCOUNT_EVERY == 0
        self._playercount_ticker += 1
        if due:
            await self.playercount_channel_update(len(self.players))

    async def playercount_channel_update(self, count: int = 0) -> bool:
        """Rename the `prefix-N` player count channel, only when N changed."""
        channel = self.ctx.bot.get_channel(self.config.playercount) if self.config.playercount else None
        if channel is None:
            log.warning("Channel %s doesn't exist!", self.config.playercount)
            return False
        prefix, sep, existing = channel.name.rpartition("-")
        if not sep:
            prefix, existing = channel.name, ""
        if existing != str(count):
            try:
                await channel.edit(name=f"{prefix}-{count}"[:100])
            except discord.HTTPException as e:
                log.warning("Unable to rename %s: %s", channel.name, e)
                return False
        return True

    def apply_serverinfo(self, payload: dict) -> None:
        self.serverinfo = payload
        if isinstance(payload.get("ckeys"), list):
            self.players = parse_ckey_list("&".join(str(c) for c in payload["ckeys"]))

    def status_embed(self) -> discord.Embed:
        if not self.local:
            return server_embed(self.name, self.host, self.ip, self.port, self.players)
        return status_embed(self.name, self.host, self.poll_status())

    # ---- relay: game -> discord ----------------------------------------

    async def relay_tick(self) -> None:
        if self.relay_method != "file":
            return
        await self.relay_file(self.path(OOC_LOG), self.config.ooc, moderated=True)
        await self.relay_file(self.path(ADMIN_LOG), self.config.asay)

    async def relay_file(self, path: Path, channel_id: int | None, moderated: bool = False) -> int:
        """Forward every line of a chat log to a channel, then truncate the log."""
        if not channel_id or self.ctx.bot.get_channel(channel_id) is None:
            return 0
        try:
            with path.open("r+", encoding="utf-8", errors="replace") as f:
                lines = f.readlines()
                f.seek(0)
                f.truncate()
        except FileNotFoundError:
            return 0
        except OSError as e:
            log.warning("unable to open `%s`: %s", path, e)
            return 0

        relayed = 0
        for raw in lines:
            line = raw.strip()
            if not line:
                continue
            await self.ctx.send(channel_id, line)
            relayed += 1
            if moderated and self.moderate and self.ctx.moderator is not None:
                m = CHAT_LINE.match(line)
                if m:
                    await self.ctx.moderator.moderate(self, m.group("ckey").strip(), m.group("msg"), self.ctx.ooc_warnings)
        return relayed

    async def relay_pushed(self, scope: str, ckey: str, message: str) -> "Verdict | None":
        """Relay one chat line pushed by the game (the `webhook` relay method)."""
        channel_id = self.config.ic if scope == "ic" else self.config.ooc
        await self.ctx.send(channel_id, f"{ckey}: {message}")
        if not self.moderate or self.ctx.moderator is None:
            return None
        warnings = self.ctx.ic_warnings if scope == "ic" else self.ctx.ooc_warnings
        return await self.ctx.moderator.moderate(self, ckey, message, warnings)

    # ---- relay: discord -> game ----------------------------------------

    def ooc_message(self, message: str, sender: str) -> bool:
        if not self.enabled:
            return False
        return append_line(self.path(DISCORD2OOC), f"{sender}:::{message}\n")

    async def admin_message(self, message: str, sender: str) -> bool:
        if not self.enabled:
            return False
        if not append_line(self.path(DISCORD2ADMIN), f"{sender}:::{message}\n"):
            return False
        if await self.admins_online(sender):
            return True
        # nobody on staff can see this in game; ping them on discord
        admin_role = self.ctx.role_id("Admin")
        mention = f"<@&{admin_role}>, " if admin_role else ""
        await self.ctx.send(self.config.asay, f"{mention}urgent asay from **{sender}**: {message}")
        return True

    async def admins_online(self, sender: str | None = None) -> bool:
        """True when the sender is an admin or a verified admin is currently playing."""
        admin_role = self.ctx.role_id("Admin")
        guild = self.ctx.guild()
        if admin_role is None or guild is None or self.ctx.verifier is None:
            return True  # can't tell; don't raise an alarm
        if sender:
            member = await self.ctx.verified_member(sender)
            if member is not None and admin_role in {r.id for r in member.roles}:
                return True
        for member in guild.members:
            if admin_role in {r.id for r in member.roles}:
                ckey = await self.ctx.verifier.ckey_for(member.id)
                if ckey and ckey in self.players:
                    return True
        return False

    async def direct_message(self, message: str, sender: str, recipient: str) -> bool:
        if not self.enabled:
            return False
        if not append_line(self.path(DISCORD2DM), f"{sender}:::{recipient}:::{message}\n"):
            return False
        await self.ctx.send(self.config.asay, f"**{sender}** -> **{recipient}**: {message}")
        return True

    # ---- derived files -------------------------------------------------

    async def sync_role_files(self, kind: RoleFileKind) -> bool:
        if not self.enabled:
            return False
        target = {RoleFileKind.WHITELIST: WHITELIST, RoleFileKind.FACTIONS: FACTIONLIST, RoleFileKind.ADMINS: ADMINS}[kind]
        return await sync_role_file(self.ctx, WhitelistSyncRequest(kind), [self.path(target)])

    def player_log_rows(self) -> list[tuple[str, str, str]]:
        rows = []
        try:
            with self.path(PLAYERLOGS).open("r", encoding="utf-8", errors="replace") as f:
                for line in f:
                    parts = line.strip().split(";")
                    if len(parts) < 3 or not parts[0]:
                        continue
                    rows.append((sanitize_input(parts[0]), parts[1], parts[2]))
        except OSError:
            log.debug("unable to open `%s`", self.path(PLAYERLOGS))
        return rows
