# services/gameserver_cog.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from models.records import BanRequest, RoleFileKind, UnbanRequest

if TYPE_CHECKING:
    from services.context import AppContext
    from services.gameserver import GameServerSession

log = logging.getLogger(__name__)

MAX_MSG = 1900  # keep replies under Discord 2k char cap


def _is_mod(inter: discord.Interaction, allowed: set[int]) -> bool:
    uid_roles = {r.id for r in getattr(inter.user, "roles", [])}
    return bool(uid_roles & allowed)


async def _require_mod(inter: discord.Interaction, allowed: set[int]) -> bool:
    if not _is_mod(inter, allowed):
        await inter.response.send_message("No permission.", ephemeral=True)
        return False
    return True


async def _reply_ok(inter: discord.Interaction, title: str, body: str, ephemeral: bool = True):
    emb = discord.Embed(title=title, description=body.strip()[:MAX_MSG] or "-", color=0x2ECC71)
    if not inter.response.is_done():
        await inter.response.defer(ephemeral=ephemeral, thinking=True)
    await inter.followup.send(embed=emb, ephemeral=ephemeral)


async def _reply_err(inter: discord.Interaction, title: str, err: Exception | str, ephemeral: bool = True):
    txt = str(err)
    emb = discord.Embed(title=title, description=f"```text\n{txt[:1800]}\n```", color=0xE74C3C)
    if not inter.response.is_done():
        await inter.response.defer(ephemeral=ephemeral, thinking=True)
    await inter.followup.send(embed=emb, ephemeral=ephemeral)


class GameServerCog(commands.Cog):
    """Slash commands and chat relay for the configured game servers."""

    panic = app_commands.Group(name="panic", description="Panic bunker (staff)")
    sync = app_commands.Group(name="sync", description="Rewrite role-derived server files (staff)")

    def __init__(self, bot: commands.Bot, ctx: "AppContext"):
        self.bot = bot
        self.ctx = ctx

    # ---- helpers -------------------------------------------------------

    @property
    def _staff(self) -> set[int]:
        return self.ctx.settings.staff_role_ids

    def _sessions(self, server: str | None) -> list["GameServerSession"]:
        """Sessions named by `server`; every enabled session when omitted."""
        if not server:
            return self.ctx.enabled_gameservers()
        gs = self.ctx.gameservers.get(server.strip())
        return [gs] if gs is not None else []

    def _session(self, server: str | None) -> "GameServerSession | None":
        sessions = self._sessions(server)
        return sessions[0] if sessions else None

    async def _own_ckey(self, inter: discord.Interaction) -> str | None:
        if self.ctx.verifier is None:
            return None
        return await self.ctx.verifier.ckey_for(inter.user.id)

    # ---- bans ----------------------------------------------------------

    @app_commands.command(name="ban", description="Ban a ckey from one or all game servers")
    @app_commands.describe(
        ckey="Byond ckey or Discord id",
        duration="e.g. `3 days` or `perma`",
        reason="Shown to the player",
        server="Game server key; all servers when omitted",
    )
    async def ban(self, interaction: discord.Interaction, ckey: str, duration: str, reason: str, server: str | None = None):
        if not await _require_mod(interaction, self._staff):
            return
        try:
            sessions = self._sessions(server)
            if not sessions:
                return await _reply_err(interaction, "ban", f"No game server `{server}`.")
            results = []
            for gs in sessions:
                request = BanRequest(ckey, duration, reason, actor=interaction.user.name)
                results.append(await gs.ban_store.ban(request))
            await _reply_ok(interaction, "ban", "".join(results))
        except Exception as e:
            await _reply_err(interaction, "ban failed", e)

    @app_commands.command(name="unban", description="Unban a ckey from one or all game servers")
    @app_commands.describe(ckey="Byond ckey", server="Game server key; all servers when omitted")
    async def unban(self, interaction: discord.Interaction, ckey: str, server: str | None = None):
        if not await _require_mod(interaction, self._staff):
            return
        try:
            sessions = self._sessions(server)
            if not sessions:
                return await _reply_err(interaction, "unban", f"No game server `{server}`.")
            for gs in sessions:
                await gs.ban_store.unban(UnbanRequest(ckey, actor=interaction.user.name))
            names = ", ".join(gs.name for gs in sessions)
            await _reply_ok(interaction, "unban", f"**{interaction.user.name}** unbanned **{ckey}** from **{names}**")
        except Exception as e:
            await _reply_err(interaction, "unban failed", e)

    @app_commands.command(name="bancheck", description="List the bans recorded for a ckey")
    @app_commands.describe(ckey="Byond ckey", server="Game server key; all servers when omitted")
    async def bancheck(self, interaction: discord.Interaction, ckey: str, server: str | None = None):
        if not await _require_mod(interaction, self._staff):
            return
        try:
            lines = []
            for gs in self._sessions(server):
                for record in gs.ban_store.bancheck_details(ckey):
                    perma = " (permanent)" if record.is_permanent else ""
                    lines.append(
                        f"**{gs.name}:** banned by **{record.banner}** on {record.date} "
                        f"for **{record.duration}**{perma}: {record.reason}"
                    )
            await _reply_ok(interaction, "bancheck", "\n".join(lines) or f"No bans found for ckey `{ckey}`.")
        except Exception as e:
            await _reply_err(interaction, "bancheck failed", e)

    # ---- ranking -------------------------------------------------------

    @app_commands.command(name="ranking", description="Top 10 players by medal score")
    @app_commands.describe(server="Game server key")
    async def ranking(self, interaction: discord.Interaction, server: str | None = None):
        gs = self._session(server)
        if gs is None:
            return await _reply_err(interaction, "ranking", f"No game server `{server}`.")
        try:
            await _reply_ok(interaction, f"{gs.name} ranking", gs.ranking.top(10) or "No medals awarded yet.", ephemeral=False)
        except Exception as e:
            await _reply_err(interaction, "ranking failed", e)

    @app_commands.command(name="rankme", description="Your own medal score")
    @app_commands.describe(server="Game server key")
    async def rankme(self, interaction: discord.Interaction, server: str | None = None):
        gs = self._session(server)
        if gs is None:
            return await _reply_err(interaction, "rankme", f"No game server `{server}`.")
        ckey = await self._own_ckey(interaction)
        if not ckey:
            return await _reply_err(interaction, "rankme", "Link your byond account with /link first.")
        await _reply_ok(interaction, "rankme", gs.ranking.rank_of(ckey))

    @app_commands.command(name="medals", description="Medals awarded to a ckey")
    @app_commands.describe(ckey="Byond ckey; yours when omitted", server="Game server key")
    async def medals(self, interaction: discord.Interaction, ckey: str | None = None, server: str | None = None):
        gs = self._session(server)
        if gs is None:
            return await _reply_err(interaction, "medals", f"No game server `{server}`.")
        ckey = ckey or await self._own_ckey(interaction)
        if not ckey:
            return await _reply_err(interaction, "medals", "Give a ckey or link your byond account with /link first.")
        await _reply_ok(interaction, "medals", gs.ranking.medals(ckey))

    # ---- status --------------------------------------------------------

    @app_commands.command(name="serverstatus", description="Show game server status")
    @app_commands.describe(server="Game server key; all servers when omitted")
    async def serverstatus(self, interaction: discord.Interaction, server: str | None = None):
        await interaction.response.defer(thinking=True, ephemeral=True)
        sessions = self._sessions(server)
        if not sessions:
            return await _reply_err(interaction, "serverstatus", f"No game server `{server}`.")
        try:
            embeds = [gs.status_embed() for gs in sessions][:10]
            await interaction.followup.send(embeds=embeds, ephemeral=True)
        except Exception as e:
            await _reply_err(interaction, "Server info error", e)

    # ---- panic bunker --------------------------------------------------

    @panic.command(name="on", description="Require Discord verification for new players")
    async def panic_on(self, interaction: discord.Interaction):
        if not await _require_mod(interaction, self._staff):
            return
        await self.ctx.scrutiny.set_panic_bunker(True)
        await self.ctx.staff_notice(f"Panic bunker enabled by **{interaction.user.name}**")
        await _reply_ok(interaction, "panic", "Panic bunker enabled.")

    @panic.command(name="off", description="Lift the panic bunker and its bans")
    async def panic_off(self, interaction: discord.Interaction):
        if not await _require_mod(interaction, self._staff):
            return
        lifted = await self.ctx.scrutiny.set_panic_bunker(False)
        await self.ctx.staff_notice(f"Panic bunker disabled by **{interaction.user.name}**")
        await _reply_ok(interaction, "panic", f"Panic bunker disabled. Lifted {len(lifted)} panic ban(s).")

    # ---- role files ----------------------------------------------------

    async def _sync(self, interaction: discord.Interaction, kind: RoleFileKind):
        if not await _require_mod(interaction, self._staff):
            return
        try:
            written = [gs.name for gs in self.ctx.enabled_gameservers() if await gs.sync_role_files(kind)]
            body = f"Rewrote the {kind.value} file on: {', '.join(written)}" if written else "Nothing written."
            await _reply_ok(interaction, f"sync {kind.value}", body)
        except Exception as e:
            await _reply_err(interaction, f"sync {kind.value} failed", e)

    @sync.command(name="whitelist", description="Rewrite the whitelist from Discord roles")
    async def sync_whitelist(self, interaction: discord.Interaction):
        await self._sync(interaction, RoleFileKind.WHITELIST)

    @sync.command(name="factions", description="Rewrite the faction list from Discord roles")
    async def sync_factions(self, interaction: discord.Interaction):
        await self._sync(interaction, RoleFileKind.FACTIONS)

    @sync.command(name="admins", description="Rewrite the admin list from Discord roles")
    async def sync_admins(self, interaction: discord.Interaction):
        await self._sync(interaction, RoleFileKind.ADMINS)

    # ---- chat relay: discord -> game -----------------------------------

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        if message.author.bot or not message.content:
            return
        channel_id = message.channel.id
        for gs in self.ctx.enabled_gameservers():
            if channel_id not in (gs.config.ooc, gs.config.asay):
                continue
            sender = await self.ctx.verifier.ckey_for(message.author.id) if self.ctx.verifier else None
            sender = sender or message.author.display_name
            content = message.clean_content.strip()
            if channel_id == gs.config.ooc:
                gs.ooc_message(content, sender)
            else:
                await gs.admin_message(content, sender)
            log.debug("[relay] %s -> %s: %s", sender, gs.key, content)
