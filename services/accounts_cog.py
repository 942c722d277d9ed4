from __future__ import annotations
import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands, tasks

from models.records import RoleFileKind

if TYPE_CHECKING:
    from services.context import AppContext

log = logging.getLogger(__name__)


class AccountsCog(commands.Cog):
    """Link Byond <-> Discord and keep the role-derived server files in sync."""
    def __init__(self, bot: commands.Bot, ctx: "AppContext"):
        self.bot = bot
        self.ctx = ctx

    async def cog_load(self):
        self.sync_roles.start()

    async def cog_unload(self):
        self.sync_roles.cancel()

    @app_commands.command(name="link", description="Link your Byond account to your Discord account")
    @app_commands.describe(ckey="Your Byond username")
    async def link(self, interaction: discord.Interaction, ckey: str):
        if self.ctx.verifier is None:
            return await interaction.response.send_message("Account linking is unavailable.", ephemeral=True)
        existing = await self.ctx.verifier.discord_for(ckey)
        if existing is not None and existing != interaction.user.id:
            return await interaction.response.send_message(f"`{ckey}` is already linked to another account.", ephemeral=True)
        ckey = await self.ctx.verifier.link(interaction.user.id, ckey)
        if not ckey:
            return await interaction.response.send_message("That is not a valid ckey.", ephemeral=True)
        await interaction.response.send_message(f"Linked **{ckey}** to {interaction.user.mention}.", ephemeral=True)

    @app_commands.command(name="unlink", description="Unlink your Byond account")
    async def unlink(self, interaction: discord.Interaction):
        if self.ctx.verifier is None:
            return await interaction.response.send_message("Account linking is unavailable.", ephemeral=True)
        await self.ctx.verifier.unlink(interaction.user.id)
        await interaction.response.send_message("Unlinked.", ephemeral=True)

    @tasks.loop(minutes=10)
    async def sync_roles(self):
        if self.ctx.guild() is None:
            return
        for gs in self.ctx.enabled_gameservers():
            for kind in RoleFileKind:
                await gs.sync_role_files(kind)

    @sync_roles.before_loop
    async def _before_sync(self):
        await self.bot.wait_until_ready()

    @sync_roles.error
    async def _sync_failed(self, error: BaseException):
        log.warning("[accounts] role file sync failed: %s", error)
