# services/ban_store.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

import discord

from models.records import BanRecord, BanRequest, UnbanRequest
from utils.text import sanitize_input

if TYPE_CHECKING:
    from services.context import AppContext

log = logging.getLogger(__name__)

MIN_BAN_FIELDS = 8
CKEY_INDEX = 8
SQL_NOT_IMPLEMENTED = "SQL methods are not yet implemented!\n"


def append_line(path: Path, line: str) -> bool:
    """Append one record to a request file. Returns False (and logs) if the file can't be opened."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(line)
    except OSError as e:
        log.warning("unable to open `%s`: %s", path, e)
        return False
    return True


class BanStore:
    """Ban bookkeeping for one game server.

    The game process owns `bans.txt`; this class only reads it and appends
    requests to `discord2ban.txt` / `discord2unban.txt`.
    """

    def __init__(self, ctx: "AppContext", server_name: str, bans_path: Path, ban_requests: Path, unban_requests: Path, legacy: bool = True):
        self.ctx = ctx
        self.server_name = server_name
        self.bans_path = bans_path
        self.ban_requests = ban_requests
        self.unban_requests = unban_requests
        self.legacy = legacy

    # ---- reading ---------------------------------------------------------

    def records(self) -> Iterator[BanRecord]:
        try:
            with self.bans_path.open("r", encoding="utf-8", errors="replace") as f:
                for line in f:
                    fields = line.replace("|||", "").strip().split(";")
                    if len(fields) < MIN_BAN_FIELDS:
                        continue  # partial or corrupt write
                    yield BanRecord(fields)
        except OSError:
            log.debug("unable to open `%s`", self.bans_path)

    def is_banned(self, ckey: str) -> bool:
        if not self.legacy:
            return False
        return any(r.ckey == ckey for r in self.records())

    def is_permabanned(self, ckey: str) -> bool:
        """Only bans issued by the `Server` actor with a `999 years` duration count."""
        if not (ckey := sanitize_input(ckey)) or not self.legacy:
            return False
        return any(r.ckey == ckey and r.is_permanent for r in self.records())

    def bancheck_details(self, ckey: str) -> list[BanRecord]:
        ckey = sanitize_input(ckey)
        return [r for r in self.records() if r.ckey == ckey]

    # ---- requests -------------------------------------------------------

    async def ban(self, request: BanRequest) -> str:
        if error := request.validate():
            return error
        request.normalize_duration()
        request.ckey = sanitize_input(request.ckey)
        if not request.ckey:
            return "You must specify a ckey to ban."
        if request.ckey.isnumeric():
            ckey = await self.ctx.verifier.ckey_for(request.ckey) if self.ctx.verifier else None
            if not ckey:
                return f"Unable to find a ckey for <@{request.ckey}>. Please use the ckey instead of the Discord ID."
            request.ckey = ckey
        request.actor = request.actor or self.ctx.bot_name

        await self._apply_ban_roles(request)
        if not self.legacy:
            return SQL_NOT_IMPLEMENTED
        if not append_line(self.ban_requests, request.to_line()):
            return f"unable to open `{self.ban_requests}`\n"
        log.info("[bans] %s banned %s from %s for %s", request.actor, request.ckey, self.server_name, request.duration)
        return (
            f"**{request.actor}** banned **{request.ckey}** from **{self.server_name}** "
            f"for **{request.duration}** with the reason **{request.reason}**\n"
        )

    async def unban(self, request: UnbanRequest) -> None:
        request.ckey = sanitize_input(request.ckey)
        request.actor = request.actor or self.ctx.bot_name
        if not self.legacy:
            log.warning(SQL_NOT_IMPLEMENTED.strip())
        elif append_line(self.unban_requests, request.to_line()):
            log.info("[bans] %s unbanned %s on %s", request.actor, request.ckey, self.server_name)
        await self._lift_ban_roles(request)

    # ---- discord role state ---------------------------------------------

    async def _apply_ban_roles(self, request: BanRequest) -> None:
        member = await self.ctx.verified_member(request.ckey)
        banished = self.ctx.role_id("banished")
        if member is None or banished is None:
            return
        if banished in {r.id for r in member.roles}:
            return
        reason = f"Banned for {request.duration} with the reason {request.reason}"
        permabanished = self.ctx.role_id("permabanished")
        try:
            if request.permanent and permabanished is not None:
                await member.edit(roles=[discord.Object(id=banished), discord.Object(id=permabanished)], reason=reason)
            else:
                await member.add_roles(discord.Object(id=banished), reason=reason)
        except discord.HTTPException as e:
            log.warning("Missing perms to edit roles for %s: %s", member, e)

    async def _lift_ban_roles(self, request: UnbanRequest) -> None:
        member = await self.ctx.verified_member(request.ckey)
        if member is None:
            return
        held = {r.id for r in member.roles}
        reason = f"Unbanned by {request.actor}"
        banished = self.ctx.role_id("banished")
        permabanished = self.ctx.role_id("permabanished")
        infantry = self.ctx.role_id("infantry")
        try:
            if banished is not None and banished in held:
                await member.remove_roles(discord.Object(id=banished), reason=reason)
            if permabanished is not None and permabanished in held:
                await member.remove_roles(discord.Object(id=permabanished), reason=reason)
                if infantry is not None:
                    await member.add_roles(discord.Object(id=infantry), reason=reason)
        except discord.HTTPException as e:
            log.warning("Missing perms to edit roles for %s: %s", member, e)
