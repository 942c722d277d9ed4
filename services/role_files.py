# services/role_files.py
"""Whitelist, faction list and admin list generation.

These files are derived from Discord role membership and rewritten whole on
every sync; they are never edited line by line.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from models.records import WhitelistSyncRequest

if TYPE_CHECKING:
    from services.context import AppContext

log = logging.getLogger(__name__)


async def render_role_file(ctx: "AppContext", request: WhitelistSyncRequest) -> str | None:
    """Build the full file body from current membership; None if roles or guild are unavailable."""
    if not ctx.has_roles(request.roles):
        return None
    guild = ctx.guild()
    if guild is None or ctx.verifier is None:
        return None
    linked = await ctx.verifier.all()
    role_ids = {name: ctx.role_id(name) for name in request.roles}
    body = []
    for member in guild.members:
        ckey = linked.get(member.id)
        if not ckey:
            continue
        member_roles = {r.id for r in member.roles}
        held = [name for name, rid in role_ids.items() if rid in member_roles]
        if held:
            body.append(request.line_for(ckey, member.id, held))
    return "".join(body)


async def sync_role_file(ctx: "AppContext", request: WhitelistSyncRequest, paths: list[Path]) -> bool:
    body = await render_role_file(ctx, request)
    if body is None:
        return False
    ok = True
    for path in paths:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(body, encoding="utf-8")
        except OSError as e:
            log.warning("unable to open `%s`: %s", path, e)
            ok = False
    log.debug("[roles] rewrote %s for %d file(s)", request.kind.value, len(paths))
    return ok
