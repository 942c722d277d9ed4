# services/scrutiny.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from exceptions import LookupFailed
from models.records import PERMABAN_DURATION, BanRequest, CkeyInfo, UnbanRequest
from services.lookups import old_enough
from utils.text import sanitize_input

if TYPE_CHECKING:
    from services.context import AppContext
    from services.gameserver import GameServerSession

log = logging.getLogger(__name__)

PANIC_BAN_DURATION = "1 hour"


def collect_ckey_info(ctx: "AppContext", ckey: str) -> CkeyInfo:
    """Cross-reference the player logs of every server for a ckey's IPs, CIDs and alts.

    Player log lines are `ckey;ip;cid`; an alt is another ckey seen on one of
    the same IPs or CIDs.
    """
    rows: list[tuple[str, str, str]] = []
    for gs in ctx.gameservers.values():
        rows.extend(gs.player_log_rows())
    info = CkeyInfo()
    for row_ckey, ip, cid in rows:
        if row_ckey != ckey:
            continue
        if ip and ip not in info.ips:
            info.ips.append(ip)
        if cid and cid not in info.cids:
            info.cids.append(cid)
    for row_ckey, ip, cid in rows:
        if row_ckey == ckey or row_ckey in info.alts:
            continue
        if (ip and ip in info.ips) or (cid and cid in info.cids):
            info.alts.append(row_ckey)
    info.altbanned = any(gs.ban_store.is_banned(alt) for alt in info.alts for gs in ctx.gameservers.values())
    return info


class ScrutinyEngine:
    """First-contact risk evaluation for player identities."""

    def __init__(self, ctx: "AppContext"):
        self.ctx = ctx

    async def _ban(self, request: BanRequest, tag: str = "") -> str:
        result = await self.ctx.ban_everywhere(request)
        await self.ctx.staff_notice(result + (f" {tag}" if tag else ""))
        return result

    def _investigation(self, ckey: str) -> BanRequest:
        return BanRequest(ckey, PERMABAN_DURATION, f"Account under investigation. Appeal at {self.ctx.settings.DISCORD_INVITE}")

    async def scrutinize(self, ckey: str, gameserver: "GameServerSession | None" = None) -> list[str]:
        """Evaluate one observed ckey. Returns the ban messages issued (empty when none)."""
        ckey = sanitize_input(ckey)
        if not ckey:
            return []
        issued: list[str] = []
        if ckey not in self.ctx.permitted and ckey not in self.ctx.seen_players:
            self.ctx.seen_players.add(ckey)
            issued.extend(await self._first_seen_checks(ckey))

        if self.ctx.verifier is not None and await self.ctx.verifier.is_verified(ckey):
            return issued  # verified users are exempt from the rest

        panic = self.ctx.panic_bunker or (gameserver is not None and gameserver.panic_bunker)
        if panic or self._understaffed(gameserver):
            if result := await self.panic_ban(ckey):
                issued.append(result)
            return issued

        if ckey not in self.ctx.permitted and ckey not in self.ctx.age_cache:
            if result := await self._age_check(ckey):
                issued.append(result)
        return issued

    async def _first_seen_checks(self, ckey: str) -> list[str]:
        info = collect_ckey_info(self.ctx, ckey)
        if info.altbanned:
            return [await self._ban(self._investigation(ckey), "(Alt Banned)")]
        settings = self.ctx.settings
        countries = {c.upper() for c in settings.values_from_csv(settings.BLACKLISTED_COUNTRIES)}
        regions = settings.values_from_csv(settings.BLACKLISTED_REGIONS)
        for ip in info.ips:
            if countries and self.ctx.geo is not None:
                try:
                    if await self.ctx.geo.country(ip) in countries:
                        return [await self._ban(self._investigation(ckey), "(Blacklisted Country)")]
                except LookupFailed as e:
                    log.warning("[scrutiny] %s", e)
            if any(ip.startswith(region) for region in regions):
                return [await self._ban(self._investigation(ckey), "(Blacklisted Region)")]
        return []

    def _understaffed(self, gameserver: "GameServerSession | None") -> bool:
        """Zero admins online and zero active votes, per the last pushed server info."""
        info = gameserver.serverinfo if gameserver is not None else {}
        if "admins" not in info or "vote" not in info:
            return False
        try:
            return int(info["admins"]) == 0 and int(info["vote"]) == 0
        except (TypeError, ValueError):
            return False

    async def _age_check(self, ckey: str) -> str | None:
        if self.ctx.ages is None:
            return None
        try:
            joined = await self.ctx.ages.joined(ckey)
        except LookupFailed as e:
            log.warning("[scrutiny] %s", e)
            return None
        if old_enough(joined, self.ctx.settings.MINIMUM_ACCOUNT_AGE_DAYS):
            self.ctx.age_cache[ckey] = joined
            return None
        request = BanRequest(
            ckey,
            PERMABAN_DURATION,
            f"Byond account `{ckey}` must register on Discord and be manually approved to play. ({joined})",
        )
        return await self._ban(request)

    # ---- panic bunker ------------------------------------------------

    async def panic_ban(self, ckey: str) -> str | None:
        """Require verification; each ckey is banned at most once per panic window."""
        if ckey in self.ctx.panic_bans:
            return None
        self.ctx.panic_bans.add(ckey)
        request = BanRequest(
            ckey,
            PANIC_BAN_DURATION,
            f"The server is currently restricted. You must come to Discord and link your byond account before you can play: {self.ctx.settings.DISCORD_INVITE}",
        )
        log.info("[scrutiny] panic banning %s", ckey)
        return await self.ctx.ban_everywhere(request)

    async def lift_panic_bans(self) -> list[str]:
        lifted = sorted(self.ctx.panic_bans)
        for ckey in lifted:
            for gs in self.ctx.enabled_gameservers():
                await gs.ban_store.unban(UnbanRequest(ckey))
        self.ctx.panic_bans.clear()
        return lifted

    async def set_panic_bunker(self, enabled: bool) -> list[str]:
        self.ctx.panic_bunker = enabled
        log.info("[scrutiny] panic bunker %s", "enabled" if enabled else "disabled")
        if not enabled:
            return await self.lift_panic_bans()
        return []
