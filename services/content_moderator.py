# services/content_moderator.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Literal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.accounts import BadwordWarning
from models.config import BadWordRule, MatchMethod
from models.records import BanRequest
from utils.text import mask_word, sanitize_input

if TYPE_CHECKING:
    from services.context import AppContext
    from services.gameserver import GameServerSession

log = logging.getLogger(__name__)

_CYRILLIC = re.compile(r"[\u0400-\u04ff\u0500-\u052f]")


def _match_exact(word: str, lower: str) -> bool:
    # configured words may carry regex fragments (`colou?r`)
    try:
        pattern = re.compile(rf"\b{word}\b", re.IGNORECASE)
    except re.error:
        log.warning("badword `%s` is not a valid pattern; matching it literally", word)
        pattern = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
    return pattern.search(lower) is not None


def _match_cyrillic(word: str, lower: str) -> bool:
    return _CYRILLIC.search(lower) is not None


def _match_starts_with(word: str, lower: str) -> bool:
    return lower.startswith(word)


def _match_ends_with(word: str, lower: str) -> bool:
    return lower.endswith(word)


def _match_contains(word: str, lower: str) -> bool:
    return word in lower


MATCHERS: dict[MatchMethod, Callable[[str, str], bool]] = {
    MatchMethod.EXACT: _match_exact,
    MatchMethod.CYRILLIC: _match_cyrillic,
    MatchMethod.STARTS_WITH: _match_starts_with,
    MatchMethod.ENDS_WITH: _match_ends_with,
    MatchMethod.CONTAINS: _match_contains,
}
if set(MATCHERS) != set(MatchMethod):
    raise RuntimeError("every MatchMethod needs a matcher")


def first_violation(text: str, rules: list[BadWordRule]) -> BadWordRule | None:
    lower = text.lower()
    for rule in rules:
        if MATCHERS[rule.method](rule.word, lower):
            return rule
    return None


class WarningStore:
    """Warning counts for one chat scope (`ooc` or `ic`).

    Persists to the `badword_warnings` table; without a database the counts
    live only for the process lifetime.
    """

    def __init__(self, scope: str, session_maker: async_sessionmaker[AsyncSession] | None = None):
        self.scope = scope
        self.session_maker = session_maker
        self._memory: dict[tuple[str, str], int] = {}

    async def increment(self, ckey: str, category: str) -> int:
        if self.session_maker is None:
            key = (ckey, category)
            self._memory[key] = self._memory.get(key, 0) + 1
            return self._memory[key]
        async with self.session_maker() as s:
            return await BadwordWarning.increment(s, scope=self.scope, ckey=ckey, category=category)

    async def count(self, ckey: str, category: str) -> int:
        if self.session_maker is None:
            return self._memory.get((ckey, category), 0)
        async with self.session_maker() as s:
            return await BadwordWarning.fetch_count(s, scope=self.scope, ckey=ckey, category=category)


@dataclass(slots=True)
class Verdict:
    action: Literal["clean", "exempt", "warned", "banned"]
    message: str = ""
    rule: BadWordRule | None = None


class ContentModerator:
    def __init__(self, ctx: "AppContext"):
        self.ctx = ctx

    async def moderate(
        self,
        gameserver: "GameServerSession",
        ckey: str,
        text: str,
        warnings: WarningStore,
        rules: list[BadWordRule] | None = None,
    ) -> Verdict:
        """Check one chat line; only the first matching rule acts."""
        if sanitize_input(ckey) == sanitize_input(self.ctx.bot_name):
            return Verdict("exempt")
        rule = first_violation(text, self.ctx.badwords if rules is None else rules)
        if rule is None:
            return Verdict("clean")
        if await self.ctx.is_staff_ckey(ckey):
            log.debug("[moderation] ignoring %s match from staff %s", rule.category, ckey)
            return Verdict("exempt", rule=rule)
        return await self._relay_violation(gameserver, ckey, rule, warnings)

    async def _relay_violation(self, gameserver: "GameServerSession", ckey: str, rule: BadWordRule, warnings: WarningStore) -> Verdict:
        filtered = mask_word(rule.word)
        settings = self.ctx.settings
        count = await warnings.increment(ckey, rule.category)
        if count > rule.warnings:
            reason = f"Blacklisted phrase ({filtered}). Review the rules at {settings.RULES_URL}. Appeal at {settings.DISCORD_INVITE}"
            result = await gameserver.ban_store.ban(BanRequest(ckey, rule.duration, reason))
            log.info("[moderation] %s banned after %d %s warnings", ckey, count - 1, rule.category)
            return Verdict("banned", result, rule)

        warning = (
            "You are currently violating a server rule. Further violations will result in an automatic ban "
            f"that will need to be appealed on our Discord. Review the rules at {settings.RULES_URL}. "
            f"Reason: {rule.reason} ({rule.category} => {filtered})"
        )
        await self.ctx.staff_notice(f"`{ckey}` is{warning[7:]}")
        await gameserver.direct_message(warning, self.ctx.bot_name, ckey)
        return Verdict("warned", warning, rule)
