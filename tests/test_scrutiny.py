from datetime import date, timedelta

import pytest

from exceptions import LookupFailed
from services.scrutiny import ScrutinyEngine, collect_ckey_info
from tests.conftest import STAFF_CHANNEL

pytestmark = pytest.mark.asyncio

OLD = "2010-05-01"


class StubGeo:
    def __init__(self, countries=None, fail=False):
        self.countries = countries or {}
        self.fail = fail

    async def country(self, ip):
        if self.fail:
            raise LookupFailed("geo down")
        return self.countries.get(ip, "US")


class StubAges:
    def __init__(self, joined=None, default=OLD):
        self.joined_on = joined or {}
        self.default = default
        self.calls = []

    async def joined(self, ckey):
        self.calls.append(ckey)
        return self.joined_on.get(ckey, self.default)


@pytest.fixture
def engine(ctx, session):
    ctx.geo = StubGeo()
    ctx.ages = StubAges()
    ctx.scrutiny = ScrutinyEngine(ctx)
    return ctx.scrutiny


def _bans(session):
    path = session.path("/SQL/discord2ban.txt")
    return path.read_text().splitlines() if path.exists() else []


async def test_known_players_pass(engine, ctx, session):
    session.path("/serverdata.txt").write_text("Online;a;b;c;2;e;f;g;h;i;j;alice&bob")
    await session.serverinfo_tick()
    assert _bans(session) == []
    assert ctx.seen_players == {"alice", "bob"}
    assert set(ctx.age_cache) == {"alice", "bob"}


async def test_panic_bunker_bans_once_and_skips_age_check(engine, ctx, session):
    ctx.panic_bunker = True
    first = await engine.scrutinize("Newbie", session)
    second = await engine.scrutinize("newbie", session)
    assert len(first) == 1 and second == []
    [line] = _bans(session)
    assert line.startswith("Civ13:::newbie:::1 hour:::The server is currently restricted.")
    assert ctx.ages.calls == []


async def test_understaffed_server_triggers_panic_ban(engine, ctx, session):
    session.serverinfo = {"admins": 0, "vote": 0}
    await engine.scrutinize("newbie", session)
    assert ":::1 hour:::" in _bans(session)[0]


async def test_staffed_server_runs_age_check(engine, ctx, session):
    session.serverinfo = {"admins": 1, "vote": 0}
    await engine.scrutinize("newbie", session)
    assert _bans(session) == []
    assert ctx.ages.calls == ["newbie"]


async def test_verified_players_are_exempt(engine, ctx, session):
    ctx.panic_bunker = True
    ctx.verifier.links[1] = "verified"
    assert await engine.scrutinize("verified", session) == []
    assert _bans(session) == []


async def test_lifting_panic_bunker_unbans(engine, ctx, session):
    await engine.set_panic_bunker(True)
    await engine.scrutinize("newbie", session)
    lifted = await engine.set_panic_bunker(False)
    assert lifted == ["newbie"]
    assert ctx.panic_bans == set()
    assert session.path("/SQL/discord2unban.txt").read_text() == "Civ13:::newbie"


async def test_young_account_is_banned(engine, ctx, session):
    joined = (date.today() - timedelta(days=3)).isoformat()
    ctx.ages = StubAges(default=joined)
    await engine.scrutinize("fresh", session)
    [line] = _bans(session)
    assert line == (
        f"Civ13:::fresh:::999 years:::Byond account `fresh` must register on Discord "
        f"and be manually approved to play. ({joined})"
    )
    assert "fresh" not in ctx.age_cache


async def test_age_lookup_is_cached(engine, ctx, session):
    await engine.scrutinize("veteran", session)
    await engine.scrutinize("veteran", session)
    assert ctx.ages.calls == ["veteran"]


async def test_permitted_ckeys_skip_checks(engine, ctx, session):
    ctx.permitted = {"friend"}
    await engine.scrutinize("friend", session)
    assert ctx.ages.calls == []
    assert "friend" not in ctx.seen_players


async def test_alt_of_banned_player(engine, ctx, session, bot):
    session.path("/SQL/playerlogs.txt").write_text("Alt1;1.1.1.1;cid1\nmain;1.1.1.1;cid2\nother;2.2.2.2;cid3\n")
    session.path("/SQL/bans.txt").write_text("Mod;x;y;cheating;Mod;2026-01-01;z;1 week;main|||\n")
    info = collect_ckey_info(ctx, "alt1")
    assert info.ips == ["1.1.1.1"]
    assert info.alts == ["main"]
    assert info.altbanned

    await engine.scrutinize("alt1", session)
    [line] = _bans(session)
    assert line == "Civ13:::alt1:::999 years:::Account under investigation. Appeal at https://discord.gg/civ13"
    assert bot.get_channel(STAFF_CHANNEL).sent[-1].endswith("(Alt Banned)")


async def test_blacklisted_country(engine, ctx, session):
    ctx.settings.BLACKLISTED_COUNTRIES = "ru, kp"
    ctx.geo = StubGeo({"5.5.5.5": "RU"})
    session.path("/SQL/playerlogs.txt").write_text("ivan;5.5.5.5;cid\n")
    await engine.scrutinize("ivan", session)
    assert "Account under investigation" in _bans(session)[0]


async def test_geo_failure_skips_country_check(engine, ctx, session):
    ctx.settings.BLACKLISTED_COUNTRIES = "RU"
    ctx.geo = StubGeo(fail=True)
    session.path("/SQL/playerlogs.txt").write_text("ivan;5.5.5.5;cid\n")
    await engine.scrutinize("ivan", session)
    assert _bans(session) == []


async def test_blacklisted_region(engine, ctx, session, bot):
    ctx.settings.BLACKLISTED_REGIONS = "10.0."
    session.path("/SQL/playerlogs.txt").write_text("lan;10.0.3.4;cid\n")
    await engine.scrutinize("lan", session)
    assert len(_bans(session)) == 1
    assert bot.get_channel(STAFF_CHANNEL).sent[-1].endswith("(Blacklisted Region)")


async def test_first_seen_checks_run_once(engine, ctx, session):
    ctx.settings.BLACKLISTED_REGIONS = "10.0."
    await engine.scrutinize("lan", session)
    session.path("/SQL/playerlogs.txt").write_text("lan;10.0.3.4;cid\n")
    await engine.scrutinize("lan", session)
    assert _bans(session) == []
