import types

import pytest

from services.accounts_cog import AccountsCog
from services.gameserver_cog import GameServerCog
from services.scrutiny import ScrutinyEngine
from tests.conftest import ASAY_CHANNEL, OOC_CHANNEL, ROLES
from tests.stubs import StubInteraction

pytestmark = pytest.mark.asyncio

MOD = [ROLES["Admin"]]


@pytest.fixture
def cog(bot, ctx, session):
    ctx.scrutiny = ScrutinyEngine(ctx)
    return GameServerCog(bot, ctx)


def _message(channel_id, content, author_id=5, bot=False):
    author = types.SimpleNamespace(id=author_id, bot=bot, display_name="Discordian")
    return types.SimpleNamespace(
        author=author,
        content=content,
        clean_content=content,
        channel=types.SimpleNamespace(id=channel_id),
    )


async def test_ban_requires_staff(cog, session):
    inter = StubInteraction(role_ids=[])
    await cog.ban.callback(cog, inter, "griefer", "1 day", "x")
    assert inter.response.messages == ["No permission."]
    assert not session.path("/SQL/discord2ban.txt").exists()


async def test_ban_and_unban(cog, session):
    inter = StubInteraction(role_ids=MOD, name="Mod")
    await cog.ban.callback(cog, inter, "griefer", "1 day", "spam", "tdm")
    assert session.path("/SQL/discord2ban.txt").read_text() == "Mod:::griefer:::1 day:::spam\n"
    assert "banned **griefer**" in inter.replies[0]

    inter = StubInteraction(role_ids=MOD, name="Mod")
    await cog.unban.callback(cog, inter, "griefer")
    assert session.path("/SQL/discord2unban.txt").read_text() == "Mod:::griefer"


async def test_ban_unknown_server(cog):
    inter = StubInteraction(role_ids=MOD)
    await cog.ban.callback(cog, inter, "griefer", "1 day", "x", "nope")
    assert "No game server `nope`." in inter.replies[0]


async def test_bancheck(cog, session):
    session.path("/SQL/bans.txt").write_text("Server;x;y;evasion;Server;2026-01-01;z;999 years;griefer|||\n")
    inter = StubInteraction(role_ids=MOD)
    await cog.bancheck.callback(cog, inter, "griefer")
    assert inter.replies == ["**TDM:** banned by **Server** on 2026-01-01 for **999 years** (permanent): evasion"]


async def test_rankme_needs_link(cog, ctx, session):
    session.path("/SQL/awards.txt").write_text("me;Me;wounded badge\n")
    inter = StubInteraction(user_id=77)
    await cog.rankme.callback(cog, inter)
    assert "Link your byond account" in inter.followup.sent[0]["embed"].description

    ctx.verifier.links[77] = "me"
    inter = StubInteraction(user_id=77)
    await cog.rankme.callback(cog, inter)
    assert inter.replies == ["**me** has a total rank of **0.5**"]


async def test_panic_toggle(cog, ctx, session):
    inter = StubInteraction(role_ids=MOD)
    await cog.panic_on.callback(cog, inter)
    assert ctx.panic_bunker
    await ctx.scrutiny.scrutinize("newbie", session)
    inter = StubInteraction(role_ids=MOD)
    await cog.panic_off.callback(cog, inter)
    assert not ctx.panic_bunker
    assert inter.replies == ["Panic bunker disabled. Lifted 1 panic ban(s)."]


async def test_chat_relay_into_game(cog, ctx, session):
    ctx.verifier.links[5] = "linked"
    await cog.on_message(_message(OOC_CHANNEL, "hello game"))
    await cog.on_message(_message(OOC_CHANNEL, "from a bot", bot=True))
    await cog.on_message(_message(999, "elsewhere"))
    assert session.path("/SQL/discord2ooc.txt").read_text() == "linked:::hello game\n"

    await cog.on_message(_message(ASAY_CHANNEL, "admin chat", author_id=6))
    assert session.path("/SQL/discord2admin.txt").read_text() == "Discordian:::admin chat\n"


async def test_link_and_unlink(bot, ctx):
    accounts = AccountsCog(bot, ctx)
    inter = StubInteraction(user_id=31)
    await accounts.link.callback(accounts, inter, "Some Guy")
    assert ctx.verifier.links[31] == "someguy"
    assert inter.response.messages[0].startswith("Linked **")

    other = StubInteraction(user_id=32)
    await accounts.link.callback(accounts, other, "someguy")
    assert "already linked" in other.response.messages[0]

    await accounts.unlink.callback(accounts, inter)
    assert 31 not in ctx.verifier.links
