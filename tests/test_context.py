import pytest

from models.records import BanRequest
from services.context import AppContext
from services.gameserver import GameServerSession
from tests.conftest import OOC_CHANNEL, STAFF_CHANNEL, make_config
from tests.stubs import FailingChannel, StubBot

pytestmark = pytest.mark.asyncio


async def test_send_truncates_long_messages(ctx, bot):
    assert await ctx.send(OOC_CHANNEL, "x" * 2500)
    assert len(bot.get_channel(OOC_CHANNEL).sent[0]) == 2000


async def test_send_to_missing_or_failing_channel(settings):
    ctx = AppContext(settings=settings, bot=StubBot([FailingChannel(5)]))
    assert not await ctx.send(5, "hi")
    assert not await ctx.send(6, "hi")
    assert not await ctx.send(None, "hi")


async def test_staff_notice_skipped_without_channel(ctx, bot):
    ctx.settings.DISCORD_STAFF_CHANNEL_ID = 0
    assert not await ctx.staff_notice("hello")
    assert bot.get_channel(STAFF_CHANNEL).sent == []


async def test_ban_everywhere_hits_enabled_servers(ctx, tmp_path):
    on = GameServerSession(ctx, make_config(tmp_path / "a", key="a"))
    off = GameServerSession(ctx, make_config(tmp_path / "b", key="b", enabled=False))
    result = await ctx.ban_everywhere(BanRequest("griefer", "perma", "x"))
    assert result.count("banned **griefer**") == 1
    assert on.path("/SQL/discord2ban.txt").read_text() == "Civ13:::griefer:::999 years:::x\n"
    assert not off.path("/SQL/discord2ban.txt").exists()


async def test_too_many_servers_warns(ctx, tmp_path, caplog):
    for i in range(6):
        GameServerSession(ctx, make_config(tmp_path / str(i), key=f"s{i}", enabled=False))
    assert len(ctx.gameservers) == 6
    assert "more than 5 gameservers" in caplog.text
