import pytest

from exceptions import ConfigError
from models.records import RoleFileKind
from services.content_moderator import ContentModerator
from services.gameserver import GameServerSession
from tests.conftest import ASAY_CHANNEL, OOC_CHANNEL, PLAYERCOUNT_CHANNEL, ROLES, make_config
from tests.stubs import StubMember

pytestmark = pytest.mark.asyncio


async def test_relay_forwards_and_truncates(session, bot):
    log = session.path("/ooc.log")
    log.write_text("alice: hello\n\nbob: hi there\n")
    assert await session.relay_file(log, OOC_CHANNEL) == 2
    assert bot.get_channel(OOC_CHANNEL).sent == ["alice: hello", "bob: hi there"]
    assert log.read_text() == ""
    # nothing new, nothing sent
    assert await session.relay_file(log, OOC_CHANNEL) == 0


async def test_relay_tick_moderates_ooc(session, ctx):
    ctx.moderator = ContentModerator(ctx)
    ctx.badwords = []
    session.path("/ooc.log").write_text("alice: hello\n")
    session.path("/admin.log").write_text("adminguy: looking into it\n")
    await session.relay_tick()
    assert ctx.bot.get_channel(OOC_CHANNEL).sent == ["alice: hello"]
    assert ctx.bot.get_channel(ASAY_CHANNEL).sent == ["adminguy: looking into it"]


async def test_relay_missing_log_is_quiet(session):
    assert await session.relay_file(session.path("/ooc.log"), OOC_CHANNEL) == 0


async def test_playercount_renames_only_on_change(session, bot):
    channel = bot.get_channel(PLAYERCOUNT_CHANNEL)
    assert await session.playercount_channel_update(0)
    assert channel.renames == []
    assert await session.playercount_channel_update(3)
    assert await session.playercount_channel_update(3)
    assert channel.renames == ["players-3"]


async def test_playercount_tick_every_tenth(session, bot):
    channel = bot.get_channel(PLAYERCOUNT_CHANNEL)
    session.players = ["a", "b"]
    for _ in range(11):
        await session.playercount_tick()
    # ticks 0 and 10 act; the second finds the name unchanged
    assert channel.renames == ["players-2"]


async def test_poll_status_updates_players(session):
    session.path("/serverdata.txt").write_text("Online;a;b;c;2;e;f;g;h;i;j;Alice&bob")
    assert session.poll_status().online
    assert session.players == ["alice", "bob"]
    session.path("/serverdata.txt").write_text("Offline")
    session.poll_status()
    assert session.players == []


async def test_remote_server_shows_address_card(ctx, tmp_path):
    gs = GameServerSession(ctx, make_config(tmp_path / "remote", key="remote", local=False))
    gs.apply_serverinfo({"admins": 1, "ckeys": ["Alice", "bob"]})
    assert not gs.poll_status().online
    assert gs.players == ["alice", "bob"]
    embed = gs.status_embed()
    fields = {f.name: f.value for f in embed.fields}
    assert embed.title == "REMOTE"
    assert fields["Server URL"] == "byond://1.2.3.4:1714"
    assert fields["Players (2)"] == "alice, bob"


async def test_outbound_file_formats(session):
    assert session.ooc_message("hello", "alice")
    assert session.path("/SQL/discord2ooc.txt").read_text() == "alice:::hello\n"
    assert await session.direct_message("stop that", "Civ13", "bob")
    assert session.path("/SQL/discord2dm.txt").read_text() == "Civ13:::bob:::stop that\n"


async def test_admin_message_pings_when_no_admin_playing(session, ctx, guild, bot):
    guild.members.append(StubMember(9, [ROLES["Admin"]]))
    ctx.verifier.links[9] = "headadmin"
    assert await session.admin_message("help", "alice")
    assert session.path("/SQL/discord2admin.txt").read_text() == "alice:::help\n"
    assert bot.get_channel(ASAY_CHANNEL).sent == [f"<@&{ROLES['Admin']}>, urgent asay from **alice**: help"]

    session.players = ["headadmin"]
    assert await session.admin_message("again", "alice")
    assert len(bot.get_channel(ASAY_CHANNEL).sent) == 1


async def test_disabled_session_does_nothing(ctx, tmp_path):
    gs = GameServerSession(ctx, make_config(tmp_path / "off", key="off", enabled=False))
    gs.start()
    assert ctx.scheduler.names() == []
    assert not gs.ooc_message("hi", "alice")
    assert not gs.poll_status().online


async def test_start_registers_timers_once(session, ctx):
    session.start()
    session.start()
    assert sorted(ctx.scheduler.names()) == ["tdm:playercount", "tdm:relay", "tdm:serverinfo"]
    await session.stop()
    assert ctx.scheduler.names() == []


async def test_duplicate_key_rejected(session, ctx, tmp_path):
    with pytest.raises(ConfigError):
        GameServerSession(ctx, make_config(tmp_path / "again"))


async def test_sync_whitelist_file(session, ctx, guild):
    guild.members.extend([
        StubMember(1, [ROLES["veteran"], ROLES["infantry"]]),
        StubMember(2, [ROLES["infantry"]]),
        StubMember(3, [ROLES["infantry"]]),  # not linked
    ])
    ctx.verifier.links.update({1: "vet", 2: "grunt"})
    assert await session.sync_role_files(RoleFileKind.WHITELIST)
    assert session.path("/SQL/whitelist.txt").read_text() == "vet = 1\nvet = 1\ngrunt = 2\n"


async def test_sync_factions_file(session, ctx, guild):
    guild.members.append(StubMember(1, [ROLES["red"], ROLES["organizer"]]))
    ctx.verifier.links[1] = "redguy"
    assert await session.sync_role_files(RoleFileKind.FACTIONS)
    assert session.path("/SQL/factionlist.txt").read_text() == "redguy;red\nredguy;organizer\n"


async def test_sync_admins_needs_role_ids(session):
    # the admin ranks are not all configured in the test role map
    assert not await session.sync_role_files(RoleFileKind.ADMINS)
    assert not session.path("/SQL/admins.txt").exists()


async def test_player_log_rows(session):
    session.path("/SQL/playerlogs.txt").write_text("Alice;1.1.1.1;c1\nbroken\n;2.2.2.2;c2\n")
    assert session.player_log_rows() == [("alice", "1.1.1.1", "c1")]
