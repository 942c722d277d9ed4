import pytest

from models.config import GameServerConfig
from services.context import AppContext
from services.gameserver import GameServerSession
from tests.stubs import StubBot, StubChannel, StubGuild, StubVerifier
from utils.config import Settings
from utils.liveness import StaticLivenessProbe

STAFF_CHANNEL = 900
OOC_CHANNEL = 101
ASAY_CHANNEL = 102
PLAYERCOUNT_CHANNEL = 103

ROLES = {
    "banished": 10,
    "permabanished": 11,
    "infantry": 12,
    "veteran": 13,
    "red": 14,
    "blue": 15,
    "organizer": 16,
    "Admin": 20,
}


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DISCORD_GUILD_ID=1,
        DISCORD_STAFF_CHANNEL_ID=STAFF_CHANNEL,
        DISCORD_ADMIN_ROLE_IDS="20",
        DISCORD_MOD_ROLE_IDS="21",
        DISCORD_ROLE_IDS=ROLES,
        DISCORD_INVITE="https://discord.gg/civ13",
        RULES_URL="https://civ13.com/rules",
        GAME_EVENT_TOKEN="secret",
        MINIMUM_ACCOUNT_AGE_DAYS=30,
    )


@pytest.fixture
def guild():
    return StubGuild()


@pytest.fixture
def bot(guild):
    channels = [
        StubChannel(STAFF_CHANNEL, "staff"),
        StubChannel(OOC_CHANNEL, "ooc"),
        StubChannel(ASAY_CHANNEL, "asay"),
        StubChannel(PLAYERCOUNT_CHANNEL, "players-0"),
    ]
    return StubBot(channels, guild)


@pytest.fixture
def ctx(settings, bot):
    return AppContext(settings=settings, bot=bot, verifier=StubVerifier(), probe=StaticLivenessProbe(True))


def make_config(basedir, key="tdm", **overrides):
    data = dict(
        basedir=str(basedir),
        key=key,
        name=key.upper(),
        ip="1.2.3.4",
        port=1714,
        host="EU",
        enabled=True,
        relay_method="file",
        ooc=OOC_CHANNEL,
        asay=ASAY_CHANNEL,
        playercount=PLAYERCOUNT_CHANNEL,
    )
    data.update(overrides)
    return GameServerConfig(**data)


@pytest.fixture
def session(ctx, tmp_path):
    basedir = tmp_path / "tdm"
    (basedir / "SQL").mkdir(parents=True)
    return GameServerSession(ctx, make_config(basedir))
