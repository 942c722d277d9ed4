from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from exceptions import ConfigError
from models.config import BadWordRule, GameServerConfig

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Discord
    DISCORD_TOKEN: str = ""
    DISCORD_GUILD_ID: int = 0
    DISCORD_ADMIN_ROLE_IDS: str = ""
    DISCORD_MOD_ROLE_IDS: str = ""
    DISCORD_STAFF_CHANNEL_ID: int = 0
    DISCORD_COMMAND_PREFIX: str = "!s "
    # name -> role id, e.g. {"banished": 1, "permabanished": 2, "infantry": 3}
    DISCORD_ROLE_IDS: dict[str, int] = {}
    DISCORD_INVITE: str = "https://discord.gg/civ13"
    RULES_URL: str = "https://civ13.com/rules"

    # Game servers / moderation
    GAMESERVERS_PATH: str = "gameservers.json"
    BADWORDS_PATH: str = "badwords.json"
    PANIC_BUNKER: bool = False
    BLACKLISTED_COUNTRIES: str = ""
    BLACKLISTED_REGIONS: str = ""
    PERMITTED_CKEYS: str = ""
    MINIMUM_ACCOUNT_AGE_DAYS: int = 30
    GAME_EVENT_TOKEN: str = ""

    # DB
    DB_HOST: str = "db"
    DB_PORT: int = 5432
    DB_USER: str = "civ13"
    DB_PASSWORD: str = "civ13_password"
    DB_NAME: str = "civ13_bot"
    DB_URL: str = ""

    # App
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def database_url(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    def roles_from_csv(self, csv: str) -> list[int]:
        return [int(x) for x in csv.split(",") if x.strip()]

    def values_from_csv(self, csv: str) -> list[str]:
        return [x.strip() for x in csv.split(",") if x.strip()]

    @property
    def staff_role_ids(self) -> set[int]:
        return set(self.roles_from_csv(self.DISCORD_ADMIN_ROLE_IDS)) | set(self.roles_from_csv(self.DISCORD_MOD_ROLE_IDS))


def _read_json(path: str | Path):
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"unable to read `{path}`: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"`{path}` is not valid JSON: {e}") from e


def load_gameservers(path: str | Path) -> list[GameServerConfig]:
    """Load and validate the game server definitions.

    A missing required property or a duplicate key is fatal.
    """
    raw = _read_json(path)
    if not isinstance(raw, list):
        raise ConfigError(f"`{path}` must contain a list of game servers")
    configs: list[GameServerConfig] = []
    seen: set[str] = set()
    for item in raw:
        try:
            cfg = GameServerConfig.model_validate(item)
        except ValidationError as e:
            raise ConfigError(f"Gameserver definition is invalid: {e}") from e
        if cfg.key in seen:
            raise ConfigError(f"Duplicate gameserver key: {cfg.key}")
        seen.add(cfg.key)
        configs.append(cfg)
    return configs


def load_badwords(path: str | Path) -> list[BadWordRule]:
    if not Path(path).exists():
        log.warning("badwords file `%s` not found; chat moderation has no rules", path)
        return []
    raw = _read_json(path)
    try:
        return [BadWordRule.model_validate(item) for item in raw]
    except ValidationError as e:
        raise ConfigError(f"Bad word rule is invalid: {e}") from e


settings = Settings()
