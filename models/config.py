from __future__ import annotations

import logging
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

log = logging.getLogger(__name__)

OPTIONAL_CHANNELS = (
    "discussion",
    "playercount",
    "ooc",
    "lobby",
    "asay",
    "ic",
    "transit",
    "adminlog",
    "debug",
    "garbage",
    "runtime",
    "attack",
)


class MatchMethod(str, Enum):
    """How a blacklisted phrase is matched against a chat line."""

    EXACT = "exact"
    CYRILLIC = "cyrillic"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    CONTAINS = "contains"


_LEGACY_METHODS = {
    "str_starts_with": MatchMethod.STARTS_WITH,
    "str_ends_with": MatchMethod.ENDS_WITH,
    "str_contains": MatchMethod.CONTAINS,
}


class BadWordRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    word: str = ""
    method: MatchMethod = MatchMethod.CONTAINS
    category: str = "general"
    duration: str = "1 day"
    reason: str = "Blacklisted phrase"
    warnings: int = 1

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, v):
        if isinstance(v, MatchMethod):
            return v
        v = str(v).strip().lower()
        if v in _LEGACY_METHODS:
            return _LEGACY_METHODS[v]
        try:
            return MatchMethod(v)
        except ValueError:
            log.warning("unknown bad word method %r; using 'contains'", v)
            return MatchMethod.CONTAINS

    @field_validator("word")
    @classmethod
    def _lower_word(cls, v: str) -> str:
        return v.lower()


class GameServerConfig(BaseModel):
    """One configured game server, as read from the gameservers file."""

    model_config = ConfigDict(frozen=True)

    # required
    basedir: str
    key: str
    name: str
    ip: str
    port: int
    host: str

    enabled: bool = False
    supported: bool = False
    legacy: bool = True
    moderate: bool = True
    panic_bunker: bool = False
    log_attacks: bool = True
    relay_method: Literal["file", "webhook"] = "webhook"
    local: bool = True  # basedir is readable from this host

    # discord channel ids
    discussion: int | None = None
    playercount: int | None = None
    ooc: int | None = None
    lobby: int | None = None
    asay: int | None = None
    ic: int | None = None
    transit: int | None = None
    adminlog: int | None = None
    debug: int | None = None
    garbage: int | None = None
    runtime: int | None = None
    attack: int | None = None

    @field_validator("basedir")
    @classmethod
    def _strip_basedir(cls, v: str) -> str:
        return v.rstrip("/")

    def missing_channels(self) -> list[str]:
        return [name for name in OPTIONAL_CHANNELS if getattr(self, name) is None]
