"""Plain records exchanged with the game server files.

Every type here mirrors one record shape of the legacy flat-file protocol.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

PERMABAN_DURATION = "999 years"
SERVER_ACTOR = "Server"


@dataclass(slots=True)
class StatusSnapshot:
    """Parsed `serverdata.txt`.

    Positional layout of the raw file (after label stripping):
        0 server status, 1 address, 2 map, 3 gamemode, 4 player count,
        5 realtime, 6 world address, 7 round timer, 8 map (again),
        9 epoch, 10 season, 11 `&`-joined ckey list
    """

    online: bool = False
    status: str | None = None
    address: str | None = None
    map: str | None = None
    gamemode: str | None = None
    player_count: int | None = None
    realtime: str | None = None
    world_address: str | None = None
    round_timer: str | None = None
    map_name: str | None = None
    epoch: str | None = None
    season: str | None = None
    ckeys: list[str] = field(default_factory=list)

    @classmethod
    def offline(cls) -> "StatusSnapshot":
        return cls(online=False)


@dataclass(slots=True)
class BanRecord:
    """One line of the authoritative ban file (written by the game process)."""

    fields: list[str]

    def _get(self, index: int) -> str | None:
        return self.fields[index] if len(self.fields) > index else None

    @property
    def actor(self) -> str | None:
        return self._get(0)

    @property
    def reason(self) -> str | None:
        return self._get(3)

    @property
    def banner(self) -> str | None:
        return self._get(4)

    @property
    def date(self) -> str | None:
        return self._get(5)

    @property
    def duration(self) -> str | None:
        return self._get(7)

    @property
    def ckey(self) -> str | None:
        return self._get(8)

    @property
    def is_permanent(self) -> bool:
        return self.actor == SERVER_ACTOR and self.duration == PERMABAN_DURATION


@dataclass(slots=True)
class BanRequest:
    ckey: str | int | None
    duration: str | None
    reason: str | None
    actor: str | None = None
    permanent: bool = False

    def validate(self) -> str | None:
        """Return a user-facing error message, or None when the request is usable."""
        if self.ckey is None or self.ckey == "":
            return "You must specify a ckey to ban."
        if not isinstance(self.ckey, (str, int)):
            return "The ckey must be a Byond username or Discord ID."
        if not self.duration:
            return "You must specify a duration to ban for."
        if not self.reason:
            return "You must specify a reason for the ban."
        return None

    def normalize_duration(self) -> None:
        if self.duration and self.duration.lower().startswith("perm"):
            self.duration = PERMABAN_DURATION
        if self.duration == PERMABAN_DURATION:
            self.permanent = True

    def to_line(self) -> str:
        return f"{self.actor}:::{self.ckey}:::{self.duration}:::{self.reason}\n"


@dataclass(slots=True)
class UnbanRequest:
    ckey: str
    actor: str | None = None

    def to_line(self) -> str:
        # the game process reads this file without a trailing newline
        return f"{self.actor}:::{self.ckey}"


class RoleFileKind(str, Enum):
    WHITELIST = "whitelist"
    FACTIONS = "factions"
    ADMINS = "admins"


DEFAULT_WHITELIST_ROLES = ("veteran", "infantry")
DEFAULT_FACTION_ROLES = ("red", "blue", "organizer")
# discord role name -> (in-game rank name, permission bitmask)
DEFAULT_ADMIN_ROLES: dict[str, tuple[str, str]] = {
    "Owner": ("Host", "65535"),
    "Chief Technical Officer": ("Chief Technical Officer", "65535"),
    "Host": ("Host", "65535"),
    "Head Admin": ("Head Admin", "16382"),
    "Manager": ("Manager", "16382"),
    "Supervisor": ("Supervisor", "16382"),
    "High Staff": ("High Staff", "16382"),
    "Admin": ("Admin", "16254"),
    "Moderator": ("Moderator", "25088"),
    "Mentor": ("Mentor", "16384"),
}


@dataclass(slots=True)
class WhitelistSyncRequest:
    kind: RoleFileKind
    roles: tuple[str, ...] = ()
    admin_roles: dict[str, tuple[str, str]] = field(default_factory=dict)

    def __post_init__(self):
        if not self.roles:
            if self.kind is RoleFileKind.WHITELIST:
                self.roles = DEFAULT_WHITELIST_ROLES
            elif self.kind is RoleFileKind.FACTIONS:
                self.roles = DEFAULT_FACTION_ROLES
            else:
                self.admin_roles = self.admin_roles or dict(DEFAULT_ADMIN_ROLES)
                self.roles = tuple(self.admin_roles)

    def line_for(self, ckey: str, discord_id: int, held: list[str]) -> str:
        """Render the lines one verified member contributes, given the role names they hold."""
        if self.kind is RoleFileKind.WHITELIST:
            return "".join(f"{ckey} = {discord_id}\n" for _ in held)
        if self.kind is RoleFileKind.FACTIONS:
            return "".join(f"{ckey};{role}\n" for role in held)
        # first matching admin role wins
        for role in self.roles:
            if role in held:
                rank, bitmask = self.admin_roles[role]
                return f"{ckey};{rank};{bitmask}|||\n"
        return ""


@dataclass(slots=True)
class AwardRecord:
    ckey: str
    display_name: str
    medal: str
    extra: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RankingEntry:
    ckey: str
    score: float


@dataclass(slots=True)
class CkeyInfo:
    ips: list[str] = field(default_factory=list)
    cids: list[str] = field(default_factory=list)
    alts: list[str] = field(default_factory=list)
    altbanned: bool = False
