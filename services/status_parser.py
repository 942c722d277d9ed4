# services/status_parser.py
from __future__ import annotations

import logging
from pathlib import Path

import discord

from models.records import StatusSnapshot
from utils.liveness import LivenessProbe
from utils.text import sanitize_input

log = logging.getLogger(__name__)

LABELS = (
    "<b>Address</b>: ",
    "<b>Map</b>: ",
    "<b>Gamemode</b>: ",
    "<b>Players</b>: ",
    "realtime=",
    "world.address=",
    "round_timer=",
    "map=",
    "epoch=",
    "season=",
    "ckey_list=",
    "</b>",
    "<b>",
)


def _field(data: list[str], index: int) -> str | None:
    if index >= len(data):
        return None
    value = data[index].strip()
    return value or None


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_ckey_list(value: str | None) -> list[str]:
    if not value:
        return []
    players: list[str] = []
    for token in value.split("&"):
        ckey = sanitize_input(token)
        if ckey and ckey not in players:
            players.append(ckey)
    return players


def parse_status(raw: str | None) -> StatusSnapshot:
    """Decode the contents of `serverdata.txt`. Never raises."""
    if not raw:
        return StatusSnapshot.offline()
    for label in LABELS:
        raw = raw.replace(label, "")
    data = raw.split(";")
    status = _field(data, 0)
    return StatusSnapshot(
        online=status is None or "offline" not in status.lower(),
        status=status,
        address=_field(data, 1),
        map=_field(data, 2),
        gamemode=_field(data, 3),
        player_count=_to_int(_field(data, 4)),
        realtime=_field(data, 5),
        world_address=_field(data, 6),
        round_timer=_field(data, 7),
        map_name=_field(data, 8),
        epoch=_field(data, 9),
        season=_field(data, 10),
        ckeys=parse_ckey_list(_field(data, 11)),
    )


def format_round_time(round_timer: str | None) -> str | None:
    """`"26:05"` -> `"1d2h5m"`."""
    if not round_timer or ":" not in round_timer:
        return None
    hours_s, minutes_s = round_timer.split(":", 1)
    try:
        hours, minutes = int(hours_s), int(minutes_s)
    except ValueError:
        return None
    days, hours = divmod(hours, 24)
    return (f"{days}d" if days else "") + (f"{hours}h" if hours else "") + f"{minutes}m"


class StatusFileParser:
    def __init__(self, probe: LivenessProbe):
        self.probe = probe

    def read(self, path: str | Path, port: int) -> StatusSnapshot:
        if not self.probe.is_alive(port):
            return StatusSnapshot.offline()
        try:
            raw = Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError:
            log.warning("unable to open `%s`", path)
            return StatusSnapshot.offline()
        return parse_status(raw)


def status_embed(name: str, host: str, snapshot: StatusSnapshot) -> discord.Embed:
    embed = discord.Embed(color=0xE1452D)
    if not snapshot.online:
        embed.add_field(name=name, value="Offline")
        return embed
    if snapshot.address:
        embed.add_field(name=name, value=f"<{snapshot.address}>", inline=False)
    embed.add_field(name="Host", value=host, inline=True)
    if round_time := format_round_time(snapshot.round_timer):
        embed.add_field(name="Round Time", value=round_time, inline=True)
    if snapshot.map_name:
        embed.add_field(name="Map", value=snapshot.map_name, inline=True)
    if snapshot.epoch:
        embed.add_field(name="Epoch", value=snapshot.epoch, inline=True)
    embed.add_field(name="Players", value=", ".join(snapshot.ckeys) or "N/A", inline=True)
    if snapshot.season:
        embed.add_field(name="Season", value=snapshot.season, inline=True)
    return embed


def server_embed(name: str, host: str, ip: str, port: int, players: list[str]) -> discord.Embed:
    """Address card for a server whose files live on another host."""
    embed = discord.Embed(title=name, color=0xFF0000)
    embed.add_field(name="Server URL", value=f"byond://{ip}:{port}", inline=False)
    embed.add_field(name="Host", value=host, inline=True)
    embed.add_field(name=f"Players ({len(players)})", value=", ".join(players) or "N/A", inline=True)
    return embed
