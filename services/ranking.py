# services/ranking.py
from __future__ import annotations

import logging
from pathlib import Path

from models.records import AwardRecord, RankingEntry
from utils.text import format_score, sanitize_input

log = logging.getLogger(__name__)

MEDAL_POINTS: dict[str, float] = {
    "long service medal": 0.75,
    "combat medical badge": 2,
    "tank destroyer silver badge": 1,
    "tank destroyer gold badge": 2,
    "assault badge": 1.5,
    "wounded badge": 0.5,
    "wounded silver badge": 0.75,
    "wounded gold badge": 1,
    "iron cross 1st class": 3,
    "iron cross 2nd class": 5,
}


class RankingEngine:
    """Medal leaderboard, recomputed from the award log on every query."""

    def __init__(self, awards_path: Path, ranking_path: Path):
        self.awards_path = awards_path
        self.ranking_path = ranking_path

    def awards(self) -> list[AwardRecord]:
        records: list[AwardRecord] = []
        try:
            with self.awards_path.open("r", encoding="utf-8", errors="replace") as f:
                for line in f:
                    parts = line.strip().split(";")
                    if len(parts) < 3 or not (ckey := sanitize_input(parts[0])):
                        continue
                    records.append(AwardRecord(ckey, parts[1], parts[2], parts[3:]))
        except OSError:
            log.warning("unable to open `%s`", self.awards_path)
        return records

    def recalculate(self) -> list[RankingEntry]:
        totals: dict[str, float] = {}
        for award in self.awards():
            totals[award.ckey] = totals.get(award.ckey, 0) + MEDAL_POINTS.get(award.medal, 0)
        # sorted() is stable: equal scores keep first-seen order
        ranking = sorted((RankingEntry(ckey, score) for ckey, score in totals.items()), key=lambda e: e.score, reverse=True)
        try:
            self.ranking_path.parent.mkdir(parents=True, exist_ok=True)
            with self.ranking_path.open("w", encoding="utf-8") as f:
                for entry in ranking:
                    f.write(f"{format_score(entry.score)};{entry.ckey}\n")
        except OSError as e:
            log.warning("unable to write `%s`: %s", self.ranking_path, e)
        return ranking

    def _read_ranking(self) -> list[tuple[str, str]]:
        rows = []
        try:
            with self.ranking_path.open("r", encoding="utf-8") as f:
                for line in f:
                    parts = line.strip().split(";")
                    if len(parts) >= 2:
                        rows.append((parts[0], parts[1]))
        except OSError:
            log.warning("unable to open `%s`", self.ranking_path)
        return rows

    def top(self, n: int = 10) -> str:
        self.recalculate()
        lines = [f"({i}): **{ckey}** with **{score}** points." for i, (score, ckey) in enumerate(self._read_ranking()[:n], start=1)]
        return "\n".join(lines)

    def rank_of(self, ckey: str) -> str:
        ckey = sanitize_input(ckey)
        self.recalculate()
        for score, row_ckey in self._read_ranking():
            if row_ckey == ckey:
                return f"**{row_ckey}** has a total rank of **{score}**"
        return f"No medals found for ckey `{ckey}`."

    def medals(self, ckey: str) -> str:
        ckey = sanitize_input(ckey)
        lines = []
        for award in self.awards():
            if award.ckey != ckey:
                continue
            role = award.extra[1] if len(award.extra) > 1 else ""
            when = award.extra[2] if len(award.extra) > 2 else ""
            line = f"**{award.display_name}:** **{award.medal}**"
            if role:
                line += f", *{role}*"
            if when:
                line += f", {when}"
            lines.append(line)
        return "\n".join(lines) or f"No medals found for ckey `{ckey}`."
