# services/lookups.py
"""External lookups used by account scrutiny: IP geolocation and BYOND account age."""
from __future__ import annotations

import logging
import re
from datetime import date, timedelta

import aiohttp

from exceptions import LookupFailed

log = logging.getLogger(__name__)

_TIMEOUT = aiohttp.ClientTimeout(total=5)
_JOINED_RX = re.compile(r'joined\s*=\s*"(?P<joined>\d{4}-\d{2}-\d{2})"')


class GeoLookup:
    """Resolve an IP to an ISO country code via ip-api.com."""

    url = "http://ip-api.com/json/{ip}?fields=status,countryCode"

    def __init__(self):
        self._cache: dict[str, str] = {}

    async def country(self, ip: str) -> str:
        if ip in self._cache:
            return self._cache[ip]
        try:
            async with aiohttp.ClientSession(timeout=_TIMEOUT) as ses, ses.get(self.url.format(ip=ip)) as r:
                data = await r.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            raise LookupFailed(f"geo lookup for {ip} failed: {e}") from e
        if not isinstance(data, dict) or data.get("status") != "success":
            raise LookupFailed(f"geo lookup for {ip} returned {data!r}")
        code = str(data.get("countryCode", "")).upper()
        self._cache[ip] = code
        return code


class AgeLookup:
    """Fetch the join date of a BYOND account."""

    url = "https://secure.byond.com/members/{ckey}?format=text"

    async def joined(self, ckey: str) -> str:
        try:
            async with aiohttp.ClientSession(timeout=_TIMEOUT) as ses, ses.get(self.url.format(ckey=ckey)) as r:
                text = await r.text()
        except (aiohttp.ClientError, TimeoutError) as e:
            raise LookupFailed(f"age lookup for {ckey} failed: {e}") from e
        m = _JOINED_RX.search(text)
        if not m:
            raise LookupFailed(f"no join date for {ckey}")
        return m.group("joined")


def old_enough(joined: str, minimum_days: int, today: date | None = None) -> bool:
    """True when the account joined at least `minimum_days` ago. Unparseable dates fail."""
    try:
        joined_on = date.fromisoformat(joined)
    except ValueError:
        return False
    today = today or date.today()
    return joined_on <= today - timedelta(days=minimum_days)
