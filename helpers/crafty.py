from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple
from urllib.parse import quote

import httpx

from config import DEFAULT_RESOLVER_URL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolveOutcome:
    """Aliases found for one nick, or the reason none could be obtained."""

    aliases: Tuple[str, ...] = ()
    degraded: Optional[str] = None  # timeout, network, http_status, malformed, unsuccessful, no_usernames

    @property
    def ok(self) -> bool:
        return self.degraded is None

    @classmethod
    def failed(cls, reason: str) -> "ResolveOutcome":
        return cls(aliases=(), degraded=reason)


class AliasResolver(Protocol):
    async def resolve(self, alias: str) -> ResolveOutcome: ...


def extract_usernames(payload: object) -> Optional[List[str]]:
    """Pull ``data.usernames[].username`` out of a players response, lowercased and deduplicated.

    Missing ``data`` or ``usernames`` counts as no usernames; returns None
    when the body has the wrong shape.
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if data is None:
        return []
    if not isinstance(data, dict):
        return None
    usernames = data.get("usernames")
    if usernames is None:
        return []
    if not isinstance(usernames, list):
        return None
    seen: List[str] = []
    for item in usernames:
        if not isinstance(item, dict) or not isinstance(item.get("username"), str):
            return None
        name = item["username"].strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


class CraftyResolver:
    """Looks up other usernames of a player through the crafty.gg players API."""

    def __init__(
        self,
        url: str = DEFAULT_RESOLVER_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def resolve(self, alias: str) -> ResolveOutcome:
        # httpx timeouts apply per phase; this bounds the whole call
        try:
            outcome = await asyncio.wait_for(self._fetch(alias), self.timeout)
        except asyncio.TimeoutError:
            outcome = ResolveOutcome.failed("timeout")
        if outcome.ok:
            logger.debug("Resolver found %d aliases for %s: %s", len(outcome.aliases), alias, outcome.aliases)
        else:
            logger.warning("Resolver returned no aliases for %s (%s)", alias, outcome.degraded)
        return outcome

    async def _fetch(self, alias: str) -> ResolveOutcome:
        url = self.url.format(nick=quote(alias, safe=""))
        headers = {"user-agent": "nickleak-api/1.0", "accept": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.get(url, headers=headers)
        except httpx.TimeoutException:
            return ResolveOutcome.failed("timeout")
        except httpx.HTTPError as e:
            logger.debug("Resolver request for %s failed: %r", alias, e)
            return ResolveOutcome.failed("network")

        # the API answers unknown players with a non-2xx status and a JSON error body
        try:
            payload = r.json()
        except ValueError:
            return ResolveOutcome.failed("http_status" if r.is_error else "malformed")

        if not isinstance(payload, dict):
            return ResolveOutcome.failed("malformed")
        if not payload.get("success"):
            return ResolveOutcome.failed("http_status" if r.is_error else "unsuccessful")

        usernames = extract_usernames(payload)
        if usernames is None:
            return ResolveOutcome.failed("malformed")
        if not usernames:
            return ResolveOutcome.failed("no_usernames")
        return ResolveOutcome(aliases=tuple(usernames))
