from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from errors import ValidationError
from helpers.cache import ResultCache
from helpers.crafty import AliasResolver
from helpers.datasets import DatasetStore, Record, is_valid_dataset_name

logger = logging.getLogger(__name__)

ADD_FIELDS = ("file", "nick", "ip")


def normalize_nick(nick: str) -> str:
    return nick.strip().lower()


class SearchService:
    """Local lookup with a cached alias-resolution fallback."""

    def __init__(self, store: DatasetStore, cache: ResultCache, resolver: AliasResolver) -> None:
        self.store = store
        self.cache = cache
        self.resolver = resolver

    async def search(self, nick: str) -> List[Record]:
        nick = normalize_nick(nick)
        if not nick:
            raise ValidationError("nick")

        # direct hits are never cached
        results = self.store.search(nick)
        if results:
            return results

        cached = await self.cache.get(nick)
        if cached is not None:
            return cached

        outcome = await self.resolver.resolve(nick)
        merged: List[Record] = []
        for candidate in outcome.aliases:
            merged.extend(self.store.search(candidate))

        await self.cache.put(nick, merged)
        return merged

    async def add_record(self, data: Mapping[str, Any]) -> Record:
        """Validate a ``{file, nick, ip}`` body and upsert it into the named dataset."""
        fields: Dict[str, str] = {}
        for name in ADD_FIELDS:
            value = data.get(name)
            if value is None:
                raise ValidationError(name)
            if not isinstance(value, str):
                raise ValidationError(name, "must be a string")
            if not value.strip():
                raise ValidationError(name, "must not be empty")
            fields[name] = value.strip()
        if not is_valid_dataset_name(fields["file"]):
            raise ValidationError("file", "must be a plain file name")

        return await self.store.upsert(fields["file"], fields["nick"], fields["ip"])
