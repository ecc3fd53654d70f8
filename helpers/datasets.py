from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import aiofiles

from errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Record:
    """One search hit: an alias, its value, and the dataset it came from."""

    alias: str
    value: str
    dataset: str

    def to_json(self) -> Dict[str, str]:
        return {"nick": self.alias, "ip": self.value, "file": self.dataset}


@dataclass
class LoadReport:
    loaded: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)  # file name -> reason

    @property
    def degraded(self) -> bool:
        return bool(self.skipped)


def is_valid_dataset_name(name: str) -> bool:
    # must stay a plain file inside the data directory
    if not name or name in (".", ".."):
        return False
    if name.startswith("."):
        return False
    return "/" not in name and "\\" not in name and "\x00" not in name


def parse_dataset(raw: str) -> Dict[str, str]:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    for alias, value in data.items():
        if not isinstance(value, str):
            raise ValueError(f"value for '{alias}' is not a string")
    return data


def alias_key(alias: str) -> str:
    return alias.strip().lower()


class Dataset:
    """A named alias -> value mapping; aliases are unique ignoring case and surrounding whitespace."""

    def __init__(self, name: str, entries: Optional[Dict[str, str]] = None) -> None:
        self.name = name
        self._entries: Dict[str, Tuple[str, str]] = {}
        if entries:
            self.replace(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, alias: str) -> Optional[Record]:
        hit = self._entries.get(alias_key(alias))
        if hit is None:
            return None
        stored, value = hit
        return Record(alias=stored, value=value, dataset=self.name)

    def entries(self) -> Dict[str, str]:
        return {stored: value for stored, value in self._entries.values()}

    def replace(self, entries: Dict[str, str]) -> None:
        # later duplicates win
        indexed: Dict[str, Tuple[str, str]] = {}
        for alias, value in entries.items():
            indexed.pop(alias_key(alias), None)
            indexed[alias_key(alias)] = (alias, value)
        self._entries = indexed

    def staged_with(self, alias: str, value: str) -> Dict[str, str]:
        """Return a copy of the entries with ``alias`` inserted or overwritten in place."""
        key = alias_key(alias)
        staged: Dict[str, str] = {}
        replaced = False
        for stored, existing in self.entries().items():
            if alias_key(stored) == key:
                staged[alias] = value
                replaced = True
            else:
                staged[stored] = existing
        if not replaced:
            staged[alias] = value
        return staged


class DatasetStore:
    """All local datasets, loaded once from a directory of JSON files."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self._datasets: Dict[str, Dataset] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.report = LoadReport()

    def __iter__(self) -> Iterator[Dataset]:
        return iter(list(self._datasets.values()))

    def __len__(self) -> int:
        return len(self._datasets)

    def get(self, name: str) -> Optional[Dataset]:
        return self._datasets.get(name)

    @classmethod
    async def load(cls, directory: Path) -> "DatasetStore":
        store = cls(directory)
        try:
            paths = sorted(p for p in store.directory.iterdir() if p.is_file())
        except FileNotFoundError:
            logger.warning("Data directory %s does not exist; starting empty", store.directory)
            return store
        except OSError as e:
            logger.warning("Data directory %s is unreadable: %s", store.directory, e)
            return store

        for path in paths:
            if path.name.startswith("."):
                continue
            try:
                async with aiofiles.open(path, "r", encoding="utf-8") as f:
                    entries = parse_dataset(await f.read())
            except (OSError, UnicodeDecodeError, ValueError) as e:
                # json.JSONDecodeError is a ValueError
                store.report.skipped[path.name] = str(e)
                logger.warning("Skipping dataset %s: %s", path.name, e)
                continue
            store._datasets[path.name] = Dataset(path.name, entries)
            store.report.loaded.append(path.name)

        logger.info(
            "Loaded %d datasets (%d entries) from %s",
            len(store._datasets),
            sum(len(d) for d in store._datasets.values()),
            store.directory,
        )
        return store

    def search(self, alias: str) -> List[Record]:
        results: List[Record] = []
        for dataset in self:
            hit = dataset.get(alias)
            if hit is not None:
                results.append(hit)
        return results

    def _lock_for(self, name: str) -> asyncio.Lock:
        return self._locks.setdefault(name, asyncio.Lock())

    async def upsert(self, dataset_name: str, alias: str, value: str) -> Record:
        """Insert or overwrite ``alias`` in ``dataset_name``, persisting before it becomes visible."""
        async with self._lock_for(dataset_name):
            if dataset_name in self.report.skipped:
                # files skipped at load are never overwritten
                raise PersistenceError(dataset_name, ValueError(self.report.skipped[dataset_name]))
            dataset = self._datasets.get(dataset_name)
            if dataset is None:
                staged = {alias: value}
            else:
                staged = dataset.staged_with(alias, value)

            await self._persist(dataset_name, staged)

            if dataset is None:
                dataset = Dataset(dataset_name)
                self._datasets[dataset_name] = dataset
            dataset.replace(staged)

        logger.info("Added '%s' to dataset %s", alias, dataset_name)
        return Record(alias=alias, value=value, dataset=dataset_name)

    async def _persist(self, dataset_name: str, entries: Dict[str, str]) -> None:
        target = self.directory / dataset_name
        tmp = self.directory / f".{dataset_name}.tmp"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
                await f.write(json.dumps(entries, indent=2, ensure_ascii=False))
            os.replace(tmp, target)
        except OSError as e:
            logger.exception("Failed to write dataset %s", dataset_name)
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass
            except OSError:
                logger.warning("Could not remove temporary file %s", tmp)
            raise PersistenceError(dataset_name, e) from e
