"""Curated Arabic -> English name translations.

The curated set is a flat JSON object ``{arabic_text: english_text}`` produced
by an offline translation pass. It is loaded once per process by a
:class:`TranslationLoader` and handed to the pipeline as an immutable
:class:`TranslationStore` snapshot.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import httpx

from permitdex.config import FALLBACK_KEEP, FALLBACK_TRANSLITERATE
from permitdex.importing.arabic import contains_arabic, transliterate

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class TranslationStore(Mapping[str, str]):
    """Read-only snapshot of curated translations keyed by exact Arabic text."""

    def __init__(self, entries: Mapping[str, str] | None = None):
        self._entries = MappingProxyType(dict(entries or {}))

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"TranslationStore({len(self)} entries)"

    def lookup(self, name: str) -> str | None:
        """Exact, then trimmed, then whitespace-normalized key match."""
        if not name:
            return None
        for candidate in (name, name.strip(), _WHITESPACE.sub(" ", name).strip()):
            translated = self._entries.get(candidate)
            if translated:
                return translated
        return None

    def translate(self, name: str) -> str | None:
        return translate(name, self)

    def has_translation(self, name: str) -> bool:
        return has_translation(name, self)

    def find_untranslated(self, values: Iterable[str]) -> set[str]:
        return find_untranslated(values, self)

    def stats(self) -> dict[str, int]:
        return {"total": len(self)}


def translate(name: str, store: TranslationStore) -> str | None:
    """Curated English name for ``name``.

    Empty input and text without Arabic come back unchanged. ``None`` means
    Arabic text with no curated translation, which callers must not treat as
    a blank value.
    """
    if not name or not contains_arabic(name):
        return name
    return store.lookup(name)


def has_translation(name: str, store: TranslationStore) -> bool:
    return store.lookup(name) is not None


def find_untranslated(values: Iterable[str], store: TranslationStore) -> set[str]:
    """Distinct Arabic values with no curated translation."""
    return {
        value
        for value in values
        if isinstance(value, str) and contains_arabic(value) and translate(value, store) is None
    }


@dataclass
class NameResolver:
    """Applies curated translations with a configurable fallback.

    ``fallback="keep"`` leaves untranslated Arabic verbatim (what operators
    confirm in the pre-flight dialog); ``"transliterate"`` romanizes it.
    """

    store: TranslationStore
    fallback: str = FALLBACK_KEEP
    translated: int = 0
    kept: int = 0
    transliterated: int = 0
    missing: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.fallback not in (FALLBACK_KEEP, FALLBACK_TRANSLITERATE):
            raise ValueError(f"Unknown fallback policy: {self.fallback!r}")

    def __call__(self, value: str) -> str:
        return self.resolve(value)

    def resolve(self, value: str) -> str:
        if not contains_arabic(value):
            return value

        curated = translate(value, self.store)
        if curated is not None:
            self.translated += 1
            return curated

        self.missing.add(value)
        if self.fallback == FALLBACK_TRANSLITERATE:
            self.transliterated += 1
            return transliterate(value)

        self.kept += 1
        return value

    def stats(self) -> dict[str, int]:
        return {
            "translated": self.translated,
            "kept_arabic": self.kept,
            "transliterated": self.transliterated,
            "distinct_missing": len(self.missing),
        }


class TranslationLoader:
    """Loads the curated translations once and memoizes the snapshot.

    Concurrent first callers share a single fetch. A failed fetch is logged
    and memoized as an empty store, which makes every Arabic value surface in
    the pre-flight scan instead of silently importing.
    """

    def __init__(
        self,
        source: str | Path,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.source = str(source)
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._store: TranslationStore | None = None
        self._lock = asyncio.Lock()
        self.fetch_count = 0

    @property
    def loaded(self) -> bool:
        return self._store is not None

    async def load(self) -> TranslationStore:
        if self._store is not None:
            return self._store

        async with self._lock:
            if self._store is None:
                self._store = await self._load_once()
        return self._store

    async def _load_once(self) -> TranslationStore:
        self.fetch_count += 1
        try:
            data = await self._fetch()
            store = TranslationStore(_validate_entries(data))
        except (OSError, ValueError, httpx.HTTPError) as e:
            logger.error(f"Error loading translations from {self.source}: {e}", exc_info=True)
            return TranslationStore()

        logger.info(f"Loaded {len(store)} curated translations from {self.source}")
        return store

    async def _fetch(self) -> object:
        if self.source.startswith(("http://", "https://")):
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                response = await client.get(self.source)
                response.raise_for_status()
                return response.json()

        path = Path(self.source)
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return json.loads(text)


def _validate_entries(data: object) -> dict[str, str]:
    if not isinstance(data, dict):
        raise ValueError(f"Translations must be a JSON object, got {type(data).__name__}")

    entries = {}
    for key, value in data.items():
        if isinstance(value, str) and value:
            entries[str(key)] = value
        else:
            logger.warning(f"Ignoring non-string translation for {key!r}")
    return entries


# Process-wide loader (lazy-loaded)
_loader: TranslationLoader | None = None


def get_translation_loader() -> TranslationLoader:
    """Get or create the process-wide loader from configuration."""
    global _loader
    if _loader is None:
        from permitdex.config import get_config

        config = get_config()
        source = config.translations.source
        if not source.startswith(("http://", "https://")) and not Path(source).is_absolute():
            local = Path(source)
            if not local.exists():
                source = str(config.project_root / source)
        _loader = TranslationLoader(source, config.translations.timeout_seconds)
    return _loader


def reset_translation_loader() -> None:
    """Drop the process-wide loader (tests change the configuration)."""
    global _loader
    _loader = None
