"""Tests for the curated translation store, resolver and loader."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from permitdex.config import FALLBACK_KEEP, FALLBACK_TRANSLITERATE
from permitdex.importing.translations import (
    NameResolver,
    TranslationLoader,
    TranslationStore,
    find_untranslated,
    get_translation_loader,
    has_translation,
    translate,
)

PALM_TOWER_AR = "برج النخيل"
OASIS_AR = "مجمع الواحة"
UNKNOWN_AR = "مدينة الأمل"
TRANSLATIONS_URL = "https://data.example.com/translations.json"


class TestTranslate:
    def test_non_arabic_returned_unchanged(self, translations):
        assert translate("Palm Tower", translations) == "Palm Tower"
        assert translate("", translations) == ""
        assert translate("Palm Tower", TranslationStore()) == "Palm Tower"

    def test_exact_match(self, translations):
        assert translate(PALM_TOWER_AR, translations) == "Palm Tower"

    def test_trimmed_match(self, translations):
        assert translate(f"  {PALM_TOWER_AR}\t", translations) == "Palm Tower"

    def test_whitespace_normalized_match(self, translations):
        spaced = PALM_TOWER_AR.replace(" ", "   ")
        assert translate(spaced, translations) == "Palm Tower"

    def test_missing_translation_is_none(self, translations):
        assert translate(UNKNOWN_AR, translations) is None

    def test_has_translation(self, translations):
        assert has_translation(OASIS_AR, translations)
        assert has_translation(f" {OASIS_AR} ", translations)
        assert not has_translation(UNKNOWN_AR, translations)
        # No passthrough: plain text is not "translated"
        assert not has_translation("Palm Tower", translations)

    def test_find_untranslated(self, translations):
        values = [PALM_TOWER_AR, UNKNOWN_AR, UNKNOWN_AR, "English", ""]
        assert find_untranslated(values, translations) == {UNKNOWN_AR}

    def test_store_is_read_only_mapping(self, translations):
        assert len(translations) == 2
        assert translations[PALM_TOWER_AR] == "Palm Tower"
        assert translations.stats() == {"total": 2}
        with pytest.raises(TypeError):
            translations[UNKNOWN_AR] = "Hope City"  # type: ignore[index]


class TestNameResolver:
    def test_curated_translation_preferred(self, translations):
        resolver = NameResolver(translations, FALLBACK_TRANSLITERATE)

        assert resolver(PALM_TOWER_AR) == "Palm Tower"
        assert resolver.stats()["translated"] == 1

    def test_keep_fallback_leaves_arabic(self, translations):
        resolver = NameResolver(translations, FALLBACK_KEEP)

        assert resolver(UNKNOWN_AR) == UNKNOWN_AR
        assert resolver(UNKNOWN_AR) == UNKNOWN_AR
        assert resolver.stats() == {
            "translated": 0,
            "kept_arabic": 2,
            "transliterated": 0,
            "distinct_missing": 1,
        }

    def test_transliterate_fallback(self, translations):
        resolver = NameResolver(translations, FALLBACK_TRANSLITERATE)

        assert resolver("محمد") == "Mhmd"
        assert resolver.transliterated == 1

    def test_non_arabic_untouched(self, translations):
        resolver = NameResolver(translations)
        assert resolver("Marina Heights") == "Marina Heights"
        assert resolver.stats()["distinct_missing"] == 0

    def test_unknown_policy_rejected(self, translations):
        with pytest.raises(ValueError):
            NameResolver(translations, "placeholder")


class TestTranslationLoader:
    @pytest.mark.asyncio
    async def test_loads_json_file(self, tmp_path):
        path = tmp_path / "translations.json"
        path.write_text(json.dumps({PALM_TOWER_AR: "Palm Tower"}, ensure_ascii=False), encoding="utf-8")

        loader = TranslationLoader(path)
        store = await loader.load()

        assert loader.loaded
        assert store[PALM_TOWER_AR] == "Palm Tower"

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self, tmp_path, monkeypatch):
        loader = TranslationLoader(tmp_path / "unused.json")

        async def slow_fetch():
            await asyncio.sleep(0.01)
            return {OASIS_AR: "Oasis Complex"}

        monkeypatch.setattr(loader, "_fetch", slow_fetch)

        stores = await asyncio.gather(*(loader.load() for _ in range(5)))

        assert loader.fetch_count == 1
        assert all(store is stores[0] for store in stores)
        assert stores[0][OASIS_AR] == "Oasis Complex"

    @pytest.mark.asyncio
    async def test_memoized_after_first_load(self, tmp_path):
        path = tmp_path / "translations.json"
        path.write_text("{}", encoding="utf-8")
        loader = TranslationLoader(path)

        first = await loader.load()
        path.write_text(json.dumps({OASIS_AR: "Oasis"}), encoding="utf-8")
        second = await loader.load()

        assert first is second
        assert loader.fetch_count == 1

    @pytest.mark.asyncio
    async def test_missing_file_gives_empty_store(self, tmp_path):
        loader = TranslationLoader(tmp_path / "missing.json")

        store = await loader.load()

        assert len(store) == 0
        assert loader.loaded

    @pytest.mark.asyncio
    async def test_rejects_non_object_document(self, tmp_path):
        path = tmp_path / "translations.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        store = await TranslationLoader(path).load()

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_skips_non_string_values(self, tmp_path):
        path = tmp_path / "translations.json"
        path.write_text(
            json.dumps({PALM_TOWER_AR: "Palm Tower", OASIS_AR: None, "x": 3}), encoding="utf-8"
        )

        store = await TranslationLoader(path).load()

        assert dict(store) == {PALM_TOWER_AR: "Palm Tower"}

    def test_process_loader_uses_configured_source(self, tmp_path, monkeypatch):
        path = tmp_path / "curated.json"
        monkeypatch.setenv("TRANSLATIONS_SOURCE", str(path))

        loader = get_translation_loader()

        assert loader.source == str(path)
        assert get_translation_loader() is loader


class TestHTTPTranslationLoader:
    @pytest.mark.asyncio
    async def test_loads_json_over_http(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={PALM_TOWER_AR: "Palm Tower"})

        loader = TranslationLoader(TRANSLATIONS_URL, transport=httpx.MockTransport(handler))
        store = await loader.load()

        assert store[PALM_TOWER_AR] == "Palm Tower"
        assert [str(request.url) for request in requests] == [TRANSLATIONS_URL]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(404, text="not found"),
            httpx.Response(500, json={"error": "unavailable"}),
            httpx.Response(200, text="<html>maintenance</html>"),
        ],
    )
    async def test_bad_response_memoizes_empty_store(self, response):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return response

        loader = TranslationLoader(TRANSLATIONS_URL, transport=httpx.MockTransport(handler))

        first = await loader.load()
        second = await loader.load()

        assert len(first) == 0
        assert second is first
        assert calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_send_one_request(self):
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return httpx.Response(200, json={OASIS_AR: "Oasis Complex"})

        loader = TranslationLoader(TRANSLATIONS_URL, transport=httpx.MockTransport(handler))

        stores = await asyncio.gather(*(loader.load() for _ in range(5)))

        assert calls == 1
        assert all(store is stores[0] for store in stores)
        assert stores[0][OASIS_AR] == "Oasis Complex"
