"""Tests for retranslation and the developer name export."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from permitdex.importing.errors import StoreError
from permitdex.importing.maintenance import (
    DEVELOPERS_INSTRUCTION,
    clean_company_name,
    developers_document,
    export_developers,
    retranslate_names,
)

UNKNOWN_AR = "مدينة الأمل"


class TestCleanCompanyName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("EMAAR PROPERTIES PJSC", "EMAAR PROPERTIES"),
            ("ELLINGTON PROPERTIES FZCO", "ELLINGTON PROPERTIES"),
            ("Select Group Llc", "Select Group"),
            ("NAKHEEL - BRANCH", "NAKHEEL"),
            ("SOBHA (BRANCH) LLC", "SOBHA"),
            ("  OMNIYAT   GROUP  ", "OMNIYAT GROUP"),
            ("GEMINI INC.", "GEMINI"),
        ],
    )
    def test_strips_legal_forms(self, raw, expected):
        assert clean_company_name(raw) == expected

    def test_real_estate_dropped_for_developers(self):
        assert clean_company_name("DAMAC REAL ESTATE DEVELOPMENT L.L.C") == "DAMAC DEVELOPMENT"
        assert clean_company_name("ARADA REAL ESTATE & DEVELOPERS") == "ARADA DEVELOPERS"

    def test_real_estate_kept_otherwise(self):
        assert clean_company_name("AZIZI REAL ESTATE LLC") == "AZIZI REAL ESTATE"


@pytest.mark.asyncio
async def test_export_developers_cleans_and_deduplicates():
    store = AsyncMock()
    store.select.return_value = [
        {"name_en": "DAMAC DEVELOPMENT LLC"},
        {"name_en": "DAMAC REAL ESTATE DEVELOPMENT"},
        {"name_en": "AZIZI REAL ESTATE LLC"},
        {"name_en": "LLC"},
        {"name_en": None},
    ]

    developers = await export_developers(store)

    assert developers == ["AZIZI REAL ESTATE", "DAMAC DEVELOPMENT"]
    store.select.assert_awaited_once_with("companies", ["name_en"], {"type": "developer"})


def test_developers_document():
    assert developers_document(["A"]) == {"instruction": DEVELOPERS_INSTRUCTION, "developers": ["A"]}


class TestRetranslate:
    @pytest.fixture
    def names_csv(self, write_csv):
        return write_csv(
            "Projects.csv",
            ["project_id", "project_name"],
            [[1, "برج النخيل"], [2, UNKNOWN_AR], [3, "Marina Gate"], ["", "Orphan"]],
        )

    @pytest.mark.asyncio
    async def test_upserts_names_in_batches(self, names_csv, translations):
        store = AsyncMock()

        result = await retranslate_names(names_csv, store, translations, batch_size=2)

        assert result.rows == 3
        assert result.translated == 1
        assert result.not_translated == 1
        assert result.non_arabic == 1
        assert result.missing == {UNKNOWN_AR}
        assert result.updated == 3
        assert result.failed == 0

        first, second = store.upsert.await_args_list
        assert first.args == (
            "projects",
            [{"project_id": 1, "project_name": "Palm Tower"}, {"project_id": 2, "project_name": UNKNOWN_AR}],
            ("project_id",),
        )
        assert first.kwargs == {"update_columns": ("project_name",)}
        assert second.args[1] == [{"project_id": 3, "project_name": "Marina Gate"}]

    @pytest.mark.asyncio
    async def test_failed_batch_counted(self, names_csv, translations):
        store = AsyncMock()
        store.upsert.side_effect = [StoreError("projects", "timeout"), None]

        result = await retranslate_names(names_csv, store, translations, batch_size=2)

        assert result.failed == 2
        assert result.updated == 1
        assert result.errors == ["Batch error: timeout"]
