"""Tests for Arabic detection and romanization."""

from __future__ import annotations

import pytest

from permitdex.importing.arabic import SHADDA, contains_arabic, transliterate


class TestContainsArabic:
    @pytest.mark.parametrize("text", ["برج", "Tower برج", "٣", "ݐ"])
    def test_detects_arabic(self, text):
        assert contains_arabic(text)

    @pytest.mark.parametrize("text", ["", None, "Palm Tower", "Café 123", "ПРИВЕТ"])
    def test_non_arabic(self, text):
        assert not contains_arabic(text)


class TestTransliterate:
    def test_letters_and_title_case(self):
        assert transliterate("محمد") == "Mhmd"

    def test_multiple_words(self):
        assert transliterate("برج النخيل") == "Brj Alnkhyl"

    def test_lam_alef_ligature_before_single_letters(self):
        # "لا" is one unit ("la"), not lam + alef
        assert transliterate("سلام") == "Slam"
        assert transliterate("لآ") == "Laa"

    def test_shadda_doubles_previous_character(self):
        assert transliterate("محم" + SHADDA + "د") == "Mhmmd"

    def test_shadda_at_start_is_ignored(self):
        assert transliterate(SHADDA + "بر") == "Br"

    def test_non_arabic_passes_through(self):
        assert transliterate("Tower برج") == "Tower Brj"

    def test_arabic_indic_digits(self):
        assert transliterate("برج ١٢") == "Brj 12"

    def test_unmapped_arabic_dropped(self):
        # Arabic comma has no mapping
        assert transliterate("برج،") == "Brj"

    def test_whitespace_collapsed_and_trimmed(self):
        assert transliterate("  برج   النخيل  ") == "Brj Alnkhyl"

    def test_long_letter_runs_reduced_to_two(self):
        assert transliterate("آا") == "Aa"

    def test_text_without_arabic_unchanged(self):
        assert transliterate("palm   tower") == "palm   tower"
        assert transliterate("") == ""

    @pytest.mark.parametrize("text", ["محمد", "برج النخيل", "سلام ١٢", "مجمع الواحة"])
    def test_idempotent(self, text):
        once = transliterate(text)
        assert not contains_arabic(once)
        assert transliterate(once) == once
