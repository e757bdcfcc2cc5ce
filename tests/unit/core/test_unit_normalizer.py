# tests/unit/core/test_unit_normalizer.py — v1
"""Tests for core/normalizer.py — comparison keys, subject ids, roles."""

from __future__ import annotations

import pytest

from ojlink.core.normalizer import (
    expand_abbreviations,
    is_guarded,
    normalize,
    normalize_role,
    normalize_subject_id,
)


class TestNormalize:
    def test_ordinal_dash_and_accents(self):
        assert normalize("1ª Vara – São Paulo") == normalize("1a vara - sao paulo")
        assert normalize("1ª Vara – São Paulo") == "1a vara - sao paulo"

    @pytest.mark.parametrize("text", [
        "1ª Vara do Trabalho de Sorocaba",
        "  JUIZADO   Especial Cível ",
        "2º Ofício — Campinas",
        "Vara 3 ° Cível",
        "",
    ])
    def test_idempotent(self, text):
        once = normalize(text)
        assert normalize(once) == once

    def test_masculine_ordinal(self):
        assert normalize("2º Ofício") == "2a oficio"

    def test_ordinal_with_space(self):
        assert normalize("3 ª Vara") == "3a vara"

    def test_dash_variants(self):
        for dash in ("‒", "–", "—", "―", "−"):
            assert normalize(f"vara {dash} itu") == "vara - itu"

    def test_whitespace_collapsed(self):
        assert normalize("  vara\t\tcivel \n de  itu ") == "vara civel de itu"

    @pytest.mark.parametrize("value", [None, 42, ["vara"], "   "])
    def test_non_text_is_empty(self, value):
        assert normalize(value) == ""


class TestSubjectId:
    def test_strips_punctuation(self):
        assert normalize_subject_id("123.456.789-00") == "12345678900"

    def test_accepts_int(self):
        assert normalize_subject_id(12345) == "12345"

    @pytest.mark.parametrize("raw", ["", "abc", None, "-.-"])
    def test_no_digits_raises(self, raw):
        with pytest.raises(ValueError, match="no digits"):
            normalize_subject_id(raw)


class TestRoleAndGuard:
    def test_role_normalized(self):
        assert normalize_role("Estagiário ") == "estagiario"

    @pytest.mark.parametrize("role", [None, "", "   "])
    def test_unknown_role(self, role):
        assert normalize_role(role) is None

    def test_guard_case_insensitive(self):
        assert is_guarded("CEJUSC de Sorocaba")
        assert is_guarded("Cejusc")
        assert not is_guarded("Vara Cível")
        assert not is_guarded(None)


class TestAbbreviations:
    def test_expand_abbreviations(self):
        assert expand_abbreviations("1a vt de sp") == "1a vara trabalho de sao paulo"

    def test_unknown_words_kept(self):
        assert expand_abbreviations("vara civel de itu") == "vara civel de itu"
