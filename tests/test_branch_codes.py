"""
Tests for bank name -> branch code resolution.
"""

import pytest

from core.branch_codes import (
    BANK_BRANCH_CODES,
    CANONICAL_BANK_NAMES,
    levenshtein,
    max_distance_for,
    resolve_branch_code,
    strip_suffixes,
)


class TestLevenshtein:

    def test_classic_distance(self):
        assert levenshtein("kitten", "sitting") == 3

    def test_empty_strings(self):
        assert levenshtein("", "abc") == 3
        assert levenshtein("abc", "") == 3
        assert levenshtein("", "") == 0

    def test_identical(self):
        assert levenshtein("nedbank", "nedbank") == 0

    def test_tolerance_grows_with_name_length(self):
        assert max_distance_for("absa") == 1
        assert max_distance_for("capitec") == 2
        assert max_distance_for("standard bank") == 3


class TestResolveBranchCode:

    @pytest.mark.parametrize("name,code", [
        ("Standard Bank", "051001"),
        ("  FNB ", "250655"),
        ("ABSA", "632005"),
        ("Capitec Bank Limited", "470010"),
        ("Nedbank", "198765"),
    ])
    def test_exact_alias(self, name, code):
        match = resolve_branch_code(name)
        assert match.matched
        assert match.code == code
        assert match.strategy == "exact"

    def test_numeric_code_passes_through(self):
        match = resolve_branch_code("051001")
        assert match.matched
        assert match.code == "051001"
        assert match.strategy == "numeric"

    def test_substring_match(self):
        match = resolve_branch_code("My Capitec account")
        assert match.matched
        assert match.code == "470010"
        assert match.strategy == "substring"

    @pytest.mark.parametrize("typo,code", [
        ("Capitek", "470010"),
        ("Nedbenk", "198765"),
    ])
    def test_fuzzy_match_for_misspellings(self, typo, code):
        match = resolve_branch_code(typo)
        assert match.matched
        assert match.code == code
        assert match.strategy == "fuzzy"
        assert match.is_numeric

    def test_unknown_bank_is_returned_unchanged(self):
        match = resolve_branch_code("Qwerty Trust")
        assert not match.matched
        assert match.code == "Qwerty Trust"
        assert match.strategy == "none"
        assert not match.is_numeric

    def test_empty_input(self):
        match = resolve_branch_code("")
        assert not match.matched
        assert match.strategy == "none"

    def test_every_code_is_numeric(self):
        for code in BANK_BRANCH_CODES.values():
            assert code.isdigit()
        for _, code in CANONICAL_BANK_NAMES:
            assert code.isdigit()


def test_strip_suffixes():
    assert strip_suffixes("standard bank of south africa") == "standard"
    assert strip_suffixes("capitec bank ltd") == "capitec"
