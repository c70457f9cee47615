"""
Tests for query identifier and keyword extraction.
"""

import pytest

from rag.query_analyzer import (
    QueryAnalysis, analyze_query, extract_identifiers, extract_keywords
)


def test_number_separator_number_identifier():
    assert extract_identifiers("Status of ticket 2024-001 please") == ["2024-001"]


def test_identifier_deduplicated_case_insensitively():
    identifiers = extract_identifiers("emp123 was renamed, EMP123 is the new owner")
    assert identifiers == ["EMP123"]


def test_identifier_pattern_classes_are_unioned():
    identifiers = extract_identifiers("Compare EMP-42 with 7b and 12/34 for ab12cd")
    assert "EMP-42" in identifiers
    assert "7B" in identifiers
    assert "12/34" in identifiers
    assert "AB12CD" in identifiers


def test_plain_words_are_not_identifiers():
    assert extract_identifiers("What is the leave policy?") == []


def test_keywords_keep_capitalized_variant_for_names():
    keywords = extract_keywords("Julio N Programmer")
    assert keywords == ["julio", "Julio", "programmer", "Programmer"]


def test_keywords_drop_short_numeric_and_letterless_tokens():
    keywords = extract_keywords("a 42 2024-001 -- ok go")
    assert keywords == ["ok", "go"]


def test_short_tokens_do_not_get_a_variant():
    assert extract_keywords("Go Home") == ["go", "home", "Home"]


def test_keywords_strip_punctuation():
    assert extract_keywords("policy? (vacation)") == ["policy", "vacation"]


def test_keywords_capped():
    text = " ".join(f"word{chr(97 + i)}{chr(97 + i)}" for i in range(26))
    assert len(extract_keywords(text)) == 15
    assert len(extract_keywords(text, max_keywords=4)) == 4


def test_keywords_first_occurrence_order():
    assert extract_keywords("beta alpha Beta gamma") == ["beta", "alpha", "Beta", "gamma"]


@pytest.mark.parametrize("query", [
    "Julio N Programmer",
    "Who approved EMP-123 and emp-123 on 2024-001?",
    "vacation Vacation VACATION policy",
    "Résumé of Zoë",
])
def test_analysis_is_idempotent(query):
    first = analyze_query(query)
    assert extract_identifiers(" ".join(first.identifiers)) == list(first.identifiers)
    assert extract_keywords(" ".join(first.keywords)) == list(first.keywords)


def test_search_terms_identifiers_first_and_unique():
    analysis = analyze_query("Julio EMP123 emp123 programmer")
    assert analysis.search_terms(max_keywords=10) == ["EMP123", "julio", "programmer"]


def test_search_terms_respect_keyword_cap():
    analysis = QueryAnalysis(text="", identifiers=("X1",), keywords=("aa", "bb", "cc"))
    assert analysis.search_terms(max_keywords=2) == ["X1", "aa", "bb"]


def test_has_lexical_terms():
    assert analyze_query("policy").has_lexical_terms
    assert not analyze_query("? 1 !").has_lexical_terms


def test_repeated_identifier_extracted_once_upper_cased():
    assert extract_identifiers("Case 2024-001 references 2024-001 and inv-7 INV-7") == ["2024-001", "INV-7"]
