"""
Query analysis for lexical boosting.

Extracts code/ID-shaped identifiers and normalized keyword tokens from a raw
query. Everything here is a pure function of the input text.
"""

import re
from dataclasses import dataclass
from typing import List, Tuple

from rag.config import RETRIEVAL_CONFIG


# Applied in order; matches from every class are unioned
IDENTIFIER_PATTERNS = [
    # number-separator-number: 2024-001, 12/34, 1.2.3
    re.compile(r'\b\d+(?:[-_/.]\d+)+\b'),
    # letters-then-digits: EMP123, EMP-123, AB12CD
    re.compile(r'\b[A-Za-z]+[-_]?\d+[A-Za-z0-9]*\b'),
    # digits-then-letters: 123ABC, 12-AB
    re.compile(r'\b\d+[-_]?[A-Za-z]+[A-Za-z0-9]*\b'),
]

_NON_WORD = re.compile(r'[^\w]+')


@dataclass(frozen=True)
class QueryAnalysis:
    """Identifiers and keywords extracted from one query."""
    text: str
    identifiers: Tuple[str, ...]
    keywords: Tuple[str, ...]

    @property
    def has_lexical_terms(self) -> bool:
        return bool(self.identifiers or self.keywords)

    def search_terms(self, max_keywords: int) -> List[str]:
        """
        Terms for substring matching: identifiers first, then keywords.

        Terms are deduplicated case-insensitively since the store matches
        them with ILIKE. At most ``max_keywords`` keyword terms are kept.
        """
        terms: List[str] = []
        seen = set()
        for identifier in self.identifiers:
            key = identifier.lower()
            if key not in seen:
                seen.add(key)
                terms.append(identifier)

        keyword_count = 0
        for keyword in self.keywords:
            if keyword_count >= max_keywords:
                break
            key = keyword.lower()
            if key in seen:
                continue
            seen.add(key)
            terms.append(keyword)
            keyword_count += 1

        return terms

    def keyword_terms(self, max_terms: int) -> List[str]:
        """Case-insensitively unique keywords, capped at ``max_terms``."""
        terms: List[str] = []
        seen = set()
        for keyword in self.keywords:
            key = keyword.lower()
            if key in seen:
                continue
            seen.add(key)
            terms.append(keyword)
            if len(terms) >= max_terms:
                break
        return terms


def extract_identifiers(text: str) -> List[str]:
    """
    Extract code/ID-like tokens (e.g. ``2024-001``, ``EMP123``).

    Returns upper-cased identifiers in first-occurrence order with
    case-insensitive duplicates collapsed.
    """
    if not text:
        return []

    matches = []
    for pattern in IDENTIFIER_PATTERNS:
        for match in pattern.finditer(text):
            matches.append((match.start(), match.group(0)))

    identifiers: List[str] = []
    seen = set()
    for _, raw in sorted(matches, key=lambda m: m[0]):
        canonical = raw.strip().upper()
        if canonical and canonical not in seen:
            seen.add(canonical)
            identifiers.append(canonical)
    return identifiers


def extract_keywords(text: str, max_keywords: int = None) -> List[str]:
    """
    Extract keyword tokens for lexical matching.

    Tokens are split on whitespace and stripped of non-word characters.
    Tokens shorter than 2 characters, purely numeric tokens and tokens
    without a letter are dropped. The lower-case form is kept, followed by
    the first differently-cased form when the token has 3+ characters, so
    proper nouns like ``Julio`` survive next to ``julio``.
    """
    if max_keywords is None:
        max_keywords = RETRIEVAL_CONFIG['max_keywords']
    if not text:
        return []

    keywords: List[str] = []
    seen_lower = set()
    has_variant = set()

    for raw_token in text.split():
        token = _NON_WORD.sub('', raw_token)
        if len(token) < 2 or token.isdigit():
            continue
        if not any(ch.isalpha() for ch in token):
            continue

        lower = token.lower()
        if lower not in seen_lower:
            seen_lower.add(lower)
            keywords.append(lower)
        if token != lower and len(token) >= 3 and lower not in has_variant:
            has_variant.add(lower)
            keywords.append(token)

        if len(keywords) >= max_keywords:
            break

    return keywords[:max_keywords]


def analyze_query(text: str, max_keywords: int = None) -> QueryAnalysis:
    """Run identifier and keyword extraction over a raw query."""
    text = (text or '').strip()
    return QueryAnalysis(
        text=text,
        identifiers=tuple(extract_identifiers(text)),
        keywords=tuple(extract_keywords(text, max_keywords)),
    )
