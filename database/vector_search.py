"""
Vector search functionality using pgvector for semantic similarity search
Builds single retrieval passes (pure vector, hybrid lexical/vector, keyword)
and executes them against the rag_documents table
"""

import logging
import operator
import time
from dataclasses import dataclass, field
from functools import reduce
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, case, func, literal, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from database.models import RagDocument, VECTOR_DIMENSION
from rag.config import SCORING_CONFIG
from rag.errors import StoreError

logger = logging.getLogger(__name__)

# Priority tiers used as the primary sort key
TIER_TITLE_MATCH = 1
TIER_CONTENT_MATCH = 2
TIER_VECTOR_ONLY = 3


@dataclass
class HybridWeights:
    """Boost weights and limits for lexical scoring"""
    title_boost: float = 0.5
    content_boost: float = 0.3
    gate_relaxation: float = 0.5
    hybrid_max_keywords: int = 10
    keyword_search_max_terms: int = 5
    keyword_placeholder_similarity: float = 0.5

    @classmethod
    def from_config(cls, config: Dict[str, Any] = None) -> "HybridWeights":
        config = config or SCORING_CONFIG
        return cls(
            title_boost=config['title_boost'],
            content_boost=config['content_boost'],
            gate_relaxation=config['gate_relaxation'],
            hybrid_max_keywords=config['hybrid_max_keywords'],
            keyword_search_max_terms=config['keyword_search_max_terms'],
            keyword_placeholder_similarity=config['keyword_placeholder_similarity'],
        )


@dataclass
class CandidateRow:
    """A single row returned by one retrieval pass"""
    id: Any
    title: Optional[str]
    content: Optional[str]
    metadata: Optional[Dict[str, Any]]
    base_similarity: float
    similarity: float
    distance: Optional[float] = None
    title_boost: float = 0.0
    content_boost: float = 0.0
    priority_tier: int = TIER_VECTOR_ONLY
    search_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def boost(self) -> float:
        return self.title_boost + self.content_boost

    @property
    def combined_similarity(self) -> float:
        return min(1.0, self.similarity)

    @classmethod
    def from_mapping(cls, row: Dict[str, Any], search_type: str) -> "CandidateRow":
        base = float(row['base_similarity'])
        similarity = row.get('similarity')
        distance = row.get('distance')
        return cls(
            id=row['id'],
            title=row.get('title'),
            content=row.get('content'),
            metadata=row.get('metadata'),
            base_similarity=base,
            similarity=float(similarity) if similarity is not None else base,
            distance=float(distance) if distance is not None else None,
            title_boost=float(row.get('title_boost') or 0.0),
            content_boost=float(row.get('content_boost') or 0.0),
            priority_tier=int(row.get('priority_tier') or TIER_VECTOR_ONLY),
            search_metadata={'search_type': search_type},
        )


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so terms match literally"""
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def _contains(column, term: str):
    return column.ilike(f"%{escape_like(term)}%", escape='\\')


def _document_columns():
    return (
        RagDocument.id.label('id'),
        RagDocument.title.label('title'),
        RagDocument.content.label('content'),
        RagDocument.doc_metadata.label('metadata'),
    )


def build_vector_query(embedding: Sequence[float], threshold: float, limit: int):
    """Pure vector pass: 1 - distance > threshold, nearest first"""
    distance = RagDocument.embedding.cosine_distance(embedding)
    base_similarity = 1 - distance

    return (
        select(
            *_document_columns(),
            distance.label('distance'),
            base_similarity.label('base_similarity'),
            base_similarity.label('similarity'),
        )
        .where(
            and_(
                RagDocument.embedding.isnot(None),
                base_similarity > threshold,
            )
        )
        .order_by(distance)
        .limit(limit)
    )


def build_hybrid_query(
    embedding: Sequence[float],
    terms: Sequence[str],
    threshold: float,
    limit: int,
    weights: HybridWeights,
):
    """
    Hybrid pass blending vector distance with substring boosts.

    Every term adds ``weights.title_boost`` when it occurs in the title and
    ``weights.content_boost`` when it occurs in the content (ILIKE). A row
    qualifies when its base similarity clears the relaxed gate or any term
    matches. Ordering is priority tier, combined similarity, then distance.
    """
    if not terms:
        return build_vector_query(embedding, threshold, limit)

    distance = RagDocument.embedding.cosine_distance(embedding)
    base_similarity = 1 - distance

    title_matches = [_contains(RagDocument.title, term) for term in terms]
    content_matches = [_contains(RagDocument.content, term) for term in terms]

    title_boost = reduce(
        operator.add,
        [case((m, literal(weights.title_boost)), else_=literal(0.0)) for m in title_matches],
    )
    content_boost = reduce(
        operator.add,
        [case((m, literal(weights.content_boost)), else_=literal(0.0)) for m in content_matches],
    )
    combined = func.least(literal(1.0), base_similarity + title_boost + content_boost)
    priority_tier = case(
        (title_boost > 0, TIER_TITLE_MATCH),
        (content_boost > 0, TIER_CONTENT_MATCH),
        else_=TIER_VECTOR_ONLY,
    )

    tier_col = priority_tier.label('priority_tier')
    combined_col = combined.label('similarity')
    distance_col = distance.label('distance')

    return (
        select(
            *_document_columns(),
            distance_col,
            base_similarity.label('base_similarity'),
            title_boost.label('title_boost'),
            content_boost.label('content_boost'),
            combined_col,
            tier_col,
        )
        .where(
            and_(
                RagDocument.embedding.isnot(None),
                or_(
                    base_similarity > (threshold - weights.gate_relaxation),
                    *title_matches,
                    *content_matches,
                ),
            )
        )
        .order_by(tier_col, combined_col.desc(), distance_col)
        .limit(limit)
    )


def build_keyword_query(terms: Sequence[str], limit: int, weights: HybridWeights):
    """Lexical-only pass: title hits first, then most recent"""
    title_matches = [_contains(RagDocument.title, term) for term in terms]
    content_matches = [_contains(RagDocument.content, term) for term in terms]

    title_rank = case((or_(*title_matches), TIER_TITLE_MATCH), else_=TIER_CONTENT_MATCH)
    placeholder = literal(weights.keyword_placeholder_similarity)
    rank_col = title_rank.label('priority_tier')

    return (
        select(
            *_document_columns(),
            placeholder.label('base_similarity'),
            placeholder.label('similarity'),
            rank_col,
        )
        .where(or_(*title_matches, *content_matches))
        .order_by(rank_col, RagDocument.created_at.desc())
        .limit(limit)
    )


class VectorSearchService:
    """
    Executes retrieval passes against the store.

    Each call opens its own session from the injected factory, so one
    service can be shared by concurrent searches.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        weights: Optional[HybridWeights] = None,
        vector_dimension: int = VECTOR_DIMENSION,
    ):
        self.session_factory = session_factory
        self.weights = weights or HybridWeights.from_config()
        self.vector_dimension = vector_dimension

    def _validate_vector(self, embedding: Sequence[float]) -> None:
        if not embedding or len(embedding) != self.vector_dimension:
            raise ValueError(f"Query vector must be {self.vector_dimension}-dimensional")

    async def vector_search(
        self, embedding: Sequence[float], threshold: float, limit: int
    ) -> List[CandidateRow]:
        """Pure vector similarity search"""
        self._validate_vector(embedding)
        stmt = build_vector_query(embedding, threshold, limit)
        return await self._execute(stmt, 'vector')

    async def hybrid_search(
        self,
        embedding: Sequence[float],
        terms: Sequence[str],
        threshold: float,
        limit: int,
    ) -> List[CandidateRow]:
        """Vector search with title/content substring boosts"""
        self._validate_vector(embedding)
        stmt = build_hybrid_query(embedding, terms, threshold, limit, self.weights)
        return await self._execute(stmt, 'hybrid' if terms else 'vector')

    async def keyword_search(self, terms: Sequence[str], limit: int) -> List[CandidateRow]:
        """Substring search over title and content without vectors"""
        terms = list(terms)[:self.weights.keyword_search_max_terms]
        if not terms:
            return []
        stmt = build_keyword_query(terms, limit, self.weights)
        return await self._execute(stmt, 'keyword')

    async def _execute(self, stmt, search_type: str) -> List[CandidateRow]:
        start_time = time.time()
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = result.fetchall()
        except SQLAlchemyError as e:
            logger.error(f"Database error in {search_type} search: {e}")
            raise StoreError(f"Database error: {str(e)}", strategy=search_type) from e

        candidates = [CandidateRow.from_mapping(dict(row._mapping), search_type) for row in rows]

        query_time_ms = (time.time() - start_time) * 1000
        logger.info(f"{search_type.capitalize()} search completed: {len(candidates)} rows in {query_time_ms:.2f}ms")
        return candidates
