"""
Retrieval cascade for the RAG engine.

Turns a free-text query into ranked passages by running an ordered list of
search strategies (hybrid, keyword priority, pure vector, threshold
relaxation, cross-language retry) until one of them yields acceptable rows.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import structlog

from database.connection import DatabaseManager
from database.schemas import RankedResult, SearchOptions
from database.vector_search import CandidateRow, HybridWeights, VectorSearchService
from monitoring.logging_config import RetrievalLogContext
from rag.config import CASCADE_CONFIG, TRANSLATION_CONFIG
from rag.errors import RetrievalServiceError, SearchError, classify_error
from rag.query_analyzer import QueryAnalysis, analyze_query
from rag.result_mapper import map_rows

logger = logging.getLogger(__name__)
cascade_logger = structlog.get_logger("retrieval_cascade")


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...


class TranslationProvider(Protocol):
    async def translate(self, text: str, target_language: str) -> str:
        ...


@dataclass
class CascadeSettings:
    """Post-filter cut-offs and the threshold relaxation ladder"""
    strong_boost: float = 0.3
    weak_boost: float = 0.15
    strong_min_combined: float = 0.5
    strong_min_base: float = 0.2
    weak_threshold_offset: float = 0.2
    weak_min_combined: float = 0.4
    relative_steps: Sequence[float] = (0.7, 0.5)
    floor_steps: Sequence[float] = (0.1, 0.05, 0.01, 0.0)
    cross_language_threshold: float = 0.0

    @classmethod
    def from_config(cls, config: Dict[str, Any] = None) -> "CascadeSettings":
        config = config or CASCADE_CONFIG
        return cls(
            strong_boost=config['strong_boost'],
            weak_boost=config['weak_boost'],
            strong_min_combined=config['strong_min_combined'],
            strong_min_base=config['strong_min_base'],
            weak_threshold_offset=config['weak_threshold_offset'],
            weak_min_combined=config['weak_min_combined'],
            relative_steps=tuple(config['relative_steps']),
            floor_steps=tuple(config['floor_steps']),
            cross_language_threshold=config['cross_language_threshold'],
        )

    def threshold_ladder(self, threshold: float) -> List[float]:
        """
        Relaxed thresholds to try after the original one failed.

        Relative steps come first, then the fixed floors. Rungs that are not
        strictly below the previous rung (or the original threshold) are
        skipped since they cannot return anything new.
        """
        ladder: List[float] = []
        ceiling = threshold
        for candidate in [threshold * step for step in self.relative_steps] + list(self.floor_steps):
            candidate = round(candidate, 6)
            if candidate < ceiling:
                ladder.append(candidate)
                ceiling = candidate
        return ladder


def passes_post_filter(row: CandidateRow, threshold: float, settings: CascadeSettings) -> bool:
    """Decide whether a hybrid row is good enough to end the cascade"""
    boost = row.boost
    combined = row.combined_similarity
    if boost > settings.strong_boost:
        return combined >= settings.strong_min_combined or row.base_similarity >= settings.strong_min_base
    if boost > settings.weak_boost:
        return combined >= max(threshold - settings.weak_threshold_offset, settings.weak_min_combined)
    return combined >= threshold


@dataclass
class SearchState:
    """Per-call cascade state; never shared between calls"""
    query: str
    analysis: QueryAnalysis
    options: SearchOptions
    embedding: List[float]
    raw_counts: Dict[str, int] = field(default_factory=dict)
    attempted: List[str] = field(default_factory=list)
    vector_pass_done: bool = False
    accepted_threshold: Optional[float] = None
    translated_query: Optional[str] = None


@dataclass
class SearchOutcome:
    """Results plus a trace of the strategies that ran"""
    results: List[RankedResult]
    strategy: Optional[str]
    attempted: List[str]
    accepted_threshold: Optional[float] = None
    translated_query: Optional[str] = None


class SearchStrategy:
    """
    One cascade state.

    ``applies`` decides whether the state runs at all, ``run`` performs the
    store work, and ``accept`` is a pure predicate returning the rows that
    satisfy the query (empty means advance to the next state).
    """
    name = "strategy"
    terminal = False
    absorbs_errors = False

    def __init__(self, engine: "RetrievalEngine"):
        self.engine = engine

    def applies(self, state: SearchState) -> bool:
        return True

    async def run(self, state: SearchState) -> List[CandidateRow]:
        raise NotImplementedError

    def accept(self, rows: List[CandidateRow], state: SearchState) -> List[CandidateRow]:
        return list(rows)


class HybridStrategy(SearchStrategy):
    name = "hybrid"

    async def run(self, state: SearchState) -> List[CandidateRow]:
        service = self.engine.search_service
        terms = state.analysis.search_terms(service.weights.hybrid_max_keywords)
        if not terms:
            state.vector_pass_done = True
        return await service.hybrid_search(
            state.embedding, terms, state.options.threshold, state.options.limit
        )

    def accept(self, rows: List[CandidateRow], state: SearchState) -> List[CandidateRow]:
        settings = self.engine.settings
        return [row for row in rows if passes_post_filter(row, state.options.threshold, settings)]


class KeywordPriorityStrategy(SearchStrategy):
    name = "keyword_priority"

    def applies(self, state: SearchState) -> bool:
        return state.raw_counts.get(HybridStrategy.name) == 0 and state.analysis.has_lexical_terms

    async def run(self, state: SearchState) -> List[CandidateRow]:
        service = self.engine.search_service
        terms = state.analysis.search_terms(service.weights.keyword_search_max_terms)
        return await service.keyword_search(
            terms[:service.weights.keyword_search_max_terms], state.options.limit
        )


class PureVectorStrategy(SearchStrategy):
    name = "pure_vector"

    def applies(self, state: SearchState) -> bool:
        # The hybrid state already ran this exact pass when there were no terms
        return not state.vector_pass_done

    async def run(self, state: SearchState) -> List[CandidateRow]:
        return await self.engine.search_service.vector_search(
            state.embedding, state.options.threshold, state.options.limit
        )


class ThresholdCascadeStrategy(SearchStrategy):
    name = "threshold_cascade"

    async def run(self, state: SearchState) -> List[CandidateRow]:
        for threshold in self.engine.settings.threshold_ladder(state.options.threshold):
            rows = await self.engine.search_service.vector_search(
                state.embedding, threshold, state.options.limit
            )
            cascade_logger.debug(
                "Threshold rung searched", threshold=threshold, row_count=len(rows)
            )
            if rows:
                state.accepted_threshold = threshold
                return rows
        return []


class CrossLanguageStrategy(SearchStrategy):
    name = "cross_language"
    terminal = True
    absorbs_errors = True

    def applies(self, state: SearchState) -> bool:
        return self.engine.translator is not None

    async def run(self, state: SearchState) -> List[CandidateRow]:
        translated = await self.engine.translator.translate(state.query, self.engine.target_language)
        state.translated_query = translated
        embedding = await self.engine.embedder.embed(translated)
        return await self.engine.search_service.vector_search(
            embedding, self.engine.settings.cross_language_threshold, state.options.limit
        )


DEFAULT_STRATEGIES = (
    HybridStrategy,
    KeywordPriorityStrategy,
    PureVectorStrategy,
    ThresholdCascadeStrategy,
    CrossLanguageStrategy,
)


class RetrievalEngine:
    """
    Hybrid retrieval engine.

    Embeds the query once, then walks the strategy list in order. The first
    strategy whose ``accept`` returns rows ends the call. Finding nothing is
    a valid outcome and yields an empty list.
    """

    def __init__(
        self,
        search_service: VectorSearchService,
        embedder: EmbeddingProvider,
        translator: Optional[TranslationProvider] = None,
        settings: Optional[CascadeSettings] = None,
        target_language: str = None,
        strategies: Sequence[type] = DEFAULT_STRATEGIES,
    ):
        self.search_service = search_service
        self.embedder = embedder
        self.translator = translator
        self.settings = settings or CascadeSettings.from_config()
        self.target_language = target_language or TRANSLATION_CONFIG['target_language']
        self.strategies = [strategy_cls(self) for strategy_cls in strategies]

    async def search(
        self,
        query: str,
        options: Union[SearchOptions, Dict[str, Any], None] = None,
    ) -> List[RankedResult]:
        """Return ranked results for ``query``; ``[]`` when nothing matches."""
        outcome = await self.search_with_trace(query, options)
        return outcome.results

    async def search_with_trace(
        self,
        query: str,
        options: Union[SearchOptions, Dict[str, Any], None] = None,
    ) -> SearchOutcome:
        """Run the cascade and report which strategies ran and which one won."""
        options = self._coerce_options(options)
        analysis = analyze_query(query)

        with RetrievalLogContext(logger, "retrieval search", query=query,
                                 limit=options.limit, threshold=options.threshold):
            embedding = await self._embed_query(query, options)
            state = SearchState(query=query, analysis=analysis, options=options, embedding=embedding)

            for strategy in self.strategies:
                if not strategy.applies(state):
                    continue
                state.attempted.append(strategy.name)

                rows = await self._run_strategy(strategy, state)
                state.raw_counts[strategy.name] = len(rows)
                accepted = strategy.accept(rows, state)

                cascade_logger.info(
                    "Cascade step finished",
                    strategy=strategy.name,
                    row_count=len(rows),
                    accepted_count=len(accepted),
                    threshold=options.threshold,
                )

                if accepted or strategy.terminal:
                    return SearchOutcome(
                        results=map_rows(accepted, options.limit),
                        strategy=strategy.name if accepted else None,
                        attempted=list(state.attempted),
                        accepted_threshold=state.accepted_threshold,
                        translated_query=state.translated_query,
                    )

            logger.info(f'No relevant documents for query "{query}" after {len(state.attempted)} strategies')
            return SearchOutcome(
                results=[],
                strategy=None,
                attempted=list(state.attempted),
                translated_query=state.translated_query,
            )

    async def _embed_query(self, query: str, options: SearchOptions) -> List[float]:
        try:
            return await self.embedder.embed(query)
        except RetrievalServiceError as e:
            e.context.update(query=query, limit=options.limit, threshold=options.threshold, strategy=None)
            raise
        except Exception as e:
            raise SearchError(query, options.limit, options.threshold, None, str(e)) from e

    async def _run_strategy(self, strategy: SearchStrategy, state: SearchState) -> List[CandidateRow]:
        options = state.options
        try:
            return await strategy.run(state)
        except RetrievalServiceError as e:
            if strategy.absorbs_errors:
                logger.warning(f"{strategy.name} step failed, ending search without results: {e}")
                return []
            e.context.update(query=state.query, limit=options.limit,
                             threshold=options.threshold, strategy=strategy.name)
            error_type, severity, retryable = classify_error(e)
            logger.error(
                f"{strategy.name} step failed ({error_type.value}, {severity.value}, retryable={retryable}): {e}"
            )
            raise
        except Exception as e:
            raise SearchError(state.query, options.limit, options.threshold, strategy.name, str(e)) from e

    @staticmethod
    def _coerce_options(options: Union[SearchOptions, Dict[str, Any], None]) -> SearchOptions:
        if options is None:
            return SearchOptions()
        if isinstance(options, SearchOptions):
            return options
        return SearchOptions(**{k: v for k, v in options.items() if v is not None})


def create_retrieval_engine(
    db_manager: DatabaseManager,
    embedder: EmbeddingProvider,
    translator: Optional[TranslationProvider] = None,
    weights: Optional[HybridWeights] = None,
    settings: Optional[CascadeSettings] = None,
) -> RetrievalEngine:
    """
    Factory wiring an engine to a database manager's session factory.

    The engine does not own the providers. Callers close them, e.g. by
    entering ``async with VectorEmbedder() as embedder`` around the engine's
    lifetime, and dispose of the manager with ``await db_manager.close()``.
    """
    search_service = VectorSearchService(
        db_manager.get_async_session_factory(),
        weights=weights,
    )
    return RetrievalEngine(
        search_service=search_service,
        embedder=embedder,
        translator=translator,
        settings=settings,
    )
