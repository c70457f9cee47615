"""
Document search tool for agent frameworks.

Agent runtimes hand tool parameters over in several envelope shapes. The
decoder below recognises an explicit, ordered list of shapes and fails
loudly on anything else.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping

from database.schemas import SearchOptions, ToolDocument, ToolSearchResult
from rag.errors import ToolContextError

logger = logging.getLogger(__name__)

# Runtime bookkeeping keys that never carry tool parameters
METADATA_KEYS = frozenset({'runId', 'runtimeContext', 'writer', 'tracingContext'})

TOOL_CONTENT_PREVIEW_CHARS = 500


class ContextShape(str, Enum):
    """Recognised tool context envelopes, in decoding order"""
    NESTED_CONTEXT = "nested_context"  # {"context": {...params}, "runId": ...}
    ARGS = "args"                      # {"args": {...params}}
    DIRECT = "direct"                  # {...params}
    PARAMS = "params"                  # {"params": {...params}}
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class DecodedContext:
    shape: ContextShape
    params: Dict[str, Any]


def _parameter_dict(value: Any) -> bool:
    return isinstance(value, Mapping) and len(value) > 0 and 'runId' not in value


def decode_tool_context(context: Any) -> DecodedContext:
    """
    Decode a tool invocation context into its parameters.

    Raises:
        ToolContextError: If the context matches none of the known shapes
    """
    if not isinstance(context, Mapping):
        raise ToolContextError(f"Invalid tool context: expected a mapping, got {type(context).__name__}")

    if _parameter_dict(context.get('context')):
        return DecodedContext(ContextShape.NESTED_CONTEXT, dict(context['context']))

    if _parameter_dict(context.get('args')):
        return DecodedContext(ContextShape.ARGS, dict(context['args']))

    envelope_keys = METADATA_KEYS | {'context', 'args', 'params'}
    direct = {k: v for k, v in context.items() if k not in envelope_keys}
    if direct:
        return DecodedContext(ContextShape.DIRECT, direct)

    if _parameter_dict(context.get('params')):
        return DecodedContext(ContextShape.PARAMS, dict(context['params']))

    raise ToolContextError(
        "Unrecognized tool context shape",
        keys=sorted(str(k) for k in context.keys()),
    )


def validate_required_params(params: Mapping[str, Any], required_fields: Iterable[str]) -> None:
    """Raise ToolContextError listing every missing or null required field"""
    missing = [f for f in required_fields if params.get(f) is None]
    if missing:
        raise ToolContextError(f"Missing required parameters: {', '.join(missing)}", keys=missing)


def extract_and_validate_params(context: Any, required_fields: Iterable[str]) -> Dict[str, Any]:
    decoded = decode_tool_context(context)
    logger.debug(f"Decoded tool context as {decoded.shape.value}")
    validate_required_params(decoded.params, required_fields)
    return decoded.params


class DocumentSearchTool:
    """Knowledge-base search exposed to an agent as ``search_documents``"""

    id = "search_documents"
    description = (
        "Search the knowledge base for relevant information. "
        "Parameters: query (required), limit (optional, default 5), "
        "threshold (optional, 0-1, default 0.3). "
        "Returns relevant documents with their content and similarity scores."
    )

    def __init__(self, engine):
        self.engine = engine

    async def execute(self, context: Any) -> Dict[str, Any]:
        params = extract_and_validate_params(context, ['query'])

        query = params['query']
        if not isinstance(query, str) or not query.strip():
            raise ToolContextError("Query parameter must be a non-empty string", keys=['query'])

        options = SearchOptions(**{k: params[k] for k in ('limit', 'threshold') if params.get(k) is not None})
        logger.info(f'Tool search_documents: "{query}" (limit={options.limit}, threshold={options.threshold})')

        results = await self.engine.search(query, options)
        documents: List[ToolDocument] = [
            ToolDocument(
                id=r.document.id,
                title=r.document.title,
                content=r.document.content[:TOOL_CONTENT_PREVIEW_CHARS],
                similarity=r.similarity,
            )
            for r in results
        ]
        return ToolSearchResult(documents=documents, count=len(documents)).model_dump()
