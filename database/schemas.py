"""
Pydantic models for data validation in the retrieval engine
Defines search options and the normalized result shape returned to callers
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rag.config import RETRIEVAL_CONFIG


class SearchOptions(BaseModel):
    """Caller options for a single search call"""
    model_config = ConfigDict(frozen=True)

    limit: int = Field(
        default=RETRIEVAL_CONFIG['default_limit'],
        ge=1,
        description="Maximum number of results",
    )
    threshold: float = Field(
        default=RETRIEVAL_CONFIG['default_threshold'],
        ge=0.0,
        le=1.0,
        description="Similarity threshold (0-1) for vector search",
    )


class DocumentPayload(BaseModel):
    """Document fields exposed in a search result"""
    id: Union[int, str]
    title: str = "Untitled Document"
    content: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RankedResult(BaseModel):
    """A retrieved document with a similarity score in [0, 1]"""
    document: DocumentPayload
    similarity: float = Field(..., ge=0.0, le=1.0)


class DocumentCreate(BaseModel):
    """Input for the document write path"""
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1, max_length=100000)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('title', 'content')
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Field cannot be blank")
        return v


class ToolDocument(BaseModel):
    """Document entry returned by the search tool"""
    id: Union[int, str]
    title: str
    content: str
    similarity: float


class ToolSearchResult(BaseModel):
    """Search tool response"""
    documents: List[ToolDocument]
    count: int
