"""
Vector Embedding Service
Integrates with the Google Gemini API for query embedding generation
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import List, Optional

import aiohttp

from rag.config import EMBEDDING_CONFIG, RETRIEVAL_CONFIG
from rag.errors import EmbeddingError

logger = logging.getLogger(__name__)

__all__ = ['EmbeddingError', 'EmbeddingResult', 'VectorEmbedder']


@dataclass
class EmbeddingResult:
    """Result container for embedding generation"""
    text: str
    embedding: List[float]
    model: str
    dimensions: int
    processing_time: float
    truncated: bool = False


class VectorEmbedder:
    """
    Google Gemini embedding client.

    Makes exactly one request per call. Retries and caching are left to the
    caller; every query is embedded fresh.

    Used outside ``async with``, the first call opens an HTTP session that
    only ``close()`` releases.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = None,
        max_chars: int = None,
        expected_dimensions: Optional[int] = None,
        timeout_seconds: int = None,
        base_url: str = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key or os.getenv('GEMINI_API_KEY') or os.getenv('GOOGLE_API_KEY')
        if not self.api_key:
            raise ValueError("Gemini API key is required. Set GEMINI_API_KEY environment variable.")

        self.model = model or EMBEDDING_CONFIG['model']
        self.max_chars = max_chars or EMBEDDING_CONFIG['max_chars']
        self.expected_dimensions = (
            expected_dimensions if expected_dimensions is not None else RETRIEVAL_CONFIG['vector_dimension']
        )
        self.timeout_seconds = timeout_seconds or EMBEDDING_CONFIG['timeout_seconds']
        self.base_url = base_url or EMBEDDING_CONFIG['base_url']

        # HTTP session; an injected session is not closed by this client
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self):
        """Async context manager entry"""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()

    async def _ensure_session(self):
        """Ensure HTTP session is created"""
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds, connect=10)
            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers={
                    'Content-Type': 'application/json',
                    'x-goog-api-key': self.api_key
                }
            )
            self._owns_session = True

    def _preprocess_text(self, text: str) -> str:
        """Collapse whitespace and truncate to the provider-safe length"""
        if not text or not isinstance(text, str):
            return ""

        text = ' '.join(text.split())

        if len(text) > self.max_chars:
            logger.warning(f"Text truncated from {len(text)} to {self.max_chars} characters for embedding")
            text = text[:self.max_chars]

        return text

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for a single text

        Args:
            text: Text of any length; over-long input is truncated

        Returns:
            EmbeddingResult object

        Raises:
            EmbeddingError: If the provider fails or returns no values
        """
        start_time = time.time()

        processed_text = self._preprocess_text(text)
        if not processed_text:
            raise EmbeddingError(text, "Empty or invalid text after preprocessing")
        truncated = len(' '.join((text or '').split())) > len(processed_text)

        await self._ensure_session()
        url = f"{self.base_url}/{self.model}:embedContent"
        payload = {
            "model": self.model,
            "content": {
                "parts": [{"text": processed_text}]
            }
        }

        try:
            async with self.session.post(url, json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise EmbeddingError(text, f"API error {response.status}: {error_text[:200]}")
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise EmbeddingError(text, f"Network error: {e!r}") from e

        embedding = (data.get('embedding') or {}).get('values')
        if not isinstance(embedding, list) or len(embedding) == 0:
            raise EmbeddingError(text, "No embedding values returned from Gemini")

        if self.expected_dimensions and len(embedding) != self.expected_dimensions:
            raise EmbeddingError(
                text,
                f"Embedding has {len(embedding)} dimensions, expected {self.expected_dimensions}"
            )

        processing_time = time.time() - start_time
        logger.debug(f"Generated embedding for text length {len(processed_text)} in {processing_time:.2f}s")

        return EmbeddingResult(
            text=processed_text,
            embedding=[float(v) for v in embedding],
            model=self.model,
            dimensions=len(embedding),
            processing_time=processing_time,
            truncated=truncated,
        )

    async def embed(self, text: str) -> List[float]:
        """Embedding provider contract: text in, vector out"""
        result = await self.generate_embedding(text)
        return result.embedding

    async def close(self):
        """Clean up resources"""
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
        logger.debug("VectorEmbedder resources cleaned up")

