"""
Repository layer for the document write path
Stores passages with their embeddings and backfills missing vectors
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import RagDocument, VECTOR_DIMENSION
from database.schemas import DocumentCreate
from rag.errors import StoreError

logger = logging.getLogger(__name__)


class DocumentRepositoryError(StoreError):
    """Custom exception for document repository operations"""
    pass


class DocumentRepository:
    """Repository for rag_documents writes; the caller owns the session"""

    def __init__(self, session: AsyncSession, embedder, vector_dimension: int = VECTOR_DIMENSION):
        self.session = session
        self.embedder = embedder
        self.vector_dimension = vector_dimension

    async def add_document(
        self,
        title: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> RagDocument:
        """
        Embed ``"{title} {content}"`` and insert the document
        """
        document_data = DocumentCreate(title=title, content=content, metadata=metadata)
        document = RagDocument(
            title=document_data.title,
            content=document_data.content,
            doc_metadata=document_data.metadata or {},
        )
        document.embedding = await self._embed(document)

        try:
            self.session.add(document)
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.error(f"Integrity error creating document: {e}")
            raise DocumentRepositoryError(f"Database integrity error: {str(e)}", strategy="insert") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Database error creating document: {e}")
            raise DocumentRepositoryError(f"Database error: {str(e)}", strategy="insert") from e

        logger.info(f'Document "{document.title}" added with ID: {document.id}')
        return document

    async def backfill_missing_embeddings(self, batch_size: int = 50) -> int:
        """
        Generate embeddings for documents stored without one

        Returns:
            Number of documents updated
        """
        try:
            result = await self.session.execute(
                select(RagDocument).where(RagDocument.embedding.is_(None)).limit(batch_size)
            )
            documents = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Database error listing documents without embeddings: {e}")
            raise DocumentRepositoryError(f"Database error: {str(e)}", strategy="backfill") from e

        logger.info(f"Found {len(documents)} documents without embeddings")

        for document in documents:
            document.embedding = await self._embed(document)

        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Database error storing backfilled embeddings: {e}")
            raise DocumentRepositoryError(f"Database error: {str(e)}", strategy="backfill") from e

        return len(documents)

    async def list_documents(self, limit: int = 100) -> List[RagDocument]:
        """Newest documents first"""
        try:
            result = await self.session.execute(
                select(RagDocument).order_by(RagDocument.created_at.desc()).limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Database error listing documents: {e}")
            raise DocumentRepositoryError(f"Database error: {str(e)}", strategy="list") from e

    async def _embed(self, document: RagDocument) -> List[float]:
        embedding = await self.embedder.embed(document.embedding_text())
        if not embedding or len(embedding) != self.vector_dimension:
            raise DocumentRepositoryError(
                f"Embedding vector must be {self.vector_dimension}-dimensional", strategy="embed"
            )
        return embedding
