"""
SQLAlchemy ORM models for the retrieval store
Defines the rag_documents table holding passages and their embeddings
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from database.connection import Base
from rag.config import RETRIEVAL_CONFIG

VECTOR_DIMENSION = RETRIEVAL_CONFIG['vector_dimension']


class RagDocument(Base):
    """Retrievable passage with its vector embedding"""
    __tablename__ = 'rag_documents'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[Optional[List[float]]] = mapped_column(Vector(VECTOR_DIMENSION), nullable=True)
    # "metadata" is reserved on declarative classes
    doc_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column('metadata', JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.current_timestamp())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
    )

    __table_args__ = (
        Index(
            'rag_documents_embedding_idx',
            'embedding',
            postgresql_using='ivfflat',
            postgresql_with={'lists': 100},
            postgresql_ops={'embedding': 'vector_cosine_ops'},
        ),
    )

    def __repr__(self):
        return f"<RagDocument(id={self.id}, title='{self.title}')>"

    def embedding_text(self) -> str:
        """Text submitted to the embedding provider for this document"""
        return f"{self.title} {self.content}"

