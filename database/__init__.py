"""
Database package for the retrieval engine
Provides connection management, the document model, and search passes
"""

from .connection import (
    DatabaseConfig,
    DatabaseManager,
    init_database,
    Base
)

from .models import RagDocument

__all__ = [
    # Connection utilities
    'DatabaseConfig',
    'DatabaseManager',
    'init_database',
    'Base',

    # Models
    'RagDocument',
]
