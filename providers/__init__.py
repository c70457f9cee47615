"""
External providers used by the retrieval engine: text embeddings and the
optional translation service for cross-language retries.
"""
