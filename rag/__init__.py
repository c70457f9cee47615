"""
Hybrid retrieval engine components for the RAG system.

This package analyzes queries, runs the retrieval cascade against the
document store, and normalizes the ranked passages handed to response
generation.
"""
