"""
Logging configuration for the retrieval engine.
"""
