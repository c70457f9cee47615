"""
Retrieval Configuration
Tunable settings for scoring, the fallback cascade, and external providers
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Search defaults exposed to callers
RETRIEVAL_CONFIG = {
    'default_limit': int(os.getenv('RETRIEVAL_DEFAULT_LIMIT', '5')),
    'default_threshold': float(os.getenv('SIMILARITY_THRESHOLD', '0.3')),
    'vector_dimension': int(os.getenv('VECTOR_DIMENSION', '768')),
    'max_keywords': int(os.getenv('RETRIEVAL_MAX_KEYWORDS', '15')),
}

# Lexical boost weights used by the hybrid query
SCORING_CONFIG = {
    'title_boost': float(os.getenv('SCORING_TITLE_BOOST', '0.5')),
    'content_boost': float(os.getenv('SCORING_CONTENT_BOOST', '0.3')),
    'gate_relaxation': float(os.getenv('SCORING_GATE_RELAXATION', '0.5')),
    'hybrid_max_keywords': int(os.getenv('SCORING_HYBRID_MAX_KEYWORDS', '10')),
    'keyword_search_max_terms': int(os.getenv('SCORING_KEYWORD_MAX_TERMS', '5')),
    'keyword_placeholder_similarity': float(os.getenv('SCORING_KEYWORD_SIMILARITY', '0.5')),
}

# Post-filter and threshold ladder used by the cascade
CASCADE_CONFIG = {
    'strong_boost': float(os.getenv('CASCADE_STRONG_BOOST', '0.3')),
    'weak_boost': float(os.getenv('CASCADE_WEAK_BOOST', '0.15')),
    'strong_min_combined': float(os.getenv('CASCADE_STRONG_MIN_COMBINED', '0.5')),
    'strong_min_base': float(os.getenv('CASCADE_STRONG_MIN_BASE', '0.2')),
    'weak_threshold_offset': float(os.getenv('CASCADE_WEAK_THRESHOLD_OFFSET', '0.2')),
    'weak_min_combined': float(os.getenv('CASCADE_WEAK_MIN_COMBINED', '0.4')),
    'relative_steps': [
        float(v) for v in os.getenv('CASCADE_RELATIVE_STEPS', '0.7,0.5').split(',') if v.strip()
    ],
    'floor_steps': [
        float(v) for v in os.getenv('CASCADE_FLOOR_STEPS', '0.1,0.05,0.01,0').split(',') if v.strip()
    ],
    'cross_language_threshold': float(os.getenv('CASCADE_CROSS_LANGUAGE_THRESHOLD', '0')),
}

# Embedding provider configuration
EMBEDDING_CONFIG = {
    'model': os.getenv('GEMINI_EMBEDDING_MODEL', 'models/text-embedding-004'),
    'max_chars': int(os.getenv('EMBEDDING_MAX_CHARS', '8000')),
    'timeout_seconds': int(os.getenv('EMBEDDING_TIMEOUT_SECONDS', '30')),
    'base_url': os.getenv('GEMINI_BASE_URL', 'https://generativelanguage.googleapis.com/v1beta'),
}

# Optional translation provider for the cross-language retry
TRANSLATION_CONFIG = {
    'model': os.getenv('GEMINI_MODEL', 'models/gemini-2.5-flash'),
    'target_language': os.getenv('CORPUS_LANGUAGE', 'English'),
    'timeout_seconds': int(os.getenv('TRANSLATION_TIMEOUT_SECONDS', '30')),
}

if os.getenv('ENVIRONMENT') == 'development':
    # Chatty local runs with short provider timeouts
    EMBEDDING_CONFIG['timeout_seconds'] = 10
    TRANSLATION_CONFIG['timeout_seconds'] = 10

if os.getenv('ENVIRONMENT') == 'production':
    EMBEDDING_CONFIG['timeout_seconds'] = 60
    TRANSLATION_CONFIG['timeout_seconds'] = 60
