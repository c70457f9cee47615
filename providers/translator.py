"""
Translation provider for cross-language retries
Uses a Gemini generative model to translate a query into the corpus language
"""

import asyncio
import logging
import os
from typing import Any, Optional

import google.generativeai as genai

from rag.config import TRANSLATION_CONFIG
from rag.errors import TranslationError

logger = logging.getLogger(__name__)

TRANSLATION_PROMPT = (
    "Translate the following search query into {language}. "
    "Reply with the translation only, without quotes or explanations.\n\n"
    "Query: {text}"
)


class GeminiTranslator:
    """Translate short query texts with a Gemini chat model"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = None,
        timeout_seconds: int = None,
        model_client: Any = None,
    ):
        api_key = api_key or os.getenv('GEMINI_API_KEY') or os.getenv('GOOGLE_API_KEY')
        if not api_key:
            raise ValueError("Gemini API key is required. Set GEMINI_API_KEY environment variable.")
        genai.configure(api_key=api_key)

        self.model_name = model or TRANSLATION_CONFIG['model']
        self.timeout_seconds = timeout_seconds or TRANSLATION_CONFIG['timeout_seconds']
        self.model = model_client or genai.GenerativeModel(model_name=self.model_name)
        self.generation_config = genai.types.GenerationConfig(
            temperature=0.0,
            max_output_tokens=256,
        )

    async def translate(self, text: str, target_language: str) -> str:
        """
        Translate ``text`` into ``target_language``.

        Raises:
            TranslationError: On provider failure, timeout or an empty reply
        """
        prompt = TRANSLATION_PROMPT.format(language=target_language, text=text)
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.model.generate_content,
                    prompt,
                    generation_config=self.generation_config
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TranslationError(
                f"Translation timed out after {self.timeout_seconds}s", target_language
            ) from e
        except Exception as e:
            raise TranslationError(f"Translation API error: {e}", target_language) from e

        translated = self._extract_text(response)
        if not translated:
            raise TranslationError("Translation returned no text", target_language)

        logger.debug(f"Translated query to {target_language}: {translated[:80]}")
        return translated

    @staticmethod
    def _extract_text(response: Any) -> str:
        for candidate in getattr(response, 'candidates', None) or []:
            content = getattr(candidate, 'content', None)
            parts = getattr(content, 'parts', None) or []
            text = ''.join(getattr(part, 'text', '') or '' for part in parts).strip()
            if text:
                return text.strip('"\'')
        return ""
