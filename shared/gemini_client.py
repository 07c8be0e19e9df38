"""
Gemini client for article generation.

Wraps ``google-genai`` so callers only deal with prompt parts in and text out.
Requests are grounded with Google Search.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .errors import GenerationError, RateLimitError

logger = logging.getLogger(__name__)

TEMPERATURE = 0.7


@dataclass(frozen=True)
class GeneratedText:
    text: str
    model: str
    grounded: bool = False


class GeminiClient:
    """
    Async Gemini caller with a tier → model mapping.

    Args:
        api_key: Gemini API key
        models: Mapping of tier name to model id
        client: Optional pre-built ``genai.Client``
    """

    def __init__(self, api_key: Optional[str], models: Dict[str, str], client=None):
        if client is None:
            if not api_key:
                raise ValueError("GEMINI_API_KEY environment variable not set")
            client = genai.Client(api_key=api_key)
        self.client = client
        self.models = models

    def model_for(self, tier: str) -> str:
        return self.models.get(tier) or self.models["basic"]

    async def generate(
        self,
        parts: List[str],
        tier: str,
        max_output_tokens: int
    ) -> GeneratedText:
        """
        Generate text from a list of user prompt parts.

        Args:
            parts: Prompt parts, each sent as a separate user turn
            tier: Tier name used to pick the model
            max_output_tokens: Output budget

        Returns:
            GeneratedText with the non-empty generated text

        Raises:
            RateLimitError: If Gemini answers with HTTP 429
            GenerationError: On any other API error or empty output
        """
        model = self.model_for(tier)
        contents = [
            types.Content(role="user", parts=[types.Part(text=part)])
            for part in parts
        ]
        config = types.GenerateContentConfig(
            temperature=TEMPERATURE,
            max_output_tokens=max_output_tokens,
            tools=[types.Tool(google_search=types.GoogleSearch())],
        )

        logger.info(
            f"Gemini request: model={model}, parts={len(parts)}, "
            f"max_output_tokens={max_output_tokens}"
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            if e.code == 429:
                logger.warning(f"Gemini rate limited: {e.message}")
                raise RateLimitError("Generation backend is rate limited, try again later")
            logger.error(f"Gemini error: {e}")
            raise GenerationError(f"Failed to generate content: {e.message or e}")

        text = response.text
        if not text or not text.strip():
            raise GenerationError("Generated content is empty")

        candidates = response.candidates or []
        grounded = bool(candidates and candidates[0].grounding_metadata)
        if grounded:
            logger.info("Response was grounded with Google Search")

        logger.info(f"Gemini response: {len(text)} characters")
        return GeneratedText(text=text, model=model, grounded=grounded)
