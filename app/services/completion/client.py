"""
Gemini API client for code completion.
"""

import httpx
import logging
from typing import Dict, Any, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ProviderError
from app.models.admin import ApiKey

logger = logging.getLogger(__name__)

GEMINI_KEY_NAME = "GEMINI_API_KEY"
SAFETY_CATEGORIES = ("HARM_CATEGORY_HARASSMENT", "HARM_CATEGORY_HATE_SPEECH")


async def resolve_api_key(db: AsyncSession) -> str:
    """
    Get the Gemini API key, preferring the one rotated from the admin console.

    Args:
        db: Database session

    Returns:
        API key

    Raises:
        ProviderError: If no key is stored or configured
    """
    result = await db.execute(select(ApiKey.key_value).where(ApiKey.key_name == GEMINI_KEY_NAME))
    stored = result.scalar_one_or_none()
    if stored:
        return stored
    if settings.GEMINI_API_KEY:
        return settings.GEMINI_API_KEY

    logger.error("Gemini API key is neither stored nor configured")
    raise ProviderError("Gemini API key not configured. Please contact administrator.")


class GeminiClient:
    """Client for the Gemini generateContent endpoint."""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key
            model: Model name, defaults to GEMINI_MODEL
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.model = model or settings.GEMINI_MODEL
        self.base_url = settings.GEMINI_API_URL.rstrip("/")
        self.timeout = settings.GEMINI_TIMEOUT
        self._transport = transport

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": settings.GEMINI_TEMPERATURE,
                "topK": settings.GEMINI_TOP_K,
                "topP": settings.GEMINI_TOP_P,
                "maxOutputTokens": settings.GEMINI_MAX_OUTPUT_TOKENS,
            },
            "safetySettings": [
                {"category": category, "threshold": settings.GEMINI_SAFETY_THRESHOLD}
                for category in SAFETY_CATEGORIES
            ],
        }

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> Optional[str]:
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None

    async def generate(self, prompt: str) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Full prompt text

        Returns:
            Generated text

        Raises:
            ProviderError: On transport failure, non-200 status or empty output
        """
        url = f"{self.base_url}/models/{self.model}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url,
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=self._build_payload(prompt),
                )
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: {e}")
            raise ProviderError(f"Failed to reach Gemini API: {e}") from e

        if response.status_code != 200:
            logger.error(f"Gemini API error {response.status_code}: {response.text}")
            raise ProviderError(f"Gemini API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Gemini returned invalid JSON: {response.text[:200]}")
            raise ProviderError("Invalid response from Gemini API") from e

        text = self._extract_text(data)
        if not text or not text.strip():
            logger.warning(f"Gemini returned no content: {data}")
            raise ProviderError("No code generated")

        return text
