"""
Multimodal image description via Google Gemini.

The image bytes are sent inline with the describe prompt; the model's
text answer is returned as-is.
"""

from __future__ import annotations

from google import genai

from docflow.capabilities.prompts import DESCRIBE_IMAGE_PROMPT, SYSTEM_PROMPT
from docflow.core.logging import get_logger
from docflow.core.tracing import traceable_step
from docflow.pipeline.errors import CapabilityError, ConfigurationError

logger = get_logger(__name__)


class MultimodalClient:
    """Describes images with a Gemini model."""

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float = 0.0,
        max_output_tokens: int = 2048,
        client: genai.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("GOOGLE_API_KEY is not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @traceable_step(name="describe_image", run_type="llm", tags=["vision", "llm", "gemini"])
    async def describe(self, image: bytes, content_type: str) -> str:
        client = self._get_client()

        logger.info("Calling Gemini with image", model=self.model, size=len(image))

        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=[
                    genai.types.Part.from_bytes(data=image, mime_type=content_type),
                    DESCRIBE_IMAGE_PROMPT,
                ],
                config=genai.types.GenerateContentConfig(
                    system_instruction=SYSTEM_PROMPT,
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                ),
            )
        except Exception as exc:
            raise CapabilityError(f"Gemini describe failed: {exc}") from exc

        text = (response.text or "").strip()
        if not text:
            raise CapabilityError("Gemini returned an empty description")

        logger.info("Gemini response received", response_length=len(text))
        return text
