"""LLM provider adapters.

Each adapter turns a CompletionRequest into one SDK call and normalises every SDK
exception into ProviderError so the dispatcher can tell transient transport
failures (timeout, connection, 5xx, rate limit) from quota and permanent errors.
Adapters make exactly one attempt; retries live in the dispatcher.
"""

import asyncio
from abc import ABC, abstractmethod

import httpx
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from src.models.models import CompletionRequest, GeneratedImage
from src.utils.config import Config
from src.utils.exceptions import ProviderError
from src.utils.logger import logger


class LLMProvider(ABC):
    """Provider-neutral chat completion and image generation interface."""

    name: str = "provider"

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> str:
        """Return the raw text of one completion."""

    @abstractmethod
    async def generate_image(self, prompt: str, size: str) -> GeneratedImage:
        """Generate one image for the prompt."""


class GeminiProvider(LLMProvider):
    """Google Gemini via google-genai. The SDK client is synchronous, so calls run in a worker thread."""

    name = "gemini"

    def __init__(self, api_key: str, image_model: str):
        self.client = genai.Client(api_key=api_key)
        self.image_model = image_model

    @staticmethod
    def _wrap_error(e: Exception) -> ProviderError:
        if isinstance(e, genai_errors.APIError):
            return ProviderError(f"Gemini API error: {e}", status=e.code, code=e.status)
        # The SDK transport is httpx; its errors do not subclass the builtin ones
        if isinstance(e, (httpx.TimeoutException, TimeoutError, asyncio.TimeoutError)):
            return ProviderError(f"Gemini request timed out: {e}", is_timeout=True)
        if isinstance(e, (httpx.TransportError, ConnectionError, OSError)):
            return ProviderError(f"Gemini connection failed: {e}", is_connection=True)
        return ProviderError(f"Gemini call failed: {e}")

    async def complete(self, request: CompletionRequest) -> str:
        generation_config = types.GenerateContentConfig(
            system_instruction=request.system,
            temperature=request.temperature,
            max_output_tokens=request.max_tokens,
            response_mime_type="application/json" if request.json_mode else None,
        )
        try:
            response = await asyncio.to_thread(
                self.client.models.generate_content,
                model=request.model,
                contents=request.user,
                config=generation_config,
            )
        except Exception as e:
            raise self._wrap_error(e) from e

        return response.text or ""

    async def generate_image(self, prompt: str, size: str) -> GeneratedImage:
        # Imagen takes an aspect ratio rather than pixel dimensions; every size we use is square
        try:
            response = await asyncio.to_thread(
                self.client.models.generate_images,
                model=self.image_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(number_of_images=1, aspect_ratio="1:1"),
            )
        except Exception as e:
            raise self._wrap_error(e) from e

        if not response.generated_images:
            raise ProviderError("Gemini returned no images")
        image = response.generated_images[0].image
        return GeneratedImage(data=image.image_bytes, mime_type=image.mime_type or "image/png")


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions and DALL-E images via the async SDK (SDK-level retries disabled)."""

    name = "openai"

    def __init__(self, api_key: str, image_model: str, timeout: float):
        self.client = openai.AsyncOpenAI(api_key=api_key, max_retries=0, timeout=timeout)
        self.image_model = image_model

    @staticmethod
    def _wrap_error(e: Exception) -> ProviderError:
        if isinstance(e, openai.APITimeoutError):
            return ProviderError(f"OpenAI request timed out: {e}", is_timeout=True)
        if isinstance(e, openai.APIConnectionError):
            return ProviderError(f"OpenAI connection failed: {e}", is_connection=True)
        if isinstance(e, openai.APIStatusError):
            return ProviderError(f"OpenAI API error: {e.message}", status=e.status_code, code=e.code)
        return ProviderError(f"OpenAI call failed: {e}")

    async def complete(self, request: CompletionRequest) -> str:
        kwargs = {}
        if request.json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await self.client.chat.completions.create(
                model=request.model,
                messages=[
                    {"role": "system", "content": request.system},
                    {"role": "user", "content": request.user},
                ],
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise self._wrap_error(e) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def generate_image(self, prompt: str, size: str) -> GeneratedImage:
        try:
            response = await self.client.images.generate(
                model=self.image_model,
                prompt=prompt,
                size=size,
                quality="standard",
                n=1,
            )
        except openai.OpenAIError as e:
            raise self._wrap_error(e) from e

        if not response.data or not response.data[0].url:
            raise ProviderError("OpenAI returned no image URL")
        return GeneratedImage(url=response.data[0].url)


def create_provider(cfg: Config) -> LLMProvider:
    """Build the provider selected by AI_PROVIDER."""
    if cfg.AI_PROVIDER == "openai":
        logger.info(f"Using OpenAI provider (cheap={cfg.CHEAP_MODEL}, premium={cfg.PREMIUM_MODEL})")
        return OpenAIProvider(cfg.OPENAI_API_KEY, cfg.IMAGE_MODEL, cfg.REQUEST_TIMEOUT_SECONDS)
    logger.info(f"Using Gemini provider (cheap={cfg.CHEAP_MODEL}, premium={cfg.PREMIUM_MODEL})")
    return GeminiProvider(cfg.GEMINI_API_KEY, cfg.IMAGE_MODEL)
