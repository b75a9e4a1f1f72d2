"""Generation dispatcher: calls the provider for a prompt plan and parses the result.

**Retry Strategy:**
- Every provider call is wrapped in asyncio.wait_for(REQUEST_TIMEOUT_SECONDS)
- Transient errors (timeout, connection, 408/429/5xx): retried up to MAX_RETRIES
  times with exponential backoff (1s -> 2s)
- Permanent errors (auth, bad request, quota): fail immediately
- Unparsable output: fail immediately, a retry will not fix a prompt/schema mismatch

Any failure surfaces as GenerationError; callers substitute a static fallback.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from pydantic import ValidationError

from src.generation.json_repair import parse_json_object
from src.generation.providers import LLMProvider
from src.models.models import CompletionRequest, GeneratedImage, GeneratedRecipe, PromptPlan
from src.utils.config import Config
from src.utils.exceptions import GenerationError, ProviderError
from src.utils.logger import logger

T = TypeVar("T")


class GenerationDispatcher:
    """Invokes a provider with bounded timeout/retry and repairs/parses JSON payloads."""

    def __init__(
        self,
        provider: LLMProvider,
        timeout_seconds: float = 45.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        exponential_backoff: bool = True,
    ):
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.exponential_backoff = exponential_backoff

    async def _call_with_retries(self, operation: Callable[[], Awaitable[T]], operation_name: str) -> T:
        attempt = 0
        delay_seconds = self.retry_delay

        while True:
            try:
                return await asyncio.wait_for(operation(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as e:
                error = ProviderError(
                    f"{operation_name} timed out after {self.timeout_seconds}s", is_timeout=True
                )
                error.__cause__ = e
            except ProviderError as e:
                error = e

            if not error.transient or attempt >= self.max_retries:
                logger.warning(f"{operation_name} failed after {attempt + 1} attempt(s): {error}")
                raise GenerationError(f"{operation_name} failed: {error}", cause=error) from error

            attempt += 1
            logger.debug(
                f"Transient error in {operation_name}, retrying "
                f"(attempt {attempt + 1}/{self.max_retries + 1}) after {delay_seconds}s: {error}"
            )
            await asyncio.sleep(delay_seconds)
            if self.exponential_backoff:
                delay_seconds *= 2

    async def complete_text(self, plan: PromptPlan, operation_name: str = "Completion") -> str:
        request = CompletionRequest.from_plan(plan)
        return await self._call_with_retries(lambda: self.provider.complete(request), operation_name)

    async def complete_json(self, plan: PromptPlan, operation_name: str = "JSON completion") -> dict:
        """Run the plan and return the repaired, parsed JSON object."""
        text = await self.complete_text(plan, operation_name)
        return parse_json_object(text)

    async def generate_recipe(self, plan: PromptPlan) -> GeneratedRecipe:
        """Generate and validate a full recipe.

        Raises:
            GenerationError: provider failure after retries, or output that cannot be
                repaired into a valid recipe.
        """
        payload = await self.complete_json(plan, f"Recipe generation ({plan.model_id})")
        try:
            recipe = GeneratedRecipe.model_validate(payload)
        except ValidationError as e:
            raise GenerationError(f"Recipe JSON does not match the expected shape: {e}", cause=e) from e

        logger.info(f"✓ Generated recipe '{recipe.title}' with {plan.model_id}")
        return recipe

    async def generate_chat_reply(self, plan: PromptPlan) -> str:
        reply = (await self.complete_text(plan, f"Chat reply ({plan.model_id})")).strip()
        if not reply:
            raise GenerationError("Model returned an empty chat reply")
        return reply

    async def generate_titles(self, plans: list[PromptPlan]) -> list[str]:
        """Generate one title per plan concurrently, dropping failed or malformed entries."""

        async def _one(plan: PromptPlan) -> str:
            payload = await self.complete_json(plan, "Title suggestion")
            title = str(payload.get("title", "")).strip()
            if not title:
                raise GenerationError("Title suggestion missing 'title'")
            return title

        results = await asyncio.gather(*(_one(plan) for plan in plans), return_exceptions=True)

        titles: list[str] = []
        for result in results:
            if isinstance(result, BaseException):
                logger.debug(f"Dropping failed title suggestion: {result}")
                continue
            if result not in titles:
                titles.append(result)
        logger.info(f"✓ {len(titles)}/{len(plans)} title suggestions generated")
        return titles

    async def generate_image(self, prompt: str, size: str = "1024x1024") -> GeneratedImage:
        return await self._call_with_retries(
            lambda: self.provider.generate_image(prompt, size), "Image generation"
        )


def build_dispatcher(provider: LLMProvider, cfg: Config) -> GenerationDispatcher:
    """Create a dispatcher using the retry/timeout settings from config."""
    return GenerationDispatcher(
        provider,
        timeout_seconds=cfg.REQUEST_TIMEOUT_SECONDS,
        max_retries=cfg.MAX_RETRIES,
        retry_delay=cfg.DELAY_BETWEEN_RETRIES,
        exponential_backoff=cfg.EXPONENTIAL_BACKOFF,
    )
