"""Unit tests for the generation dispatcher (timeout, retry and parse handling)."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from src.generation.dispatcher import GenerationDispatcher, build_dispatcher
from src.generation.providers import LLMProvider
from src.models.models import CompletionRequest, GeneratedImage, GeneratedRecipe, ModelTier, PromptPlan
from src.utils.config import Config
from src.utils.exceptions import GenerationError, ProviderError

RECIPE_JSON = json.dumps({
    "title": "Golden Herb Chicken",
    "servings": 2,
    "time": {"prep_min": 10, "cook_min": 25},
    "ingredients": [{"section": "Main", "items": [{"item": "chicken thighs", "qty": 4}]}],
    "method": ["Season the chicken.", "Roast until golden."],
})


def make_plan(user_message: str = "USER REQUEST: chicken", json_mode: bool = True) -> PromptPlan:
    return PromptPlan(
        system_message="You are Zest.",
        user_message=user_message,
        max_tokens=1200,
        model_id="cheap-model",
        model_tier=ModelTier.CHEAP,
        temperature=0.5,
        json_mode=json_mode,
    )


@pytest.fixture
def provider():
    return AsyncMock(spec=LLMProvider)


@pytest.fixture
def dispatcher(provider):
    return GenerationDispatcher(provider, timeout_seconds=1.0, max_retries=2, retry_delay=0)


class TestGenerateRecipe:
    @pytest.mark.asyncio
    async def test_returns_validated_recipe(self, dispatcher, provider):
        provider.complete.return_value = RECIPE_JSON

        recipe = await dispatcher.generate_recipe(make_plan())

        assert isinstance(recipe, GeneratedRecipe)
        assert recipe.title == "Golden Herb Chicken"
        assert recipe.time.total_min == 35
        assert recipe.flat_instructions() == ["Season the chicken.", "Roast until golden."]

    @pytest.mark.asyncio
    async def test_passes_plan_fields_to_provider(self, dispatcher, provider):
        provider.complete.return_value = RECIPE_JSON

        await dispatcher.generate_recipe(make_plan())

        request = provider.complete.call_args.args[0]
        assert isinstance(request, CompletionRequest)
        assert request.model == "cheap-model"
        assert request.max_tokens == 1200
        assert request.json_mode is True

    @pytest.mark.asyncio
    async def test_repairs_fenced_output(self, dispatcher, provider):
        provider.complete.return_value = '```json\n{title: "Stew", servings: 2,}\n```'

        recipe = await dispatcher.generate_recipe(make_plan())

        assert recipe.title == "Stew"

    @pytest.mark.asyncio
    async def test_unparsable_output_is_not_retried(self, dispatcher, provider):
        provider.complete.return_value = "I'd love to help you cook!"

        with pytest.raises(GenerationError):
            await dispatcher.generate_recipe(make_plan())
        assert provider.complete.call_count == 1

    @pytest.mark.asyncio
    async def test_schema_mismatch_raises_generation_error(self, dispatcher, provider):
        provider.complete.return_value = '{"description": "no title"}'

        with pytest.raises(GenerationError, match="expected shape"):
            await dispatcher.generate_recipe(make_plan())


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, dispatcher, provider):
        provider.complete.side_effect = [ProviderError("overloaded", status=503), RECIPE_JSON]

        recipe = await dispatcher.generate_recipe(make_plan())

        assert recipe.title == "Golden Herb Chicken"
        assert provider.complete.call_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, dispatcher, provider):
        provider.complete.side_effect = [ProviderError("slow down", status=429), RECIPE_JSON]

        await dispatcher.generate_recipe(make_plan())

        assert provider.complete.call_count == 2

    @pytest.mark.asyncio
    async def test_quota_error_is_not_retried(self, dispatcher, provider):
        provider.complete.side_effect = ProviderError("You exceeded your quota", status=429, code="insufficient_quota")

        with pytest.raises(GenerationError) as exc:
            await dispatcher.generate_recipe(make_plan())

        assert exc.value.is_quota
        assert provider.complete.call_count == 1

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self, dispatcher, provider):
        provider.complete.side_effect = ProviderError("bad request", status=400)

        with pytest.raises(GenerationError):
            await dispatcher.generate_recipe(make_plan())
        assert provider.complete.call_count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, dispatcher, provider):
        provider.complete.side_effect = ProviderError("connection reset", is_connection=True)

        with pytest.raises(GenerationError) as exc:
            await dispatcher.generate_recipe(make_plan())

        assert provider.complete.call_count == 3
        assert isinstance(exc.value.cause, ProviderError)
        assert not exc.value.is_quota

    @pytest.mark.asyncio
    async def test_zero_retries_makes_one_attempt(self, provider):
        dispatcher = GenerationDispatcher(provider, max_retries=0, retry_delay=0)
        provider.complete.side_effect = ProviderError("overloaded", status=502)

        with pytest.raises(GenerationError):
            await dispatcher.complete_text(make_plan())
        assert provider.complete.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, provider):
        dispatcher = GenerationDispatcher(provider, timeout_seconds=0.01, max_retries=1, retry_delay=0)

        async def slow(request):
            await asyncio.sleep(1)
            return RECIPE_JSON

        provider.complete.side_effect = slow

        with pytest.raises(GenerationError, match="timed out") as exc:
            await dispatcher.complete_text(make_plan())

        assert exc.value.cause.is_timeout
        assert provider.complete.call_count == 2

    @pytest.mark.asyncio
    async def test_two_timeouts_then_success(self, provider):
        dispatcher = GenerationDispatcher(provider, timeout_seconds=0.05, max_retries=2, retry_delay=0)
        calls = []

        async def flaky(request):
            calls.append(request)
            if len(calls) <= 2:
                await asyncio.sleep(1)
            return RECIPE_JSON

        provider.complete.side_effect = flaky

        recipe = await dispatcher.generate_recipe(make_plan())

        assert recipe.title == "Golden Herb Chicken"
        assert len(calls) == 3

    @pytest.mark.asyncio
    @patch("src.generation.dispatcher.asyncio.sleep", new_callable=AsyncMock)
    async def test_exponential_backoff_delays(self, mock_sleep, provider):
        dispatcher = GenerationDispatcher(provider, max_retries=2, retry_delay=1.0, exponential_backoff=True)
        provider.complete.side_effect = ProviderError("overloaded", status=503)

        with pytest.raises(GenerationError):
            await dispatcher.complete_text(make_plan())

        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    @patch("src.generation.dispatcher.asyncio.sleep", new_callable=AsyncMock)
    async def test_constant_backoff_delays(self, mock_sleep, provider):
        dispatcher = GenerationDispatcher(provider, max_retries=2, retry_delay=1.0, exponential_backoff=False)
        provider.complete.side_effect = ProviderError("overloaded", status=503)

        with pytest.raises(GenerationError):
            await dispatcher.complete_text(make_plan())

        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 1.0]


class TestChatAndTitles:
    @pytest.mark.asyncio
    async def test_chat_reply_is_stripped(self, dispatcher, provider):
        provider.complete.return_value = "  Add a squeeze of lemon.  \n"

        assert await dispatcher.generate_chat_reply(make_plan(json_mode=False)) == "Add a squeeze of lemon."

    @pytest.mark.asyncio
    async def test_empty_chat_reply_raises(self, dispatcher, provider):
        provider.complete.return_value = "   "

        with pytest.raises(GenerationError, match="empty"):
            await dispatcher.generate_chat_reply(make_plan(json_mode=False))

    @pytest.mark.asyncio
    async def test_titles_drop_failures_and_duplicates(self, dispatcher, provider):
        responses = {
            "thai": '{"title": "Thai Basil Pork"}',
            "greek": '{"title": "Thai Basil Pork"}',
            "mexican": '{"title": ""}',
            "indian": "not json",
            "french": '{"title": "Coq au Riesling"}',
        }

        async def complete(request):
            if request.user == "japanese":
                raise ProviderError("bad request", status=400)
            return responses[request.user]

        provider.complete.side_effect = complete
        plans = [make_plan(c) for c in ("thai", "greek", "mexican", "indian", "japanese", "french")]

        titles = await dispatcher.generate_titles(plans)

        assert titles == ["Thai Basil Pork", "Coq au Riesling"]

    @pytest.mark.asyncio
    async def test_titles_all_failed_returns_empty(self, dispatcher, provider):
        provider.complete.side_effect = ProviderError("bad request", status=400)

        assert await dispatcher.generate_titles([make_plan(), make_plan()]) == []


class TestImages:
    @pytest.mark.asyncio
    async def test_generate_image_passes_through(self, dispatcher, provider):
        provider.generate_image.return_value = GeneratedImage(url="https://cdn.example.com/a.png")

        image = await dispatcher.generate_image("a stew", "1024x1024")

        assert image.url == "https://cdn.example.com/a.png"
        provider.generate_image.assert_awaited_once_with("a stew", "1024x1024")

    @pytest.mark.asyncio
    async def test_generate_image_failure_raises(self, dispatcher, provider):
        provider.generate_image.side_effect = ProviderError("content policy", status=400)

        with pytest.raises(GenerationError):
            await dispatcher.generate_image("a stew")


def test_build_dispatcher_uses_config(monkeypatch, provider):
    monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "12")
    monkeypatch.setenv("MAX_RETRIES", "1")
    monkeypatch.setenv("DELAY_BETWEEN_RETRIES", "0.25")
    monkeypatch.setenv("EXPONENTIAL_BACKOFF", "false")

    dispatcher = build_dispatcher(provider, Config())

    assert dispatcher.timeout_seconds == 12.0
    assert dispatcher.max_retries == 1
    assert dispatcher.retry_delay == 0.25
    assert dispatcher.exponential_backoff is False
