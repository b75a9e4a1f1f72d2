"""Unit tests for Pydantic models validation."""

import pytest
from pydantic import TypeAdapter, ValidationError

from src.models.models import (
    ChatRequest,
    ClassificationContext,
    ClassificationResult,
    CompletionRequest,
    ExtractedElements,
    GeneratedRecipe,
    Intent,
    ModelTier,
    NoRecipeContext,
    PromptPlan,
    RecipePreferences,
    RecipeRequest,
    RecipeTime,
    SpecificityTier,
    VarietyGuidance,
    WithRecipeContext,
)
from src.utils.exceptions import (
    ClassificationError,
    GenerationError,
    NotFoundOrForbidden,
    ProviderError,
    RequestValidationError,
)


class TestExtractedElements:
    """Test coercion of model-extracted dish elements."""

    def test_bare_string_becomes_list(self):
        extracted = ExtractedElements(cuisine="thai", technique=None)
        assert extracted.cuisine == ["thai"]
        assert extracted.technique == []

    def test_blank_strings_become_none(self):
        extracted = ExtractedElements(named_dish="null", chef_reference="  ")
        assert extracted.named_dish is None
        assert extracted.chef_reference is None

    def test_falsy_list_items_are_dropped(self):
        assert ExtractedElements(mood=["cosy", "", None]).mood == ["cosy"]

    def test_is_empty(self):
        assert ExtractedElements().is_empty()
        assert not ExtractedElements(occasion=["date night"]).is_empty()


class TestRecipePreferences:
    def test_defaults(self):
        prefs = RecipePreferences(user_intent="something with chicken")
        assert prefs.servings == 4
        assert prefs.dietary_needs == []
        assert prefs.time_budget is None

    def test_comma_separated_lists(self):
        prefs = RecipePreferences(user_intent="curry", dietary_needs="vegan, gluten-free,", avoid="mushrooms")
        assert prefs.dietary_needs == ["vegan", "gluten-free"]
        assert prefs.avoid == ["mushrooms"]

    def test_intent_is_stripped(self):
        assert RecipePreferences(user_intent="  carbonara  ").user_intent == "carbonara"

    @pytest.mark.parametrize("overrides", [
        {"user_intent": ""},
        {"user_intent": "x" * 501},
        {"user_intent": "stew", "servings": 0},
        {"user_intent": "stew", "servings": 21},
        {"user_intent": "stew", "time_budget": 2},
    ])
    def test_out_of_bounds_values_are_rejected(self, overrides):
        with pytest.raises(ValidationError):
            RecipePreferences(**overrides)


class TestGeneratedRecipe:
    """Test the lenient schema used to parse generated recipe JSON."""

    def test_minimal_recipe(self):
        recipe = GeneratedRecipe(title="Toast")
        assert recipe.servings == 4
        assert recipe.ingredients == []
        assert recipe.tips() is None
        assert recipe.cook_time_display() is None

    def test_unknown_keys_are_ignored(self):
        recipe = GeneratedRecipe.model_validate({"title": "Soup", "wine_pairing": "Riesling"})
        assert not hasattr(recipe, "wine_pairing")

    def test_flat_instruction_strings_become_steps(self):
        recipe = GeneratedRecipe.model_validate({"title": "Soup", "method": ["Chop", "Simmer"]})
        assert [(s.step, s.instruction) for s in recipe.method] == [(1, "Chop"), (2, "Simmer")]

    def test_flat_ingredient_list_becomes_one_section(self):
        recipe = GeneratedRecipe.model_validate({
            "title": "Soup",
            "ingredients": ["2 leeks", {"item": "stock", "qty": 1.0, "unit": "l"}],
        })
        assert len(recipe.ingredients) == 1
        assert recipe.ingredients[0].section == "Main"
        assert recipe.flat_ingredients() == ["2 leeks", "1 l stock"]

    def test_numeric_quantities_become_strings(self):
        recipe = GeneratedRecipe.model_validate({
            "title": "Soup",
            "ingredients": [{"section": "Main", "items": [{"item": "rice", "qty": 0.5, "unit": "cup"}]}],
        })
        assert recipe.ingredients[0].items[0].qty == "0.5"

    def test_instructions_follow_step_numbers(self):
        recipe = GeneratedRecipe.model_validate({
            "title": "Soup",
            "method": [{"step": 2, "instruction": "Simmer"}, {"step": 1, "instruction": "Chop"}],
        })
        assert recipe.flat_instructions() == ["Chop", "Simmer"]

    def test_missing_title_is_rejected(self):
        with pytest.raises(ValidationError):
            GeneratedRecipe.model_validate({"description": "No name"})


class TestRecipeTime:
    def test_total_is_filled_in(self):
        assert RecipeTime(prep_min=10, cook_min=25).total_min == 35

    def test_explicit_total_is_kept(self):
        assert RecipeTime(prep_min=10, cook_min=25, total_min=60).total_min == 60

    def test_empty_time_has_no_total(self):
        assert RecipeTime().total_min is None


class TestContexts:
    def test_chat_request_without_recipe(self):
        request = ChatRequest(message="hello", client_id="c1")
        assert isinstance(request.to_context(), NoRecipeContext)

    def test_chat_request_with_recipe(self):
        request = ChatRequest(
            message="make it milder",
            client_id="c1",
            current_recipe={"title": "Chicken Tikka Masala"},
            history=[{"role": "user", "content": "hi"}],
        )

        context = request.to_context()

        assert isinstance(context, WithRecipeContext)
        assert context.current_recipe.title == "Chicken Tikka Masala"
        assert context.history[0].content == "hi"

    def test_context_union_is_discriminated_by_kind(self):
        adapter = TypeAdapter(ClassificationContext)

        assert isinstance(adapter.validate_python({"kind": "none"}), NoRecipeContext)
        parsed = adapter.validate_python({"kind": "recipe", "current_recipe": {"title": "Paella"}})
        assert isinstance(parsed, WithRecipeContext)

        with pytest.raises(ValidationError):
            adapter.validate_python({"kind": "recipe"})

    def test_history_is_bounded(self):
        with pytest.raises(ValidationError):
            ChatRequest(message="hi", client_id="c1", history=[{"role": "user", "content": "x"}] * 51)

    def test_unknown_role_is_rejected(self):
        with pytest.raises(ValidationError):
            ChatRequest(message="hi", client_id="c1", history=[{"role": "robot", "content": "x"}])


class TestPipelineModels:
    def test_recipe_request_defaults(self):
        request = RecipeRequest(client_id="c1", preferences={"user_intent": "stew"})
        assert request.mode == "chef"
        assert request.user_id is None
        assert request.generate_image is None

    def test_recipe_request_rejects_unknown_mode(self):
        with pytest.raises(ValidationError):
            RecipeRequest(client_id="c1", mode="buffet", preferences={"user_intent": "stew"})

    def test_confidence_is_bounded(self):
        with pytest.raises(ValidationError):
            ClassificationResult(intent=Intent.RECIPE_REQUEST, confidence=1.5, specificity=SpecificityTier.VERY_VAGUE)

    def test_completion_request_from_plan(self):
        plan = PromptPlan(
            system_message="sys", user_message="usr", max_tokens=1200, model_id="cheap-model",
            model_tier=ModelTier.CHEAP, temperature=0.5,
        )

        request = CompletionRequest.from_plan(plan)

        assert (request.model, request.system, request.user) == ("cheap-model", "sys", "usr")
        assert request.max_tokens == 1200
        assert request.json_mode is True

    def test_variety_guidance_is_empty(self):
        assert VarietyGuidance().is_empty()
        assert not VarietyGuidance(suggest_cuisine="thai").is_empty()


class TestExceptions:
    def test_not_found_and_forbidden_status(self):
        assert NotFoundOrForbidden("recipe", 1, "u1").status_code == 404
        forbidden = NotFoundOrForbidden("recipe", 1, "u1", reason="forbidden")
        assert forbidden.status_code == 403
        assert "not owned by u1" in str(forbidden)

    def test_request_validation_error_lists_fields(self):
        error = RequestValidationError([{"loc": ("preferences", "servings")}, {"loc": ()}])
        assert str(error) == "Invalid request: preferences.servings, request"

    @pytest.mark.parametrize("kwargs,transient", [
        ({"status": 503}, True),
        ({"status": 408}, True),
        ({"status": 429}, True),
        ({"status": 429, "code": "insufficient_quota"}, False),
        ({"status": 400}, False),
        ({"status": 401}, False),
        ({"is_timeout": True}, True),
        ({"is_connection": True}, True),
        ({}, False),
    ])
    def test_provider_error_transient(self, kwargs, transient):
        assert ProviderError("boom", **kwargs).transient is transient

    def test_quota_detected_from_message(self):
        assert ProviderError("You exceeded your current quota", status=429).is_quota

    def test_gemini_per_minute_limit_is_retryable(self):
        error = ProviderError(
            "429 RESOURCE_EXHAUSTED. Quota exceeded for metric GenerateRequestsPerMinutePerProjectPerModel",
            status=429,
            code="RESOURCE_EXHAUSTED",
        )
        assert not error.is_quota
        assert error.is_rate_limit
        assert error.transient

    def test_gemini_daily_quota_is_quota(self):
        error = ProviderError(
            "429 RESOURCE_EXHAUSTED. Quota exceeded for metric GenerateRequestsPerDayPerProjectPerModel",
            status=429,
            code="RESOURCE_EXHAUSTED",
        )
        assert error.is_quota
        assert not error.transient

    def test_generation_error_quota_follows_cause(self):
        assert GenerationError("failed", cause=ProviderError("x", code="insufficient_quota")).is_quota
        assert not GenerationError("failed", cause=ValueError("bad json")).is_quota

    def test_classification_error_message(self):
        assert str(ClassificationError("timeout")) == "Classification failed: timeout"
