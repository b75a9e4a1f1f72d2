"""Recipe service: the function-level boundary used by the HTTP layer and the CLI.

Pipeline for a recipe request (strictly in this order):
    validate -> classify -> variety guidance -> prompt plan -> generate
    -> record title -> (optional) image -> persist -> respond

Generation failures never escape: the caller gets a static fallback recipe or a
polite chat reply with a retry suggestion. Only RequestValidationError (bad
request shape) and NotFoundOrForbidden (ownership) are raised to the caller.
"""

import random
import re
import time
import uuid
from typing import Any, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from src.classifier.classifier import RecipeChatClassifier, RecipeRequestClassifier
from src.classifier.rules import match_quick_recipe
from src.generation.dispatcher import GenerationDispatcher
from src.generation.images import ImageCache, ImageStorage
from src.models.models import (
    ChatRequest,
    ChatResponse,
    GeneratedRecipe,
    Intent,
    NoRecipeContext,
    RecipeRecord,
    RecipeRequest,
    RecipeResponse,
    RecipeUpdate,
)
from src.prompts.assembler import PromptAssembler
from src.storage.repository import ChatMessageRepository, RecipeRepository
from src.utils.culinary import SUGGESTION_CUISINES
from src.utils.exceptions import GenerationError, NotFoundOrForbidden, RequestValidationError
from src.utils.logger import get_request_logger, logger
from src.variety.tracker import VarietyTracker

GENERATION_FAILED_MESSAGE = (
    "Sorry, our chef couldn't finish that recipe just now. "
    "Here's a simple standby recipe, or try again in a moment."
)
QUOTA_MESSAGE = (
    "Our recipe generator is taking a short break due to high demand. "
    "Please try again in a few minutes."
)
CHAT_RETRY_REPLY = "Sorry, I couldn't answer that just now. Please try again in a moment."
SELECT_RECIPE_REPLY = (
    "Pick or generate a recipe first and I can help you tweak it, swap ingredients or explain any step. "
    'You can also ask me for a "quick recipe for: ..." right here.'
)

FALLBACK_TITLES = [
    "Simple Chicken Stir-Fry with Vegetables",
    "Classic Spaghetti with Tomato Sauce",
    "Easy Beef and Vegetable Curry",
]

CHAT_TITLE_PATTERN = re.compile(r"🍽️?\s*\*\*(?P<title>[^*\n]+)\*\*")


def fallback_recipe(servings: int = 4) -> GeneratedRecipe:
    """Hand-written standby recipe returned when generation fails."""
    return GeneratedRecipe.model_validate({
        "title": "Classic Spaghetti with Tomato Sauce",
        "description": "A dependable store-cupboard pasta while our chef catches their breath.",
        "servings": servings,
        "time": {"prep_min": 5, "cook_min": 20, "total_min": 25},
        "cuisine": "Italian",
        "ingredients": [
            {
                "section": "Main",
                "items": [
                    {"item": "spaghetti", "qty": str(100 * servings), "unit": "g"},
                    {"item": "olive oil", "qty": "2", "unit": "tbsp"},
                    {"item": "garlic cloves, sliced", "qty": "2"},
                    {"item": "chopped tomatoes", "qty": "1", "unit": "tin"},
                    {"item": "salt and black pepper", "notes": "to taste"},
                    {"item": "basil leaves", "notes": "optional"},
                ],
            }
        ],
        "method": [
            {"step": 1, "instruction": "Cook the spaghetti in well-salted boiling water until al dente."},
            {"step": 2, "instruction": "Meanwhile, warm the oil and gently fry the garlic for 1 minute."},
            {"step": 3, "instruction": "Add the tomatoes, season and simmer for 10 minutes until thickened."},
            {"step": 4, "instruction": "Toss the drained pasta through the sauce with a splash of pasta water."},
        ],
        "finishing_touches": ["Finish with torn basil and a drizzle of olive oil"],
        "allergens": ["gluten"],
    })


def extract_chat_title(reply: str) -> Optional[str]:
    match = CHAT_TITLE_PATTERN.search(reply)
    return match.group("title").strip() if match else None


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class RecipeService:
    """Wires classifier, variety tracker, assembler, dispatcher and repositories together."""

    def __init__(
        self,
        request_classifier: RecipeRequestClassifier,
        chat_classifier: RecipeChatClassifier,
        tracker: VarietyTracker,
        assembler: PromptAssembler,
        dispatcher: GenerationDispatcher,
        recipes: Optional[RecipeRepository] = None,
        chat_messages: Optional[ChatMessageRepository] = None,
        image_storage: Optional[ImageStorage] = None,
        image_cache: Optional[ImageCache] = None,
        enable_images: bool = False,
        image_size: str = "1024x1024",
    ):
        self.request_classifier = request_classifier
        self.chat_classifier = chat_classifier
        self.tracker = tracker
        self.assembler = assembler
        self.dispatcher = dispatcher
        self.recipes = recipes
        self.chat_messages = chat_messages
        self.image_storage = image_storage
        self.image_cache = image_cache or ImageCache()
        self.enable_images = enable_images
        self.image_size = image_size

    @staticmethod
    def _validate(model_cls, data: Union[dict, Any]):
        if isinstance(data, model_cls):
            return data
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            raise RequestValidationError(e.errors()) from e

    # ------------------------------------------------------------------
    # Recipe generation
    # ------------------------------------------------------------------

    async def handle_recipe_request(self, request: Union[RecipeRequest, dict]) -> RecipeResponse:
        """Generate a recipe for a structured request.

        Raises:
            RequestValidationError: If the request shape is invalid. Nothing is generated.
        """
        request = self._validate(RecipeRequest, request)
        start = time.perf_counter()
        log = get_request_logger(uuid.uuid4().hex[:8], client_id=request.client_id, user_id=request.user_id)
        preferences = request.preferences

        classification = await self.request_classifier.classify(preferences.user_intent, NoRecipeContext())
        log.info(
            f"Classified request as {classification.specificity.value} "
            f"(confidence={classification.confidence:.2f}, rule={classification.matched_rule})",
            extra={"intent": classification.intent.value, "specificity": classification.specificity.value},
        )

        guidance = self.tracker.variety_guidance(request.client_id)
        plan = self.assembler.build_prompt(classification, preferences, guidance)
        log.debug(f"Prompt plan: model={plan.model_id} max_tokens={plan.max_tokens} temp={plan.temperature}")

        try:
            recipe = await self.dispatcher.generate_recipe(plan)
        except GenerationError as e:
            log.warning(f"Recipe generation failed, returning fallback recipe: {e}")
            return RecipeResponse(
                recipe=fallback_recipe(preferences.servings),
                specificity=classification.specificity,
                model_id=plan.model_id,
                estimated_cost_usd=0.0,
                is_fallback=True,
                message=QUOTA_MESSAGE if e.is_quota else GENERATION_FAILED_MESSAGE,
                execution_time_ms=_elapsed_ms(start),
            )

        technique = classification.extracted.technique[0] if classification.extracted.technique else None
        self.tracker.record_title(request.client_id, recipe.title, cuisine=recipe.cuisine, technique=technique)

        want_image = self.enable_images if request.generate_image is None else request.generate_image
        image_url = await self._recipe_image(recipe) if want_image else None

        recipe_id = None
        if request.user_id and self.recipes is not None:
            mood = classification.extracted.mood[0] if classification.extracted.mood else None
            try:
                recipe_id = await self.recipes.save(
                    recipe,
                    request.user_id,
                    mode=request.mode,
                    original_prompt=preferences.user_intent,
                    image_url=image_url,
                    mood=mood,
                )
            except SQLAlchemyError as e:
                log.error(f"Failed to save recipe '{recipe.title}': {e}")

        elapsed = _elapsed_ms(start)
        log.info(
            f"✓ Recipe '{recipe.title}' ready in {elapsed}ms (id={recipe_id})",
            extra={"model_id": plan.model_id, "duration_ms": elapsed},
        )
        return RecipeResponse(
            recipe=recipe,
            recipe_id=recipe_id,
            image_url=image_url,
            specificity=classification.specificity,
            model_id=plan.model_id,
            estimated_cost_usd=plan.estimated_cost_usd,
            execution_time_ms=elapsed,
        )

    async def _recipe_image(self, recipe: GeneratedRecipe) -> Optional[str]:
        prompt = self.assembler.build_image_prompt(recipe)
        cached = self.image_cache.get(prompt)
        if cached:
            logger.debug(f"Image cache hit for '{recipe.title}'")
            return cached

        try:
            image = await self.dispatcher.generate_image(prompt, self.image_size)
        except GenerationError as e:
            logger.warning(f"Image generation failed for '{recipe.title}': {e}")
            return None

        url = await self.image_storage.store(image, recipe.title) if self.image_storage else image.url
        if url:
            self.image_cache.put(prompt, url)
        return url

    async def suggest_recipe_titles(self, client_id: str, count: int = 3, mood: Optional[str] = None) -> list[str]:
        """Suggest recipe titles from different cuisines concurrently; failed suggestions are dropped."""
        guidance = self.tracker.variety_guidance(client_id)
        candidates = [c for c in SUGGESTION_CUISINES if c not in guidance.avoid_cuisines] or list(SUGGESTION_CUISINES)
        cuisines = random.sample(candidates, k=min(count, len(candidates)))

        plans = self.assembler.build_title_prompts(cuisines, mood, guidance.avoid_words)
        titles = await self.dispatcher.generate_titles(plans)
        if not titles:
            logger.warning("No title suggestions generated, using fallback titles")
            return FALLBACK_TITLES[:count]
        return titles[:count]

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def handle_chat_message(self, request: Union[ChatRequest, dict]) -> ChatResponse:
        """Answer a chat message about the current recipe.

        Without a current recipe, a "quick recipe for: X" message gets a condensed
        recipe; anything else is asked to select a recipe first.

        Raises:
            RequestValidationError: If the request shape is invalid.
        """
        request = self._validate(ChatRequest, request)
        start = time.perf_counter()
        log = get_request_logger(uuid.uuid4().hex[:8], client_id=request.client_id, user_id=request.user_id)
        context = request.to_context()

        if isinstance(context, NoRecipeContext):
            dish = match_quick_recipe(request.message)
            if dish:
                return await self._quick_recipe(request, dish, start, log)

        classification = await self.chat_classifier.classify(request.message, context)
        if classification.requires_recipe_context:
            log.info("Chat message needs a recipe context")
            return ChatResponse(
                reply=SELECT_RECIPE_REPLY,
                intent=classification.intent,
                requires_recipe_context=True,
                suggested_action="select_recipe",
                execution_time_ms=_elapsed_ms(start),
            )

        plan = self.assembler.build_chat_prompt(request.message, context, classification)
        try:
            reply = await self.dispatcher.generate_chat_reply(plan)
        except GenerationError as e:
            log.warning(f"Chat reply failed: {e}")
            return ChatResponse(
                reply=QUOTA_MESSAGE if e.is_quota else CHAT_RETRY_REPLY,
                intent=classification.intent,
                suggested_action="retry",
                execution_time_ms=_elapsed_ms(start),
            )

        message_id = await self._save_chat(request, reply, log)
        log.info(
            f"✓ Chat reply ({classification.intent.value}) in {_elapsed_ms(start)}ms",
            extra={"intent": classification.intent.value, "model_id": plan.model_id},
        )
        return ChatResponse(
            reply=reply,
            intent=classification.intent,
            message_id=message_id,
            execution_time_ms=_elapsed_ms(start),
        )

    async def _quick_recipe(self, request: ChatRequest, dish: str, start: float, log) -> ChatResponse:
        plan = self.assembler.build_quick_recipe_prompt(dish, self.tracker.variety_notes(request.client_id))
        try:
            reply = await self.dispatcher.generate_chat_reply(plan)
        except GenerationError as e:
            log.warning(f"Quick recipe failed: {e}")
            return ChatResponse(
                reply=QUOTA_MESSAGE if e.is_quota else CHAT_RETRY_REPLY,
                intent=Intent.QUICK_RECIPE,
                suggested_action="retry",
                execution_time_ms=_elapsed_ms(start),
            )

        title = extract_chat_title(reply)
        if title:
            self.tracker.record_title(request.client_id, title)

        message_id = await self._save_chat(request, reply, log)
        return ChatResponse(
            reply=reply,
            intent=Intent.QUICK_RECIPE,
            message_id=message_id,
            execution_time_ms=_elapsed_ms(start),
        )

    async def _save_chat(self, request: ChatRequest, reply: str, log) -> Optional[int]:
        if not request.user_id or self.chat_messages is None:
            return None
        try:
            return await self.chat_messages.save(request.user_id, request.message, reply)
        except SQLAlchemyError as e:
            log.error(f"Failed to save chat message: {e}")
            return None

    # ------------------------------------------------------------------
    # Saved recipes
    # ------------------------------------------------------------------

    async def list_recipes(self, owner_id: str, limit: int = 50) -> list[RecipeRecord]:
        if self.recipes is None:
            return []
        return await self.recipes.list(owner_id, limit)

    async def get_recipe(self, recipe_id: int, owner_id: str) -> RecipeRecord:
        if self.recipes is None:
            raise NotFoundOrForbidden("recipe", recipe_id, owner_id)
        return await self.recipes.get(recipe_id, owner_id)

    async def update_recipe(
        self, recipe_id: int, owner_id: str, changes: Union[RecipeUpdate, dict[str, Any]]
    ) -> RecipeRecord:
        """Apply a user edit to a saved recipe.

        Raises:
            RequestValidationError: If a field is not editable or has the wrong type.
            NotFoundOrForbidden: If the recipe is missing or owned by someone else.
        """
        update = self._validate(RecipeUpdate, changes)
        if self.recipes is None:
            raise NotFoundOrForbidden("recipe", recipe_id, owner_id)
        return await self.recipes.update(recipe_id, owner_id, update.changes())

    async def delete_recipe(self, recipe_id: int, owner_id: str) -> None:
        if self.recipes is None:
            raise NotFoundOrForbidden("recipe", recipe_id, owner_id)
        await self.recipes.delete(recipe_id, owner_id)
