"""Prompt assembly: classification + preferences + variety guidance -> PromptPlan.

Fragment order in the system message is fixed (authenticity, chef, cuisine,
technique, flavour, occasion, mood, then the tier fragment) so identical inputs
always produce identical prompts. A fragment is present exactly when its
extracted element is.
"""

import re
from typing import Optional

from src.models.models import (
    ChatTurn,
    ClassificationResult,
    ExtractedElements,
    GeneratedRecipe,
    ModelTier,
    PromptPlan,
    RecipePreferences,
    SpecificityTier,
    VarietyGuidance,
    WithRecipeContext,
)
from src.prompts import prompts
from src.prompts.budgets import budget_for, estimate_cost
from src.utils.culinary import find_keywords

EXACT_TITLE_MARKER = re.compile(r"-(inspired|style)\b", re.IGNORECASE)

CHAT_MAX_TOKENS = 300
QUICK_RECIPE_MAX_TOKENS = 400
TITLE_MAX_TOKENS = 60

PREFERENCE_KEYWORDS = (
    "vegetarian", "vegan", "pescatarian", "gluten-free", "gluten free", "dairy-free", "dairy free",
    "nut-free", "nut allergy", "low-carb", "keto", "halal", "kosher", "spicy", "mild", "no mushrooms",
)


def compress_conversation_context(
    history: list[ChatTurn], current_recipe_title: Optional[str] = None, max_messages: int = 5
) -> str:
    """Summarise recent turns into one line for the chat system prompt.

    Example:
        >>> compress_conversation_context([ChatTurn(role="user", content="Can I make it vegan?")], "Chicken Curry")
        'Current recipe: Chicken Curry | Recent topics: Can I make it vegan? | User preferences: vegan'
    """
    recent = history[-max_messages:] if max_messages > 0 else []
    user_messages = [turn.content for turn in recent if turn.role == "user"]

    parts = []
    if current_recipe_title:
        parts.append(f"Current recipe: {current_recipe_title}")
    if user_messages:
        topics = "; ".join(msg if len(msg) <= 60 else msg[:57] + "..." for msg in user_messages)
        parts.append(f"Recent topics: {topics}")
    preferences = find_keywords(" ".join(user_messages), PREFERENCE_KEYWORDS)
    if preferences:
        parts.append(f"User preferences: {', '.join(preferences)}")
    return " | ".join(parts) if parts else "New conversation"


class PromptAssembler:
    """Builds prompt plans. Model ids per tier are injected so plans name concrete models."""

    def __init__(self, model_ids: dict[ModelTier, str], chat_temperature: float = 0.7, max_history: int = 5):
        self.model_ids = model_ids
        self.chat_temperature = chat_temperature
        self.max_history = max_history

    # ------------------------------------------------------------------
    # Recipe generation
    # ------------------------------------------------------------------

    @staticmethod
    def system_fragments(extracted: ExtractedElements, tier: SpecificityTier) -> list[str]:
        """Guidance fragments for the system message, in their fixed order."""
        fragments = []
        if extracted.named_dish:
            fragments.append(prompts.get_authenticity_fragment(extracted.named_dish))
        if extracted.chef_reference:
            fragments.append(prompts.get_chef_fragment(extracted.chef_reference))
        if extracted.cuisine:
            fragments.append(prompts.get_cuisine_fragment(extracted.cuisine))
        if extracted.technique:
            fragments.append(prompts.get_technique_fragment(extracted.technique))
        if extracted.flavor_profile:
            fragments.append(prompts.get_flavor_fragment(extracted.flavor_profile))
        if extracted.occasion:
            fragments.append(prompts.get_occasion_fragment(extracted.occasion))
        if extracted.mood:
            fragments.append(prompts.get_mood_fragment(extracted.mood))

        if tier == SpecificityTier.CRYSTAL_CLEAR:
            fragments.append(prompts.EFFICIENCY_FRAGMENT)
        elif tier == SpecificityTier.VERY_VAGUE:
            fragments.append(prompts.CREATIVE_FRAGMENT)
        return fragments

    def build_system_message(self, extracted: ExtractedElements, tier: SpecificityTier) -> str:
        blocks = [prompts.BASE_SYSTEM_BLOCK, *self.system_fragments(extracted, tier), prompts.JSON_REQUIREMENTS_BLOCK]
        return "\n\n".join(blocks)

    @staticmethod
    def _element_lines(extracted: ExtractedElements) -> list[str]:
        lines = []
        if extracted.named_dish:
            lines.append(f"SPECIFIC DISH: {extracted.named_dish}")
        if extracted.chef_reference:
            lines.append(f"CHEF: {extracted.chef_reference}")
        if extracted.cuisine:
            lines.append(f"CUISINE CONTEXT: {', '.join(c.title() for c in extracted.cuisine)}")
        if extracted.technique:
            lines.append(f"TECHNIQUE FOCUS: {', '.join(extracted.technique)}")
        if extracted.main_ingredients:
            lines.append(f"KEY INGREDIENTS: {', '.join(extracted.main_ingredients)}")
        if extracted.flavor_profile:
            lines.append(f"FLAVOR DIRECTION: {', '.join(extracted.flavor_profile)}")
        if extracted.occasion:
            lines.append(f"OCCASION: {', '.join(extracted.occasion)}")
        if extracted.mood:
            lines.append(f"MOOD: {', '.join(extracted.mood)}")
        if extracted.time_hints:
            lines.append(f"TIMING HINTS: {', '.join(extracted.time_hints)}")
        return lines

    @staticmethod
    def _variety_lines(guidance: VarietyGuidance, tier: SpecificityTier) -> list[str]:
        lines = []
        if guidance.avoid_words:
            lines.append(f"- Avoid these recently used title words: {', '.join(guidance.avoid_words)}")
        if guidance.avoid_cuisines:
            lines.append(f"- Recently cooked cuisines: {', '.join(guidance.avoid_cuisines)}")
        if guidance.avoid_techniques:
            lines.append(f"- Recently used techniques: {', '.join(guidance.avoid_techniques)}")
        # No suggestions for crystal-clear requests
        if tier != SpecificityTier.CRYSTAL_CLEAR:
            if guidance.suggest_cuisine:
                lines.append(f"- Consider a {guidance.suggest_cuisine.title()} direction")
            if guidance.suggest_technique:
                lines.append(f"- Consider {guidance.suggest_technique} as the main technique")
        return ["VARIETY GUIDANCE:", *lines] if lines else []

    @staticmethod
    def _preference_lines(preferences: RecipePreferences, tier: SpecificityTier) -> list[str]:
        lines = ["RECIPE PARAMETERS:", f"- Servings: {preferences.servings}"]
        if preferences.time_budget:
            lines.append(f"- Time budget: {preferences.time_budget} minutes total")
        if preferences.dietary_needs:
            lines.append(f"- Dietary requirements (STRICT): {', '.join(preferences.dietary_needs)}")
        else:
            lines.append("- No dietary restrictions: a meat or fish protein is welcome")
        if preferences.must_use:
            lines.append(f"- Must include: {', '.join(preferences.must_use)}")
        if preferences.avoid:
            lines.append(f"- Avoid: {', '.join(preferences.avoid)}")
        if tier != SpecificityTier.CRYSTAL_CLEAR:
            if preferences.equipment:
                lines.append(f"- Available equipment: {', '.join(preferences.equipment)}")
            if preferences.budget_note:
                lines.append(f"- Budget: {preferences.budget_note}")
        if preferences.cuisine_preference:
            lines.append(f"- Preferred cuisine: {preferences.cuisine_preference}")
        return lines

    def build_user_message(
        self,
        classification: ClassificationResult,
        preferences: RecipePreferences,
        guidance: VarietyGuidance,
    ) -> str:
        extracted = classification.extracted
        tier = classification.specificity
        sections = [f'USER REQUEST: "{preferences.user_intent}"']

        if extracted.chef_reference or extracted.named_dish or EXACT_TITLE_MARKER.search(preferences.user_intent):
            sections.append(
                "Use the exact dish the user named as the recipe title, preserving any chef name "
                'or "-inspired"/"-style" wording.'
            )

        element_lines = self._element_lines(extracted)
        if element_lines:
            sections.append("\n".join(element_lines))

        variety_lines = self._variety_lines(guidance, tier)
        if variety_lines:
            sections.append("\n".join(variety_lines))

        sections.append("\n".join(self._preference_lines(preferences, tier)))
        sections.append(prompts.get_success_criteria(tier))
        sections.append(f"Keep total JSON response under {prompts.MAX_RESPONSE_CHARS} characters.")
        sections.append(prompts.get_schema_block(compact=tier == SpecificityTier.CRYSTAL_CLEAR))
        return "\n\n".join(sections)

    def build_prompt(
        self,
        classification: ClassificationResult,
        preferences: RecipePreferences,
        guidance: VarietyGuidance,
    ) -> PromptPlan:
        """Assemble the full recipe generation plan.

        max_tokens, model and temperature are a pure function of the specificity tier.
        """
        budget = budget_for(classification.specificity)
        return PromptPlan(
            system_message=self.build_system_message(classification.extracted, classification.specificity),
            user_message=self.build_user_message(classification, preferences, guidance),
            max_tokens=budget.max_tokens,
            model_id=self.model_ids[budget.model_tier],
            model_tier=budget.model_tier,
            temperature=budget.temperature,
            json_mode=True,
            estimated_cost_usd=estimate_cost(budget.model_tier, budget.max_tokens),
        )

    # ------------------------------------------------------------------
    # Chat, quick recipe, titles, images
    # ------------------------------------------------------------------

    def build_chat_prompt(
        self, message: str, context: WithRecipeContext, classification: ClassificationResult
    ) -> PromptPlan:
        recipe = context.current_recipe
        summary = compress_conversation_context(context.history, recipe.title, self.max_history)
        user_parts = []
        if recipe.ingredients:
            user_parts.append(f"Recipe ingredients: {'; '.join(recipe.ingredients[:25])}")
        if recipe.instructions:
            steps = " ".join(f"{i}. {step}" for i, step in enumerate(recipe.instructions[:12], start=1))
            user_parts.append(f"Recipe method: {steps}")
        user_parts.append(f"User ({classification.intent.value}): {message}")
        return PromptPlan(
            system_message=prompts.get_chat_system_prompt(recipe.title, summary),
            user_message="\n\n".join(user_parts),
            max_tokens=CHAT_MAX_TOKENS,
            model_id=self.model_ids[ModelTier.CHEAP],
            model_tier=ModelTier.CHEAP,
            temperature=self.chat_temperature,
            json_mode=False,
            estimated_cost_usd=classification.estimated_cost_usd,
        )

    def build_quick_recipe_prompt(self, dish: str, variety_notes: Optional[str] = None) -> PromptPlan:
        return PromptPlan(
            system_message=prompts.get_quick_recipe_system_prompt(variety_notes),
            user_message=f"Quick recipe for: {dish}",
            max_tokens=QUICK_RECIPE_MAX_TOKENS,
            model_id=self.model_ids[ModelTier.CHEAP],
            model_tier=ModelTier.CHEAP,
            temperature=self.chat_temperature,
            json_mode=False,
            estimated_cost_usd=estimate_cost(ModelTier.CHEAP, QUICK_RECIPE_MAX_TOKENS),
        )

    def build_title_prompts(
        self, cuisines: list[str], mood: Optional[str] = None, avoid_words: Optional[list[str]] = None
    ) -> list[PromptPlan]:
        return [
            PromptPlan(
                system_message=prompts.TITLE_SYSTEM_PROMPT,
                user_message=prompts.get_title_suggestion_prompt(cuisine, mood, avoid_words or []),
                max_tokens=TITLE_MAX_TOKENS,
                model_id=self.model_ids[ModelTier.CHEAP],
                model_tier=ModelTier.CHEAP,
                temperature=0.9,
                json_mode=True,
                estimated_cost_usd=estimate_cost(ModelTier.CHEAP, TITLE_MAX_TOKENS),
            )
            for cuisine in cuisines
        ]

    @staticmethod
    def build_image_prompt(recipe: GeneratedRecipe) -> str:
        return prompts.get_image_prompt(recipe.title, recipe.cuisine, recipe.description)
