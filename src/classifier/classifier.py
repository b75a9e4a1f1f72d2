"""Input classifiers: ordered quick patterns first, one cheap model call second.

Two variants share the same engine:
- RecipeRequestClassifier: free-text recipe requests, no recipe context needed
- RecipeChatClassifier: chat about the recipe being cooked; without a current
  recipe it answers immediately with requires_recipe_context=True

classify() never raises. A failed fallback call is logged as ClassificationError
and replaced by a fixed safe default with confidence 0.3.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from src.classifier.rules import CHAT_RULES, REQUEST_RULES, PatternRule, RuleEngine, normalize_input
from src.generation.json_repair import parse_json_object
from src.generation.providers import LLMProvider
from src.models.models import (
    ClassificationResult,
    CompletionRequest,
    ExtractedElements,
    Intent,
    ModelTier,
    NoRecipeContext,
    SpecificityTier,
    WithRecipeContext,
)
from src.prompts import prompts
from src.prompts.budgets import (
    CHAT_CLASSIFIER_ERROR_COST,
    CHAT_INTENT_COSTS,
    budget_for,
    estimate_tier_cost,
)
from src.utils.culinary import (
    FLAVOR_PROFILES,
    MAIN_INGREDIENTS,
    MOODS,
    OCCASIONS,
    detect_cuisines,
    detect_techniques,
    detect_time_hints,
    find_keywords,
)
from src.utils.exceptions import ClassificationError
from src.utils.logger import logger

Context = Union[NoRecipeContext, WithRecipeContext]

MIN_INPUT_LENGTH = 3
SAFE_DEFAULT_CONFIDENCE = 0.3
FALLBACK_TEMPERATURE = 0.1


def scan_elements(text: str) -> ExtractedElements:
    """Keyword scan for cuisine, technique, ingredients, flavour, occasion, mood and timing."""
    return ExtractedElements(
        cuisine=detect_cuisines(text),
        technique=detect_techniques(text),
        main_ingredients=find_keywords(text, MAIN_INGREDIENTS),
        flavor_profile=find_keywords(text, FLAVOR_PROFILES),
        occasion=find_keywords(text, OCCASIONS),
        mood=find_keywords(text, MOODS),
        time_hints=detect_time_hints(text),
    )


def merge_elements(primary: ExtractedElements, secondary: ExtractedElements) -> ExtractedElements:
    """Combine two extractions; primary wins for single values, lists are unioned in order."""
    merged: dict[str, Any] = {}
    for name in type(primary).model_fields:
        first, second = getattr(primary, name), getattr(secondary, name)
        if isinstance(first, list):
            merged[name] = list(dict.fromkeys([*first, *second]))
        else:
            merged[name] = first or second
    return ExtractedElements(**merged)


def vague_signature(text: str, extracted: ExtractedElements) -> str:
    """Stable key for a vague request: first 20 letters plus occasion and mood."""
    letters = re.sub(r"[^a-z]", "", text.lower())[:20]
    return f"{letters}|{','.join(extracted.occasion)}|{','.join(extracted.mood)}"


def _coerce_enum(enum_cls, value, default):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _coerce_confidence(value, default: float = 0.5) -> float:
    try:
        return min(1.0, max(0.0, float(value)))
    except (TypeError, ValueError):
        return default


class InputClassifier(ABC):
    """Short-circuiting rule engine with a catch-all model call."""

    rules: tuple[PatternRule, ...] = ()
    default_intent: Intent = Intent.CONVERSATIONAL
    allowed_intents: frozenset = frozenset()
    fallback_prompt: str = ""

    def __init__(self, provider: LLMProvider, model_id: str, max_tokens: int = 100, timeout_seconds: float = 45.0):
        self.provider = provider
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.engine = RuleEngine(self.rules)

    async def classify(self, text: str, context: Optional[Context] = None) -> ClassificationResult:
        context = context or NoRecipeContext()
        normalized = normalize_input(text)

        early = self._precheck(normalized, context)
        if early is not None:
            return early

        hit = self.engine.evaluate(normalized)
        if hit is not None:
            rule, match = hit
            result = self._from_rule(rule, match, normalized)
            logger.debug(f"Quick pattern '{rule.name}' matched: {result.intent.value}/{result.specificity.value}")
            return result

        try:
            return await self._fallback(normalized, context)
        except ClassificationError as e:
            logger.warning(f"{e}. Using safe default classification.")
            return self._safe_default(normalized)

    def _precheck(self, text: str, context: Context) -> Optional[ClassificationResult]:
        if len(text) < MIN_INPUT_LENGTH:
            return ClassificationResult(
                intent=self.default_intent,
                confidence=0.0,
                specificity=SpecificityTier.VERY_VAGUE,
                model_tier=budget_for(SpecificityTier.VERY_VAGUE).model_tier,
                estimated_cost_usd=0.0,
                matched_rule="empty_input",
                reasoning="Empty or too short to classify",
            )
        return None

    async def _fallback(self, text: str, context: Context) -> ClassificationResult:
        request = CompletionRequest(
            model=self.model_id,
            system=self.fallback_prompt,
            user=self._fallback_user_message(text, context),
            max_tokens=self.max_tokens,
            temperature=FALLBACK_TEMPERATURE,
            json_mode=True,
        )
        try:
            raw = await asyncio.wait_for(self.provider.complete(request), timeout=self.timeout_seconds)
            payload = parse_json_object(raw)
            return self._from_payload(payload, text)
        except Exception as e:
            raise ClassificationError(str(e) or type(e).__name__, cause=e) from e

    def _fallback_user_message(self, text: str, context: Context) -> str:
        return text

    @abstractmethod
    def _from_rule(self, rule: PatternRule, match: re.Match, text: str) -> ClassificationResult:
        ...

    @abstractmethod
    def _from_payload(self, payload: dict, text: str) -> ClassificationResult:
        ...

    @abstractmethod
    def _safe_default(self, text: str) -> ClassificationResult:
        ...


class RecipeRequestClassifier(InputClassifier):
    """Classifies free-text recipe requests by how precisely they name a dish."""

    rules = REQUEST_RULES
    default_intent = Intent.CONVERSATIONAL
    allowed_intents = frozenset({Intent.RECIPE_REQUEST, Intent.QUICK_RECIPE, Intent.CONVERSATIONAL})
    fallback_prompt = prompts.REQUEST_ANALYSIS_PROMPT

    @staticmethod
    def _result(
        intent: Intent,
        confidence: float,
        tier: SpecificityTier,
        extracted: ExtractedElements,
        text: str,
        matched_rule: Optional[str] = None,
        reasoning: Optional[str] = None,
    ) -> ClassificationResult:
        return ClassificationResult(
            intent=intent,
            confidence=confidence,
            specificity=tier,
            model_tier=budget_for(tier).model_tier,
            estimated_cost_usd=estimate_tier_cost(tier),
            extracted=extracted,
            matched_rule=matched_rule,
            reasoning=reasoning,
            vague_signature=vague_signature(text, extracted) if tier == SpecificityTier.VERY_VAGUE else None,
        )

    def _from_rule(self, rule: PatternRule, match: re.Match, text: str) -> ClassificationResult:
        extracted = scan_elements(text)
        if rule.extract is not None:
            extracted = merge_elements(rule.extract(match), extracted)
        return self._result(
            rule.intent, rule.confidence, rule.specificity, extracted, text,
            matched_rule=rule.name, reasoning=f"Matched quick pattern '{rule.name}'",
        )

    def _from_payload(self, payload: dict, text: str) -> ClassificationResult:
        intent = _coerce_enum(Intent, payload.get("intent", self.default_intent), self.default_intent)
        if intent not in self.allowed_intents:
            intent = self.default_intent
        tier = _coerce_enum(
            SpecificityTier, payload.get("specificity", SpecificityTier.SOMEWHAT_VAGUE), SpecificityTier.SOMEWHAT_VAGUE
        )
        element_fields = {k: payload[k] for k in ExtractedElements.model_fields if k in payload}
        extracted = merge_elements(ExtractedElements.model_validate(element_fields), scan_elements(text))
        return self._result(
            intent, _coerce_confidence(payload.get("confidence", 0.5)), tier, extracted, text,
            reasoning=str(payload.get("reasoning") or "Model analysis"),
        )

    def _safe_default(self, text: str) -> ClassificationResult:
        return self._result(
            self.default_intent, SAFE_DEFAULT_CONFIDENCE, SpecificityTier.SOMEWHAT_VAGUE, scan_elements(text), text,
            reasoning="Classifier unavailable, using safe default",
        )


class RecipeChatClassifier(InputClassifier):
    """Classifies chat messages about the current recipe. Needs a WithRecipeContext."""

    rules = CHAT_RULES
    default_intent = Intent.RECIPE_MODIFICATION
    allowed_intents = frozenset({
        Intent.RECIPE_MODIFICATION,
        Intent.RECIPE_QUESTION,
        Intent.INGREDIENT_SUBSTITUTION,
        Intent.COOKING_TECHNIQUE,
        Intent.CONVERSATIONAL,
    })
    fallback_prompt = prompts.CHAT_INTENT_PROMPT

    def _precheck(self, text: str, context: Context) -> Optional[ClassificationResult]:
        if not isinstance(context, WithRecipeContext):
            return ClassificationResult(
                intent=self.default_intent,
                confidence=0.0,
                specificity=SpecificityTier.VERY_VAGUE,
                model_tier=ModelTier.CHEAP,
                estimated_cost_usd=0.0,
                requires_recipe_context=True,
                matched_rule="requires_recipe_context",
                reasoning="No current recipe selected",
            )
        return super()._precheck(text, context)

    def _fallback_user_message(self, text: str, context: Context) -> str:
        return prompts.get_chat_intent_user_message(text, context.current_recipe.title)

    @staticmethod
    def _result(
        intent: Intent,
        confidence: float,
        tier: SpecificityTier,
        text: str,
        cost: Optional[float] = None,
        matched_rule: Optional[str] = None,
        reasoning: Optional[str] = None,
    ) -> ClassificationResult:
        return ClassificationResult(
            intent=intent,
            confidence=confidence,
            specificity=tier,
            model_tier=ModelTier.CHEAP,
            estimated_cost_usd=CHAT_INTENT_COSTS.get(intent, 0.002) if cost is None else cost,
            extracted=scan_elements(text),
            matched_rule=matched_rule,
            reasoning=reasoning,
        )

    def _from_rule(self, rule: PatternRule, match: re.Match, text: str) -> ClassificationResult:
        return self._result(
            rule.intent, rule.confidence, rule.specificity, text,
            matched_rule=rule.name, reasoning=f"Matched '{match.group(0).lower()}'",
        )

    def _from_payload(self, payload: dict, text: str) -> ClassificationResult:
        intent = _coerce_enum(Intent, payload.get("intent", self.default_intent), self.default_intent)
        if intent not in self.allowed_intents:
            intent = self.default_intent
        tier = _coerce_enum(
            SpecificityTier, payload.get("specificity", SpecificityTier.SOMEWHAT_VAGUE), SpecificityTier.SOMEWHAT_VAGUE
        )
        return self._result(
            intent, _coerce_confidence(payload.get("confidence", 0.5)), tier, text,
            reasoning=str(payload.get("reasoning") or "Model analysis"),
        )

    def _safe_default(self, text: str) -> ClassificationResult:
        return self._result(
            self.default_intent, SAFE_DEFAULT_CONFIDENCE, SpecificityTier.SOMEWHAT_VAGUE, text,
            cost=CHAT_CLASSIFIER_ERROR_COST, reasoning="Classifier unavailable, using safe default",
        )
