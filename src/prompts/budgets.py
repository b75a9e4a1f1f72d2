"""Static generation budgets keyed by specificity tier.

Token ceiling, model tier and temperature are a pure lookup on the tier: the more
precise the request, the smaller and cheaper the call.
"""

from typing import NamedTuple

from src.models.models import Intent, ModelTier, SpecificityTier


class Budget(NamedTuple):
    max_tokens: int
    model_tier: ModelTier
    temperature: float


SPECIFICITY_BUDGETS: dict[SpecificityTier, Budget] = {
    SpecificityTier.CRYSTAL_CLEAR: Budget(1200, ModelTier.CHEAP, 0.5),
    SpecificityTier.MODERATELY_CLEAR: Budget(1800, ModelTier.CHEAP, 0.7),
    SpecificityTier.SOMEWHAT_VAGUE: Budget(2400, ModelTier.CHEAP, 0.7),
    SpecificityTier.VERY_VAGUE: Budget(3000, ModelTier.PREMIUM, 0.9),
}

# USD per 1K tokens
TOKEN_PRICES: dict[ModelTier, dict[str, float]] = {
    ModelTier.CHEAP: {"input": 0.00015, "output": 0.0006},
    ModelTier.PREMIUM: {"input": 0.0025, "output": 0.01},
}

# Estimated share of a call's tokens spent on the prompt vs the completion
INPUT_SHARE = 0.7

# Typical spend of a chat turn per intent, used when no model call has been made yet
CHAT_INTENT_COSTS: dict[Intent, float] = {
    Intent.RECIPE_MODIFICATION: 0.002,
    Intent.INGREDIENT_SUBSTITUTION: 0.001,
    Intent.RECIPE_QUESTION: 0.001,
    Intent.COOKING_TECHNIQUE: 0.0015,
    Intent.CONVERSATIONAL: 0.0015,
    Intent.QUICK_RECIPE: 0.002,
    Intent.RECIPE_REQUEST: 0.003,
}

CHAT_CLASSIFIER_ERROR_COST = 0.005


def budget_for(tier: SpecificityTier) -> Budget:
    return SPECIFICITY_BUDGETS[tier]


def estimate_cost(model_tier: ModelTier, total_tokens: int) -> float:
    """Estimate the USD cost of a call that uses total_tokens in all."""
    prices = TOKEN_PRICES[model_tier]
    input_cost = total_tokens * INPUT_SHARE / 1000 * prices["input"]
    output_cost = total_tokens * (1 - INPUT_SHARE) / 1000 * prices["output"]
    return round(input_cost + output_cost, 6)


def estimate_tier_cost(tier: SpecificityTier) -> float:
    budget = budget_for(tier)
    return estimate_cost(budget.model_tier, budget.max_tokens)
