"""Ordered quick-pattern rules for the input classifiers.

A RuleEngine evaluates its rules in list order and stops at the first match, so
earlier rules outrank later, more general ones. Rules never call a model.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from src.models.models import ExtractedElements, Intent, SpecificityTier

Extractor = Callable[[re.Match], ExtractedElements]
Guard = Callable[[re.Match], bool]


@dataclass(frozen=True)
class PatternRule:
    """One predicate -> fixed classification rule."""

    name: str
    pattern: re.Pattern
    intent: Intent
    confidence: float
    specificity: SpecificityTier
    extract: Optional[Extractor] = None
    guard: Optional[Guard] = None
    vague: bool = False

    def match(self, text: str) -> Optional[re.Match]:
        for match in self.pattern.finditer(text):
            if self.guard is None or self.guard(match):
                return match
        return None


@dataclass
class RuleEngine:
    rules: Sequence[PatternRule] = field(default_factory=list)

    def evaluate(self, text: str) -> Optional[tuple[PatternRule, re.Match]]:
        """Return the first rule that matches text, with its match, or None."""
        for rule in self.rules:
            match = rule.match(text)
            if match is not None:
                return rule, match
        return None

    @property
    def names(self) -> list[str]:
        return [rule.name for rule in self.rules]


def normalize_input(text: str) -> str:
    """Trim and unify curly apostrophes so possessives match."""
    return (text or "").strip().replace("’", "'").replace("‘", "'")


# ============================================================================
# Recipe request rules
# ============================================================================

QUICK_RECIPE_PREFIX = re.compile(r"^quick\s+recipe\s+for:\s*(?P<dish>.+)$", re.IGNORECASE | re.DOTALL)

NAMED_DISHES = (
    "carbonara",
    "bolognese",
    "risotto",
    "paella",
    "coq au vin",
    "beef wellington",
    "fish and chips",
    "bangers and mash",
    "shepherd's pie",
)

# Possessives that belong to a dish name or a figure of speech, not to a chef
NON_CHEF_POSSESSIVES = frozenset({
    "shepherd", "cottage", "chef", "dealer", "it", "that", "what", "there", "here", "let", "who",
    "he", "she", "today", "tonight", "everyone", "nobody",
    # family and friends
    "mom", "mum", "mommy", "mummy", "mama", "mother", "dad", "daddy", "papa", "father",
    "grandma", "grandpa", "granny", "gran", "nan", "nana", "nonna", "abuela", "grandmother", "grandfather",
    "grandad", "granddad", "aunt", "auntie", "uncle", "kid", "kids", "son", "daughter", "sister", "brother",
    "wife", "husband", "partner", "friend", "family", "neighbor", "neighbour",
})

FILLER_WORDS = frozenset({
    "i", "me", "make", "cook", "want", "would", "like", "a", "an", "the", "some", "recipe", "for",
    "please", "can", "you", "give", "try", "something", "style", "of", "do", "version", "how", "about",
    "love", "fancy", "need", "have", "to", "in", "mood", "craving", "tonight", "by", "from",
})

POSSESSIVE_CHEF = re.compile(r"\b(?P<owner>[a-z][a-z.\s]*?)'s\s+(?P<dish>[a-z][a-z\s\-]+)", re.IGNORECASE)
NAMED_DISH = re.compile(
    r"\b(?P<dish>" + "|".join(re.escape(d).replace("'", "'?") for d in NAMED_DISHES) + r")\b",
    re.IGNORECASE,
)
INSPIRED_STYLE = re.compile(r"\b(?P<origin>[a-z]+)-(?P<kind>inspired|style)\b", re.IGNORECASE)
SAUCE_FINISH = re.compile(r"\bwith\s+(?P<flavor>[a-z\s]+?)\s+(?P<finish>sauce|butter|marinade|glaze)\b", re.IGNORECASE)

VERY_VAGUE_PATTERNS = re.compile(
    r"^(?:"
    r"(?:something|anything)\s*(?:tasty|good|nice|delicious)?"
    r"|comfort\s*food|quick\s*meal|dinner\s*ideas?"
    r"|what\s*(?:should|can)\s*i\s*(?:cook|make|eat).*"
    r"|surprise\s*me|chef'?s?\s*choice|dealer'?s?\s*choice"
    r")\s*[.!?]*$",
    re.IGNORECASE | re.DOTALL,
)


def _chef_name(owner: str) -> str:
    words = owner.split()
    name: list[str] = []
    for word in reversed(words):
        if word.lower() in FILLER_WORDS or len(name) == 3:
            break
        name.insert(0, word)
    return " ".join(w.capitalize() if w.islower() else w for w in name)


def _possessive_guard(match: re.Match) -> bool:
    owner_words = match.group("owner").lower().split()
    return bool(owner_words) and owner_words[-1] not in NON_CHEF_POSSESSIVES and bool(_chef_name(match.group("owner")))


def _extract_chef(match: re.Match) -> ExtractedElements:
    dish = re.split(r"\s+for\s+", match.group("dish").strip(), maxsplit=1)[0]
    return ExtractedElements(chef_reference=_chef_name(match.group("owner")), named_dish=dish)


def _extract_named_dish(match: re.Match) -> ExtractedElements:
    return ExtractedElements(named_dish=match.group("dish").lower().title().replace("'S", "'s"))


def _extract_sauce(match: re.Match) -> ExtractedElements:
    return ExtractedElements(flavor_profile=[f"{match.group('flavor').strip()} {match.group('finish').lower()}"])


def match_quick_recipe(text: str) -> Optional[str]:
    """Return the dish named after a 'quick recipe for:' prefix, if present."""
    match = QUICK_RECIPE_PREFIX.match(normalize_input(text))
    return match.group("dish").strip() if match else None


REQUEST_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        "quick_recipe_prefix", QUICK_RECIPE_PREFIX, Intent.QUICK_RECIPE, 0.95, SpecificityTier.CRYSTAL_CLEAR,
        extract=lambda m: ExtractedElements(named_dish=m.group("dish").strip()),
    ),
    PatternRule(
        "possessive_chef", POSSESSIVE_CHEF, Intent.RECIPE_REQUEST, 0.95, SpecificityTier.CRYSTAL_CLEAR,
        extract=_extract_chef, guard=_possessive_guard,
    ),
    PatternRule(
        "named_dish", NAMED_DISH, Intent.RECIPE_REQUEST, 0.95, SpecificityTier.CRYSTAL_CLEAR,
        extract=_extract_named_dish,
    ),
    PatternRule("inspired_style", INSPIRED_STYLE, Intent.RECIPE_REQUEST, 0.9, SpecificityTier.CRYSTAL_CLEAR),
    PatternRule(
        "sauce_finish", SAUCE_FINISH, Intent.RECIPE_REQUEST, 0.9, SpecificityTier.CRYSTAL_CLEAR,
        extract=_extract_sauce,
    ),
    PatternRule(
        "very_vague", VERY_VAGUE_PATTERNS, Intent.RECIPE_REQUEST, 0.9, SpecificityTier.VERY_VAGUE, vague=True,
    ),
)


# ============================================================================
# Recipe chat rules (require a current recipe)
# ============================================================================


def _words(*phrases: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(p) for p in phrases) + r")\b", re.IGNORECASE)


# Order matters: a modification verb outranks the substitution wording it shares
CHAT_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        "modification",
        _words("make it", "change", "substitute", "replace", "add", "remove", "more", "less", "instead of", "without"),
        Intent.RECIPE_MODIFICATION, 0.95, SpecificityTier.MODERATELY_CLEAR,
    ),
    PatternRule(
        "substitution",
        _words("substitute", "replace", "swap", "instead of", "alternative to", "without"),
        Intent.INGREDIENT_SUBSTITUTION, 0.95, SpecificityTier.CRYSTAL_CLEAR,
    ),
    PatternRule(
        "question",
        _words("how do i", "what is", "how to", "why", "when", "how long", "what temperature"),
        Intent.RECIPE_QUESTION, 0.9, SpecificityTier.CRYSTAL_CLEAR,
    ),
    PatternRule(
        "technique",
        _words("technique", "method", "cook", "prepare", "mixture", "consistency"),
        Intent.COOKING_TECHNIQUE, 0.85, SpecificityTier.MODERATELY_CLEAR,
    ),
)
