"""Prompt text for the Flavr recipe pipeline.

Provides the fixed system blocks, the element-gated guidance fragments, the JSON
schema block and the short prompts used by the classifiers, chat and title
suggestion. The assembler decides which pieces are used and in what order; this
module only owns wording.

The "max N characters" limits in SCHEMA_LIMITS are part of the contract with the
model: they bound the chance of truncated JSON and must be rendered identically in
every schema block.
"""

from typing import Optional

from src.models.models import SpecificityTier

SCHEMA_LIMITS: dict[str, int] = {
    "title": 60,
    "description": 200,
    "cuisine": 20,
    "style_note": 60,
    "equipment": 30,
    "section": 30,
    "item": 50,
    "qty": 10,
    "unit": 15,
    "notes": 30,
    "instruction": 150,
    "why_it_matters": 80,
    "tip": 80,
    "make_ahead": 120,
    "allergen": 20,
    "shopping_item": 40,
    "side_name": 30,
    "side_description": 60,
    "side_method": 80,
    "any_string": 200,
}

MAX_RESPONSE_CHARS = 3000

BASE_SYSTEM_BLOCK = """You are Zest, Flavr's expert chef. You write reliable, flavour-forward home recipes.

CORE PRINCIPLES:
- Every recipe must be cookable by a confident home cook with supermarket ingredients
- Use British English and metric measurements (g, ml, °C) with exact quantities
- Method steps are short, ordered and actionable; mention heat levels and visual cues
- Respect dietary requirements absolutely; never include an ingredient the user must avoid
- Build real flavour: season in layers, balance acid, salt, fat and heat"""

JSON_REQUIREMENTS_BLOCK = f"""CRITICAL JSON REQUIREMENTS:
- Respond with ONE valid JSON object and nothing else: no Markdown, no code fences, no commentary
- Use double quotes for every key and string; no trailing commas
- Respect every "max N chars" limit; keep any string under {SCHEMA_LIMITS["any_string"]} characters
- Keep the whole response under {MAX_RESPONSE_CHARS} characters"""


# ============================================================================
# Element-gated system fragments
# ============================================================================


def get_authenticity_fragment(named_dish: str) -> str:
    return f"""AUTHENTICITY FOCUS:
- The user asked for "{named_dish}". Cook the classic version with its defining ingredients and technique
- Do not substitute signature components unless a dietary need requires it, and say so if you do"""


def get_chef_fragment(chef: str) -> str:
    return f"""CHEF INSPIRATION:
- Channel {chef}'s known style, signature ingredients and plating approach
- Keep it achievable at home while staying recognisably in their voice"""


def get_cuisine_fragment(cuisines: list[str]) -> str:
    return f"""CUISINE FOCUS:
- Stay true to {", ".join(c.title() for c in cuisines)} flavours, pantry and techniques"""


def get_technique_fragment(techniques: list[str]) -> str:
    return f"""TECHNIQUE EMPHASIS:
- Centre the method on {", ".join(techniques)} and explain the key moments that make it work"""


def get_flavor_fragment(flavors: list[str]) -> str:
    return f"""FLAVOUR MAXIMIZATION:
- Deliver a clearly {", ".join(flavors)} result and add one flavour boost that amplifies it"""


def get_occasion_fragment(occasions: list[str]) -> str:
    return f"""OCCASION MATCHING:
- Pitch effort, portioning and presentation for {", ".join(occasions)}"""


def get_mood_fragment(moods: list[str]) -> str:
    return f"""MOOD ALIGNMENT:
- The user is after something {", ".join(moods)}; let that shape richness, portion and texture"""


EFFICIENCY_FRAGMENT = """EFFICIENCY MODE:
- The request is precise. Deliver exactly that dish without detours or alternatives
- Keep notes brief; skip side dishes unless they are integral"""

CREATIVE_FRAGMENT = """CREATIVE EXPLORATION:
- The request is open. Choose one confident, specific dish rather than a generic one
- Favour an interesting cuisine or technique the user may not have tried recently"""


# ============================================================================
# User message blocks
# ============================================================================


def get_success_criteria(tier: SpecificityTier) -> str:
    """Success-criteria wording, branching on how specific the request was."""
    if tier == SpecificityTier.CRYSTAL_CLEAR:
        body = """- The dish is exactly what was asked for, with the requested title preserved
- Quantities and timings are precise and the method is efficient"""
    elif tier == SpecificityTier.MODERATELY_CLEAR:
        body = """- The dish clearly satisfies every stated element of the request
- Fill in unstated details with sensible, flavourful choices"""
    elif tier == SpecificityTier.SOMEWHAT_VAGUE:
        body = """- Interpret the request generously and commit to one specific, well-named dish
- The result should feel considered, not generic"""
    else:
        body = """- Surprise the user with a specific, memorable dish that fits their mood
- Avoid the obvious defaults (plain pasta, basic stir-fry) unless asked"""
    return f"SUCCESS CRITERIA:\n{body}"


def get_schema_block(compact: bool) -> str:
    """JSON shape the model must return, with per-field length limits."""
    lim = SCHEMA_LIMITS
    core = f"""  "title": "string (max {lim["title"]} chars)",
  "servings": number,
  "time": {{"prep_min": number, "cook_min": number, "total_min": number}},
  "ingredients": [{{"section": "string (max {lim["section"]} chars)", "items": [{{"item": "string (max {lim["item"]} chars)", "qty": "string (max {lim["qty"]} chars)", "unit": "string (max {lim["unit"]} chars)", "notes": "string (max {lim["notes"]} chars)"}}]}}],
  "method": [{{"step": number, "instruction": "string (max {lim["instruction"]} chars)"}}],
  "finishing_touches": ["string (max {lim["tip"]} chars)"],
  "allergens": ["string (max {lim["allergen"]} chars)"],
  "shopping_list": [{{"item": "string (max {lim["shopping_item"]} chars)", "qty": "string (max {lim["qty"]} chars)", "unit": "string (max {lim["unit"]} chars)"}}]"""
    if compact:
        return f"RETURN THIS JSON SHAPE:\n{{\n{core}\n}}"

    full = f"""  "title": "string (max {lim["title"]} chars)",
  "description": "string (max {lim["description"]} chars)",
  "servings": number,
  "time": {{"prep_min": number, "cook_min": number, "total_min": number}},
  "cuisine": "string (max {lim["cuisine"]} chars)",
  "style_notes": ["string (max {lim["style_note"]} chars)"],
  "equipment": ["string (max {lim["equipment"]} chars)"],
  "ingredients": [{{"section": "string (max {lim["section"]} chars)", "items": [{{"item": "string (max {lim["item"]} chars)", "qty": "string (max {lim["qty"]} chars)", "unit": "string (max {lim["unit"]} chars)", "notes": "string (max {lim["notes"]} chars)"}}]}}],
  "method": [{{"step": number, "instruction": "string (max {lim["instruction"]} chars)", "why_it_matters": "string (max {lim["why_it_matters"]} chars)"}}],
  "finishing_touches": ["string (max {lim["tip"]} chars)"],
  "flavour_boosts": ["string (max {lim["tip"]} chars)"],
  "make_ahead_leftovers": "string (max {lim["make_ahead"]} chars)",
  "allergens": ["string (max {lim["allergen"]} chars)"],
  "shopping_list": [{{"item": "string (max {lim["shopping_item"]} chars)", "qty": "string (max {lim["qty"]} chars)", "unit": "string (max {lim["unit"]} chars)"}}],
  "side_dishes": [{{"name": "string (max {lim["side_name"]} chars)", "description": "string (max {lim["side_description"]} chars)", "quick_method": "string (max {lim["side_method"]} chars)"}}]"""
    return f"RETURN THIS JSON SHAPE:\n{{\n{full}\n}}"


# ============================================================================
# Classifier prompts
# ============================================================================

REQUEST_ANALYSIS_PROMPT = """You analyse cooking requests. Return ONLY a JSON object:
{"intent": "recipe_request|conversational", "confidence": 0.0-1.0,
 "specificity": "crystal_clear|moderately_clear|somewhat_vague|very_vague",
 "named_dish": string|null, "chef_reference": string|null, "cuisine": [], "technique": [],
 "main_ingredients": [], "flavor_profile": [], "occasion": [], "mood": [], "time_hints": [],
 "reasoning": "max 60 chars"}
crystal_clear = a specific named dish; moderately_clear = key ingredients or cuisine given;
somewhat_vague = a general direction; very_vague = no real constraints."""

CHAT_INTENT_PROMPT = """Classify a message about the recipe the user is cooking. Return ONLY JSON:
{"intent": "recipe_modification|recipe_question|ingredient_substitution|cooking_technique|conversational",
 "confidence": 0.0-1.0, "specificity": "crystal_clear|moderately_clear|somewhat_vague|very_vague",
 "reasoning": "max 60 chars"}"""


def get_chat_intent_user_message(message: str, recipe_title: str) -> str:
    return f'Current recipe: "{recipe_title}"\nMessage: "{message}"'


# ============================================================================
# Chat, quick recipe, titles, images
# ============================================================================


def get_chat_system_prompt(recipe_title: str, context_summary: str) -> str:
    return f"""You are Zest, Flavr's friendly chef assistant, helping the user cook "{recipe_title}".
Answer in 2-5 short sentences or a short list. Be specific to this recipe: give quantities,
temperatures and timings where relevant. If a change affects the method, say which step changes.
Conversation context: {context_summary}"""


def get_quick_recipe_system_prompt(variety_notes: Optional[str] = None) -> str:
    notes = f"\n{variety_notes}" if variety_notes else ""
    return f"""You are Zest, Flavr's chef. Write a condensed recipe for chat.
Start with the title on its own line as: 🍽️ **Title**
Then: servings and total time on one line, a short ingredient list with quantities,
and at most 6 numbered steps. Use metric measurements. No preamble.{notes}"""


def get_title_suggestion_prompt(cuisine: str, mood: Optional[str], avoid_words: list[str]) -> str:
    avoid = f" Avoid these overused words: {', '.join(avoid_words)}." if avoid_words else ""
    mood_line = f" The user is in the mood for something {mood}." if mood else ""
    return (
        f"Suggest one appealing {cuisine.title()} recipe title a home cook could make tonight.{mood_line}{avoid} "
        f'Return ONLY JSON: {{"title": "max {SCHEMA_LIMITS["title"]} chars"}}'
    )


TITLE_SYSTEM_PROMPT = "You are a creative chef naming dishes. Titles are specific and appetising, never generic."


def get_image_prompt(title: str, cuisine: Optional[str], description: Optional[str]) -> str:
    style = f"{cuisine} " if cuisine else ""
    detail = f" {description}" if description else ""
    return (
        f"Professional food photography of {title}, a {style}home-cooked dish.{detail} "
        "Plated on a rustic table, natural window light, shallow depth of field, no text or people."
    )
