"""Data models and schemas for the Flavr recipe service.

Defines Pydantic models for request/response validation, pipeline objects passed
between the classifier, prompt assembler and dispatcher, and the lenient schema
used to parse model-generated recipe JSON.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Intent(str, Enum):
    RECIPE_REQUEST = "recipe_request"
    QUICK_RECIPE = "quick_recipe"
    CONVERSATIONAL = "conversational"
    RECIPE_MODIFICATION = "recipe_modification"
    RECIPE_QUESTION = "recipe_question"
    INGREDIENT_SUBSTITUTION = "ingredient_substitution"
    COOKING_TECHNIQUE = "cooking_technique"


class SpecificityTier(str, Enum):
    """How precisely a request identifies a dish, from most to least precise."""

    CRYSTAL_CLEAR = "crystal_clear"
    MODERATELY_CLEAR = "moderately_clear"
    SOMEWHAT_VAGUE = "somewhat_vague"
    VERY_VAGUE = "very_vague"


class ModelTier(str, Enum):
    CHEAP = "cheap"
    PREMIUM = "premium"


# ============================================================================
# Conversation context
# ============================================================================


class ChatTurn(BaseModel):
    """One prior message in a conversation."""

    model_config = ConfigDict(str_strip_whitespace=True)

    role: Literal["user", "assistant", "system"]
    content: Annotated[str, Field(max_length=8000)]


class RecipeContext(BaseModel):
    """The recipe a user is currently chatting about."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Annotated[str, Field(min_length=1, max_length=200)]
    id: Optional[int] = None
    cuisine: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)


class NoRecipeContext(BaseModel):
    """Classification context for a user who has not selected a recipe."""

    kind: Literal["none"] = "none"
    history: List[ChatTurn] = Field(default_factory=list)


class WithRecipeContext(BaseModel):
    """Classification context carrying the recipe the user is working on."""

    kind: Literal["recipe"] = "recipe"
    current_recipe: RecipeContext
    history: List[ChatTurn] = Field(default_factory=list)


ClassificationContext = Annotated[Union[NoRecipeContext, WithRecipeContext], Field(discriminator="kind")]


# ============================================================================
# Classification
# ============================================================================


class ExtractedElements(BaseModel):
    """Dish elements parsed or inferred from the request. Every field is optional."""

    model_config = ConfigDict(str_strip_whitespace=True)

    named_dish: Optional[str] = None
    chef_reference: Optional[str] = None
    cuisine: List[str] = Field(default_factory=list)
    technique: List[str] = Field(default_factory=list)
    main_ingredients: List[str] = Field(default_factory=list)
    flavor_profile: List[str] = Field(default_factory=list)
    occasion: List[str] = Field(default_factory=list)
    mood: List[str] = Field(default_factory=list)
    time_hints: List[str] = Field(default_factory=list)

    @field_validator(
        "cuisine", "technique", "main_ingredients", "flavor_profile", "occasion", "mood", "time_hints",
        mode="before",
    )
    @classmethod
    def coerce_list(cls, v):
        """Accept a bare string or null where a list is expected (models do both)."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return [str(item) for item in v if item]

    @field_validator("named_dish", "chef_reference", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and v.strip().lower() in ("", "null", "none"):
            return None
        return v

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in type(self).model_fields)


class ClassificationResult(BaseModel):
    """Outcome of classifying one request. Ephemeral, never persisted."""

    intent: Intent
    confidence: Annotated[float, Field(ge=0.0, le=1.0)]
    specificity: SpecificityTier
    model_tier: ModelTier = ModelTier.CHEAP
    estimated_cost_usd: Annotated[float, Field(ge=0.0)] = 0.0
    extracted: ExtractedElements = Field(default_factory=ExtractedElements)
    requires_recipe_context: bool = False
    matched_rule: Annotated[
        Optional[str], Field(None, description="Quick pattern that produced this result, None for model/default")
    ]
    reasoning: Optional[str] = None
    vague_signature: Optional[str] = None


class VarietyGuidance(BaseModel):
    """Hints steering generation away from what this client saw recently."""

    avoid_words: List[str] = Field(default_factory=list)
    avoid_cuisines: List[str] = Field(default_factory=list)
    avoid_techniques: List[str] = Field(default_factory=list)
    suggest_cuisine: Optional[str] = None
    suggest_technique: Optional[str] = None

    def is_empty(self) -> bool:
        return not (
            self.avoid_words or self.avoid_cuisines or self.avoid_techniques
            or self.suggest_cuisine or self.suggest_technique
        )


class RecipePreferences(BaseModel):
    """Structured preferences accompanying a recipe request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    user_intent: Annotated[
        str, Field(min_length=1, max_length=500, description="Free-text description of what the user wants to cook")
    ]
    servings: Annotated[int, Field(4, ge=1, le=20)]
    time_budget: Annotated[Optional[int], Field(None, ge=5, le=600, description="Minutes available")]
    dietary_needs: List[str] = Field(default_factory=list)
    must_use: List[str] = Field(default_factory=list)
    avoid: List[str] = Field(default_factory=list)
    equipment: List[str] = Field(default_factory=list)
    budget_note: Annotated[Optional[str], Field(None, max_length=200)]
    cuisine_preference: Annotated[Optional[str], Field(None, max_length=50)]

    @field_validator("dietary_needs", "must_use", "avoid", "equipment", mode="before")
    @classmethod
    def parse_csv(cls, v):
        """Accept comma-separated strings as well as lists."""
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


class PromptPlan(BaseModel):
    """Fully assembled instruction payload for one provider call."""

    system_message: str
    user_message: str
    max_tokens: Annotated[int, Field(gt=0)]
    model_id: str
    model_tier: ModelTier = ModelTier.CHEAP
    temperature: Annotated[float, Field(ge=0.0, le=2.0)]
    json_mode: bool = True
    estimated_cost_usd: Annotated[float, Field(ge=0.0)] = 0.0


class CompletionRequest(BaseModel):
    """Provider-neutral chat completion request."""

    model: str
    system: str
    user: str
    max_tokens: int
    temperature: float
    json_mode: bool = False

    @classmethod
    def from_plan(cls, plan: PromptPlan) -> "CompletionRequest":
        return cls(
            model=plan.model_id,
            system=plan.system_message,
            user=plan.user_message,
            max_tokens=plan.max_tokens,
            temperature=plan.temperature,
            json_mode=plan.json_mode,
        )


class GeneratedImage(BaseModel):
    """Image returned by a provider: a hosted URL, raw bytes, or both."""

    url: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None

    @model_validator(mode="after")
    def validate_has_payload(self) -> "GeneratedImage":
        if not self.url and not self.data:
            raise ValueError("GeneratedImage needs a url or data")
        return self


# ============================================================================
# Generated recipe (lenient schema for model output)
# ============================================================================


def _stringify(v):
    if v is None:
        return None
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v)


class RecipeTime(BaseModel):
    prep_min: Optional[int] = None
    cook_min: Optional[int] = None
    total_min: Optional[int] = None

    @model_validator(mode="after")
    def fill_total(self) -> "RecipeTime":
        if self.total_min is None and (self.prep_min is not None or self.cook_min is not None):
            self.total_min = (self.prep_min or 0) + (self.cook_min or 0)
        return self


class IngredientItem(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    item: str
    qty: Optional[str] = None
    unit: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("qty", mode="before")
    @classmethod
    def coerce_qty(cls, v):
        return _stringify(v)

    def display(self) -> str:
        text = " ".join(part for part in (self.qty, self.unit, self.item) if part)
        return f"{text} ({self.notes})" if self.notes else text


class IngredientSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    section: str = "Main"
    items: List[IngredientItem] = Field(default_factory=list)


class MethodStep(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    step: int
    instruction: str
    why_it_matters: Optional[str] = None


class ShoppingItem(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    item: str
    qty: Optional[str] = None
    unit: Optional[str] = None

    @field_validator("qty", mode="before")
    @classmethod
    def coerce_qty(cls, v):
        return _stringify(v)

    def display(self) -> str:
        return " ".join(part for part in (self.qty, self.unit, self.item) if part)


class SideDish(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str
    description: Optional[str] = None
    quick_method: Optional[str] = None


class GeneratedRecipe(BaseModel):
    """Recipe JSON returned by the generation model.

    Parsing is lenient: unknown keys are ignored, numeric quantities become strings,
    and a flat list of instruction strings is accepted in place of method steps.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    title: Annotated[str, Field(min_length=1, max_length=200)]
    description: Optional[str] = None
    servings: Annotated[int, Field(4, ge=1, le=100)]
    time: RecipeTime = Field(default_factory=RecipeTime)
    cuisine: Optional[str] = None
    style_notes: List[str] = Field(default_factory=list)
    equipment: List[str] = Field(default_factory=list)
    ingredients: List[IngredientSection] = Field(default_factory=list)
    method: List[MethodStep] = Field(default_factory=list)
    finishing_touches: List[str] = Field(default_factory=list)
    flavour_boosts: List[str] = Field(default_factory=list)
    make_ahead_leftovers: Optional[str] = None
    allergens: List[str] = Field(default_factory=list)
    shopping_list: List[ShoppingItem] = Field(default_factory=list)
    side_dishes: List[SideDish] = Field(default_factory=list)

    @field_validator("method", mode="before")
    @classmethod
    def coerce_method(cls, v):
        if not isinstance(v, list):
            return v
        return [
            {"step": idx, "instruction": entry} if isinstance(entry, str) else entry
            for idx, entry in enumerate(v, start=1)
        ]

    @field_validator("ingredients", mode="before")
    @classmethod
    def coerce_ingredients(cls, v):
        """Wrap a flat ingredient list into a single section."""
        if isinstance(v, list) and v and not (isinstance(v[0], dict) and "items" in v[0]):
            items = [{"item": entry} if isinstance(entry, str) else entry for entry in v]
            return [{"section": "Main", "items": items}]
        return v

    @field_validator("shopping_list", mode="before")
    @classmethod
    def coerce_shopping_list(cls, v):
        if isinstance(v, list):
            return [{"item": entry} if isinstance(entry, str) else entry for entry in v]
        return v

    def flat_ingredients(self) -> list[str]:
        return [item.display() for section in self.ingredients for item in section.items]

    def flat_instructions(self) -> list[str]:
        return [step.instruction for step in sorted(self.method, key=lambda s: s.step)]

    def flat_shopping_list(self) -> list[str]:
        return [entry.display() for entry in self.shopping_list]

    def tips(self) -> Optional[str]:
        parts = self.finishing_touches + self.flavour_boosts
        if self.make_ahead_leftovers:
            parts.append(self.make_ahead_leftovers)
        return " | ".join(parts) or None

    def cook_time_display(self) -> Optional[str]:
        return f"{self.time.total_min} mins" if self.time.total_min else None


# ============================================================================
# Persisted rows
# ============================================================================


class RecipeRecord(BaseModel):
    """A saved recipe as read back from the relational store."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    description: Optional[str] = None
    cook_time: Optional[str] = None
    servings: Optional[int] = None
    difficulty: Optional[str] = None
    cuisine: Optional[str] = None
    mood: Optional[str] = None
    mode: Literal["chef", "fridge", "shopping"] = "chef"
    ingredients: List[str] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    tips: Optional[str] = None
    image_url: Optional[str] = None
    shopping_list: List[str] = Field(default_factory=list)
    original_prompt: Optional[str] = None
    created_at: datetime


class RecipeUpdate(BaseModel):
    """User edits to a saved recipe. Unknown fields are rejected; omitted fields stay as stored."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    cook_time: Optional[str] = None
    servings: Optional[int] = Field(None, ge=1, le=100)
    difficulty: Optional[str] = None
    cuisine: Optional[str] = None
    mood: Optional[str] = None
    ingredients: Optional[List[str]] = None
    instructions: Optional[List[str]] = None
    tips: Optional[str] = None
    image_url: Optional[str] = None
    shopping_list: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def title_cannot_be_cleared(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("title cannot be cleared")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ChatMessageRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    message: str
    response: str
    created_at: datetime


# ============================================================================
# Service requests and responses
# ============================================================================


class RecipeRequest(BaseModel):
    """Input for handle_recipe_request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    client_id: Annotated[str, Field(min_length=1, max_length=128, description="Browser/session id for variety")]
    user_id: Annotated[Optional[str], Field(None, description="Owner id; anonymous requests are not persisted")]
    mode: Literal["chef", "fridge", "shopping"] = "chef"
    generate_image: Optional[bool] = None
    preferences: RecipePreferences


class RecipeResponse(BaseModel):
    """Output of handle_recipe_request."""

    recipe: GeneratedRecipe
    recipe_id: Optional[int] = None
    image_url: Optional[str] = None
    specificity: SpecificityTier
    model_id: Optional[str] = None
    estimated_cost_usd: float = 0.0
    is_fallback: bool = False
    message: Optional[str] = None
    execution_time_ms: Annotated[int, Field(ge=0)]


class ChatRequest(BaseModel):
    """Input for handle_chat_message."""

    model_config = ConfigDict(str_strip_whitespace=True)

    message: Annotated[str, Field(min_length=1, max_length=2000)]
    client_id: Annotated[str, Field(min_length=1, max_length=128)]
    user_id: Optional[str] = None
    current_recipe: Optional[RecipeContext] = None
    history: Annotated[List[ChatTurn], Field(default_factory=list, max_length=50)]

    def to_context(self) -> Union[NoRecipeContext, WithRecipeContext]:
        if self.current_recipe is None:
            return NoRecipeContext(history=self.history)
        return WithRecipeContext(current_recipe=self.current_recipe, history=self.history)


class ChatResponse(BaseModel):
    """Output of handle_chat_message."""

    reply: str
    intent: Intent
    requires_recipe_context: bool = False
    suggested_action: Optional[Literal["retry", "select_recipe"]] = None
    message_id: Optional[int] = None
    execution_time_ms: Annotated[int, Field(ge=0)]
