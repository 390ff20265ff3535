"""Pydantic schemas for the Sous Chef engine.

Value types shared by the three engine components:
- Units (vocabulary, categories, systems)
- Ingredients / instructions and their caller-facing inputs
- RecipeVersion (immutable snapshot) and Recipe (head + current content)
- Shopping lists
- Request bodies for the HTTP adapter
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Units ---

class Unit(str, Enum):
    # US volume
    TSP = "tsp"
    TBSP = "tbsp"
    FL_OZ = "fl_oz"
    CUP = "cup"
    PINT = "pint"
    QUART = "quart"
    GALLON = "gallon"
    # Metric volume
    ML = "ml"
    L = "l"
    # US weight
    OZ = "oz"
    LB = "lb"
    # Metric weight
    G = "g"
    KG = "kg"
    # Imprecise
    PIECE = "piece"
    DOZEN = "dozen"
    PINCH = "pinch"
    DASH = "dash"
    TO_TASTE = "to_taste"


class UnitCategory(str, Enum):
    VOLUME = "volume"
    WEIGHT = "weight"
    IMPRECISE = "imprecise"


class UnitSystem(str, Enum):
    US = "us"
    METRIC = "metric"


# --- Ingredient ---

IngredientCategory = Literal[
    "produce", "meat", "seafood", "dairy", "bakery",
    "frozen", "pantry", "spices", "beverages", "other",
]

# Also the display order for shopping lists
INGREDIENT_CATEGORIES: tuple[str, ...] = (
    "produce", "meat", "seafood", "dairy", "bakery",
    "frozen", "pantry", "spices", "beverages", "other",
)


class Ingredient(BaseModel):
    id: str
    name: str
    quantity: float
    unit: Unit
    notes: Optional[str] = None
    category: Optional[IngredientCategory] = None

    class Config:
        frozen = True

    @property
    def effective_category(self) -> str:
        """Category used for grouping; a missing category reads as "other"."""
        return self.category or "other"


class IngredientInput(BaseModel):
    name: str
    quantity: float
    # Either a Unit or any alias understood by resolve_unit ("cups", "T", "fl oz")
    unit: Union[Unit, str]
    notes: Optional[str] = None
    category: Optional[str] = None


# --- Instruction ---

class Instruction(BaseModel):
    id: str
    step: int  # 1-indexed
    text: str
    duration_minutes: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        frozen = True


class InstructionInput(BaseModel):
    text: str
    duration_minutes: Optional[int] = None
    notes: Optional[str] = None


# --- Recipe ---

class RecipeInput(BaseModel):
    """Caller-supplied recipe content. Validated by RecipeService, not here,
    so that every offending field can be reported at once."""
    title: str
    description: Optional[str] = None
    ingredients: list[IngredientInput] = []
    instructions: list[InstructionInput] = []
    prep_time_minutes: int = 0
    cook_time_minutes: int = 0
    servings: int
    tags: Optional[list[str]] = None
    source_url: Optional[str] = None
    folder_id: Optional[str] = None
    parent_recipe_id: Optional[str] = None


class RecipeContent(BaseModel):
    """The versioned part of a recipe."""
    title: str
    description: Optional[str] = None
    ingredients: tuple[Ingredient, ...] = ()
    instructions: tuple[Instruction, ...] = ()
    prep_time_minutes: int = 0
    cook_time_minutes: int = 0
    servings: int
    source_url: Optional[str] = None

    class Config:
        frozen = True


CONTENT_FIELDS: tuple[str, ...] = tuple(RecipeContent.model_fields)


class RecipeVersion(RecipeContent):
    """Immutable snapshot of a recipe's content."""
    id: str
    recipe_id: str
    version: int = Field(..., ge=1)
    created_at: datetime

    def content(self) -> RecipeContent:
        return RecipeContent(**{name: getattr(self, name) for name in CONTENT_FIELDS})


class RecipeHeadRecord(BaseModel):
    """Mutable head pointer as persisted by the record store.

    Content is never stored here; it always comes from the version the head
    points at, so the two cannot drift apart.
    """
    id: str
    current_version: int = Field(..., ge=0)  # 0 only while the first version is being appended
    tags: tuple[str, ...] = ()
    rating: Optional[int] = Field(None, ge=1, le=5)
    folder_id: Optional[str] = None
    parent_recipe_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    archived_at: Optional[datetime] = None

    class Config:
        frozen = True


class Recipe(RecipeContent):
    """Head metadata plus the content of one version (normally the current one)."""
    id: str
    current_version: int
    tags: tuple[str, ...] = ()
    rating: Optional[int] = None
    folder_id: Optional[str] = None
    parent_recipe_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    archived_at: Optional[datetime] = None

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


class RecipeHeritage(BaseModel):
    recipe: Recipe
    parent: Optional[Recipe] = None
    ancestors: list[Recipe] = []  # nearest first
    children: list[Recipe] = []


# --- Shopping ---

class ShoppingItem(BaseModel):
    id: str
    list_id: str
    name: str
    quantity: float
    unit: Unit
    category: IngredientCategory = "other"
    checked: bool = False
    recipe_ids: tuple[str, ...] = ()

    class Config:
        frozen = True


class ShoppingList(BaseModel):
    id: str
    items: tuple[ShoppingItem, ...] = ()
    source_recipe_ids: tuple[str, ...] = ()
    created_at: datetime

    class Config:
        frozen = True


class CustomItemInput(BaseModel):
    name: str
    quantity: Optional[float] = None
    unit: Optional[Union[Unit, str]] = None
    category: Optional[str] = None


# --- API ---

class UnitConvertRequest(BaseModel):
    quantity: float
    from_unit: str
    to_unit: str


class UnitConvertResponse(BaseModel):
    quantity: Optional[float]  # None when the units are not compatible
    unit: Unit
    compatible: bool


class SystemConvertRequest(BaseModel):
    ingredient: Ingredient
    target_system: Optional[UnitSystem] = None  # falls back to settings.default_unit_system


class RoundRequest(BaseModel):
    quantity: float
    unit: str


class RoundResponse(BaseModel):
    quantity: float
    unit: Unit


class GenerateShoppingRequest(BaseModel):
    recipe_ids: list[str]
    # Optional per-recipe servings override
    servings: dict[str, int] = {}


class ScaleIngredientRequest(BaseModel):
    ingredient: Ingredient
    factor: float
