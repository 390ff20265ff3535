"""
Unit Conversion Service.

Handles the unit vocabulary, volume/weight conversion, scaling and
practical rounding for cooking-friendly quantities. Everything here is a
pure function over the value types in `schemas`.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction
from types import MappingProxyType
from typing import Optional, TypeVar, Union

from ..errors import InvalidArgument
from ..schemas import (
    Ingredient,
    IngredientInput,
    RecipeContent,
    Unit,
    UnitCategory,
    UnitSystem,
)

# --- Data Tables ---

# Exact legal definitions, so integral ratios (cup -> tbsp, lb -> oz) stay exact.
_TSP_ML = Fraction("4.92892159375")
_OZ_G = Fraction("28.349523125")

# Unit -> (category, system, factor_to_base)
# Base units: ml (volume), g (weight). Imprecise units have no factor and no system.
UNITS_DB = MappingProxyType({
    # Volume (base: ml)
    Unit.TSP: (UnitCategory.VOLUME, UnitSystem.US, _TSP_ML),
    Unit.TBSP: (UnitCategory.VOLUME, UnitSystem.US, _TSP_ML * 3),
    Unit.FL_OZ: (UnitCategory.VOLUME, UnitSystem.US, _TSP_ML * 6),
    Unit.CUP: (UnitCategory.VOLUME, UnitSystem.US, _TSP_ML * 48),
    Unit.PINT: (UnitCategory.VOLUME, UnitSystem.US, _TSP_ML * 96),
    Unit.QUART: (UnitCategory.VOLUME, UnitSystem.US, _TSP_ML * 192),
    Unit.GALLON: (UnitCategory.VOLUME, UnitSystem.US, _TSP_ML * 768),
    Unit.ML: (UnitCategory.VOLUME, UnitSystem.METRIC, Fraction(1)),
    Unit.L: (UnitCategory.VOLUME, UnitSystem.METRIC, Fraction(1000)),

    # Weight (base: g)
    Unit.OZ: (UnitCategory.WEIGHT, UnitSystem.US, _OZ_G),
    Unit.LB: (UnitCategory.WEIGHT, UnitSystem.US, _OZ_G * 16),
    Unit.G: (UnitCategory.WEIGHT, UnitSystem.METRIC, Fraction(1)),
    Unit.KG: (UnitCategory.WEIGHT, UnitSystem.METRIC, Fraction(1000)),

    # Imprecise
    Unit.PIECE: (UnitCategory.IMPRECISE, None, None),
    Unit.DOZEN: (UnitCategory.IMPRECISE, None, None),
    Unit.PINCH: (UnitCategory.IMPRECISE, None, None),
    Unit.DASH: (UnitCategory.IMPRECISE, None, None),
    Unit.TO_TASTE: (UnitCategory.IMPRECISE, None, None),
})

# Case matters for these ("t" vs "T")
CASE_SENSITIVE_SYNONYMS = {
    "t": Unit.TSP,
    "T": Unit.TBSP,
}

# Lowercase alias -> Unit
UNIT_ALIASES = {
    "tsp": Unit.TSP, "teaspoon": Unit.TSP, "ts": Unit.TSP,
    "tbsp": Unit.TBSP, "tablespoon": Unit.TBSP, "tbs": Unit.TBSP, "tbl": Unit.TBSP,
    "fl_oz": Unit.FL_OZ, "fl oz": Unit.FL_OZ, "floz": Unit.FL_OZ, "fluid ounce": Unit.FL_OZ,
    "cup": Unit.CUP, "c": Unit.CUP,
    "pint": Unit.PINT, "pt": Unit.PINT,
    "quart": Unit.QUART, "qt": Unit.QUART,
    "gallon": Unit.GALLON, "gal": Unit.GALLON,
    "ml": Unit.ML, "milliliter": Unit.ML, "millilitre": Unit.ML,
    "l": Unit.L, "liter": Unit.L, "litre": Unit.L,
    "oz": Unit.OZ, "ounce": Unit.OZ,
    "lb": Unit.LB, "pound": Unit.LB,
    "g": Unit.G, "gram": Unit.G,
    "kg": Unit.KG, "kilogram": Unit.KG,
    "piece": Unit.PIECE, "pc": Unit.PIECE, "each": Unit.PIECE, "ea": Unit.PIECE,
    "dozen": Unit.DOZEN,
    "pinch": Unit.PINCH,
    "dash": Unit.DASH,
    "to_taste": Unit.TO_TASTE, "to taste": Unit.TO_TASTE,
}

# Best unit per (category, system): first row whose `max` (in base units)
# is above the quantity wins.
SYSTEM_UNIT_THRESHOLDS = MappingProxyType({
    (UnitCategory.VOLUME, UnitSystem.US): (
        (UNITS_DB[Unit.TBSP][2], Unit.TSP),         # < 1 tbsp
        (UNITS_DB[Unit.TBSP][2] * 4, Unit.TBSP),    # < 1/4 cup
        (UNITS_DB[Unit.QUART][2], Unit.CUP),        # < 1 quart
        (UNITS_DB[Unit.GALLON][2], Unit.QUART),     # < 1 gallon
        (math.inf, Unit.GALLON),
    ),
    (UnitCategory.VOLUME, UnitSystem.METRIC): (
        (1000, Unit.ML),
        (math.inf, Unit.L),
    ),
    (UnitCategory.WEIGHT, UnitSystem.US): (
        (UNITS_DB[Unit.LB][2], Unit.OZ),            # < 1 lb
        (math.inf, Unit.LB),
    ),
    (UnitCategory.WEIGHT, UnitSystem.METRIC): (
        (1000, Unit.G),
        (math.inf, Unit.KG),
    ),
})


# --- Unit lookups ---

def resolve_unit(raw: Union[Unit, str, None]) -> Optional[Unit]:
    """Resolve a Unit or free-form unit string ("cups", "T", "fl oz") to a Unit."""
    if raw is None:
        return None
    if isinstance(raw, Unit):
        return raw

    raw_clean = raw.strip().rstrip(".")
    if raw_clean in CASE_SENSITIVE_SYNONYMS:
        return CASE_SENSITIVE_SYNONYMS[raw_clean]

    u = " ".join(raw_clean.lower().replace("-", " ").split())
    if u in UNIT_ALIASES:
        return UNIT_ALIASES[u]

    # Plurals: cups, pinches, fluid ounces, lbs
    if u.endswith("es") and u[:-2] in UNIT_ALIASES:
        return UNIT_ALIASES[u[:-2]]
    if u.endswith("s") and u[:-1] in UNIT_ALIASES:
        return UNIT_ALIASES[u[:-1]]

    return None


def get_unit_category(unit: Unit) -> UnitCategory:
    return UNITS_DB[unit][0]


def get_unit_system(unit: Unit) -> Optional[UnitSystem]:
    return UNITS_DB[unit][1]


def _factor(unit: Unit) -> Optional[Fraction]:
    return UNITS_DB[unit][2]


def get_units_for_system(system: UnitSystem) -> list[Unit]:
    return [unit for unit, (_, unit_system, _) in UNITS_DB.items() if unit_system == system]


# --- Core Functions ---

def are_units_compatible(unit1: Unit, unit2: Unit) -> bool:
    """True iff both units share a category and both have a numeric factor.

    Imprecise units are never compatible, not even with themselves.
    """
    if _factor(unit1) is None or _factor(unit2) is None:
        return False
    return get_unit_category(unit1) == get_unit_category(unit2)


def convert(quantity: float, from_unit: Unit, to_unit: Unit) -> Optional[float]:
    """
    Convert quantity between units of the same category.

    Returns None across categories or when either unit is imprecise.
    """
    if not are_units_compatible(from_unit, to_unit):
        return None
    if from_unit == to_unit:
        return float(quantity)

    factor_from = _factor(from_unit)
    factor_to = _factor(to_unit)

    # Integral ratios (and their inverses) are applied exactly
    ratio = factor_from / factor_to
    if ratio.denominator == 1:
        return float(quantity) * ratio.numerator
    if ratio.numerator == 1:
        return float(quantity) / ratio.denominator

    # base_qty = qty * factor_from; target_qty = base_qty / factor_to
    return float(quantity) * float(factor_from) / float(factor_to)


def best_unit_for_system(quantity: float, unit: Unit, target_system: UnitSystem) -> Optional[Unit]:
    """Pick the unit in `target_system` that keeps `quantity` human-friendly."""
    factor = _factor(unit)
    if factor is None:
        return None

    base_qty = quantity * float(factor)
    thresholds = SYSTEM_UNIT_THRESHOLDS[(get_unit_category(unit), target_system)]
    for max_base, candidate in thresholds:
        if base_qty < max_base:
            return candidate
    return thresholds[-1][1]


def convert_to_system(ingredient: Ingredient, target_system: UnitSystem) -> Ingredient:
    """
    Convert an ingredient into `target_system`.

    Imprecise units and ingredients already in the target system come back
    unchanged. The result is always a fresh copy.
    """
    current_system = get_unit_system(ingredient.unit)
    if current_system is None or current_system == target_system:
        return ingredient.model_copy()

    target_unit = best_unit_for_system(ingredient.quantity, ingredient.unit, target_system)
    converted = convert(ingredient.quantity, ingredient.unit, target_unit) if target_unit else None
    if converted is None:
        return ingredient.model_copy()

    return ingredient.model_copy(update={"quantity": converted, "unit": target_unit})


# --- Scaling ---

def _check_factor(factor: float) -> None:
    # `not factor > 0` also rejects NaN
    if not (factor > 0 and math.isfinite(factor)):
        raise InvalidArgument(f"Scale factor must be positive and finite, got {factor}")


def scale_ingredient(ingredient: Ingredient, factor: float) -> Ingredient:
    _check_factor(factor)
    return ingredient.model_copy(update={"quantity": ingredient.quantity * factor})


def scale_ingredient_input(ingredient: IngredientInput, factor: float) -> IngredientInput:
    _check_factor(factor)
    return ingredient.model_copy(update={"quantity": ingredient.quantity * factor})


RecipeT = TypeVar("RecipeT", bound=RecipeContent)


def scale_recipe(recipe: RecipeT, factor: float) -> RecipeT:
    """
    Scale every ingredient and the servings count.

    Title, times and instructions are left alone. Works on Recipe and
    RecipeVersion alike and never mutates its input.
    """
    _check_factor(factor)
    servings = max(1, math.floor(recipe.servings * factor + 0.5))
    return recipe.model_copy(update={
        "ingredients": tuple(scale_ingredient(ing, factor) for ing in recipe.ingredients),
        "servings": servings,
    })


# --- Practical Rounding ---

def _round_to_step(value: float, step: Union[str, float]) -> float:
    """Half-up rounding to a multiple of `step` (decimal arithmetic, no float drift)."""
    step_d = Decimal(str(step))
    units = (Decimal(str(value)) / step_d).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return float(units * step_d)


@dataclass(frozen=True)
class FractionRule:
    """Nearest cooking fraction below `threshold`, nearest `step` at or above it."""
    threshold: float
    fractions: tuple[float, ...]
    step: float

    def apply(self, quantity: float) -> float:
        if quantity >= self.threshold:
            return _round_to_step(quantity, self.step)
        whole = math.floor(quantity)
        part = quantity - whole
        # Ties go to the larger fraction
        closest = min(self.fractions, key=lambda f: (abs(part - f), -f))
        return whole + closest


@dataclass(frozen=True)
class DecimalRule:
    """Nearest whole at or above `threshold`, `decimals` places below it."""
    threshold: float
    decimals: int

    def apply(self, quantity: float) -> float:
        if quantity >= self.threshold:
            return _round_to_step(quantity, 1)
        return _round_to_step(quantity, Decimal(1).scaleb(-self.decimals))


@dataclass(frozen=True)
class StepRule:
    """`fine_decimals` places below `fine_below`, nearest `step` up to `threshold`,
    nearest whole at or above `threshold`."""
    fine_below: float
    fine_decimals: int
    step: float
    threshold: float

    def apply(self, quantity: float) -> float:
        if quantity < self.fine_below:
            return _round_to_step(quantity, Decimal(1).scaleb(-self.fine_decimals))
        if quantity < self.threshold:
            return _round_to_step(quantity, self.step)
        return _round_to_step(quantity, 1)


@dataclass(frozen=True)
class CountRule:
    """Nearest `step`, never below `minimum`."""
    step: float
    minimum: float

    def apply(self, quantity: float) -> float:
        return max(self.minimum, _round_to_step(quantity, self.step))


@dataclass(frozen=True)
class PracticalRoundingPolicy:
    us_volume: FractionRule
    us_weight: DecimalRule
    metric_small: StepRule   # ml, g
    metric_large: DecimalRule  # l, kg
    count: CountRule         # piece, dozen
    imprecise: CountRule     # pinch, dash, to_taste
    # Anything that rounds to zero keeps this many decimals instead
    tiny_decimals: int = 2

    def rule_for(self, unit: Unit):
        return getattr(self, _ROUNDING_CLASS[unit])


_ROUNDING_CLASS = MappingProxyType({
    Unit.TSP: "us_volume", Unit.TBSP: "us_volume", Unit.FL_OZ: "us_volume",
    Unit.CUP: "us_volume", Unit.PINT: "us_volume", Unit.QUART: "us_volume",
    Unit.GALLON: "us_volume",
    Unit.OZ: "us_weight", Unit.LB: "us_weight",
    Unit.ML: "metric_small", Unit.G: "metric_small",
    Unit.L: "metric_large", Unit.KG: "metric_large",
    Unit.PIECE: "count", Unit.DOZEN: "count",
    Unit.PINCH: "imprecise", Unit.DASH: "imprecise", Unit.TO_TASTE: "imprecise",
})

# Breakpoints are policy, not physics. Tests assert against this table.
PRACTICAL_ROUNDING = PracticalRoundingPolicy(
    us_volume=FractionRule(
        threshold=4.0,
        fractions=(0.0, 1 / 8, 1 / 4, 1 / 3, 1 / 2, 2 / 3, 3 / 4, 1.0),
        step=0.5,
    ),
    us_weight=DecimalRule(threshold=10.0, decimals=1),
    metric_small=StepRule(fine_below=10.0, fine_decimals=1, step=5.0, threshold=1000.0),
    metric_large=DecimalRule(threshold=10.0, decimals=1),
    count=CountRule(step=0.5, minimum=0.5),
    imprecise=CountRule(step=1.0, minimum=1.0),
)


def round_to_practical(
    quantity: float,
    unit: Unit,
    policy: PracticalRoundingPolicy = PRACTICAL_ROUNDING,
) -> float:
    """Round a precise quantity to a cooking-friendly value for `unit`."""
    if not math.isfinite(quantity) or quantity < 0:
        raise InvalidArgument(f"Quantity must be finite and not negative, got {quantity}")
    if quantity == 0:
        return 0.0

    rounded = policy.rule_for(unit).apply(quantity)
    if rounded == 0:
        # Never round a real amount away entirely
        tiny = _round_to_step(quantity, Decimal(1).scaleb(-policy.tiny_decimals))
        return tiny if tiny > 0 else float(quantity)
    return float(rounded)
