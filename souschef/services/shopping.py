"""
Shopping Consolidator.

Merges the ingredients of several recipes into one shopping list. Two
ingredients merge only when their normalised names AND units match exactly;
"2 cup milk" and "500 ml milk" stay separate lines. No unit conversion happens
here.
"""

import logging
import math
from typing import Iterable, Optional

from ..errors import EmptyInput, FieldError, InvalidArgument, NotFound, ValidationError
from ..infra.record_store import ShoppingListStore
from ..schemas import (
    INGREDIENT_CATEGORIES,
    CustomItemInput,
    Ingredient,
    ShoppingItem,
    ShoppingList,
    Unit,
    generate_uuid,
    utcnow,
)
from .recipe_versions import RecipeService
from .unit_conversion import resolve_unit, scale_ingredient

logger = logging.getLogger("souschef.shopping")


def consolidation_key(ingredient: Ingredient) -> tuple[str, Unit]:
    return (ingredient.name.lower().strip(), ingredient.unit)


def consolidate_ingredients(
    sources: Iterable[tuple[str, Iterable[Ingredient]]],
    list_id: str,
) -> list[ShoppingItem]:
    """
    Merge (recipe_id, ingredients) pairs into shopping items.

    - quantities of same-key ingredients are summed
    - recipe_ids keep first-appearance order, without repeats
    - name and category come from the first contributor that has them;
      no category at all reads as "other"
    Items come out in first-appearance order of their key.
    """
    merged: dict[tuple[str, Unit], dict] = {}

    for recipe_id, ingredients in sources:
        for ing in ingredients:
            key = consolidation_key(ing)
            entry = merged.get(key)
            if entry is None:
                merged[key] = {
                    "name": ing.name.strip(),
                    "quantity": ing.quantity,
                    "unit": ing.unit,
                    # First contributor that has a category decides it
                    "category_source": ing,
                    "recipe_ids": [recipe_id],
                }
                continue

            entry["quantity"] += ing.quantity
            if entry["category_source"].category is None and ing.category is not None:
                entry["category_source"] = ing
            if recipe_id not in entry["recipe_ids"]:
                entry["recipe_ids"].append(recipe_id)

    return [
        ShoppingItem(
            id=generate_uuid(),
            list_id=list_id,
            name=entry["name"],
            quantity=entry["quantity"],
            unit=entry["unit"],
            category=entry["category_source"].effective_category,
            checked=False,
            recipe_ids=tuple(entry["recipe_ids"]),
        )
        for entry in merged.values()
    ]


def group_by_category(items: Iterable[ShoppingItem]) -> dict[str, list[ShoppingItem]]:
    """Partition items by category in display order; empty groups are dropped."""
    groups: dict[str, list[ShoppingItem]] = {c: [] for c in INGREDIENT_CATEGORIES}
    for item in items:
        groups[item.category].append(item)
    return {c: group for c, group in groups.items() if group}


def _format_quantity(item: ShoppingItem) -> str:
    # A lone "1 piece" reads better as just the name
    if item.quantity == 1 and item.unit == Unit.PIECE:
        return ""
    return f"{item.quantity:g} {item.unit.value} "


class ShoppingService:
    def __init__(self, recipes: RecipeService, lists: ShoppingListStore):
        self.recipes = recipes
        self.lists = lists

    def generate_from_recipes(
        self,
        recipe_ids: list[str],
        servings: Optional[dict[str, int]] = None,
    ) -> ShoppingList:
        """
        Build and persist a consolidated list from `recipe_ids`.

        Unknown and archived ids are skipped. Repeated ids count once.
        `servings` optionally maps a recipe id to the servings wanted; that
        recipe's ingredients are scaled by wanted / recipe.servings first.
        """
        servings = servings or {}
        for recipe_id, wanted in servings.items():
            if wanted <= 0:
                raise InvalidArgument(f"Servings for recipe {recipe_id} must be positive, got {wanted}")

        list_id = generate_uuid()
        sources = []
        used_ids = []
        for recipe_id in dict.fromkeys(recipe_ids):
            recipe = self.recipes.get_recipe(recipe_id)
            if recipe is None:
                logger.warning(f"Skipping unknown recipe {recipe_id}")
                continue
            if recipe.is_archived:
                logger.warning(f"Skipping archived recipe {recipe_id}")
                continue

            ingredients = recipe.ingredients
            wanted = servings.get(recipe_id)
            if wanted is not None and wanted != recipe.servings:
                factor = wanted / recipe.servings
                ingredients = tuple(scale_ingredient(ing, factor) for ing in ingredients)

            sources.append((recipe_id, ingredients))
            used_ids.append(recipe_id)

        if not sources:
            raise EmptyInput("None of the requested recipes could be used")

        shopping_list = ShoppingList(
            id=list_id,
            items=tuple(consolidate_ingredients(sources, list_id)),
            source_recipe_ids=tuple(used_ids),
            created_at=utcnow(),
        )
        self.lists.save_shopping_list(shopping_list)
        logger.info(
            f"Generated shopping list {list_id} with {len(shopping_list.items)} items "
            f"from {len(used_ids)} recipes"
        )
        return shopping_list

    def get_list(self, list_id: str) -> Optional[ShoppingList]:
        return self.lists.read_shopping_list(list_id)

    def _require_list(self, list_id: str) -> ShoppingList:
        shopping_list = self.lists.read_shopping_list(list_id)
        if shopping_list is None:
            raise NotFound(f"Shopping list {list_id} not found")
        return shopping_list

    def get_items_by_category(self, list_id: str) -> dict[str, list[ShoppingItem]]:
        return group_by_category(self._require_list(list_id).items)

    def _set_checked(self, list_id: str, item_id: str, checked: bool) -> ShoppingItem:
        self._require_list(list_id)
        item = self.lists.set_item_checked(list_id, item_id, checked)
        if item is None:
            raise NotFound(f"Item {item_id} not found in shopping list {list_id}")
        return item

    def check_item(self, list_id: str, item_id: str) -> ShoppingItem:
        return self._set_checked(list_id, item_id, True)

    def uncheck_item(self, list_id: str, item_id: str) -> ShoppingItem:
        return self._set_checked(list_id, item_id, False)

    def add_custom_item(self, list_id: str, data: CustomItemInput) -> ShoppingItem:
        """Add a hand-written item. Defaults: 1 piece, category "other"."""
        self._require_list(list_id)

        errors = []
        if not data.name or not data.name.strip():
            errors.append(FieldError("name", "must not be empty"))
        if data.quantity is not None and not (data.quantity > 0 and math.isfinite(data.quantity)):
            errors.append(FieldError("quantity", "must be a positive number"))
        unit = resolve_unit(data.unit) if data.unit is not None else Unit.PIECE
        if unit is None:
            errors.append(FieldError("unit", f"unknown unit '{data.unit}'"))
        if data.category is not None and data.category not in INGREDIENT_CATEGORIES:
            errors.append(FieldError("category", f"unknown category '{data.category}'"))
        if errors:
            raise ValidationError(errors)

        item = ShoppingItem(
            id=generate_uuid(),
            list_id=list_id,
            name=data.name.strip(),
            quantity=data.quantity if data.quantity is not None else 1,
            unit=unit,
            category=data.category or "other",
        )
        self.lists.add_shopping_item(item)
        logger.info(f"Added custom item '{item.name}' to shopping list {list_id}")
        return item

    def export_to_text(self, list_id: str) -> str:
        shopping_list = self._require_list(list_id)

        lines = ["Shopping List", "=" * 40, ""]
        for category, items in group_by_category(shopping_list.items).items():
            lines.append(f"## {category.capitalize()}")
            for item in items:
                checkbox = "[x]" if item.checked else "[ ]"
                lines.append(f"{checkbox} {_format_quantity(item)}{item.name}")
            lines.append("")

        return "\n".join(lines)

    def delete_list(self, list_id: str) -> None:
        if not self.lists.delete_shopping_list(list_id):
            raise NotFound(f"Shopping list {list_id} not found")
        logger.info(f"Deleted shopping list {list_id}")
