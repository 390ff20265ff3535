"""Tests for shopping list consolidation and list management."""

from collections import defaultdict

import pytest

from souschef.errors import EmptyInput, InvalidArgument, NotFound, ValidationError
from souschef.schemas import INGREDIENT_CATEGORIES, CustomItemInput, Ingredient, Unit
from souschef.services.shopping import consolidate_ingredients


def test_same_name_and_unit_merge(recipes, shopping, make_recipe_input):
    r1 = recipes.create_recipe(make_recipe_input(title="Bread", ingredients=[("flour", 2, "cup", "pantry")]))
    r2 = recipes.create_recipe(make_recipe_input(title="Cake", ingredients=[("flour", 1.5, "cup", "pantry")]))

    shopping_list = shopping.generate_from_recipes([r1.id, r2.id])

    assert len(shopping_list.items) == 1
    flour = shopping_list.items[0]
    assert flour.name == "flour"
    assert flour.quantity == 3.5
    assert flour.unit == Unit.CUP
    assert flour.category == "pantry"
    assert flour.checked is False
    assert flour.recipe_ids == (r1.id, r2.id)
    assert flour.list_id == shopping_list.id
    assert shopping_list.source_recipe_ids == (r1.id, r2.id)


def test_different_units_never_merge(recipes, shopping, make_recipe_input):
    r1 = recipes.create_recipe(make_recipe_input(ingredients=[("milk", 1, "cup", "dairy")]))
    r2 = recipes.create_recipe(make_recipe_input(ingredients=[("milk", 250, "ml", "dairy")]))

    items = shopping.generate_from_recipes([r1.id, r2.id]).items

    assert sorted((i.quantity, i.unit) for i in items) == [(1, Unit.CUP), (250, Unit.ML)]
    assert all(i.recipe_ids == (r,) for i, r in zip(items, [r1.id, r2.id]))


def test_names_match_case_and_whitespace_insensitively(recipes, shopping, make_recipe_input):
    r1 = recipes.create_recipe(make_recipe_input(ingredients=[("Flour", 1, "cup", None)]))
    r2 = recipes.create_recipe(make_recipe_input(ingredients=[("  flour ", 1, "cup", "pantry")]))

    items = shopping.generate_from_recipes([r1.id, r2.id]).items

    assert len(items) == 1
    assert items[0].name == "Flour"
    assert items[0].quantity == 2
    # First contributor had no category, second did
    assert items[0].category == "pantry"


def test_uncategorised_items_land_in_other(recipes, shopping, make_recipe_input):
    r1 = recipes.create_recipe(make_recipe_input(ingredients=[("mystery", 1, "piece", None)]))
    items = shopping.generate_from_recipes([r1.id]).items
    assert items[0].category == "other"


def test_consolidated_category_follows_ingredient_fallback():
    def ing(name, category):
        return Ingredient(id=name + str(category), name=name, quantity=1, unit=Unit.CUP, category=category)

    items = consolidate_ingredients([
        ("r1", [ing("rice", None), ing("beans", None)]),
        ("r2", [ing("rice", None), ing("rice", "pantry"), ing("rice", "produce")]),
    ], list_id="L1")

    assert {i.name: i.category for i in items} == {"rice": "pantry", "beans": "other"}


def test_same_recipe_twice_in_one_list_merges_ids(recipes, shopping, make_recipe_input):
    recipe = recipes.create_recipe(make_recipe_input(ingredients=[
        ("butter", 2, "tbsp", "dairy"),
        ("Butter", 1, "tbsp", "dairy"),
    ]))
    items = shopping.generate_from_recipes([recipe.id]).items
    assert len(items) == 1
    assert items[0].quantity == 3
    assert items[0].recipe_ids == (recipe.id,)


def test_repeated_ids_count_once(recipes, shopping, make_recipe_input):
    recipe = recipes.create_recipe(make_recipe_input(ingredients=[("rice", 1, "cup", "pantry")]))
    shopping_list = shopping.generate_from_recipes([recipe.id, recipe.id])
    assert shopping_list.items[0].quantity == 1
    assert shopping_list.source_recipe_ids == (recipe.id,)


def test_archived_and_missing_recipes_are_skipped(recipes, shopping, make_recipe_input):
    live = recipes.create_recipe(make_recipe_input(ingredients=[("oats", 1, "cup", "pantry")]))
    archived = recipes.create_recipe(make_recipe_input(ingredients=[("oats", 5, "cup", "pantry")]))
    recipes.archive_recipe(archived.id)

    shopping_list = shopping.generate_from_recipes(["missing", archived.id, live.id])

    assert shopping_list.source_recipe_ids == (live.id,)
    assert [(i.name, i.quantity) for i in shopping_list.items] == [("oats", 1)]


def test_nothing_resolvable_is_empty_input(recipes, shopping, make_recipe_input):
    archived = recipes.create_recipe(make_recipe_input())
    recipes.archive_recipe(archived.id)

    with pytest.raises(EmptyInput):
        shopping.generate_from_recipes([])
    with pytest.raises(EmptyInput):
        shopping.generate_from_recipes(["missing", archived.id])


def test_uses_current_version(recipes, shopping, make_recipe_input):
    recipe = recipes.create_recipe(make_recipe_input(ingredients=[("sugar", 1, "cup", "pantry")]))
    recipes.update_recipe(recipe.id, make_recipe_input(ingredients=[("sugar", 0.5, "cup", "pantry")]))

    items = shopping.generate_from_recipes([recipe.id]).items
    assert items[0].quantity == 0.5


def test_servings_override_scales_ingredients(recipes, shopping, make_recipe_input):
    r1 = recipes.create_recipe(make_recipe_input(servings=4, ingredients=[("flour", 2, "cup", "pantry")]))
    r2 = recipes.create_recipe(make_recipe_input(servings=2, ingredients=[("flour", 1, "cup", "pantry")]))

    shopping_list = shopping.generate_from_recipes([r1.id, r2.id], servings={r1.id: 8})

    assert shopping_list.items[0].quantity == 5


def test_servings_override_must_be_positive(recipes, shopping, make_recipe_input):
    recipe = recipes.create_recipe(make_recipe_input())
    with pytest.raises(InvalidArgument):
        shopping.generate_from_recipes([recipe.id], servings={recipe.id: 0})


def test_consolidation_conserves_quantities(recipes, shopping, make_recipe_input):
    specs = [
        [("flour", 2, "cup", "pantry"), ("milk", 1, "cup", "dairy"), ("eggs", 2, "piece", "dairy")],
        [("Flour", 0.5, "cup", "pantry"), ("milk", 250, "ml", "dairy"), ("salt", 1, "pinch", "spices")],
        [("eggs", 3, "piece", None), ("milk", 2, "cup", None), ("basil", 10, "g", "produce")],
    ]
    created = [recipes.create_recipe(make_recipe_input(ingredients=s)) for s in specs]

    expected = defaultdict(float)
    for s in specs:
        for name, qty, unit, _ in s:
            expected[(name.lower().strip(), Unit(unit))] += qty

    items = shopping.generate_from_recipes([r.id for r in created]).items
    actual = {(i.name.lower().strip(), i.unit): i.quantity for i in items}

    assert actual == pytest.approx(dict(expected))
    assert len(items) == len(expected)


# --- Stored lists ---

@pytest.fixture
def groceries(recipes, shopping, make_recipe_input):
    recipe = recipes.create_recipe(make_recipe_input(ingredients=[
        ("flour", 3, "cup", "pantry"),
        ("eggs", 1, "piece", "dairy"),
        ("apples", 2, "piece", "produce"),
        ("salmon", 1, "lb", "seafood"),
    ]))
    return shopping.generate_from_recipes([recipe.id])


def _item(shopping_list, name):
    return next(i for i in shopping_list.items if i.name == name)


def test_get_list_returns_stored_list(shopping, groceries):
    stored = shopping.get_list(groceries.id)
    assert stored.id == groceries.id
    assert [i.id for i in stored.items] == [i.id for i in groceries.items]
    assert shopping.get_list("missing") is None


def test_items_by_category_in_aisle_order(shopping, groceries):
    groups = shopping.get_items_by_category(groceries.id)

    assert list(groups) == ["produce", "seafood", "dairy", "pantry"]
    assert [i.name for i in groups["produce"]] == ["apples"]
    # Partition: every item exactly once
    grouped_ids = [i.id for items in groups.values() for i in items]
    assert sorted(grouped_ids) == sorted(i.id for i in groceries.items)
    assert all(c in INGREDIENT_CATEGORIES for c in groups)
    assert all(items for items in groups.values())


def test_items_by_category_unknown_list(shopping):
    with pytest.raises(NotFound):
        shopping.get_items_by_category("missing")


def test_check_and_uncheck_item(shopping, groceries):
    eggs = _item(groceries, "eggs")

    checked = shopping.check_item(groceries.id, eggs.id)
    assert checked.checked is True
    assert _item(shopping.get_list(groceries.id), "eggs").checked is True

    unchecked = shopping.uncheck_item(groceries.id, eggs.id)
    assert unchecked.checked is False
    assert _item(shopping.get_list(groceries.id), "eggs").checked is False


def test_check_item_must_belong_to_list(recipes, shopping, groceries, make_recipe_input):
    other_recipe = recipes.create_recipe(make_recipe_input(ingredients=[("kale", 1, "piece", "produce")]))
    other_list = shopping.generate_from_recipes([other_recipe.id])

    with pytest.raises(NotFound):
        shopping.check_item(groceries.id, other_list.items[0].id)
    with pytest.raises(NotFound):
        shopping.check_item(groceries.id, "missing")
    with pytest.raises(NotFound):
        shopping.uncheck_item("missing", other_list.items[0].id)


def test_add_custom_item_defaults(shopping, groceries):
    item = shopping.add_custom_item(groceries.id, CustomItemInput(name="Napkins"))

    assert item.quantity == 1
    assert item.unit == Unit.PIECE
    assert item.category == "other"
    assert item.recipe_ids == ()
    assert shopping.get_list(groceries.id).items[-1].id == item.id


def test_add_custom_item_with_values(shopping, groceries):
    item = shopping.add_custom_item(
        groceries.id,
        CustomItemInput(name="Olive oil", quantity=500, unit="ml", category="pantry"),
    )
    assert (item.quantity, item.unit, item.category) == (500, Unit.ML, "pantry")


def test_add_custom_item_validation(shopping, groceries):
    with pytest.raises(ValidationError) as exc:
        shopping.add_custom_item(
            groceries.id,
            CustomItemInput(name=" ", quantity=-2, unit="handful", category="misc"),
        )
    assert set(exc.value.fields) == {"name", "quantity", "unit", "category"}

    with pytest.raises(NotFound):
        shopping.add_custom_item("missing", CustomItemInput(name="Napkins"))


def test_export_to_text(shopping, groceries):
    shopping.check_item(groceries.id, _item(groceries, "eggs").id)

    text = shopping.export_to_text(groceries.id)

    assert text == "\n".join([
        "Shopping List",
        "=" * 40,
        "",
        "## Produce",
        "[ ] 2 piece apples",
        "",
        "## Seafood",
        "[ ] 1 lb salmon",
        "",
        "## Dairy",
        "[x] eggs",
        "",
        "## Pantry",
        "[ ] 3 cup flour",
        "",
    ])


def test_delete_list(shopping, groceries):
    shopping.delete_list(groceries.id)
    assert shopping.get_list(groceries.id) is None

    with pytest.raises(NotFound):
        shopping.delete_list(groceries.id)
    with pytest.raises(NotFound):
        shopping.export_to_text(groceries.id)
