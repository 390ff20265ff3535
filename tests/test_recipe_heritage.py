"""Tests for duplication and heritage traversal."""

import pytest

from souschef.errors import IntegrityError, NotFound
from souschef.services.recipe_versions import RecipeService


def test_duplicate_copies_current_version(recipes, make_recipe_input):
    source = recipes.create_recipe(make_recipe_input(tags=["brunch"], folder_id="folder-1"))
    recipes.update_recipe(source.id, make_recipe_input(title="Buttermilk Pancakes", servings=6))

    copy = recipes.duplicate_recipe(source.id)

    assert copy.id != source.id
    assert copy.title == "Buttermilk Pancakes (Copy)"
    assert copy.servings == 6
    assert copy.current_version == 1
    assert copy.parent_recipe_id == source.id
    assert copy.tags == ("brunch",)
    assert copy.folder_id == "folder-1"

    source_now = recipes.get_recipe(source.id)
    assert [(i.name, i.quantity, i.unit) for i in copy.ingredients] == [
        (i.name, i.quantity, i.unit) for i in source_now.ingredients
    ]
    assert {i.id for i in copy.ingredients}.isdisjoint({i.id for i in source_now.ingredients})
    assert [s.text for s in copy.instructions] == [s.text for s in source_now.instructions]

    # Source is untouched
    assert source_now.current_version == 2
    assert source_now.title == "Buttermilk Pancakes"


def test_duplicate_unknown_recipe(recipes):
    with pytest.raises(NotFound):
        recipes.duplicate_recipe("missing")


def test_duplicate_uses_configured_suffix(store, make_recipe_input):
    recipes = RecipeService(store, copy_title_suffix=" - Remix")
    source = recipes.create_recipe(make_recipe_input(title="Chili"))
    assert recipes.duplicate_recipe(source.id).title == "Chili - Remix"


def test_heritage_of_duplication_chain(recipes, make_recipe_input):
    """Three successive duplications: A -> A (Copy) -> ... -> D."""
    a = recipes.create_recipe(make_recipe_input(title="Grandma's Pie"))
    b = recipes.duplicate_recipe(a.id)
    c = recipes.duplicate_recipe(b.id)
    d = recipes.duplicate_recipe(c.id)

    assert d.title == "Grandma's Pie (Copy) (Copy) (Copy)"

    heritage = recipes.get_recipe_heritage(d.id)
    assert heritage.recipe.id == d.id
    assert heritage.parent.id == c.id
    assert [r.id for r in heritage.ancestors] == [c.id, b.id, a.id]
    assert heritage.children == []

    root = recipes.get_recipe_heritage(a.id)
    assert root.parent is None
    assert root.ancestors == []
    assert [r.id for r in root.children] == [b.id]


def test_heritage_lists_all_children(recipes, make_recipe_input):
    a = recipes.create_recipe(make_recipe_input(title="Base"))
    first = recipes.duplicate_recipe(a.id)
    second = recipes.duplicate_recipe(a.id)
    recipes.archive_recipe(second.id)

    heritage = recipes.get_recipe_heritage(a.id)
    assert {r.id for r in heritage.children} == {first.id, second.id}


def test_heritage_follows_explicit_parent(recipes, make_recipe_input):
    a = recipes.create_recipe(make_recipe_input(title="Base"))
    variant = recipes.create_recipe(make_recipe_input(title="Spicy", parent_recipe_id=a.id))

    assert recipes.get_recipe_heritage(variant.id).parent.id == a.id


def test_heritage_unknown_recipe(recipes):
    with pytest.raises(NotFound):
        recipes.get_recipe_heritage("missing")


def test_heritage_cycle_is_integrity_error(memory_store, make_recipe_input):
    recipes = RecipeService(memory_store)
    a = recipes.create_recipe(make_recipe_input(title="A"))
    b = recipes.duplicate_recipe(a.id)

    # Corrupt the store: A now claims B as its parent
    head = memory_store._heads[a.id]
    memory_store._heads[a.id] = head.model_copy(update={"parent_recipe_id": b.id})

    with pytest.raises(IntegrityError):
        recipes.get_recipe_heritage(b.id)


def test_heritage_dangling_parent_is_integrity_error(memory_store, make_recipe_input):
    recipes = RecipeService(memory_store)
    a = recipes.create_recipe(make_recipe_input(title="A"))

    head = memory_store._heads[a.id]
    memory_store._heads[a.id] = head.model_copy(update={"parent_recipe_id": "vanished"})

    with pytest.raises(IntegrityError):
        recipes.get_recipe_heritage(a.id)
