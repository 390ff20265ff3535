"""
Versioned Recipe Store.

A recipe is a mutable head pointing at one of a dense sequence of immutable
versions (1..N). Every content change appends a version; restore appends a
copy of an older one; nothing is ever rewritten in place. Duplicates link
back to their source through `parent_recipe_id`, which is what heritage walks.
"""

import logging
import math
from typing import Optional

from ..errors import (
    FieldError,
    IntegrityError,
    NotFound,
    OutOfRange,
    ValidationError,
)
from ..infra.record_store import AppendVersion, PutHead, RecordStore
from ..schemas import (
    INGREDIENT_CATEGORIES,
    Ingredient,
    Instruction,
    Recipe,
    RecipeContent,
    RecipeHeadRecord,
    RecipeHeritage,
    RecipeInput,
    RecipeVersion,
    generate_uuid,
    utcnow,
)
from .unit_conversion import resolve_unit

logger = logging.getLogger("souschef.recipes")


def compose_recipe(head: RecipeHeadRecord, version: RecipeVersion) -> Recipe:
    """Head metadata + the content of `version`.

    `current_version` always comes from the head, even when `version` is an
    older snapshot.
    """
    return Recipe(
        **version.content().model_dump(),
        **head.model_dump(),
    )


class RecipeService:
    def __init__(self, store: RecordStore, copy_title_suffix: str = " (Copy)"):
        self.store = store
        self.copy_title_suffix = copy_title_suffix

    # --- Validation ---

    def _validate(self, data: RecipeInput, check_parent: bool = True) -> None:
        errors: list[FieldError] = []

        if not data.title or not data.title.strip():
            errors.append(FieldError("title", "must not be empty"))
        if data.servings < 1:
            errors.append(FieldError("servings", "must be at least 1"))
        if data.prep_time_minutes < 0:
            errors.append(FieldError("prep_time_minutes", "must not be negative"))
        if data.cook_time_minutes < 0:
            errors.append(FieldError("cook_time_minutes", "must not be negative"))

        for i, ing in enumerate(data.ingredients):
            prefix = f"ingredients[{i}]"
            if not ing.name or not ing.name.strip():
                errors.append(FieldError(f"{prefix}.name", "must not be empty"))
            if not (ing.quantity > 0 and math.isfinite(ing.quantity)):
                errors.append(FieldError(f"{prefix}.quantity", "must be a positive number"))
            if resolve_unit(ing.unit) is None:
                errors.append(FieldError(f"{prefix}.unit", f"unknown unit '{ing.unit}'"))
            if ing.category is not None and ing.category not in INGREDIENT_CATEGORIES:
                errors.append(FieldError(f"{prefix}.category", f"unknown category '{ing.category}'"))

        for i, step in enumerate(data.instructions):
            prefix = f"instructions[{i}]"
            if not step.text or not step.text.strip():
                errors.append(FieldError(f"{prefix}.text", "must not be empty"))
            if step.duration_minutes is not None and step.duration_minutes < 0:
                errors.append(FieldError(f"{prefix}.duration_minutes", "must not be negative"))

        if check_parent and data.parent_recipe_id is not None:
            if self.store.read_recipe_head(data.parent_recipe_id) is None:
                errors.append(FieldError("parent_recipe_id", "unknown recipe"))

        if errors:
            raise ValidationError(errors)

    @staticmethod
    def _build_content(data: RecipeInput) -> RecipeContent:
        ingredients = tuple(
            Ingredient(
                id=generate_uuid(),
                name=ing.name.strip(),
                quantity=ing.quantity,
                unit=resolve_unit(ing.unit),
                notes=ing.notes,
                category=ing.category,
            )
            for ing in data.ingredients
        )
        instructions = tuple(
            Instruction(
                id=generate_uuid(),
                step=n,
                text=step.text.strip(),
                duration_minutes=step.duration_minutes,
                notes=step.notes,
            )
            for n, step in enumerate(data.instructions, start=1)
        )
        return RecipeContent(
            title=data.title.strip(),
            description=data.description,
            ingredients=ingredients,
            instructions=instructions,
            prep_time_minutes=data.prep_time_minutes,
            cook_time_minutes=data.cook_time_minutes,
            servings=data.servings,
            source_url=data.source_url,
        )

    # --- Internal reads ---

    def _require_head(self, recipe_id: str) -> RecipeHeadRecord:
        head = self.store.read_recipe_head(recipe_id)
        if head is None:
            raise NotFound(f"Recipe {recipe_id} not found")
        return head

    def _load(self, head: RecipeHeadRecord) -> Recipe:
        version = self.store.read_version(head.id, head.current_version)
        if version is None:
            logger.error(f"Recipe {head.id} points at missing version {head.current_version}")
            raise IntegrityError(
                f"Recipe {head.id} points at missing version {head.current_version}"
            )
        return compose_recipe(head, version)

    def _append(self, head: RecipeHeadRecord, content: RecipeContent) -> Recipe:
        """Write `content` as the next version of `head` in one batch."""
        result = self.store.write_atomic([
            AppendVersion(
                recipe_id=head.id,
                content=content,
                version_id=generate_uuid(),
                created_at=head.updated_at,
            ),
            PutHead(head),
        ])
        number = result.versions[head.id]
        return Recipe(
            **content.model_dump(),
            **head.model_dump(exclude={"current_version"}),
            current_version=number,
        )

    # --- Operations ---

    def create_recipe(self, data: RecipeInput) -> Recipe:
        self._validate(data)
        now = utcnow()
        head = RecipeHeadRecord(
            id=generate_uuid(),
            current_version=0,
            tags=tuple(data.tags or ()),
            folder_id=data.folder_id,
            parent_recipe_id=data.parent_recipe_id,
            created_at=now,
            updated_at=now,
        )
        recipe = self._append(head, self._build_content(data))
        logger.info(f"Created recipe {recipe.id} '{recipe.title}'")
        return recipe

    def update_recipe(self, recipe_id: str, data: RecipeInput) -> Recipe:
        """Append the edited content as a new version.

        Archived recipes stay editable. Tags and folder are only replaced when
        the input carries them; lineage never changes on edit.
        """
        head = self._require_head(recipe_id)
        self._validate(data, check_parent=False)

        changes = {"updated_at": utcnow()}
        if data.tags is not None:
            changes["tags"] = tuple(data.tags)
        if data.folder_id is not None:
            changes["folder_id"] = data.folder_id

        recipe = self._append(head.model_copy(update=changes), self._build_content(data))
        logger.info(f"Updated recipe {recipe_id} to version {recipe.current_version}")
        return recipe

    def get_recipe(self, recipe_id: str, version: Optional[int] = None) -> Optional[Recipe]:
        """
        Fetch a recipe, optionally with the content of an older version.

        Returns None for an unknown id or an unknown version. With `version`
        set, `current_version` still reports the latest version.
        """
        head = self.store.read_recipe_head(recipe_id)
        if head is None:
            return None
        if version is None:
            return self._load(head)

        snapshot = self.store.read_version(recipe_id, version)
        if snapshot is None:
            return None
        return compose_recipe(head, snapshot)

    def get_version_history(self, recipe_id: str) -> list[RecipeVersion]:
        head = self._require_head(recipe_id)
        versions = self.store.query_versions_for_recipe(recipe_id)

        numbers = [v.version for v in versions]
        if numbers != list(range(1, head.current_version + 1)):
            logger.error(f"Recipe {recipe_id} has broken version sequence {numbers}")
            raise IntegrityError(
                f"Recipe {recipe_id} versions {numbers} are not dense up to {head.current_version}"
            )
        return versions

    def restore_version(self, recipe_id: str, version: int) -> Recipe:
        """Append a copy of `version` as the newest version. History is never rewound."""
        head = self._require_head(recipe_id)
        if not 1 <= version <= head.current_version:
            raise OutOfRange(
                f"Version {version} is outside 1..{head.current_version} for recipe {recipe_id}"
            )

        snapshot = self.store.read_version(recipe_id, version)
        if snapshot is None:
            logger.error(f"Recipe {recipe_id} is missing version {version}")
            raise IntegrityError(f"Recipe {recipe_id} is missing version {version}")

        recipe = self._append(head.model_copy(update={"updated_at": utcnow()}), snapshot.content())
        logger.info(f"Restored recipe {recipe_id} v{version} as v{recipe.current_version}")
        return recipe

    def duplicate_recipe(self, recipe_id: str) -> Recipe:
        source = self.get_recipe(recipe_id)
        if source is None:
            raise NotFound(f"Recipe {recipe_id} not found")

        content = RecipeContent(
            **{
                **source.model_dump(include=set(RecipeContent.model_fields)),
                "title": f"{source.title}{self.copy_title_suffix}",
                "ingredients": tuple(
                    ing.model_copy(update={"id": generate_uuid()}) for ing in source.ingredients
                ),
                "instructions": tuple(
                    step.model_copy(update={"id": generate_uuid()}) for step in source.instructions
                ),
            }
        )
        now = utcnow()
        head = RecipeHeadRecord(
            id=generate_uuid(),
            current_version=0,
            tags=source.tags,
            folder_id=source.folder_id,
            parent_recipe_id=source.id,
            created_at=now,
            updated_at=now,
        )
        copy = self._append(head, content)
        logger.info(f"Duplicated recipe {recipe_id} as {copy.id}")
        return copy

    def get_recipe_heritage(self, recipe_id: str) -> RecipeHeritage:
        recipe = self.get_recipe(recipe_id)
        if recipe is None:
            raise NotFound(f"Recipe {recipe_id} not found")

        ancestors: list[Recipe] = []
        visited = {recipe.id}
        parent_id = recipe.parent_recipe_id
        while parent_id is not None:
            if parent_id in visited:
                logger.error(f"Heritage cycle through {parent_id} starting at {recipe_id}")
                raise IntegrityError(f"Heritage cycle detected at recipe {parent_id}")
            visited.add(parent_id)

            head = self.store.read_recipe_head(parent_id)
            if head is None:
                logger.error(f"Recipe {recipe_id} has dangling ancestor {parent_id}")
                raise IntegrityError(f"Ancestor {parent_id} of recipe {recipe_id} does not exist")
            ancestor = self._load(head)
            ancestors.append(ancestor)
            parent_id = ancestor.parent_recipe_id

        children = [self._load(h) for h in self.store.query_children(recipe_id)]
        return RecipeHeritage(
            recipe=recipe,
            parent=ancestors[0] if ancestors else None,
            ancestors=ancestors,
            children=children,
        )

    def archive_recipe(self, recipe_id: str) -> None:
        head = self._require_head(recipe_id)
        if head.archived_at is not None:
            return
        self.store.write_atomic([PutHead(head.model_copy(update={"archived_at": utcnow()}))])
        logger.info(f"Archived recipe {recipe_id}")

    def unarchive_recipe(self, recipe_id: str) -> None:
        head = self._require_head(recipe_id)
        if head.archived_at is None:
            return
        self.store.write_atomic([PutHead(head.model_copy(update={"archived_at": None}))])
        logger.info(f"Unarchived recipe {recipe_id}")

    def list_recipes(self, include_archived: bool = False) -> list[Recipe]:
        return [self._load(h) for h in self.store.list_recipe_heads(include_archived)]

    def exists(self, recipe_id: str) -> bool:
        return self.store.read_recipe_head(recipe_id) is not None

    def is_archived(self, recipe_id: str) -> bool:
        head = self.store.read_recipe_head(recipe_id)
        return head is not None and head.archived_at is not None
