"""Record store contract and the in-process implementation.

The engine never touches storage directly. It reads heads and versions one
at a time and hands every multi-record change to `write_atomic` as a single
batch of ops, which the store applies all-or-nothing. Version numbers are
assigned here, at write time, so two edits racing on the same head can never
produce the same number.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence, Union

from ..errors import StoreError
from ..schemas import (
    RecipeContent,
    RecipeHeadRecord,
    RecipeVersion,
    ShoppingItem,
    ShoppingList,
)

logger = logging.getLogger("souschef.store")


# --- Write ops ---

@dataclass(frozen=True)
class AppendVersion:
    """Append `content` as the next version of `recipe_id`."""
    recipe_id: str
    content: RecipeContent
    version_id: str
    created_at: datetime


@dataclass(frozen=True)
class PutHead:
    """Insert or replace a head's metadata.

    The store owns the version pointer: the written head always points at the
    latest version, either the one appended in the same batch or the latest
    already stored. `head.current_version` is ignored.
    """
    head: RecipeHeadRecord


WriteOp = Union[AppendVersion, PutHead]


@dataclass(frozen=True)
class WriteResult:
    # recipe_id -> version number assigned by this batch
    versions: dict[str, int] = field(default_factory=dict)


# --- Contracts ---

class RecordStore(ABC):
    @abstractmethod
    def read_recipe_head(self, recipe_id: str) -> Optional[RecipeHeadRecord]:
        ...

    @abstractmethod
    def read_version(self, recipe_id: str, version: int) -> Optional[RecipeVersion]:
        ...

    @abstractmethod
    def query_versions_for_recipe(self, recipe_id: str) -> list[RecipeVersion]:
        """All versions of a recipe, ascending by version number."""

    @abstractmethod
    def query_children(self, parent_id: str) -> list[RecipeHeadRecord]:
        """Heads whose parent_recipe_id is `parent_id`, oldest first."""

    @abstractmethod
    def list_recipe_heads(self, include_archived: bool = False) -> list[RecipeHeadRecord]:
        ...

    @abstractmethod
    def write_atomic(self, ops: Sequence[WriteOp]) -> WriteResult:
        """Apply every op or none of them. Raises StoreError on rejection."""


class ShoppingListStore(ABC):
    @abstractmethod
    def save_shopping_list(self, shopping_list: ShoppingList) -> None:
        ...

    @abstractmethod
    def read_shopping_list(self, list_id: str) -> Optional[ShoppingList]:
        ...

    @abstractmethod
    def set_item_checked(self, list_id: str, item_id: str, checked: bool) -> Optional[ShoppingItem]:
        """Returns the updated item, or None if the list has no such item."""

    @abstractmethod
    def add_shopping_item(self, item: ShoppingItem) -> None:
        ...

    @abstractmethod
    def delete_shopping_list(self, list_id: str) -> bool:
        ...


def resolve_batch(
    ops: Sequence[WriteOp],
    latest_version: dict[str, int],
) -> tuple[list[RecipeVersion], list[RecipeHeadRecord], dict[str, int]]:
    """Turn a batch of ops into concrete version rows and heads.

    `latest_version` maps recipe ids touched by the batch to their highest
    stored version number (missing means none). Shared by every backend so
    numbering and head pointing behave identically.
    """
    latest = dict(latest_version)
    assigned: dict[str, int] = {}
    versions: list[RecipeVersion] = []
    heads: dict[str, RecipeHeadRecord] = {}

    for op in ops:
        if isinstance(op, AppendVersion):
            number = latest.get(op.recipe_id, 0) + 1
            latest[op.recipe_id] = number
            assigned[op.recipe_id] = number
            versions.append(RecipeVersion(
                id=op.version_id,
                recipe_id=op.recipe_id,
                version=number,
                created_at=op.created_at,
                **op.content.model_dump(),
            ))
        elif isinstance(op, PutHead):
            heads[op.head.id] = op.head
        else:
            raise StoreError(f"Unknown write op: {op!r}")

    resolved_heads = []
    for recipe_id, head in heads.items():
        # A stale head must never move the pointer back past a newer version
        newest = latest.get(recipe_id, 0)
        if newest < 1:
            raise StoreError(f"Head {recipe_id} has no version to point at")
        resolved_heads.append(head.model_copy(update={"current_version": newest}))

    return versions, resolved_heads, assigned


def batch_recipe_ids(ops: Sequence[WriteOp]) -> set[str]:
    ids = set()
    for op in ops:
        if isinstance(op, AppendVersion):
            ids.add(op.recipe_id)
        elif isinstance(op, PutHead):
            ids.add(op.head.id)
    return ids


class InMemoryRecordStore(RecordStore, ShoppingListStore):
    """Dict-backed store. Writes are serialised by a lock and staged on
    copies, so a rejected batch leaves nothing behind."""

    def __init__(self):
        self._lock = threading.RLock()
        self._heads: dict[str, RecipeHeadRecord] = {}
        self._versions: dict[str, list[RecipeVersion]] = {}
        self._lists: dict[str, ShoppingList] = {}

    # --- Recipes ---

    def read_recipe_head(self, recipe_id: str) -> Optional[RecipeHeadRecord]:
        with self._lock:
            return self._heads.get(recipe_id)

    def read_version(self, recipe_id: str, version: int) -> Optional[RecipeVersion]:
        with self._lock:
            for v in self._versions.get(recipe_id, []):
                if v.version == version:
                    return v
            return None

    def query_versions_for_recipe(self, recipe_id: str) -> list[RecipeVersion]:
        with self._lock:
            return sorted(self._versions.get(recipe_id, []), key=lambda v: v.version)

    def query_children(self, parent_id: str) -> list[RecipeHeadRecord]:
        with self._lock:
            children = [h for h in self._heads.values() if h.parent_recipe_id == parent_id]
        return sorted(children, key=lambda h: h.created_at)

    def list_recipe_heads(self, include_archived: bool = False) -> list[RecipeHeadRecord]:
        with self._lock:
            heads = [
                h for h in self._heads.values()
                if include_archived or h.archived_at is None
            ]
        return sorted(heads, key=lambda h: h.created_at)

    def write_atomic(self, ops: Sequence[WriteOp]) -> WriteResult:
        with self._lock:
            latest = {
                recipe_id: max((v.version for v in self._versions.get(recipe_id, [])), default=0)
                for recipe_id in batch_recipe_ids(ops)
            }
            new_versions, new_heads, assigned = resolve_batch(ops, latest)

            staged_versions = {k: list(v) for k, v in self._versions.items()}
            for version in new_versions:
                staged_versions.setdefault(version.recipe_id, []).append(version)
            staged_heads = dict(self._heads)
            for head in new_heads:
                staged_heads[head.id] = head

            self._versions = staged_versions
            self._heads = staged_heads

        logger.debug(f"Applied batch of {len(ops)} ops, versions assigned: {assigned}")
        return WriteResult(versions=assigned)

    # --- Shopping lists ---

    def save_shopping_list(self, shopping_list: ShoppingList) -> None:
        with self._lock:
            self._lists[shopping_list.id] = shopping_list

    def read_shopping_list(self, list_id: str) -> Optional[ShoppingList]:
        with self._lock:
            return self._lists.get(list_id)

    def set_item_checked(self, list_id: str, item_id: str, checked: bool) -> Optional[ShoppingItem]:
        with self._lock:
            shopping_list = self._lists.get(list_id)
            if shopping_list is None:
                return None

            updated = None
            items = []
            for item in shopping_list.items:
                if item.id == item_id:
                    item = item.model_copy(update={"checked": checked})
                    updated = item
                items.append(item)

            if updated is not None:
                self._lists[list_id] = shopping_list.model_copy(update={"items": tuple(items)})
            return updated

    def add_shopping_item(self, item: ShoppingItem) -> None:
        with self._lock:
            shopping_list = self._lists.get(item.list_id)
            if shopping_list is None:
                raise StoreError(f"Shopping list {item.list_id} does not exist")
            self._lists[item.list_id] = shopping_list.model_copy(
                update={"items": shopping_list.items + (item,)}
            )

    def delete_shopping_list(self, list_id: str) -> bool:
        with self._lock:
            return self._lists.pop(list_id, None) is not None
