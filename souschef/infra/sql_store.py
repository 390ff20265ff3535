"""SQLAlchemy-backed record store.

Each `write_atomic` batch runs inside one `session.begin()` transaction; the
`(recipe_id, version)` unique constraint backs up the store-side numbering.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import StoreError
from ..models import RecipeHeadRow, RecipeVersionRow, ShoppingItemRow, ShoppingListRow
from ..schemas import (
    Ingredient,
    Instruction,
    RecipeHeadRecord,
    RecipeVersion,
    ShoppingItem,
    ShoppingList,
)
from .record_store import (
    RecordStore,
    ShoppingListStore,
    WriteOp,
    WriteResult,
    batch_recipe_ids,
    resolve_batch,
)

logger = logging.getLogger("souschef.store")


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we write is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@contextmanager
def _store_errors(action: str):
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Could not {action}: {e}")
        raise StoreError(f"Could not {action}: {e}") from e


def _head_from_row(row: RecipeHeadRow) -> RecipeHeadRecord:
    return RecipeHeadRecord(
        id=row.id,
        current_version=row.current_version,
        tags=tuple(row.tags or ()),
        rating=row.rating,
        folder_id=row.folder_id,
        parent_recipe_id=row.parent_recipe_id,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        archived_at=_aware(row.archived_at),
    )


def _version_from_row(row: RecipeVersionRow) -> RecipeVersion:
    return RecipeVersion(
        id=row.id,
        recipe_id=row.recipe_id,
        version=row.version,
        title=row.title,
        description=row.description,
        ingredients=tuple(Ingredient(**data) for data in row.ingredients_json),
        instructions=tuple(Instruction(**data) for data in row.instructions_json),
        prep_time_minutes=row.prep_time_minutes,
        cook_time_minutes=row.cook_time_minutes,
        servings=row.servings,
        source_url=row.source_url,
        created_at=_aware(row.created_at),
    )


def _item_from_row(row: ShoppingItemRow) -> ShoppingItem:
    return ShoppingItem(
        id=row.id,
        list_id=row.list_id,
        name=row.name,
        quantity=row.quantity,
        unit=row.unit,
        category=row.category,
        checked=row.checked,
        recipe_ids=tuple(row.recipe_ids or ()),
    )


def _item_row(item: ShoppingItem, position: int) -> ShoppingItemRow:
    return ShoppingItemRow(
        id=item.id,
        list_id=item.list_id,
        name=item.name,
        quantity=item.quantity,
        unit=item.unit.value,
        category=item.category,
        checked=item.checked,
        recipe_ids=list(item.recipe_ids),
        position=position,
    )


class SqlRecordStore(RecordStore, ShoppingListStore):
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    # --- Recipes ---

    def read_recipe_head(self, recipe_id: str) -> Optional[RecipeHeadRecord]:
        with _store_errors(f"read recipe {recipe_id}"), self._session() as session:
            row = session.get(RecipeHeadRow, recipe_id)
            return _head_from_row(row) if row else None

    def read_version(self, recipe_id: str, version: int) -> Optional[RecipeVersion]:
        with _store_errors(f"read version {version} of {recipe_id}"), self._session() as session:
            row = session.scalars(
                select(RecipeVersionRow).where(
                    RecipeVersionRow.recipe_id == recipe_id,
                    RecipeVersionRow.version == version,
                )
            ).first()
            return _version_from_row(row) if row else None

    def query_versions_for_recipe(self, recipe_id: str) -> list[RecipeVersion]:
        with _store_errors(f"read versions of {recipe_id}"), self._session() as session:
            rows = session.scalars(
                select(RecipeVersionRow)
                .where(RecipeVersionRow.recipe_id == recipe_id)
                .order_by(RecipeVersionRow.version)
            ).all()
            return [_version_from_row(r) for r in rows]

    def query_children(self, parent_id: str) -> list[RecipeHeadRecord]:
        with _store_errors(f"read children of {parent_id}"), self._session() as session:
            rows = session.scalars(
                select(RecipeHeadRow)
                .where(RecipeHeadRow.parent_recipe_id == parent_id)
                .order_by(RecipeHeadRow.created_at, RecipeHeadRow.id)
            ).all()
            return [_head_from_row(r) for r in rows]

    def list_recipe_heads(self, include_archived: bool = False) -> list[RecipeHeadRecord]:
        stmt = select(RecipeHeadRow).order_by(RecipeHeadRow.created_at, RecipeHeadRow.id)
        if not include_archived:
            stmt = stmt.where(RecipeHeadRow.archived_at.is_(None))
        with _store_errors("list recipes"), self._session() as session:
            return [_head_from_row(r) for r in session.scalars(stmt).all()]

    def write_atomic(self, ops: Sequence[WriteOp]) -> WriteResult:
        session = self._session()
        try:
            with session.begin():
                recipe_ids = batch_recipe_ids(ops)
                latest = {}
                if recipe_ids:
                    latest = dict(session.execute(
                        select(RecipeVersionRow.recipe_id, func.max(RecipeVersionRow.version))
                        .where(RecipeVersionRow.recipe_id.in_(recipe_ids))
                        .group_by(RecipeVersionRow.recipe_id)
                    ).all())

                versions, heads, assigned = resolve_batch(ops, latest)

                for v in versions:
                    session.add(RecipeVersionRow(
                        id=v.id,
                        recipe_id=v.recipe_id,
                        version=v.version,
                        title=v.title,
                        description=v.description,
                        ingredients_json=[i.model_dump(mode="json") for i in v.ingredients],
                        instructions_json=[i.model_dump(mode="json") for i in v.instructions],
                        prep_time_minutes=v.prep_time_minutes,
                        cook_time_minutes=v.cook_time_minutes,
                        servings=v.servings,
                        source_url=v.source_url,
                        created_at=v.created_at,
                    ))

                for head in heads:
                    session.merge(RecipeHeadRow(
                        id=head.id,
                        current_version=head.current_version,
                        tags=list(head.tags),
                        rating=head.rating,
                        folder_id=head.folder_id,
                        parent_recipe_id=head.parent_recipe_id,
                        created_at=head.created_at,
                        updated_at=head.updated_at,
                        archived_at=head.archived_at,
                    ))
        except SQLAlchemyError as e:
            logger.error(f"Write batch rolled back: {e}")
            raise StoreError(f"Write batch rejected: {e}") from e
        finally:
            session.close()

        return WriteResult(versions=assigned)

    # --- Shopping lists ---

    def save_shopping_list(self, shopping_list: ShoppingList) -> None:
        with _store_errors(f"save shopping list {shopping_list.id}"), self._session() as session, session.begin():
            existing = session.get(ShoppingListRow, shopping_list.id)
            if existing is not None:
                session.delete(existing)
                session.flush()
            row = ShoppingListRow(
                id=shopping_list.id,
                source_recipe_ids=list(shopping_list.source_recipe_ids),
                created_at=shopping_list.created_at,
            )
            row.items = [_item_row(item, pos) for pos, item in enumerate(shopping_list.items)]
            session.add(row)

    def read_shopping_list(self, list_id: str) -> Optional[ShoppingList]:
        with _store_errors(f"read shopping list {list_id}"), self._session() as session:
            row = session.get(ShoppingListRow, list_id)
            if row is None:
                return None
            return ShoppingList(
                id=row.id,
                items=tuple(_item_from_row(i) for i in row.items),
                source_recipe_ids=tuple(row.source_recipe_ids or ()),
                created_at=_aware(row.created_at),
            )

    def set_item_checked(self, list_id: str, item_id: str, checked: bool) -> Optional[ShoppingItem]:
        with _store_errors(f"update item {item_id}"), self._session() as session, session.begin():
            row = session.get(ShoppingItemRow, item_id)
            if row is None or row.list_id != list_id:
                return None
            row.checked = checked
            session.flush()
            return _item_from_row(row)

    def add_shopping_item(self, item: ShoppingItem) -> None:
        with _store_errors(f"add item to {item.list_id}"), self._session() as session, session.begin():
            if session.get(ShoppingListRow, item.list_id) is None:
                raise StoreError(f"Shopping list {item.list_id} does not exist")
            position = session.scalar(
                select(func.coalesce(func.max(ShoppingItemRow.position) + 1, 0))
                .where(ShoppingItemRow.list_id == item.list_id)
            )
            session.add(_item_row(item, position))

    def delete_shopping_list(self, list_id: str) -> bool:
        with _store_errors(f"delete shopping list {list_id}"), self._session() as session, session.begin():
            row = session.get(ShoppingListRow, list_id)
            if row is None:
                return False
            session.delete(row)
            return True
