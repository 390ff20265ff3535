"""SQLAlchemy ORM models for the Sous Chef record store.

Tables:
- recipes: Mutable head (pointer to the current version plus metadata)
- recipe_versions: Immutable content snapshots, dense 1..N per recipe
- shopping_lists / shopping_list_items: Consolidated lists and their items
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    Integer,
    Boolean,
    Float,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import false
from sqlalchemy.types import JSON

from .db import Base
from .schemas import generate_uuid


class RecipeHeadRow(Base):
    """Recipe head. Content lives in recipe_versions."""
    __tablename__ = "recipes"
    __table_args__ = (
        Index("ix_recipes_parent_recipe_id", "parent_recipe_id"),
        Index("ix_recipes_archived_at", "archived_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    current_version: Mapped[int] = mapped_column(Integer, nullable=False)

    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    folder_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # Plain column: lineage must survive even if a parent row is gone
    parent_recipe_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class RecipeVersionRow(Base):
    """Immutable version of a recipe."""
    __tablename__ = "recipe_versions"
    __table_args__ = (
        UniqueConstraint("recipe_id", "version", name="uq_recipe_versions_recipe_version"),
        Index("ix_recipe_versions_recipe_id", "recipe_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    # No FK: the first version is written in the same batch as its head
    recipe_id: Mapped[str] = mapped_column(String(36), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ingredients_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    instructions_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    prep_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cook_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    servings: Mapped[int] = mapped_column(Integer, nullable=False)
    source_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ShoppingListRow(Base):
    """Consolidated shopping list."""
    __tablename__ = "shopping_lists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    source_recipe_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    items: Mapped[list["ShoppingItemRow"]] = relationship(
        "ShoppingItemRow", back_populates="shopping_list", cascade="all, delete-orphan",
        order_by="ShoppingItemRow.position"
    )


class ShoppingItemRow(Base):
    """Item in a shopping list."""
    __tablename__ = "shopping_list_items"
    __table_args__ = (
        Index("ix_shopping_list_items_list_id", "list_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    list_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shopping_lists.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False, default="other")
    checked: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    recipe_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    shopping_list: Mapped["ShoppingListRow"] = relationship("ShoppingListRow", back_populates="items")
