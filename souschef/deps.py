"""FastAPI dependencies for the Sous Chef API.

Provides:
- The record store selected by `settings.store_backend`
- RecipeService / ShoppingService bound to that store
"""

import logging

from fastapi import Depends

from .db import Base, SessionLocal, get_engine
from .infra.record_store import InMemoryRecordStore
from .infra.sql_store import SqlRecordStore
from .services.recipe_versions import RecipeService
from .services.shopping import ShoppingService
from .settings import settings

logger = logging.getLogger("souschef.store")

_store = None


def build_store(backend: str = None):
    backend = backend or settings.store_backend
    if backend == "memory":
        logger.info("Using in-memory record store")
        return InMemoryRecordStore()

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info(f"Using SQL record store at {engine.url.render_as_string(hide_password=True)}")
    return SqlRecordStore(SessionLocal())


def get_record_store():
    global _store
    if _store is None:
        _store = build_store()
    return _store


def get_recipe_service(store=Depends(get_record_store)) -> RecipeService:
    return RecipeService(store, copy_title_suffix=settings.copy_title_suffix)


def get_shopping_service(
    store=Depends(get_record_store),
    recipes: RecipeService = Depends(get_recipe_service),
) -> ShoppingService:
    return ShoppingService(recipes, store)
