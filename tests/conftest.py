import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from souschef.main import app
from souschef.db import Base
from souschef.deps import get_record_store
from souschef.infra.record_store import InMemoryRecordStore
from souschef.infra.sql_store import SqlRecordStore
from souschef.schemas import IngredientInput, InstructionInput, RecipeInput
from souschef.services.recipe_versions import RecipeService
from souschef.services.shopping import ShoppingService

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

# Note: check_same_thread is needed for SQLite; StaticPool keeps the single
# in-memory database alive across sessions.
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def sql_store():
    """SQL-backed store; tables created before each test, dropped after."""
    Base.metadata.create_all(bind=engine)
    yield SqlRecordStore(TestingSessionLocal)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def memory_store():
    return InMemoryRecordStore()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Every store-level test runs against both backends."""
    if request.param == "memory":
        return request.getfixturevalue("memory_store")
    return request.getfixturevalue("sql_store")


@pytest.fixture
def recipes(store):
    return RecipeService(store)


@pytest.fixture
def shopping(recipes, store):
    return ShoppingService(recipes, store)


@pytest.fixture
def client(store):
    """Test client with store override."""
    app.dependency_overrides[get_record_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_recipe_input():
    """Factory for RecipeInput.

    Ingredients are (name, quantity, unit, category) tuples.
    """
    def _make(
        title="Pancakes",
        servings=4,
        ingredients=None,
        instructions=None,
        **kwargs,
    ):
        if ingredients is None:
            ingredients = [
                ("flour", 2, "cup", "pantry"),
                ("milk", 1.5, "cup", "dairy"),
                ("eggs", 2, "piece", None),
            ]
        if instructions is None:
            instructions = ["Whisk everything together", "Cook on a hot griddle"]

        return RecipeInput(
            title=title,
            servings=servings,
            ingredients=[
                IngredientInput(name=name, quantity=qty, unit=unit, category=category)
                for name, qty, unit, category in ingredients
            ],
            instructions=[InstructionInput(text=text) for text in instructions],
            **kwargs,
        )

    return _make
