import itertools
from typing import Any, Mapping
import uuid

import pytest
from starlette.requests import Request
from starlette.testclient import TestClient

from app.app import app
from domain.errors import AuthError, RecipeNotFound
from domain.models import Recipe, User
from domain.repository import Order, Session


RECIPE_TEXT = """Here is a recipe you might enjoy:
{
  "title": "Chicken Fried Rice",
  "description": "Quick weeknight fried rice.",
  "ingredients": ["2 cups cooked rice", "1 chicken breast", "2 eggs"],
  "instructions": ["Dice the chicken.", "Fry the chicken.", "Add rice and eggs."],
  "prep_time": 10,
  "cook_time": 15,
  "servings": 2,
  "difficulty": "easy",
  "cuisine": "Chinese"
}
Enjoy!"""


class FakeLLM:
    def __init__(self, text: str = RECIPE_TEXT, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text


class FakeBackend:
    def __init__(self, user: User | None = None) -> None:
        self.user = user
        self.rows: dict[str, dict[str, Any]] = {}
        self._clock = itertools.count()

    async def current_user(self) -> User | None:
        return self.user

    async def query_recipes(
        self,
        filter: Mapping[str, Any] | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> list[Recipe]:
        rows = [
            r
            for r in self.rows.values()
            if all(r.get(k) == v for k, v in (filter or {}).items())
        ]
        if order is not None:
            column, ascending = order
            rows.sort(key=lambda r: r[column], reverse=not ascending)
        if limit is not None:
            rows = rows[:limit]
        return [Recipe.from_row(r) for r in rows]

    async def insert_recipe(self, record: Mapping[str, Any]) -> Recipe:
        id = uuid.uuid4().hex
        row = {**record, "id": id, "created_at": f"2026-01-01T00:00:{next(self._clock):02d}"}
        self.rows[id] = row
        return Recipe.from_row(row)

    async def update_recipe(self, id: str, record: Mapping[str, Any]) -> Recipe:
        if id not in self.rows:
            raise RecipeNotFound(id)
        self.rows[id].update(record)
        return Recipe.from_row(self.rows[id])

    async def delete_recipe(self, id: str) -> None:
        self.rows.pop(id, None)


class FakeAuth:
    def __init__(self) -> None:
        self.signed_up: list[dict[str, Any]] = []
        self.signed_out: list[str] = []

    async def sign_in(self, *, email: str, password: str) -> Session:
        if password != "secret":
            raise AuthError("Invalid login credentials", status_code=400)
        return Session(access_token="token-123")

    async def sign_up(self, **kwargs: Any) -> None:
        self.signed_up.append(kwargs)

    async def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)


@pytest.fixture
def user() -> User:
    return User(id="user-1", email="cook@example.com", username="cook")


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def backend(user: User) -> FakeBackend:
    return FakeBackend(user)


@pytest.fixture
def auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
def client(
    monkeypatch: pytest.MonkeyPatch,
    llm: FakeLLM,
    backend: FakeBackend,
    auth: FakeAuth,
) -> TestClient:
    async def backend_factory(request: Request) -> FakeBackend:
        return backend

    monkeypatch.setattr(app.state, "llm", llm)
    # Set in the lifespan, which TestClient only runs as a context manager.
    monkeypatch.setattr(app.state, "auth", auth, raising=False)
    monkeypatch.setattr(app.state, "backend_factory", backend_factory)
    return TestClient(app)


def recipe_row(**overrides: Any) -> dict[str, Any]:
    row = {
        "user_id": "user-1",
        "title": "Tomato Soup",
        "description": "Warming.",
        "ingredients": ["6 tomatoes", "1 onion"],
        "instructions": ["Chop.", "Simmer."],
        "prep_time": 10,
        "cook_time": 30,
        "servings": 4,
        "difficulty": "easy",
        "cuisine": "Italian",
        "image_url": None,
        "is_ai_generated": False,
    }
    row.update(overrides)
    return row
