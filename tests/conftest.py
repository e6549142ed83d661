from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

import pytest

from recipebox import create_app
from recipebox.config import Settings
from recipebox.errors import CacheError, UserAlreadyExists
from recipebox.models import Recipe, RecipeInput, User


class InMemoryRecipeStorage:
    """Simple storage backend used for tests."""

    def __init__(self) -> None:
        self._recipes: Dict[str, Recipe] = {}
        self.reads = 0

    def list_recipes(self) -> List[Recipe]:
        self.reads += 1
        return sorted(
            self._recipes.values(),
            key=lambda recipe: recipe.published_at or datetime.min,
            reverse=True,
        )

    def get_recipe(self, recipe_id: str) -> Recipe:
        self.reads += 1
        try:
            return self._recipes[recipe_id]
        except KeyError:
            raise KeyError(recipe_id) from None

    def add_recipe(self, recipe: Recipe) -> Recipe:
        self._recipes[recipe.id] = recipe
        return recipe

    def update_recipe(self, recipe_id: str, changes: RecipeInput) -> Recipe:
        current = self._recipes[recipe_id]
        updated = changes.to_recipe(recipe_id, current.published_at)
        self._recipes[recipe_id] = updated
        return updated

    def delete_recipe(self, recipe_id: str) -> None:
        del self._recipes[recipe_id]

    def search_recipes(self, tag: str) -> List[Recipe]:
        return [recipe for recipe in self._recipes.values() if tag in recipe.tags]


class InMemoryUserStorage:
    def __init__(self) -> None:
        self._users: Dict[str, User] = {}

    def get_user(self, username: str) -> User:
        return self._users[username]

    def add_user(self, user: User) -> None:
        if user.username in self._users:
            raise UserAlreadyExists("user already exists")
        self._users[user.username] = user


class InMemoryCache:
    """Key-value cache without expiry.

    Operations named in ``failing`` always raise; those in ``fail_once`` raise
    on their next call only.
    """

    def __init__(self) -> None:
        self.values: Dict[str, str] = {}
        self.ttls: Dict[str, timedelta] = {}
        self.failing: Set[str] = set()
        self.fail_once: Set[str] = set()
        self.deletes = 0

    def _check(self, operation: str) -> None:
        if operation in self.fail_once:
            self.fail_once.discard(operation)
            raise CacheError("cache unavailable")
        if operation in self.failing:
            raise CacheError("cache unavailable")

    def get(self, key: str) -> Optional[str]:
        self._check("get")
        return self.values.get(key)

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        self._check("set")
        self.values[key] = value
        self.ttls[key] = ttl

    def delete(self, *keys: str) -> None:
        self.deletes += 1
        self._check("delete")
        for key in keys:
            self.values.pop(key, None)
            self.ttls.pop(key, None)


@pytest.fixture
def storage() -> InMemoryRecipeStorage:
    return InMemoryRecipeStorage()


@pytest.fixture
def users() -> InMemoryUserStorage:
    return InMemoryUserStorage()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def make_app(storage, users, cache):
    def _make(**overrides):
        settings = Settings(secret_key="test-secret", log_level="DEBUG", **overrides)
        app = create_app(settings, storage=storage, users=users, cache=cache)
        app.config.update(TESTING=True)
        return app

    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()
