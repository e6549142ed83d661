from __future__ import annotations

from datetime import timedelta
from typing import List, Optional, Protocol

from .models import Recipe, RecipeInput, User


class RecipeRepository(Protocol):
    """Protocol describing the document store operations used for recipes."""

    def list_recipes(self) -> List[Recipe]:
        """Return all stored recipes ordered newest first."""

    def get_recipe(self, recipe_id: str) -> Recipe:
        """Return a single recipe or raise :class:`KeyError` if missing."""

    def add_recipe(self, recipe: Recipe) -> Recipe:
        """Persist a new recipe whose id and timestamp are already assigned."""

    def update_recipe(self, recipe_id: str, changes: RecipeInput) -> Recipe:
        """Overwrite the editable fields of an existing recipe.

        Never creates a document: raises :class:`KeyError` when ``recipe_id``
        does not exist. Returns the stored representation after the update.
        """

    def delete_recipe(self, recipe_id: str) -> None:
        """Remove a recipe or raise :class:`KeyError` if missing."""

    def search_recipes(self, tag: str) -> List[Recipe]:
        """Return every recipe carrying ``tag``, possibly none."""


class UserRepository(Protocol):
    def get_user(self, username: str) -> User:
        """Return a user or raise :class:`KeyError` if missing."""

    def add_user(self, user: User) -> None:
        """Insert a user or raise :class:`~recipebox.errors.UserAlreadyExists`."""


class KeyValueCache(Protocol):
    """A string key-value store with per-key expiry.

    Implementations raise :class:`~recipebox.errors.CacheError` when the
    backend is unreachable; ``get`` returns ``None`` only for a real miss.
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        ...

    def delete(self, *keys: str) -> None:
        ...


__all__ = ["KeyValueCache", "RecipeRepository", "UserRepository"]
