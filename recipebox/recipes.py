"""Cache-aside access to recipes.

Reads go to the cache first and fall back to the document store, filling the
cache on the way out. Writes go to the document store first; only after the
store has accepted them are the affected cache entries invalidated or
rewritten. The two stores are never updated atomically, so an entry can stay
stale until its TTL runs out if the cache refuses both the write and the
fallback delete.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import List

from loguru import logger

from .errors import CacheError, InvalidRequest
from .models import Recipe, RecipeInput, is_valid_recipe_id, new_recipe_id
from .storage import KeyValueCache, RecipeRepository

LIST_CACHE_KEY = "recipes"
DEFAULT_TTL = timedelta(hours=12)


def recipe_cache_key(recipe_id: str) -> str:
    return f"recipe:{recipe_id}"


def _validate_id(recipe_id: str) -> None:
    if not is_valid_recipe_id(recipe_id):
        raise InvalidRequest(f"{recipe_id} is not a valid id")


class RecipeService:
    def __init__(
        self,
        storage: RecipeRepository,
        cache: KeyValueCache,
        *,
        ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        self._storage = storage
        self._cache = cache
        self._ttl = ttl

    def get(self, recipe_id: str) -> Recipe:
        """Return a recipe, raising :class:`KeyError` when it does not exist."""

        _validate_id(recipe_id)
        key = recipe_cache_key(recipe_id)

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("redis cache hit for {}", key)
            return Recipe.from_dict(json.loads(cached))

        logger.debug("redis cache miss for {}", key)
        recipe = self._storage.get_recipe(recipe_id)
        self._write_through(key, json.dumps(recipe.to_dict()))
        return recipe

    def list(self) -> List[Recipe]:
        cached = self._cache.get(LIST_CACHE_KEY)
        if cached is not None:
            logger.debug("redis cache hit for {}", LIST_CACHE_KEY)
            return [Recipe.from_dict(item) for item in json.loads(cached)]

        logger.debug("redis cache miss for {}", LIST_CACHE_KEY)
        recipes = list(self._storage.list_recipes())
        self._write_through(LIST_CACHE_KEY, json.dumps([recipe.to_dict() for recipe in recipes]))
        return recipes

    def create(self, data: RecipeInput) -> Recipe:
        recipe = data.to_recipe(new_recipe_id(), datetime.now(timezone.utc))
        self._storage.add_recipe(recipe)

        self._invalidate(LIST_CACHE_KEY)
        self._write_through(recipe_cache_key(recipe.id), json.dumps(recipe.to_dict()))
        return recipe

    def update(self, recipe_id: str, data: RecipeInput) -> Recipe:
        _validate_id(recipe_id)
        recipe = self._storage.update_recipe(recipe_id, data)

        self._invalidate(LIST_CACHE_KEY)
        self._write_through(recipe_cache_key(recipe_id), json.dumps(recipe.to_dict()))
        return recipe

    def delete(self, recipe_id: str) -> None:
        _validate_id(recipe_id)
        self._storage.delete_recipe(recipe_id)
        self._invalidate(recipe_cache_key(recipe_id), LIST_CACHE_KEY)

    def search(self, tag: str) -> List[Recipe]:
        # Tag queries are not cached.
        return list(self._storage.search_recipes(tag))

    def _write_through(self, key: str, value: str) -> None:
        try:
            self._cache.set(key, value, self._ttl)
        except CacheError as exc:
            logger.error("could not cache {}: {}", key, exc.__cause__ or exc)
            self._invalidate(key)
        else:
            logger.debug("cached {}", key)

    def _invalidate(self, *keys: str) -> None:
        # One fallback delete; after that the entries expire with their TTL.
        for attempt in (1, 2):
            try:
                self._cache.delete(*keys)
            except CacheError as exc:
                logger.error("could not invalidate {} (attempt {}): {}", keys, attempt, exc.__cause__ or exc)
            else:
                logger.debug("invalidated {}", keys)
                return
        logger.error("{} stay cached until their TTL runs out", keys)


__all__ = ["LIST_CACHE_KEY", "RecipeService", "recipe_cache_key"]
