from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import firestore
from loguru import logger

from .errors import StoreError, UserAlreadyExists
from .models import Recipe, RecipeInput, User
from .storage import RecipeRepository, UserRepository

DEFAULT_TIMEOUT = 5.0


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (gcloud_exceptions.GoogleAPICallError, gcloud_exceptions.RetryError) as exc:
        logger.warning("firestore call to {} failed: {}", action, exc)
        raise StoreError(f"Failed to {action}") from exc


class FirestoreRecipeStorage(RecipeRepository):
    """Firestore backed recipe storage. Document ids are the recipe ids."""

    def __init__(
        self,
        *,
        client: Optional[firestore.Client] = None,
        project: Optional[str] = None,
        collection_name: str = "recipes",
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._firestore_client = client or firestore.Client(project=project)
        self._collection = self._firestore_client.collection(collection_name)
        self._timeout = timeout

    def list_recipes(self) -> List[Recipe]:
        query = self._collection.order_by("published_at", direction=firestore.Query.DESCENDING)
        with _store_errors("list recipes"):
            return [self._doc_to_recipe(doc.id, doc.to_dict() or {}) for doc in query.stream(timeout=self._timeout)]

    def get_recipe(self, recipe_id: str) -> Recipe:
        with _store_errors("fetch recipe"):
            snapshot = self._collection.document(recipe_id).get(timeout=self._timeout)

        if not snapshot.exists:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def add_recipe(self, recipe: Recipe) -> Recipe:
        doc = {
            "name": recipe.name,
            "tags": recipe.tags,
            "ingredients": recipe.ingredients,
            "instructions": recipe.instructions,
            "published_at": recipe.published_at,
        }
        with _store_errors("save recipe"):
            self._collection.document(recipe.id).create(doc, timeout=self._timeout)
        return recipe

    def update_recipe(self, recipe_id: str, changes: RecipeInput) -> Recipe:
        doc_ref = self._collection.document(recipe_id)
        update_doc = {
            "name": changes.name,
            "tags": changes.tags,
            "ingredients": changes.ingredients,
            "instructions": changes.instructions,
        }

        with _store_errors("update recipe"):
            try:
                # update() fails on a missing document instead of creating it.
                doc_ref.update(update_doc, timeout=self._timeout)
            except gcloud_exceptions.NotFound:
                raise KeyError(f"Recipe '{recipe_id}' does not exist.") from None
            snapshot = doc_ref.get(timeout=self._timeout)

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def delete_recipe(self, recipe_id: str) -> None:
        doc_ref = self._collection.document(recipe_id)

        with _store_errors("delete recipe"):
            snapshot = doc_ref.get(timeout=self._timeout)
            if not snapshot.exists:
                raise KeyError(f"Recipe '{recipe_id}' does not exist.")
            doc_ref.delete(timeout=self._timeout)

    def search_recipes(self, tag: str) -> List[Recipe]:
        query = self._collection.where(filter=firestore.FieldFilter("tags", "array_contains", tag))
        with _store_errors("search recipes"):
            return [self._doc_to_recipe(doc.id, doc.to_dict() or {}) for doc in query.stream(timeout=self._timeout)]

    def _doc_to_recipe(self, doc_id: str, data: dict) -> Recipe:
        published_at = data.get("published_at")

        return Recipe(
            id=doc_id,
            name=data.get("name", ""),
            tags=list(data.get("tags") or []),
            ingredients=list(data.get("ingredients") or []),
            instructions=list(data.get("instructions") or []),
            published_at=published_at if isinstance(published_at, datetime) else None,
        )


class FirestoreUserStorage(UserRepository):
    """Users keyed by username, so document creation enforces uniqueness."""

    def __init__(
        self,
        *,
        client: Optional[firestore.Client] = None,
        project: Optional[str] = None,
        collection_name: str = "users",
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._firestore_client = client or firestore.Client(project=project)
        self._collection = self._firestore_client.collection(collection_name)
        self._timeout = timeout

    def get_user(self, username: str) -> User:
        with _store_errors("fetch user"):
            snapshot = self._collection.document(username).get(timeout=self._timeout)

        if not snapshot.exists:
            raise KeyError(f"User '{username}' does not exist.")

        data = snapshot.to_dict() or {}
        return User(username=snapshot.id, password_hash=data.get("password_hash", ""))

    def add_user(self, user: User) -> None:
        with _store_errors("save user"):
            try:
                self._collection.document(user.username).create(
                    {"username": user.username, "password_hash": user.password_hash},
                    timeout=self._timeout,
                )
            except gcloud_exceptions.AlreadyExists:
                raise UserAlreadyExists("user already exists") from None


__all__ = ["FirestoreRecipeStorage", "FirestoreUserStorage"]
