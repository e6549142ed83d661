from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping, Optional

from .errors import InvalidRequest

RECIPE_ID_PATTERN = re.compile(r"[0-9a-f]{32}")
USERNAME_PATTERN = re.compile(r"[\w.@-]{1,64}")
# Firestore refuses these as document ids.
RESERVED_ID_PATTERN = re.compile(r"\.+|__.*__")


def new_recipe_id() -> str:
    return uuid.uuid4().hex


def is_valid_recipe_id(recipe_id: str) -> bool:
    return bool(RECIPE_ID_PATTERN.fullmatch(recipe_id or ""))


def is_valid_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.fullmatch(username)) and not RESERVED_ID_PATTERN.fullmatch(username)


def _string_list(payload: Mapping[str, Any], key: str) -> List[str]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise InvalidRequest(f"'{key}' must be a list of strings")
    return list(value)


@dataclass
class Recipe:
    """Domain object representing a stored recipe."""

    id: str
    name: str
    tags: List[str] = field(default_factory=list)
    ingredients: List[str] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)
    published_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "tags": list(self.tags),
            "ingredients": list(self.ingredients),
            "instructions": list(self.instructions),
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Recipe":
        published_at = data.get("publishedAt")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            tags=list(data.get("tags") or []),
            ingredients=list(data.get("ingredients") or []),
            instructions=list(data.get("instructions") or []),
            published_at=datetime.fromisoformat(published_at) if published_at else None,
        )


@dataclass
class RecipeInput:
    """The client-editable fields of a recipe, as bound from a request body."""

    name: str
    tags: List[str] = field(default_factory=list)
    ingredients: List[str] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, payload: Any) -> "RecipeInput":
        if not isinstance(payload, dict):
            raise InvalidRequest("request body must be a JSON object")

        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidRequest("'name' is required")

        return cls(
            name=name.strip(),
            tags=_string_list(payload, "tags"),
            ingredients=_string_list(payload, "ingredients"),
            instructions=_string_list(payload, "instructions"),
        )

    def to_recipe(self, recipe_id: str, published_at: Optional[datetime]) -> Recipe:
        return Recipe(
            id=recipe_id,
            name=self.name,
            tags=list(self.tags),
            ingredients=list(self.ingredients),
            instructions=list(self.instructions),
            published_at=published_at,
        )


@dataclass
class User:
    username: str
    password_hash: str


@dataclass
class Credential:
    """A signed bearer token and the moment it stops being accepted."""

    token: str
    expires: datetime

    def to_dict(self) -> dict:
        return {"token": self.token, "expires": self.expires.isoformat()}


def parse_login(payload: Any) -> tuple[str, str]:
    """Return ``(username, password)`` from a login or registration body."""

    if not isinstance(payload, dict):
        raise InvalidRequest("request body must be a JSON object")

    username = payload.get("username")
    password = payload.get("password")
    if not isinstance(username, str) or not is_valid_username(username):
        raise InvalidRequest("'username' must be 1-64 letters, digits or . _ @ -, not only dots and not wrapped in __")
    if not isinstance(password, str) or not password:
        raise InvalidRequest("'password' is required")
    return username, password


__all__ = [
    "Credential",
    "Recipe",
    "RecipeInput",
    "User",
    "is_valid_recipe_id",
    "is_valid_username",
    "new_recipe_id",
    "parse_login",
]
