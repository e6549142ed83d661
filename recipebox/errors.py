class RecipeboxError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequest(RecipeboxError):
    status_code = 400


class UserAlreadyExists(RecipeboxError):
    status_code = 400


class AuthenticationError(RecipeboxError):
    status_code = 401


class NotLoggedIn(AuthenticationError):
    status_code = 403


class StoreError(RecipeboxError):
    """The document store could not be reached or rejected the call."""


class CacheError(RecipeboxError):
    """The cache could not be reached. Never reported as a cache miss."""


__all__ = [
    "AuthenticationError",
    "CacheError",
    "InvalidRequest",
    "NotLoggedIn",
    "RecipeboxError",
    "StoreError",
    "UserAlreadyExists",
]
