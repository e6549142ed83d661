from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

AUTH_MODES = ("jwt", "cookie")


@dataclass
class Settings:
    """Runtime configuration, normally read from the environment."""

    secret_key: str = "development-secret-change-me"
    auth_mode: str = "jwt"
    gcp_project: Optional[str] = None
    recipes_collection: str = "recipes"
    users_collection: str = "users"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: timedelta = timedelta(hours=12)
    store_timeout: float = 5.0
    cache_timeout: float = 1.0
    token_lifetime: timedelta = timedelta(minutes=10)
    refresh_lifetime: timedelta = timedelta(minutes=5)
    jwt_private_key_file: Optional[str] = None
    log_level: str = "ERROR"

    def __post_init__(self) -> None:
        if self.auth_mode not in AUTH_MODES:
            raise ValueError(f"AUTH_MODE must be one of {', '.join(AUTH_MODES)}, got {self.auth_mode!r}")

        # Redis expiries have one second resolution; anything shorter becomes EX 0.
        for name in ("cache_ttl", "token_lifetime", "refresh_lifetime"):
            if getattr(self, name) < timedelta(seconds=1):
                raise ValueError(f"{name} must be at least one second, got {getattr(self, name)}")
        for name in ("store_timeout", "cache_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables."""

        env = os.environ if environ is None else environ
        defaults = cls()

        def seconds(name: str, default: timedelta) -> timedelta:
            value = env.get(name)
            return timedelta(seconds=float(value)) if value else default

        def number(name: str, default: float) -> float:
            value = env.get(name)
            return float(value) if value else default

        return cls(
            secret_key=env.get("FLASK_SECRET_KEY", defaults.secret_key),
            auth_mode=env.get("AUTH_MODE", defaults.auth_mode).lower(),
            gcp_project=env.get("GCP_PROJECT"),
            recipes_collection=env.get("RECIPES_COLLECTION", defaults.recipes_collection),
            users_collection=env.get("USERS_COLLECTION", defaults.users_collection),
            redis_url=env.get("REDIS_URL", defaults.redis_url),
            cache_ttl=seconds("CACHE_TTL_SECONDS", defaults.cache_ttl),
            store_timeout=number("STORE_TIMEOUT", defaults.store_timeout),
            cache_timeout=number("CACHE_TIMEOUT", defaults.cache_timeout),
            token_lifetime=seconds("TOKEN_LIFETIME_SECONDS", defaults.token_lifetime),
            refresh_lifetime=seconds("REFRESH_LIFETIME_SECONDS", defaults.refresh_lifetime),
            jwt_private_key_file=env.get("JWT_PRIVATE_KEY_FILE"),
            log_level=env.get("LOG_LEVEL", defaults.log_level),
        )


__all__ = ["AUTH_MODES", "Settings"]
