from typing import Optional

from flask import Flask, Response, g, jsonify, request
from google.cloud import firestore
from loguru import logger
from werkzeug.exceptions import HTTPException

from .auth import SessionAuth, SessionStore, SigningKey, TokenAuth, UserService, login_required
from .cache import RedisCache
from .config import Settings
from .errors import CacheError, InvalidRequest, RecipeboxError, StoreError
from .gcp_storage import FirestoreRecipeStorage, FirestoreUserStorage
from .log import configure_logging
from .models import Recipe, RecipeInput, parse_login
from .recipes import RecipeService
from .storage import KeyValueCache, RecipeRepository, UserRepository


def create_app(
    settings: Optional[Settings] = None,
    *,
    storage: Optional[RecipeRepository] = None,
    users: Optional[UserRepository] = None,
    cache: Optional[KeyValueCache] = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    settings:
        Runtime configuration. Read from the environment when ``None``.
    storage, users:
        Recipe and user repositories. When ``None`` Firestore collections
        named by ``settings`` are used.
    cache:
        Key-value cache shared by recipes and cookie sessions. When ``None`` a
        Redis client is built from ``settings.redis_url``.
    """

    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.permanent_session_lifetime = settings.token_lifetime

    if storage is None or users is None:
        client = firestore.Client(project=settings.gcp_project)
        if storage is None:
            storage = FirestoreRecipeStorage(
                client=client,
                collection_name=settings.recipes_collection,
                timeout=settings.store_timeout,
            )
        if users is None:
            users = FirestoreUserStorage(
                client=client,
                collection_name=settings.users_collection,
                timeout=settings.store_timeout,
            )
    if cache is None:
        cache = RedisCache.from_url(settings.redis_url, timeout=settings.cache_timeout)

    if settings.auth_mode == "cookie":
        authenticator = SessionAuth(SessionStore(cache), lifetime=settings.token_lifetime)
    else:
        key = (
            SigningKey.from_pem_file(settings.jwt_private_key_file)
            if settings.jwt_private_key_file
            else SigningKey()
        )
        authenticator = TokenAuth(
            key,
            lifetime=settings.token_lifetime,
            refresh_lifetime=settings.refresh_lifetime,
        )

    app.config["SETTINGS"] = settings
    app.config["RECIPES"] = RecipeService(storage, cache, ttl=settings.cache_ttl)
    app.config["USERS"] = UserService(users)
    app.config["AUTHENTICATOR"] = authenticator
    logger.info("recipebox configured with {} authentication", settings.auth_mode)

    @app.errorhandler(RecipeboxError)
    def handle_recipebox_error(exc: RecipeboxError):
        if isinstance(exc, (StoreError, CacheError)):
            logger.exception("upstream failure on {} {}", request.method, request.path)
        return jsonify(message=exc.message), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify(message=exc.description), exc.code

    @app.after_request
    def log_request(response: Response) -> Response:
        logger.info("{} {} -> {}", request.method, request.path, response.status_code)
        return response

    @app.post("/adduser")
    def add_user():
        username, password = parse_login(request.get_json(silent=True))
        app.config["USERS"].register(username, password)
        return jsonify(username)

    @app.post("/login")
    def login():
        username, password = parse_login(request.get_json(silent=True))
        app.config["USERS"].check(username, password)
        return jsonify(app.config["AUTHENTICATOR"].login(username))

    @app.post("/refresh")
    @login_required
    def refresh():
        return jsonify(app.config["AUTHENTICATOR"].refresh(g.username))

    @app.post("/logout")
    @login_required
    def logout():
        return jsonify(app.config["AUTHENTICATOR"].logout(g.username))

    @app.get("/recipes")
    @app.get("/v1/recipes")
    def list_recipes():
        recipes = app.config["RECIPES"].list()
        return jsonify([recipe.to_dict() for recipe in recipes])

    @app.get("/recipes/search")
    @app.get("/v1/recipes/search")
    def search_recipes():
        tag = request.args.get("tag", "").strip()
        if not tag:
            raise InvalidRequest("'tag' query parameter is required")

        recipes = app.config["RECIPES"].search(tag)
        if not recipes:
            logger.info("no recipes tagged {}", tag)
            return jsonify(message=f"{tag} not found"), 404
        return jsonify([recipe.to_dict() for recipe in recipes])

    @app.get("/recipes/<recipe_id>")
    @app.get("/v1/recipes/<recipe_id>")
    def get_recipe(recipe_id: str):
        try:
            recipe = app.config["RECIPES"].get(recipe_id)
        except KeyError:
            logger.info("recipe {} not found", recipe_id)
            return jsonify(message=f"{recipe_id} is not found"), 404
        return jsonify(recipe.to_dict())

    @app.post("/recipes")
    @app.post("/v1/recipes")
    @login_required
    def create_recipe():
        data = RecipeInput.from_json(request.get_json(silent=True))
        recipe = app.config["RECIPES"].create(data)
        logger.info("{} created recipe {}", g.username, recipe.id)
        return jsonify(recipe.to_dict())

    @app.put("/recipes/<recipe_id>")
    @app.put("/v1/recipes/<recipe_id>")
    @login_required
    def update_recipe(recipe_id: str):
        data = RecipeInput.from_json(request.get_json(silent=True))
        try:
            recipe = app.config["RECIPES"].update(recipe_id, data)
        except KeyError:
            logger.info("recipe {} not found", recipe_id)
            return jsonify(message=f"{recipe_id} is not found"), 404
        return jsonify(recipe.to_dict())

    @app.delete("/recipes/<recipe_id>")
    @app.delete("/v1/recipes/<recipe_id>")
    @login_required
    def delete_recipe(recipe_id: str):
        try:
            app.config["RECIPES"].delete(recipe_id)
        except KeyError:
            logger.info("recipe {} not found", recipe_id)
            return jsonify(message=f"{recipe_id} not found"), 404
        return jsonify(recipe_id)

    return app


__all__ = ["create_app", "Recipe", "Settings"]
