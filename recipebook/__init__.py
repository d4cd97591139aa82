import os
from functools import wraps
from typing import Any, Callable, Optional

import structlog
from flask import Flask, Response, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .gcp_storage import FirestoreRecipeStorage
from .models import Recipe, editable_fields, new_recipe_document
from .mongo_storage import MongoRecipeStorage
from .storage import RecipeRepository

logger = structlog.get_logger(__name__)

WELCOME_MESSAGE = "Welcome to the Recipe Book API!"
TOP_RECIPES_LIMIT = 6
# Same request body ceiling as express.json().
MAX_BODY_BYTES = 100 * 1024

STORAGE_BACKENDS = {
    "mongodb": MongoRecipeStorage,
    "firestore": FirestoreRecipeStorage,
}


def connect_storage(backend: Optional[str] = None) -> Optional[RecipeRepository]:
    """Connect the configured storage backend.

    Returns ``None`` when the connection cannot be established so that the
    application still starts and answers every data route with a 500.
    An unknown backend name is a configuration error and raises ``ValueError``.
    """

    backend = (backend or os.environ.get("RECIPE_BACKEND", "mongodb")).lower()
    storage_cls = STORAGE_BACKENDS.get(backend)
    if storage_cls is None:
        raise ValueError(
            f"Unknown RECIPE_BACKEND '{backend}'. Expected one of: {', '.join(STORAGE_BACKENDS)}."
        )

    try:
        storage = storage_cls.from_env()
        storage.ping()
    except Exception:
        logger.exception("database_connection_failed", backend=backend)
        return None

    logger.info("database_connected", backend=backend)
    return storage


def create_app(storage: Optional[RecipeRepository] = None) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    storage:
        Optional recipe repository. When ``None`` the application connects the
        backend selected by ``RECIPE_BACKEND`` through :func:`connect_storage`.
    """

    app = Flask(__name__)
    app.config.setdefault("MAX_CONTENT_LENGTH", MAX_BODY_BYTES)
    app.json.sort_keys = False
    CORS(app)

    if storage is None:
        storage = connect_storage()
    app.config["RECIPE_STORAGE"] = storage

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException) -> tuple[Response, int]:
        return _failure(exc.description or exc.name, exc.code or 500)

    @app.before_request
    def parse_json_body() -> None:
        # Every route parses a JSON body up front, so a malformed one is a 400
        # even where the view ignores it.
        if request.is_json and request.get_data(cache=True):
            request.get_json()

    @app.get("/")
    def index() -> Response:
        return Response(WELCOME_MESSAGE, mimetype="text/plain")

    @app.get("/api/recipes/top")
    @_recipe_route("top_recipes_fetch_failed")
    def top_recipes(storage_backend: RecipeRepository) -> Response:
        recipes = storage_backend.list_top_recipes(TOP_RECIPES_LIMIT)
        return jsonify([recipe.to_dict() for recipe in recipes])

    @app.get("/api/recipes")
    @_recipe_route("recipes_fetch_failed")
    def list_recipes(storage_backend: RecipeRepository) -> Response:
        cuisine_type = request.args.get("cuisineType") or None
        recipes = storage_backend.list_recipes(cuisine_type=cuisine_type)
        return jsonify([recipe.to_dict() for recipe in recipes])

    @app.get("/api/recipes/<recipe_id>")
    @_recipe_route("recipe_fetch_failed")
    def get_recipe(storage_backend: RecipeRepository, recipe_id: str):
        if not storage_backend.is_valid_id(recipe_id):
            return _failure("Invalid recipe ID", 400)

        try:
            recipe = storage_backend.get_recipe(recipe_id)
        except KeyError:
            return _failure("Recipe not found", 404)

        return jsonify(recipe.to_dict())

    @app.get("/api/recipes/user/<user_id>")
    @_recipe_route("user_recipes_fetch_failed")
    def user_recipes(storage_backend: RecipeRepository, user_id: str) -> Response:
        recipes = storage_backend.list_user_recipes(user_id)
        return jsonify([recipe.to_dict() for recipe in recipes])

    @app.post("/api/recipes")
    @_recipe_route("recipe_create_failed")
    def create_recipe(storage_backend: RecipeRepository):
        payload = request.get_json()
        if not isinstance(payload, dict):
            return _failure("Recipe payload must be a JSON object", 400)

        recipe_id = storage_backend.add_recipe(new_recipe_document(payload))
        logger.debug("recipe_created", recipe_id=recipe_id)

        return (
            jsonify(success=True, message="Recipe added successfully", recipeId=recipe_id),
            201,
        )

    @app.put("/api/recipes/<recipe_id>")
    @_recipe_route("recipe_update_failed")
    def update_recipe(storage_backend: RecipeRepository, recipe_id: str):
        if not storage_backend.is_valid_id(recipe_id):
            return _failure("Invalid recipe ID", 400)

        payload = request.get_json()
        if not isinstance(payload, dict):
            return _failure("Recipe payload must be a JSON object", 400)

        try:
            storage_backend.update_recipe(recipe_id, editable_fields(payload))
        except KeyError:
            return _failure("Recipe not found", 404)

        return jsonify(success=True, message="Recipe updated successfully")

    @app.delete("/api/recipes/<recipe_id>")
    @_recipe_route("recipe_delete_failed")
    def delete_recipe(storage_backend: RecipeRepository, recipe_id: str):
        if not storage_backend.is_valid_id(recipe_id):
            return _failure("Invalid recipe ID", 400)

        try:
            storage_backend.delete_recipe(recipe_id)
        except KeyError:
            return _failure("Recipe not found", 404)

        return jsonify(success=True, message="Recipe deleted successfully")

    @app.post("/api/recipes/<recipe_id>/like")
    @_recipe_route("recipe_like_failed")
    def like_recipe(storage_backend: RecipeRepository, recipe_id: str):
        if not storage_backend.is_valid_id(recipe_id):
            return _failure("Invalid recipe ID", 400)

        try:
            storage_backend.like_recipe(recipe_id)
        except KeyError:
            return _failure("Recipe not found", 404)

        return jsonify(success=True, message="Recipe liked successfully")

    return app


def _recipe_route(failure_event: str) -> Callable:
    """Wrap a view so it receives the storage backend and never leaks a store error.

    A missing backend short-circuits to 500 before the view runs. Any other
    exception, apart from HTTP errors raised by the transport layer, is logged
    under ``failure_event`` and answered with a generic 500.
    """

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapper(**kwargs: Any):
            storage_backend: Optional[RecipeRepository] = current_app.config["RECIPE_STORAGE"]
            if storage_backend is None:
                return _failure("Database not connected", 500)

            try:
                return view(storage_backend, **kwargs)
            except HTTPException:
                raise
            except Exception:
                logger.exception(failure_event, **kwargs)
                return _failure("Server error", 500)

        return wrapper

    return decorator


def _failure(message: str, status: int) -> tuple[Response, int]:
    return jsonify(success=False, message=message), status


__all__ = ["create_app", "connect_storage", "Recipe"]
