from __future__ import annotations

import os
from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote_plus

from bson import ObjectId
from pymongo import DESCENDING, MongoClient

from .models import ID_FIELD, LIKE_COUNT_FIELD, JSONValue, Recipe, RecipeFields, iso_timestamp
from .storage import RecipeRepository


DEFAULT_DATABASE = "recipebook"
DEFAULT_TIMEOUT_MS = 5000


class MongoRecipeStorage(RecipeRepository):
    """Recipe storage backed by a MongoDB collection."""

    def __init__(
        self,
        *,
        uri: Optional[str] = None,
        database_name: str = DEFAULT_DATABASE,
        collection_name: str = "recipes",
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        client: Optional[MongoClient] = None,
    ) -> None:
        if client is None:
            if not uri:
                raise ValueError("A MongoDB connection string is required.")
            client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)

        self._client = client
        self._database = client.get_default_database(default=database_name)
        self._collection = self._database[collection_name]

    @classmethod
    def from_env(cls) -> "MongoRecipeStorage":
        """Build a storage instance from environment variables.

        ``MONGODB_URI`` wins when set. Otherwise an Atlas style URI is composed
        from ``DB_USER``, ``DB_PASS`` and ``DB_HOST``.
        """

        uri = os.environ.get("MONGODB_URI")
        if not uri:
            user = os.environ.get("DB_USER")
            password = os.environ.get("DB_PASS")
            host = os.environ.get("DB_HOST")
            if not (user and password and host):
                raise RuntimeError(
                    "MongoDB is not configured. Set MONGODB_URI or DB_USER, DB_PASS and DB_HOST."
                )
            uri = (
                f"mongodb+srv://{quote_plus(user)}:{quote_plus(password)}@{host}/"
                "?retryWrites=true&w=majority"
            )

        database_name = os.environ.get("MONGODB_DATABASE", DEFAULT_DATABASE)
        timeout_ms = int(os.environ.get("MONGODB_TIMEOUT_MS", DEFAULT_TIMEOUT_MS))
        return cls(uri=uri, database_name=database_name, timeout_ms=timeout_ms)

    def ping(self) -> None:
        self._client.admin.command("ping")

    def is_valid_id(self, recipe_id: str) -> bool:
        return ObjectId.is_valid(recipe_id)

    def list_top_recipes(self, limit: int) -> Iterable[Recipe]:
        cursor = self._collection.find().sort(LIKE_COUNT_FIELD, DESCENDING).limit(limit)
        return [self._doc_to_recipe(doc) for doc in cursor]

    def list_recipes(self, cuisine_type: Optional[str] = None) -> Iterable[Recipe]:
        query = {"cuisineType": cuisine_type} if cuisine_type else {}
        return [self._doc_to_recipe(doc) for doc in self._collection.find(query)]

    def list_user_recipes(self, user_id: str) -> Iterable[Recipe]:
        return [self._doc_to_recipe(doc) for doc in self._collection.find({"userId": user_id})]

    def get_recipe(self, recipe_id: str) -> Recipe:
        doc = self._collection.find_one({ID_FIELD: ObjectId(recipe_id)})

        if doc is None:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

        return self._doc_to_recipe(doc)

    def add_recipe(self, document: RecipeFields) -> str:
        # insert_one stamps _id onto the dict it is given.
        result = self._collection.insert_one(dict(document))
        return str(result.inserted_id)

    def update_recipe(self, recipe_id: str, fields: RecipeFields) -> None:
        if not fields:
            self.get_recipe(recipe_id)
            return

        result = self._collection.update_one({ID_FIELD: ObjectId(recipe_id)}, {"$set": fields})
        if result.matched_count == 0:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

    def delete_recipe(self, recipe_id: str) -> None:
        result = self._collection.delete_one({ID_FIELD: ObjectId(recipe_id)})
        if result.deleted_count == 0:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

    def like_recipe(self, recipe_id: str) -> None:
        result = self._collection.update_one(
            {ID_FIELD: ObjectId(recipe_id)},
            {"$inc": {LIKE_COUNT_FIELD: 1}},
        )
        if result.matched_count == 0:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

    def _doc_to_recipe(self, doc: Dict[str, Any]) -> Recipe:
        data = dict(doc)
        doc_id = data.pop(ID_FIELD)
        return Recipe(id=str(doc_id), fields={key: _to_json(value) for key, value in data.items()})


def _to_json(value: Any) -> JSONValue:
    """Turn BSON native values into their JSON form, recursing into containers."""

    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return iso_timestamp(value)
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    return value


__all__ = ["MongoRecipeStorage"]
