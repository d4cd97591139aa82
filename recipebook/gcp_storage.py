from __future__ import annotations

import os
from typing import Iterable, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .models import LIKE_COUNT_FIELD, Recipe, RecipeFields
from .storage import RecipeRepository


MAX_DOCUMENT_ID_BYTES = 1500


class FirestoreRecipeStorage(RecipeRepository):
    """GCP backed recipe storage using a Firestore collection.

    Identifiers follow Firestore document-id rules rather than MongoDB's, so
    ids such as ``"not-an-id"`` are well formed here and a lookup answers 404,
    not 400.
    """

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "recipes",
    ) -> None:
        self._firestore_client = firestore.Client(project=project)
        self._collection = self._firestore_client.collection(collection_name)

    @classmethod
    def from_env(cls) -> "FirestoreRecipeStorage":
        """Build a storage instance from environment variables."""

        project = os.environ.get("GCP_PROJECT")
        collection_name = os.environ.get("RECIPES_COLLECTION", "recipes")
        return cls(project=project, collection_name=collection_name)

    def ping(self) -> None:
        # Any round trip will do; a missing collection still answers.
        list(self._collection.limit(1).stream())

    def is_valid_id(self, recipe_id: str) -> bool:
        if not recipe_id or recipe_id in (".", ".."):
            return False
        if "/" in recipe_id or len(recipe_id.encode("utf-8")) > MAX_DOCUMENT_ID_BYTES:
            return False
        return not (recipe_id.startswith("__") and recipe_id.endswith("__"))

    def list_top_recipes(self, limit: int) -> Iterable[Recipe]:
        query = self._collection.order_by(
            LIKE_COUNT_FIELD, direction=firestore.Query.DESCENDING
        ).limit(limit)
        return [self._doc_to_recipe(doc.id, doc.to_dict()) for doc in query.stream()]

    def list_recipes(self, cuisine_type: Optional[str] = None) -> Iterable[Recipe]:
        query = self._collection
        if cuisine_type:
            query = query.where(filter=FieldFilter("cuisineType", "==", cuisine_type))
        return [self._doc_to_recipe(doc.id, doc.to_dict()) for doc in query.stream()]

    def list_user_recipes(self, user_id: str) -> Iterable[Recipe]:
        query = self._collection.where(filter=FieldFilter("userId", "==", user_id))
        return [self._doc_to_recipe(doc.id, doc.to_dict()) for doc in query.stream()]

    def get_recipe(self, recipe_id: str) -> Recipe:
        snapshot = self._collection.document(recipe_id).get()

        if not snapshot.exists:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict())

    def add_recipe(self, document: RecipeFields) -> str:
        doc_ref = self._collection.document()
        doc_ref.set(dict(document))
        return doc_ref.id

    def update_recipe(self, recipe_id: str, fields: RecipeFields) -> None:
        if not fields:
            self.get_recipe(recipe_id)
            return

        self._update_existing(recipe_id, fields)

    def delete_recipe(self, recipe_id: str) -> None:
        doc_ref = self._collection.document(recipe_id)
        try:
            doc_ref.delete(option=self._firestore_client.write_option(exists=True))
        except gcloud_exceptions.NotFound as exc:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.") from exc

    def like_recipe(self, recipe_id: str) -> None:
        self._update_existing(recipe_id, {LIKE_COUNT_FIELD: firestore.Increment(1)})

    def _update_existing(self, recipe_id: str, update_doc: dict) -> None:
        # DocumentReference.update fails with NotFound instead of creating the document.
        doc_ref = self._collection.document(recipe_id)
        try:
            doc_ref.update(update_doc)
        except gcloud_exceptions.NotFound as exc:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.") from exc

    def _doc_to_recipe(self, doc_id: str, data: Optional[dict]) -> Recipe:
        return Recipe(id=doc_id, fields=dict(data or {}))


__all__ = ["FirestoreRecipeStorage"]
