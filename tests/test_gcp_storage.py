from __future__ import annotations

from pathlib import Path
import sys
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as gcloud_exceptions
from google.cloud import firestore

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from recipebook.gcp_storage import FirestoreRecipeStorage


def create_storage():
    with patch("recipebook.gcp_storage.firestore.Client") as client_cls:
        storage = FirestoreRecipeStorage(project="recipes-test")
    client = client_cls.return_value
    collection = client.collection.return_value
    return storage, client, collection


def snapshot(doc_id: str, data: dict | None, exists: bool = True):
    snap = MagicMock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = data
    return snap


@pytest.mark.parametrize(
    "recipe_id,expected",
    [
        ("Xk2c9QmZp1RtL0aBcDeF", True),
        ("not-an-id", True),
        ("", False),
        (".", False),
        ("..", False),
        ("nested/path", False),
        ("__reserved__", False),
        ("x" * 1501, False),
    ],
)
def test_is_valid_id_follows_document_id_rules(recipe_id, expected):
    storage, _, _ = create_storage()

    assert storage.is_valid_id(recipe_id) is expected


def test_get_recipe_reads_document():
    storage, _, collection = create_storage()
    collection.document.return_value.get.return_value = snapshot("abc", {"title": "Pho"})

    recipe = storage.get_recipe("abc")

    collection.document.assert_called_once_with("abc")
    assert recipe.to_dict() == {"_id": "abc", "title": "Pho"}


def test_get_recipe_raises_key_error_when_missing():
    storage, _, collection = create_storage()
    collection.document.return_value.get.return_value = snapshot("abc", None, exists=False)

    with pytest.raises(KeyError):
        storage.get_recipe("abc")


def test_list_top_recipes_orders_by_like_count():
    storage, _, collection = create_storage()
    query = collection.order_by.return_value.limit.return_value
    query.stream.return_value = [snapshot("a", {"likeCount": 4}), snapshot("b", {"likeCount": 1})]

    recipes = list(storage.list_top_recipes(6))

    collection.order_by.assert_called_once_with("likeCount", direction=firestore.Query.DESCENDING)
    collection.order_by.return_value.limit.assert_called_once_with(6)
    assert [recipe.id for recipe in recipes] == ["a", "b"]


def test_list_recipes_without_filter_streams_whole_collection():
    storage, _, collection = create_storage()
    collection.stream.return_value = [snapshot("a", {"title": "Pho"})]

    recipes = list(storage.list_recipes())

    collection.where.assert_not_called()
    assert recipes[0].fields == {"title": "Pho"}


def test_list_recipes_filters_on_cuisine_type():
    storage, _, collection = create_storage()
    collection.where.return_value.stream.return_value = []

    storage.list_recipes(cuisine_type="Thai")

    field_filter = collection.where.call_args.kwargs["filter"]
    assert field_filter.field_path == "cuisineType"
    assert field_filter.value == "Thai"


def test_add_recipe_returns_generated_document_id():
    storage, _, collection = create_storage()
    doc_ref = collection.document.return_value
    doc_ref.id = "generated-id"

    recipe_id = storage.add_recipe({"title": "Tacos", "likeCount": 0})

    assert recipe_id == "generated-id"
    doc_ref.set.assert_called_once_with({"title": "Tacos", "likeCount": 0})


def test_update_recipe_maps_not_found_to_key_error():
    storage, _, collection = create_storage()
    collection.document.return_value.update.side_effect = gcloud_exceptions.NotFound("gone")

    with pytest.raises(KeyError):
        storage.update_recipe("abc", {"title": "X"})


def test_like_recipe_uses_server_side_increment():
    storage, _, collection = create_storage()

    storage.like_recipe("abc")

    update_doc = collection.document.return_value.update.call_args.args[0]
    increment = update_doc["likeCount"]
    assert isinstance(increment, firestore.Increment)
    assert increment.value == 1


def test_delete_recipe_requires_existing_document():
    storage, client, collection = create_storage()
    doc_ref = collection.document.return_value
    doc_ref.delete.side_effect = gcloud_exceptions.NotFound("gone")

    with pytest.raises(KeyError):
        storage.delete_recipe("abc")

    client.write_option.assert_called_once_with(exists=True)
    doc_ref.delete.assert_called_once_with(option=client.write_option.return_value)


def test_from_env_reads_project_and_collection(monkeypatch):
    monkeypatch.setenv("GCP_PROJECT", "recipes-prod")
    monkeypatch.setenv("RECIPES_COLLECTION", "cookbook")

    with patch("recipebook.gcp_storage.firestore.Client") as client_cls:
        FirestoreRecipeStorage.from_env()

    client_cls.assert_called_once_with(project="recipes-prod")
    client_cls.return_value.collection.assert_called_once_with("cookbook")
