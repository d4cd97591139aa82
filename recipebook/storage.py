from __future__ import annotations

from typing import Iterable, Optional, Protocol

from .models import Recipe, RecipeFields


class RecipeRepository(Protocol):
    """Protocol describing the behaviour required by the web layer.

    Methods taking a ``recipe_id`` expect an identifier already accepted by
    :meth:`is_valid_id` and raise :class:`KeyError` when no document matches.
    """

    def ping(self) -> None:
        """Raise if the underlying database cannot be reached."""

    def is_valid_id(self, recipe_id: str) -> bool:
        """Return whether ``recipe_id`` is a well formed store identifier."""

    def list_top_recipes(self, limit: int) -> Iterable[Recipe]:
        """Return at most ``limit`` recipes ordered by like count, highest first."""

    def list_recipes(self, cuisine_type: Optional[str] = None) -> Iterable[Recipe]:
        """Return every recipe, or only those with an exactly matching ``cuisineType``."""

    def list_user_recipes(self, user_id: str) -> Iterable[Recipe]:
        """Return the recipes whose ``userId`` field equals ``user_id``."""

    def get_recipe(self, recipe_id: str) -> Recipe:
        """Return a single recipe or raise :class:`KeyError` if missing."""

    def add_recipe(self, document: RecipeFields) -> str:
        """Persist a new recipe document and return its store assigned id."""

    def update_recipe(self, recipe_id: str, fields: RecipeFields) -> None:
        """Overwrite the supplied fields, leaving all others untouched."""

    def delete_recipe(self, recipe_id: str) -> None:
        """Remove a recipe."""

    def like_recipe(self, recipe_id: str) -> None:
        """Atomically increment the recipe's like count by one."""


__all__ = ["RecipeRepository"]
