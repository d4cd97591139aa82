from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

JSONValue = Union[str, int, float, bool, None, List["JSONValue"], Dict[str, "JSONValue"]]
RecipeFields = Dict[str, JSONValue]

ID_FIELD = "_id"
CREATED_AT_FIELD = "createdAt"
LIKE_COUNT_FIELD = "likeCount"
SERVICE_FIELDS = (CREATED_AT_FIELD, LIKE_COUNT_FIELD)


@dataclass
class Recipe:
    """Domain object representing a stored recipe document.

    Only the identifier is typed; every other field is kept exactly as the
    client sent it, next to the service managed ``createdAt`` and ``likeCount``.
    """

    id: str
    fields: RecipeFields = field(default_factory=dict)

    @property
    def like_count(self) -> int:
        value = self.fields.get(LIKE_COUNT_FIELD)
        return value if isinstance(value, int) else 0

    def to_dict(self) -> Dict[str, Any]:
        return {ID_FIELD: self.id, **self.fields}


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """Render ``moment`` as UTC with millisecond precision and a ``Z`` suffix."""

    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        # Drivers hand back naive datetimes that are already UTC.
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_recipe_document(payload: Mapping[str, JSONValue], now: Optional[datetime] = None) -> RecipeFields:
    document: RecipeFields = {key: value for key, value in payload.items() if key != ID_FIELD}
    # Service values win over anything the client supplied.
    document[CREATED_AT_FIELD] = iso_timestamp(now)
    document[LIKE_COUNT_FIELD] = 0
    return document


def editable_fields(payload: Mapping[str, JSONValue]) -> RecipeFields:
    protected = {ID_FIELD, *SERVICE_FIELDS}
    return {key: value for key, value in payload.items() if key not in protected}


__all__ = [
    "CREATED_AT_FIELD",
    "ID_FIELD",
    "JSONValue",
    "LIKE_COUNT_FIELD",
    "Recipe",
    "RecipeFields",
    "editable_fields",
    "iso_timestamp",
    "new_recipe_document",
]
