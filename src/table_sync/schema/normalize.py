"""Field definition normalization.

Fills absent attributes of a declared field with safe defaults and returns
a new ``FieldDefinition``.  The input is never mutated, and normalizing an
already-normalized field returns an equal value.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from table_sync.errors import FieldDefinitionError
from table_sync.schema.models import FieldDefinition
from table_sync.schema.types import MAX_SAFE_INTEGER

# Attribute defaults applied when a key is absent or None
_FIELD_DEFAULTS: dict[str, Any] = {
    "detail": "",
    "min": 0,
    "index": False,
    "unique": False,
    "nullable": False,
    "unsigned": True,
}


def normalize_field(raw: Mapping[str, Any] | FieldDefinition) -> FieldDefinition:
    """Return a fully populated copy of a field definition.

    Args:
        raw: Field input as declared in a table definition file
            (``{name, type, max?, default?, index?, ...}``) or an existing
            ``FieldDefinition``.

    Returns:
        New ``FieldDefinition``.  ``max`` defaults to ``MAX_SAFE_INTEGER``
        for numbers and ``100`` for every other type.

    Raises:
        FieldDefinitionError: If ``type`` is missing or not a known
            logical type.
    """
    if isinstance(raw, FieldDefinition):
        data = raw.model_dump()
    else:
        data = dict(raw)

    for key, value in _FIELD_DEFAULTS.items():
        if data.get(key) is None:
            data[key] = value

    if data.get("max") is None:
        data["max"] = MAX_SAFE_INTEGER if data.get("type") == "number" else 100

    data.setdefault("default", None)
    data.setdefault("regexp", None)
    if data.get("name") is None:
        data["name"] = ""

    try:
        return FieldDefinition.model_validate(data)
    except ValidationError as e:
        raise FieldDefinitionError(f"Invalid field definition {dict(raw)!r}: {e}") from e
