"""JSON Schema validation infrastructure.

Provides schema validation for persisted ledger state with:
- Automatic schema resolution via $ref
- A registry of every schema shipped in ``herbchain/schemas``
- Cached validators
- Error messages carrying the JSON path of each failure
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, List

from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from herbchain.core import PACKAGE_ROOT, load_json

SCHEMAS_DIR = PACKAGE_ROOT / "schemas"
SCHEMA_BASE_URI = "https://schemas.herbchain.dev/"


def schema_path(name: str) -> Path:
    """Path of a shipped schema, by short name (``"snapshot"``) or file name."""
    if not name.endswith(".schema.json"):
        name = f"{name}.schema.json"
    return SCHEMAS_DIR / name


@lru_cache(maxsize=1)
def _schema_registry() -> Registry:
    """Registry of all shipped schemas, keyed by their ``$id``."""
    resources = []
    for path in sorted(SCHEMAS_DIR.glob("*.schema.json")):
        schema = load_json(path)
        schema_id = schema.get("$id") or f"{SCHEMA_BASE_URI}{path.name}"
        resources.append((schema_id, Resource.from_contents(schema, default_specification=DRAFT202012)))
    return Registry().with_resources(resources)


@lru_cache(maxsize=None)
def schema_validator(name: str) -> Draft202012Validator:
    """Create a validator for a shipped schema.

    Args:
        name: Short schema name, e.g. ``"snapshot"`` or ``"record"``

    Returns:
        A configured Draft202012Validator
    """
    schema = load_json(schema_path(name))
    return Draft202012Validator(schema, registry=_schema_registry())


def validate_with_schema(obj: Any, name: str) -> List[str]:
    """Validate an object against a shipped schema.

    Returns:
        List of validation error messages (empty if valid)
    """
    validator = schema_validator(name)
    return [
        f"{error.json_path}: {error.message}"
        for error in sorted(validator.iter_errors(obj), key=lambda e: e.json_path)
    ]
