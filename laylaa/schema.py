"""JSON Schema validation for stored burn proofs.

Provides:
- A registry of the packaged schemas so $ref resolves across files
- Cached validators
- Error messages keyed by JSON path
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, List

from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from laylaa.core import PACKAGE_ROOT, load_json

SCHEMAS_DIR = PACKAGE_ROOT / "schemas"
BURN_PROOF_SCHEMA = SCHEMAS_DIR / "burn-proof.schema.json"


@lru_cache(maxsize=1)
def _schema_registry(schemas_dir: Path = SCHEMAS_DIR) -> Registry:
    """Registry of every ``*.schema.json`` under ``schemas_dir``, keyed by $id."""
    resources = []
    for schema_path in sorted(schemas_dir.glob("*.schema.json")):
        schema = load_json(schema_path)
        schema_id = schema.get("$id") or schema_path.name
        resources.append(
            (schema_id, Resource.from_contents(schema, default_specification=DRAFT202012))
        )
    return Registry().with_resources(resources)


@lru_cache(maxsize=8)
def schema_validator(schema_path: Path = BURN_PROOF_SCHEMA) -> Draft202012Validator:
    schema = load_json(schema_path)
    return Draft202012Validator(schema, registry=_schema_registry(schema_path.parent))


def validate_against_schema(obj: Any, schema_path: Path = BURN_PROOF_SCHEMA) -> List[str]:
    """Validate an object against a schema.

    Returns:
        List of validation error messages (empty if valid)
    """
    validator = schema_validator(schema_path)
    return [
        f"{error.json_path}: {error.message}"
        for error in sorted(validator.iter_errors(obj), key=lambda e: e.json_path)
    ]


def validate_proof_record(record: Any) -> List[str]:
    return validate_against_schema(record, BURN_PROOF_SCHEMA)
