"""Load and validate JSON instances against the bundled schemas.

Usage::

    from weave_manifest.contracts.load import validate_instance, validate_file

    validate_instance(result_dict, "reconcile_result.schema.json")
    validate_file(Path("out/report.json"), "reconcile_result.schema.json")
"""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any

import jsonschema

SCHEMA_DIR = "data/schemas"


def schema_names() -> list[str]:
    """Filenames of every bundled schema."""
    root = resources.files("weave_manifest") / SCHEMA_DIR
    return sorted(p.name for p in root.iterdir() if p.name.endswith(".schema.json"))


def load_schema(name: str) -> dict[str, Any]:
    """Load a bundled JSON schema by filename.

    Raises ``FileNotFoundError`` for an unknown schema name.
    """
    resource = resources.files("weave_manifest") / SCHEMA_DIR / name
    if not resource.is_file():
        raise FileNotFoundError(f"Schema not found: {name}")
    return json.loads(resource.read_text(encoding="utf-8"))


def validate_instance(instance: Any, schema_name: str) -> None:
    """Validate *instance* against the named schema.

    Raises ``jsonschema.ValidationError`` on failure.
    """
    schema = load_schema(schema_name)
    jsonschema.validate(instance=instance, schema=schema)


def validate_file(instance_path: Path, schema_name: str) -> None:
    """Load a JSON file and validate it against the named schema."""
    instance = json.loads(instance_path.read_text(encoding="utf-8"))
    validate_instance(instance, schema_name)
