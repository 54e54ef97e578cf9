from datetime import date, datetime
from typing import Any, Dict, Optional

from jsonschema import validate, ValidationError, SchemaError

from worktracker.logs import get_logger
from worktracker.migration import InitialDataFile
from worktracker.models import FileVersion, WorkDataFile

log = get_logger("data.validate")

SCHEMA_MODELS = {
    FileVersion.INITIAL: InitialDataFile,
    FileVersion.NESTED: WorkDataFile,
}

def schema_for(version: FileVersion) -> dict:
    """
    Builds the JSON schema of a data file shape from its pydantic model.

    The ``version`` property is pinned to the tag of the shape, so a document
    only validates against the schema of the version it claims to be.
    """
    schema = SCHEMA_MODELS[version].model_json_schema()
    schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
    schema.setdefault("properties", {})["version"] = {"const": version.value}
    schema["required"] = sorted(set(schema.get("required", [])) | {"version", "entries"})
    return schema

def normalise_document(data: Any) -> Any:
    """Copy of ``data`` with YAML timestamps turned back into ISO strings."""
    if isinstance(data, dict):
        return {key: normalise_document(value) for key, value in data.items()}
    if isinstance(data, list):
        return [normalise_document(value) for value in data]
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    return data

def validate_document(data: Dict[str, Any], version: FileVersion) -> bool:
    """
    Validates raw data file contents against the schema of ``version``.

    Returns:
        True if the document is valid, False otherwise.
    """
    try:
        validate(instance=normalise_document(data), schema=schema_for(version))
        log.debug(f"Document is VALID for schema version '{version.value}'.")
        return True
    except ValidationError as e:
        log.debug(f"Document FAILED validation against schema version '{version.value}': {e.message}")
        return False
    except SchemaError as e:
        log.error(f"Schema for version '{version.value}' is invalid. Error: {e.message}")
        return False

def find_schema_version(data: Dict[str, Any]) -> Optional[FileVersion]:
    """
    Finds the shape of a raw document by attempting validation from the
    latest version down to the oldest.

    Returns:
        The first matching version, or None if no schema matches.
    """
    for version in reversed(list(FileVersion)):
        if validate_document(data, version):
            log.info(f"Identified schema version: {version.value}")
            return version

    log.warning("Could not find a valid schema version for document")
    return None
