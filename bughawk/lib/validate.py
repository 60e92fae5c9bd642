"""
Schema validation for BugHawk.

Every request payload and every record written to disk is checked against
a JSON Schema in bughawk/schemas. Request validation collects all
field-level errors so a caller can report them together; write-time
validation fails hard on the first problem.
"""

import json
from dataclasses import dataclass
from pathlib import Path

import jsonschema

from bughawk.lib.errors import BugHawkError


@dataclass(frozen=True)
class FieldError:
    """One problem with one field of a payload."""
    field: str  # Dotted path, "(root)" for object-level errors
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ValidationError(BugHawkError):
    """Schema validation failed."""

    def __init__(self, schema_name: str, message: str, path: str = None, errors: list[FieldError] | None = None):
        self.schema_name = schema_name
        self.path = path
        self.errors = errors or []
        super().__init__(f"[{schema_name}] {message}" + (f" at {path}" if path else ""))


# Cache loaded schemas
_schema_cache: dict[str, dict] = {}


def _get_schemas_dir() -> Path:
    """Get path to schemas directory."""
    return Path(__file__).parent.parent / "schemas"


def _load_schema(schema_name: str) -> dict:
    """Load schema by name, with caching."""
    if schema_name not in _schema_cache:
        schema_path = _get_schemas_dir() / f"{schema_name}.schema.json"
        if not schema_path.exists():
            raise ValidationError(schema_name, f"Schema file not found: {schema_path}")
        _schema_cache[schema_name] = json.loads(schema_path.read_text())
    return _schema_cache[schema_name]


def _field_path(error: jsonschema.ValidationError) -> str:
    path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else ""
    # Missing required properties report at the parent; name the property instead
    if error.validator == "required" and error.message.startswith("'"):
        missing = error.message.split("'")[1]
        path = f"{path}.{missing}" if path else missing
    return path or "(root)"


def collect_errors(data, schema_name: str) -> list[FieldError]:
    """
    Validate data against named schema and return every problem found.

    Args:
        data: Payload to validate
        schema_name: Schema name (e.g., "create_issue", "add_member")

    Returns:
        Field errors sorted by field path; empty if valid
    """
    schema = _load_schema(schema_name)
    validator = jsonschema.Draft7Validator(schema)
    errors = [FieldError(_field_path(e), e.message) for e in validator.iter_errors(data)]
    return sorted(errors, key=lambda e: e.field)


def validate(data: dict, schema_name: str) -> None:
    """
    Validate data against named schema.

    Raises:
        ValidationError: If validation fails, carrying every field error
    """
    errors = collect_errors(data, schema_name)
    if errors:
        first = errors[0]
        raise ValidationError(schema_name, first.message, first.field, errors)


def validate_before_write(data: dict, schema_name: str, filepath: Path) -> None:
    """
    Validate data before writing to file. Ensures we never write invalid data.

    Raises:
        ValidationError: If data doesn't match schema
    """
    try:
        validate(data, schema_name)
    except ValidationError as e:
        raise ValidationError(
            schema_name,
            f"Refusing to write invalid data to {filepath}: {e}",
            errors=e.errors,
        ) from None
