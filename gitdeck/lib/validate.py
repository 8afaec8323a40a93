"""
Schema validation for gitdeck configuration files.

Settings and account files are checked against the JSON Schemas shipped
in gitdeck/lib/schemas before any value is used. All violations in a
file are reported together so a user can fix them in one pass.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema

SCHEMAS_DIR = Path(__file__).parent / "schemas"


class ValidationError(Exception):
    """A config document does not match its schema.

    `path` is the dotted location of the first violation, "(root)" for the
    document itself; `problems` lists every violation as "path: message".
    """

    def __init__(self, schema_name: str, message: str, path: str | None = None,
                 problems: list[str] | None = None):
        self.schema_name = schema_name
        self.message = message
        self.path = path
        self.problems = problems or []
        detail = "; ".join(self.problems) if len(self.problems) > 1 else message + (f" at {path}" if path else "")
        super().__init__(f"[{schema_name}] {detail}")


@lru_cache(maxsize=None)
def _validator(schema_name: str):
    schema_path = SCHEMAS_DIR / f"{schema_name}.schema.json"
    if not schema_path.exists():
        raise ValidationError(schema_name, f"Schema file not found: {schema_path}")
    schema = json.loads(schema_path.read_text())
    cls = jsonschema.validators.validator_for(schema)
    cls.check_schema(schema)
    return cls(schema)


def _dotted(error: jsonschema.ValidationError) -> str:
    return ".".join(str(p) for p in error.absolute_path) or "(root)"


def validate(data: Any, schema_name: str) -> None:
    """
    Validate data against a named schema ("settings", "accounts").

    Raises:
        ValidationError: carrying the first offending path and every problem found
    """
    errors = sorted(_validator(schema_name).iter_errors(data), key=lambda e: list(map(str, e.absolute_path)))
    if not errors:
        return
    first = errors[0]
    problems = [f"{_dotted(e)}: {e.message}" for e in errors]
    raise ValidationError(schema_name, first.message, _dotted(first), problems)
