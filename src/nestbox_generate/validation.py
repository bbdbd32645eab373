# validation.py
# YAML document validation against a JSON Schema written in YAML.
#
# Pure and synchronous: no I/O, no state between calls. Failures are
# returned as data, never raised.

import re
from typing import Any

import yaml
from jsonschema import FormatChecker
from jsonschema.exceptions import SchemaError, ValidationError
from jsonschema.validators import Draft7Validator, validator_for

from nestbox_generate.models import ValidationResult

ENV_VAR_PATTERN = re.compile(r"\$\{[^}]+\}")
ENV_VAR_PLACEHOLDER = "env-var-placeholder"
ROOT_LOCATION = "(root)"
ACCEPTED_FORMATS = ("uri", "uri-reference")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _format_checker() -> FormatChecker:
    """
    Format checker that accepts 'uri' and ignores every other format.

    Starts from an empty format set so results never depend on which
    optional jsonschema extras are installed.
    """
    checker = FormatChecker(formats=())
    for name in ACCEPTED_FORMATS:
        checker.checks(name)(lambda _value: True)
    return checker


def _location(error: ValidationError) -> str:
    if not error.absolute_path:
        return ROOT_LOCATION
    return "/" + "/".join(str(part) for part in error.absolute_path)


def _first_line(exc: Exception) -> str:
    return " ".join(str(exc).split())


def substitute_env_placeholders(text: str) -> str:
    """Replace ${VAR} and ${VAR:-default} references with a plain string."""
    return ENV_VAR_PATTERN.sub(ENV_VAR_PLACEHOLDER, text)


def format_error(error: ValidationError) -> str:
    return f"[{_location(error)}] {error.message}"


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def validate(text: str, schema_text: str) -> ValidationResult:
    """
    Parse `text` as YAML and check it against `schema_text`.

    Every violation is reported, not only the first. Additional
    properties are allowed unless the schema itself forbids them.
    """
    try:
        data: Any = yaml.safe_load(substitute_env_placeholders(text))
    except yaml.YAMLError as exc:
        return ValidationResult(valid=False, errors=[f"YAML parse error: {_first_line(exc)}"])

    try:
        schema = yaml.safe_load(schema_text)
    except yaml.YAMLError as exc:
        return ValidationResult(valid=False, errors=[f"Schema parse error: {_first_line(exc)}"])

    if not isinstance(schema, (dict, bool)):
        return ValidationResult(
            valid=False,
            errors=["Schema parse error: schema must be a mapping at the top level"],
        )

    validator_cls = validator_for(schema, default=Draft7Validator)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as exc:
        return ValidationResult(valid=False, errors=[f"Schema parse error: {exc.message}"])

    validator = validator_cls(schema, format_checker=_format_checker())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(map(str, e.absolute_path)))
    if not errors:
        return ValidationResult(valid=True, errors=[])

    return ValidationResult(valid=False, errors=[format_error(e) for e in errors])
