"""
Schema validation for parsed model replies.

Two modes:
- strict: the whole schema must validate; every violation is reported
- non-strict (default): only the fields present are checked, plus a minimum
  shape (a string ``company``, ``summary`` a string when present)

The minimum shape is deliberately lenient: a 10-K reply without financials or
risks still passes non-strict validation.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from ..parse.models import FilingType
from .schemas import FilingSchema, schema_for

logger = logging.getLogger(__name__)

MINIMUM_FIELDS_ERROR = "Missing minimum required fields"


@dataclass
class ValidationResult:
    """Outcome of validating one payload against a filing schema."""
    valid: bool
    errors: Optional[list[str]] = None
    validated_data: Optional[dict[str, Any]] = None   # Set iff valid
    partial_data: Optional[Any] = None                # Set iff invalid

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": self.errors,
            "validated_data": self.validated_data,
            "partial_data": self.partial_data,
        }


def format_validation_errors(error: ValidationError) -> list[str]:
    """'<dotted.location>: <message>' for each pydantic error."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        messages.append(f"{location}: {item['msg']}" if location else item["msg"])
    return messages


@lru_cache(maxsize=None)
def _field_adapters(schema: type[FilingSchema]) -> dict[str, TypeAdapter]:
    """Wire key (alias and Python name) -> adapter for that field's type."""
    adapters = {}
    for name, field_info in schema.model_fields.items():
        adapter = TypeAdapter(field_info.rebuild_annotation())
        adapters[name] = adapter
        if field_info.alias:
            adapters[field_info.alias] = adapter
    return adapters


def _validate_field(adapter: TypeAdapter, value: Any) -> Any:
    validated = adapter.validate_python(value)
    return adapter.dump_python(validated, by_alias=True, exclude_unset=True)


def _meets_minimum(data: dict) -> bool:
    if not isinstance(data.get("company"), str):
        return False
    return "summary" not in data or isinstance(data["summary"], str)


def validate_against_schema(
    data: Any,
    filing_type: FilingType = FilingType.GENERIC,
    strict: bool = False,
) -> ValidationResult:
    """
    Validate a decoded reply against the schema for its filing type.

    Args:
        data: Decoded JSON value
        filing_type: Filing type (unknown names use the Generic schema)
        strict: Require the full schema instead of present fields + minimum shape

    Returns:
        ValidationResult; validated_data only holds schema fields
    """
    schema = schema_for(FilingType.parse(filing_type))

    if not isinstance(data, dict):
        return ValidationResult(
            valid=False,
            errors=[f"Expected a JSON object, got {type(data).__name__}"],
            partial_data=data,
        )

    if strict:
        try:
            model = schema.model_validate(data)
        except ValidationError as e:
            return ValidationResult(valid=False, errors=format_validation_errors(e), partial_data=data)
        return ValidationResult(
            valid=True,
            validated_data=model.model_dump(by_alias=True, exclude_unset=True),
        )

    # Non-strict: check only the fields that are present
    adapters = _field_adapters(schema)
    validated: dict[str, Any] = {}
    errors: list[str] = []
    for key, value in data.items():
        adapter = adapters.get(key)
        if adapter is None:
            continue
        try:
            validated[key] = _validate_field(adapter, value)
        except ValidationError as e:
            errors.extend(f"{key}: {message}" for message in format_validation_errors(e))

    if errors:
        return ValidationResult(valid=False, errors=errors, partial_data=data)

    if not _meets_minimum(data):
        return ValidationResult(valid=False, errors=[MINIMUM_FIELDS_ERROR], partial_data=data)

    return ValidationResult(valid=True, validated_data=validated)


def extract_valid_fields(data: Any, filing_type: FilingType = FilingType.GENERIC) -> dict[str, Any]:
    """
    Keep the top-level fields that satisfy their own field type.

    Fields the schema does not know are kept verbatim.
    """
    if not isinstance(data, dict):
        return {}

    adapters = _field_adapters(schema_for(FilingType.parse(filing_type)))
    valid_fields: dict[str, Any] = {}
    for key, value in data.items():
        adapter = adapters.get(key)
        if adapter is None:
            valid_fields[key] = value
            continue
        try:
            valid_fields[key] = _validate_field(adapter, value)
        except ValidationError:
            logger.debug(f"Dropping invalid field '{key}'")
    return valid_fields
