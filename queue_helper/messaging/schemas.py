"""
Schema Validation Module
========================
JSON schema validation for wire envelopes and structured payloads.
"""

from typing import Dict, Any, Optional

from ..core.logging_config import get_logger
from ..core.exceptions import ValidationException

logger = get_logger(__name__)

ENVELOPE_SCHEMA = "envelope"
EMAIL_SCHEMA = "email"
SMS_SCHEMA = "sms"

# Using jsonschema draft 7 format

_SCHEMAS: Dict[str, Dict[str, Any]] = {
    # What travels over the broker
    ENVELOPE_SCHEMA: {
        "type": "object",
        "properties": {
            "content": {"type": "string"},
            "sender": {"type": "string"},
        },
        "required": ["content", "sender"],
    },

    EMAIL_SCHEMA: {
        "type": "object",
        "properties": {
            "sender": {"type": "string"},
            "recipients": {"type": "array", "items": {"type": "string"}},
            "ccRecipients": {"type": "array", "items": {"type": "string"}},
            "bccRecipients": {"type": "array", "items": {"type": "string"}},
            "subject": {"type": "string"},
            "body": {"type": "string"},
            "isHtml": {"type": "boolean"},
            "attachmentName": {"type": ["string", "null"]},
            "attachmentBase64": {"type": ["string", "null"]},
        },
        "required": ["sender", "recipients", "subject", "body"],
    },

    SMS_SCHEMA: {
        "type": "object",
        "properties": {
            "phoneNumber": {"type": "string"},
            "text": {"type": "string"},
        },
        "required": ["phoneNumber", "text"],
    },
}


def register_schema(name: str, schema: Dict[str, Any]) -> None:
    """
    Register a JSON schema for validation.

    Args:
        name: Schema name
        schema: JSON schema dict
    """
    _SCHEMAS[name] = schema
    logger.debug(f"Registered schema: {name}")


def get_schema(name: str) -> Optional[Dict[str, Any]]:
    """
    Get a registered schema by name.

    Args:
        name: Schema name

    Returns:
        Optional[Dict[str, Any]]: Schema dict or None if not found
    """
    return _SCHEMAS.get(name)


def validate_payload(data: Any, schema_name: str) -> None:
    """
    Validate decoded JSON data against a registered schema.

    Unknown schema names skip validation.

    Args:
        data: Decoded JSON document
        schema_name: Name of the registered schema

    Raises:
        ValidationException: If validation fails
    """
    import jsonschema
    from jsonschema.exceptions import ValidationError

    schema = get_schema(schema_name)

    if not schema:
        logger.debug(f"No schema found for {schema_name}, skipping validation")
        return

    try:
        jsonschema.validate(instance=data, schema=schema)
    except ValidationError as e:
        field = ".".join(str(part) for part in e.absolute_path) or None
        raise ValidationException(
            f"Payload failed validation against schema '{schema_name}': {e.message}",
            field=field,
            code="SCHEMA_VALIDATION_ERROR",
            details={"schema_name": schema_name},
            cause=e,
        )
