"""
Message Definition Module
=========================
Message contract, payload types and the wire envelope.

This module provides:
- MessageModel contract (destination + content)
- Validating payload types (text, email, SMS)
- Envelope serialization for the broker boundary
- Priority and delivery mode levels
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Dict, Any, Iterable, Tuple

from ..core.exceptions import (
    MessageDecodeError,
    MissingFieldError,
    ValidationException,
)

from .schemas import ENVELOPE_SCHEMA, EMAIL_SCHEMA, SMS_SCHEMA, validate_payload


class MessagePriority(IntEnum):
    """Message priority levels."""

    LOW = 1
    NORMAL = 5
    HIGH = 8
    CRITICAL = 10


class DeliveryMode(IntEnum):
    """AMQP delivery modes."""

    TRANSIENT = 1
    PERSISTENT = 2


class MessageModel(ABC):
    """
    Read-only capability set every payload type implements.

    Strategies only ever look at ``destination`` and ``content``.
    """

    @property
    @abstractmethod
    def destination(self) -> str:
        """Address the payload is meant for."""

    @property
    @abstractmethod
    def content(self) -> str:
        """Serialized payload that is published to the broker."""


def _require(value: Optional[str], field_name: str) -> None:
    if value is None or not str(value).strip():
        raise MissingFieldError(field_name)


@dataclass(frozen=True)
class TextMessage(MessageModel):
    """Plain text payload addressed to a single destination."""

    to: str
    text: str

    def __post_init__(self) -> None:
        _require(self.to, "destination")
        _require(self.text, "content")

    @property
    def destination(self) -> str:
        return self.to

    @property
    def content(self) -> str:
        return self.text


@dataclass(frozen=True)
class SmsMessage(MessageModel):
    """SMS payload; published as a small JSON document."""

    phone_number: str
    text: str

    def __post_init__(self) -> None:
        _require(self.phone_number, "phone_number")
        _require(self.text, "text")

    @property
    def destination(self) -> str:
        return self.phone_number

    @property
    def content(self) -> str:
        return json.dumps({"phoneNumber": self.phone_number, "text": self.text})

    @classmethod
    def from_json(cls, json_str: str) -> "SmsMessage":
        data = _load_json(json_str)
        validate_payload(data, SMS_SCHEMA)
        return cls(phone_number=data["phoneNumber"], text=data["text"])


@dataclass(frozen=True)
class EmailMessage(MessageModel):
    """
    Email payload.

    All required-field checks live in ``__post_init__`` so the builder,
    ``create`` and ``from_json`` share them. ``destination`` is the sender
    address and ``content`` is the JSON document of the whole email.
    """

    sender: str
    recipients: Tuple[str, ...]
    subject: str
    body: str
    cc_recipients: Tuple[str, ...] = field(default_factory=tuple)
    bcc_recipients: Tuple[str, ...] = field(default_factory=tuple)
    is_html: bool = False
    attachment_name: Optional[str] = None
    attachment_base64: Optional[str] = None

    def __post_init__(self) -> None:
        # Freeze list arguments; a bare address is a single recipient
        for name in ("recipients", "cc_recipients", "bcc_recipients"):
            value = getattr(self, name) or ()
            if isinstance(value, str):
                value = (value,)
            object.__setattr__(self, name, tuple(value))

        _require(self.sender, "sender")
        if not any(str(r).strip() for r in self.recipients):
            raise MissingFieldError("recipients", "At least one recipient is required")
        _require(self.subject, "subject")
        _require(self.body, "body")

    @classmethod
    def create(
        cls,
        sender: str,
        recipients: Iterable[str],
        subject: str,
        body: str,
        cc_recipients: Optional[Iterable[str]] = None,
        bcc_recipients: Optional[Iterable[str]] = None,
        is_html: bool = False,
        attachment_name: Optional[str] = None,
        attachment_base64: Optional[str] = None,
    ) -> "EmailMessage":
        """
        Create a validated email message.

        Args:
            sender: Sender address
            recipients: Primary recipients (at least one)
            subject: Subject line
            body: Message body
            cc_recipients: Carbon copy recipients
            bcc_recipients: Blind carbon copy recipients
            is_html: Whether the body is HTML
            attachment_name: Attachment file name
            attachment_base64: Base64 encoded attachment

        Returns:
            EmailMessage: New message instance

        Raises:
            MissingFieldError: If a required field is blank
        """
        return cls(
            sender=sender,
            recipients=recipients or (),
            subject=subject,
            body=body,
            cc_recipients=cc_recipients or (),
            bcc_recipients=bcc_recipients or (),
            is_html=is_html,
            attachment_name=attachment_name,
            attachment_base64=attachment_base64,
        )

    @classmethod
    def builder(cls) -> "EmailMessageBuilder":
        return EmailMessageBuilder()

    @property
    def destination(self) -> str:
        return self.sender

    @property
    def content(self) -> str:
        return json.dumps(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender": self.sender,
            "recipients": list(self.recipients),
            "ccRecipients": list(self.cc_recipients),
            "bccRecipients": list(self.bcc_recipients),
            "subject": self.subject,
            "body": self.body,
            "isHtml": self.is_html,
            "attachmentName": self.attachment_name,
            "attachmentBase64": self.attachment_base64,
        }

    @classmethod
    def from_json(cls, json_str: str) -> "EmailMessage":
        """
        Rebuild an email from its ``content`` JSON.

        Raises:
            ValidationException: If the document is not a valid email
        """
        data = _load_json(json_str)
        validate_payload(data, EMAIL_SCHEMA)
        return cls.create(
            sender=data["sender"],
            recipients=data["recipients"],
            subject=data["subject"],
            body=data["body"],
            cc_recipients=data.get("ccRecipients"),
            bcc_recipients=data.get("bccRecipients"),
            is_html=data.get("isHtml", False),
            attachment_name=data.get("attachmentName"),
            attachment_base64=data.get("attachmentBase64"),
        )


class EmailMessageBuilder:
    """Fluent builder for EmailMessage; validation happens in ``build``."""

    def __init__(self):
        self._fields: Dict[str, Any] = {}

    def _set(self, name: str, value: Any) -> "EmailMessageBuilder":
        self._fields[name] = value
        return self

    def sender(self, sender: str) -> "EmailMessageBuilder":
        return self._set("sender", sender)

    def recipients(self, recipients: Iterable[str]) -> "EmailMessageBuilder":
        return self._set("recipients", recipients)

    def cc_recipients(self, recipients: Iterable[str]) -> "EmailMessageBuilder":
        return self._set("cc_recipients", recipients)

    def bcc_recipients(self, recipients: Iterable[str]) -> "EmailMessageBuilder":
        return self._set("bcc_recipients", recipients)

    def subject(self, subject: str) -> "EmailMessageBuilder":
        return self._set("subject", subject)

    def body(self, body: str) -> "EmailMessageBuilder":
        return self._set("body", body)

    def is_html(self, is_html: bool = True) -> "EmailMessageBuilder":
        return self._set("is_html", is_html)

    def attachment(self, name: str, base64_data: str) -> "EmailMessageBuilder":
        self._set("attachment_name", name)
        return self._set("attachment_base64", base64_data)

    def build(self) -> EmailMessage:
        return EmailMessage.create(
            sender=self._fields.get("sender"),
            recipients=self._fields.get("recipients"),
            subject=self._fields.get("subject"),
            body=self._fields.get("body"),
            cc_recipients=self._fields.get("cc_recipients"),
            bcc_recipients=self._fields.get("bcc_recipients"),
            is_html=self._fields.get("is_html", False),
            attachment_name=self._fields.get("attachment_name"),
            attachment_base64=self._fields.get("attachment_base64"),
        )


@dataclass(frozen=True)
class Envelope:
    """
    Wire object carried over the broker.

    ``content`` is the payload's serialized content (possibly a nested JSON
    document) and ``sender`` tags the producing application.
    """

    content: str
    sender: str

    @classmethod
    def wrap(cls, message: MessageModel, sender: str) -> "Envelope":
        return cls(content=message.content, sender=sender)

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "sender": self.sender}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def to_bytes(self) -> bytes:
        """
        Serialize envelope to bytes for transport.

        Returns:
            bytes: UTF-8 encoded JSON
        """
        return self.to_json().encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Envelope":
        try:
            validate_payload(data, ENVELOPE_SCHEMA)
        except ValidationException as e:
            raise MessageDecodeError(
                f"Malformed envelope: {e.message}",
                details=e.details,
                cause=e,
            )
        return cls(content=data["content"], sender=data["sender"])

    @classmethod
    def from_bytes(cls, data: bytes, target: Optional[str] = None) -> "Envelope":
        """
        Parse an envelope from transport bytes.

        Args:
            data: Raw message body
            target: Queue or topic the body came from (for error context)

        Returns:
            Envelope: Decoded envelope

        Raises:
            MessageDecodeError: If the body is not a valid envelope
        """
        try:
            decoded = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise MessageDecodeError(
                f"Envelope is not valid JSON: {e}",
                target=target,
                cause=e,
            )
        if not isinstance(decoded, dict):
            raise MessageDecodeError(
                f"Envelope must be a JSON object, got {type(decoded).__name__}",
                target=target,
            )
        try:
            return cls.from_dict(decoded)
        except MessageDecodeError as e:
            e.target = target
            raise


def _load_json(json_str: str) -> Dict[str, Any]:
    try:
        data = json.loads(json_str)
    except ValueError as e:
        raise ValidationException(
            f"Payload is not valid JSON: {e}",
            code="SCHEMA_VALIDATION_ERROR",
            cause=e,
        )
    if not isinstance(data, dict):
        raise ValidationException(
            "Payload must be a JSON object",
            expected="object",
            code="SCHEMA_VALIDATION_ERROR",
        )
    return data
