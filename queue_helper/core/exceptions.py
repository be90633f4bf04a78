"""
Custom Exceptions Module
========================
Centralized exception definitions for queue-helper.

This module defines a hierarchy of exceptions for:
- Broker connection errors
- Alias bookkeeping errors
- Messaging errors (delivery, decoding, consuming)
- Payload validation errors
"""

from typing import Optional, Dict, Any


class QueueHelperException(Exception):
    """
    Base exception for all queue-helper errors.

    Provides structured error information including:
    - Error code for programmatic handling
    - Additional context data
    - Cause tracking for exception chaining
    """

    def __init__(
        self,
        message: str,
        code: str = "QUEUE_HELPER_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional context data
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging.

        Returns:
            Dict[str, Any]: Exception data as dictionary
        """
        result = {
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class BrokerConnectionError(QueueHelperException):
    """Exception raised when a broker connection cannot be established."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        code: str = "CONNECTION_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """
        Initialize connection exception.

        Args:
            message: Human-readable error message
            key: Connection key of the endpoint involved
            code: Machine-readable error code
            details: Additional context data
            cause: Original exception that caused this error
        """
        super().__init__(message, code, details, cause)
        self.key = key

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.key:
            result["key"] = self.key
        return result


class AliasNotFoundError(QueueHelperException):
    """Exception raised when an alias was never connected."""

    def __init__(
        self,
        alias: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"No broker bound to alias: {alias}", "ALIAS_NOT_FOUND", details
        )
        self.alias = alias

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["alias"] = self.alias
        return result


class UnsupportedOperationError(QueueHelperException):
    """Exception raised when a strategy does not implement an operation."""

    def __init__(
        self,
        operation: str,
        broker_type: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"'{operation}' is not implemented for {broker_type}",
            "NOT_IMPLEMENTED",
            details,
        )
        self.operation = operation
        self.broker_type = broker_type


class MessageException(QueueHelperException):
    """Exception raised during message processing."""

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        code: str = "MESSAGE_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """
        Initialize message exception.

        Args:
            message: Human-readable error message
            target: Name of the queue or topic involved
            code: Machine-readable error code
            details: Additional context data
            cause: Original exception that caused this error
        """
        super().__init__(message, code, details, cause)
        self.target = target

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.target:
            result["target"] = self.target
        return result


class MessageDeliveryError(MessageException):
    """Exception raised when message delivery fails."""

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            message, target, "MESSAGE_DELIVERY_ERROR", details, cause
        )


class MessageDecodeError(MessageException):
    """Exception raised when a received envelope cannot be decoded."""

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            message, target, "MESSAGE_DECODE_ERROR", details, cause
        )


class ConsumerError(MessageException):
    """Exception raised when a consumer cannot start listening."""

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, target, "CONSUMER_ERROR", details, cause)


class ValidationException(QueueHelperException):
    """Exception raised during payload validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[str] = None,
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """
        Initialize validation exception.

        Args:
            message: Human-readable error message
            field: Name of the field that failed validation
            expected: Description of expected value/format
            code: Machine-readable error code
            details: Additional context data
            cause: Original exception that caused this error
        """
        super().__init__(message, code, details, cause)
        self.field = field
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.expected:
            result["expected"] = self.expected
        return result


class MissingFieldError(ValidationException):
    """Exception raised when a required payload field is blank or missing."""

    def __init__(
        self,
        field: str,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message or f"Missing required field: {field}",
            field=field,
            expected="non-blank value",
            code="MISSING_REQUIRED_FIELD",
            details=details,
        )
