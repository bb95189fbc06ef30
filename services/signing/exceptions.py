"""
Signing Integration Exceptions

Typed failures for the work-item → signature-request pipeline.
Every remote or validation failure surfaces as one of these so the
UI layer can render a message (and a retry action where it helps).
"""

from typing import Any, Dict, Optional

import requests


class SigningError(Exception):
    """Base exception for all signing integration errors."""

    retryable = False

    def __init__(self, message: str, service: str = None):
        self.service = service
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return str(self)


class ConfigurationError(SigningError):
    """Raised when column rules or settings are invalid."""
    pass


class AuthenticationError(SigningError):
    """
    Raised when a credential to either remote service is missing or rejected.
    """
    def __init__(self, message: str, service: str = None, status_code: int = None):
        self.status_code = status_code
        super().__init__(message, service=service)


class NotFoundError(SigningError):
    """
    Raised when an item, template, asset or submission does not exist.
    """
    def __init__(self, message: str, service: str = None, resource: str = None):
        self.resource = resource
        super().__init__(message, service=service)


class ValidationError(SigningError):
    """
    Raised when an assignment is incomplete or a payload is malformed.

    `role_id` names the offending signer role when there is one.
    """
    def __init__(self, message: str, role_id: str = None, field: str = None, service: str = None):
        self.role_id = role_id
        self.field = field
        super().__init__(message, service=service)


class ConnectivityError(SigningError):
    """Raised when a remote service cannot be reached."""

    retryable = True


class RemoteServiceError(SigningError):
    """
    Raised when a remote service answers with an unexpected failure.

    Wraps the underlying response with context.
    """

    retryable = True

    def __init__(self, message: str, service: str = None, status_code: int = None, response_body: str = None):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, service=service)


class ParseError(SigningError):
    """
    A structured column payload could not be parsed.

    Never propagates out of extraction: it is logged, collected and the
    column contributes zero entries.
    """
    def __init__(self, message: str, column_id: str = None, column_title: str = None):
        self.column_id = column_id
        self.column_title = column_title
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'column_id': self.column_id,
            'column_title': self.column_title,
            'message': str(self)
        }


def _format_validation_body(body: Any) -> Optional[str]:
    """Flatten a 400/422 response body into readable text."""
    if not isinstance(body, dict):
        return None

    errors = body.get('errors')
    if isinstance(errors, dict) and errors:
        parts = []
        for field_name, messages in errors.items():
            if isinstance(messages, (list, tuple)):
                messages = ', '.join(str(m) for m in messages)
            parts.append(f"{field_name}: {messages}")
        return '; '.join(parts)

    return body.get('message') or body.get('error')


def from_request_exception(e: requests.exceptions.RequestException, service: str, action: str) -> SigningError:
    """
    Translate a requests failure into the signing error taxonomy.

    Args:
        e: The exception raised by requests
        service: Remote service name used in messages ('DocuSeal', 'monday.com')
        action: Short description of what was attempted

    Returns:
        The typed exception to raise
    """
    if isinstance(e, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return ConnectivityError(f"Cannot reach {service} while trying to {action}: {e}", service=service)

    response = getattr(e, 'response', None)
    status_code = response.status_code if response is not None else None
    error_body = None
    parsed_body = None

    if response is not None:
        error_body = response.text
        try:
            parsed_body = response.json()
        except ValueError:
            parsed_body = None

    if status_code in (401, 403):
        return AuthenticationError(
            f"Not authorized to {action} on {service}. Check the configured credential.",
            service=service,
            status_code=status_code
        )

    if status_code == 404:
        return NotFoundError(f"Not found while trying to {action} on {service}", service=service)

    if status_code in (400, 422):
        detail = _format_validation_body(parsed_body) or 'invalid request data'
        return ValidationError(f"{service} rejected the request to {action}: {detail}", service=service)

    return RemoteServiceError(
        f"Failed to {action} on {service}: {e}",
        service=service,
        status_code=status_code,
        response_body=error_body
    )
