"""Base exceptions for stepflow."""

from typing import Any, Dict, List, Optional


class StepflowException(Exception):
    """Base exception for all stepflow errors outside a running execution."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(StepflowException):
    """Raised when there's a configuration error."""
    pass


class ValidationError(StepflowException):
    """Raised when validation fails."""

    status_code = 400


class NotFoundError(StepflowException):
    """Raised when a resource is not found."""

    status_code = 404


class NodeRegistrationError(StepflowException):
    """Raised when a node definition cannot be registered."""
    pass


class WorkflowValidationError(ValidationError):
    """Raised when a workflow graph fails structural validation."""

    def __init__(self, errors: List[str]):
        super().__init__(
            f"Workflow validation failed: {'; '.join(errors)}",
            details={"errors": errors},
        )
        self.errors = errors


class WebhookError(StepflowException):
    """Raised when an incoming webhook cannot start a run."""

    status_code = 400


class WebhookMethodNotAllowedError(WebhookError):
    """Raised when the request method does not match the trigger."""

    status_code = 405


class WebhookSignatureError(WebhookError):
    """Raised when the request signature is missing or invalid."""

    status_code = 401
