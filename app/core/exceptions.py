"""
Custom exception classes for the AppForge generation service.
These exceptions provide meaningful error messages and HTTP status codes.
"""
from typing import List, Optional


class AppGeneratorException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class TemplateNotFoundException(AppGeneratorException):
    """Raised when a prompt template id is not in the registry."""

    def __init__(self, template_id: str):
        super().__init__(
            message=f"Template not found: {template_id}",
            status_code=404
        )
        self.template_id = template_id


class MissingVariablesException(AppGeneratorException):
    """Raised when required template variables are absent or blank."""

    def __init__(self, template_id: str, missing_variables: List[str]):
        super().__init__(
            message=f"Missing required variables for template '{template_id}': {', '.join(missing_variables)}",
            status_code=422
        )
        self.template_id = template_id
        self.missing_variables = list(missing_variables)


class ProviderException(AppGeneratorException):
    """Raised when an AI provider call fails or returns an unusable response."""

    def __init__(self, provider: str, error: str):
        super().__init__(
            message=f"AI provider '{provider}' error: {error}",
            status_code=502  # Bad Gateway
        )
        self.provider = provider
        self.error = error


class UnsupportedProviderException(AppGeneratorException):
    """Raised when a provider name is not one of the known providers."""

    def __init__(self, provider: str):
        super().__init__(
            message=f"Unsupported AI provider: {provider}",
            status_code=400
        )
        self.provider = provider


class PlanNotFoundException(AppGeneratorException):
    """Raised when a project plan type is not recognised."""

    def __init__(self, plan_type: str):
        super().__init__(
            message=f"Unknown project plan type: {plan_type}",
            status_code=404
        )
        self.plan_type = plan_type


class PhaseDependencyException(AppGeneratorException):
    """Raised when a plan's phase dependencies are unknown, cyclic or out of order."""

    def __init__(self, phase: str, missing: Optional[List[str]] = None, reason: Optional[str] = None):
        missing = list(missing or [])
        detail = reason or f"dependencies not satisfied: {', '.join(missing)}"
        super().__init__(
            message=f"Phase '{phase}' {detail}",
            status_code=422
        )
        self.phase = phase
        self.missing = missing


class SessionNotFoundException(AppGeneratorException):
    """Raised when a generation session does not exist."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Generation session not found: {session_id}",
            status_code=404
        )
        self.session_id = session_id


class UnauthorizedException(AppGeneratorException):
    """Raised when the caller does not own the requested resource."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"Not authorized to access {resource}: {resource_id}",
            status_code=403
        )
        self.resource = resource
        self.resource_id = resource_id


class InvalidStatusTransitionException(AppGeneratorException):
    """Raised when a session cannot move to the requested status."""

    def __init__(self, session_id: str, current_status: str, target_status: str):
        super().__init__(
            message=f"Cannot move session {session_id} from '{current_status}' to '{target_status}'",
            status_code=409  # Conflict
        )
        self.session_id = session_id
        self.current_status = current_status
        self.target_status = target_status


class GenerationInProgressException(AppGeneratorException):
    """Raised when trying to start a generation task that's already running."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Generation already in progress for session: {session_id}",
            status_code=409
        )
        self.session_id = session_id


class ValidationException(AppGeneratorException):
    """Raised when request data validation fails."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Validation error: {message}",
            status_code=400  # Bad Request
        )
