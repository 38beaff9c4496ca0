"""Exception hierarchy for quillflow."""

from __future__ import annotations

from typing import Iterable, Optional


class QuillflowError(Exception):
    """Base exception for all quillflow errors."""

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class RequestNotFound(QuillflowError):
    """Raised when a content request id does not exist."""

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Content request not found: {request_id}")


class InvalidStatusTransition(QuillflowError):
    """Raised when an action is not allowed from the current status."""

    def __init__(self, request_id: int, status: str, action: str, allowed: Iterable[str] = ()):
        self.request_id = request_id
        self.status = status
        self.action = action
        allowed_list = ", ".join(sorted(str(a) for a in allowed))
        message = f"Cannot {action} request {request_id} with status: {status}"
        if allowed_list:
            message += f" (allowed: {allowed_list})"
        super().__init__(message)


class TenantNotFound(QuillflowError):
    """Raised when a step needs a tenant profile that is not configured."""

    def __init__(self, tenant_id: int):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not found: {tenant_id}")


class StepOutputError(QuillflowError):
    """Raised when a collaborator returns output a step cannot use."""


class CollaboratorError(QuillflowError):
    """Raised when an external collaborator call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class DirectiveNotFound(CollaboratorError):
    """Raised when a content directive prompt file is missing."""


class PublishError(CollaboratorError):
    """Raised when the publishing collaborator rejects an article."""
