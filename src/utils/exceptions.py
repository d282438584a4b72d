"""
Workflow Exceptions
Typed errors raised by the approval engine and the request store
"""

from typing import Optional


class ApprovalWorkflowError(Exception):
    """Base class for approval workflow errors"""

    code = "workflow_error"
    status_code = 400

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.request_id = request_id


class AuthorizationError(ApprovalWorkflowError):
    """The acting user may not decide on this request right now"""

    code = "not_authorized"
    status_code = 403


class InvalidStateError(ApprovalWorkflowError):
    """There is no pending step left to decide"""

    code = "nothing_to_approve"
    status_code = 409


class RequestNotFoundError(ApprovalWorkflowError):
    """Request id does not resolve in the store"""

    code = "request_not_found"
    status_code = 404


class ConflictError(ApprovalWorkflowError):
    """The request changed between read and write"""

    code = "conflict"
    status_code = 409


class StoreWriteError(ApprovalWorkflowError):
    """Persisting the request failed and was rolled back"""

    code = "store_write_failed"
    status_code = 500
