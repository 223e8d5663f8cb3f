"""
Approval workflow errors
Transport-independent error kinds; the HTTP layer maps them to status codes
"""

from typing import Optional


class ApprovalError(Exception):
    """Base error for the approval workflow."""
    
    def __init__(
        self,
        message: str,
        expense_id: Optional[int] = None,
        request_id: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.expense_id = expense_id
        self.request_id = request_id


class NotFoundError(ApprovalError):
    """Actor, rule, expense or request is absent, or the request is no longer pending."""


class ForbiddenError(ApprovalError):
    """Actor lacks the role or relationship required for the action."""


class InvalidArgumentError(ApprovalError):
    """Malformed rule definition or approver assignment."""


class ConflictError(ApprovalError):
    """Operation clashes with live data, e.g. deleting a rule still in use."""
