"""
Model registry
Importing this package registers every table on Base.metadata
"""

from expense_approvals.models.company import Company
from expense_approvals.models.user import User, UserRole
from expense_approvals.models.approval_rule import ApprovalRule, ApprovalStep, ApprovalRuleType
from expense_approvals.models.expense import Expense, ExpenseStatus
from expense_approvals.models.approval import ApprovalRequest, ApprovalStatus, ApprovalAction
from expense_approvals.models.notification import Notification, NotificationType

__all__ = [
    "Company",
    "User",
    "UserRole",
    "ApprovalRule",
    "ApprovalStep",
    "ApprovalRuleType",
    "Expense",
    "ExpenseStatus",
    "ApprovalRequest",
    "ApprovalStatus",
    "ApprovalAction",
    "Notification",
    "NotificationType",
]
