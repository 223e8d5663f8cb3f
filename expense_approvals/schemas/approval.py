"""
Approval Schemas
Pydantic models for approval decisions, escalation and workflow views
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from expense_approvals.models.approval import ApprovalStatus
from expense_approvals.models.expense import ExpenseStatus
from expense_approvals.schemas.approval_rule import ApprovalRuleResponse


class ApprovalDecisionCreate(BaseModel):
    """Schema for an approve/reject call"""
    comment: Optional[str] = Field(None, max_length=2000)


class ApprovalDecisionResponse(BaseModel):
    """Resulting expense status after a decision"""
    expense_id: int
    status: ExpenseStatus


class ApprovalRequestResponse(BaseModel):
    """Schema for approval request response"""
    id: int
    expense_id: int
    approver_id: int
    step_number: int
    status: ApprovalStatus
    comment: Optional[str] = None
    created_at: datetime
    action_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseSummary(BaseModel):
    """Expense fields shown alongside approval work"""
    id: int
    company_id: int
    submitter_id: int
    title: str
    amount: float
    status: ExpenseStatus
    approval_rule_id: Optional[int] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PendingApprovalResponse(BaseModel):
    """A pending request together with its expense"""
    request: ApprovalRequestResponse
    expense: ExpenseSummary


class ExpenseWorkflowResponse(BaseModel):
    """Full approval history of one expense"""
    expense: ExpenseSummary
    approval_rule: Optional[ApprovalRuleResponse] = None
    approval_requests: List[ApprovalRequestResponse] = []


class ManualEscalationCreate(BaseModel):
    """Schema for admin-driven escalation"""
    new_approver_id: int


class EscalationSweepCreate(BaseModel):
    """Schema for an on-demand escalation sweep"""
    timeout_hours: Optional[float] = Field(None, gt=0)


class EscalationSweepResponse(BaseModel):
    escalated_count: int
