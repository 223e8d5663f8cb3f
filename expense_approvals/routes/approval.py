"""
Approval Routes
Approve/reject decisions, pending work and workflow history
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from expense_approvals.config.database import get_db
from expense_approvals.services.auth_service import auth_service
from expense_approvals.services.approval_coordinator import approval_coordinator
from expense_approvals.models.user import User
from expense_approvals.models.approval import ApprovalAction
from expense_approvals.schemas.approval import (
    ApprovalDecisionCreate,
    ApprovalDecisionResponse,
    ApprovalRequestResponse,
    ExpenseSummary,
    ExpenseWorkflowResponse,
    PendingApprovalResponse,
)
from expense_approvals.schemas.approval_rule import ApprovalRuleResponse
from expense_approvals.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


@router.get("/pending", response_model=List[PendingApprovalResponse])
async def get_pending_approvals(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Pending approval requests waiting on the current user, oldest first"""
    requests = approval_coordinator.get_pending_approvals(db, current_user.id)
    
    logger.info(f"User {current_user.id} viewing {len(requests)} pending approvals")
    
    return [
        PendingApprovalResponse(
            request=ApprovalRequestResponse.model_validate(request),
            expense=ExpenseSummary.model_validate(request.expense)
        )
        for request in requests
    ]


@router.post("/{expense_id}/approve", response_model=ApprovalDecisionResponse)
async def approve_expense(
    expense_id: int,
    decision: ApprovalDecisionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Approve the current user's pending request on an expense"""
    return approval_coordinator.process_decision(
        db, current_user.id, expense_id, ApprovalAction.APPROVE, decision.comment
    )


@router.post("/{expense_id}/reject", response_model=ApprovalDecisionResponse)
async def reject_expense(
    expense_id: int,
    decision: ApprovalDecisionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Reject an expense; a single rejection is final"""
    return approval_coordinator.process_decision(
        db, current_user.id, expense_id, ApprovalAction.REJECT, decision.comment
    )


@router.post(
    "/expenses/{expense_id}/submit",
    response_model=ExpenseWorkflowResponse,
    status_code=status.HTTP_201_CREATED
)
async def submit_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Submit a draft expense and open its first approval requests"""
    approval_coordinator.submit_expense(db, current_user.id, expense_id)
    return _workflow_response(approval_coordinator.get_expense_workflow(db, current_user.id, expense_id))


@router.get("/expenses/{expense_id}/workflow", response_model=ExpenseWorkflowResponse)
async def get_expense_workflow(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Rule and full request history of an expense"""
    return _workflow_response(approval_coordinator.get_expense_workflow(db, current_user.id, expense_id))


def _workflow_response(workflow: dict) -> ExpenseWorkflowResponse:
    rule = workflow["approval_rule"]
    return ExpenseWorkflowResponse(
        expense=ExpenseSummary.model_validate(workflow["expense"]),
        approval_rule=ApprovalRuleResponse.model_validate(rule) if rule is not None else None,
        approval_requests=[
            ApprovalRequestResponse.model_validate(request)
            for request in workflow["approval_requests"]
        ]
    )
