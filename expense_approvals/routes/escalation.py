"""
Escalation Routes
On-demand escalation sweep and manual re-routing (admin only)
"""

from datetime import timedelta
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from expense_approvals.config.database import get_db
from expense_approvals.services.auth_service import auth_service
from expense_approvals.services.escalation_scheduler import escalation_scheduler
from expense_approvals.services.exceptions import ForbiddenError
from expense_approvals.models.user import User, UserRole
from expense_approvals.schemas.approval import (
    ApprovalRequestResponse,
    EscalationSweepCreate,
    EscalationSweepResponse,
    ManualEscalationCreate,
)

router = APIRouter()


@router.post("/run", response_model=EscalationSweepResponse)
async def run_escalations(
    sweep: EscalationSweepCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Run the timeout sweep now instead of waiting for the scheduler"""
    if current_user.role != UserRole.ADMIN:
        raise ForbiddenError("Only admins can run escalations")
    
    timeout = timedelta(hours=sweep.timeout_hours) if sweep.timeout_hours else None
    count = escalation_scheduler.run_escalation_sweep(db, timeout=timeout)
    return EscalationSweepResponse(escalated_count=count)


@router.post(
    "/{request_id}",
    response_model=ApprovalRequestResponse,
    status_code=status.HTTP_201_CREATED
)
async def escalate_request(
    request_id: int,
    escalation: ManualEscalationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Route a pending request to another approver"""
    return escalation_scheduler.manual_escalation(
        db, current_user.id, request_id, escalation.new_approver_id
    )
