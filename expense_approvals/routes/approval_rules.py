"""
Approval Rule Routes
Company rule administration
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from expense_approvals.config.database import get_db
from expense_approvals.services.auth_service import auth_service
from expense_approvals.services.rule_catalog import rule_catalog
from expense_approvals.models.user import User
from expense_approvals.schemas.approval_rule import (
    ApprovalRuleCreate,
    ApprovalRuleUpdate,
    ApprovalRuleResponse,
)

router = APIRouter()


@router.get("", response_model=List[ApprovalRuleResponse])
async def list_rules(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return rule_catalog.list_rules(db, current_user.id)


@router.post("", response_model=ApprovalRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    rule_data: ApprovalRuleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Create an approval rule (admin only)"""
    return rule_catalog.create_rule(db, current_user.id, rule_data)


@router.get("/{rule_id}", response_model=ApprovalRuleResponse)
async def get_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return rule_catalog.get_rule(db, current_user.id, rule_id)


@router.patch("/{rule_id}", response_model=ApprovalRuleResponse)
async def update_rule(
    rule_id: int,
    rule_data: ApprovalRuleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Update an approval rule (admin only)"""
    return rule_catalog.update_rule(db, current_user.id, rule_id, rule_data)


@router.delete("/{rule_id}")
async def delete_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Delete an approval rule that no active expense uses (admin only)"""
    rule_catalog.delete_rule(db, current_user.id, rule_id)
    return {"success": True}
