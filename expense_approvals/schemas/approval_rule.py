"""
Approval Rule Schemas
Pydantic models for approval rule administration
"""

from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime

from expense_approvals.models.approval_rule import ApprovalRuleType


class ApprovalStepCreate(BaseModel):
    """One approver position in a rule's chain"""
    sequence: int = Field(..., ge=1, description="Chain order, starting at 1")
    approver_id: int
    is_required: bool = True


class ApprovalRuleBase(BaseModel):
    """Fields shared by rule creation and responses"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    rule_type: ApprovalRuleType
    min_amount: Optional[float] = Field(None, ge=0)
    max_amount: Optional[float] = Field(None, ge=0)
    percentage_threshold: Optional[int] = Field(None, ge=1, le=100)
    specific_approver_id: Optional[int] = None
    require_manager_first: bool = False


class ApprovalRuleCreate(ApprovalRuleBase):
    """Schema for creating an approval rule"""
    is_active: bool = True
    approval_steps: List[ApprovalStepCreate] = Field(..., min_length=1)
    
    @model_validator(mode='after')
    def validate_steps(self):
        """Sequences must be unique within the rule"""
        sequences = [step.sequence for step in self.approval_steps]
        if len(sequences) != len(set(sequences)):
            raise ValueError("approval step sequences must be unique")
        return self


class ApprovalRuleUpdate(BaseModel):
    """Schema for a partial rule update; the step chain is fixed after creation"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    min_amount: Optional[float] = Field(None, ge=0)
    max_amount: Optional[float] = Field(None, ge=0)
    percentage_threshold: Optional[int] = Field(None, ge=1, le=100)
    specific_approver_id: Optional[int] = None
    require_manager_first: Optional[bool] = None


class ApprovalStepResponse(BaseModel):
    """Schema for approval step response"""
    id: int
    sequence: int
    approver_id: int
    is_required: bool

    class Config:
        from_attributes = True


class ApprovalRuleResponse(ApprovalRuleBase):
    """Schema for approval rule response"""
    id: int
    company_id: int
    is_active: bool
    approval_steps: List[ApprovalStepResponse] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
