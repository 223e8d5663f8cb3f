"""
Approval Request Model
One unit of pending or decided work for one approver on one expense
"""

from sqlalchemy import Column, Integer, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from expense_approvals.config.database import Base


class ApprovalStatus(str, enum.Enum):
    """Approval status"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalAction(str, enum.Enum):
    """Decision an approver can take"""
    APPROVE = "APPROVE"
    REJECT = "REJECT"


# step_number conventions
MANAGER_PRE_STEP = 0
FIRST_STEP = 1


class ApprovalRequest(Base):
    """Approval request model"""
    __tablename__ = "approval_requests"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Expense and Approver
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    
    # 0 = manager pre-step, 1..N = rule sequence, >= escalation offset = escalated copy
    step_number = Column(Integer, nullable=False)
    status = Column(Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False, index=True)
    
    comment = Column(Text, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    action_date = Column(DateTime, nullable=True)
    
    # Relationships
    expense = relationship("Expense", back_populates="approval_requests")
    approver = relationship("User", foreign_keys=[approver_id])
    
    def __repr__(self):
        return f"<ApprovalRequest expense={self.expense_id} step={self.step_number} - {self.status.value}>"
    
    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING
