"""
Expense Model
The parts of a submitted expense claim the approval workflow reads and updates
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from expense_approvals.config.database import Base


class ExpenseStatus(str, enum.Enum):
    """Expense status"""
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# Statuses that keep a rule referenced and undeletable
ACTIVE_EXPENSE_STATUSES = (ExpenseStatus.DRAFT, ExpenseStatus.PENDING_APPROVAL)


class Expense(Base):
    """Expense model"""
    __tablename__ = "expenses"
    
    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    submitter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    
    title = Column(String, nullable=False)
    # Already converted to the company currency
    amount = Column(Float, nullable=False)
    
    status = Column(Enum(ExpenseStatus), default=ExpenseStatus.DRAFT, nullable=False)
    
    # Fixed at submission time, later rule edits never re-route the expense
    approval_rule_id = Column(Integer, ForeignKey("approval_rules.id"), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    
    # Relationships
    submitter = relationship("User", foreign_keys=[submitter_id])
    approval_rule = relationship("ApprovalRule")
    approval_requests = relationship(
        "ApprovalRequest",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ApprovalRequest.created_at"
    )
    
    def __repr__(self):
        return f"<Expense {self.id} - {self.amount} - {self.status.value}>"
    
    @property
    def is_pending(self) -> bool:
        return self.status == ExpenseStatus.PENDING_APPROVAL
