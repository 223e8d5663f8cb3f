"""
Approval Rule Models
Company-scoped approval policies and their ordered approver chains
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from expense_approvals.config.database import Base


class ApprovalRuleType(str, enum.Enum):
    """Approval policies"""
    SEQUENTIAL = "SEQUENTIAL"
    PERCENTAGE = "PERCENTAGE"
    SPECIFIC_APPROVER = "SPECIFIC_APPROVER"
    HYBRID = "HYBRID"


class ApprovalRule(Base):
    """Approval rule model"""
    __tablename__ = "approval_rules"
    
    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    rule_type = Column(Enum(ApprovalRuleType), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    
    # Inclusive amount bounds in company currency; None means unbounded
    min_amount = Column(Float, nullable=True)
    max_amount = Column(Float, nullable=True)
    
    # Policy parameters
    percentage_threshold = Column(Integer, nullable=True)
    specific_approver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    require_manager_first = Column(Boolean, default=False, nullable=False)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    company = relationship("Company", back_populates="approval_rules")
    specific_approver = relationship("User", foreign_keys=[specific_approver_id])
    approval_steps = relationship(
        "ApprovalStep",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.sequence"
    )
    
    def __repr__(self):
        return f"<ApprovalRule {self.name} - {self.rule_type.value}>"
    
    def step_for_sequence(self, sequence: int):
        for step in self.approval_steps:
            if step.sequence == sequence:
                return step
        return None
    
    @property
    def first_step(self):
        if not self.approval_steps:
            return None
        return min(self.approval_steps, key=lambda step: step.sequence)
    
    @property
    def step_approver_ids(self) -> set:
        return {step.approver_id for step in self.approval_steps}


class ApprovalStep(Base):
    """One ordered position in a rule's approver chain"""
    __tablename__ = "approval_steps"
    __table_args__ = (
        UniqueConstraint("rule_id", "sequence", name="uq_approval_step_sequence"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("approval_rules.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    
    # Informational only, completion logic does not consult it
    is_required = Column(Boolean, default=True, nullable=False)
    
    # Relationships
    rule = relationship("ApprovalRule", back_populates="approval_steps")
    approver = relationship("User", foreign_keys=[approver_id])
    
    def __repr__(self):
        return f"<ApprovalStep {self.sequence} -> user {self.approver_id}>"
