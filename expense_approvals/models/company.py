"""
Company Model
Tenant that owns users, approval rules and expenses
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from expense_approvals.config.database import Base


class Company(Base):
    """Company model"""
    __tablename__ = "companies"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    users = relationship("User", back_populates="company")
    approval_rules = relationship("ApprovalRule", back_populates="company")
    
    def __repr__(self):
        return f"<Company {self.name} ({self.currency})>"
