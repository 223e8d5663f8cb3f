"""
User Model
Represents company users and the reporting line used for approvals
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from expense_approvals.config.database import Base
from expense_approvals.services.exceptions import InvalidArgumentError


class UserRole(str, enum.Enum):
    """User roles"""
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


class User(Base):
    """User model"""
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    
    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)
    
    # Reporting line
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    
    is_active = Column(Boolean, default=True)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    company = relationship("Company", back_populates="users")
    manager = relationship("User", remote_side=[id], foreign_keys=[manager_id])
    
    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"
    
    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
    
    def set_manager(self, manager: "User"):
        """Assign a manager, refusing self-management and cross-company lines"""
        if manager is not None:
            if manager is self or (manager.id is not None and manager.id == self.id):
                raise InvalidArgumentError("A user cannot be their own manager")
            if manager.company_id != self.company_id:
                raise InvalidArgumentError("Manager must belong to the same company")
        self.manager = manager
        self.manager_id = manager.id if manager is not None else None
