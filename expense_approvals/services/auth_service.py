"""
Identity Service
Resolves the acting user for HTTP calls.

Authentication happens upstream (API gateway / SSO); requests reach this
service with the authenticated user's id in the ``X-User-Id`` header.
"""

from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from expense_approvals.config.database import get_db
from expense_approvals.models.user import User
from expense_approvals.utils.logger import setup_logger

logger = setup_logger()


class AuthService:
    """Identity resolution for route dependencies"""
    
    async def get_current_user(
        self,
        x_user_id: Optional[int] = Header(None),
        db: Session = Depends(get_db)
    ) -> User:
        """
        Get the acting user from the gateway header
        
        Args:
            x_user_id: Authenticated user id forwarded by the gateway
            db: Database session
            
        Returns:
            User: Current user
            
        Raises:
            HTTPException: If the header is missing or the user is unknown
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not identify the calling user"
        )
        
        if x_user_id is None:
            raise credentials_exception
        
        user = db.query(User).filter(User.id == x_user_id).first()
        if user is None:
            logger.warning(f"Request with unknown user id {x_user_id}")
            raise credentials_exception
        
        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User account is inactive"
            )
        
        return user


# Create singleton instance
auth_service = AuthService()
