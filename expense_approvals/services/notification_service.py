"""
Notification Service
Records in-app notifications once an approval transaction has committed.
Delivery over email or websockets is handled elsewhere.
"""

from sqlalchemy.orm import Session
from typing import Iterable, Optional

from expense_approvals.models.notification import Notification, NotificationType
from expense_approvals.models.expense import Expense
from expense_approvals.models.approval import ApprovalRequest
from expense_approvals.utils.logger import setup_logger

logger = setup_logger()


class NotificationService:
    """Service for managing notifications"""

    def notify_approval_required(self, db: Session, expense: Expense, requests: Iterable[ApprovalRequest]):
        """
        Notify approvers that an expense is waiting for them

        Args:
            db: Database session
            expense: Expense needing approval
            requests: Newly opened requests
        """
        approver_ids = sorted({request.approver_id for request in requests})
        if not approver_ids:
            return

        for approver_id in approver_ids:
            db.add(Notification(
                user_id=approver_id,
                type=NotificationType.APPROVAL_REQUIRED,
                title="New Expense Approval Request",
                message=f"Expense \"{expense.title}\" ({expense.amount:,.2f}) requires your approval.",
                expense_id=expense.id
            ))
        db.commit()

        logger.info(f"Notified {len(approver_ids)} approver(s) for expense {expense.id}")

    def notify_expense_approved(self, db: Session, expense: Expense, comment: Optional[str] = None):
        """
        Notify the submitter that their expense was approved

        Args:
            db: Database session
            expense: Approved expense
            comment: Comment left with the final approval
        """
        message = f"Your expense \"{expense.title}\" has been approved."
        if comment:
            message += f" Comments: {comment}"

        db.add(Notification(
            user_id=expense.submitter_id,
            type=NotificationType.EXPENSE_APPROVED,
            title="Expense Approved",
            message=message,
            expense_id=expense.id
        ))
        db.commit()

        logger.info(f"Notified user {expense.submitter_id} about expense {expense.id} approval")

    def notify_expense_rejected(self, db: Session, expense: Expense, comment: Optional[str] = None):
        """
        Notify the submitter that their expense was rejected

        Args:
            db: Database session
            expense: Rejected expense
            comment: Rejection reason given by the approver
        """
        message = f"Your expense \"{expense.title}\" has been rejected."
        if comment:
            message += f" Reason: {comment}"

        db.add(Notification(
            user_id=expense.submitter_id,
            type=NotificationType.EXPENSE_REJECTED,
            title="Expense Rejected",
            message=message,
            expense_id=expense.id
        ))
        db.commit()

        logger.info(f"Notified user {expense.submitter_id} about expense {expense.id} rejection")

    def notify_escalated(self, db: Session, request: ApprovalRequest, reason: str):
        """Tell an escalation target that a request has been routed to them"""
        db.add(Notification(
            user_id=request.approver_id,
            type=NotificationType.APPROVAL_ESCALATED,
            title="Approval Escalated To You",
            message=reason,
            expense_id=request.expense_id
        ))
        db.commit()

        logger.info(f"Notified user {request.approver_id} about escalated request on expense {request.expense_id}")


# Create singleton instance
notification_service = NotificationService()
