"""
Escalation Scheduler
Re-routes approval requests that have waited past the timeout.

The sweep is stateless and is run by an external scheduler (cron, the
``run_escalations`` entry point) or on demand by an admin. Escalation adds a
new request for the approver's manager, or an admin of the company, while the
original request stays pending and actionable.
"""

from sqlalchemy.orm import Session, selectinload
from datetime import datetime, timedelta
from typing import Optional

from expense_approvals.config.settings import settings
from expense_approvals.models.user import User, UserRole
from expense_approvals.models.expense import Expense, ExpenseStatus
from expense_approvals.models.approval import ApprovalRequest, ApprovalStatus
from expense_approvals.services.exceptions import NotFoundError, ForbiddenError, InvalidArgumentError, ConflictError
from expense_approvals.services.request_factory import request_factory
from expense_approvals.services.notification_service import notification_service
from expense_approvals.utils.logger import setup_logger, log_audit

logger = setup_logger()


class EscalationScheduler:
    """Timeout-driven and manual escalation of approval requests"""

    def __init__(self):
        self.request_factory = request_factory
        self.notification_service = notification_service

    def run_escalation_sweep(
        self,
        db: Session,
        timeout: Optional[timedelta] = None,
        now: Optional[datetime] = None
    ) -> int:
        """
        Escalate every pending request older than the timeout

        Each request is escalated in its own transaction. A request that
        cannot be escalated is logged and skipped; it is retried on the next
        sweep.

        Args:
            db: Database session
            timeout: Age after which a pending request escalates
                (defaults to ESCALATION_TIMEOUT_HOURS)
            now: Reference time, defaults to the current UTC time

        Returns:
            int: Number of escalated requests created
        """
        if timeout is None:
            timeout = timedelta(hours=settings.ESCALATION_TIMEOUT_HOURS)
        now = now or datetime.utcnow()
        cutoff = now - timeout

        overdue_ids = [
            row.id for row in db.query(ApprovalRequest.id).join(
                Expense, ApprovalRequest.expense_id == Expense.id
            ).filter(
                ApprovalRequest.status == ApprovalStatus.PENDING,
                ApprovalRequest.created_at <= cutoff,
                Expense.status == ExpenseStatus.PENDING_APPROVAL
            ).order_by(ApprovalRequest.created_at.asc(), ApprovalRequest.id.asc()).all()
        ]

        logger.info(f"Running escalation check: {len(overdue_ids)} pending request(s) older than {timeout}")

        escalated_count = 0
        for request_id in overdue_ids:
            try:
                if self._escalate_overdue(db, request_id, now):
                    escalated_count += 1
            except Exception:
                db.rollback()
                logger.exception(f"Escalation of approval request {request_id} failed, will retry on next sweep")

        logger.info(f"Escalation check finished: {escalated_count} request(s) escalated")
        return escalated_count

    def manual_escalation(
        self,
        db: Session,
        admin_id: int,
        request_id: int,
        new_approver_id: int
    ) -> ApprovalRequest:
        """
        Route a pending request to a chosen approver (admin only)

        Raises:
            NotFoundError: unknown admin, or request missing / no longer pending
            ForbiddenError: actor is not an admin
            InvalidArgumentError: new approver unknown or in another company
            ConflictError: the escalation step is already open for the expense
        """
        try:
            admin = db.query(User).filter(User.id == admin_id).first()
            if not admin:
                raise NotFoundError(f"User {admin_id} not found")
            if admin.role != UserRole.ADMIN:
                raise ForbiddenError("Only admins can manually escalate approvals")

            request = self._lock_request(db, request_id)
            if request is None or not request.is_pending or not request.expense.is_pending:
                raise NotFoundError("Approval request not found or not pending", request_id=request_id)

            new_approver = db.query(User).filter(User.id == new_approver_id).first()
            if not new_approver or new_approver.company_id != request.expense.company_id:
                raise InvalidArgumentError(f"Invalid approver: {new_approver_id}", request_id=request_id)

            escalation_step = self._escalation_step(request)
            if self._has_pending_at(db, request.expense_id, escalation_step):
                raise ConflictError(
                    f"Step {escalation_step} is already pending for expense {request.expense_id}",
                    expense_id=request.expense_id,
                    request_id=request.id
                )

            reason = f"Manually escalated by admin {admin.name}"
            escalated = self.request_factory.open_request(
                db, request.expense_id, new_approver.id, escalation_step, comment=reason
            )
            request.comment = f"Manually escalated by {admin.name} on {datetime.utcnow().isoformat()}"
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(escalated)
        logger.info(f"Approval request {request_id} manually escalated to user {new_approver_id}")
        log_audit(admin_id, "APPROVAL_ESCALATED", f"request_id={request_id} new_request_id={escalated.id} approver_id={new_approver_id}")

        self._safe_notify(db, escalated, reason)
        return escalated

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _escalate_overdue(self, db: Session, request_id: int, now: datetime) -> Optional[ApprovalRequest]:
        request = self._lock_request(db, request_id)
        if request is None or not request.is_pending or not request.expense.is_pending:
            db.rollback()
            return None

        escalation_step = self._escalation_step(request)
        if self._has_pending_at(db, request.expense_id, escalation_step):
            # Already escalated on an earlier sweep
            db.rollback()
            return None

        approver = request.approver
        target = self._find_escalation_target(db, approver, request.expense)
        if target is None:
            logger.warning(f"No escalation target found for approval request {request.id}")
            db.rollback()
            return None

        reason = f"Escalated from {approver.name} due to timeout"
        escalated = self.request_factory.open_request(
            db, request.expense_id, target.id, escalation_step,
            comment=reason, created_at=now
        )
        request.comment = f"Escalated to {target.name} on {now.isoformat()}"
        db.commit()

        logger.info(f"Escalated approval request {request.id} to user {target.id} at step {escalation_step}")
        log_audit(None, "APPROVAL_ESCALATED", f"request_id={request.id} new_request_id={escalated.id} approver_id={target.id}")

        self._safe_notify(db, escalated, reason)
        return escalated

    def _find_escalation_target(self, db: Session, approver: User, expense: Expense) -> Optional[User]:
        """The approver's manager, otherwise the company's first admin"""
        if approver.manager_id is not None and approver.manager_id != approver.id:
            manager = db.query(User).filter(User.id == approver.manager_id).first()
            if manager is not None:
                return manager

        return db.query(User).filter(
            User.role == UserRole.ADMIN,
            User.company_id == expense.company_id,
            User.id != approver.id
        ).order_by(User.id.asc()).first()

    def _lock_request(self, db: Session, request_id: int) -> Optional[ApprovalRequest]:
        return db.query(ApprovalRequest).options(
            selectinload(ApprovalRequest.expense),
            selectinload(ApprovalRequest.approver)
        ).filter(
            ApprovalRequest.id == request_id
        ).with_for_update().populate_existing().first()

    def _escalation_step(self, request: ApprovalRequest) -> int:
        return request.step_number + settings.ESCALATION_STEP_OFFSET

    def _has_pending_at(self, db: Session, expense_id: int, step_number: int) -> bool:
        return db.query(ApprovalRequest.id).filter(
            ApprovalRequest.expense_id == expense_id,
            ApprovalRequest.step_number == step_number,
            ApprovalRequest.status == ApprovalStatus.PENDING
        ).first() is not None

    def _safe_notify(self, db: Session, escalated: ApprovalRequest, reason: str):
        # Escalation is already committed at this point
        try:
            self.notification_service.notify_escalated(db, escalated, reason)
        except Exception:
            db.rollback()
            logger.exception(f"Failed to notify escalation target for request {escalated.id}")


# Create singleton instance
escalation_scheduler = EscalationScheduler()
