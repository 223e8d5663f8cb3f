"""
Approval Coordinator
Runs approve/reject decisions and expense submission end to end:
permission checks, one atomic state change, completion evaluation and,
once committed, notifications.
"""

from sqlalchemy.orm import Session, selectinload
from datetime import datetime
from typing import List, Optional, Tuple, Union

from expense_approvals.config.settings import settings
from expense_approvals.models.user import User
from expense_approvals.models.expense import Expense, ExpenseStatus
from expense_approvals.models.approval import ApprovalRequest, ApprovalStatus, ApprovalAction
from expense_approvals.schemas.approval import ApprovalDecisionResponse
from expense_approvals.services.exceptions import NotFoundError, ForbiddenError
from expense_approvals.services.rule_catalog import rule_catalog
from expense_approvals.services.request_factory import request_factory
from expense_approvals.services.completion_evaluator import completion_evaluator
from expense_approvals.services.notification_service import notification_service
from expense_approvals.utils.logger import setup_logger, log_audit

logger = setup_logger()


class ApprovalCoordinator:
    """Orchestrates approval decisions"""

    def __init__(self):
        """Initialize with dependent services"""
        self.rule_catalog = rule_catalog
        self.request_factory = request_factory
        self.completion_evaluator = completion_evaluator
        self.notification_service = notification_service

    def process_decision(
        self,
        db: Session,
        actor_id: int,
        expense_id: int,
        action: Union[ApprovalAction, str],
        comment: Optional[str] = None
    ) -> ApprovalDecisionResponse:
        """
        Approve or reject the actor's pending request on an expense

        All validation happens before the first write; the mutation is
        committed as a whole or rolled back.

        Args:
            db: Database session
            actor_id: User taking the decision
            expense_id: Expense being decided
            action: APPROVE or REJECT
            comment: Optional comment stored on the request

        Returns:
            ApprovalDecisionResponse with APPROVED, REJECTED or PENDING_APPROVAL

        Raises:
            NotFoundError: unknown actor/expense, or no pending request for the actor
            ForbiddenError: actor may not decide on this expense
        """
        action = ApprovalAction(action)
        opened: Optional[ApprovalRequest] = None

        try:
            actor = db.query(User).filter(User.id == actor_id).first()
            if not actor:
                raise NotFoundError(f"User {actor_id} not found", expense_id=expense_id)

            expense = db.query(Expense).options(
                selectinload(Expense.submitter)
            ).filter(Expense.id == expense_id).first()
            if not expense:
                raise NotFoundError(f"Expense {expense_id} not found", expense_id=expense_id)

            request = self._lock_pending_request(db, expense_id, actor_id)
            if request is None or not expense.is_pending:
                raise NotFoundError(
                    f"No pending approval request for user {actor_id} on expense {expense_id}",
                    expense_id=expense_id
                )

            if not self._is_authorized(actor, expense, request):
                raise ForbiddenError(
                    f"User {actor_id} is not authorized to decide on expense {expense_id}",
                    expense_id=expense_id,
                    request_id=request.id
                )

            now = datetime.utcnow()
            request.status = ApprovalStatus.APPROVED if action == ApprovalAction.APPROVE else ApprovalStatus.REJECTED
            request.action_date = now
            if comment is not None:
                request.comment = comment
            db.flush()

            # Re-read the whole history so decisions committed by others are seen
            requests = self._load_requests(db, expense_id)
            rule = expense.approval_rule

            if action == ApprovalAction.REJECT:
                self.completion_evaluator.on_request_rejected(expense, rule, requests, request)
                expense.status = ExpenseStatus.REJECTED
                expense.rejected_at = now
            else:
                result = self.completion_evaluator.on_request_approved(expense, rule, requests, request)
                if result.complete:
                    expense.status = ExpenseStatus.APPROVED
                    expense.approved_at = now
                elif result.advance and result.next_request is not None:
                    opened = self.request_factory.open_request(
                        db,
                        expense.id,
                        result.next_request.approver_id,
                        result.next_request.step_number
                    )

            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            f"User {actor_id} {request.status.value.lower()} request {request.id} "
            f"(step {request.step_number}) on expense {expense_id}; expense is {expense.status.value}"
        )
        log_audit(actor_id, f"EXPENSE_{action.value}", f"expense_id={expense_id} request_id={request.id} status={expense.status.value}")

        self._dispatch_decision_notifications(db, expense, opened, comment)

        return ApprovalDecisionResponse(expense_id=expense.id, status=expense.status)

    def approve(self, db: Session, actor_id: int, expense_id: int, comment: Optional[str] = None) -> ApprovalDecisionResponse:
        return self.process_decision(db, actor_id, expense_id, ApprovalAction.APPROVE, comment)

    def reject(self, db: Session, actor_id: int, expense_id: int, comment: Optional[str] = None) -> ApprovalDecisionResponse:
        return self.process_decision(db, actor_id, expense_id, ApprovalAction.REJECT, comment)

    def submit_expense(self, db: Session, submitter_id: int, expense_id: int) -> Tuple[Expense, List[ApprovalRequest]]:
        """
        Submit a draft expense: assign the rule and open the first requests

        The rule is fixed on the expense here; later edits to the rule never
        re-route it.

        Raises:
            NotFoundError: no DRAFT expense with this id belongs to the submitter
        """
        try:
            expense = db.query(Expense).filter(
                Expense.id == expense_id,
                Expense.submitter_id == submitter_id,
                Expense.status == ExpenseStatus.DRAFT
            ).first()

            if not expense:
                raise NotFoundError("Expense not found or already submitted", expense_id=expense_id)

            rule = self.rule_catalog.select_rule(db, expense.amount, expense.company_id)

            expense.status = ExpenseStatus.PENDING_APPROVAL
            expense.submitted_at = datetime.utcnow()
            expense.approval_rule_id = rule.id if rule else None

            requests = self.request_factory.open_initial_requests(db, expense.id, rule, submitter_id)
            db.commit()
        except Exception:
            db.rollback()
            raise

        rule_label = f"rule {rule.id} ({rule.rule_type.value})" if rule else "manager fallback"
        logger.info(f"Expense {expense.id} submitted by user {submitter_id} via {rule_label}; {len(requests)} request(s) opened")
        log_audit(submitter_id, "EXPENSE_SUBMITTED", f"expense_id={expense.id} rule_id={expense.approval_rule_id} requests={len(requests)}")

        if requests:
            self._safe_notify(db, self.notification_service.notify_approval_required, expense, requests)

        return expense, requests

    def get_pending_approvals(self, db: Session, user_id: int) -> List[ApprovalRequest]:
        """Pending requests waiting on the user for expenses still in flight, oldest first"""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")

        return db.query(ApprovalRequest).join(
            Expense, ApprovalRequest.expense_id == Expense.id
        ).options(
            selectinload(ApprovalRequest.expense)
        ).filter(
            ApprovalRequest.approver_id == user_id,
            ApprovalRequest.status == ApprovalStatus.PENDING,
            Expense.status == ExpenseStatus.PENDING_APPROVAL
        ).order_by(ApprovalRequest.created_at.asc(), ApprovalRequest.id.asc()).all()

    def get_expense_workflow(self, db: Session, user_id: int, expense_id: int) -> dict:
        """Expense, its rule and the full request history, for users of the same company"""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")

        expense = db.query(Expense).filter(
            Expense.id == expense_id,
            Expense.company_id == user.company_id
        ).first()
        if not expense:
            raise NotFoundError(f"Expense {expense_id} not found", expense_id=expense_id)

        return {
            "expense": expense,
            "approval_rule": expense.approval_rule,
            "approval_requests": self._load_requests(db, expense_id),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_pending_request(self, db: Session, expense_id: int, actor_id: int) -> Optional[ApprovalRequest]:
        # Row lock serialises two decisions on the same request; the loser finds it decided
        return db.query(ApprovalRequest).filter(
            ApprovalRequest.expense_id == expense_id,
            ApprovalRequest.approver_id == actor_id,
            ApprovalRequest.status == ApprovalStatus.PENDING
        ).order_by(
            ApprovalRequest.step_number.asc()
        ).with_for_update().populate_existing().first()

    def _load_requests(self, db: Session, expense_id: int) -> List[ApprovalRequest]:
        return db.query(ApprovalRequest).filter(
            ApprovalRequest.expense_id == expense_id
        ).order_by(
            ApprovalRequest.created_at.asc(),
            ApprovalRequest.id.asc()
        ).populate_existing().all()

    def _is_authorized(self, actor: User, expense: Expense, request: ApprovalRequest) -> bool:
        """
        Direct manager of the submitter, an admin, or an approver named by the
        rule. Escalation targets hold requests at or beyond the escalation
        offset and may act on them.
        """
        if actor.is_admin:
            return True

        submitter = expense.submitter
        if submitter is not None and submitter.manager_id == actor.id:
            return True

        rule = expense.approval_rule
        if rule is not None:
            if actor.id in rule.step_approver_ids:
                return True
            if rule.specific_approver_id == actor.id:
                return True

        return request.step_number >= settings.ESCALATION_STEP_OFFSET

    def _dispatch_decision_notifications(
        self,
        db: Session,
        expense: Expense,
        opened: Optional[ApprovalRequest],
        comment: Optional[str]
    ):
        if expense.status == ExpenseStatus.APPROVED:
            self._safe_notify(db, self.notification_service.notify_expense_approved, expense, comment)
        elif expense.status == ExpenseStatus.REJECTED:
            self._safe_notify(db, self.notification_service.notify_expense_rejected, expense, comment)
        elif opened is not None:
            self._safe_notify(db, self.notification_service.notify_approval_required, expense, [opened])

    def _safe_notify(self, db: Session, notify, *args):
        # The decision is already committed; a notification failure must not surface as a failed decision
        try:
            notify(db, *args)
        except Exception:
            db.rollback()
            logger.exception(f"Failed to record notification via {notify.__name__}")


# Create singleton instance
approval_coordinator = ApprovalCoordinator()
