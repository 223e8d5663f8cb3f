"""
Request Factory
Opens the first wave of approval requests for a submitted expense
"""

from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional

from expense_approvals.models.user import User
from expense_approvals.models.approval_rule import ApprovalRule, ApprovalRuleType
from expense_approvals.models.approval import ApprovalRequest, ApprovalStatus, MANAGER_PRE_STEP, FIRST_STEP
from expense_approvals.utils.logger import setup_logger

logger = setup_logger()


class RequestFactory:
    """Creates the initial PENDING approval requests for an expense"""

    def open_initial_requests(
        self,
        db: Session,
        expense_id: int,
        rule: Optional[ApprovalRule],
        submitter_id: int
    ) -> List[ApprovalRequest]:
        """
        Open the initial requests dictated by the rule

        Runs inside the caller's transaction: rows are added and flushed,
        never committed. No notifications are sent from here.

        Args:
            db: Database session
            expense_id: Expense being routed
            rule: Selected rule, or None for plain manager approval
            submitter_id: Expense submitter

        Returns:
            List of created requests (possibly empty)
        """
        if rule is None:
            targets = self._manager_fallback(db, submitter_id)
        elif rule.rule_type == ApprovalRuleType.SEQUENTIAL:
            targets = self._sequential(db, rule, submitter_id)
        elif rule.rule_type == ApprovalRuleType.PERCENTAGE:
            # Fan out to every step at once, order does not matter
            targets = [(step.approver_id, step.sequence) for step in rule.approval_steps]
        elif rule.rule_type == ApprovalRuleType.HYBRID:
            targets = self._hybrid(rule)
        elif rule.rule_type == ApprovalRuleType.SPECIFIC_APPROVER:
            targets = [(rule.specific_approver_id, FIRST_STEP)] if rule.specific_approver_id else []
        else:
            logger.warning(f"Unknown rule type {rule.rule_type} on rule {rule.id}")
            targets = []

        requests = [
            self.open_request(db, expense_id, approver_id, step_number)
            for approver_id, step_number in targets
        ]

        if requests:
            db.flush()
        else:
            logger.warning(f"No approver could be assigned to expense {expense_id}")

        return requests

    def open_request(
        self,
        db: Session,
        expense_id: int,
        approver_id: int,
        step_number: int,
        comment: Optional[str] = None,
        created_at: Optional[datetime] = None
    ) -> ApprovalRequest:
        """Add a single PENDING request to the session"""
        request = ApprovalRequest(
            expense_id=expense_id,
            approver_id=approver_id,
            step_number=step_number,
            status=ApprovalStatus.PENDING,
            comment=comment,
            created_at=created_at or datetime.utcnow(),
        )
        db.add(request)
        logger.debug(f"Opened request for user {approver_id} on expense {expense_id} at step {step_number}")
        return request

    def _manager_fallback(self, db: Session, submitter_id: int) -> list:
        manager_id = self._manager_of(db, submitter_id)
        if manager_id is None:
            return []
        return [(manager_id, FIRST_STEP)]

    def _hybrid(self, rule: ApprovalRule) -> list:
        targets = [(step.approver_id, step.sequence) for step in rule.approval_steps]
        # A specific approver outside the chain gets the next free step
        specific_id = rule.specific_approver_id
        if specific_id is not None and specific_id not in rule.step_approver_ids:
            next_step = max((step.sequence for step in rule.approval_steps), default=0) + 1
            targets.append((specific_id, next_step))
        return targets

    def _sequential(self, db: Session, rule: ApprovalRule, submitter_id: int) -> list:
        # Only the head of the chain is opened, the evaluator opens the rest lazily
        if rule.require_manager_first:
            manager_id = self._manager_of(db, submitter_id)
            if manager_id is not None:
                return [(manager_id, MANAGER_PRE_STEP)]

        first_step = rule.first_step
        if first_step is None:
            return []
        return [(first_step.approver_id, FIRST_STEP)]

    def _manager_of(self, db: Session, user_id: int) -> Optional[int]:
        submitter = db.query(User).filter(User.id == user_id).first()
        if submitter is None:
            return None
        return submitter.manager_id


# Create singleton instance
request_factory = RequestFactory()
