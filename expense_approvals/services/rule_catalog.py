"""
Rule Catalog
Selects the approval rule for an expense and administers company rules
"""

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional

from expense_approvals.models.user import User
from expense_approvals.models.approval_rule import ApprovalRule, ApprovalStep, ApprovalRuleType
from expense_approvals.config.settings import settings
from expense_approvals.models.expense import Expense, ExpenseStatus, ACTIVE_EXPENSE_STATUSES
from expense_approvals.schemas.approval_rule import ApprovalRuleCreate, ApprovalRuleUpdate
from expense_approvals.services.exceptions import (
    NotFoundError,
    ForbiddenError,
    InvalidArgumentError,
    ConflictError,
)
from expense_approvals.utils.logger import setup_logger, log_audit

logger = setup_logger()


RULE_TYPES_NEEDING_THRESHOLD = (ApprovalRuleType.PERCENTAGE, ApprovalRuleType.HYBRID)
RULE_TYPES_NEEDING_SPECIFIC_APPROVER = (ApprovalRuleType.SPECIFIC_APPROVER, ApprovalRuleType.HYBRID)
NON_NULLABLE_RULE_FIELDS = ("name", "is_active", "require_manager_first")
# Fields the completion logic reads; frozen while an expense is in flight
POLICY_RULE_FIELDS = ("require_manager_first", "percentage_threshold", "specific_approver_id")


class RuleCatalog:
    """Service for approval rule selection and administration"""

    def select_rule(self, db: Session, amount: float, company_id: int) -> Optional[ApprovalRule]:
        """
        Find the single best-matching active rule for an amount

        Bounds are inclusive and each one is optional. Among matches the rule
        with the highest min_amount wins (rules without a minimum come last),
        then the earliest created.

        Args:
            db: Database session
            amount: Expense amount in company currency
            company_id: Company owning the rules

        Returns:
            ApprovalRule or None when the caller should fall back to the manager
        """
        min_ok = or_(ApprovalRule.min_amount.is_(None), ApprovalRule.min_amount <= amount)
        max_ok = or_(ApprovalRule.max_amount.is_(None), ApprovalRule.max_amount >= amount)

        rule = db.query(ApprovalRule).options(
            selectinload(ApprovalRule.approval_steps)
        ).filter(
            ApprovalRule.company_id == company_id,
            ApprovalRule.is_active.is_(True),
            and_(min_ok, max_ok)
        ).order_by(
            ApprovalRule.min_amount.is_(None),
            ApprovalRule.min_amount.desc(),
            ApprovalRule.created_at.asc(),
            ApprovalRule.id.asc()
        ).first()

        if rule:
            logger.debug(f"Rule '{rule.name}' ({rule.rule_type.value}) selected for amount {amount} in company {company_id}")
        else:
            logger.debug(f"No active rule matches amount {amount} in company {company_id}")
        return rule

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create_rule(self, db: Session, admin_id: int, data: ApprovalRuleCreate) -> ApprovalRule:
        """
        Create a rule with its approver chain (admin only)

        Raises:
            NotFoundError: admin does not exist
            ForbiddenError: actor is not an admin
            InvalidArgumentError: malformed definition or foreign approver
        """
        admin = self._require_admin(db, admin_id, "create approval rules")

        if not data.approval_steps:
            raise InvalidArgumentError("At least one approval step is required")

        sequences = [step.sequence for step in data.approval_steps]
        if len(sequences) != len(set(sequences)):
            raise InvalidArgumentError("Approval step sequences must be unique")
        if sorted(sequences) != list(range(1, len(sequences) + 1)):
            raise InvalidArgumentError("Approval step sequences must run 1..N without gaps")

        # A hybrid rule may add one step for its specific approver; all steps stay below the escalation offset
        max_steps = settings.ESCALATION_STEP_OFFSET - 2
        if len(sequences) > max_steps:
            raise InvalidArgumentError(f"A rule can have at most {max_steps} approval steps")

        self._validate_policy(
            rule_type=data.rule_type,
            min_amount=data.min_amount,
            max_amount=data.max_amount,
            percentage_threshold=data.percentage_threshold,
            specific_approver_id=data.specific_approver_id,
        )

        for step in data.approval_steps:
            self._require_company_user(db, step.approver_id, admin.company_id, "approver")
        if data.specific_approver_id is not None:
            self._require_company_user(db, data.specific_approver_id, admin.company_id, "specific approver")

        rule = ApprovalRule(
            company_id=admin.company_id,
            name=data.name,
            description=data.description,
            rule_type=data.rule_type,
            is_active=data.is_active,
            min_amount=data.min_amount,
            max_amount=data.max_amount,
            percentage_threshold=data.percentage_threshold,
            specific_approver_id=data.specific_approver_id,
            require_manager_first=data.require_manager_first,
            approval_steps=[
                ApprovalStep(
                    sequence=step.sequence,
                    approver_id=step.approver_id,
                    is_required=step.is_required,
                )
                for step in sorted(data.approval_steps, key=lambda s: s.sequence)
            ],
        )

        try:
            db.add(rule)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(rule)

        logger.info(f"Approval rule '{rule.name}' ({rule.rule_type.value}) created in company {rule.company_id}")
        log_audit(admin.id, "RULE_CREATED", f"rule_id={rule.id} type={rule.rule_type.value} steps={len(rule.approval_steps)}")
        return rule

    def update_rule(self, db: Session, admin_id: int, rule_id: int, data: ApprovalRuleUpdate) -> ApprovalRule:
        """
        Partially update a rule's scalar fields (admin only)

        The merged result is validated as a whole before anything is written.
        Amount bounds, name and activity only affect future submissions and
        can always change; completion policy fields are frozen while an
        expense is pending approval under the rule.

        Raises:
            ConflictError: a policy field changes while the rule is in flight
        """
        admin = self._require_admin(db, admin_id, "update approval rules")
        rule = self._get_company_rule(db, rule_id, admin.company_id)

        changes = {
            key: value for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key not in NON_NULLABLE_RULE_FIELDS
        }
        merged = {
            "rule_type": rule.rule_type,
            "min_amount": rule.min_amount,
            "max_amount": rule.max_amount,
            "percentage_threshold": rule.percentage_threshold,
            "specific_approver_id": rule.specific_approver_id,
        }
        merged.update({key: value for key, value in changes.items() if key in merged})
        self._validate_policy(**merged)

        if changes.get("specific_approver_id") is not None:
            self._require_company_user(db, changes["specific_approver_id"], admin.company_id, "specific approver")

        policy_changes = sorted(
            field for field in POLICY_RULE_FIELDS
            if field in changes and changes[field] != getattr(rule, field)
        )
        if policy_changes:
            in_flight = self._count_expenses_using(db, rule.id, (ExpenseStatus.PENDING_APPROVAL,))
            if in_flight > 0:
                raise ConflictError(
                    f"Cannot change {', '.join(policy_changes)} of approval rule {rule.id}: "
                    f"{in_flight} expense(s) are pending approval under it"
                )

        try:
            for field, value in changes.items():
                setattr(rule, field, value)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(rule)

        logger.info(f"Approval rule {rule.id} updated: {sorted(changes)}")
        log_audit(admin.id, "RULE_UPDATED", f"rule_id={rule.id} fields={','.join(sorted(changes))}")
        return rule

    def delete_rule(self, db: Session, admin_id: int, rule_id: int):
        """
        Delete a rule that no draft or pending expense references (admin only)

        Raises:
            ConflictError: rule is still referenced by an active expense
        """
        admin = self._require_admin(db, admin_id, "delete approval rules")
        rule = self._get_company_rule(db, rule_id, admin.company_id)

        in_use = self._count_expenses_using(db, rule.id, ACTIVE_EXPENSE_STATUSES)

        if in_use > 0:
            raise ConflictError(
                f"Cannot delete approval rule {rule.id}: used by {in_use} active expense(s)"
            )

        try:
            # Historical expenses keep their requests but lose the rule link
            db.query(Expense).filter(Expense.approval_rule_id == rule.id).update(
                {Expense.approval_rule_id: None}, synchronize_session=False
            )
            db.delete(rule)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Approval rule {rule_id} deleted")
        log_audit(admin.id, "RULE_DELETED", f"rule_id={rule_id}")

    def list_rules(self, db: Session, user_id: int) -> List[ApprovalRule]:
        """All rules of the user's company, newest first"""
        user = self._require_user(db, user_id)
        return db.query(ApprovalRule).options(
            selectinload(ApprovalRule.approval_steps)
        ).filter(
            ApprovalRule.company_id == user.company_id
        ).order_by(ApprovalRule.created_at.desc(), ApprovalRule.id.desc()).all()

    def get_rule(self, db: Session, user_id: int, rule_id: int) -> ApprovalRule:
        user = self._require_user(db, user_id)
        return self._get_company_rule(db, rule_id, user.company_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_policy(
        self,
        rule_type: ApprovalRuleType,
        min_amount: Optional[float],
        max_amount: Optional[float],
        percentage_threshold: Optional[int],
        specific_approver_id: Optional[int],
    ):
        if min_amount is not None and max_amount is not None and min_amount > max_amount:
            raise InvalidArgumentError("min_amount cannot be greater than max_amount")

        if percentage_threshold is not None and not 1 <= percentage_threshold <= 100:
            raise InvalidArgumentError("percentage_threshold must be between 1 and 100")

        if rule_type in RULE_TYPES_NEEDING_THRESHOLD and percentage_threshold is None:
            raise InvalidArgumentError(f"{rule_type.value} rules require a percentage_threshold")

        if rule_type in RULE_TYPES_NEEDING_SPECIFIC_APPROVER and specific_approver_id is None:
            raise InvalidArgumentError(f"{rule_type.value} rules require a specific_approver_id")

    def _count_expenses_using(self, db: Session, rule_id: int, statuses) -> int:
        return db.query(Expense).filter(
            Expense.approval_rule_id == rule_id,
            Expense.status.in_(statuses)
        ).count()

    def _require_user(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def _require_admin(self, db: Session, user_id: int, action: str) -> User:
        user = self._require_user(db, user_id)
        if not user.is_admin:
            raise ForbiddenError(f"Only admins can {action}")
        return user

    def _require_company_user(self, db: Session, user_id: int, company_id: int, label: str) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user or user.company_id != company_id:
            raise InvalidArgumentError(f"Invalid {label}: {user_id}")
        return user

    def _get_company_rule(self, db: Session, rule_id: int, company_id: int) -> ApprovalRule:
        rule = db.query(ApprovalRule).filter(
            ApprovalRule.id == rule_id,
            ApprovalRule.company_id == company_id
        ).first()
        if not rule:
            raise NotFoundError(f"Approval rule {rule_id} not found")
        return rule


# Create singleton instance
rule_catalog = RuleCatalog()
