"""
Completion Evaluator
Decides, after each decision, whether an expense is finished, must advance
to the next sequential step, or keeps waiting.

The evaluator is pure: it reads the expense, its rule and the freshly loaded
request history and returns a verdict. Writing the verdict back is the
coordinator's job.
"""

from pydantic import BaseModel
from typing import Hashable, Iterable, List, Optional, Set

from expense_approvals.config.settings import settings
from expense_approvals.models.expense import Expense
from expense_approvals.models.approval_rule import ApprovalRule, ApprovalRuleType
from expense_approvals.models.approval import ApprovalRequest, ApprovalStatus, MANAGER_PRE_STEP
from expense_approvals.utils.logger import setup_logger

logger = setup_logger()


class NextRequest(BaseModel):
    """The sequential step that has to be opened next"""
    approver_id: int
    step_number: int


class CompletionResult(BaseModel):
    """Verdict of one evaluation"""
    advance: bool = False
    next_request: Optional[NextRequest] = None
    complete: bool = False
    rejected: bool = False


def logical_step(request: ApprovalRequest) -> Hashable:
    """
    Step a request stands for, folding escalated copies onto their origin

    An escalated copy lives at ``step_number + ESCALATION_STEP_OFFSET``; both
    it and the original request satisfy the same step, so approvals are
    counted per logical step.
    """
    if request.step_number is None:
        return ("request", id(request))
    return request.step_number % settings.ESCALATION_STEP_OFFSET


def approved_steps(requests: Iterable[ApprovalRequest]) -> Set[Hashable]:
    return {
        logical_step(request)
        for request in requests
        if request.status == ApprovalStatus.APPROVED
    }


class CompletionEvaluator:
    """Evaluates completion for the four approval policies"""

    def on_request_approved(
        self,
        expense: Expense,
        rule: Optional[ApprovalRule],
        requests: List[ApprovalRequest],
        just_approved: ApprovalRequest
    ) -> CompletionResult:
        """
        Evaluate the expense after an approval

        Args:
            expense: Expense being decided
            rule: Rule assigned at submission (None for manager approval)
            requests: Every request of the expense, re-read after the update
            just_approved: The request that was just marked APPROVED

        Returns:
            CompletionResult
        """
        if rule is None:
            result = CompletionResult(complete=self._any_approved(requests))
        elif rule.rule_type == ApprovalRuleType.SEQUENTIAL:
            result = self._evaluate_sequential(rule, requests)
        elif rule.rule_type == ApprovalRuleType.PERCENTAGE:
            result = CompletionResult(complete=self.percentage_met(rule, requests))
        elif rule.rule_type == ApprovalRuleType.SPECIFIC_APPROVER:
            result = CompletionResult(complete=self.specific_approver_met(rule, requests))
        elif rule.rule_type == ApprovalRuleType.HYBRID:
            result = CompletionResult(
                complete=self.percentage_met(rule, requests) or self.specific_approver_met(rule, requests)
            )
        else:
            logger.warning(f"Unknown rule type {rule.rule_type} on rule {rule.id}, expense {expense.id} left pending")
            result = CompletionResult()

        logger.debug(
            f"Expense {expense.id} after approval of request {just_approved.id}: "
            f"complete={result.complete} advance={result.advance}"
        )
        return result

    def on_request_rejected(
        self,
        expense: Expense,
        rule: Optional[ApprovalRule],
        requests: List[ApprovalRequest],
        just_rejected: ApprovalRequest
    ) -> CompletionResult:
        """A single rejection ends the workflow, whatever the policy"""
        logger.debug(f"Expense {expense.id} rejected through request {just_rejected.id}")
        return CompletionResult(complete=True, rejected=True)

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def _evaluate_sequential(self, rule: ApprovalRule, requests: List[ApprovalRequest]) -> CompletionResult:
        manager_first = self._manager_pre_step_applies(rule, requests)
        approved_count = len(approved_steps(requests))
        total_steps = len(rule.approval_steps) + (1 if manager_first else 0)

        if approved_count >= total_steps:
            return CompletionResult(complete=True)

        next_step_number = approved_count if manager_first else approved_count + 1
        step = rule.step_for_sequence(next_step_number)
        if step is None:
            return CompletionResult()

        already_open = any(
            request.step_number == next_step_number for request in requests
        )
        if already_open:
            return CompletionResult()

        return CompletionResult(
            advance=True,
            next_request=NextRequest(approver_id=step.approver_id, step_number=next_step_number)
        )

    def percentage_met(self, rule: ApprovalRule, requests: List[ApprovalRequest]) -> bool:
        """approved / configured steps * 100 >= threshold (default 50)"""
        total = len(rule.approval_steps)
        if total == 0:
            return False

        threshold = rule.percentage_threshold
        if threshold is None:
            threshold = settings.DEFAULT_PERCENTAGE_THRESHOLD

        # A hybrid rule's extra specific-approver step is not part of the chain
        chain_steps = {step.sequence for step in rule.approval_steps}
        approved_count = len(approved_steps(requests) & chain_steps)
        return approved_count / total * 100 >= threshold

    def specific_approver_met(self, rule: ApprovalRule, requests: List[ApprovalRequest]) -> bool:
        if rule.specific_approver_id is None:
            return False
        return any(
            request.status == ApprovalStatus.APPROVED and request.approver_id == rule.specific_approver_id
            for request in requests
        )

    def _any_approved(self, requests: List[ApprovalRequest]) -> bool:
        return any(request.status == ApprovalStatus.APPROVED for request in requests)

    def _manager_pre_step_applies(self, rule: ApprovalRule, requests: List[ApprovalRequest]) -> bool:
        # A submitter without a manager starts directly at step 1
        if not rule.require_manager_first:
            return False
        return any(logical_step(request) == MANAGER_PRE_STEP for request in requests)


# Create singleton instance
completion_evaluator = CompletionEvaluator()
