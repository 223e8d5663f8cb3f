"""
Completion Evaluator Tests
Pure policy tests on unsaved model instances, no database involved
"""

from expense_approvals.models.expense import Expense, ExpenseStatus
from expense_approvals.models.approval_rule import ApprovalRule, ApprovalStep, ApprovalRuleType
from expense_approvals.models.approval import ApprovalRequest, ApprovalStatus
from expense_approvals.services.completion_evaluator import completion_evaluator, logical_step

MANAGER, ALICE, BOB, CAROL, DAVE = 10, 11, 12, 13, 14


def _expense():
    return Expense(id=1, company_id=1, submitter_id=99, title="Taxi", amount=42.0,
                   status=ExpenseStatus.PENDING_APPROVAL)


def _rule(rule_type, approvers, threshold=None, specific=None, manager_first=False):
    return ApprovalRule(
        id=1,
        company_id=1,
        name="rule",
        rule_type=rule_type,
        percentage_threshold=threshold,
        specific_approver_id=specific,
        require_manager_first=manager_first,
        approval_steps=[
            ApprovalStep(sequence=index, approver_id=approver_id, is_required=True)
            for index, approver_id in enumerate(approvers, start=1)
        ]
    )


def _request(approver_id, step_number, status=ApprovalStatus.PENDING):
    return ApprovalRequest(expense_id=1, approver_id=approver_id, step_number=step_number, status=status)


def _approved(approver_id, step_number):
    return _request(approver_id, step_number, ApprovalStatus.APPROVED)


class TestSequential:
    """Test chain advancement"""

    def test_manager_first_chain(self):
        """M -> A -> B completes only after the third approval"""
        rule = _rule(ApprovalRuleType.SEQUENTIAL, [ALICE, BOB], manager_first=True)
        requests = [_approved(MANAGER, 0)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[0])
        assert result.advance and not result.complete
        assert (result.next_request.approver_id, result.next_request.step_number) == (ALICE, 1)

        requests.append(_approved(ALICE, 1))
        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[-1])
        assert result.advance and not result.complete
        assert (result.next_request.approver_id, result.next_request.step_number) == (BOB, 2)

        requests.append(_approved(BOB, 2))
        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[-1])
        assert result.complete
        assert not result.advance

    def test_without_manager_first(self):
        rule = _rule(ApprovalRuleType.SEQUENTIAL, [ALICE, BOB])
        requests = [_approved(ALICE, 1)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[0])

        assert result.next_request.approver_id == BOB
        assert result.next_request.step_number == 2

    def test_manager_first_skipped_when_no_manager_request(self):
        """A submitter without manager started at step 1; the pre-step is not owed"""
        rule = _rule(ApprovalRuleType.SEQUENTIAL, [ALICE], manager_first=True)
        requests = [_approved(ALICE, 1)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[0])

        assert result.complete

    def test_step_already_open_is_not_reopened(self):
        rule = _rule(ApprovalRuleType.SEQUENTIAL, [ALICE, BOB])
        requests = [_approved(ALICE, 1), _request(BOB, 2)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[0])

        assert not result.advance
        assert not result.complete

    def test_escalated_copy_satisfies_its_step(self):
        rule = _rule(ApprovalRuleType.SEQUENTIAL, [ALICE, BOB])
        requests = [_request(ALICE, 1), _approved(DAVE, 101)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[1])

        assert result.advance
        assert result.next_request.step_number == 2


class TestPercentage:
    """Test threshold arithmetic"""

    def test_half_of_four_steps(self):
        """4 steps at 50%: one approval waits, two complete"""
        rule = _rule(ApprovalRuleType.PERCENTAGE, [ALICE, BOB, CAROL, DAVE], threshold=50)
        requests = [_approved(ALICE, 1), _request(BOB, 2), _request(CAROL, 3), _request(DAVE, 4)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[0])
        assert not result.complete
        assert not result.advance

        requests[1] = _approved(BOB, 2)
        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[1])
        assert result.complete

    def test_default_threshold(self):
        rule = _rule(ApprovalRuleType.PERCENTAGE, [ALICE, BOB])
        requests = [_approved(ALICE, 1), _request(BOB, 2)]

        assert completion_evaluator.percentage_met(rule, requests)

    def test_escalated_copy_not_double_counted(self):
        rule = _rule(ApprovalRuleType.PERCENTAGE, [ALICE, BOB, CAROL, DAVE], threshold=50)
        requests = [_approved(ALICE, 1), _approved(MANAGER, 101)]

        assert not completion_evaluator.percentage_met(rule, requests)

    def test_no_steps_never_met(self):
        rule = _rule(ApprovalRuleType.PERCENTAGE, [], threshold=1)
        assert not completion_evaluator.percentage_met(rule, [])


class TestSpecificAndHybrid:
    """Test specific approver and the hybrid OR"""

    def test_specific_approver_completes(self):
        rule = _rule(ApprovalRuleType.SPECIFIC_APPROVER, [ALICE], specific=CAROL)
        requests = [_approved(CAROL, 1)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[0])

        assert result.complete

    def test_other_approver_does_not_complete_specific(self):
        rule = _rule(ApprovalRuleType.SPECIFIC_APPROVER, [ALICE], specific=CAROL)
        requests = [_request(CAROL, 1), _approved(ALICE, 1)]

        assert not completion_evaluator.specific_approver_met(rule, requests)

    def test_hybrid_specific_approver_short_circuits(self):
        """Threshold 100 is far off, but the specific approver's approval suffices"""
        rule = _rule(ApprovalRuleType.HYBRID, [ALICE, BOB, CAROL], threshold=100, specific=BOB)
        requests = [_request(ALICE, 1), _approved(BOB, 2), _request(CAROL, 3)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[1])

        assert result.complete

    def test_hybrid_waits_for_either_condition(self):
        rule = _rule(ApprovalRuleType.HYBRID, [ALICE, BOB, CAROL], threshold=100, specific=BOB)
        requests = [_approved(ALICE, 1), _request(BOB, 2), _approved(CAROL, 3)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[2])

        assert not result.complete

    def test_hybrid_threshold_alone_completes(self):
        rule = _rule(ApprovalRuleType.HYBRID, [ALICE, CAROL], threshold=100, specific=BOB)
        requests = [_approved(ALICE, 1), _approved(CAROL, 2)]

        result = completion_evaluator.on_request_approved(_expense(), rule, requests, requests[1])

        assert result.complete


    def test_hybrid_outside_specific_step_not_counted_in_percentage(self):
        """The specific approver's extra step sits past the chain and does not count toward the threshold"""
        rule = _rule(ApprovalRuleType.HYBRID, [ALICE, BOB, CAROL, DAVE], threshold=50, specific=MANAGER)
        requests = [_approved(ALICE, 1), _request(BOB, 2), _request(CAROL, 3), _request(DAVE, 4), _approved(MANAGER, 5)]

        assert not completion_evaluator.percentage_met(rule, requests)


class TestTerminalOutcomes:
    """Test rejection and plain manager approval"""

    def test_rejection_is_terminal(self):
        rule = _rule(ApprovalRuleType.PERCENTAGE, [ALICE, BOB], threshold=50)
        rejected = _request(ALICE, 1, ApprovalStatus.REJECTED)

        result = completion_evaluator.on_request_rejected(_expense(), rule, [rejected], rejected)

        assert result.complete
        assert result.rejected

    def test_no_rule_single_approval(self):
        requests = [_approved(MANAGER, 1)]

        result = completion_evaluator.on_request_approved(_expense(), None, requests, requests[0])

        assert result.complete

    def test_logical_step_folds_escalation_offset(self):
        assert logical_step(_request(ALICE, 2)) == 2
        assert logical_step(_request(DAVE, 102)) == 2
        assert logical_step(_request(MANAGER, 100)) == 0
